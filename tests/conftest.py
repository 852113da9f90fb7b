# tests/conftest.py
"""Shared fixtures: in-memory chain, contract, oracle and stores."""

import pytest

from media_release.chain.contract import MockReleaseContract
from media_release.chain.provider import MockChainProvider
from media_release.chain.retry import RetryPolicy
from media_release.chain.scanner import ChainEventScanner
from media_release.registry.cache import LocalReleaseCache
from media_release.registry.state import ReleaseStateStore
from media_release.timelock.request import MockTimeLockOracle


CONTRACT = "0x95E30B7f27D5a5B4719A9E4eB708cB4f5e1b72a1"
CREATOR = "0x" + "ab" * 20


def no_sleep(seconds: float) -> None:
    pass


FAST_RETRY = RetryPolicy(attempts=2, delay=0.5, sleep=no_sleep)


@pytest.fixture
def chain():
    return MockChainProvider(block_number=100)


@pytest.fixture
def scanner(chain):
    return ChainEventScanner(
        chain, CONTRACT,
        chunk_size=10,
        chunk_retry=FAST_RETRY,
        block_retry=FAST_RETRY,
    )


@pytest.fixture
def contract(chain):
    return MockReleaseContract(chain, CONTRACT, account_address=CREATOR)


@pytest.fixture
def oracle():
    return MockTimeLockOracle(price_per_gas=10)


@pytest.fixture
def store():
    return ReleaseStateStore()


@pytest.fixture
def cache(tmp_path):
    return LocalReleaseCache(tmp_path / "cache.json")
