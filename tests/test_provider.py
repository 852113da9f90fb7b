# tests/test_provider.py
"""
Media Release Chain: Provider Tests

Run:
    pytest tests/test_provider.py
"""

import pytest

from media_release.chain.errors import LogFetchFailed, ProviderUnavailable
from media_release.chain.events import REVEALED_TOPIC, encode_revealed_log, request_id_topic
from media_release.chain.provider import (
    ChainProvider,
    FallbackProvider,
    LogFilter,
    MockChainProvider,
    Web3Provider,
    provider_from_urls,
)

from .conftest import CONTRACT


# =============================================================================
# LogFilter
# =============================================================================

def test_filter_params():
    log_filter = LogFilter(CONTRACT.lower(), (REVEALED_TOPIC, request_id_topic(5), None))
    params = log_filter.to_params(10, 19)
    assert params["address"] == CONTRACT
    assert params["fromBlock"] == 10 and params["toBlock"] == 19
    assert params["topics"] == ["0x" + REVEALED_TOPIC.hex(), "0x" + request_id_topic(5).hex()]


def test_filter_matches():
    log = encode_revealed_log(CONTRACT, 5, b"p", block_number=1)
    assert LogFilter(CONTRACT, (REVEALED_TOPIC, request_id_topic(5))).matches(log)
    assert LogFilter(CONTRACT, (REVEALED_TOPIC, None)).matches(log)
    assert not LogFilter(CONTRACT, (REVEALED_TOPIC, request_id_topic(6))).matches(log)
    assert not LogFilter("0x" + "00" * 20, (REVEALED_TOPIC,)).matches(log)


# =============================================================================
# Mock Provider
# =============================================================================

def test_mock_hides_future_logs():
    chain = MockChainProvider(block_number=10)
    chain.add_log(encode_revealed_log(CONTRACT, 1, b"p", block_number=12))
    log_filter = LogFilter(CONTRACT, (REVEALED_TOPIC,))
    assert chain.get_logs(log_filter, 0, 20) == []
    chain.advance(2)
    assert len(chain.get_logs(log_filter, 0, 20)) == 1


def test_mock_failure_injection():
    chain = MockChainProvider(block_number=10)
    chain.fail_block_number(1)
    with pytest.raises(ProviderUnavailable):
        chain.get_block_number()
    assert chain.get_block_number() == 10

    chain.fail_range(5, 6)
    log_filter = LogFilter(CONTRACT)
    with pytest.raises(LogFetchFailed):
        chain.get_logs(log_filter, 0, 5)
    assert chain.get_logs(log_filter, 7, 9) == []


# =============================================================================
# Fallback
# =============================================================================

def test_fallback_uses_next_provider():
    dead = MockChainProvider(block_number=1)
    dead.fail_block_number(100)
    live = MockChainProvider(block_number=77)
    provider = FallbackProvider([dead, live])
    assert provider.get_block_number() == 77
    # sticky: the live provider is asked first next time
    assert provider.get_block_number() == 77
    assert dead.block_number_calls == 1


def test_fallback_all_fail():
    a, b = MockChainProvider(), MockChainProvider()
    a.fail_logs(1)
    b.fail_logs(1)
    with pytest.raises(LogFetchFailed):
        FallbackProvider([a, b]).get_logs(LogFilter(CONTRACT), 0, 9)


def test_fallback_needs_providers():
    with pytest.raises(ProviderUnavailable):
        FallbackProvider([])


def test_provider_from_urls():
    single = provider_from_urls(["http://127.0.0.1:8545"])
    assert isinstance(single, Web3Provider)
    multi = provider_from_urls(["http://127.0.0.1:8545", "http://127.0.0.1:8546"])
    assert isinstance(multi, FallbackProvider)
    assert isinstance(multi, ChainProvider)
    with pytest.raises(ProviderUnavailable):
        provider_from_urls([])
