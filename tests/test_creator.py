# tests/test_creator.py
"""
Media Release: Creation Path Tests

Run:
    pytest tests/test_creator.py
"""

import pytest
from web3 import Web3

from media_release.chain.contract import DEFAULT_CALLBACK_GAS_LIMIT, MockReleaseContract
from media_release.chain.errors import ContractError
from media_release.creator import (
    CreationError,
    MediaReleaseRequest,
    ReleaseCreator,
    with_price_buffer,
)
from media_release.registry.release import ProvenanceState
from media_release.timelock.request import UINT40_MAX, TargetBlockOverflow
from media_release.wire.frame import generate_key
from media_release.wire.payload import RevealPayload

from .conftest import CONTRACT, FAST_RETRY


LOCATOR = "bafy-encrypted-blob"


def make_request(blocks_ahead=5, **kwargs):
    return MediaReleaseRequest(
        file_cid=LOCATOR,
        decryption_key=generate_key().hex(),
        blocks_ahead=blocks_ahead,
        **kwargs,
    )


@pytest.fixture
def creator(chain, contract, oracle, store, cache):
    return ReleaseCreator(chain, contract, oracle, store, cache, block_retry=FAST_RETRY, clock=lambda: 1_700_000_000.0)


def test_price_buffer():
    assert with_price_buffer(1000) == 2000
    assert with_price_buffer(1000, 50) == 1500
    assert with_price_buffer(7, 100) == 14


def test_create_release(creator, contract, oracle, store, cache):
    """N1.1: target, payload, hash, price, local record, cache"""
    statuses = []
    request = make_request(filename="clip.mp4", filetype="video/mp4", filesize=10)
    result = creator.create(request, on_status=statuses.append)

    assert result.target_block == 105
    assert result.created_at_block == 100
    assert result.value_paid == with_price_buffer(DEFAULT_CALLBACK_GAS_LIMIT * 10)
    assert contract.created_values == [result.value_paid]

    # sealed plaintext is exactly the reveal payload
    plaintext, target = oracle.encrypt_calls[0]
    assert target == 105
    payload = RevealPayload.from_json(plaintext)
    assert payload.locator == LOCATOR
    assert payload.key_hex == request.decryption_key
    assert payload.filename == "clip.mp4" and payload.size == 10

    meta = contract.meta_of(result.request_id)
    assert meta.file_cid_hash == bytes(Web3.keccak(text=LOCATOR))
    assert meta.unlock_at_block == 105

    record = store.get(result.request_id)
    assert record.state is ProvenanceState.CONFIRMED
    assert record.created_at_block == 100
    assert record.creation_wall_clock == 1_700_000_000.0
    assert record.tx_hash == result.tx_hash
    assert record.file_cid_hash == meta.file_cid_hash

    assert cache.creation_hint() == 105
    assert cache.get_release(result.request_id).unlock_at_block == 105

    assert statuses[0] == "Initializing..."
    assert statuses[-1] == "Media release created successfully!"


def test_overflow_before_any_call(chain, creator, contract, oracle):
    """N1.2: uint40 overflow rejected before encryption and submission"""
    chain.block_number = UINT40_MAX - 2
    with pytest.raises(TargetBlockOverflow):
        creator.create(make_request(blocks_ahead=5))
    assert oracle.encrypt_calls == []
    assert contract.created_values == []


def test_invalid_blocks_ahead(creator):
    with pytest.raises(ValueError):
        creator.create(make_request(blocks_ahead=0))


class FailingContract(MockReleaseContract):
    def create_release(self, *args, **kwargs):
        raise ContractError("execution reverted")


def test_contract_failure(chain, oracle, store, cache):
    creator = ReleaseCreator(chain, FailingContract(chain, CONTRACT), oracle, store, cache, block_retry=FAST_RETRY)
    statuses = []
    with pytest.raises(CreationError) as exc:
        creator.create(make_request(), on_status=statuses.append)
    assert exc.value.stage == "submitting transaction"
    assert statuses[-1].startswith("Error:")
    assert len(store) == 0
    assert cache.creation_hint() is None


def test_block_number_unavailable(chain, creator):
    chain.fail_block_number(5)
    with pytest.raises(CreationError):
        creator.create(make_request())
