# tests/test_timelock.py
"""
Media Release Time-Lock: Request Builder Tests

Run:
    pytest tests/test_timelock.py
"""

import pytest
from eth_abi import decode as abi_decode

from media_release.timelock.request import (
    UINT40_MAX,
    ConditionNotMet,
    MockTimeLockOracle,
    TargetBlockOverflow,
    TimeLockRequestBuilder,
    encode_block_condition,
    validate_target_block,
)
from media_release.wire.payload import PayloadError, build_reveal_payload


PAYLOAD = build_reveal_payload("22" * 32, "bafy-locator", filename="f.bin")


# =============================================================================
# Target Height
# =============================================================================

@pytest.mark.parametrize("height", [0, 1, 123456, UINT40_MAX])
def test_valid_heights(height):
    assert validate_target_block(height) == height


@pytest.mark.parametrize("height", [-1, UINT40_MAX + 1, 2**64])
def test_overflow(height):
    with pytest.raises(TargetBlockOverflow) as exc:
        validate_target_block(height)
    assert exc.value.target_block == height


def test_overflow_raised_before_oracle_call(oracle):
    """T1.1: no oracle call for an out-of-range target"""
    builder = TimeLockRequestBuilder(oracle)
    with pytest.raises(TargetBlockOverflow):
        builder.build(UINT40_MAX + 1, PAYLOAD)
    assert oracle.encrypt_calls == []


def test_condition_encoding():
    condition = encode_block_condition(4242)
    assert condition[:1] == b"B"
    assert abi_decode(["uint256"], condition[1:]) == (4242,)


# =============================================================================
# Plaintext Discipline
# =============================================================================

def test_plaintext_is_serialized_payload(oracle):
    """T2.1: exactly the payload bytes go to the oracle, no framing"""
    request = TimeLockRequestBuilder(oracle).build(500, PAYLOAD)
    assert request.plaintext == PAYLOAD.to_bytes()
    assert oracle.encrypt_calls == [(PAYLOAD.to_bytes(), 500)]
    assert request.condition == encode_block_condition(500)


def test_serialized_bytes_passed_unchanged(oracle):
    raw = PAYLOAD.to_bytes()
    request = TimeLockRequestBuilder(oracle).build(500, raw)
    assert request.plaintext == raw


def test_non_payload_bytes_rejected(oracle):
    with pytest.raises(PayloadError):
        TimeLockRequestBuilder(oracle).build(500, b"just a key")
    assert oracle.encrypt_calls == []


# =============================================================================
# Mock Oracle
# =============================================================================

def test_mock_oracle_opens_at_target(oracle):
    request = TimeLockRequestBuilder(oracle).build(150, PAYLOAD)
    with pytest.raises(ConditionNotMet):
        oracle.decrypt_at(request.ciphertext, 149)
    assert oracle.decrypt_at(request.ciphertext, 150) == PAYLOAD.to_bytes()


def test_solidity_layout(oracle):
    request = TimeLockRequestBuilder(oracle).build(150, PAYLOAD)
    (x, y), v, w = request.ciphertext.to_solidity()
    assert len(x) == 2 and len(y) == 2
    assert isinstance(v, bytes) and isinstance(w, bytes)


def test_price_quote():
    assert MockTimeLockOracle(price_per_gas=3).estimate_request_price(700_000) == 2_100_000
