# media_release/timelock/request.py
"""
Media Release Time-Lock: Request Builder

Builds the two opaque inputs of a release transaction:

    condition   unlock rule understood by the oracle network
    ciphertext  reveal payload sealed so that only the oracle can open
                it, and only once the chain reaches the target height

The threshold encryption itself belongs to the oracle network; this
module sees it only through the TimeLockOracle interface. What the
builder owns is input discipline:

    - target height must fit the contract's uint40 field
      (TargetBlockOverflow, raised before any network call)
    - the oracle encrypts exactly the serialized RevealPayload bytes,
      with no extra framing

Usage:
    builder = TimeLockRequestBuilder(oracle)
    request = builder.build(target_block, payload)

    contract.create_release(..., condition=request.condition,
                            ciphertext=request.ciphertext)
"""

from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union

from eth_abi import encode as abi_encode

from ..wire.payload import RevealPayload


logger = logging.getLogger("media-release.timelock")


# =============================================================================
# Constants
# =============================================================================

# unlockAtBlock is declared uint40 on-chain
UINT40_MAX = 2**40 - 1

# Condition tag for block-height conditions
BLOCK_CONDITION_TAG = b"B"


# =============================================================================
# Exceptions
# =============================================================================

class TimeLockError(Exception):
    """Base time-lock error."""
    pass


class TargetBlockOverflow(TimeLockError):
    """Target block does not fit the on-chain uint40 field."""
    def __init__(self, target_block: int):
        self.target_block = target_block
        super().__init__(
            f"Target block {target_block} exceeds uint40 maximum value {UINT40_MAX}"
        )


class ConditionNotMet(TimeLockError):
    """Oracle cannot decrypt before the target height."""
    def __init__(self, target_block: int, current_block: int):
        self.target_block = target_block
        self.current_block = current_block
        super().__init__(f"Block {current_block} is before unlock height {target_block}")


# =============================================================================
# Types
# =============================================================================

G2Point = Tuple[Tuple[int, int], Tuple[int, int]]


@dataclass(frozen=True)
class LockedCiphertext:
    """
    Oracle ciphertext in the contract's Ciphertext struct layout.

    Attributes:
        u: BLS G2 point ((x0, x1), (y0, y1))
        v: Masked key material
        w: Masked message
    """
    u: G2Point
    v: bytes
    w: bytes

    def to_solidity(self) -> Tuple[Tuple[List[int], List[int]], bytes, bytes]:
        """Tuple accepted by web3 for struct TypesLib.Ciphertext."""
        (x0, x1), (y0, y1) = self.u
        return ([x0, x1], [y0, y1]), self.v, self.w


@dataclass(frozen=True)
class TimeLockRequest:
    """
    Everything the contract call needs from the time-lock side.

    Attributes:
        target_block: Unlock height (fits uint40)
        condition: Encoded unlock rule
        ciphertext: Oracle ciphertext of `plaintext`
        plaintext: Serialized reveal payload that was sealed
    """
    target_block: int
    condition: bytes
    ciphertext: LockedCiphertext
    plaintext: bytes = field(repr=False)


# =============================================================================
# Helpers
# =============================================================================

def validate_target_block(target_block: int) -> int:
    """
    Check a target height against the uint40 range.

    Raises:
        TargetBlockOverflow: Negative or above 2**40 - 1
    """
    if isinstance(target_block, bool) or not isinstance(target_block, int):
        raise TypeError(f"target_block must be int, got {type(target_block).__name__}")
    if target_block < 0 or target_block > UINT40_MAX:
        raise TargetBlockOverflow(target_block)
    return target_block


def encode_block_condition(target_block: int) -> bytes:
    """Block-height condition: b"B" ‖ uint256(target_block)."""
    validate_target_block(target_block)
    return BLOCK_CONDITION_TAG + abi_encode(["uint256"], [target_block])


# =============================================================================
# TimeLockOracle (Abstract)
# =============================================================================

class TimeLockOracle(ABC):
    """Client-side face of the time-lock oracle network."""

    @abstractmethod
    def encode_condition(self, target_block: int) -> bytes:
        """Encode the unlock condition for a block height."""
        pass

    @abstractmethod
    def encrypt(self, plaintext: bytes, target_block: int) -> LockedCiphertext:
        """Seal plaintext until target_block."""
        pass

    @abstractmethod
    def estimate_request_price(self, callback_gas_limit: int) -> int:
        """Native-token price (wei) the oracle charges for the callback."""
        pass


# =============================================================================
# TimeLockRequestBuilder
# =============================================================================

class TimeLockRequestBuilder:
    """Validates inputs and delegates sealing to the oracle."""

    def __init__(self, oracle: TimeLockOracle):
        self._oracle = oracle

    def build(self, target_block: int, payload: Union[RevealPayload, bytes]) -> TimeLockRequest:
        """
        Build a time-lock request.

        Args:
            target_block: Unlock height
            payload: RevealPayload, or its serialized bytes

        Raises:
            TargetBlockOverflow: target_block outside uint40
            PayloadError: bytes given that are not a reveal payload
        """
        validate_target_block(target_block)

        if isinstance(payload, RevealPayload):
            plaintext = payload.to_bytes()
        else:
            plaintext = bytes(payload)
            # must already be a serialized payload; passed through unchanged
            RevealPayload.from_json(plaintext)

        condition = self._oracle.encode_condition(target_block)
        ciphertext = self._oracle.encrypt(plaintext, target_block)
        logger.debug(
            "Time-lock request for block %d: condition %d bytes, payload %d bytes",
            target_block, len(condition), len(plaintext),
        )
        return TimeLockRequest(
            target_block=target_block,
            condition=condition,
            ciphertext=ciphertext,
            plaintext=plaintext,
        )


# =============================================================================
# Mock Oracle (for testing without the oracle network)
# =============================================================================

class MockTimeLockOracle(TimeLockOracle):
    """
    In-memory oracle.

    encrypt() keeps the plaintext behind a random handle carried in
    `w`; decrypt_at() plays the oracle's role and opens it only once
    the given height has reached the target.
    """

    def __init__(self, price_per_gas: int = 1_000_000_000):
        self._price_per_gas = price_per_gas
        self._sealed: Dict[bytes, Tuple[int, bytes]] = {}
        self.encrypt_calls: List[Tuple[bytes, int]] = []

    def encode_condition(self, target_block: int) -> bytes:
        return encode_block_condition(target_block)

    def encrypt(self, plaintext: bytes, target_block: int) -> LockedCiphertext:
        self.encrypt_calls.append((plaintext, target_block))
        handle = secrets.token_bytes(32)
        self._sealed[handle] = (target_block, plaintext)
        return LockedCiphertext(
            u=((1, 2), (3, 4)),
            v=target_block.to_bytes(8, "big"),
            w=handle,
        )

    def estimate_request_price(self, callback_gas_limit: int) -> int:
        return callback_gas_limit * self._price_per_gas

    def decrypt_at(self, ciphertext: LockedCiphertext, current_block: int) -> bytes:
        """
        Open a ciphertext as the oracle would.

        Raises:
            ConditionNotMet: current_block is before the target
            TimeLockError: Unknown ciphertext
        """
        try:
            target_block, plaintext = self._sealed[ciphertext.w]
        except KeyError:
            raise TimeLockError("Unknown ciphertext") from None
        if current_block < target_block:
            raise ConditionNotMet(target_block, current_block)
        return plaintext
