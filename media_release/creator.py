# media_release/creator.py
"""
Media Release: Creation Path

Creates a time-locked release for an already uploaded encrypted blob:

    1. target = current block + blocks_ahead (must fit uint40)
    2. reveal payload {k, c, n?, t?, s?} sealed by the oracle until target
    3. fileCidHash = keccak256(utf8(locator))
    4. createReleaseWithDirectFunding, paying the oracle's quote + buffer
    5. requestId read from the Created log of the receipt
    6. optimistic LOCAL record + local cache entry + creation hint

Usage:
    creator = ReleaseCreator(chain, contract, oracle, store, cache)
    result = creator.create(MediaReleaseRequest(
        file_cid=locator,
        decryption_key=encrypted.key.hex(),
        blocks_ahead=150,
        filename="clip.mp4",
    ), on_status=print)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .chain.contract import DEFAULT_CALLBACK_GAS_LIMIT, ReleaseContract
from .chain.errors import ChainError
from .chain.provider import ChainProvider
from .chain.retry import BLOCK_NUMBER, RetryExhausted, RetryPolicy
from .registry.cache import LocalReleaseCache
from .registry.release import Release
from .registry.state import ReleaseStateStore
from .reveal.verifier import content_hash
from .timelock.request import TimeLockOracle, TimeLockRequestBuilder, validate_target_block
from .wire.payload import build_reveal_payload


logger = logging.getLogger("media-release.creator")

StatusCallback = Callable[[str], None]


# =============================================================================
# Constants
# =============================================================================

# Extra percentage paid on top of the oracle's quoted callback price
PRICE_BUFFER_PERCENT = 100


# =============================================================================
# Exceptions
# =============================================================================

class CreationError(Exception):
    """Release could not be created."""
    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Release creation failed while {stage}: {cause}")


# =============================================================================
# Types
# =============================================================================

@dataclass
class MediaReleaseRequest:
    """
    Creation input.

    Attributes:
        file_cid: Locator of the uploaded encrypted blob
        decryption_key: Hex content key
        blocks_ahead: Blocks from now until unlock
        filename: Original filename
        filetype: MIME type
        filesize: Plaintext size in bytes
    """
    file_cid: str
    decryption_key: str
    blocks_ahead: int
    filename: Optional[str] = None
    filetype: Optional[str] = None
    filesize: Optional[int] = None


@dataclass(frozen=True)
class MediaReleaseResult:
    """Creation output."""
    request_id: int
    target_block: int
    created_at_block: int
    tx_hash: str
    value_paid: int


def with_price_buffer(price: int, buffer_percent: int = PRICE_BUFFER_PERCENT) -> int:
    """price + price * buffer_percent / 100 (integer wei)."""
    return price + (price * buffer_percent) // 100


# =============================================================================
# ReleaseCreator
# =============================================================================

class ReleaseCreator:
    """Drives one release from request to optimistic local record."""

    def __init__(
        self,
        provider: ChainProvider,
        contract: ReleaseContract,
        oracle: TimeLockOracle,
        store: ReleaseStateStore,
        cache: Optional[LocalReleaseCache] = None,
        callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT,
        price_buffer_percent: int = PRICE_BUFFER_PERCENT,
        block_retry: RetryPolicy = BLOCK_NUMBER,
        clock: Callable[[], float] = time.time,
    ):
        self._provider = provider
        self._contract = contract
        self._oracle = oracle
        self._builder = TimeLockRequestBuilder(oracle)
        self._store = store
        self._cache = cache
        self.callback_gas_limit = callback_gas_limit
        self.price_buffer_percent = price_buffer_percent
        self._block_retry = block_retry
        self._clock = clock

    def create(
        self,
        request: MediaReleaseRequest,
        on_status: Optional[StatusCallback] = None,
    ) -> MediaReleaseResult:
        """
        Create a release.

        Raises:
            TargetBlockOverflow: Target height outside uint40 (before any transaction)
            PayloadError: Key or locator unusable
            CreationError: Chain, oracle or contract failure
        """
        status = on_status or (lambda message: None)

        if request.blocks_ahead < 1:
            raise ValueError(f"blocks_ahead must be >= 1, got {request.blocks_ahead}")

        status("Initializing...")
        try:
            current_block = self._block_retry.call(self._provider.get_block_number, label="eth_blockNumber")
        except RetryExhausted as e:
            raise CreationError("reading block number", e.last_error) from e

        target_block = validate_target_block(current_block + request.blocks_ahead)

        status("Encrypting reveal payload...")
        payload = build_reveal_payload(
            request.decryption_key,
            request.file_cid,
            filename=request.filename,
            mime_type=request.filetype,
            size=request.filesize,
        )
        lock_request = self._builder.build(target_block, payload)

        file_cid_hash = content_hash(request.file_cid)

        status("Calculating request price...")
        try:
            price = self._oracle.estimate_request_price(self.callback_gas_limit)
        except Exception as e:
            raise CreationError("calculating request price", e) from e
        value = with_price_buffer(price, self.price_buffer_percent)
        logger.info("Request callback price: %d wei (quoted %d)", value, price)

        status("Creating media release...")
        created_at = self._clock()
        try:
            receipt = self._contract.create_release(
                self.callback_gas_limit,
                target_block,
                file_cid_hash,
                lock_request.condition,
                lock_request.ciphertext,
                value,
            )
        except ChainError as e:
            status(f"Error: {e}")
            raise CreationError("submitting transaction", e) from e

        release = Release.local(
            request_id=receipt.request_id,
            unlock_at_block=target_block,
            created_at_block=current_block,
            creation_wall_clock=created_at,
            tx_hash=receipt.tx_hash,
            creator=self._contract.account_address,
            file_cid_hash=file_cid_hash,
        )
        self._store.upsert_local(release)
        self._store.upsert_confirmed(Release.from_created_event(receipt.created_event))

        if self._cache is not None:
            self._cache.put_release(release)
            self._cache.set_creation_hint(target_block)

        status("Media release created successfully!")
        logger.info(
            "Release %d created: unlock at block %d (tx %s)",
            receipt.request_id, target_block, receipt.tx_hash,
        )
        return MediaReleaseResult(
            request_id=receipt.request_id,
            target_block=target_block,
            created_at_block=current_block,
            tx_hash=receipt.tx_hash,
            value_paid=value,
        )
