# media_release/registry/release.py
"""
Media Release Registry: Release Record

One Release is the merge of up to three partial views of the same
request ID:

    LOCAL      written by this client at creation time
    CONFIRMED  read back from a Created event or metaOf
    REVEALED   reveal event observed and verified

Field ownership:
    creator, file_cid_hash, unlock_at_block   write-once
    is_revealed                               false -> true only
    revealed_payload                          set at most once
    created_at_block, creation_wall_clock,
    tx_hash                                   provenance, estimation only
    current_block_observed                    refreshed by the poller
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional

from ..chain.events import CreatedEvent


# =============================================================================
# Constants
# =============================================================================

BADGE_RELEASED = "Released"
BADGE_READY = "Ready to Release"
BADGE_LOCKED = "Locked"


# =============================================================================
# Types
# =============================================================================

class ProvenanceState(IntEnum):
    """How far a record has advanced. Merges take the maximum."""
    LOCAL = 0
    CONFIRMED = 1
    REVEALED = 2


@dataclass
class Release:
    """
    Release record.

    Attributes:
        request_id: Oracle request ID (primary key)
        creator: Creator address
        file_cid_hash: keccak256 of the content locator (32 bytes)
        unlock_at_block: Reveal permitted at or after this height
        is_revealed: Reveal observed
        revealed_payload: Verified reveal payload bytes
        created_at_block: Chain height when the creation tx was sent
        creation_wall_clock: Unix seconds when the creation tx was sent
        tx_hash: Creation transaction hash
        current_block_observed: Latest chain height seen by the poller
        confirmed_at_block: Block of the Created event
        state: Provenance state
    """
    request_id: int
    creator: Optional[str] = None
    file_cid_hash: Optional[bytes] = None
    unlock_at_block: Optional[int] = None
    is_revealed: bool = False
    revealed_payload: Optional[bytes] = None
    created_at_block: Optional[int] = None
    creation_wall_clock: Optional[float] = None
    tx_hash: Optional[str] = None
    current_block_observed: Optional[int] = None
    confirmed_at_block: Optional[int] = None
    state: ProvenanceState = ProvenanceState.LOCAL

    def __post_init__(self):
        if isinstance(self.request_id, bool) or not isinstance(self.request_id, int):
            raise TypeError(f"request_id must be int, got {type(self.request_id).__name__}")
        if self.request_id < 0:
            raise ValueError(f"request_id must be non-negative, got {self.request_id}")
        if self.file_cid_hash is not None and len(self.file_cid_hash) != 32:
            raise ValueError(f"file_cid_hash must be 32 bytes, got {len(self.file_cid_hash)}")

    @classmethod
    def local(
        cls,
        request_id: int,
        unlock_at_block: int,
        created_at_block: Optional[int] = None,
        creation_wall_clock: Optional[float] = None,
        tx_hash: Optional[str] = None,
        creator: Optional[str] = None,
        file_cid_hash: Optional[bytes] = None,
    ) -> Release:
        """Optimistic record written right after submission."""
        return cls(
            request_id=request_id,
            creator=creator,
            file_cid_hash=file_cid_hash,
            unlock_at_block=unlock_at_block,
            created_at_block=created_at_block,
            creation_wall_clock=creation_wall_clock,
            tx_hash=tx_hash,
            state=ProvenanceState.LOCAL,
        )

    @classmethod
    def from_created_event(cls, event: CreatedEvent) -> Release:
        """Confirmed record from a Created log."""
        return cls(
            request_id=event.request_id,
            creator=event.creator,
            file_cid_hash=event.file_cid_hash,
            unlock_at_block=event.unlock_at_block,
            confirmed_at_block=event.block_number,
            state=ProvenanceState.CONFIRMED,
        )

    # =========================================================================
    # Derived State
    # =========================================================================

    @property
    def block_delta(self) -> Optional[int]:
        """Blocks between creation and unlock, if both are known."""
        if self.unlock_at_block is None or self.created_at_block is None:
            return None
        return self.unlock_at_block - self.created_at_block

    @property
    def remaining_blocks(self) -> Optional[int]:
        if self.unlock_at_block is None or self.current_block_observed is None:
            return None
        return max(0, self.unlock_at_block - self.current_block_observed)

    @property
    def is_unlocked(self) -> bool:
        """Chain height has reached the unlock block."""
        return self.remaining_blocks == 0

    @property
    def badge(self) -> str:
        if self.is_revealed:
            return BADGE_RELEASED
        if self.is_unlocked:
            return BADGE_READY
        return BADGE_LOCKED

    def copy(self) -> Release:
        return replace(self)
