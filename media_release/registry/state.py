# media_release/registry/state.py
"""
Media Release Registry: State Store

Authoritative table of releases keyed by request ID. Every writer goes
through one field-wise merge, so local, confirmed and revealed views of
a request converge to the same record whatever order they arrive in.

Merge rules (per field):
    write-once fields       first non-null value wins, except that a chain
                            (confirmed) value replaces one only a local
                            view has supplied; any other different later
                            value is logged and ignored
    is_revealed             sticky True; stale False views are ignored
    revealed_payload        set once; a different payload is ignored
    provenance fields       only from local views, first non-null wins
    confirmed_at_block      only from confirmed views, lowest wins
    current_block_observed  highest wins
    state                   highest wins

Rejected updates never raise: local state must not regress because of a
stale or reordered update.

Usage:
    store = ReleaseStateStore()
    store.upsert_local(Release.local(7, unlock_at_block=1200, created_at_block=1100))
    store.upsert_confirmed(Release.from_created_event(event))
    store.upsert_revealed(7, payload)

    for release in store.list():     # newest request first
        print(release.request_id, release.badge)
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Set

from .release import ProvenanceState, Release

if TYPE_CHECKING:
    from .cache import LocalReleaseCache


logger = logging.getLogger("media-release.registry")


# =============================================================================
# Exceptions
# =============================================================================

class RegistryError(Exception):
    """Base registry error."""
    pass


class CacheCorrupted(RegistryError):
    """Local cache file could not be parsed."""
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cache {path} is unreadable: {reason}")


# =============================================================================
# Field Groups
# =============================================================================

WRITE_ONCE_FIELDS = ("creator", "file_cid_hash", "unlock_at_block")
LOCAL_PROVENANCE_FIELDS = ("created_at_block", "creation_wall_clock", "tx_hash")


# =============================================================================
# ReleaseStateStore
# =============================================================================

class ReleaseStateStore:
    """
    Thread-safe merge table of Release records.

    One writer at a time per request ID; distinct request IDs never
    contend beyond the short table lookup.
    """

    def __init__(self):
        self._records: Dict[int, Release] = {}
        self._table_lock = threading.Lock()
        self._key_locks: Dict[int, threading.Lock] = {}
        self._chain_fields: Dict[int, Set[str]] = {}
        self._current_block: Optional[int] = None

    # =========================================================================
    # Locking
    # =========================================================================

    @contextmanager
    def _locked(self, request_id: int) -> Iterator[None]:
        with self._table_lock:
            lock = self._key_locks.get(request_id)
            if lock is None:
                lock = self._key_locks[request_id] = threading.Lock()
        with lock:
            yield

    # =========================================================================
    # Upserts
    # =========================================================================

    def upsert_local(self, record: Release) -> Release:
        """Merge a locally created (optimistic) view."""
        return self._upsert(record, ProvenanceState.LOCAL)

    def upsert_confirmed(self, record: Release) -> Release:
        """Merge a chain-confirmed view (Created event or metaOf)."""
        return self._upsert(record, ProvenanceState.CONFIRMED)

    def upsert_revealed(self, request_id: int, payload: bytes) -> Release:
        """Merge a verified reveal payload."""
        if not payload:
            raise ValueError("Reveal payload must not be empty")
        view = Release(
            request_id=request_id,
            is_revealed=True,
            revealed_payload=bytes(payload),
            state=ProvenanceState.REVEALED,
        )
        return self._upsert(view, ProvenanceState.REVEALED)

    def _upsert(self, view: Release, source: ProvenanceState) -> Release:
        with self._locked(view.request_id):
            with self._table_lock:
                existing = self._records.get(view.request_id)
            if existing is None:
                merged = Release(request_id=view.request_id)
            else:
                merged = existing.copy()

            chain_fields = self._chain_fields.setdefault(view.request_id, set())
            self._merge_into(merged, view, source, chain_fields)

            if self._current_block is not None:
                merged.current_block_observed = _max_opt(merged.current_block_observed, self._current_block)

            with self._table_lock:
                self._records[view.request_id] = merged

            if existing is None or merged.state > existing.state:
                logger.info("Release %d is now %s", merged.request_id, merged.state.name)
            return merged.copy()

    def _merge_into(
        self,
        merged: Release,
        view: Release,
        source: ProvenanceState,
        chain_fields: Set[str],
    ) -> None:
        rid = view.request_id
        from_chain = source is ProvenanceState.CONFIRMED

        for name in WRITE_ONCE_FIELDS:
            incoming = getattr(view, name)
            if incoming is None:
                continue
            current = getattr(merged, name)
            if current is None:
                setattr(merged, name, incoming)
            elif _same(current, incoming):
                pass
            elif from_chain and name not in chain_fields:
                logger.warning(
                    "Release %d: chain %s %r replaces local %r",
                    rid, name, incoming, current,
                )
                setattr(merged, name, incoming)
            else:
                logger.warning(
                    "Release %d: ignoring %s update %r (already %r)",
                    rid, name, incoming, current,
                )
            if from_chain:
                chain_fields.add(name)

        if source is ProvenanceState.LOCAL:
            for name in LOCAL_PROVENANCE_FIELDS:
                if getattr(merged, name) is None and getattr(view, name) is not None:
                    setattr(merged, name, getattr(view, name))

        if source is ProvenanceState.CONFIRMED:
            merged.confirmed_at_block = _min_opt(merged.confirmed_at_block, view.confirmed_at_block)

        if view.is_revealed:
            merged.is_revealed = True
        elif merged.is_revealed and source is not ProvenanceState.LOCAL:
            logger.info("Release %d: ignoring stale unrevealed view", rid)

        if view.revealed_payload is not None:
            if merged.revealed_payload is None:
                merged.revealed_payload = view.revealed_payload
            elif merged.revealed_payload != view.revealed_payload:
                logger.warning("Release %d: ignoring second, different reveal payload", rid)

        merged.current_block_observed = _max_opt(merged.current_block_observed, view.current_block_observed)

        state = max(merged.state, view.state, source)
        if state is ProvenanceState.REVEALED and merged.revealed_payload is None:
            state = ProvenanceState.CONFIRMED
        merged.state = ProvenanceState(state)

    # =========================================================================
    # Block Height
    # =========================================================================

    @property
    def current_block(self) -> Optional[int]:
        return self._current_block

    def update_current_block(self, height: int) -> int:
        """
        Record a chain height and push it to every record.

        Heights never move backwards; the stored maximum is returned.
        """
        with self._table_lock:
            self._current_block = _max_opt(self._current_block, height)
            height = self._current_block
            ids = list(self._records)
        for rid in ids:
            with self._locked(rid):
                with self._table_lock:
                    record = self._records[rid]
                    record.current_block_observed = _max_opt(record.current_block_observed, height)
        return height

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, request_id: int) -> Optional[Release]:
        """Copy of one record, or None."""
        with self._table_lock:
            record = self._records.get(request_id)
            return record.copy() if record is not None else None

    def list(self) -> List[Release]:
        """All records, newest request ID first."""
        with self._table_lock:
            records = [r.copy() for r in self._records.values()]
        return sorted(records, key=lambda r: r.request_id, reverse=True)

    def pending(self) -> List[Release]:
        """Records without a verified reveal payload, newest first."""
        return [r for r in self.list() if r.revealed_payload is None]

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._records)

    def __contains__(self, request_id: Any) -> bool:
        with self._table_lock:
            return request_id in self._records

    # =========================================================================
    # Seeding
    # =========================================================================

    def seed_from_cache(self, cache: "LocalReleaseCache") -> int:
        """Load every cached local record. Returns the number merged."""
        count = 0
        for record in cache.iter_releases():
            self.upsert_local(record)
            count += 1
        if count:
            logger.info("Seeded %d release(s) from local cache", count)
        return count


# =============================================================================
# Helpers
# =============================================================================

def _same(a: Any, b: Any) -> bool:
    if isinstance(a, str) and isinstance(b, str):
        return a.lower() == b.lower()
    if isinstance(a, (bytes, bytearray)) and isinstance(b, (bytes, bytearray)):
        return bytes(a) == bytes(b)
    return a == b


def _max_opt(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def _min_opt(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)
