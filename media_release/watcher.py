# media_release/watcher.py
"""
Media Release: Watcher

Single periodic driver. Each tick:

    1. refresh the chain height (ProviderUnavailable ends the tick)
    2. discover Created events around the local creation hint
    3. one reveal scan per unrevealed release, concurrently across
       releases (chunks within one scan stay sequential)
    4. recompute countdowns

Reveal candidates go through RevealVerifier before anything is merged;
a rejected candidate leaves the store untouched. Transient failures keep
the previous status of a release instead of clearing it.

Usage:
    watcher = ReleaseWatcher(scanner, store, contract=contract, cache=cache)
    report = await watcher.tick()

    stop = asyncio.Event()
    await watcher.run(stop)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .chain.contract import ReleaseContract
from .chain.errors import ChainError, ProviderUnavailable
from .chain.retry import CONTRACT_READ, RetryExhausted, RetryPolicy
from .chain.scanner import ChainEventScanner, ScanStatus
from .countdown import CountdownEstimate, CountdownEstimator
from .registry.cache import LocalReleaseCache
from .registry.release import Release
from .registry.state import ReleaseStateStore
from .reveal.verifier import (
    HashMismatch,
    HashUnavailable,
    MediaMetadata,
    PayloadUndecodable,
    RevealVerifier,
    VerifierError,
)


logger = logging.getLogger("media-release.watcher")


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class ReleaseStatus:
    """User-visible outcome; is_final means no further polling will change it."""
    message: str
    is_final: bool = False


@dataclass
class TickReport:
    """
    Result of one driver tick.

    Attributes:
        current_block: Height used for the tick (None if unavailable)
        scanned: Request IDs scanned this tick
        revealed: Request IDs that became revealed this tick
        rejected: Request IDs whose reveal candidate was rejected
        discovered: Request IDs found through Created events
        error: Tick-level failure (provider unavailable)
    """
    current_block: Optional[int] = None
    scanned: List[int] = field(default_factory=list)
    revealed: List[int] = field(default_factory=list)
    rejected: List[int] = field(default_factory=list)
    discovered: List[int] = field(default_factory=list)
    error: Optional[ReleaseStatus] = None


# =============================================================================
# ReleaseWatcher
# =============================================================================

class ReleaseWatcher:
    """Polls the chain for reveals and keeps the store current."""

    def __init__(
        self,
        scanner: ChainEventScanner,
        store: ReleaseStateStore,
        verifier: Optional[RevealVerifier] = None,
        contract: Optional[ReleaseContract] = None,
        cache: Optional[LocalReleaseCache] = None,
        estimator: Optional[CountdownEstimator] = None,
        creator_address: Optional[str] = None,
        poll_interval: float = 60.0,
        contract_retry: RetryPolicy = CONTRACT_READ,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize watcher.

        Args:
            scanner: Event scanner
            store: Release table
            verifier: Reveal verifier
            contract: Contract client for metaOf (check_release, hash lookup)
            cache: Local cache providing the creation hint
            estimator: Countdown estimator
            creator_address: Restrict Created discovery to this creator
            poll_interval: Seconds between ticks in run()
            contract_retry: Retry policy for contract reads
            clock: Wall clock for countdowns
        """
        self._scanner = scanner
        self._store = store
        self._verifier = verifier or RevealVerifier()
        self._contract = contract
        self._cache = cache
        self._estimator = estimator or CountdownEstimator()
        self.creator_address = creator_address or (contract.account_address if contract else None)
        self.poll_interval = poll_interval
        self._contract_retry = contract_retry
        self._clock = clock
        self.statuses: Dict[int, ReleaseStatus] = {}
        self.metadata: Dict[int, MediaMetadata] = {}
        self.rejections: Dict[int, VerifierError] = {}
        self.ticks = 0

    @classmethod
    def from_config(cls, scanner: ChainEventScanner, store: ReleaseStateStore, config, **kwargs) -> ReleaseWatcher:
        kwargs.setdefault("estimator", CountdownEstimator(config.avg_block_seconds))
        return cls(scanner, store, poll_interval=config.poll_interval, **kwargs)

    # =========================================================================
    # Steps
    # =========================================================================

    def refresh_block(self) -> int:
        """
        Read the chain height and push it into the store.

        Raises:
            ProviderUnavailable: No endpoint answered
        """
        height = self._scanner.current_block()
        return self._store.update_current_block(height)

    def discover_created(self, current_block: Optional[int] = None) -> List[int]:
        """Merge Created events near the cached creation hint. Returns their request IDs."""
        if self._cache is None:
            return []
        hint = self._cache.creation_hint()
        if hint is None:
            return []
        events = self._scanner.find_created(hint, self.creator_address, current_block)
        found = []
        for event in events:
            self._store.upsert_confirmed(Release.from_created_event(event))
            found.append(event.request_id)
        if found:
            logger.info("Discovered %d release(s) near block %d", len(found), hint)
        return found

    def scan_release(self, release: Release, current_block: Optional[int] = None) -> Optional[MediaMetadata]:
        """
        One reveal attempt for one release.

        Returns the verified metadata, or None if the reveal is not
        available (yet) or was rejected.

        Raises:
            ProviderUnavailable: Block height could not be read
        """
        rid = release.request_id
        if release.revealed_payload is not None:
            return self._metadata_for(release)
        self.rejections.pop(rid, None)

        result = self._scanner.find_reveal(rid, release.unlock_at_block, current_block)

        if result.status is ScanStatus.NOT_YET:
            self._set_status(rid, ReleaseStatus(f"Locked until block {release.unlock_at_block}"))
            return None

        if result.status is ScanStatus.NOT_FOUND:
            if result.complete:
                self._set_status(rid, ReleaseStatus("Waiting for reveal"))
            else:
                logger.warning(
                    "Request %d: %d chunk(s) skipped, reveal may be missed this tick",
                    rid, len(result.skipped_chunks),
                )
            return None

        payload = result.event.payload
        try:
            metadata = self._verify(release, payload)
        except HashMismatch as e:
            logger.warning("Request %d: rejecting reveal candidate: %s", rid, e)
            self.rejections[rid] = e
            self._set_status(rid, ReleaseStatus("Reveal rejected: content hash mismatch"))
            return None
        except HashUnavailable:
            self._set_status(rid, ReleaseStatus("Reveal found, waiting for creation record"))
            return None
        except PayloadUndecodable as e:
            logger.warning("Request %d: rejecting reveal candidate: %s", rid, e)
            self.rejections[rid] = e
            self._set_status(rid, ReleaseStatus("Reveal rejected: undecodable payload"))
            return None

        self._store.upsert_revealed(rid, payload)
        self.metadata[rid] = metadata
        if self._cache is not None and result.event.block_number is not None:
            self._cache.record_reveal_block(self._scanner.contract_address, result.event.block_number)
        self._set_status(rid, ReleaseStatus("Released", is_final=True))
        return metadata

    def check_release(self, request_id: int) -> ReleaseStatus:
        """
        Read metaOf for one release, merge it and, if the contract says it
        is revealed, fetch and verify the payload right away.
        """
        if self._contract is None:
            raise ValueError("check_release needs a contract client")
        try:
            meta = self._contract_retry.call(self._contract.meta_of, request_id, label=f"metaOf({request_id})")
        except RetryExhausted as e:
            logger.warning("Request %d: status check failed: %s", request_id, e.last_error)
            return self.statuses.get(request_id, ReleaseStatus(f"Status check failed: {e.last_error}"))

        release = self._store.upsert_confirmed(Release(
            request_id=request_id,
            creator=meta.creator,
            file_cid_hash=meta.file_cid_hash,
            unlock_at_block=meta.unlock_at_block,
        ))
        if meta.is_revealed and release.revealed_payload is None:
            try:
                self.scan_release(release)
            except ChainError as e:
                logger.warning("Request %d: reveal fetch failed: %s", request_id, e)
        return self.statuses.get(request_id, ReleaseStatus("Locked"))

    # =========================================================================
    # Driver
    # =========================================================================

    async def tick(self) -> TickReport:
        """Run one poll cycle."""
        self.ticks += 1
        report = TickReport()
        try:
            report.current_block = await asyncio.to_thread(self.refresh_block)
        except ProviderUnavailable as e:
            logger.warning("Tick %d: provider unavailable: %s", self.ticks, e)
            report.error = ReleaseStatus(f"Provider unavailable: {e}")
            return report

        try:
            report.discovered = await asyncio.to_thread(self.discover_created, report.current_block)
        except ChainError as e:
            logger.warning("Tick %d: creation discovery failed: %s", self.ticks, e)

        pending = self._store.pending()
        report.scanned = [r.request_id for r in pending]
        outcomes = await asyncio.gather(*(
            asyncio.to_thread(self._scan_guarded, release, report.current_block)
            for release in pending
        ))
        for release, outcome in zip(pending, outcomes):
            if outcome is not None:
                report.revealed.append(release.request_id)
            elif release.request_id in self.rejections:
                report.rejected.append(release.request_id)
        return report

    async def run(self, stop_event: Optional[asyncio.Event] = None, max_ticks: Optional[int] = None) -> None:
        """Tick every poll_interval until stop_event is set or max_ticks is reached."""
        count = 0
        while stop_event is None or not stop_event.is_set():
            await self.tick()
            count += 1
            if max_ticks is not None and count >= max_ticks:
                return
            if stop_event is None:
                await asyncio.sleep(self.poll_interval)
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    def countdowns(self, now: Optional[float] = None) -> Dict[int, CountdownEstimate]:
        """Countdown per release, computed from the current store."""
        now = self._clock() if now is None else now
        return {r.request_id: self._estimator.estimate(r, now) for r in self._store.list()}

    # =========================================================================
    # Internals
    # =========================================================================

    def _scan_guarded(self, release: Release, current_block: int) -> Optional[MediaMetadata]:
        try:
            return self.scan_release(release, current_block)
        except ChainError as e:
            logger.warning("Request %d: scan failed, keeping previous state: %s", release.request_id, e)
            return None

    def _verify(self, release: Release, payload: bytes) -> MediaMetadata:
        file_cid_hash = release.file_cid_hash
        if file_cid_hash is None and self._contract is not None:
            try:
                meta = self._contract_retry.call(
                    self._contract.meta_of, release.request_id, label=f"metaOf({release.request_id})",
                )
            except RetryExhausted as e:
                logger.warning("Request %d: metaOf failed: %s", release.request_id, e.last_error)
            else:
                file_cid_hash = self._store.upsert_confirmed(Release(
                    request_id=release.request_id,
                    creator=meta.creator,
                    file_cid_hash=meta.file_cid_hash,
                    unlock_at_block=meta.unlock_at_block,
                )).file_cid_hash
        return self._verifier.verify(payload, file_cid_hash)

    def _metadata_for(self, release: Release) -> Optional[MediaMetadata]:
        rid = release.request_id
        if rid not in self.metadata:
            try:
                self.metadata[rid] = self._verifier.verify(release.revealed_payload, release.file_cid_hash)
            except (HashMismatch, HashUnavailable, PayloadUndecodable) as e:
                logger.warning("Request %d: stored payload no longer verifies: %s", rid, e)
                return None
        return self.metadata[rid]

    def _set_status(self, request_id: int, status: ReleaseStatus) -> None:
        previous = self.statuses.get(request_id)
        if previous is not None and previous.is_final:
            return
        self.statuses[request_id] = status
