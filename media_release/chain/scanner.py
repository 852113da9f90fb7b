# media_release/chain/scanner.py
"""
Media Release Chain: Event Scanner

Locates one indexed event inside a bounded block window without ever
scanning history wholesale. Providers cap eth_getLogs ranges (10 blocks
on free Alchemy tiers), so the window is fetched in sequential chunks.

Algorithm (find_reveal):
    1. Window: with a target height,
           from = max(0, target - prefetch)
           to   = min(current, target + search_forward)
       without one, the recent window [current - default_span, current].
    2. current < target - prefetch  -> NOT_YET (no getLogs issued)
    3. from > to                    -> NOT_FOUND
    4. Chunks of <= chunk_size blocks, each retried by CHUNK_FETCH;
       a chunk that still fails is skipped with a warning.
    5. Logs that do not decode are ignored.
    6. First valid match -> FOUND, otherwise NOT_FOUND.

The scan only reads remote state, so it is safe to repeat on every poll
tick and safe to abandon half way.

Usage:
    scanner = ChainEventScanner(provider, contract_address, chunk_size=10)
    result = scanner.find_reveal(request_id, target_block=release.unlock_at_block)
    if result.found:
        payload = result.event.payload
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from .errors import EventParseFailed, ProviderUnavailable
from .events import (
    CREATED_TOPIC,
    REVEALED_TOPIC,
    CreatedEvent,
    ReleaseEvent,
    RevealedEvent,
    address_topic,
    decode_log,
    request_id_topic,
)
from .provider import ChainProvider, LogFilter
from .retry import BLOCK_NUMBER, CHUNK_FETCH, RetryExhausted, RetryPolicy

if TYPE_CHECKING:
    from ..config import ReleaseConfig


logger = logging.getLogger("media-release.scanner")


# =============================================================================
# Constants
# =============================================================================

DEFAULT_CHUNK_SIZE = 3000
DEFAULT_PREFETCH_BLOCKS = 12
DEFAULT_SEARCH_FORWARD = 200
DEFAULT_SPAN = 500
DEFAULT_CREATION_HINT_SPAN = 10


# =============================================================================
# Types
# =============================================================================

class ScanStatus(Enum):
    """Outcome of a scan."""
    FOUND = "found"
    NOT_FOUND = "not_found"
    NOT_YET = "not_yet"


@dataclass(frozen=True)
class ScanWindow:
    """Inclusive block range [from_block, to_block]."""
    from_block: int
    to_block: int

    @property
    def is_empty(self) -> bool:
        return self.from_block > self.to_block

    def __len__(self) -> int:
        return 0 if self.is_empty else self.to_block - self.from_block + 1

    def chunks(self, chunk_size: int) -> List[Tuple[int, int]]:
        """Split into consecutive inclusive ranges of at most chunk_size blocks."""
        return chunk_ranges(self.from_block, self.to_block, chunk_size)


@dataclass
class ScanResult:
    """
    Scan outcome.

    Attributes:
        status: FOUND / NOT_FOUND / NOT_YET
        event: Matching event when FOUND
        window: Window that was scanned (None for NOT_YET)
        current_block: Chain height the window was derived from
        skipped_chunks: Chunks abandoned after retry exhaustion
    """
    status: ScanStatus
    event: Optional[ReleaseEvent] = None
    window: Optional[ScanWindow] = None
    current_block: Optional[int] = None
    skipped_chunks: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status is ScanStatus.FOUND

    @property
    def complete(self) -> bool:
        """True if every chunk of the window was actually fetched."""
        return not self.skipped_chunks


# =============================================================================
# Window Arithmetic
# =============================================================================

def chunk_ranges(from_block: int, to_block: int, chunk_size: int) -> List[Tuple[int, int]]:
    """
    Split [from_block, to_block] into inclusive chunks.

    A 37-block window with chunk_size=10 yields
    [0,9], [10,19], [20,29], [30,36] relative to from_block.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    ranges = []
    start = from_block
    while start <= to_block:
        end = min(start + chunk_size - 1, to_block)
        ranges.append((start, end))
        start = end + 1
    return ranges


def compute_window(
    current_block: int,
    target_block: Optional[int],
    prefetch_blocks: int = DEFAULT_PREFETCH_BLOCKS,
    search_forward: int = DEFAULT_SEARCH_FORWARD,
    default_span: int = DEFAULT_SPAN,
) -> ScanWindow:
    """Search window around a target height, or a recent window without one."""
    if target_block is None:
        return ScanWindow(max(0, current_block - default_span), current_block)
    return ScanWindow(
        max(0, target_block - prefetch_blocks),
        min(current_block, target_block + search_forward),
    )


def is_too_early(current_block: int, target_block: Optional[int], prefetch_blocks: int) -> bool:
    """The event cannot exist yet: chain is still before the prefetch margin."""
    return target_block is not None and current_block < target_block - prefetch_blocks


# =============================================================================
# ChainEventScanner
# =============================================================================

class ChainEventScanner:
    """
    Chunked, retrying scanner for MediaRelease events.

    Chunk fetches within one scan are strictly sequential so that a
    shared provider's rate ceiling is respected.
    """

    def __init__(
        self,
        provider: ChainProvider,
        contract_address: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        prefetch_blocks: int = DEFAULT_PREFETCH_BLOCKS,
        search_forward: int = DEFAULT_SEARCH_FORWARD,
        default_span: int = DEFAULT_SPAN,
        creation_hint_span: int = DEFAULT_CREATION_HINT_SPAN,
        chunk_retry: RetryPolicy = CHUNK_FETCH,
        block_retry: RetryPolicy = BLOCK_NUMBER,
    ):
        """
        Initialize scanner.

        Args:
            provider: Chain RPC provider
            contract_address: MediaRelease contract address
            chunk_size: Max blocks per eth_getLogs call
            prefetch_blocks: Blocks scanned before the target height
            search_forward: Blocks scanned after the target height
            default_span: Recent window when no target is known
            creation_hint_span: Blocks before the creation hint to scan for Created
            chunk_retry: Retry policy per chunk
            block_retry: Retry policy for eth_blockNumber
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self._provider = provider
        self.contract_address = contract_address
        self.chunk_size = chunk_size
        self.prefetch_blocks = prefetch_blocks
        self.search_forward = search_forward
        self.default_span = default_span
        self.creation_hint_span = creation_hint_span
        self._chunk_retry = chunk_retry
        self._block_retry = block_retry

    @classmethod
    def from_config(cls, provider: ChainProvider, config: "ReleaseConfig") -> ChainEventScanner:
        """Build a scanner from ReleaseConfig."""
        return cls(
            provider,
            config.contract_address,
            chunk_size=config.chunk_size,
            prefetch_blocks=config.prefetch_blocks,
            search_forward=config.search_forward,
            default_span=config.default_span,
            creation_hint_span=config.creation_hint_span,
            chunk_retry=RetryPolicy(attempts=config.fetch_attempts, delay=config.fetch_delay),
        )

    @property
    def provider(self) -> ChainProvider:
        return self._provider

    # =========================================================================
    # Chain Height
    # =========================================================================

    def current_block(self) -> int:
        """
        Latest block height.

        Raises:
            ProviderUnavailable: No endpoint answered within the retry budget
        """
        try:
            return self._block_retry.call(self._provider.get_block_number, label="eth_blockNumber")
        except RetryExhausted as e:
            raise ProviderUnavailable("Could not read block number", e.last_error) from e

    # =========================================================================
    # Chunked Fetch
    # =========================================================================

    def iter_chunks(self, log_filter: LogFilter, window: ScanWindow):
        """
        Yield (chunk, logs) per chunk in block order.

        logs is None for a chunk abandoned after retry exhaustion.
        """
        for start, end in window.chunks(self.chunk_size):
            try:
                logs = self._chunk_retry.call(
                    self._provider.get_logs, log_filter, start, end,
                    label=f"getLogs {start}-{end}",
                )
            except RetryExhausted as e:
                logger.warning("Skipping blocks %d-%d: %s", start, end, e.last_error)
                yield (start, end), None
                continue
            yield (start, end), logs

    def scan(
        self,
        log_filter: LogFilter,
        window: ScanWindow,
        match: Callable[[ReleaseEvent], bool],
        current_block: Optional[int] = None,
    ) -> ScanResult:
        """
        Scan a window and return the first decoded event accepted by match.

        Stops fetching as soon as a match is found.
        """
        if window.is_empty:
            return ScanResult(ScanStatus.NOT_FOUND, window=window, current_block=current_block)

        skipped: List[Tuple[int, int]] = []
        for chunk, logs in self.iter_chunks(log_filter, window):
            if logs is None:
                skipped.append(chunk)
                continue
            for raw in logs:
                try:
                    event = decode_log(raw)
                except EventParseFailed as e:
                    logger.debug("Ignoring log in %d-%d: %s", chunk[0], chunk[1], e)
                    continue
                if match(event):
                    return ScanResult(
                        ScanStatus.FOUND,
                        event=event,
                        window=window,
                        current_block=current_block,
                        skipped_chunks=skipped,
                    )

        return ScanResult(
            ScanStatus.NOT_FOUND,
            window=window,
            current_block=current_block,
            skipped_chunks=skipped,
        )

    def collect(self, log_filter: LogFilter, window: ScanWindow) -> Tuple[List[ReleaseEvent], List[Tuple[int, int]]]:
        """Decode every event in a window. Returns (events, skipped_chunks)."""
        events: List[ReleaseEvent] = []
        skipped: List[Tuple[int, int]] = []
        if window.is_empty:
            return events, skipped
        for chunk, logs in self.iter_chunks(log_filter, window):
            if logs is None:
                skipped.append(chunk)
                continue
            for raw in logs:
                try:
                    events.append(decode_log(raw))
                except EventParseFailed as e:
                    logger.debug("Ignoring log in %d-%d: %s", chunk[0], chunk[1], e)
        return events, skipped

    # =========================================================================
    # Reveal Lookup
    # =========================================================================

    def reveal_filter(self, request_id: int) -> LogFilter:
        """Revealed(requestId) filter."""
        return LogFilter(self.contract_address, (REVEALED_TOPIC, request_id_topic(request_id)))

    def find_reveal(
        self,
        request_id: int,
        target_block: Optional[int] = None,
        current_block: Optional[int] = None,
    ) -> ScanResult:
        """
        Look for the Revealed event of one request.

        Args:
            request_id: Release request ID
            target_block: unlockAtBlock hint (None = recent window)
            current_block: Known chain height (read from provider if None)

        Raises:
            ProviderUnavailable: Block height could not be read
        """
        if current_block is None:
            current_block = self.current_block()

        if is_too_early(current_block, target_block, self.prefetch_blocks):
            logger.debug(
                "Request %d: block %d is before %d - %d, not scanning",
                request_id, current_block, target_block, self.prefetch_blocks,
            )
            return ScanResult(ScanStatus.NOT_YET, current_block=current_block)

        window = compute_window(
            current_block, target_block,
            self.prefetch_blocks, self.search_forward, self.default_span,
        )
        logger.debug("Request %d: scanning %d-%d", request_id, window.from_block, window.to_block)

        def is_reveal(event: ReleaseEvent) -> bool:
            return (
                isinstance(event, RevealedEvent)
                and event.request_id == request_id
                and len(event.payload) > 0
            )

        result = self.scan(self.reveal_filter(request_id), window, is_reveal, current_block)
        if result.found:
            logger.info(
                "Request %d: Revealed event found in block %s",
                request_id, result.event.block_number,
            )
        return result

    # =========================================================================
    # Creation Lookup
    # =========================================================================

    def created_filter(self, creator: Optional[str] = None) -> LogFilter:
        """Created filter, optionally restricted to one creator."""
        creator_topic = address_topic(creator) if creator else None
        return LogFilter(self.contract_address, (CREATED_TOPIC, None, creator_topic))

    def find_created(
        self,
        hint_block: int,
        creator: Optional[str] = None,
        current_block: Optional[int] = None,
    ) -> List[CreatedEvent]:
        """
        Created events in [hint_block - creation_hint_span, hint_block].

        The hint is the last target height recorded by the creation path;
        blocks past the chain head are not requested.
        """
        if current_block is None:
            current_block = self.current_block()
        window = ScanWindow(
            max(0, hint_block - self.creation_hint_span),
            min(hint_block, current_block),
        )
        events, skipped = self.collect(self.created_filter(creator), window)
        if skipped:
            logger.warning("Created scan skipped %d chunk(s)", len(skipped))
        return [e for e in events if isinstance(e, CreatedEvent)]

    def find_created_by_request(
        self,
        request_id: int,
        from_block: int,
        to_block: int,
    ) -> Optional[CreatedEvent]:
        """Created event of one request within an explicit window."""
        log_filter = LogFilter(self.contract_address, (CREATED_TOPIC, request_id_topic(request_id)))

        def is_created(event: ReleaseEvent) -> bool:
            return isinstance(event, CreatedEvent) and event.request_id == request_id

        result = self.scan(log_filter, ScanWindow(max(0, from_block), to_block), is_created)
        return result.event if result.found else None
