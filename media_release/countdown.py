# media_release/countdown.py
"""
Media Release: Countdown Estimator

Estimates time to unlock from already-known state. No I/O, no timers:
the scheduler calls estimate() on every tick.

Strategies (first applicable wins):
    WALL_CLOCK    created_at + (unlock_at_block - created_at_block) * avg_block_seconds
                  does not drift with the poll interval
    BLOCK_COUNT   max(0, unlock_at_block - current_block_observed) * avg_block_seconds
    UNKNOWN       neither is computable

Usage:
    estimator = CountdownEstimator(avg_block_seconds=2.0)
    estimate = estimator.estimate(release, now=time.time())
    print(estimate.label)        # "00:04:10", "Unlocked!" or "Unknown"
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .registry.release import Release


# =============================================================================
# Constants
# =============================================================================

UNLOCKED = "Unlocked!"
UNKNOWN = "Unknown"

DEFAULT_AVG_BLOCK_SECONDS = 2.0


class Strategy(Enum):
    WALL_CLOCK = "wall_clock"
    BLOCK_COUNT = "block_count"
    UNKNOWN = "unknown"


# =============================================================================
# Pure Functions
# =============================================================================

def wall_clock_unlock_time(
    creation_wall_clock: float,
    block_delta: int,
    avg_block_seconds: float = DEFAULT_AVG_BLOCK_SECONDS,
) -> float:
    """Estimated unix time of the unlock block."""
    return creation_wall_clock + block_delta * avg_block_seconds


def block_count_remaining(
    unlock_at_block: int,
    current_block: int,
    avg_block_seconds: float = DEFAULT_AVG_BLOCK_SECONDS,
) -> float:
    """Seconds left by counting remaining blocks."""
    return max(0, unlock_at_block - current_block) * avg_block_seconds


def format_remaining(seconds: Optional[float]) -> str:
    """HH:MM:SS, "Unlocked!" at zero, "Unknown" without data."""
    if seconds is None:
        return UNKNOWN
    total = int(seconds)
    if total <= 0:
        return UNLOCKED
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


# =============================================================================
# Estimate
# =============================================================================

@dataclass(frozen=True)
class CountdownEstimate:
    """
    Countdown for one release.

    Attributes:
        remaining_seconds: Seconds until unlock (None = unknown)
        strategy: Strategy that produced the estimate
        unlock_at: Estimated unix time of unlock (None if not derivable)
    """
    remaining_seconds: Optional[float]
    strategy: Strategy
    unlock_at: Optional[float] = None

    @property
    def is_unlocked(self) -> bool:
        return self.remaining_seconds is not None and int(self.remaining_seconds) <= 0

    @property
    def label(self) -> str:
        return format_remaining(self.remaining_seconds)


class CountdownEstimator:
    """Picks the best available strategy per release."""

    def __init__(self, avg_block_seconds: float = DEFAULT_AVG_BLOCK_SECONDS):
        if avg_block_seconds <= 0:
            raise ValueError(f"avg_block_seconds must be positive, got {avg_block_seconds}")
        self.avg_block_seconds = avg_block_seconds

    def estimate(self, release: Release, now: Optional[float] = None) -> CountdownEstimate:
        now = time.time() if now is None else now

        if release.creation_wall_clock is not None and release.block_delta is not None:
            unlock_at = wall_clock_unlock_time(
                release.creation_wall_clock, release.block_delta, self.avg_block_seconds,
            )
            return CountdownEstimate(max(0.0, unlock_at - now), Strategy.WALL_CLOCK, unlock_at)

        if release.unlock_at_block is not None and release.current_block_observed is not None:
            remaining = block_count_remaining(
                release.unlock_at_block, release.current_block_observed, self.avg_block_seconds,
            )
            return CountdownEstimate(remaining, Strategy.BLOCK_COUNT, now + remaining)

        return CountdownEstimate(None, Strategy.UNKNOWN)
