# media_release/chain/retry.py
"""
Media Release Chain: Retry Policy

One bounded retry policy shared by every network call site, with a
preset per operation class:

    CHUNK_FETCH      eth_getLogs for a single chunk
    CONTRACT_READ    view calls such as metaOf
    BLOCK_NUMBER     eth_blockNumber

No call blocks longer than attempts × delay (× backoff growth).

Usage:
    policy = RetryPolicy(attempts=3, delay=0.5)
    logs = policy.call(provider.get_logs, log_filter, start, end)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Tuple, Type, TypeVar


logger = logging.getLogger("media-release.retry")

T = TypeVar("T")


# =============================================================================
# Exceptions
# =============================================================================

class RetryExhausted(Exception):
    """All attempts failed."""
    def __init__(self, label: str, attempts: int, last_error: BaseException):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label or 'operation'} failed after {attempts} attempts: {last_error}")


# =============================================================================
# RetryPolicy
# =============================================================================

@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with fixed or exponential delay.

    Attributes:
        attempts: Total attempts (>= 1)
        delay: Seconds before the second attempt
        backoff: Multiplier applied to delay after each failure (1.0 = fixed)
        retry_on: Exception types that trigger another attempt
        sleep: Sleep function (replaced in tests)
    """
    attempts: int = 2
    delay: float = 0.5
    backoff: float = 1.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.delay < 0 or self.backoff < 1.0:
            raise ValueError("delay must be >= 0 and backoff >= 1.0")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return self.delay * (self.backoff ** (attempt - 1))

    @property
    def budget(self) -> float:
        """Worst-case total sleep time."""
        return sum(self.delay_for(i) for i in range(1, self.attempts))

    def with_sleep(self, sleep: Callable[[float], None]) -> RetryPolicy:
        """Copy of this policy using another sleep function."""
        return replace(self, sleep=sleep)

    def call(self, fn: Callable[..., T], *args: Any, label: str = "", **kwargs: Any) -> T:
        """
        Invoke fn until it succeeds or attempts run out.

        Raises:
            RetryExhausted: Every attempt raised a retryable error
        """
        last_error: BaseException = RuntimeError("no attempts made")
        for attempt in range(1, self.attempts + 1):
            try:
                return fn(*args, **kwargs)
            except self.retry_on as e:
                last_error = e
                if attempt < self.attempts:
                    wait = self.delay_for(attempt)
                    logger.debug(
                        "%s attempt %d/%d failed (%s), retrying in %.2fs",
                        label or "call", attempt, self.attempts, e, wait,
                    )
                    self.sleep(wait)
        raise RetryExhausted(label, self.attempts, last_error) from last_error


# =============================================================================
# Presets
# =============================================================================

CHUNK_FETCH = RetryPolicy(attempts=2, delay=0.5)
CONTRACT_READ = RetryPolicy(attempts=2, delay=0.5)
BLOCK_NUMBER = RetryPolicy(attempts=2, delay=0.5)
