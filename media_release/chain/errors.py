# media_release/chain/errors.py
"""
Media Release Chain: Exceptions

    ChainError
    ├── ProviderUnavailable   no usable RPC endpoint; fatal for one tick
    ├── LogFetchFailed        one chunk failed after retries; chunk skipped
    ├── EventParseFailed      one log does not match a known event; ignored
    └── ContractError         contract call or transaction failed
"""

from __future__ import annotations

from typing import Optional


class ChainError(Exception):
    """Base chain error."""
    pass


class ProviderUnavailable(ChainError):
    """No RPC endpoint answered."""
    def __init__(self, message: str = "No provider available", cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class LogFetchFailed(ChainError):
    """eth_getLogs failed for a block range."""
    def __init__(self, from_block: int, to_block: int, cause: Optional[BaseException] = None):
        self.from_block = from_block
        self.to_block = to_block
        self.cause = cause
        super().__init__(f"Failed to get logs for blocks {from_block}-{to_block}: {cause}")


class EventParseFailed(ChainError):
    """Log entry could not be decoded against a known event."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Event parse failed: {reason}")


class ContractError(ChainError):
    """Contract read or transaction failed."""
    pass
