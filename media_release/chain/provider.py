# media_release/chain/provider.py
"""
Media Release Chain: RPC Providers

The scanner only needs two read calls from a chain endpoint:

    get_block_number() -> int
    get_logs(log_filter, from_block, to_block) -> [raw log, ...]

Implementations:
    Web3Provider:      web3.py HTTPProvider against one endpoint
    FallbackProvider:  ordered list of providers, first healthy one wins
    MockChainProvider: in-memory chain for tests (no RPC required)

Usage:
    provider = FallbackProvider([
        Web3Provider("https://base-sepolia.g.alchemy.com/v2/<key>"),
        Web3Provider("https://sepolia.base.org"),
    ])
    height = provider.get_block_number()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from hexbytes import HexBytes
from web3 import Web3

from .errors import LogFetchFailed, ProviderUnavailable
from .events import topic_hex


logger = logging.getLogger("media-release.provider")


# =============================================================================
# LogFilter
# =============================================================================

@dataclass(frozen=True)
class LogFilter:
    """
    Address + topic filter for eth_getLogs.

    Attributes:
        address: Contract address
        topics: Positional topics; None is a wildcard
    """
    address: str
    topics: Tuple[Optional[bytes], ...] = ()

    def to_params(self, from_block: int, to_block: int) -> Dict[str, Any]:
        """Build the eth_getLogs filter params."""
        topics = list(self.topics)
        while topics and topics[-1] is None:
            topics.pop()
        return {
            "address": Web3.to_checksum_address(self.address),
            "topics": [topic_hex(t) for t in topics],
            "fromBlock": from_block,
            "toBlock": to_block,
        }

    def matches(self, log: Mapping[str, Any]) -> bool:
        """Check a raw log against address and topics."""
        address = log.get("address")
        if address is not None and str(address).lower() != self.address.lower():
            return False
        log_topics = [bytes(HexBytes(t)) for t in log.get("topics", [])]
        for i, want in enumerate(self.topics):
            if want is None:
                continue
            if i >= len(log_topics) or log_topics[i] != bytes(want):
                return False
        return True


# =============================================================================
# ChainProvider (Abstract)
# =============================================================================

class ChainProvider(ABC):
    """Read-only chain access used by the scanner."""

    @abstractmethod
    def get_block_number(self) -> int:
        """Latest block height."""
        pass

    @abstractmethod
    def get_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        """Logs matching the filter in [from_block, to_block]."""
        pass


# =============================================================================
# Web3Provider
# =============================================================================

class Web3Provider(ChainProvider):
    """ChainProvider backed by a web3.py HTTP endpoint."""

    def __init__(self, rpc_url: str, timeout: float = 30.0):
        """
        Initialize provider.

        Args:
            rpc_url: JSON-RPC endpoint URL
            timeout: Per-request timeout in seconds
        """
        self.rpc_url = rpc_url
        self._w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

    @property
    def w3(self) -> Web3:
        """Underlying Web3 instance (shared with contract clients)."""
        return self._w3

    def get_block_number(self) -> int:
        try:
            return int(self._w3.eth.block_number)
        except Exception as e:
            raise ProviderUnavailable(f"eth_blockNumber failed on {self.rpc_url}", e) from e

    def get_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        try:
            logs = self._w3.eth.get_logs(log_filter.to_params(from_block, to_block))
        except Exception as e:
            raise LogFetchFailed(from_block, to_block, e) from e
        return [dict(log) for log in logs]

    def __repr__(self) -> str:
        return f"Web3Provider({self.rpc_url!r})"


# =============================================================================
# FallbackProvider
# =============================================================================

class FallbackProvider(ChainProvider):
    """
    Try providers in order until one answers.

    The last provider that answered is tried first on the next call,
    so a dead primary does not cost a timeout on every request.
    """

    def __init__(self, providers: Sequence[ChainProvider]):
        if not providers:
            raise ProviderUnavailable("FallbackProvider needs at least one provider")
        self._providers = list(providers)
        self._preferred = 0

    @property
    def providers(self) -> List[ChainProvider]:
        return list(self._providers)

    def _ordered(self) -> List[Tuple[int, ChainProvider]]:
        indexed = list(enumerate(self._providers))
        return indexed[self._preferred:] + indexed[:self._preferred]

    def get_block_number(self) -> int:
        last_error: Optional[BaseException] = None
        for index, provider in self._ordered():
            try:
                height = provider.get_block_number()
            except Exception as e:
                logger.warning("Block number failed on %r: %s", provider, e)
                last_error = e
                continue
            self._preferred = index
            return height
        raise ProviderUnavailable("All providers failed eth_blockNumber", last_error)

    def get_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        last_error: Optional[BaseException] = None
        for index, provider in self._ordered():
            try:
                logs = provider.get_logs(log_filter, from_block, to_block)
            except Exception as e:
                logger.warning("getLogs %d-%d failed on %r: %s", from_block, to_block, provider, e)
                last_error = e
                continue
            self._preferred = index
            return logs
        raise LogFetchFailed(from_block, to_block, last_error)


# =============================================================================
# Mock Provider (for testing without RPC)
# =============================================================================

@dataclass
class LogCall:
    """Recorded get_logs call."""
    log_filter: LogFilter
    from_block: int
    to_block: int


class MockChainProvider(ChainProvider):
    """
    In-memory chain.

    Logs are appended with add_log(); get_logs() filters them by
    address, topics and block range. Failures can be injected per call
    or per block range.
    """

    def __init__(self, block_number: int = 0):
        self.block_number = block_number
        self.logs: List[Dict[str, Any]] = []
        self.log_calls: List[LogCall] = []
        self.block_number_calls = 0
        self._fail_block_number = 0
        self._fail_logs = 0
        self._failing_ranges: List[Tuple[int, int]] = []

    def advance(self, blocks: int = 1) -> int:
        """Mine empty blocks."""
        self.block_number += blocks
        return self.block_number

    def add_log(self, log: Dict[str, Any]) -> None:
        """Append a raw log entry."""
        self.logs.append(log)

    def fail_block_number(self, times: int = 1) -> None:
        """Make the next `times` get_block_number calls raise."""
        self._fail_block_number = times

    def fail_logs(self, times: int = 1) -> None:
        """Make the next `times` get_logs calls raise."""
        self._fail_logs = times

    def fail_range(self, from_block: int, to_block: int) -> None:
        """Make every get_logs call overlapping this range raise."""
        self._failing_ranges.append((from_block, to_block))

    def get_block_number(self) -> int:
        self.block_number_calls += 1
        if self._fail_block_number > 0:
            self._fail_block_number -= 1
            raise ProviderUnavailable("mock eth_blockNumber failure")
        return self.block_number

    def get_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        self.log_calls.append(LogCall(log_filter, from_block, to_block))
        if self._fail_logs > 0:
            self._fail_logs -= 1
            raise LogFetchFailed(from_block, to_block, RuntimeError("mock failure"))
        for lo, hi in self._failing_ranges:
            if from_block <= hi and lo <= to_block:
                raise LogFetchFailed(from_block, to_block, RuntimeError("mock range failure"))
        return [
            dict(log) for log in self.logs
            if from_block <= log.get("blockNumber", 0) <= to_block
            and log.get("blockNumber", 0) <= self.block_number
            and log_filter.matches(log)
        ]

    def __repr__(self) -> str:
        return f"MockChainProvider(block={self.block_number})"


# =============================================================================
# Factory
# =============================================================================

def provider_from_urls(urls: Sequence[str], timeout: float = 30.0) -> ChainProvider:
    """Single Web3Provider, or a FallbackProvider over several URLs."""
    providers = [Web3Provider(url, timeout=timeout) for url in urls if url]
    if not providers:
        raise ProviderUnavailable("No RPC URL configured")
    if len(providers) == 1:
        return providers[0]
    return FallbackProvider(providers)
