# media_release/config.py
"""
Media Release: Configuration

Environment-style settings, optionally loaded from a .env file.

    MEDIA_RELEASE_RPC_URL            primary RPC (default https://sepolia.base.org)
    MEDIA_RELEASE_FALLBACK_RPC_URLS  comma-separated extra RPC URLs
    ALCHEMY_KEY                      use Alchemy Base Sepolia as primary RPC
    MEDIA_RELEASE_CONTRACT           MediaRelease contract address
    PRIVATE_KEY                      sender key for the creation path
    GETLOGS_CHUNK                    blocks per eth_getLogs (10 with Alchemy, else 3000)
    PREFETCH_BEFORE                  blocks scanned before the target (12)
    REVEAL_SEARCH_FORWARD            blocks scanned after the target (200)
    DEFAULT_SPAN                     recent window without a target (500)
    CREATION_HINT_SPAN               blocks before the creation hint (10)
    AVG_BLOCK_SECONDS                seconds per block (2.0)
    POLL_INTERVAL                    watcher tick in seconds (60)
    FETCH_ATTEMPTS / FETCH_DELAY     chunk retry budget (2 / 0.5)
    RPC_TIMEOUT                      per-request timeout in seconds (30)
    MEDIA_RELEASE_GATEWAY            content gateway base URL
    MEDIA_RELEASE_CACHE              local cache file

Usage:
    config = ReleaseConfig.from_env()          # reads .env if present
    provider = config.build_provider()
    scanner = ChainEventScanner.from_config(provider, config)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping, Optional, TypeVar, Union

from dotenv import load_dotenv

from .chain.contract import DEFAULT_CONTRACT_ADDRESS
from .chain.provider import ChainProvider, provider_from_urls


T = TypeVar("T")


# =============================================================================
# Constants
# =============================================================================

DEFAULT_RPC_URL = "https://sepolia.base.org"
ALCHEMY_URL_TEMPLATE = "https://base-sepolia.g.alchemy.com/v2/{key}"
DEFAULT_GATEWAY_URL = "https://gateway.lighthouse.storage/ipfs/"
DEFAULT_CACHE_PATH = "~/.media_release/cache.json"

# Free Alchemy tiers cap eth_getLogs at 10 blocks
ALCHEMY_CHUNK_SIZE = 10
PUBLIC_CHUNK_SIZE = 3000


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Invalid configuration value."""
    def __init__(self, name: str, value: str, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"Invalid {name}={value!r}: {reason}")


# =============================================================================
# ReleaseConfig
# =============================================================================

@dataclass
class ReleaseConfig:
    """Runtime settings."""
    rpc_url: str = DEFAULT_RPC_URL
    fallback_rpc_urls: List[str] = field(default_factory=list)
    alchemy_key: Optional[str] = field(default=None, repr=False)
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    private_key: Optional[str] = field(default=None, repr=False)
    chunk_size: int = PUBLIC_CHUNK_SIZE
    prefetch_blocks: int = 12
    search_forward: int = 200
    default_span: int = 500
    creation_hint_span: int = 10
    avg_block_seconds: float = 2.0
    poll_interval: float = 60.0
    fetch_attempts: int = 2
    fetch_delay: float = 0.5
    rpc_timeout: float = 30.0
    gateway_url: str = DEFAULT_GATEWAY_URL
    cache_path: Optional[str] = DEFAULT_CACHE_PATH

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Union[str, Path]] = None,
    ) -> ReleaseConfig:
        """
        Build settings from the environment.

        Args:
            env: Mapping to read instead of os.environ (no .env loading)
            dotenv_path: .env file to load first (default: search upwards)

        Raises:
            ConfigError: Unparseable or out-of-range value
        """
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ

        def get(name: str) -> Optional[str]:
            value = env.get(name)
            return value.strip() if value is not None and value.strip() else None

        alchemy_key = get("ALCHEMY_KEY")
        default_chunk = ALCHEMY_CHUNK_SIZE if alchemy_key else PUBLIC_CHUNK_SIZE
        fallbacks = get("MEDIA_RELEASE_FALLBACK_RPC_URLS")

        config = cls(
            rpc_url=get("MEDIA_RELEASE_RPC_URL") or DEFAULT_RPC_URL,
            fallback_rpc_urls=[u.strip() for u in fallbacks.split(",") if u.strip()] if fallbacks else [],
            alchemy_key=alchemy_key,
            contract_address=get("MEDIA_RELEASE_CONTRACT") or DEFAULT_CONTRACT_ADDRESS,
            private_key=get("PRIVATE_KEY"),
            chunk_size=_parse("GETLOGS_CHUNK", get("GETLOGS_CHUNK"), int, default_chunk, minimum=1),
            prefetch_blocks=_parse("PREFETCH_BEFORE", get("PREFETCH_BEFORE"), int, 12, minimum=0),
            search_forward=_parse("REVEAL_SEARCH_FORWARD", get("REVEAL_SEARCH_FORWARD"), int, 200, minimum=0),
            default_span=_parse("DEFAULT_SPAN", get("DEFAULT_SPAN"), int, 500, minimum=0),
            creation_hint_span=_parse("CREATION_HINT_SPAN", get("CREATION_HINT_SPAN"), int, 10, minimum=0),
            avg_block_seconds=_parse("AVG_BLOCK_SECONDS", get("AVG_BLOCK_SECONDS"), float, 2.0, minimum=0.001),
            poll_interval=_parse("POLL_INTERVAL", get("POLL_INTERVAL"), float, 60.0, minimum=0.0),
            fetch_attempts=_parse("FETCH_ATTEMPTS", get("FETCH_ATTEMPTS"), int, 2, minimum=1),
            fetch_delay=_parse("FETCH_DELAY", get("FETCH_DELAY"), float, 0.5, minimum=0.0),
            rpc_timeout=_parse("RPC_TIMEOUT", get("RPC_TIMEOUT"), float, 30.0, minimum=0.001),
            gateway_url=get("MEDIA_RELEASE_GATEWAY") or DEFAULT_GATEWAY_URL,
            cache_path=get("MEDIA_RELEASE_CACHE") or DEFAULT_CACHE_PATH,
        )
        return config

    @property
    def rpc_urls(self) -> List[str]:
        """RPC URLs in preference order (Alchemy first when keyed)."""
        urls: List[str] = []
        if self.alchemy_key:
            urls.append(ALCHEMY_URL_TEMPLATE.format(key=self.alchemy_key))
        urls.append(self.rpc_url)
        urls.extend(self.fallback_rpc_urls)
        seen = set()
        return [u for u in urls if not (u in seen or seen.add(u))]

    def build_provider(self) -> ChainProvider:
        """Web3 provider (with fallbacks) for the configured endpoints."""
        return provider_from_urls(self.rpc_urls, timeout=self.rpc_timeout)


def _parse(
    name: str,
    raw: Optional[str],
    kind: Callable[[str], T],
    default: T,
    minimum: Optional[float] = None,
) -> T:
    if raw is None:
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(name, raw, f"expected {kind.__name__}") from None
    if minimum is not None and value < minimum:
        raise ConfigError(name, raw, f"must be >= {minimum}")
    return value
