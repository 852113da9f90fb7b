# media_release/chain/__init__.py
"""
Media Release Chain Layer

Modules:
    events:   Created / Revealed event ABI (topics, decode)
    provider: RPC providers (web3, fallback, mock)
    retry:    bounded retry policy
    scanner:  chunked event scanner
    contract: MediaRelease contract client

Usage:
    from media_release.chain import ChainEventScanner, MockChainProvider

    chain = MockChainProvider(block_number=100)
    scanner = ChainEventScanner(chain, contract_address, chunk_size=10)
    result = scanner.find_reveal(request_id, target_block=150)
"""

from .errors import (
    ChainError,
    ProviderUnavailable,
    LogFetchFailed,
    EventParseFailed,
    ContractError,
)

from .events import (
    CREATED_SIGNATURE,
    REVEALED_SIGNATURE,
    CREATED_TOPIC,
    REVEALED_TOPIC,
    CreatedEvent,
    RevealedEvent,
    ReleaseEvent,
    event_topic,
    request_id_topic,
    address_topic,
    decode_log,
    decode_receipt_logs,
    encode_created_log,
    encode_revealed_log,
)

from .retry import (
    RetryPolicy,
    RetryExhausted,
    CHUNK_FETCH,
    CONTRACT_READ,
    BLOCK_NUMBER,
)

from .provider import (
    LogFilter,
    ChainProvider,
    Web3Provider,
    FallbackProvider,
    MockChainProvider,
    provider_from_urls,
)

from .scanner import (
    ChainEventScanner,
    ScanStatus,
    ScanWindow,
    ScanResult,
    chunk_ranges,
    compute_window,
    is_too_early,
)

from .contract import (
    ReleaseContract,
    Web3ReleaseContract,
    MockReleaseContract,
    ReleaseMeta,
    CreationReceipt,
    DEFAULT_CONTRACT_ADDRESS,
    DEFAULT_CALLBACK_GAS_LIMIT,
)

__all__ = [
    # Errors
    "ChainError",
    "ProviderUnavailable",
    "LogFetchFailed",
    "EventParseFailed",
    "ContractError",
    # Events
    "CREATED_SIGNATURE",
    "REVEALED_SIGNATURE",
    "CREATED_TOPIC",
    "REVEALED_TOPIC",
    "CreatedEvent",
    "RevealedEvent",
    "ReleaseEvent",
    "event_topic",
    "request_id_topic",
    "address_topic",
    "decode_log",
    "decode_receipt_logs",
    "encode_created_log",
    "encode_revealed_log",
    # Retry
    "RetryPolicy",
    "RetryExhausted",
    "CHUNK_FETCH",
    "CONTRACT_READ",
    "BLOCK_NUMBER",
    # Providers
    "LogFilter",
    "ChainProvider",
    "Web3Provider",
    "FallbackProvider",
    "MockChainProvider",
    "provider_from_urls",
    # Scanner
    "ChainEventScanner",
    "ScanStatus",
    "ScanWindow",
    "ScanResult",
    "chunk_ranges",
    "compute_window",
    "is_too_early",
    # Contract
    "ReleaseContract",
    "Web3ReleaseContract",
    "MockReleaseContract",
    "ReleaseMeta",
    "CreationReceipt",
    "DEFAULT_CONTRACT_ADDRESS",
    "DEFAULT_CALLBACK_GAS_LIMIT",
]
