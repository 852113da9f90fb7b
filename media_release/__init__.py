# media_release/__init__.py
"""
Media Release: time-locked media publishing over an EVM chain

Content is encrypted locally (AES-256-GCM), uploaded elsewhere, and its
key + locator are sealed by a time-lock oracle until a target block.
The oracle's callback emits Revealed(requestId, payload) on-chain; a
watcher finds that event, checks the locator against the committed
fileCidHash and unlocks the content.

Packages:
    wire:      CiphertextFrame codec, RevealPayload JSON
    timelock:  TimeLockRequestBuilder, oracle interface
    chain:     events, providers, retry, scanner, contract client
    registry:  Release record, merge store, local cache
    reveal:    RevealVerifier

Modules:
    countdown: CountdownEstimator
    config:    ReleaseConfig.from_env
    gateway:   encrypt_file, GatewayClient
    creator:   ReleaseCreator
    watcher:   ReleaseWatcher

Usage:
    from media_release import ReleaseConfig, ChainEventScanner, ReleaseStateStore, ReleaseWatcher

    config = ReleaseConfig.from_env()
    scanner = ChainEventScanner.from_config(config.build_provider(), config)
    watcher = ReleaseWatcher.from_config(scanner, ReleaseStateStore(), config)
    await watcher.run()

Version: 0.3.0
"""

__version__ = "0.3.0"

from .wire import (
    CiphertextCodec,
    CiphertextFrame,
    RevealPayload,
    build_reveal_payload,
    generate_key,
    CodecError,
    CiphertextMalformed,
    UnsupportedVersion,
    DecryptionFailed,
    PayloadError,
)

from .timelock import (
    TimeLockRequestBuilder,
    TimeLockOracle,
    MockTimeLockOracle,
    TimeLockError,
    TargetBlockOverflow,
)

from .chain import (
    ChainEventScanner,
    ChainProvider,
    Web3Provider,
    FallbackProvider,
    MockChainProvider,
    Web3ReleaseContract,
    MockReleaseContract,
    RetryPolicy,
    ScanStatus,
    ChainError,
    ProviderUnavailable,
    LogFetchFailed,
    EventParseFailed,
)

from .registry import (
    Release,
    ReleaseStateStore,
    LocalReleaseCache,
    ProvenanceState,
    RegistryError,
)

from .reveal import (
    RevealVerifier,
    MediaMetadata,
    VerifierError,
    HashMismatch,
)

from .countdown import CountdownEstimator, CountdownEstimate
from .config import ReleaseConfig, ConfigError
from .gateway import GatewayClient, encrypt_file, GatewayError
from .creator import ReleaseCreator, MediaReleaseRequest, MediaReleaseResult, CreationError
from .watcher import ReleaseWatcher, ReleaseStatus, TickReport

__all__ = [
    "__version__",
    # Wire
    "CiphertextCodec",
    "CiphertextFrame",
    "RevealPayload",
    "build_reveal_payload",
    "generate_key",
    "CodecError",
    "CiphertextMalformed",
    "UnsupportedVersion",
    "DecryptionFailed",
    "PayloadError",
    # Time-lock
    "TimeLockRequestBuilder",
    "TimeLockOracle",
    "MockTimeLockOracle",
    "TimeLockError",
    "TargetBlockOverflow",
    # Chain
    "ChainEventScanner",
    "ChainProvider",
    "Web3Provider",
    "FallbackProvider",
    "MockChainProvider",
    "Web3ReleaseContract",
    "MockReleaseContract",
    "RetryPolicy",
    "ScanStatus",
    "ChainError",
    "ProviderUnavailable",
    "LogFetchFailed",
    "EventParseFailed",
    # Registry
    "Release",
    "ReleaseStateStore",
    "LocalReleaseCache",
    "ProvenanceState",
    "RegistryError",
    # Reveal
    "RevealVerifier",
    "MediaMetadata",
    "VerifierError",
    "HashMismatch",
    # Driver
    "CountdownEstimator",
    "CountdownEstimate",
    "ReleaseConfig",
    "ConfigError",
    "GatewayClient",
    "encrypt_file",
    "GatewayError",
    "ReleaseCreator",
    "MediaReleaseRequest",
    "MediaReleaseResult",
    "CreationError",
    "ReleaseWatcher",
    "ReleaseStatus",
    "TickReport",
]
