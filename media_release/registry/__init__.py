# media_release/registry/__init__.py
"""
Media Release Registry

    Release:            merged record of one request
    ReleaseStateStore:  monotonic merge table
    LocalReleaseCache:  JSON cache of local provenance and the creation hint
"""

from .release import (
    Release,
    ProvenanceState,
    BADGE_RELEASED,
    BADGE_READY,
    BADGE_LOCKED,
)

from .state import (
    ReleaseStateStore,
    RegistryError,
    CacheCorrupted,
)

from .cache import (
    LocalReleaseCache,
    release_key,
    CREATION_HINT_KEY,
)

__all__ = [
    "Release",
    "ProvenanceState",
    "BADGE_RELEASED",
    "BADGE_READY",
    "BADGE_LOCKED",
    "ReleaseStateStore",
    "RegistryError",
    "CacheCorrupted",
    "LocalReleaseCache",
    "release_key",
    "CREATION_HINT_KEY",
]
