# media_release/registry/cache.py
"""
Media Release Registry: Local Cache

Small JSON key-value file that survives restarts:

    release_<requestId> -> {requestId, targetBlock, createdAt, createdAtBlock, txHash}
    tblock              -> last target block chosen by the creation path
    last_block_<addr>   -> highest block a reveal was found in, per contract

createdAt is milliseconds since the epoch. The file is rewritten
atomically (temp file + rename) on every write. With path=None the
cache lives in memory only.

Usage:
    cache = LocalReleaseCache("~/.media_release/cache.json")
    cache.put_release(release)
    cache.set_creation_hint(release.unlock_at_block)

    store.seed_from_cache(cache)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from .release import Release
from .state import CacheCorrupted, RegistryError


logger = logging.getLogger("media-release.cache")


# =============================================================================
# Constants
# =============================================================================

RELEASE_PREFIX = "release_"
CREATION_HINT_KEY = "tblock"
LAST_REVEAL_PREFIX = "last_block_"


def release_key(request_id: int) -> str:
    return f"{RELEASE_PREFIX}{request_id}"


def last_reveal_key(contract_address: str) -> str:
    return f"{LAST_REVEAL_PREFIX}{contract_address.lower()}"


# =============================================================================
# LocalReleaseCache
# =============================================================================

class LocalReleaseCache:
    """JSON-file backed key-value cache."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path).expanduser() if path is not None else None
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheCorrupted(str(self.path), str(e)) from e
        if not isinstance(data, dict):
            raise CacheCorrupted(str(self.path), "top level is not an object")
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".cache-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    # =========================================================================
    # Raw Access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()

    def keys(self):
        with self._lock:
            return list(self._data)

    # =========================================================================
    # Releases
    # =========================================================================

    def put_release(self, release: Release) -> None:
        """Store the local provenance of one release."""
        if release.unlock_at_block is None:
            raise RegistryError(f"Release {release.request_id} has no target block")
        created_at = (
            int(release.creation_wall_clock * 1000)
            if release.creation_wall_clock is not None else None
        )
        self.set(release_key(release.request_id), {
            "requestId": str(release.request_id),
            "targetBlock": release.unlock_at_block,
            "createdAt": created_at,
            "createdAtBlock": release.created_at_block,
            "txHash": release.tx_hash,
        })

    def get_release(self, request_id: int) -> Optional[Release]:
        entry = self.get(release_key(request_id))
        return _entry_to_release(entry) if entry is not None else None

    def iter_releases(self) -> Iterator[Release]:
        """Every cached release as a LOCAL record. Bad entries are skipped."""
        with self._lock:
            items = [(k, v) for k, v in self._data.items() if k.startswith(RELEASE_PREFIX)]
        for key, entry in items:
            try:
                yield _entry_to_release(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping cache entry %s: %s", key, e)

    # =========================================================================
    # Block Hints
    # =========================================================================

    def set_creation_hint(self, target_block: int) -> None:
        self.set(CREATION_HINT_KEY, str(target_block))

    def creation_hint(self) -> Optional[int]:
        return self._read_block(CREATION_HINT_KEY)

    def record_reveal_block(self, contract_address: str, block_number: int) -> int:
        """Remember the highest block a reveal was found in for a contract."""
        key = last_reveal_key(contract_address)
        with self._lock:
            previous = self._read_block(key)
            if previous is None or block_number > previous:
                self.set(key, str(block_number))
                return block_number
            return previous

    def last_reveal_block(self, contract_address: str) -> Optional[int]:
        return self._read_block(last_reveal_key(contract_address))

    def _read_block(self, key: str) -> Optional[int]:
        value = self.get(key)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring unreadable %s entry %r", key, value)
            return None


def _entry_to_release(entry: Dict[str, Any]) -> Release:
    created_at = entry.get("createdAt")
    created_at_block = entry.get("createdAtBlock")
    return Release.local(
        request_id=int(entry["requestId"]),
        unlock_at_block=int(entry["targetBlock"]),
        created_at_block=int(created_at_block) if created_at_block is not None else None,
        creation_wall_clock=created_at / 1000.0 if created_at is not None else None,
        tx_hash=entry.get("txHash"),
    )
