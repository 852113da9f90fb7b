# media_release/reveal/verifier.py
"""
Media Release Reveal: Verifier

Turns the payload bytes of a Revealed event into MediaMetadata, after
checking that the revealed locator is the one committed at creation:

    keccak256(utf8(locator)) == fileCidHash

Payload forms:
    JSON {k, c, n?, t?, s?}   locator is hash-checked, optional fields
                              fall back to defaults
    anything else (UTF-8)     the whole string is the key; the locator
                              must come from the caller

Usage:
    verifier = RevealVerifier()
    metadata = verifier.verify(event.payload, release.file_cid_hash)
    media = verifier.decrypt_content(metadata, encrypted_blob)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from web3 import Web3

from ..wire.frame import CiphertextCodec
from ..wire.payload import FIELD_FILENAME, FIELD_KEY, FIELD_LOCATOR, FIELD_SIZE, FIELD_TYPE


logger = logging.getLogger("media-release.verifier")


# =============================================================================
# Constants
# =============================================================================

DEFAULT_FILENAME = "encrypted-file"
DEFAULT_SIZE = 0
DEFAULT_MIME_TYPE = "application/octet-stream"


# =============================================================================
# Exceptions
# =============================================================================

class VerifierError(Exception):
    """Base verifier error."""
    pass


class HashMismatch(VerifierError):
    """Revealed locator does not hash to the committed fileCidHash."""
    def __init__(self, locator: str, expected: bytes, actual: bytes):
        self.locator = locator
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Locator {locator!r} hashes to 0x{actual.hex()}, "
            f"expected 0x{expected.hex()}"
        )


class HashUnavailable(VerifierError):
    """No committed fileCidHash is known yet to check the locator against."""
    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"No fileCidHash known to verify locator {locator!r}")


class PayloadUndecodable(VerifierError):
    """Payload bytes are not usable (not UTF-8, or empty)."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Reveal payload undecodable: {reason}")


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class MediaMetadata:
    """
    Verified reveal result.

    Attributes:
        filename: Original filename or "encrypted-file"
        size: Plaintext size in bytes (0 if unknown)
        mime_type: MIME type or "application/octet-stream"
        file_cid: Content locator ("" if unknown)
        decryption_key: Hex content key
        timestamp: ISO-8601 time the reveal was processed
        from_fallback: Payload was a bare key, not JSON
    """
    filename: str
    size: int
    mime_type: str
    file_cid: str
    decryption_key: str
    timestamp: str
    from_fallback: bool = False


def content_hash(locator: str) -> bytes:
    """keccak256 of the UTF-8 locator (the on-chain fileCidHash)."""
    return bytes(Web3.keccak(text=locator))


# =============================================================================
# RevealVerifier
# =============================================================================

class RevealVerifier:
    """Hash-checks reveal payloads and decrypts content with the revealed key."""

    def __init__(self, codec: Optional[CiphertextCodec] = None):
        self._codec = codec or CiphertextCodec()

    def verify(
        self,
        payload: bytes,
        file_cid_hash: Optional[bytes],
        locator_hint: Optional[str] = None,
        revealed_at: Optional[datetime] = None,
    ) -> MediaMetadata:
        """
        Verify and decode a reveal payload.

        Args:
            payload: Revealed event payload bytes
            file_cid_hash: Committed hash from Created/metaOf (None if unknown)
            locator_hint: Locator known from other provenance (bare-key payloads)
            revealed_at: Timestamp to record (now if None)

        Raises:
            PayloadUndecodable: Not UTF-8, or no key
            HashMismatch: Locator does not match fileCidHash
            HashUnavailable: Locator present but no hash to check it against
        """
        try:
            text = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise PayloadUndecodable(f"not UTF-8 ({e.reason})") from None

        stamp = (revealed_at or datetime.now(timezone.utc)).isoformat()
        data = _parse_object(text)

        if data is None or not data.get(FIELD_KEY):
            key = text.strip()
            if not key:
                raise PayloadUndecodable("empty payload")
            locator = locator_hint or ""
            if locator:
                self._check_hash(locator, file_cid_hash)
            logger.info("Reveal payload is not JSON, using it as bare key")
            return MediaMetadata(
                filename=DEFAULT_FILENAME,
                size=DEFAULT_SIZE,
                mime_type=DEFAULT_MIME_TYPE,
                file_cid=locator,
                decryption_key=key,
                timestamp=stamp,
                from_fallback=True,
            )

        locator = _as_str(data.get(FIELD_LOCATOR)) or ""
        if locator:
            self._check_hash(locator, file_cid_hash)

        return MediaMetadata(
            filename=_as_str(data.get(FIELD_FILENAME)) or DEFAULT_FILENAME,
            size=_as_size(data.get(FIELD_SIZE)),
            mime_type=_as_str(data.get(FIELD_TYPE)) or DEFAULT_MIME_TYPE,
            file_cid=locator,
            decryption_key=str(data[FIELD_KEY]),
            timestamp=stamp,
        )

    def _check_hash(self, locator: str, file_cid_hash: Optional[bytes]) -> None:
        if file_cid_hash is None:
            raise HashUnavailable(locator)
        actual = content_hash(locator)
        if actual != bytes(file_cid_hash):
            logger.warning("Reveal locator %r does not match committed hash", locator)
            raise HashMismatch(locator, bytes(file_cid_hash), actual)

    def decrypt_content(self, metadata: MediaMetadata, frame: bytes) -> bytes:
        """
        Decrypt a content frame with the revealed key.

        Raises:
            CodecError: Malformed frame, bad version, wrong key or tampering
        """
        return self._codec.decode(frame, metadata.decryption_key)


# =============================================================================
# Helpers
# =============================================================================

def _parse_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _as_size(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return DEFAULT_SIZE
    return value
