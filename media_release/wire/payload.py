# media_release/wire/payload.py
"""
Media Release Wire Format: Reveal Payload

The reveal payload is the plaintext sealed under the time-lock. Once the
oracle decrypts it on-chain it is published verbatim in the Revealed
event, so its field names are part of the public format:

    {
        "k": "<hex content key>",        required
        "c": "<content locator / CID>",  required
        "n": "<filename>",               optional
        "t": "<MIME type>",              optional
        "s": <size in bytes>             optional
    }

Serialization is compact JSON (no whitespace). Field order is not
significant; field names are fixed.

Usage:
    payload = build_reveal_payload(key, "bafy...", filename="clip.mp4")
    plaintext = payload.to_bytes()

    assert RevealPayload.from_json(plaintext) == payload
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


# =============================================================================
# Constants
# =============================================================================

FIELD_KEY = "k"
FIELD_LOCATOR = "c"
FIELD_FILENAME = "n"
FIELD_TYPE = "t"
FIELD_SIZE = "s"

REQUIRED_FIELDS = (FIELD_KEY, FIELD_LOCATOR)
OPTIONAL_FIELDS = (FIELD_FILENAME, FIELD_TYPE, FIELD_SIZE)


# =============================================================================
# Exceptions
# =============================================================================

class PayloadError(ValueError):
    """Reveal payload is not well-formed."""
    pass


# =============================================================================
# RevealPayload
# =============================================================================

@dataclass(frozen=True)
class RevealPayload:
    """
    Structured reveal payload.

    Attributes:
        key_hex: Hex-encoded symmetric content key
        locator: Content locator of the encrypted blob
        filename: Original filename (optional)
        mime_type: MIME type (optional)
        size: Plaintext size in bytes (optional)
    """
    key_hex: str
    locator: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.key_hex, str) or not self.key_hex:
            raise PayloadError("Payload key must be a non-empty hex string")
        try:
            bytes.fromhex(self.key_hex)
        except ValueError:
            raise PayloadError(f"Payload key is not hex: {self.key_hex[:16]}...") from None
        if not isinstance(self.locator, str) or not self.locator:
            raise PayloadError("Payload locator must be a non-empty string")
        if self.filename is not None and not isinstance(self.filename, str):
            raise PayloadError("Payload filename must be a string")
        if self.mime_type is not None and not isinstance(self.mime_type, str):
            raise PayloadError("Payload type must be a string")
        if self.size is not None:
            if isinstance(self.size, bool) or not isinstance(self.size, int) or self.size < 0:
                raise PayloadError(f"Payload size must be a non-negative integer: {self.size!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the short-key JSON object."""
        data: Dict[str, Any] = {
            FIELD_KEY: self.key_hex,
            FIELD_LOCATOR: self.locator,
        }
        if self.filename is not None:
            data[FIELD_FILENAME] = self.filename
        if self.mime_type is not None:
            data[FIELD_TYPE] = self.mime_type
        if self.size is not None:
            data[FIELD_SIZE] = self.size
        return data

    def to_json(self) -> str:
        """Serialize to compact JSON."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def to_bytes(self) -> bytes:
        """Serialize to UTF-8 JSON bytes (the time-lock plaintext)."""
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RevealPayload:
        """Parse from a decoded JSON object."""
        if not isinstance(data, dict):
            raise PayloadError("Payload must be a JSON object")
        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise PayloadError(f"Payload missing fields: {', '.join(missing)}")
        return cls(
            key_hex=data[FIELD_KEY],
            locator=data[FIELD_LOCATOR],
            filename=data.get(FIELD_FILENAME),
            mime_type=data.get(FIELD_TYPE),
            size=data.get(FIELD_SIZE),
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> RevealPayload:
        """Parse from JSON text or UTF-8 bytes."""
        if isinstance(text, (bytes, bytearray)):
            try:
                text = bytes(text).decode("utf-8")
            except UnicodeDecodeError as e:
                raise PayloadError(f"Payload is not UTF-8: {e}") from None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PayloadError(f"Payload is not JSON: {e}") from None
        return cls.from_dict(data)


# =============================================================================
# Builder
# =============================================================================

def build_reveal_payload(
    key: Union[bytes, str],
    locator: str,
    filename: Optional[str] = None,
    mime_type: Optional[str] = None,
    size: Optional[int] = None,
) -> RevealPayload:
    """
    Build a reveal payload.

    Args:
        key: Content key as raw bytes or hex string
        locator: Content locator of the encrypted blob
        filename: Original filename
        mime_type: MIME type
        size: Plaintext size in bytes

    Returns:
        RevealPayload
    """
    key_hex = key.hex() if isinstance(key, (bytes, bytearray)) else key
    if key_hex.lower().startswith("0x"):
        key_hex = key_hex[2:]
    return RevealPayload(
        key_hex=key_hex,
        locator=locator,
        filename=filename or None,
        mime_type=mime_type or None,
        size=size,
    )
