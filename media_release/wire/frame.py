# media_release/wire/frame.py
"""
Media Release Wire Format: CiphertextFrame v1

Authenticated-encryption framing for arbitrary byte payloads
(media files uploaded to the storage gateway).

Wire Format v1:
    ┌─────────────────────────────────────────────────────────────┐
    │  version (1B)    ← always 0x01                               │
    │  nonce (12B)     ← fresh random per encode                   │
    │  body (NB + 16B) ← AES-256-GCM ciphertext, tag appended      │
    └─────────────────────────────────────────────────────────────┘

The tag is not transmitted separately: AESGCM appends it to the
ciphertext, which is the same layout WebCrypto produces, so frames
written by browser clients decode here unchanged.

Usage:
    from media_release.wire import CiphertextCodec, generate_key

    codec = CiphertextCodec()
    key = generate_key()

    frame = codec.encode(b"video bytes", key)
    data = codec.decode(frame, key)  # b"video bytes"

Updated: 2025-02-03
Version: 0.3.0
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


# =============================================================================
# Constants
# =============================================================================

FRAME_VERSION = 1

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32

# version(1) + nonce(12)
HEADER_SIZE = 1 + NONCE_SIZE

# Empty plaintext still carries a full tag
MIN_FRAME_SIZE = HEADER_SIZE + TAG_SIZE


# =============================================================================
# Exceptions
# =============================================================================

class CodecError(Exception):
    """Base codec error."""
    pass


class InvalidKeyError(CodecError, ValueError):
    """Key is not a 256-bit AES key."""
    def __init__(self, length: int):
        self.length = length
        super().__init__(f"Key must be {KEY_SIZE} bytes, got {length}")


class CiphertextMalformed(CodecError):
    """Frame too short to hold header and tag."""
    def __init__(self, length: int):
        self.length = length
        super().__init__(
            f"Ciphertext too short: {length} bytes, need at least {MIN_FRAME_SIZE}"
        )


class UnsupportedVersion(CodecError):
    """Frame version byte is not 0x01."""
    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported ciphertext version: {version}")


class DecryptionFailed(CodecError):
    """AEAD authentication failed (wrong key, tampered or truncated body)."""
    def __init__(self, reason: str = "authentication tag mismatch"):
        super().__init__(f"Decryption failed: {reason}")


# =============================================================================
# Key Helpers
# =============================================================================

def generate_key() -> bytes:
    """Generate a fresh 256-bit content key."""
    return secrets.token_bytes(KEY_SIZE)


def normalize_key(key: Union[bytes, bytearray, str]) -> bytes:
    """
    Coerce a content key to raw bytes.

    Accepts raw bytes or a hex string (as carried in the reveal
    payload's `k` field), with or without a 0x prefix.
    """
    if isinstance(key, str):
        text = key[2:] if key.lower().startswith("0x") else key
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise InvalidKeyError(len(text) // 2) from None
    else:
        raw = bytes(key)

    if len(raw) != KEY_SIZE:
        raise InvalidKeyError(len(raw))
    return raw


# =============================================================================
# CiphertextFrame
# =============================================================================

@dataclass(frozen=True)
class CiphertextFrame:
    """
    Parsed ciphertext frame.

    Attributes:
        version: Frame version (1)
        nonce: 12-byte AES-GCM nonce
        body: Ciphertext with the 16-byte tag appended
    """
    version: int
    nonce: bytes
    body: bytes

    def to_bytes(self) -> bytes:
        """Serialize to wire format."""
        return bytes([self.version]) + self.nonce + self.body

    @classmethod
    def from_bytes(cls, data: bytes) -> CiphertextFrame:
        """
        Parse wire bytes.

        Raises:
            CiphertextMalformed: Shorter than header + tag
            UnsupportedVersion: Version byte is not 1
        """
        data = bytes(data)
        if len(data) < MIN_FRAME_SIZE:
            raise CiphertextMalformed(len(data))

        version = data[0]
        if version != FRAME_VERSION:
            raise UnsupportedVersion(version)

        return cls(
            version=version,
            nonce=data[1:HEADER_SIZE],
            body=data[HEADER_SIZE:],
        )

    @property
    def plaintext_size(self) -> int:
        """Size of the plaintext this frame decodes to."""
        return len(self.body) - TAG_SIZE


# =============================================================================
# CiphertextCodec
# =============================================================================

class CiphertextCodec:
    """
    AES-256-GCM codec producing version-1 frames.

    Every call to encode() draws a new random nonce, so one key may
    protect many payloads. decode() either returns the full plaintext
    or raises; partial output is never exposed.
    """

    def __init__(self, aad: Optional[bytes] = None):
        """
        Initialize codec.

        Args:
            aad: Optional associated data bound to every frame
        """
        self._aad = aad

    def encode(self, plaintext: bytes, key: Union[bytes, str]) -> bytes:
        """
        Encrypt plaintext into a frame.

        Returns:
            version ‖ nonce ‖ ciphertext ‖ tag
        """
        aesgcm = AESGCM(normalize_key(key))
        nonce = secrets.token_bytes(NONCE_SIZE)
        body = aesgcm.encrypt(nonce, bytes(plaintext), self._aad)
        return CiphertextFrame(FRAME_VERSION, nonce, body).to_bytes()

    def decode(self, frame: bytes, key: Union[bytes, str]) -> bytes:
        """
        Decrypt a frame.

        Raises:
            CiphertextMalformed: Frame shorter than 1 + 12 + 16 bytes
            UnsupportedVersion: Version byte is not 1
            DecryptionFailed: Authentication failed
        """
        parsed = CiphertextFrame.from_bytes(frame)
        aesgcm = AESGCM(normalize_key(key))
        try:
            return aesgcm.decrypt(parsed.nonce, parsed.body, self._aad)
        except InvalidTag:
            raise DecryptionFailed() from None


_DEFAULT_CODEC = CiphertextCodec()


def encode(plaintext: bytes, key: Union[bytes, str]) -> bytes:
    """Encrypt with the default codec (no associated data)."""
    return _DEFAULT_CODEC.encode(plaintext, key)


def decode(frame: bytes, key: Union[bytes, str]) -> bytes:
    """Decrypt with the default codec (no associated data)."""
    return _DEFAULT_CODEC.decode(frame, key)
