# media_release/gateway.py
"""
Media Release: Content Gateway

Content bytes live on an external content-addressed store; this module
only prepares blobs for upload and fetches them back through an HTTP
gateway.

    encrypt_file()                   plaintext -> version-1 frame + SHA-256
    GatewayClient.fetch()            GET <gateway>/<locator>
    GatewayClient.fetch_and_decrypt  fetch + decode with the revealed key

Usage:
    encrypted = encrypt_file(data, "clip.mp4", key)
    locator = storage.upload(encrypted.frame, encrypted.name)    # external

    client = GatewayClient()
    media = client.fetch_and_decrypt(metadata)
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

import httpx

from .reveal.verifier import MediaMetadata
from .wire.frame import CiphertextCodec, CodecError, generate_key, normalize_key


logger = logging.getLogger("media-release.gateway")


# =============================================================================
# Constants
# =============================================================================

DEFAULT_GATEWAY_URL = "https://gateway.lighthouse.storage/ipfs/"
ENCRYPTED_SUFFIX = ".enc"
DEFAULT_TIMEOUT = 60.0


# =============================================================================
# Exceptions
# =============================================================================

class GatewayError(Exception):
    """Base gateway error."""
    pass


class ContentUnavailable(GatewayError):
    """Gateway did not return the blob."""
    def __init__(self, locator: str, reason: str):
        self.locator = locator
        self.reason = reason
        super().__init__(f"Content {locator} unavailable: {reason}")


class ContentUndecryptable(GatewayError):
    """Blob was fetched but does not decrypt with the revealed key."""
    def __init__(self, locator: str, cause: CodecError):
        self.locator = locator
        self.cause = cause
        super().__init__(f"Content {locator} failed to decrypt: {cause}")


# =============================================================================
# Upload Preparation
# =============================================================================

@dataclass(frozen=True)
class EncryptedFile:
    """
    Encrypted blob ready for upload.

    Attributes:
        frame: Version-1 ciphertext frame
        sha256: Hex SHA-256 of the plaintext
        name: Upload filename (original name + ".enc")
        key: Content key
        size: Plaintext size in bytes
    """
    frame: bytes = field(repr=False)
    sha256: str
    name: str
    key: bytes = field(repr=False)
    size: int


def encrypt_file(
    data: bytes,
    filename: str,
    key: Optional[Union[bytes, str]] = None,
    codec: Optional[CiphertextCodec] = None,
) -> EncryptedFile:
    """Encrypt file contents with a (fresh, if not given) content key."""
    raw_key = normalize_key(key) if key is not None else generate_key()
    codec = codec or CiphertextCodec()
    return EncryptedFile(
        frame=codec.encode(data, raw_key),
        sha256=hashlib.sha256(data).hexdigest(),
        name=filename + ENCRYPTED_SUFFIX,
        key=raw_key,
        size=len(data),
    )


# =============================================================================
# GatewayClient
# =============================================================================

class GatewayClient:
    """HTTP gateway reader."""

    def __init__(
        self,
        base_url: str = DEFAULT_GATEWAY_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        codec: Optional[CiphertextCodec] = None,
    ):
        """
        Initialize client.

        Args:
            base_url: Gateway prefix; the locator is appended
            timeout: Request timeout in seconds
            transport: httpx transport override (tests use httpx.MockTransport)
            codec: Codec for decryption
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._client = httpx.Client(timeout=timeout, transport=transport, follow_redirects=True)
        self._codec = codec or CiphertextCodec()

    def url_for(self, locator: str) -> str:
        return self.base_url + locator

    def fetch(self, locator: str) -> bytes:
        """
        Download a blob.

        Raises:
            ContentUnavailable: Transport error or non-2xx status
        """
        if not locator:
            raise ContentUnavailable(locator, "empty locator")
        url = self.url_for(locator)
        try:
            response = self._client.get(url)
        except httpx.RequestError as e:
            raise ContentUnavailable(locator, f"{type(e).__name__}: {e}") from e
        if response.status_code != 200:
            raise ContentUnavailable(locator, f"HTTP {response.status_code}")
        logger.debug("Fetched %d bytes from %s", len(response.content), url)
        return response.content

    def fetch_and_decrypt(self, metadata: MediaMetadata) -> bytes:
        """
        Fetch the blob named by a verified reveal and decrypt it.

        Raises:
            ContentUnavailable: Blob could not be fetched
            ContentUndecryptable: Frame malformed or key wrong
        """
        frame = self.fetch(metadata.file_cid)
        try:
            return self._codec.decode(frame, metadata.decryption_key)
        except CodecError as e:
            raise ContentUndecryptable(metadata.file_cid, e) from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GatewayClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
