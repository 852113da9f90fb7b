# media_release/reveal/__init__.py
"""
Media Release Reveal

    RevealVerifier: hash-check reveal payloads, decrypt content
"""

from .verifier import (
    RevealVerifier,
    MediaMetadata,
    content_hash,
    DEFAULT_FILENAME,
    DEFAULT_SIZE,
    DEFAULT_MIME_TYPE,
    VerifierError,
    HashMismatch,
    HashUnavailable,
    PayloadUndecodable,
)

__all__ = [
    "RevealVerifier",
    "MediaMetadata",
    "content_hash",
    "DEFAULT_FILENAME",
    "DEFAULT_SIZE",
    "DEFAULT_MIME_TYPE",
    "VerifierError",
    "HashMismatch",
    "HashUnavailable",
    "PayloadUndecodable",
]
