# media_release/wire/__init__.py
"""
Media Release Wire Formats

Modules:
    frame:   CiphertextFrame v1 (AES-256-GCM) for content blobs
    payload: RevealPayload JSON sealed under the time-lock

Usage:
    from media_release.wire import CiphertextCodec, build_reveal_payload, generate_key

    key = generate_key()
    frame = CiphertextCodec().encode(media_bytes, key)
    payload = build_reveal_payload(key, cid, filename="clip.mp4")
"""

from .frame import (
    # Codec
    CiphertextCodec,
    CiphertextFrame,
    encode,
    decode,
    generate_key,
    normalize_key,

    # Constants
    FRAME_VERSION,
    NONCE_SIZE,
    TAG_SIZE,
    KEY_SIZE,
    HEADER_SIZE,
    MIN_FRAME_SIZE,

    # Exceptions
    CodecError,
    InvalidKeyError,
    CiphertextMalformed,
    UnsupportedVersion,
    DecryptionFailed,
)

from .payload import (
    RevealPayload,
    PayloadError,
    build_reveal_payload,
)

__all__ = [
    "CiphertextCodec",
    "CiphertextFrame",
    "encode",
    "decode",
    "generate_key",
    "normalize_key",
    "FRAME_VERSION",
    "NONCE_SIZE",
    "TAG_SIZE",
    "KEY_SIZE",
    "HEADER_SIZE",
    "MIN_FRAME_SIZE",
    "CodecError",
    "InvalidKeyError",
    "CiphertextMalformed",
    "UnsupportedVersion",
    "DecryptionFailed",
    "RevealPayload",
    "PayloadError",
    "build_reveal_payload",
]
