# tests/test_frame.py
"""
Media Release Wire: CiphertextFrame Tests

Run:
    pytest tests/test_frame.py
"""

import pytest

from media_release.wire.frame import (
    FRAME_VERSION,
    HEADER_SIZE,
    KEY_SIZE,
    MIN_FRAME_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    CiphertextCodec,
    CiphertextFrame,
    CiphertextMalformed,
    CodecError,
    DecryptionFailed,
    InvalidKeyError,
    UnsupportedVersion,
    decode,
    encode,
    generate_key,
    normalize_key,
)


# =============================================================================
# Round Trip
# =============================================================================

@pytest.mark.parametrize("plaintext", [b"", b"x", b"hello media", bytes(range(256)) * 40])
def test_roundtrip(plaintext):
    """F1.1: decode(encode(p, k), k) == p"""
    key = generate_key()
    frame = encode(plaintext, key)
    assert decode(frame, key) == plaintext
    assert len(frame) == HEADER_SIZE + len(plaintext) + TAG_SIZE


def test_layout():
    """F1.2: version byte, 12-byte nonce, body with tag"""
    key = generate_key()
    frame = encode(b"abc", key)
    parsed = CiphertextFrame.from_bytes(frame)
    assert frame[0] == FRAME_VERSION == 1
    assert len(parsed.nonce) == NONCE_SIZE
    assert parsed.plaintext_size == 3
    assert parsed.to_bytes() == frame


def test_fresh_nonce_per_call():
    """F1.3: same key and plaintext never reuse a nonce"""
    key = generate_key()
    nonces = {CiphertextFrame.from_bytes(encode(b"same", key)).nonce for _ in range(50)}
    assert len(nonces) == 50


def test_hex_key_accepted():
    """F1.4: key as hex string, with or without 0x"""
    key = generate_key()
    frame = encode(b"payload", key.hex())
    assert decode(frame, "0x" + key.hex()) == b"payload"


# =============================================================================
# Tamper Detection
# =============================================================================

@pytest.mark.parametrize("position", [HEADER_SIZE, HEADER_SIZE + 5, -TAG_SIZE, -1, 1, NONCE_SIZE])
def test_bit_flip_fails(position):
    """F2.1: flipping a bit in nonce, body or tag fails authentication"""
    key = generate_key()
    frame = bytearray(encode(b"the quick brown fox", key))
    frame[position] ^= 0x01
    with pytest.raises(DecryptionFailed):
        decode(bytes(frame), key)


def test_wrong_key_fails():
    """F2.2: wrong key"""
    frame = encode(b"secret", generate_key())
    with pytest.raises(DecryptionFailed):
        decode(frame, generate_key())


def test_truncated_and_extended_fail():
    """F2.3: truncating or extending a valid frame fails authentication"""
    key = generate_key()
    frame = encode(b"some content here", key)
    with pytest.raises(DecryptionFailed):
        decode(frame[:-1], key)
    with pytest.raises(DecryptionFailed):
        decode(frame + b"\x00", key)


def test_aad_binding():
    """F2.4: frames are bound to the codec's associated data"""
    key = generate_key()
    frame = CiphertextCodec(aad=b"release:7").encode(b"data", key)
    assert CiphertextCodec(aad=b"release:7").decode(frame, key) == b"data"
    with pytest.raises(DecryptionFailed):
        CiphertextCodec(aad=b"release:8").decode(frame, key)
    with pytest.raises(DecryptionFailed):
        CiphertextCodec().decode(frame, key)


# =============================================================================
# Malformed Frames
# =============================================================================

@pytest.mark.parametrize("length", [0, 1, HEADER_SIZE, MIN_FRAME_SIZE - 1])
def test_short_frame_malformed(length):
    """F3.1: anything shorter than 1 + 12 + 16 bytes"""
    with pytest.raises(CiphertextMalformed) as exc:
        decode(b"\x01" * length, generate_key())
    assert exc.value.length == length


def test_short_frame_checked_before_version():
    """F3.2: length check wins over version check"""
    with pytest.raises(CiphertextMalformed):
        decode(b"\x02" * 5, generate_key())


@pytest.mark.parametrize("version", [0, 2, 0xFF])
def test_unsupported_version(version):
    """F3.3: first byte != 1"""
    key = generate_key()
    frame = bytearray(encode(b"data", key))
    frame[0] = version
    with pytest.raises(UnsupportedVersion) as exc:
        decode(bytes(frame), key)
    assert exc.value.version == version


def test_minimum_frame_of_empty_plaintext():
    """F3.4: a 29-byte frame is well formed"""
    key = generate_key()
    frame = encode(b"", key)
    assert len(frame) == MIN_FRAME_SIZE
    assert decode(frame, key) == b""


def test_errors_share_base():
    assert issubclass(CiphertextMalformed, CodecError)
    assert issubclass(UnsupportedVersion, CodecError)
    assert issubclass(DecryptionFailed, CodecError)


# =============================================================================
# Keys
# =============================================================================

@pytest.mark.parametrize("bad", [b"", b"\x00" * 16, b"\x00" * 33, "zz" * 32, "ab" * 31])
def test_invalid_keys(bad):
    with pytest.raises(InvalidKeyError):
        normalize_key(bad)


def test_generate_key_size():
    assert len(generate_key()) == KEY_SIZE
    assert generate_key() != generate_key()
