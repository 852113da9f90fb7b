# tests/test_payload.py
"""
Media Release Wire: RevealPayload Tests

Run:
    pytest tests/test_payload.py
"""

import json

import pytest

from media_release.wire.payload import PayloadError, RevealPayload, build_reveal_payload


KEY_HEX = "11" * 32
CID = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


# =============================================================================
# Build / Serialize
# =============================================================================

def test_required_fields_only():
    """P1.1: optional fields are omitted, not null"""
    payload = build_reveal_payload(KEY_HEX, CID)
    assert json.loads(payload.to_json()) == {"k": KEY_HEX, "c": CID}


def test_all_fields():
    """P1.2: short field names are fixed"""
    payload = build_reveal_payload(bytes.fromhex(KEY_HEX), CID, "clip.mp4", "video/mp4", 1024)
    assert json.loads(payload.to_bytes()) == {
        "k": KEY_HEX, "c": CID, "n": "clip.mp4", "t": "video/mp4", "s": 1024,
    }


def test_parse_serialize_roundtrip():
    """P1.3: parse(serialize(p)) == p, including size 0"""
    for payload in (
        build_reveal_payload(KEY_HEX, CID),
        build_reveal_payload(KEY_HEX, CID, filename="a b.txt"),
        build_reveal_payload(KEY_HEX, CID, mime_type="image/png", size=0),
        build_reveal_payload(KEY_HEX, CID, "名前.mp3", "audio/mpeg", 7),
    ):
        assert RevealPayload.from_json(payload.to_bytes()) == payload
        assert RevealPayload.from_json(payload.to_json()) == payload


def test_0x_prefix_stripped():
    payload = build_reveal_payload("0x" + KEY_HEX, CID)
    assert payload.key_hex == KEY_HEX


def test_empty_optional_strings_dropped():
    payload = build_reveal_payload(KEY_HEX, CID, filename="", mime_type="")
    assert payload.to_dict() == {"k": KEY_HEX, "c": CID}


# =============================================================================
# Validation
# =============================================================================

@pytest.mark.parametrize("kwargs", [
    {"key_hex": "", "locator": CID},
    {"key_hex": "not-hex", "locator": CID},
    {"key_hex": KEY_HEX, "locator": ""},
    {"key_hex": KEY_HEX, "locator": CID, "size": -1},
    {"key_hex": KEY_HEX, "locator": CID, "size": True},
    {"key_hex": KEY_HEX, "locator": CID, "filename": 3},
])
def test_invalid_payload(kwargs):
    with pytest.raises(PayloadError):
        RevealPayload(**kwargs)


@pytest.mark.parametrize("text", [
    b"\xff\xfe",
    "not json",
    "[1, 2]",
    json.dumps({"k": KEY_HEX}),
    json.dumps({"c": CID}),
])
def test_from_json_rejects(text):
    with pytest.raises(PayloadError):
        RevealPayload.from_json(text)


def test_payload_error_is_value_error():
    assert issubclass(PayloadError, ValueError)
