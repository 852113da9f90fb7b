# tests/test_gateway.py
"""
Media Release: Content Gateway Tests

Run:
    pytest tests/test_gateway.py
"""

import hashlib

import httpx
import pytest

from media_release.gateway import (
    ContentUnavailable,
    ContentUndecryptable,
    GatewayClient,
    encrypt_file,
)
from media_release.reveal.verifier import MediaMetadata
from media_release.wire.frame import decode, generate_key


def metadata_for(locator, key):
    return MediaMetadata(
        filename="clip.mp4",
        size=0,
        mime_type="video/mp4",
        file_cid=locator,
        decryption_key=key.hex(),
        timestamp="2026-01-01T00:00:00+00:00",
    )


def serving(blobs):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        locator = request.url.path.rsplit("/", 1)[-1]
        if locator in blobs:
            return httpx.Response(200, content=blobs[locator])
        return httpx.Response(404)

    return httpx.MockTransport(handler), requested


# =============================================================================
# encrypt_file
# =============================================================================

def test_encrypt_file():
    data = b"\x00\x01media" * 100
    encrypted = encrypt_file(data, "clip.mp4")
    assert encrypted.name == "clip.mp4.enc"
    assert encrypted.sha256 == hashlib.sha256(data).hexdigest()
    assert encrypted.size == len(data)
    assert decode(encrypted.frame, encrypted.key) == data


def test_encrypt_file_with_given_key():
    key = generate_key()
    encrypted = encrypt_file(b"abc", "a.txt", key=key.hex())
    assert encrypted.key == key


# =============================================================================
# GatewayClient
# =============================================================================

def test_fetch_and_decrypt():
    encrypted = encrypt_file(b"the movie", "movie.mp4")
    transport, requested = serving({"bafyblob": encrypted.frame})
    with GatewayClient("https://gw.example/ipfs", transport=transport) as client:
        assert client.fetch_and_decrypt(metadata_for("bafyblob", encrypted.key)) == b"the movie"
    assert requested == ["https://gw.example/ipfs/bafyblob"]


def test_missing_blob():
    transport, _ = serving({})
    client = GatewayClient(transport=transport)
    with pytest.raises(ContentUnavailable) as exc:
        client.fetch("bafymissing")
    assert "404" in str(exc.value)


def test_empty_locator():
    transport, requested = serving({})
    with pytest.raises(ContentUnavailable):
        GatewayClient(transport=transport).fetch("")
    assert requested == []


def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = GatewayClient(transport=httpx.MockTransport(handler))
    with pytest.raises(ContentUnavailable):
        client.fetch("bafyblob")


def test_wrong_key():
    encrypted = encrypt_file(b"the movie", "movie.mp4")
    transport, _ = serving({"bafyblob": encrypted.frame})
    client = GatewayClient(transport=transport)
    with pytest.raises(ContentUndecryptable):
        client.fetch_and_decrypt(metadata_for("bafyblob", generate_key()))


def test_malformed_blob():
    transport, _ = serving({"bafyblob": b"\x01short"})
    client = GatewayClient(transport=transport)
    with pytest.raises(ContentUndecryptable):
        client.fetch_and_decrypt(metadata_for("bafyblob", generate_key()))
