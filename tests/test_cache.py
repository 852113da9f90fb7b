# tests/test_cache.py
"""
Media Release Registry: Local Cache Tests

Run:
    pytest tests/test_cache.py
"""

import json

import pytest

from media_release.registry.cache import CREATION_HINT_KEY, LocalReleaseCache, last_reveal_key, release_key
from media_release.registry.release import Release
from media_release.registry.state import CacheCorrupted, RegistryError


def make_release(rid=7):
    return Release.local(
        rid, unlock_at_block=150, created_at_block=100,
        creation_wall_clock=1_700_000_000.5, tx_hash="0x" + "aa" * 32,
    )


def test_entry_layout(cache):
    """C1.1: release_<id> -> {requestId, targetBlock, createdAt(ms), createdAtBlock, txHash}"""
    cache.put_release(make_release())
    data = json.loads(cache.path.read_text())
    assert data[release_key(7)] == {
        "requestId": "7",
        "targetBlock": 150,
        "createdAt": 1_700_000_000_500,
        "createdAtBlock": 100,
        "txHash": "0x" + "aa" * 32,
    }


def test_persists_across_instances(cache):
    cache.put_release(make_release())
    cache.set_creation_hint(150)
    reopened = LocalReleaseCache(cache.path)
    assert reopened.creation_hint() == 150
    assert reopened.get(CREATION_HINT_KEY) == "150"
    record = reopened.get_release(7)
    assert record.unlock_at_block == 150
    assert record.creation_wall_clock == pytest.approx(1_700_000_000.5)


def test_iter_releases_skips_bad_entries(cache):
    cache.put_release(make_release(1))
    cache.set(release_key(2), {"requestId": "2"})
    cache.set("unrelated", 1)
    assert [r.request_id for r in cache.iter_releases()] == [1]


def test_unreadable_hint(cache):
    cache.set(CREATION_HINT_KEY, "abc")
    assert cache.creation_hint() is None


def test_last_reveal_block_only_moves_forward(cache):
    contract = "0x" + "Ab" * 20
    assert cache.last_reveal_block(contract) is None
    assert cache.record_reveal_block(contract, 160) == 160
    assert cache.record_reveal_block(contract, 150) == 160
    assert cache.record_reveal_block(contract.lower(), 170) == 170
    assert LocalReleaseCache(cache.path).last_reveal_block(contract) == 170
    assert cache.get(last_reveal_key(contract)) == "170"
    assert list(cache.iter_releases()) == []


def test_memory_only():
    cache = LocalReleaseCache()
    cache.put_release(make_release())
    assert cache.path is None
    assert cache.get_release(7).tx_hash == "0x" + "aa" * 32
    cache.delete(release_key(7))
    assert cache.get_release(7) is None


def test_corrupted_file(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json")
    with pytest.raises(CacheCorrupted):
        LocalReleaseCache(path)


def test_release_without_target_rejected(cache):
    with pytest.raises(RegistryError):
        cache.put_release(Release(request_id=1))
