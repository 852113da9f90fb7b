# tests/test_state.py
"""
Media Release Registry: State Store Tests

Merge monotonicity: every interleaving of local, confirmed and revealed
views converges to the same record.

Run:
    pytest tests/test_state.py
"""

import itertools
import threading

import pytest
from web3 import Web3

from media_release.chain.events import CreatedEvent
from media_release.registry.release import (
    BADGE_LOCKED,
    BADGE_READY,
    BADGE_RELEASED,
    ProvenanceState,
    Release,
)
from media_release.registry.state import ReleaseStateStore

from .conftest import CREATOR


CID_HASH = bytes(Web3.keccak(text="bafy-locator"))
PAYLOAD = b'{"k":"' + b"11" * 32 + b'","c":"bafy-locator"}'


def local_view(rid=7):
    return Release.local(
        rid, unlock_at_block=150, created_at_block=100,
        creation_wall_clock=1_700_000_000.0, tx_hash="0x" + "aa" * 32,
    )


def confirmed_view(rid=7):
    return Release.from_created_event(CreatedEvent(
        request_id=rid,
        creator=Web3.to_checksum_address(CREATOR),
        file_cid_hash=CID_HASH,
        unlock_at_block=150,
        block_number=101,
    ))


def comparable(release):
    # current_block_observed is refreshed independently of the merge
    return {k: v for k, v in vars(release).items() if k != "current_block_observed"}


# =============================================================================
# Interleavings
# =============================================================================

OPERATIONS = {
    "local": lambda s: s.upsert_local(local_view()),
    "confirmed": lambda s: s.upsert_confirmed(confirmed_view()),
    "revealed": lambda s: s.upsert_revealed(7, PAYLOAD),
}


def test_all_interleavings_converge():
    """R1.1: every order of the three upserts yields the same record"""
    finals = []
    for order in itertools.permutations(OPERATIONS):
        store = ReleaseStateStore()
        revealed_seen = False
        for name in order:
            OPERATIONS[name](store)
            record = store.get(7)
            if revealed_seen:
                assert record.is_revealed, f"is_revealed regressed in order {order}"
            revealed_seen = record.is_revealed
        finals.append(comparable(store.get(7)))

    assert all(f == finals[0] for f in finals)
    final = finals[0]
    assert final["is_revealed"] is True
    assert final["revealed_payload"] == PAYLOAD
    assert final["file_cid_hash"] == CID_HASH
    assert final["created_at_block"] == 100
    assert final["confirmed_at_block"] == 101
    assert final["state"] is ProvenanceState.REVEALED


def test_interleavings_with_duplicates_are_idempotent():
    """R1.2: repeated deliveries do not change the result"""
    reference = ReleaseStateStore()
    for name in OPERATIONS:
        OPERATIONS[name](reference)
    expected = comparable(reference.get(7))

    for order in itertools.permutations(["local", "confirmed", "revealed", "confirmed", "revealed"]):
        store = ReleaseStateStore()
        for name in order:
            OPERATIONS[name](store)
        assert comparable(store.get(7)) == expected


# =============================================================================
# Monotonic Invariants
# =============================================================================

def test_stale_unrevealed_view_ignored(store):
    store.upsert_revealed(7, PAYLOAD)
    store.upsert_confirmed(Release(request_id=7, is_revealed=False))
    assert store.get(7).is_revealed


def test_second_payload_rejected(store):
    store.upsert_revealed(7, PAYLOAD)
    record = store.upsert_revealed(7, b'{"k":"00","c":"other"}')
    assert record.revealed_payload == PAYLOAD


def test_write_once_fields(store):
    store.upsert_confirmed(confirmed_view())
    other = Release(request_id=7, unlock_at_block=999, file_cid_hash=b"\x01" * 32)
    record = store.upsert_confirmed(other)
    assert record.unlock_at_block == 150
    assert record.file_cid_hash == CID_HASH


def test_chain_value_replaces_local_only_value():
    """R1.3: a conflicting local target converges to the chain value in any order"""
    conflicting = Release.local(7, unlock_at_block=149, created_at_block=100)
    finals = []
    for order in itertools.permutations(["local", "confirmed", "revealed"]):
        store = ReleaseStateStore()
        for name in order:
            if name == "local":
                store.upsert_local(conflicting)
            else:
                OPERATIONS[name](store)
        finals.append(comparable(store.get(7)))
    assert all(f == finals[0] for f in finals)
    assert finals[0]["unlock_at_block"] == 150


def test_local_cannot_override_chain_value(store):
    store.upsert_confirmed(confirmed_view())
    record = store.upsert_local(Release.local(7, unlock_at_block=149))
    assert record.unlock_at_block == 150


def test_creator_compare_is_case_insensitive(store, caplog):
    store.upsert_confirmed(confirmed_view())
    with caplog.at_level("WARNING", logger="media-release.registry"):
        store.upsert_local(Release.local(7, 150, creator=CREATOR.lower()))
    assert "ignoring creator" not in caplog.text


def test_confirmed_does_not_touch_local_provenance(store):
    store.upsert_local(local_view())
    store.upsert_confirmed(Release(request_id=7, created_at_block=1, tx_hash="0xdead"))
    record = store.get(7)
    assert record.created_at_block == 100
    assert record.tx_hash == "0x" + "aa" * 32


def test_empty_reveal_payload_rejected(store):
    with pytest.raises(ValueError):
        store.upsert_revealed(7, b"")


# =============================================================================
# Listing / Queries
# =============================================================================

def test_list_newest_first(store):
    for rid in (3, 11, 7, 1):
        store.upsert_local(local_view(rid))
    assert [r.request_id for r in store.list()] == [11, 7, 3, 1]
    store.upsert_local(local_view(20))
    assert store.list()[0].request_id == 20


def test_get_returns_copy(store):
    store.upsert_local(local_view())
    record = store.get(7)
    record.is_revealed = True
    assert store.get(7).is_revealed is False
    assert store.get(99) is None
    assert 7 in store and len(store) == 1


def test_pending(store):
    store.upsert_local(local_view(1))
    store.upsert_local(local_view(2))
    store.upsert_revealed(2, PAYLOAD)
    assert [r.request_id for r in store.pending()] == [1]


# =============================================================================
# Block Height
# =============================================================================

def test_current_block_never_moves_back(store):
    store.upsert_local(local_view())
    assert store.update_current_block(140) == 140
    assert store.update_current_block(120) == 140
    assert store.get(7).current_block_observed == 140
    store.upsert_local(local_view(8))
    assert store.get(8).current_block_observed == 140


def test_badges(store):
    store.upsert_local(local_view())
    store.update_current_block(149)
    assert store.get(7).badge == BADGE_LOCKED
    store.update_current_block(150)
    assert store.get(7).is_unlocked
    assert store.get(7).badge == BADGE_READY
    store.upsert_revealed(7, PAYLOAD)
    assert store.get(7).badge == BADGE_RELEASED


# =============================================================================
# Concurrency
# =============================================================================

def test_concurrent_upserts_converge():
    store = ReleaseStateStore()
    barrier = threading.Barrier(len(OPERATIONS) * 4)

    def worker(op):
        barrier.wait()
        op(store)

    threads = [
        threading.Thread(target=worker, args=(op,))
        for op in list(OPERATIONS.values()) * 4
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    record = store.get(7)
    assert record.is_revealed
    assert record.revealed_payload == PAYLOAD
    assert record.created_at_block == 100
    assert record.state is ProvenanceState.REVEALED


# =============================================================================
# Cache Seeding
# =============================================================================

def test_seed_from_cache(store, cache):
    cache.put_release(local_view(5))
    cache.put_release(local_view(6))
    assert store.seed_from_cache(cache) == 2
    record = store.get(5)
    assert record.state is ProvenanceState.LOCAL
    assert record.unlock_at_block == 150
    assert record.creation_wall_clock == pytest.approx(1_700_000_000.0)
