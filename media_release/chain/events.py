# media_release/chain/events.py
"""
Media Release Chain: Event ABI

Decodes raw log entries of the MediaRelease contract into tagged
variants. Only two shapes are accepted; anything else is rejected
with EventParseFailed rather than guessed at.

    Created(uint256 indexed requestId, address indexed creator,
            bytes32 fileCidHash, uint40 unlockAtBlock)

    Revealed(uint256 indexed requestId, bytes payload)

topic0 is keccak256 of the canonical signature string.

Usage:
    from media_release.chain.events import REVEALED_TOPIC, request_id_topic, decode_log

    topics = [REVEALED_TOPIC, request_id_topic(42)]
    event = decode_log(raw_log)       # CreatedEvent | RevealedEvent
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3

from .errors import EventParseFailed


# =============================================================================
# Constants
# =============================================================================

CREATED_SIGNATURE = "Created(uint256,address,bytes32,uint40)"
REVEALED_SIGNATURE = "Revealed(uint256,bytes)"

UINT256_MAX = 2**256 - 1
TOPIC_SIZE = 32


def event_topic(signature: str) -> bytes:
    """topic0 for a canonical event signature."""
    return bytes(Web3.keccak(text=signature))


CREATED_TOPIC = event_topic(CREATED_SIGNATURE)
REVEALED_TOPIC = event_topic(REVEALED_SIGNATURE)


def request_id_topic(request_id: int) -> bytes:
    """Left-pad a uint256 request ID into an indexed topic."""
    if not 0 <= request_id <= UINT256_MAX:
        raise ValueError(f"request_id out of uint256 range: {request_id}")
    return request_id.to_bytes(TOPIC_SIZE, "big")


def address_topic(address: str) -> bytes:
    """Left-pad a 20-byte address into an indexed topic."""
    raw = bytes(HexBytes(address))
    if len(raw) != 20:
        raise ValueError(f"Address must be 20 bytes: {address}")
    return b"\x00" * 12 + raw


def topic_hex(topic: Optional[bytes]) -> Optional[str]:
    """Render a topic for JSON-RPC (None stays a wildcard)."""
    return None if topic is None else "0x" + bytes(topic).hex()


# =============================================================================
# Event Variants
# =============================================================================

@dataclass(frozen=True)
class CreatedEvent:
    """Decoded Created log."""
    request_id: int
    creator: str
    file_cid_hash: bytes
    unlock_at_block: int
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None

    name = "Created"


@dataclass(frozen=True)
class RevealedEvent:
    """Decoded Revealed log."""
    request_id: int
    payload: bytes
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None

    name = "Revealed"


ReleaseEvent = Union[CreatedEvent, RevealedEvent]


# =============================================================================
# Decoding
# =============================================================================

def _field(log: Mapping[str, Any], name: str) -> Any:
    try:
        return log[name]
    except (KeyError, TypeError):
        return None


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    return bytes(HexBytes(value))


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def _tx_hash(log: Mapping[str, Any]) -> Optional[str]:
    value = _field(log, "transactionHash")
    if value is None:
        return None
    return "0x" + _as_bytes(value).hex()


def decode_log(log: Mapping[str, Any]) -> ReleaseEvent:
    """
    Decode a raw log into a CreatedEvent or RevealedEvent.

    Every malformed field (topics, data, block number, tx hash, creator)
    surfaces as EventParseFailed, never as a bare ValueError.

    Raises:
        EventParseFailed: Unknown topic0, wrong topic count or width, or bad data
    """
    try:
        topics = [_as_bytes(t) for t in (_field(log, "topics") or [])]
        data = _as_bytes(_field(log, "data"))
        block_number = _as_int(_field(log, "blockNumber"))
        tx_hash = _tx_hash(log)
    except (TypeError, ValueError) as e:
        raise EventParseFailed(f"unreadable log: {e}") from None

    if not topics:
        raise EventParseFailed("log has no topics")
    for i, topic in enumerate(topics):
        if len(topic) != TOPIC_SIZE:
            raise EventParseFailed(f"topic {i} is {len(topic)} bytes, expected {TOPIC_SIZE}")
    topic0 = topics[0]

    if topic0 == REVEALED_TOPIC:
        if len(topics) != 2:
            raise EventParseFailed(f"Revealed expects 2 topics, got {len(topics)}")
        try:
            (payload,) = abi_decode(["bytes"], data)
        except Exception as e:
            raise EventParseFailed(f"Revealed data: {e}") from None
        return RevealedEvent(
            request_id=int.from_bytes(topics[1], "big"),
            payload=bytes(payload),
            block_number=block_number,
            tx_hash=tx_hash,
        )

    if topic0 == CREATED_TOPIC:
        if len(topics) != 3:
            raise EventParseFailed(f"Created expects 3 topics, got {len(topics)}")
        try:
            file_cid_hash, unlock_at_block = abi_decode(["bytes32", "uint40"], data)
        except Exception as e:
            raise EventParseFailed(f"Created data: {e}") from None
        try:
            creator = to_checksum_address(topics[2][-20:])
        except (TypeError, ValueError) as e:
            raise EventParseFailed(f"Created creator topic: {e}") from None
        return CreatedEvent(
            request_id=int.from_bytes(topics[1], "big"),
            creator=creator,
            file_cid_hash=bytes(file_cid_hash),
            unlock_at_block=int(unlock_at_block),
            block_number=block_number,
            tx_hash=tx_hash,
        )

    raise EventParseFailed(f"unknown topic0 0x{topic0.hex()[:16]}...")


# =============================================================================
# Encoding (mocks and fixtures)
# =============================================================================

def encode_created_log(
    contract_address: str,
    request_id: int,
    creator: str,
    file_cid_hash: bytes,
    unlock_at_block: int,
    block_number: int,
    tx_hash: Optional[bytes] = None,
    log_index: int = 0,
) -> Dict[str, Any]:
    """Build a raw Created log entry as eth_getLogs returns it."""
    return {
        "address": contract_address,
        "topics": [CREATED_TOPIC, request_id_topic(request_id), address_topic(creator)],
        "data": abi_encode(["bytes32", "uint40"], [file_cid_hash, unlock_at_block]),
        "blockNumber": block_number,
        "transactionHash": tx_hash or b"\x00" * 32,
        "logIndex": log_index,
    }


def encode_revealed_log(
    contract_address: str,
    request_id: int,
    payload: bytes,
    block_number: int,
    tx_hash: Optional[bytes] = None,
    log_index: int = 0,
) -> Dict[str, Any]:
    """Build a raw Revealed log entry as eth_getLogs returns it."""
    return {
        "address": contract_address,
        "topics": [REVEALED_TOPIC, request_id_topic(request_id)],
        "data": abi_encode(["bytes"], [payload]),
        "blockNumber": block_number,
        "transactionHash": tx_hash or b"\x00" * 32,
        "logIndex": log_index,
    }


def decode_receipt_logs(logs: List[Mapping[str, Any]]) -> List[ReleaseEvent]:
    """Decode every recognizable log of a transaction receipt."""
    events: List[ReleaseEvent] = []
    for log in logs:
        try:
            events.append(decode_log(log))
        except EventParseFailed:
            continue
    return events
