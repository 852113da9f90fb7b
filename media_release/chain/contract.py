# media_release/chain/contract.py
"""
Media Release Chain: Contract Client

Client for the MediaRelease contract.

    create_release(...)  payable; emits Created(requestId, creator, fileCidHash, unlockAtBlock)
    meta_of(requestId)   (creator, fileCidHash, unlockAtBlock, isRevealed)

The oracle callback later emits Revealed(requestId, payload); that path
is read by ChainEventScanner, not by this client.

Usage:
    contract = Web3ReleaseContract(
        rpc_url="https://sepolia.base.org",
        contract_address="0x95E3...",
        private_key="0x...",
    )
    receipt = contract.create_release(700_000, target, cid_hash, condition, ciphertext, value)
    meta = contract.meta_of(receipt.request_id)
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from eth_account import Account
from web3 import Web3

from ..timelock.request import LockedCiphertext
from .errors import ContractError
from .events import CreatedEvent, decode_receipt_logs, encode_created_log, encode_revealed_log
from .provider import MockChainProvider


logger = logging.getLogger("media-release.contract")


# =============================================================================
# Constants
# =============================================================================

ABI_PATH = Path(__file__).parent / "abi" / "MediaRelease.json"

def _load_abi() -> List[Dict]:
    """Load contract ABI from JSON file."""
    if ABI_PATH.exists():
        with open(ABI_PATH) as f:
            data = json.load(f)
            return data.get("abi", data)
    return []

CONTRACT_ABI = _load_abi()

DEFAULT_CONTRACT_ADDRESS = "0x95E30B7f27D5a5B4719A9E4eB708cB4f5e1b72a1"
DEFAULT_CALLBACK_GAS_LIMIT = 700_000
DEFAULT_TX_GAS_LIMIT = 1_500_000


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class ReleaseMeta:
    """On-chain view of one release (metaOf)."""
    creator: str
    file_cid_hash: bytes
    unlock_at_block: int
    is_revealed: bool

    @classmethod
    def from_contract_tuple(cls, request_id: int, data: Tuple) -> ReleaseMeta:
        """
        Create from the metaOf return tuple.

        An unknown request (or one a lagging node has not seen) reads back
        as all zeros; that is not a record and must not be merged.

        Raises:
            ContractError: Zero creator
        """
        creator, file_cid_hash, unlock_at_block, is_revealed = data
        if int(creator, 16) == 0:
            raise ContractError(f"metaOf({request_id}): no record (zero creator)")
        return cls(
            creator=Web3.to_checksum_address(creator),
            file_cid_hash=bytes(file_cid_hash),
            unlock_at_block=int(unlock_at_block),
            is_revealed=bool(is_revealed),
        )


@dataclass(frozen=True)
class CreationReceipt:
    """
    Result of a mined createRelease transaction.

    Attributes:
        request_id: Oracle request ID taken from the Created event
        tx_hash: Transaction hash (0x-hex)
        block_number: Inclusion block
        created_event: Decoded Created event
    """
    request_id: int
    tx_hash: str
    block_number: int
    created_event: CreatedEvent


# =============================================================================
# ReleaseContract (Abstract)
# =============================================================================

class ReleaseContract(ABC):
    """Interface to the MediaRelease contract."""

    @property
    @abstractmethod
    def account_address(self) -> Optional[str]:
        """Sender address for create_release (None when read-only)."""
        pass

    @abstractmethod
    def meta_of(self, request_id: int) -> ReleaseMeta:
        """Read one release's on-chain metadata."""
        pass

    @abstractmethod
    def create_release(
        self,
        callback_gas_limit: int,
        unlock_at_block: int,
        file_cid_hash: bytes,
        condition: bytes,
        ciphertext: LockedCiphertext,
        value: int,
    ) -> CreationReceipt:
        """
        Submit createReleaseWithDirectFunding and wait for the receipt.

        Raises:
            ContractError: Transaction failed or no Created event was emitted
        """
        pass


# =============================================================================
# Web3 Contract Client
# =============================================================================

class Web3ReleaseContract(ReleaseContract):
    """MediaRelease client over web3.py."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        contract_address: str = DEFAULT_CONTRACT_ADDRESS,
        private_key: Optional[str] = None,
        w3: Optional[Web3] = None,
        chain_id: Optional[int] = None,
        receipt_timeout: float = 180.0,
    ):
        """
        Initialize client.

        Args:
            rpc_url: JSON-RPC URL (ignored when w3 is given)
            contract_address: MediaRelease address
            private_key: Sender key (required for create_release)
            w3: Existing Web3 instance, e.g. Web3Provider.w3
            chain_id: Chain ID (queried if None)
            receipt_timeout: Seconds to wait for a receipt
        """
        if w3 is None:
            if not rpc_url:
                raise ContractError("rpc_url or w3 is required")
            w3 = Web3(Web3.HTTPProvider(rpc_url))
        self._w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self._contract = self._w3.eth.contract(address=self.contract_address, abi=CONTRACT_ABI)
        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id
        self._receipt_timeout = receipt_timeout

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self._w3.eth.chain_id)
        return self._chain_id

    # =========================================================================
    # Read Operations
    # =========================================================================

    def meta_of(self, request_id: int) -> ReleaseMeta:
        """
        Read metaOf(requestId).

        Raises:
            ContractError: Call failed, or the node has no record (zero creator)
        """
        try:
            data = self._contract.functions.metaOf(request_id).call()
        except Exception as e:
            raise ContractError(f"metaOf({request_id}) failed: {e}") from e
        return ReleaseMeta.from_contract_tuple(request_id, data)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create_release(
        self,
        callback_gas_limit: int,
        unlock_at_block: int,
        file_cid_hash: bytes,
        condition: bytes,
        ciphertext: LockedCiphertext,
        value: int,
    ) -> CreationReceipt:
        if not self._account:
            raise ContractError("Private key required for write operations")
        if len(file_cid_hash) != 32:
            raise ValueError("file_cid_hash must be 32 bytes")

        try:
            tx = self._contract.functions.createReleaseWithDirectFunding(
                callback_gas_limit,
                unlock_at_block,
                file_cid_hash,
                condition,
                ciphertext.to_solidity(),
            ).build_transaction({
                'from': self._account.address,
                'chainId': self.chain_id,
                'nonce': self._w3.eth.get_transaction_count(self._account.address),
                'gas': DEFAULT_TX_GAS_LIMIT,
                'value': value,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        except Exception as e:
            raise ContractError(f"createRelease failed: {e}") from e

        tx_hex = "0x" + bytes(tx_hash).hex()
        if receipt['status'] != 1:
            raise ContractError(f"Transaction failed: {tx_hex}")

        created = _find_created(receipt['logs'], self.contract_address)
        if created is None:
            raise ContractError(f"No Created event in receipt {tx_hex}")

        logger.info("Release %d created in block %d", created.request_id, receipt['blockNumber'])
        return CreationReceipt(
            request_id=created.request_id,
            tx_hash=tx_hex,
            block_number=int(receipt['blockNumber']),
            created_event=created,
        )


def _find_created(logs: List[Dict[str, Any]], contract_address: str) -> Optional[CreatedEvent]:
    own = [
        dict(log) for log in logs
        if str(log.get("address", "")).lower() == contract_address.lower()
    ]
    for event in decode_receipt_logs(own):
        if isinstance(event, CreatedEvent):
            return event
    return None


# =============================================================================
# Mock Contract (for testing without blockchain)
# =============================================================================

class MockReleaseContract(ReleaseContract):
    """
    In-memory MediaRelease bound to a MockChainProvider.

    create_release() mines one block and appends a Created log;
    reveal() plays the oracle callback and appends a Revealed log at
    the current height.
    """

    def __init__(
        self,
        chain: MockChainProvider,
        contract_address: str = DEFAULT_CONTRACT_ADDRESS,
        account_address: str = "0x" + "ab" * 20,
        first_request_id: int = 1,
    ):
        self.chain = chain
        self.contract_address = contract_address
        self._account_address = Web3.to_checksum_address(account_address)
        self._next_id = first_request_id
        self._metas: Dict[int, ReleaseMeta] = {}
        self.created_values: List[int] = []
        self.ciphertexts: Dict[int, LockedCiphertext] = {}

    @property
    def account_address(self) -> Optional[str]:
        return self._account_address

    def meta_of(self, request_id: int) -> ReleaseMeta:
        try:
            return self._metas[request_id]
        except KeyError:
            raise ContractError(f"Unknown request {request_id}") from None

    def create_release(
        self,
        callback_gas_limit: int,
        unlock_at_block: int,
        file_cid_hash: bytes,
        condition: bytes,
        ciphertext: LockedCiphertext,
        value: int,
    ) -> CreationReceipt:
        if len(file_cid_hash) != 32:
            raise ValueError("file_cid_hash must be 32 bytes")
        request_id = self._next_id
        self._next_id += 1

        block_number = self.chain.advance(1)
        tx_hash = request_id.to_bytes(32, "big")
        log = encode_created_log(
            self.contract_address, request_id, self._account_address,
            file_cid_hash, unlock_at_block, block_number, tx_hash=tx_hash,
        )
        self.chain.add_log(log)

        self._metas[request_id] = ReleaseMeta(
            creator=self._account_address,
            file_cid_hash=file_cid_hash,
            unlock_at_block=unlock_at_block,
            is_revealed=False,
        )
        self.created_values.append(value)
        self.ciphertexts[request_id] = ciphertext

        created = decode_receipt_logs([log])[0]
        return CreationReceipt(
            request_id=request_id,
            tx_hash="0x" + tx_hash.hex(),
            block_number=block_number,
            created_event=created,
        )

    def reveal(self, request_id: int, payload: bytes, block_number: Optional[int] = None) -> None:
        """Emit Revealed(request_id, payload) and mark the release revealed."""
        meta = self.meta_of(request_id)
        block = self.chain.block_number if block_number is None else block_number
        self.chain.add_log(encode_revealed_log(self.contract_address, request_id, payload, block))
        self._metas[request_id] = ReleaseMeta(
            creator=meta.creator,
            file_cid_hash=meta.file_cid_hash,
            unlock_at_block=meta.unlock_at_block,
            is_revealed=True,
        )
