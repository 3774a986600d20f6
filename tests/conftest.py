from typing import Optional

import pytest
from eth_utils.address import to_checksum_address
from hexbytes import HexBytes

from withdrawals.events import compute_withdrawal_hash
from withdrawals.types import (
    BridgeTransfer,
    DisputeGame,
    GameStatus,
    WithdrawalParams,
    WithdrawalRecord,
)

SIGNER = to_checksum_address("0x" + "aa" * 20)
OTHER = to_checksum_address("0x" + "bb" * 20)
GAME_ADDRESS = to_checksum_address("0x" + "cc" * 20)
PORTAL_ADDRESS = to_checksum_address("0x16fc5058f25648194471939df75cf27a2fdc48bc")
FACTORY_ADDRESS = to_checksum_address("0x05f9613adb30026ffd634f38e5c4dfd30a197fa1")
INIT_TX_HASH = HexBytes(b"\x0a" * 32)


@pytest.fixture
def make_message_passed():
    """Factory for decoded `MessagePassed` events with a consistent hash."""

    def _make(
        nonce: int = 1,
        sender: str = SIGNER,
        target: str = SIGNER,
        value: int = 10**15,
        gas_limit: int = 100_000,
        data: bytes = b"",
        block_number: int = 100,
        withdrawal_hash: Optional[bytes] = None,
    ):
        params = WithdrawalParams(nonce, sender, target, value, gas_limit, data)

        return {
            "event": "MessagePassed",
            "args": {
                "nonce": nonce,
                "sender": sender,
                "target": target,
                "value": value,
                "gasLimit": gas_limit,
                "data": data,
                "withdrawalHash": withdrawal_hash or compute_withdrawal_hash(params),
            },
            "blockNumber": block_number,
            "transactionHash": INIT_TX_HASH,
        }

    return _make


@pytest.fixture
def make_record():
    def _make(
        block_number: int = 100,
        value: int = 10**15,
        nonce: int = 1,
        bridge: Optional[BridgeTransfer] = None,
    ) -> WithdrawalRecord:
        params = WithdrawalParams(nonce, SIGNER, SIGNER, value, 100_000, b"")

        return WithdrawalRecord(
            withdrawal_hash=compute_withdrawal_hash(params),
            nonce=nonce,
            sender=SIGNER,
            target=SIGNER,
            value=value,
            gas_limit=100_000,
            data=b"",
            block_number=block_number,
            timestamp=1_700_000_000,
            transaction_hash=INIT_TX_HASH,
            bridge=bridge,
        )

    return _make


@pytest.fixture
def make_game():
    def _make(
        claim_resolved: bool = False,
        resolved_at: int = 0,
        challenger_duration: int = 0,
        max_clock_duration: int = 100,
        status: GameStatus = GameStatus.IN_PROGRESS,
    ) -> DisputeGame:
        return DisputeGame(
            address=GAME_ADDRESS,
            l2_block_number=150,
            created_at=1_000,
            status=status,
            resolved_at=resolved_at,
            max_clock_duration=max_clock_duration,
            challenger_duration=challenger_duration,
            claim_resolved=claim_resolved,
        )

    return _make


L1_BLOCK_HASH = HexBytes(b"\x0b" * 32)
DEPOSIT_TX_HASH = HexBytes(b"\x0d" * 32)


@pytest.fixture
def make_transaction_deposited():
    """Factory for decoded `TransactionDeposited` events of the OptimismPortal."""

    def _make(
        to: str = SIGNER,
        value: int = 10**15,
        mint: Optional[int] = None,
        gas_limit: int = 100_000,
        is_creation: bool = False,
        data: bytes = b"",
        version: int = 0,
        log_index: int = 4,
    ):
        mint = value if mint is None else mint
        opaque = (
            mint.to_bytes(32, "big")
            + value.to_bytes(32, "big")
            + gas_limit.to_bytes(8, "big")
            + bytes([is_creation])
            + data
        )

        return {
            "event": "TransactionDeposited",
            "args": {
                "from": SIGNER,
                "to": to,
                "version": version,
                "opaqueData": opaque,
            },
            "blockHash": L1_BLOCK_HASH,
            "logIndex": log_index,
            "transactionHash": DEPOSIT_TX_HASH,
        }

    return _make
