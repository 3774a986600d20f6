"""
Decoding of withdrawal events from L2 transaction receipts.
"""

from typing import Optional

from eth_abi.abi import encode
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import ContractEvent
from web3.logs import DISCARD
from web3.types import EventData, TxReceipt

from .custom_errors import EventParseError
from .types import BridgeTransfer, WithdrawalParams, WithdrawalRecord

WITHDRAWAL_TYPES = ["uint256", "address", "address", "uint256", "uint256", "bytes"]


def find_log(receipt: TxReceipt, event: ContractEvent) -> EventData:
    """
    Return the first log in `receipt` that decodes as `event`.

    Logs emitted by other contracts or with other signatures are skipped.
    """
    if not receipt:
        raise EventParseError("Invalid receipt! Check if the txn_hash is correct.")

    events = event.process_receipt(receipt, errors=DISCARD)

    if not events:
        raise EventParseError(
            f"`{HexBytes(receipt['transactionHash']).to_0x_hex()}` does not emit "
            f"`{event.event_name}` event."
        )

    return events[0]


def compute_withdrawal_hash(withdrawal_params: WithdrawalParams) -> HexBytes:
    # compute withdrawal hash from withdrawal types & params
    return HexBytes(Web3.keccak(encode(WITHDRAWAL_TYPES, list(withdrawal_params))))


def verify_withdrawal_hash(
    withdrawal_params: WithdrawalParams, withdrawal_hash: bytes
) -> bool:
    """
    Check that a given `WithdrawalParams` produces the expected 32-byte
    withdrawal hash.
    """
    return compute_withdrawal_hash(withdrawal_params) == HexBytes(withdrawal_hash)


def record_from_message_passed(
    event: EventData,
    timestamp: int,
    bridge: Optional[BridgeTransfer] = None,
) -> WithdrawalRecord:
    """
    Build a `WithdrawalRecord` from a decoded ``MessagePassed`` event.

    Raises `EventParseError` if the emitted withdrawal hash can't be
    reproduced from the event arguments.
    """
    args = event["args"]

    record = WithdrawalRecord(
        withdrawal_hash=HexBytes(args["withdrawalHash"]),
        nonce=args["nonce"],
        sender=args["sender"],
        target=args["target"],
        value=args["value"],
        gas_limit=args["gasLimit"],
        data=bytes(args["data"]),
        block_number=event["blockNumber"],
        timestamp=timestamp,
        transaction_hash=HexBytes(event["transactionHash"]),
        bridge=bridge,
    )

    if not verify_withdrawal_hash(record.params, record.withdrawal_hash):
        raise EventParseError(
            f"`computed hash != withdrawal hash` for {record.withdrawal_hash.to_0x_hex()}. "
            "Verify if withdrawal params are correct."
        )

    return record


def bridge_transfer_from_event(event: EventData) -> BridgeTransfer:
    """Decode the ``WithdrawalInitiated`` event of the L2StandardBridge."""
    args = event["args"]

    return BridgeTransfer(
        l1_token=args["l1Token"],
        l2_token=args["l2Token"],
        from_=args["from"],
        to=args["to"],
        amount=args["amount"],
        extra_data=bytes(args["extraData"]),
    )
