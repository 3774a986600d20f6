"""
Derivation of the L2 deposit transaction from an L1 `TransactionDeposited` log.

Every `TransactionDeposited` log emitted by the OptimismPortal is turned into a
deposit transaction (type `0x7E`) on L2. Its hash only depends on the log, so
the L2 receipt can be awaited as soon as the L1 transaction is mined.
"""

from typing import List

import rlp
from hexbytes import HexBytes
from web3 import Web3
from web3.types import EventData

from .custom_errors import EventParseError
from .types import DepositTransaction

DEPOSIT_TX_TYPE = b"\x7e"
DEPOSIT_EVENT_VERSION = 0
USER_DEPOSIT_SOURCE_DOMAIN = 0

# abi.encodePacked(uint256 mint, uint256 value, uint64 gasLimit, bool isCreation, bytes data)
_MINT_END = 32
_VALUE_END = 64
_GAS_END = 72
_IS_CREATION_END = 73


def user_deposit_source_hash(l1_block_hash: bytes, log_index: int) -> HexBytes:
    """
    Source hash of a user deposit, unique per (L1 block, log index).
    """
    deposit_id = Web3.keccak(bytes(HexBytes(l1_block_hash)) + log_index.to_bytes(32, "big"))

    return HexBytes(
        Web3.keccak(USER_DEPOSIT_SOURCE_DOMAIN.to_bytes(32, "big") + bytes(deposit_id))
    )


def deposit_from_event(event: EventData) -> DepositTransaction:
    """
    Decode a ``TransactionDeposited`` event into the L2 deposit transaction.

    Raises `EventParseError` for unknown event versions and truncated
    opaque data.
    """
    args = event["args"]

    if args["version"] != DEPOSIT_EVENT_VERSION:
        raise EventParseError(f"unsupported deposit event version: {args['version']}")

    opaque = bytes(args["opaqueData"])

    if len(opaque) < _IS_CREATION_END:
        raise EventParseError(
            f"deposit opaque data too short: {len(opaque)} < {_IS_CREATION_END} bytes"
        )

    is_creation = opaque[_GAS_END] != 0

    return DepositTransaction(
        source_hash=user_deposit_source_hash(event["blockHash"], event["logIndex"]),
        from_=args["from"],
        to=None if is_creation else args["to"],
        mint=int.from_bytes(opaque[:_MINT_END], "big"),
        value=int.from_bytes(opaque[_MINT_END:_VALUE_END], "big"),
        gas=int.from_bytes(opaque[_VALUE_END:_GAS_END], "big"),
        is_creation=is_creation,
        data=opaque[_IS_CREATION_END:],
    )


def _uint(value: int) -> HexBytes:
    return HexBytes(value.to_bytes(32, byteorder="big").lstrip(b"\x00"))


def compute_deposit_tx_hash(deposit: DepositTransaction) -> HexBytes:
    """
    Hash of the L2 deposit transaction, `keccak(0x7E || rlp(fields))`.

    Parameters
    ----------
    deposit : DepositTransaction

    Returns
    -------
    HexBytes
    """
    fields: List[HexBytes] = [
        # source hash
        HexBytes(deposit.source_hash),
        # from (already aliased by the portal for contract senders)
        HexBytes(deposit.from_),
        # to (empty in case of contract creation)
        HexBytes(deposit.to) if deposit.to is not None else HexBytes(b""),
        # mint
        _uint(deposit.mint),
        # value
        _uint(deposit.value),
        # gas limit
        _uint(deposit.gas),
        # isSystemTransaction, always false for user deposits
        HexBytes(b""),
        # calldata
        HexBytes(deposit.data),
    ]

    rlp_encoded = rlp.encode(fields)

    return HexBytes(Web3.keccak(DEPOSIT_TX_TYPE + bytes(rlp_encoded)))
