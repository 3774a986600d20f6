"""Tests for the L2 deposit transaction derivation (withdrawals/deposits.py)."""

import pytest
import rlp
from hexbytes import HexBytes
from web3 import Web3

from conftest import L1_BLOCK_HASH, OTHER, SIGNER
from withdrawals.custom_errors import EventParseError
from withdrawals.deposits import (
    compute_deposit_tx_hash,
    deposit_from_event,
    user_deposit_source_hash,
)


def test_user_deposit_source_hash():
    deposit_id = Web3.keccak(bytes(L1_BLOCK_HASH) + (4).to_bytes(32, "big"))
    expected = Web3.keccak(b"\x00" * 32 + bytes(deposit_id))

    assert user_deposit_source_hash(L1_BLOCK_HASH, 4) == HexBytes(expected)
    assert user_deposit_source_hash(L1_BLOCK_HASH, 5) != HexBytes(expected)


def test_deposit_from_event_decodes_opaque_data(make_transaction_deposited):
    event = make_transaction_deposited(to=OTHER, value=7, mint=9, gas_limit=21_000, data=b"\xca\xfe")

    deposit = deposit_from_event(event)

    assert deposit.from_ == SIGNER
    assert deposit.to == OTHER
    assert deposit.mint == 9
    assert deposit.value == 7
    assert deposit.gas == 21_000
    assert deposit.is_creation is False
    assert deposit.data == b"\xca\xfe"
    assert deposit.source_hash == user_deposit_source_hash(L1_BLOCK_HASH, 4)


def test_contract_creation_deposit_has_no_recipient(make_transaction_deposited):
    deposit = deposit_from_event(make_transaction_deposited(is_creation=True, data=b"\x60"))

    assert deposit.is_creation is True
    assert deposit.to is None


def test_unknown_deposit_version_rejected(make_transaction_deposited):
    with pytest.raises(EventParseError, match="version"):
        deposit_from_event(make_transaction_deposited(version=1))


def test_truncated_opaque_data_rejected(make_transaction_deposited):
    event = make_transaction_deposited()
    event["args"]["opaqueData"] = event["args"]["opaqueData"][:72]

    with pytest.raises(EventParseError, match="too short"):
        deposit_from_event(event)


def test_deposit_tx_hash_encodes_typed_envelope(make_transaction_deposited):
    deposit = deposit_from_event(make_transaction_deposited(to=OTHER, value=10**15))

    # integers go through rlp's own sedes, a false flag encodes as the empty string
    envelope = rlp.encode(
        [
            bytes(deposit.source_hash),
            bytes(HexBytes(SIGNER)),
            bytes(HexBytes(OTHER)),
            10**15,
            10**15,
            100_000,
            0,
            b"",
        ]
    )

    assert compute_deposit_tx_hash(deposit) == HexBytes(Web3.keccak(b"\x7e" + envelope))


def test_deposit_tx_hash_depends_on_creation_flag(make_transaction_deposited):
    call = deposit_from_event(make_transaction_deposited())
    creation = deposit_from_event(make_transaction_deposited(is_creation=True))

    assert compute_deposit_tx_hash(call) != compute_deposit_tx_hash(creation)
