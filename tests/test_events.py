from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from web3.logs import DISCARD

from conftest import INIT_TX_HASH, OTHER, SIGNER
from utils.config import LEGACY_ERC20_ETH, ZERO_ADDRESS
from withdrawals.custom_errors import EventParseError
from withdrawals.events import (
    bridge_transfer_from_event,
    compute_withdrawal_hash,
    find_log,
    record_from_message_passed,
    verify_withdrawal_hash,
)
from withdrawals.types import WithdrawalParams


def test_find_log_returns_first_decoded_event():
    event = MagicMock()
    event.process_receipt.return_value = [{"n": 1}, {"n": 2}]
    receipt = {"transactionHash": INIT_TX_HASH, "logs": []}

    assert find_log(receipt, event) == {"n": 1}
    event.process_receipt.assert_called_once_with(receipt, errors=DISCARD)


def test_find_log_without_event():
    event = MagicMock()
    event.event_name = "MessagePassed"
    event.process_receipt.return_value = []

    with pytest.raises(EventParseError, match="MessagePassed"):
        find_log({"transactionHash": INIT_TX_HASH}, event)


def test_find_log_without_receipt():
    with pytest.raises(EventParseError):
        find_log(None, MagicMock())


def test_withdrawal_hash_changes_with_params():
    params = WithdrawalParams(1, SIGNER, SIGNER, 10, 100_000, b"")
    other = params._replace(target=OTHER)

    digest = compute_withdrawal_hash(params)

    assert len(digest) == 32
    assert verify_withdrawal_hash(params, digest)
    assert not verify_withdrawal_hash(other, digest)


def test_record_from_message_passed(make_message_passed):
    nonce = (1 << 240) | 7
    event = make_message_passed(nonce=nonce, target=OTHER, data=b"\x01\x02")

    record = record_from_message_passed(event, timestamp=1_700_000_000)

    assert record.withdrawal_hash == HexBytes(event["args"]["withdrawalHash"])
    assert record.nonce == nonce
    assert record.decoded_nonce == 7
    assert record.nonce_version == 1
    assert record.target == OTHER
    assert record.data == b"\x01\x02"
    assert record.block_number == 100
    assert record.timestamp == 1_700_000_000
    assert record.transaction_hash == INIT_TX_HASH
    assert record.bridge is None
    # contract calls use the raw versioned nonce
    assert record.params.nonce == nonce


def test_record_rejects_hash_mismatch(make_message_passed):
    event = make_message_passed(withdrawal_hash=b"\x00" * 32)

    with pytest.raises(EventParseError):
        record_from_message_passed(event, timestamp=0)


def test_bridge_transfer_from_event():
    event = {
        "args": {
            "l1Token": ZERO_ADDRESS,
            "l2Token": LEGACY_ERC20_ETH,
            "from": SIGNER,
            "to": OTHER,
            "amount": 10**15,
            "extraData": b"",
        }
    }

    transfer = bridge_transfer_from_event(event)

    assert transfer.from_ == SIGNER
    assert transfer.to == OTHER
    assert transfer.amount == 10**15
    assert transfer.l2_token == LEGACY_ERC20_ETH
