from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from web3.exceptions import TimeExhausted, Web3Exception

from conftest import OTHER, SIGNER
from withdrawals.custom_errors import (
    InputValidationError,
    ReceiptTimeoutError,
    TimeoutErrorBase,
    TransactionRevertedError,
)
from withdrawals.submitter import TransactionSubmitter

TX_HASH = HexBytes(b"\x01" * 32)


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.eth.chain_id = 11155111
    provider.eth.get_transaction_count.return_value = 7
    provider.eth.send_raw_transaction.return_value = TX_HASH
    provider.eth.wait_for_transaction_receipt.return_value = {
        "status": 1,
        "transactionHash": TX_HASH,
    }
    return provider


@pytest.fixture
def account():
    account = MagicMock()
    account.address = SIGNER
    account.sign_transaction.return_value.raw_transaction = b"signed"
    return account


@pytest.fixture
def txn():
    txn = MagicMock()
    txn.fn_name = "initiateWithdrawal"
    txn.estimate_gas.return_value = 100_000
    txn.build_transaction.side_effect = lambda params: dict(params)
    return txn


def test_submit_pads_gas_and_returns_receipt(provider, account, txn):
    submitter = TransactionSubmitter(provider, account, multiplier=1.5)

    receipt = submitter.submit(txn, value=5)

    assert receipt["status"] == 1
    txn.estimate_gas.assert_called_once_with({"from": SIGNER, "value": 5})
    txn.build_transaction.assert_called_once_with(
        {
            "from": SIGNER,
            "value": 5,
            "gas": 150_000,
            "nonce": 7,
            "chainId": 11155111,
        }
    )
    provider.eth.get_transaction_count.assert_called_once_with(SIGNER, "pending")
    provider.eth.send_raw_transaction.assert_called_once_with(b"signed")


def test_submit_uses_receipt_timeout(provider, account, txn):
    submitter = TransactionSubmitter(provider, account, receipt_timeout=30, poll_latency=0.5)

    submitter.submit(txn)
    submitter.submit(txn, timeout=5)

    calls = provider.eth.wait_for_transaction_receipt.call_args_list
    assert calls[0].kwargs == {"timeout": 30, "poll_latency": 0.5}
    assert calls[1].kwargs == {"timeout": 5, "poll_latency": 0.5}


def test_reverted_transaction_carries_trace(provider, account, txn):
    provider.eth.wait_for_transaction_receipt.return_value = {
        "status": 0,
        "transactionHash": TX_HASH,
    }
    trace = {"type": "CALL", "error": "execution reverted"}
    provider.provider.make_request.return_value = {"jsonrpc": "2.0", "id": 1, "result": trace}

    submitter = TransactionSubmitter(provider, account)

    with pytest.raises(TransactionRevertedError) as exc_info:
        submitter.submit(txn)

    assert exc_info.value.trace == trace
    assert exc_info.value.receipt["status"] == 0
    assert exc_info.value.tx_hash == TX_HASH

    method, params = provider.provider.make_request.call_args.args
    assert method == "debug_traceTransaction"
    assert params == [TX_HASH.to_0x_hex(), {"tracer": "callTracer"}]


def test_revert_without_debug_namespace_has_no_trace(provider, account, txn):
    provider.eth.wait_for_transaction_receipt.return_value = {"status": 0}
    provider.provider.make_request.return_value = {
        "error": {"code": -32601, "message": "method not found"}
    }

    submitter = TransactionSubmitter(provider, account)

    with pytest.raises(TransactionRevertedError) as exc_info:
        submitter.submit(txn)

    assert exc_info.value.trace is None


def test_trace_transport_failure_is_not_fatal(provider, account):
    provider.provider.make_request.side_effect = Web3Exception("boom")

    submitter = TransactionSubmitter(provider, account)

    assert submitter.get_trace(TX_HASH) is None


def test_missing_receipt_raises_timeout(provider, account, txn):
    provider.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")

    submitter = TransactionSubmitter(provider, account, receipt_timeout=3)

    with pytest.raises(ReceiptTimeoutError) as exc_info:
        submitter.submit(txn)

    assert isinstance(exc_info.value, TimeoutErrorBase)
    assert exc_info.value.timeout == 3
    assert exc_info.value.tx_hash == TX_HASH


def test_rejects_multiplier_below_one(provider, account):
    with pytest.raises(InputValidationError):
        TransactionSubmitter(provider, account, multiplier=0.5)


def test_transfer_uses_fixed_gas_limit(provider, account):
    provider.eth.gas_price = 1_000_000_000

    submitter = TransactionSubmitter(provider, account)
    receipt = submitter.transfer(OTHER, 123)

    assert receipt["status"] == 1
    account.sign_transaction.assert_called_once_with(
        {
            "from": SIGNER,
            "to": OTHER,
            "value": 123,
            "gas": 21_000,
            "gasPrice": 1_000_000_000,
            "nonce": 7,
            "chainId": 11155111,
        }
    )
    provider.eth.send_raw_transaction.assert_called_once_with(b"signed")


def test_reverted_transfer_raises(provider, account):
    provider.eth.gas_price = 1
    provider.eth.wait_for_transaction_receipt.return_value = {"status": 0}
    provider.provider.make_request.return_value = {"result": None}

    submitter = TransactionSubmitter(provider, account)

    with pytest.raises(TransactionRevertedError):
        submitter.transfer(OTHER, 123)
