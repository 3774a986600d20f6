import logging
from typing import Any, Optional, cast

from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import TimeExhausted, Web3Exception
from web3.types import RPCEndpoint, TxParams, TxReceipt, Wei

from utils.chain import add_gas_buffer
from utils.config import (
    MULTIPLIER,
    RECEIPT_POLL_LATENCY,
    RECEIPT_TIMEOUT,
    TRANSFER_GAS_LIMIT,
)

from .custom_errors import ReceiptTimeoutError, TransactionRevertedError

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """
    Sends contract transactions from a local account and blocks until they are
    mined successfully.

    Every call estimates gas afresh, pads the estimate with `multiplier`, signs
    with the next pending nonce and waits for the receipt. A reverted
    transaction raises `TransactionRevertedError` carrying the execution trace
    when the node exposes `debug_traceTransaction`; a receipt that doesn't show
    up within the timeout raises `ReceiptTimeoutError`. Nothing is retried,
    the caller decides whether to submit again.

    Parameters
    ----------
    provider : Web3
        Chain the transactions are sent to.

    account : LocalAccount
        Signer and `from` address.

    multiplier : float
        Gas estimate multiplier, must be >= 1.0.

    buffer : int
        Flat amount of gas added after scaling.

    receipt_timeout : float
        Default number of seconds to wait for a receipt.
    """

    def __init__(
        self,
        provider: Web3,
        account: LocalAccount,
        multiplier: float = MULTIPLIER,
        buffer: int = 0,
        receipt_timeout: float = RECEIPT_TIMEOUT,
        poll_latency: float = RECEIPT_POLL_LATENCY,
    ) -> None:
        # fail early on a bad multiplier, before anything is sent
        add_gas_buffer(0, multiplier=multiplier, buffer=buffer)

        self.provider = provider
        self.account = account
        self.multiplier = multiplier
        self.buffer = buffer
        self.receipt_timeout = receipt_timeout
        self.poll_latency = poll_latency

    @property
    def address(self):
        return self.account.address

    def padded_gas(self, gas_estimate: int) -> int:
        return add_gas_buffer(gas_estimate, multiplier=self.multiplier, buffer=self.buffer)

    def build(self, txn: ContractFunction, value: int = 0) -> TxParams:
        """Estimate, pad and build the unsigned transaction for `txn`."""
        gas_estimate = txn.estimate_gas(
            {
                "from": self.account.address,
                "value": Wei(value),
            }
        )

        gas_limit = self.padded_gas(gas_estimate)

        logger.debug("gas estimate %s padded to %s", gas_estimate, gas_limit)

        txn_payload: TxParams = txn.build_transaction(
            {
                "from": self.account.address,
                "value": Wei(value),
                "gas": gas_limit,
                "nonce": self.provider.eth.get_transaction_count(
                    self.account.address, "pending"
                ),
                "chainId": self.provider.eth.chain_id,
            }
        )

        return txn_payload

    def submit(
        self,
        txn: ContractFunction,
        value: int = 0,
        timeout: Optional[float] = None,
    ) -> TxReceipt:
        """
        Send `txn` and return its successful receipt.

        Parameters
        ----------
        txn : ContractFunction
            Bound contract call, e.g. ``portal.functions.finalizeWithdrawalTransaction(params)``.

        value : int
            Wei sent along with the call.

        timeout : float, optional
            Seconds to wait for the receipt, defaults to `receipt_timeout`.

        Returns
        -------
        TxReceipt
        """
        timeout = self.receipt_timeout if timeout is None else timeout

        txn_payload = self.build(txn, value)

        signed_txn = self.account.sign_transaction(cast(dict, txn_payload))
        txn_hash = self.provider.eth.send_raw_transaction(signed_txn.raw_transaction)

        logger.info(
            "sent %s transaction %s (gas limit %s)",
            txn.fn_name,
            HexBytes(txn_hash).to_0x_hex(),
            txn_payload.get("gas"),
        )

        return self.wait_for_receipt(txn_hash, timeout)

    def transfer(
        self,
        to: ChecksumAddress,
        value: int,
        gas_limit: int = TRANSFER_GAS_LIMIT,
        timeout: Optional[float] = None,
    ) -> TxReceipt:
        """
        Send `value` wei to `to` with a fixed gas limit and return the
        successful receipt. No estimate is made, a transfer between externally
        owned accounts always costs `TRANSFER_GAS_LIMIT`.
        """
        timeout = self.receipt_timeout if timeout is None else timeout

        txn_payload: TxParams = {
            "from": self.account.address,
            "to": to,
            "value": Wei(value),
            "gas": gas_limit,
            "gasPrice": self.provider.eth.gas_price,
            "nonce": self.provider.eth.get_transaction_count(
                self.account.address, "pending"
            ),
            "chainId": self.provider.eth.chain_id,
        }

        signed_txn = self.account.sign_transaction(cast(dict, txn_payload))
        txn_hash = self.provider.eth.send_raw_transaction(signed_txn.raw_transaction)

        logger.info(
            "sent transfer %s to %s (value %s)", HexBytes(txn_hash).to_0x_hex(), to, value
        )

        return self.wait_for_receipt(txn_hash, timeout)

    def wait_for_receipt(self, txn_hash: HexBytes, timeout: float) -> TxReceipt:
        try:
            receipt = self.provider.eth.wait_for_transaction_receipt(
                txn_hash, timeout=timeout, poll_latency=self.poll_latency
            )
        except TimeExhausted as e:
            raise ReceiptTimeoutError(txn_hash, timeout, original_error=e)

        if receipt.get("status") != 1:
            trace = self.get_trace(txn_hash)
            logger.error(
                "transaction trace tx=%s trace=%s", HexBytes(txn_hash).to_0x_hex(), trace
            )
            raise TransactionRevertedError(txn_hash, receipt, trace)

        return receipt

    def get_trace(self, txn_hash: HexBytes) -> Any:
        """
        Fetch a call trace for a mined transaction, ``None`` when the node
        doesn't support `debug_traceTransaction`.
        """
        try:
            response = self.provider.provider.make_request(
                RPCEndpoint("debug_traceTransaction"),
                [HexBytes(txn_hash).to_0x_hex(), {"tracer": "callTracer"}],
            )
        except (Web3Exception, OSError, ValueError) as e:
            logger.warning("could not fetch transaction trace: %s", e)
            return None

        if "error" in response:
            logger.warning("could not fetch transaction trace: %s", response["error"])
            return None

        return response.get("result")
