"""
OP Stack implementation of the L2 -> L1 withdrawal lifecycle.

This module provides a composable class for interacting with OP Stack chains
(Optimism, Base, etc.) to list, initiate, prove and finalize withdrawals and
to deposit ETH from L1.
"""

import logging
from typing import Dict, List, Literal, Optional, Tuple

from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils.address import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError, TransactionNotFound
from web3.types import TxReceipt

from utils.chain import get_abi, get_contract_error_info
from utils.config import (
    ABI_DISPUTE_GAME_FACTORY,
    ABI_FAULT_DISPUTE_GAME,
    ABI_OPTIMISM_PORTAL,
    DEPOSIT_TIMEOUT,
    LEGACY_ERC20_ETH,
    MULTIPLIER,
    OP_STACK_ETHEREUM,
    OP_STACK_L2,
    OP_STACK_L2_CONTRACTS,
    PERMISSIONED_GAME_TYPE,
    RECEIPT_TIMEOUT,
    RECEIVE_DEFAULT_GAS_LIMIT,
    ZERO_ADDRESS,
    ContractType,
)
from utils.format import format_wei
from utils.providers import connect_client

from .custom_errors import (
    CheckWithdrawalError,
    EventParseError,
    InputValidationError,
    InvalidChainError,
)
from .deposits import compute_deposit_tx_hash, deposit_from_event
from .dispute import WITHDRAWAL_STATUS_BY_GAME_STATE, DisputeGameResolver
from .events import (
    bridge_transfer_from_event,
    find_log,
    record_from_message_passed,
)
from .finalization import FinalizationGate, compute_finalization_gate
from .games import (
    find_latest_game,
    game_l2_block_number,
    get_game_implementation,
    load_dispute_game,
)
from .proofs import RpcWitnessGenerator, WitnessGenerator
from .status import classify_withdrawal
from .submitter import TransactionSubmitter
from .types import (
    DisputeGameState,
    GameSearchResult,
    ProvenWithdrawal,
    StepAction,
    StepResult,
    WithdrawalFacts,
    WithdrawalRecord,
    WithdrawalStatus,
    WithdrawalSummary,
)

logger = logging.getLogger(__name__)

WithdrawalSource = Literal["message-passer", "standard-bridge"]


class OPStack:
    """
    This class is to interact with OP-Stack compatible chains
    like Optimism, Base, Unichain, etc.

    Parameters
    ----------
    l1_provider : Web3
        Settlement chain (Ethereum) holding the portal and the dispute games.

    l2_provider : Web3
        OP-Stack chain the withdrawals are initiated on.

    optimism_portal_address : ChecksumAddress
        `OptimismPortal2` (or its proxy) on L1.

    dispute_game_factory_address : ChecksumAddress
        `DisputeGameFactory` (or its proxy) on L1.

    account : LocalAccount, optional
        Signer for deposits, `init`, `prove` and `finalize`. Read-only operations work
        without one.

    witness_generator : WitnessGenerator, optional
        Source of `proveWithdrawalTransaction` arguments. Defaults to
        `RpcWitnessGenerator` on the L2 node.

    MORE INFO
    ----------
    An L2 -> L1 withdrawal goes through these stages, each derived from chain
    state rather than stored:

    1. `initialized`: `initiateWithdrawal` on the L2ToL1MessagePasser emitted
       `MessagePassed`.
    2. `provable`: a dispute game claims an L2 block at or after the
       withdrawal block.
    3. `proven`: `proveWithdrawalTransaction` recorded the proof against that
       game on the OptimismPortal2.
    4. `claim_resolved`: the game's root claim was resolved once the
       challenger clock ran out.
    5. `game_resolved`: the game itself was resolved.
    6. `finalized`: after the proof maturity delay and the dispute game
       finality delay, `finalizeWithdrawalTransaction` paid out on L1.
    """

    def __init__(
        self,
        l1_provider: Web3,
        l2_provider: Web3,
        optimism_portal_address: ChecksumAddress,
        dispute_game_factory_address: ChecksumAddress,
        account: Optional[LocalAccount] = None,
        witness_generator: Optional[WitnessGenerator] = None,
        multiplier: float = MULTIPLIER,
        receipt_timeout: float = RECEIPT_TIMEOUT,
    ):
        self.l1_provider = l1_provider
        self.l2_provider = l2_provider
        self.account = account
        self.multiplier = multiplier
        self.receipt_timeout = receipt_timeout

        self.l1_contracts: Dict[OP_STACK_ETHEREUM, ContractType] = {
            OP_STACK_ETHEREUM.OPTIMISM_PORTAL: {
                "address": to_checksum_address(optimism_portal_address),
                "ABI": ABI_OPTIMISM_PORTAL,
            },
            OP_STACK_ETHEREUM.DISPUTE_GAME_FACTORY: {
                "address": to_checksum_address(dispute_game_factory_address),
                "ABI": ABI_DISPUTE_GAME_FACTORY,
            },
        }

        self.witness_generator = witness_generator or RpcWitnessGenerator(
            l2_provider,
            OP_STACK_L2_CONTRACTS[OP_STACK_L2.L2_TO_L1_MESSAGE_PASSER]["address"],
        )

    @classmethod
    def connect(
        cls,
        l1_rpc_url: str,
        l2_rpc_url: str,
        optimism_portal_address: ChecksumAddress,
        dispute_game_factory_address: ChecksumAddress,
        account: Optional[LocalAccount] = None,
        **kwargs,
    ) -> "OPStack":
        """
        Dial both RPC urls and wait until both chains produce blocks.
        """
        l1_provider, _ = connect_client(l1_rpc_url, name="l1")
        l2_provider, _ = connect_client(l2_rpc_url, name="l2")

        return cls(
            l1_provider,
            l2_provider,
            optimism_portal_address,
            dispute_game_factory_address,
            account=account,
            **kwargs,
        )

    def _get_l1_contract(self, contract: OP_STACK_ETHEREUM) -> Contract:
        """
        Retrieve the instantiated L1 contract related to OP-Stack chain.

        Parameters
        ----------
        contract : OP_STACK_ETHEREUM

        Returns
        -------
        web3.contract.Contract
        """
        info = self.l1_contracts.get(contract)

        if not info:
            raise InvalidChainError("Invalid contract name provided.")

        return self.l1_provider.eth.contract(
            address=info.get("address"), abi=get_abi(info.get("ABI"))
        )

    def _get_l2_contract(self, contract: OP_STACK_L2) -> Contract:
        """
        Retrieve the instantiated L2 predeploy related to OP-Stack chain.

        Parameters
        ----------
        contract : OP_STACK_L2

        Returns
        -------
        web3.contract.Contract
        """
        info = OP_STACK_L2_CONTRACTS.get(contract)

        if not info:
            raise InvalidChainError("Invalid contract name provided.")

        return self.l2_provider.eth.contract(
            address=info.get("address"), abi=get_abi(info.get("ABI"))
        )

    def _get_game_contract(self, address: ChecksumAddress) -> Contract:
        return self.l1_provider.eth.contract(
            address=address, abi=get_abi(ABI_FAULT_DISPUTE_GAME)
        )

    def _submitter(self, provider: Web3) -> TransactionSubmitter:
        if self.account is None:
            raise InputValidationError("a private key is required to send transactions")

        return TransactionSubmitter(
            provider,
            self.account,
            multiplier=self.multiplier,
            receipt_timeout=self.receipt_timeout,
        )

    @property
    def l1_submitter(self) -> TransactionSubmitter:
        return self._submitter(self.l1_provider)

    @property
    def l2_submitter(self) -> TransactionSubmitter:
        return self._submitter(self.l2_provider)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def _record_from_receipt(self, receipt: TxReceipt) -> WithdrawalRecord:
        mp_contract = self._get_l2_contract(OP_STACK_L2.L2_TO_L1_MESSAGE_PASSER)

        event = find_log(receipt, mp_contract.events.MessagePassed())
        block = self.l2_provider.eth.get_block(receipt["blockNumber"])

        return record_from_message_passed(event, block["timestamp"])

    def get_withdrawal(self, init_wd_tx_hash: HexBytes) -> WithdrawalRecord:
        """
        Extract the `WithdrawalRecord` of a L2 `initiateWithdrawal` transaction.

        Parameters
        ----------
        init_wd_tx_hash : HexBytes
            Transaction hash of an L2 transaction that emits the
            ``MessagePassed`` event.

        Returns
        -------
        WithdrawalRecord
        """
        try:
            receipt = self.l2_provider.eth.get_transaction_receipt(init_wd_tx_hash)
        except TransactionNotFound as e:
            raise EventParseError(
                f"Invalid receipt! Check if the txn_hash: {HexBytes(init_wd_tx_hash).to_0x_hex()} is correct.",
                original_error=e,
            )

        return self._record_from_receipt(receipt)

    def get_latest_game(self) -> Optional[GameSearchResult]:
        """
        Locate the most recent dispute game of the respected game type, the
        one a new withdrawal proof would be anchored to.
        """
        game = find_latest_game(
            self._get_l1_contract(OP_STACK_ETHEREUM.DISPUTE_GAME_FACTORY),
            self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL),
        )

        if game is not None:
            logger.info(
                "Found latest game %s l2Block=%s timestamp=%s",
                game["index"],
                game_l2_block_number(game["extra_data"]),
                game["timestamp"],
            )

        return game

    def get_anchored_block_number(self) -> Optional[int]:
        game = self.get_latest_game()

        if game is None:
            return None

        return game_l2_block_number(game["extra_data"])

    def get_proven_withdrawal_info(
        self,
        withdrawal_hash: HexBytes,
        prover_address: ChecksumAddress,
    ) -> ProvenWithdrawal:
        """
        Retrieve the `provenWithdrawals(hash, prover)` record of the portal.
        A zero timestamp means the prover hasn't proven the withdrawal.
        """
        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        proven_withdrawal = portal.functions.provenWithdrawals(
            withdrawal_hash, prover_address
        ).call()

        return ProvenWithdrawal(
            dispute_game_address=to_checksum_address(proven_withdrawal[0]),
            timestamp=proven_withdrawal[1],
        )

    def is_finalized_withdrawal(self, withdrawal_hash: HexBytes) -> bool:
        """
        Check whether a withdrawal has already been finalized on L1.
        """
        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        return portal.functions.finalizedWithdrawals(withdrawal_hash).call()

    def get_proof_maturity_delay(self) -> int:
        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        return portal.functions.proofMaturityDelaySeconds().call()

    def get_dispute_game_finality_delay(self) -> int:
        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        return portal.functions.disputeGameFinalityDelaySeconds().call()

    def get_withdrawal_facts(
        self,
        record: WithdrawalRecord,
        prover_address: ChecksumAddress,
        anchored_block_number: Optional[int],
    ) -> WithdrawalFacts:
        """
        Read every on-chain fact the status classifier looks at.
        """
        proven = self.get_proven_withdrawal_info(record.withdrawal_hash, prover_address)

        game = None
        if proven.is_proven:
            game = load_dispute_game(self._get_game_contract(proven.dispute_game_address))

        return WithdrawalFacts(
            withdrawal_block_number=record.block_number,
            anchored_block_number=anchored_block_number,
            proven=proven,
            game=game,
            finalized=self.is_finalized_withdrawal(record.withdrawal_hash),
        )

    def get_withdrawal_status(
        self,
        record: WithdrawalRecord,
        prover_address: ChecksumAddress,
        anchored_block_number: Optional[int] = None,
    ) -> WithdrawalStatus:
        if anchored_block_number is None:
            anchored_block_number = self.get_anchored_block_number()

        facts = self.get_withdrawal_facts(record, prover_address, anchored_block_number)

        return classify_withdrawal(facts)

    def _withdrawal_records(
        self, account: ChecksumAddress, source: WithdrawalSource, from_block: int
    ) -> List[WithdrawalRecord]:
        mp_contract = self._get_l2_contract(OP_STACK_L2.L2_TO_L1_MESSAGE_PASSER)
        records = []

        if source == "message-passer":
            logs = mp_contract.events.MessagePassed().get_logs(
                argument_filters={"sender": account, "target": account},
                from_block=from_block,
            )

            for log in logs:
                block = self.l2_provider.eth.get_block(log["blockNumber"])
                records.append(record_from_message_passed(log, block["timestamp"]))

        elif source == "standard-bridge":
            bridge = self._get_l2_contract(OP_STACK_L2.L2_STANDARD_BRIDGE)

            logs = bridge.events.WithdrawalInitiated().get_logs(
                argument_filters={
                    "l1Token": ZERO_ADDRESS,
                    "l2Token": LEGACY_ERC20_ETH,
                    "from": account,
                },
                from_block=from_block,
            )

            for log in logs:
                receipt = self.l2_provider.eth.get_transaction_receipt(
                    log["transactionHash"]
                )
                message_passed = find_log(receipt, mp_contract.events.MessagePassed())
                block = self.l2_provider.eth.get_block(receipt["blockNumber"])

                records.append(
                    record_from_message_passed(
                        message_passed,
                        block["timestamp"],
                        bridge=bridge_transfer_from_event(log),
                    )
                )
        else:
            raise InputValidationError(f"unknown withdrawal source: {source}")

        return records

    def list_withdrawals(
        self,
        account: ChecksumAddress,
        source: WithdrawalSource = "message-passer",
        from_block: int = 0,
        prover_address: Optional[ChecksumAddress] = None,
    ) -> List[WithdrawalSummary]:
        """
        Scan the L2 for withdrawals of `account` and classify each one.

        Proofs are looked up under `prover_address`, which defaults to
        `account` itself.
        """
        prover_address = prover_address or account

        implementation = get_game_implementation(
            self._get_l1_contract(OP_STACK_ETHEREUM.DISPUTE_GAME_FACTORY),
            PERMISSIONED_GAME_TYPE,
        )
        logger.debug("permissioned dispute game implementation %s", implementation)

        anchored_block_number = self.get_anchored_block_number()
        proof_maturity_delay = self.get_proof_maturity_delay()

        summaries = []
        for record in self._withdrawal_records(account, source, from_block):
            facts = self.get_withdrawal_facts(record, prover_address, anchored_block_number)

            summaries.append(
                WithdrawalSummary(
                    record=record,
                    facts=facts,
                    status=classify_withdrawal(facts),
                    proof_maturity_delay=proof_maturity_delay,
                )
            )

        return summaries

    def get_finalization_gate(
        self, proven: ProvenWithdrawal, game_resolved_at: int
    ) -> FinalizationGate:
        latest_block = self.l1_provider.eth.get_block("latest")

        return compute_finalization_gate(
            proven_timestamp=proven.timestamp,
            proof_maturity_delay=self.get_proof_maturity_delay(),
            game_resolved_at=game_resolved_at,
            game_finality_delay=self.get_dispute_game_finality_delay(),
            now=latest_block["timestamp"],
        )

    def check_withdrawal(
        self, withdrawal_hash: HexBytes, prover_address: ChecksumAddress
    ) -> None:
        """
        Dry-run `OptimismPortal.checkWithdrawal`, raising `CheckWithdrawalError`
        with the decoded custom error if finalization would revert.
        """
        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        try:
            portal.functions.checkWithdrawal(withdrawal_hash, prover_address).call()
        except ContractLogicError as e:
            raise CheckWithdrawalError.from_error_info(
                get_contract_error_info(portal, e), e
            )

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def deposit_eth(
        self,
        value: int,
        to: Optional[ChecksumAddress] = None,
        gas_limit: int = RECEIVE_DEFAULT_GAS_LIMIT,
        timeout: float = DEPOSIT_TIMEOUT,
    ) -> Tuple[TxReceipt, TxReceipt]:
        """
        Deposit native ETH from L1 to L2 through
        `OptimismPortal.depositTransaction` and wait until the deposit is
        executed on L2.

        The L2 deposit transaction hash is derived from the
        `TransactionDeposited` log of the L1 receipt.

        Parameters
        ----------
        value : int
            Amount in **wei** to deposit.

        to : ChecksumAddress, optional
            L2 recipient, defaults to the signer.

        gas_limit : int
            Gas limit of the deposit transaction on L2.

        timeout : float
            Seconds to wait for the L2 deposit receipt.

        Returns
        -------
        (TxReceipt, TxReceipt)
            The L1 portal transaction receipt and the L2 deposit receipt.
        """
        l1_submitter = self.l1_submitter
        l2_submitter = self.l2_submitter
        sender = l1_submitter.address
        to = to or sender

        sender_pre_balance = self.l1_provider.eth.get_balance(sender)
        if sender_pre_balance < value:
            raise InputValidationError(
                f"account {sender} does not have enough balance "
                f"({format_wei(sender_pre_balance)} < {format_wei(value)} ETH)"
            )
        recipient_pre_balance = self.l2_provider.eth.get_balance(to)

        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        logger.info("executing OptimismPortal.depositTransaction to=%s value=%s", to, value)

        receipt = l1_submitter.submit(
            portal.functions.depositTransaction(to, value, gas_limit, False, b""),
            value=value,
        )

        event = find_log(receipt, portal.events.TransactionDeposited())
        deposit = deposit_from_event(event)
        deposit_tx_hash = compute_deposit_tx_hash(deposit)

        logger.info(
            "waiting for deposit transaction receipt on L2 tx=%s", deposit_tx_hash.to_0x_hex()
        )

        l2_receipt = l2_submitter.wait_for_receipt(deposit_tx_hash, timeout)

        sender_diff = sender_pre_balance - self.l1_provider.eth.get_balance(sender)
        recipient_diff = self.l2_provider.eth.get_balance(to) - recipient_pre_balance

        logger.info(
            "deposit transaction successfully propagated to L2 "
            "recipientL2Balance(+)=%s senderL1Balance(-)=%s gas=%s",
            format_wei(recipient_diff),
            format_wei(sender_diff),
            format_wei(sender_diff - recipient_diff),
        )

        return receipt, l2_receipt

    def initiate_withdrawal(
        self,
        value: int,
        target_address: Optional[ChecksumAddress] = None,
        gas_limit: int = RECEIVE_DEFAULT_GAS_LIMIT,
        data: bytes = b"",
    ) -> Tuple[TxReceipt, WithdrawalRecord]:
        """
        Initiate a withdrawal of ETH (or a message call) from L2 -> L1.

        Parameters
        ----------
        value : int
            Amount in **wei** to withdraw.

        target_address : ChecksumAddress, optional
            L1 recipient, defaults to the signer.

        gas_limit : int
            Gas limit reserved for executing the message on L1.

        data : bytes, optional
            Calldata forwarded to ``target_address`` on L1.

        Returns
        -------
        (TxReceipt, WithdrawalRecord)
        """
        submitter = self.l2_submitter
        target_address = target_address or submitter.address

        balance = self.l2_provider.eth.get_balance(submitter.address)
        if balance < value:
            raise InputValidationError(
                f"account {submitter.address} does not have enough balance "
                f"({format_wei(balance)} < {format_wei(value)} ETH)"
            )

        mp_contract = self._get_l2_contract(OP_STACK_L2.L2_TO_L1_MESSAGE_PASSER)

        code = self.l2_provider.eth.get_code(mp_contract.address)
        if len(code) == 0:
            raise InvalidChainError(
                f"L2ToL1MessagePasser ({mp_contract.address}) is not deployed"
            )

        logger.info(
            "initiating withdrawal account=%s balance=%s amount=%s",
            submitter.address,
            balance,
            value,
        )

        receipt = submitter.submit(
            mp_contract.functions.initiateWithdrawal(target_address, gas_limit, data),
            value=value,
        )

        record = self._record_from_receipt(receipt)

        logger.info(
            "successfully initialized withdrawal tx=%s withdrawalHash=%s",
            receipt["transactionHash"].to_0x_hex(),
            record.withdrawal_hash.to_0x_hex(),
        )

        return receipt, record

    def prove_withdrawal_transaction(self, init_wd_tx_hash: HexBytes) -> StepResult:
        """
        Submit the on-chain proof that an initiated L2 withdrawal is included
        in the L2 state claimed by the latest dispute game.

        Returns a `WAIT` result while no game covers the withdrawal block yet,
        and `NONE` if the signer already proved it.
        """
        submitter = self.l1_submitter
        record = self.get_withdrawal(init_wd_tx_hash)
        withdrawal_hash = record.withdrawal_hash

        if self.is_finalized_withdrawal(withdrawal_hash):
            return StepResult(
                WithdrawalStatus.FINALIZED, StepAction.NONE, "withdrawal already finalized"
            )

        proven = self.get_proven_withdrawal_info(withdrawal_hash, submitter.address)
        if proven.is_proven:
            return StepResult(
                WithdrawalStatus.PROVEN,
                StepAction.NONE,
                f"withdrawal already proven at {proven.timestamp} "
                f"against game {proven.dispute_game_address}",
            )

        game = self.get_latest_game()
        if game is None:
            return StepResult(
                WithdrawalStatus.INITIALIZED,
                StepAction.WAIT,
                "no dispute game has been created yet",
            )

        game_block_number = game_l2_block_number(game["extra_data"])
        if game_block_number < record.block_number:
            return StepResult(
                WithdrawalStatus.INITIALIZED,
                StepAction.WAIT,
                "game for this withdrawal has not been proposed yet, "
                f"{record.block_number - game_block_number} blocks remaining",
            )

        params = self.witness_generator.prove_parameters(record, game)

        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        receipt = submitter.submit(
            portal.functions.proveWithdrawalTransaction(
                params.params,
                params.l2_output_index,
                params.output_root_proof,
                params.withdrawal_proof,
            )
        )

        logger.info(
            "successfully proven withdrawal %s tx=%s",
            withdrawal_hash.to_0x_hex(),
            receipt["transactionHash"].to_0x_hex(),
        )

        return StepResult(
            WithdrawalStatus.PROVEN,
            StepAction.SUBMITTED,
            f"proven against game {params.l2_output_index}",
            receipt,
        )

    def finalize_withdrawal_transaction(
        self,
        init_wd_tx_hash: HexBytes,
        prover_address: Optional[ChecksumAddress] = None,
    ) -> StepResult:
        """
        Drive a proven withdrawal to finalization.

        Resolves the dispute game when its challenge window has passed, waits
        out the proof maturity and game finality delays, dry-runs
        `checkWithdrawal` and finally sends the finalization transaction.
        Every step that can't proceed yet returns a `WAIT` result with the
        reason.

        Parameters
        ----------
        init_wd_tx_hash : HexBytes
            Transaction hash of the L2 withdrawal-initiating transaction.

        prover_address : ChecksumAddress, optional
            Address that submitted the proof, defaults to the signer. When it
            differs from the signer, `finalizeWithdrawalTransactionExternalProof`
            is used.

        Returns
        -------
        StepResult
        """
        submitter = self.l1_submitter
        prover_address = prover_address or submitter.address

        record = self.get_withdrawal(init_wd_tx_hash)
        withdrawal_hash = record.withdrawal_hash

        if self.is_finalized_withdrawal(withdrawal_hash):
            logger.info(
                "withdrawal has already been finalized, withdrawal hash %s",
                withdrawal_hash.to_0x_hex(),
            )
            return StepResult(
                WithdrawalStatus.FINALIZED, StepAction.NONE, "withdrawal already finalized"
            )

        proven = self.get_proven_withdrawal_info(withdrawal_hash, prover_address)
        if not proven.is_proven:
            return StepResult(
                self.get_withdrawal_status(record, prover_address),
                StepAction.WAIT,
                f"withdrawal has not been proven by {prover_address}",
            )

        logger.info("withdrawal has been proven at %s", proven.timestamp)

        resolver = DisputeGameResolver(self.l1_provider, submitter)
        dispute = resolver.drive(proven.dispute_game_address)

        if dispute.state is not DisputeGameState.GAME_RESOLVED:
            return StepResult(
                WITHDRAWAL_STATUS_BY_GAME_STATE[dispute.state],
                dispute.action,
                dispute.reason,
                dispute.receipt,
            )

        game = resolver.load(proven.dispute_game_address)
        gate = self.get_finalization_gate(proven, game.resolved_at)

        if not gate.is_open:
            reason = "; ".join(gate.reasons())
            logger.info(
                "either the proof has not matured long enough or the finality period has not passed: %s",
                reason,
            )
            return StepResult(
                WithdrawalStatus.GAME_RESOLVED, StepAction.WAIT, reason, dispute.receipt
            )

        logger.info(
            "the withdrawal proof has matured (%s) and the finality period has passed (%s)",
            gate.proof_maturity_time,
            gate.finality_time,
        )

        self.check_withdrawal(withdrawal_hash, prover_address)

        logger.info("call to OptimismPortal.checkWithdrawal succeeded, finalizing")

        portal = self._get_l1_contract(OP_STACK_ETHEREUM.OPTIMISM_PORTAL)

        if prover_address == submitter.address:
            txn = portal.functions.finalizeWithdrawalTransaction(record.params)
        else:
            txn = portal.functions.finalizeWithdrawalTransactionExternalProof(
                record.params, prover_address
            )

        pre_balance = self.l1_provider.eth.get_balance(record.target)
        receipt = submitter.submit(txn)
        post_balance = self.l1_provider.eth.get_balance(record.target)

        logger.info(
            "successfully finalized withdrawal transaction initTx=%s tx=%s targetBalanceChange=%s ETH",
            HexBytes(init_wd_tx_hash).to_0x_hex(),
            receipt["transactionHash"].to_0x_hex(),
            format_wei(post_balance - pre_balance),
        )

        return StepResult(
            WithdrawalStatus.FINALIZED, StepAction.SUBMITTED, "withdrawal finalized", receipt
        )
