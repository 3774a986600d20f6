"""Command line for OP-Stack L2 -> L1 withdrawals.

Usage:
    op-withdraw list --account <addr>          Classify every withdrawal of an account
    op-withdraw init --amount <wei>            Initiate a withdrawal on L2
    op-withdraw prove --tx <hash>              Prove an initiated withdrawal on L1
    op-withdraw finalize --tx <hash>           Resolve the game and finalize on L1
    op-withdraw wait                           Block until both chains produce blocks
    op-withdraw deposit --amount <wei>         Deposit ETH from L1 and wait for it on L2
    op-withdraw send --value <wei>             Wait for a chain to start, then transfer ETH

RPC urls, contract addresses and the private key fall back to `.env`.
"""

import argparse
import logging
import os
import sys
import time
from typing import Optional, Sequence, Tuple

from dotenv import load_dotenv
from eth_typing import ChecksumAddress
from web3.exceptions import Web3Exception

from utils.chain import (
    get_account,
    parse_tx_hash,
    parse_uint256,
    safe_parse_address,
)
from utils.config import (
    ENV,
    OP_STACK_ETHEREUM,
    DEPOSIT_TIMEOUT,
    OP_STACK_ETHEREUM_CONTRACTS,
    READINESS_TIMEOUT,
    RECEIPT_TIMEOUT,
    RECEIVE_DEFAULT_GAS_LIMIT,
    ChainName,
)
from utils.format import ETHER_DECIMALS, format_wei, parse_big_int
from utils.providers import (
    connect_client,
    get_rpc_url,
    get_web3,
    wait_for_chains_start,
)
from withdrawals.custom_errors import (
    InputValidationError,
    InvalidChainError,
    OPStackError,
)
from withdrawals.op_stack import OPStack
from withdrawals.submitter import TransactionSubmitter
from withdrawals.types import StepResult, WithdrawalSummary

logger = logging.getLogger("op-withdraw")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="op-withdraw",
        description="Drive OP-Stack withdrawals from L2 to L1",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    # shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--l1-rpc-url", help=f"L1 RPC url (env {ENV.L1_RPC_URL})")
    common.add_argument("--l2-rpc-url", help=f"L2 RPC url (env {ENV.L2_RPC_URL})")
    common.add_argument(
        "--chain",
        choices=[name.value for name in ChainName],
        help="Known chain whose L1 contract addresses are used as defaults",
    )
    common.add_argument(
        "--optimism-portal",
        help=f"OptimismPortal2 address (env {ENV.OPTIMISM_PORTAL_ADDRESS})",
    )
    common.add_argument(
        "--dispute-game-factory",
        help=f"DisputeGameFactory address (env {ENV.DISPUTE_GAME_FACTORY_ADDRESS})",
    )
    common.add_argument(
        "--receipt-timeout",
        type=float,
        default=RECEIPT_TIMEOUT,
        help=f"Seconds to wait for a receipt (default: {RECEIPT_TIMEOUT})",
    )

    signer = argparse.ArgumentParser(add_help=False)
    signer.add_argument("--private-key", help=f"Signer key (env {ENV.PRIVATE_KEY})")

    sub = parser.add_subparsers(dest="command", required=True)

    # list
    list_p = sub.add_parser(
        "list", parents=[common], help="Scan and classify withdrawals of an account"
    )
    list_p.add_argument("--account", required=True, help="L2 account to scan")
    list_p.add_argument(
        "--source",
        default="message-passer",
        choices=["message-passer", "standard-bridge"],
        help="Event to scan for (default: message-passer)",
    )
    list_p.add_argument(
        "--from-block", type=int, default=0, help="First L2 block to scan"
    )

    # init
    init_p = sub.add_parser(
        "init", parents=[common, signer], help="Initiate a withdrawal on L2"
    )
    _add_amount_arguments(init_p)
    init_p.add_argument("--target", help="L1 recipient (default: signer)")
    init_p.add_argument(
        "--gas-limit",
        type=int,
        default=RECEIVE_DEFAULT_GAS_LIMIT,
        help=f"Gas limit for the L1 call (default: {RECEIVE_DEFAULT_GAS_LIMIT})",
    )

    # prove
    prove_p = sub.add_parser(
        "prove", parents=[common, signer], help="Prove a withdrawal on L1"
    )
    prove_p.add_argument("--tx", required=True, help="L2 withdrawal transaction hash")

    # finalize
    finalize_p = sub.add_parser(
        "finalize", parents=[common, signer], help="Finalize a proven withdrawal on L1"
    )
    finalize_p.add_argument("--tx", required=True, help="L2 withdrawal transaction hash")
    finalize_p.add_argument(
        "--prover", help="Address that proved the withdrawal (default: signer)"
    )

    # wait
    wait_p = sub.add_parser(
        "wait", parents=[common], help="Wait until both chains produce blocks"
    )
    wait_p.add_argument(
        "--timeout",
        type=float,
        default=READINESS_TIMEOUT,
        help=f"Seconds to wait (default: {READINESS_TIMEOUT})",
    )

    # deposit
    deposit_p = sub.add_parser(
        "deposit", parents=[common, signer], help="Deposit ETH from L1 to L2"
    )
    _add_amount_arguments(deposit_p)
    deposit_p.add_argument("--recipient", help="L2 recipient (default: signer)")
    deposit_p.add_argument(
        "--gas-limit",
        type=int,
        default=RECEIVE_DEFAULT_GAS_LIMIT,
        help=f"Gas limit of the L2 deposit (default: {RECEIVE_DEFAULT_GAS_LIMIT})",
    )
    deposit_p.add_argument(
        "--deposit-timeout",
        type=float,
        default=DEPOSIT_TIMEOUT,
        help=f"Seconds to wait for the deposit on L2 (default: {DEPOSIT_TIMEOUT})",
    )

    # send
    send_p = sub.add_parser(
        "send",
        parents=[signer],
        help="Wait until a chain produces blocks, then transfer ETH on it",
    )
    send_p.add_argument("--rpc-url", help=f"RPC url (env {ENV.L2_RPC_URL})")
    send_p.add_argument("--value", required=True, help="Amount in wei")
    send_p.add_argument("--recipient", help="Recipient (default: signer)")
    send_p.add_argument(
        "--timeout",
        type=float,
        default=READINESS_TIMEOUT,
        help=f"Seconds to wait for block production (default: {READINESS_TIMEOUT})",
    )
    send_p.add_argument(
        "--receipt-timeout",
        type=float,
        default=RECEIPT_TIMEOUT,
        help=f"Seconds to wait for a receipt (default: {RECEIPT_TIMEOUT})",
    )

    return parser


def _add_amount_arguments(parser: argparse.ArgumentParser) -> None:
    amount = parser.add_mutually_exclusive_group(required=True)
    amount.add_argument("--amount", help="Amount in wei")
    amount.add_argument("--amount-eth", help="Amount in ether, e.g. 0.001")


def _parse_amount(args: argparse.Namespace) -> int:
    if args.amount is not None:
        return parse_uint256(args.amount)

    value = parse_big_int(args.amount_eth, ETHER_DECIMALS)
    if value < 0:
        raise InputValidationError(f"amount must be positive: {args.amount_eth}")

    return value


def resolve_contract_addresses(
    args: argparse.Namespace,
) -> Tuple[ChecksumAddress, ChecksumAddress]:
    """
    OptimismPortal2 and DisputeGameFactory addresses, from flags, then `.env`,
    then the `--chain` defaults.
    """
    portal = args.optimism_portal or os.getenv(ENV.OPTIMISM_PORTAL_ADDRESS)
    factory = args.dispute_game_factory or os.getenv(ENV.DISPUTE_GAME_FACTORY_ADDRESS)

    if args.chain:
        contracts = OP_STACK_ETHEREUM_CONTRACTS[ChainName(args.chain)]
        portal = portal or contracts[OP_STACK_ETHEREUM.OPTIMISM_PORTAL]["address"]
        factory = factory or contracts[OP_STACK_ETHEREUM.DISPUTE_GAME_FACTORY]["address"]

    if not portal or not factory:
        raise InvalidChainError(
            "contract addresses missing. Pass --chain, the address flags or set "
            f"{ENV.OPTIMISM_PORTAL_ADDRESS} and {ENV.DISPUTE_GAME_FACTORY_ADDRESS}"
        )

    return safe_parse_address(portal), safe_parse_address(factory)


def build_client(args: argparse.Namespace, with_signer: bool = False) -> OPStack:
    portal, factory = resolve_contract_addresses(args)

    account = get_account(args.private_key) if with_signer else None

    return OPStack.connect(
        get_rpc_url(ENV.L1_RPC_URL, args.l1_rpc_url),
        get_rpc_url(ENV.L2_RPC_URL, args.l2_rpc_url),
        portal,
        factory,
        account=account,
        receipt_timeout=args.receipt_timeout,
    )


def format_summary(summary: WithdrawalSummary, now: Optional[int] = None) -> str:
    """
    One log line per withdrawal. `now` (unix seconds) only feeds
    `finalizableIn` and defaults to the local clock.
    """
    record, facts = summary.record, summary.facts
    now = int(time.time()) if now is None else now

    parts = [
        f"tx={record.transaction_hash.to_0x_hex()}",
        f"withdrawalHash={record.withdrawal_hash.to_0x_hex()}",
        f"nonce={record.decoded_nonce}",
        f"amount={format_wei(record.value)} ETH",
        f"status={summary.status}",
        f"block={record.block_number}",
    ]

    bridge = record.bridge
    if bridge is not None:
        parts.append(f"from={bridge.from_}")
        parts.append(f"to={bridge.to}")
        parts.append(f"l1Token={bridge.l1_token}")
        parts.append(f"l2Token={bridge.l2_token}")
        parts.append(f"bridgeAmount={format_wei(bridge.amount)} ETH")

    if facts.proven is not None and facts.proven.is_proven:
        finalizable_at = facts.proven.timestamp + summary.proof_maturity_delay

        parts.append(f"provenAt={facts.proven.timestamp}")
        parts.append(f"finalizableAt={finalizable_at}")
        parts.append(f"finalizableIn={max(finalizable_at - now, 0)}s")
        parts.append(f"proofMaturityDelay={summary.proof_maturity_delay}s")

    game = facts.game
    if game is not None:
        parts.append(f"game={game.address}")
        parts.append(f"gameCreatedAt={game.created_at}")
        parts.append(f"gameStatus={game.status.name}")
        parts.append(f"isClaimResolved={game.claim_resolved}")
        parts.append(
            f"challengerDuration={game.challenger_duration}/{game.max_clock_duration}s"
        )
        if game.resolved_at:
            parts.append(f"resolvedAt={game.resolved_at}")

    return " ".join(parts)


def _log_step(result: StepResult) -> None:
    logger.info(
        "status=%s action=%s: %s", result.status, result.action.value, result.reason
    )


def cmd_list(args: argparse.Namespace) -> int:
    client = build_client(args)
    account = safe_parse_address(args.account)

    summaries = client.list_withdrawals(
        account, source=args.source, from_block=args.from_block
    )

    logger.info("found %s withdrawals for %s", len(summaries), account)

    for summary in summaries:
        logger.info(format_summary(summary))

    return 0


def cmd_init(args: argparse.Namespace) -> int:
    value = _parse_amount(args)
    target = safe_parse_address(args.target) if args.target else None

    client = build_client(args, with_signer=True)
    _, record = client.initiate_withdrawal(value, target, gas_limit=args.gas_limit)

    logger.info("withdrawal hash %s", record.withdrawal_hash.to_0x_hex())

    return 0


def cmd_prove(args: argparse.Namespace) -> int:
    tx_hash = parse_tx_hash(args.tx)

    client = build_client(args, with_signer=True)
    _log_step(client.prove_withdrawal_transaction(tx_hash))

    return 0


def cmd_finalize(args: argparse.Namespace) -> int:
    tx_hash = parse_tx_hash(args.tx)
    prover = safe_parse_address(args.prover) if args.prover else None

    client = build_client(args, with_signer=True)
    _log_step(client.finalize_withdrawal_transaction(tx_hash, prover))

    return 0


def cmd_wait(args: argparse.Namespace) -> int:
    providers = {
        "l1": get_web3(get_rpc_url(ENV.L1_RPC_URL, args.l1_rpc_url)),
        "l2": get_web3(get_rpc_url(ENV.L2_RPC_URL, args.l2_rpc_url)),
    }

    ready = wait_for_chains_start(providers, timeout=args.timeout)

    logger.info("chains ready: %s", ", ".join(sorted(ready)))

    return 0


def cmd_deposit(args: argparse.Namespace) -> int:
    value = _parse_amount(args)
    recipient = safe_parse_address(args.recipient) if args.recipient else None

    client = build_client(args, with_signer=True)
    receipt, l2_receipt = client.deposit_eth(
        value, recipient, gas_limit=args.gas_limit, timeout=args.deposit_timeout
    )

    logger.info(
        "deposit complete l1Tx=%s l2Tx=%s",
        receipt["transactionHash"].to_0x_hex(),
        l2_receipt["transactionHash"].to_0x_hex(),
    )

    return 0


def cmd_send(args: argparse.Namespace) -> int:
    value = parse_uint256(args.value)
    recipient = safe_parse_address(args.recipient) if args.recipient else None
    account = get_account(args.private_key)

    w3, chain_id = connect_client(
        get_rpc_url(ENV.L2_RPC_URL, args.rpc_url), name="chain", timeout=args.timeout
    )

    submitter = TransactionSubmitter(w3, account, receipt_timeout=args.receipt_timeout)
    receipt = submitter.transfer(recipient or account.address, value)

    logger.info(
        "successfully sent transaction tx=%s chainId=%s",
        receipt["transactionHash"].to_0x_hex(),
        chain_id,
    )

    return 0


COMMANDS = {
    "list": cmd_list,
    "init": cmd_init,
    "prove": cmd_prove,
    "finalize": cmd_finalize,
    "wait": cmd_wait,
    "deposit": cmd_deposit,
    "send": cmd_send,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_dotenv()

    try:
        return COMMANDS[args.command](args)
    except OPStackError as e:
        logger.error("%s failed: %s", args.command, e)
        if e.original_error is not None:
            logger.debug("caused by %r", e.original_error)
        return 1
    except Web3Exception as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    except OSError as e:
        # unreachable rpc urls and missing ABI files
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
