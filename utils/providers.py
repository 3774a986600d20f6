import logging
import os
import time
from typing import Callable, Mapping, Optional, Set, Tuple

from dotenv import load_dotenv
from web3 import Web3
from web3.exceptions import Web3Exception

from withdrawals.custom_errors import ChainNotReadyError, InputValidationError

from .config import ENV, READINESS_POLL_INTERVAL, READINESS_TIMEOUT

logger = logging.getLogger(__name__)


def get_rpc_url(env_key: ENV, rpc_url: Optional[str] = None) -> str:
    if rpc_url:
        return rpc_url

    load_dotenv()
    url = os.getenv(env_key)

    if not url:
        raise InputValidationError(f"RPC url missing. Pass it as a flag or set {env_key} in .env")

    return url


def get_web3(rpc_url: str) -> Web3:
    if not rpc_url:
        raise InputValidationError("empty rpc url")

    w3 = Web3(Web3.HTTPProvider(rpc_url))

    return w3


def wait_for_chains_start(
    providers: Mapping[str, Web3],
    timeout: float = READINESS_TIMEOUT,
    poll_interval: float = READINESS_POLL_INTERVAL,
    ready: Optional[Set[str]] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Set[str]:
    """
    Block until every provider reports a head above genesis.

    Parameters
    ----------
    providers : Mapping[str, Web3]
        Endpoints keyed by a caller-chosen name (e.g. ``"l1"``, ``"l2"``).

    timeout : float
        Seconds to wait before giving up with `ChainNotReadyError`.

    poll_interval : float
        Seconds between two sweeps over the not-yet-ready endpoints.

    ready : Set[str], optional
        Accumulator of endpoint names already known to be producing blocks.
        It is only ever added to. A fresh set is used when omitted so that
        separate waits never share state.

    Returns
    -------
    Set[str]
        The ready accumulator, containing every key of ``providers``.
    """
    if ready is None:
        ready = set()

    deadline = clock() + timeout

    while True:
        for name, w3 in providers.items():
            # Skip providers that already reported block production
            if name in ready:
                continue

            try:
                header = w3.eth.get_block("latest")
            except (Web3Exception, OSError, ValueError) as e:
                logger.error("received error fetching header from %s: %s", name, e)
                continue

            if header.get("number", 0) > 0:
                logger.info("%s is producing blocks (head %s)", name, header["number"])
                ready.add(name)

        if all(name in ready for name in providers):
            return ready

        remaining = deadline - clock()
        if remaining <= 0:
            pending = sorted(name for name in providers if name not in ready)
            raise ChainNotReadyError(
                f"timed out waiting for all clients to report block production: {pending}"
            )

        sleep(min(poll_interval, remaining))


def connect_client(
    rpc_url: str, name: str = "chain", timeout: float = READINESS_TIMEOUT
) -> Tuple[Web3, int]:
    """
    Dial `rpc_url`, wait until it produces blocks and return it with its chain id.
    """
    w3 = get_web3(rpc_url)

    logger.info("Successfully dialed client %s at %s", name, rpc_url)

    wait_for_chains_start({name: w3}, timeout=timeout)

    chain_id = w3.eth.chain_id

    logger.info("Successfully connected to %s (chainId %s)", name, chain_id)

    return w3, chain_id
