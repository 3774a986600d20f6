import logging
from typing import Optional

from eth_typing import ChecksumAddress
from eth_utils.address import to_checksum_address
from web3.contract import Contract

from utils.config import ROOT_CLAIM_INDEX, ZERO_ADDRESS

from .custom_errors import DisputeGameError
from .types import DisputeGame, GameSearchResult, GameStatus

logger = logging.getLogger(__name__)


def game_l2_block_number(extra_data: bytes) -> int:
    """The L2 block a game claims is the first 32 bytes of its extra data."""
    if len(extra_data) < 32:
        raise DisputeGameError(
            f"dispute game extra data must hold at least 32 bytes, got {len(extra_data)}"
        )

    return int.from_bytes(extra_data[:32], "big")


def find_latest_game(
    dispute_game_factory: Contract,
    portal: Contract,
    game_id: Optional[int] = None,
) -> Optional[GameSearchResult]:
    """
    Locate the most recent dispute game of the portal's respected game type.

    Parameters
    ----------
    dispute_game_factory : Contract
        `DisputeGameFactory` on L1.

    portal : Contract
        `OptimismPortal2` on L1, queried for `respectedGameType()`.

    game_id : int | None, optional
        Search backwards from this index instead of the newest game.

    Returns
    -------
    GameSearchResult | None
        ``None`` when no game of the respected type has been created yet.
    """
    game_count = dispute_game_factory.functions.gameCount().call()

    if game_count == 0:
        logger.info("no dispute game has been created yet")
        return None

    respected_game_type = portal.functions.respectedGameType().call()

    start = game_count - 1 if game_id is None else game_id

    latest_games = dispute_game_factory.functions.findLatestGames(
        respected_game_type,
        start,
        1,
    ).call()

    if not latest_games:
        logger.info("no dispute game of type %s found", respected_game_type)
        return None

    latest_game = latest_games[0]

    if not latest_game or not len(latest_game) == 5:
        raise DisputeGameError(
            "`Game` must return a tuple of size 5. Invalid dispute game."
        )

    game_result: GameSearchResult = {
        "index": latest_game[0],
        "metadata": latest_game[1],
        "timestamp": latest_game[2],
        "root_claim": latest_game[3],
        "extra_data": latest_game[4],
    }

    return game_result


def get_game_implementation(
    dispute_game_factory: Contract, game_type: int
) -> ChecksumAddress:
    """Address of the implementation registered for `game_type`."""
    implementation = to_checksum_address(
        dispute_game_factory.functions.gameImpls(game_type).call()
    )

    if implementation == ZERO_ADDRESS:
        raise DisputeGameError(
            f"game type {game_type} not set on DisputeGameFactory contract"
        )

    return implementation


def load_dispute_game(game_contract: Contract, index: Optional[int] = None) -> DisputeGame:
    """Read the fields of a fault dispute game that drive its resolution."""
    functions = game_contract.functions

    return DisputeGame(
        address=to_checksum_address(game_contract.address),
        l2_block_number=functions.l2BlockNumber().call(),
        created_at=functions.createdAt().call(),
        status=GameStatus(functions.status().call()),
        resolved_at=functions.resolvedAt().call(),
        max_clock_duration=functions.maxClockDuration().call(),
        challenger_duration=functions.getChallengerDuration(ROOT_CLAIM_INDEX).call(),
        claim_resolved=functions.resolvedSubgames(ROOT_CLAIM_INDEX).call(),
        index=index,
    )
