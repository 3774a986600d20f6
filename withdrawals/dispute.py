"""
Resolution of the dispute game a withdrawal was proven against.

A fault dispute game resolves in two transactions: `resolveClaim` for the root
claim once its challenger clock has run out, then `resolve` for the game
itself. Either can be sent by anyone, so the game is re-read right before
deciding what to send.
"""

import logging
from typing import Optional, Tuple

from eth_typing import ChecksumAddress
from web3 import Web3
from web3.contract import Contract

from utils.chain import get_abi
from utils.config import ABI_FAULT_DISPUTE_GAME, ROOT_CLAIM_INDEX

from .games import load_dispute_game
from .submitter import TransactionSubmitter
from .types import (
    DisputeGame,
    DisputeGameState,
    DisputeStep,
    StepAction,
    WithdrawalStatus,
)

logger = logging.getLogger(__name__)

RESOLVE_CLAIM = "resolveClaim"
RESOLVE = "resolve"

# status of a proven withdrawal whose game is in the given state
WITHDRAWAL_STATUS_BY_GAME_STATE = {
    DisputeGameState.UNRESOLVED_SUBGAME: WithdrawalStatus.PROVEN,
    DisputeGameState.SUBGAME_RESOLVED: WithdrawalStatus.CLAIM_RESOLVED,
    DisputeGameState.GAME_RESOLVED: WithdrawalStatus.GAME_RESOLVED,
}


def dispute_game_state(game: DisputeGame) -> DisputeGameState:
    if game.resolved_at != 0:
        return DisputeGameState.GAME_RESOLVED

    if game.claim_resolved:
        return DisputeGameState.SUBGAME_RESOLVED

    return DisputeGameState.UNRESOLVED_SUBGAME


def plan_dispute_step(game: DisputeGame) -> Tuple[DisputeGameState, Optional[str], str]:
    """
    Decide the next resolution call for `game`.

    Returns
    -------
    (state, call, reason)
        ``call`` is ``"resolveClaim"``, ``"resolve"`` or ``None`` when there is
        nothing to send (challenge window still open, or game resolved).
    """
    state = dispute_game_state(game)

    if state is DisputeGameState.GAME_RESOLVED:
        return state, None, f"dispute game resolved at {game.resolved_at} ({game.status.name})"

    if state is DisputeGameState.SUBGAME_RESOLVED:
        return state, RESOLVE, "root claim resolved, dispute game unresolved"

    if game.challenger_duration < game.max_clock_duration:
        remaining = game.max_clock_duration - game.challenger_duration
        return (
            state,
            None,
            f"challenge window open: challenger duration {game.challenger_duration}s "
            f"< max clock duration {game.max_clock_duration}s ({remaining}s remaining)",
        )

    return state, RESOLVE_CLAIM, "challenger duration period has passed"


class DisputeGameResolver:
    """
    Drives a fault dispute game from an unresolved root claim to a resolved
    game.

    Parameters
    ----------
    l1_provider : Web3

    submitter : TransactionSubmitter
        Used for `resolveClaim` and `resolve`; its failures propagate.
    """

    def __init__(self, l1_provider: Web3, submitter: TransactionSubmitter) -> None:
        self.l1_provider = l1_provider
        self.submitter = submitter

    def _get_game_contract(self, address: ChecksumAddress) -> Contract:
        return self.l1_provider.eth.contract(
            address=address, abi=get_abi(ABI_FAULT_DISPUTE_GAME)
        )

    def load(self, address: ChecksumAddress) -> DisputeGame:
        return load_dispute_game(self._get_game_contract(address))

    def step(self, address: ChecksumAddress) -> DisputeStep:
        """
        Read the game and send at most one resolution transaction.
        """
        game_contract = self._get_game_contract(address)
        game = load_dispute_game(game_contract)

        state, call, reason = plan_dispute_step(game)

        if call is None:
            action = (
                StepAction.NONE
                if state is DisputeGameState.GAME_RESOLVED
                else StepAction.WAIT
            )
            logger.info("dispute game %s: %s", address, reason)
            return DisputeStep(state, action, reason)

        logger.info("dispute game %s: %s, calling %s()", address, reason, call)

        if call == RESOLVE_CLAIM:
            receipt = self.submitter.submit(
                game_contract.functions.resolveClaim(ROOT_CLAIM_INDEX, 0)
            )
            new_state = DisputeGameState.SUBGAME_RESOLVED
        else:
            receipt = self.submitter.submit(game_contract.functions.resolve())
            new_state = DisputeGameState.GAME_RESOLVED

        logger.info(
            "successfully executed %s() on %s, tx %s",
            call,
            address,
            receipt["transactionHash"].to_0x_hex(),
        )

        return DisputeStep(new_state, StepAction.SUBMITTED, f"{call}() succeeded", receipt)

    def drive(self, address: ChecksumAddress, max_steps: int = 2) -> DisputeStep:
        """
        Step until the game is resolved, a wait is required or `max_steps`
        transactions have been sent.
        """
        result = self.step(address)
        steps = 1

        while (
            result.action is StepAction.SUBMITTED
            and result.state is not DisputeGameState.GAME_RESOLVED
            and steps < max_steps
        ):
            result = self.step(address)
            steps += 1

        return result
