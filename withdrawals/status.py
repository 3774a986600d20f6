"""
Withdrawal status derivation.

The status of a withdrawal is never stored. It is recomputed from a
`WithdrawalFacts` snapshot every time, so classifying the same snapshot twice
gives the same answer and later snapshots never rank lower than earlier ones
(on-chain facts only move forward).
"""

from .types import WithdrawalFacts, WithdrawalStatus


def classify_withdrawal(facts: WithdrawalFacts) -> WithdrawalStatus:
    """
    Map a snapshot of on-chain facts to a single `WithdrawalStatus`.

    Parameters
    ----------
    facts : WithdrawalFacts
        * ``withdrawal_block_number``: L2 block that emitted the withdrawal
        * ``anchored_block_number``: L2 block claimed by the latest game,
          ``None`` when no game has been created yet
        * ``proven``: `provenWithdrawals(hash, prover)` record, if read
        * ``game``: dispute game the proof points to, if read
        * ``finalized``: `finalizedWithdrawals(hash)`

    Returns
    -------
    WithdrawalStatus
    """
    # finalization can't be undone, whatever the game or proof records say
    if facts.finalized:
        return WithdrawalStatus.FINALIZED

    status = WithdrawalStatus.INITIALIZED

    if (
        facts.anchored_block_number is not None
        and facts.anchored_block_number >= facts.withdrawal_block_number
    ):
        status = WithdrawalStatus.PROVABLE

    if facts.proven is None or not facts.proven.is_proven:
        return status

    status = WithdrawalStatus.PROVEN

    game = facts.game
    if game is None:
        return status

    if game.claim_resolved:
        status = WithdrawalStatus.CLAIM_RESOLVED

    if game.resolved_at != 0:
        status = WithdrawalStatus.GAME_RESOLVED

    return status
