from typing import List, NamedTuple


class FinalizationGate(NamedTuple):
    proven_timestamp: int
    game_resolved_at: int
    proof_maturity_time: int
    finality_time: int
    until_proof_maturity: int
    until_finality: int

    @property
    def is_proven(self) -> bool:
        return self.proven_timestamp != 0

    @property
    def is_game_resolved(self) -> bool:
        return self.game_resolved_at != 0

    @property
    def is_open(self) -> bool:
        return (
            self.is_proven
            and self.is_game_resolved
            and self.until_proof_maturity == 0
            and self.until_finality == 0
        )

    def reasons(self) -> List[str]:
        """Human-readable list of everything that keeps the gate closed."""
        pending = []

        if not self.is_proven:
            pending.append("withdrawal has not been proven")
        elif self.until_proof_maturity > 0:
            pending.append(
                f"proof matures at {self.proof_maturity_time} "
                f"({self.until_proof_maturity}s remaining)"
            )

        if not self.is_game_resolved:
            pending.append("dispute game has not been resolved")
        elif self.until_finality > 0:
            pending.append(
                f"game finality delay ends at {self.finality_time} "
                f"({self.until_finality}s remaining)"
            )

        return pending


def compute_finalization_gate(
    proven_timestamp: int,
    proof_maturity_delay: int,
    game_resolved_at: int,
    game_finality_delay: int,
    now: int,
) -> FinalizationGate:
    """
    Work out whether both the proof maturity delay and the dispute game
    finality delay have elapsed at `now`.

    Both deadlines are inclusive: the gate opens at exactly
    ``proven_timestamp + proof_maturity_delay`` once the finality deadline
    ``game_resolved_at + game_finality_delay`` has also been reached.
    """
    proof_maturity_time = proven_timestamp + proof_maturity_delay
    finality_time = game_resolved_at + game_finality_delay

    return FinalizationGate(
        proven_timestamp=proven_timestamp,
        game_resolved_at=game_resolved_at,
        proof_maturity_time=proof_maturity_time,
        finality_time=finality_time,
        until_proof_maturity=max(0, proof_maturity_time - now),
        until_finality=max(0, finality_time - now),
    )
