from enum import Enum, IntEnum
from typing import List, NamedTuple, Optional, TypedDict

from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3.types import TxReceipt

NONCE_BITS = 240
NONCE_MASK = (1 << NONCE_BITS) - 1


def decode_versioned_nonce(nonce: int) -> int:
    """Drop the version stored in the upper 16 bits, keep the lower 240 bits."""
    return nonce & NONCE_MASK


def decode_nonce_version(nonce: int) -> int:
    return nonce >> NONCE_BITS


class WithdrawalParams(NamedTuple):
    """`Types.WithdrawalTransaction` struct as expected by the OptimismPortal."""

    nonce: int
    sender: ChecksumAddress
    target: ChecksumAddress
    value: int
    gasLimit: int
    data: bytes


class BridgeTransfer(NamedTuple):
    """`WithdrawalInitiated` details emitted by the L2StandardBridge."""

    l1_token: ChecksumAddress
    l2_token: ChecksumAddress
    from_: ChecksumAddress
    to: ChecksumAddress
    amount: int
    extra_data: bytes


class WithdrawalRecord(NamedTuple):
    withdrawal_hash: HexBytes
    nonce: int
    sender: ChecksumAddress
    target: ChecksumAddress
    value: int
    gas_limit: int
    data: bytes
    block_number: int
    timestamp: int
    transaction_hash: HexBytes
    bridge: Optional[BridgeTransfer] = None

    @property
    def decoded_nonce(self) -> int:
        """Sequence number without the version stored in the upper 16 bits."""
        return decode_versioned_nonce(self.nonce)

    @property
    def nonce_version(self) -> int:
        return decode_nonce_version(self.nonce)

    @property
    def params(self) -> WithdrawalParams:
        # the portal hashes the raw (versioned) nonce
        return WithdrawalParams(
            nonce=self.nonce,
            sender=self.sender,
            target=self.target,
            value=self.value,
            gasLimit=self.gas_limit,
            data=self.data,
        )


class GameSearchResult(TypedDict):
    index: int
    metadata: bytes
    timestamp: int
    root_claim: bytes
    extra_data: bytes


class GameStatus(IntEnum):
    IN_PROGRESS = 0
    CHALLENGER_WINS = 1
    DEFENDER_WINS = 2


class DisputeGame(NamedTuple):
    address: ChecksumAddress
    l2_block_number: int
    created_at: int
    status: GameStatus
    resolved_at: int
    max_clock_duration: int
    challenger_duration: int
    claim_resolved: bool
    index: Optional[int] = None


class ProvenWithdrawal(NamedTuple):
    dispute_game_address: ChecksumAddress
    timestamp: int

    @property
    def is_proven(self) -> bool:
        return self.timestamp != 0 and int(self.dispute_game_address, 16) != 0


class OutputRootProof(NamedTuple):
    """
    - `version`: 32-byte proof format version (currently
    `b'\\x00' * 32`).
    - `state_root`: 32-byte post-state root of the L2 block.
    - `message_passer_storage_root`: 32-byte storage root of the
    `L2ToL1MessagePasser` contract in that block.
    - `latest_block_hash`: 32-byte canonical block hash.
    """

    version: bytes
    state_root: bytes
    message_passer_storage_root: bytes
    latest_block_hash: bytes


class ProveParameters(NamedTuple):
    nonce: int
    sender: ChecksumAddress
    target: ChecksumAddress
    value: int
    gas_limit: int
    data: bytes
    output_root_proof: OutputRootProof
    withdrawal_proof: List[bytes]
    l2_output_index: int

    @property
    def params(self) -> WithdrawalParams:
        return WithdrawalParams(
            self.nonce, self.sender, self.target, self.value, self.gas_limit, self.data
        )


class WithdrawalStatus(IntEnum):
    INITIALIZED = 0
    PROVABLE = 1
    PROVEN = 2
    CLAIM_RESOLVED = 3
    GAME_RESOLVED = 4
    FINALIZED = 5

    def __str__(self) -> str:
        return self.name.lower()


class WithdrawalFacts(NamedTuple):
    """Everything the status classifier needs, read once from both chains."""

    withdrawal_block_number: int
    anchored_block_number: Optional[int] = None
    proven: Optional[ProvenWithdrawal] = None
    game: Optional[DisputeGame] = None
    finalized: bool = False


class WithdrawalSummary(NamedTuple):
    record: WithdrawalRecord
    facts: WithdrawalFacts
    status: WithdrawalStatus
    proof_maturity_delay: int


class StepAction(Enum):
    WAIT = "wait"
    SUBMITTED = "submitted"
    NONE = "none"


class StepResult(NamedTuple):
    status: WithdrawalStatus
    action: StepAction
    reason: str
    receipt: Optional[TxReceipt] = None


class DisputeGameState(Enum):
    UNRESOLVED_SUBGAME = "unresolved-subgame"
    SUBGAME_RESOLVED = "subgame-resolved"
    GAME_RESOLVED = "game-resolved"


class DisputeStep(NamedTuple):
    state: DisputeGameState
    action: StepAction
    reason: str
    receipt: Optional[TxReceipt] = None


class DepositTransaction(NamedTuple):
    """
    L2 deposit transaction (type `0x7E`) derived from a `TransactionDeposited`
    log of the OptimismPortal.
    """

    source_hash: HexBytes
    from_: ChecksumAddress
    to: Optional[ChecksumAddress]
    mint: int
    value: int
    gas: int
    is_creation: bool
    data: bytes
