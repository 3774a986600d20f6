"""
Collection of the proof parameters for `OptimismPortal.proveWithdrawalTransaction`.

Nothing here computes a proof: the L2 node's `eth_getProof` produces the
storage proof and the block header supplies the remaining output root fields.
This module only fetches them for the block a dispute game claims and checks
the result against the game's root claim.
"""

import logging
from typing import List, Protocol

from eth_abi.abi import encode
from eth_utils.conversions import to_bytes
from hexbytes import HexBytes
from web3 import Web3
from web3.types import BlockData, MerkleProof

from .custom_errors import InvalidRootClaimError, ProofGenerationError
from .games import game_l2_block_number
from .types import GameSearchResult, OutputRootProof, ProveParameters, WithdrawalRecord

logger = logging.getLogger(__name__)

OUTPUT_VERSION_V0 = (0).to_bytes(32, byteorder="big")


class WitnessGenerator(Protocol):
    def prove_parameters(
        self, record: WithdrawalRecord, game: GameSearchResult
    ) -> ProveParameters: ...


def get_storage_slot(withdrawal_hash: bytes) -> HexBytes:
    """
    Compute the EVM storage slot in the `L2ToL1MessagePasser`
    that records whether a given withdrawal was sent.
    """
    # The sentMessages mapping is the 0th storage slot in the L2ToL1MessagePasser contract.
    # ref: https://specs.optimism.io/fault-proof/stage-one/optimism-portal.html#block-output
    return HexBytes(Web3.keccak(bytes(withdrawal_hash) + (0).to_bytes(32, byteorder="big")))


def compute_output_root(output_root_proof: OutputRootProof) -> HexBytes:
    return HexBytes(
        Web3.keccak(
            encode(["bytes32", "bytes32", "bytes32", "bytes32"], list(output_root_proof))
        )
    )


class RpcWitnessGenerator:
    """
    Builds `ProveParameters` from an L2 node that serves `eth_getProof`.

    Parameters
    ----------
    l2_provider : Web3

    message_passer_address : ChecksumAddress
        `L2ToL1MessagePasser` predeploy whose storage is proven.
    """

    def __init__(self, l2_provider: Web3, message_passer_address: str) -> None:
        self.l2_provider = l2_provider
        self.message_passer_address = message_passer_address

    def _get_proof(self, withdrawal_hash: bytes, block_number: int) -> MerkleProof:
        storage_slot = get_storage_slot(withdrawal_hash)

        proof: MerkleProof = self.l2_provider.eth.get_proof(
            self.message_passer_address,
            [int.from_bytes(storage_slot, "big")],
            block_number,
        )

        if not proof:
            raise ProofGenerationError(f"get_proof returned type {type(proof)}")

        return proof

    def _get_withdrawal_proof(self, proof: MerkleProof) -> List[bytes]:
        storage_proofs = proof.get("storageProof")

        if not storage_proofs or len(storage_proofs) == 0:
            raise ProofGenerationError("No storage proofs returned")

        storage_proof = storage_proofs[0]

        return [
            to_bytes(hexstr=node) if isinstance(node, str) else bytes(node)
            for node in storage_proof["proof"]
        ]

    def _get_output_root_proof(
        self, proof: MerkleProof, game_block: BlockData
    ) -> OutputRootProof:
        state_root = game_block.get("stateRoot")
        block_hash = game_block.get("hash")
        storage_hash = proof.get("storageHash")

        if not state_root:
            raise ProofGenerationError("Error finding `stateRoot` in `BlockData`")

        if not block_hash:
            raise ProofGenerationError("Error finding `hash` in `BlockData`")

        if not storage_hash:
            raise ProofGenerationError("Error finding `storageHash` in `MerkleProof`")

        return OutputRootProof(
            version=OUTPUT_VERSION_V0,
            state_root=bytes(state_root),
            message_passer_storage_root=bytes(storage_hash),
            latest_block_hash=bytes(block_hash),
        )

    def prove_parameters(
        self, record: WithdrawalRecord, game: GameSearchResult
    ) -> ProveParameters:
        """
        Assemble the arguments for `proveWithdrawalTransaction` against `game`.

        Raises `InvalidRootClaimError` if the output root rebuilt from the L2
        node doesn't match the root claim of the game.
        """
        block_number = game_l2_block_number(game["extra_data"])

        if block_number < record.block_number:
            raise ProofGenerationError(
                f"game {game['index']} claims L2 block {block_number}, "
                f"before withdrawal block {record.block_number}"
            )

        game_block: BlockData = self.l2_provider.eth.get_block(block_number)
        proof = self._get_proof(record.withdrawal_hash, block_number)

        output_root_proof = self._get_output_root_proof(proof, game_block)

        computed_claim = compute_output_root(output_root_proof)
        root_claim = HexBytes(game["root_claim"])

        if computed_claim != root_claim:
            raise InvalidRootClaimError(
                f"Claim doesn't match. `computed_claim:{computed_claim.to_0x_hex()} "
                f"!= root_claim: {root_claim.to_0x_hex()}`"
            )

        logger.info(
            "constructed proof for withdrawal %s against game %s (L2 block %s)",
            record.withdrawal_hash.to_0x_hex(),
            game["index"],
            block_number,
        )

        return ProveParameters(
            nonce=record.nonce,
            sender=record.sender,
            target=record.target,
            value=record.value,
            gas_limit=record.gas_limit,
            data=record.data,
            output_root_proof=output_root_proof,
            withdrawal_proof=self._get_withdrawal_proof(proof),
            l2_output_index=game["index"],
        )
