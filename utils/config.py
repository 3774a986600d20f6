import os
from enum import Enum, StrEnum
from typing import Dict, Final, TypedDict

from eth_typing import ChecksumAddress
from eth_utils.address import to_checksum_address


class ENV(StrEnum):
    L1_RPC_URL = "L1_RPC_URL"
    L2_RPC_URL = "L2_RPC_URL"
    PRIVATE_KEY = "PRIVATE_KEY"
    OPTIMISM_PORTAL_ADDRESS = "OPTIMISM_PORTAL_ADDRESS"
    DISPUTE_GAME_FACTORY_ADDRESS = "DISPUTE_GAME_FACTORY_ADDRESS"


class ChainName(StrEnum):
    OP_SEPOLIA = "OP_SEPOLIA"
    BASE_SEPOLIA = "BASE_SEPOLIA"


class ContractType(TypedDict):
    address: ChecksumAddress
    ABI: str


def _contract(address: str, abi_path: str) -> ContractType:
    return {
        "address": to_checksum_address(address),
        "ABI": abi_path,
    }


# GAS ESTIMATE

MULTIPLIER = 1.5
BUFFER = 0


# TIMEOUTS (seconds)

RECEIPT_TIMEOUT = 120
RECEIPT_POLL_LATENCY = 1.0
READINESS_TIMEOUT = 120
READINESS_POLL_INTERVAL = 1.0
# L1 -> L2 deposits are picked up once the sequencer sees the L1 block
DEPOSIT_TIMEOUT = 600


# OP STACK CONFIG

_ABI_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "withdrawals", "ABI")

ABI_OPTIMISM_PORTAL = os.path.join(_ABI_DIR, "OptimismPortal2.json")
ABI_DISPUTE_GAME_FACTORY = os.path.join(_ABI_DIR, "DisputeGameFactory.json")
ABI_L2_TO_L1_MESSAGE_PASSER = os.path.join(_ABI_DIR, "L2ToL1MessagePasser.json")
ABI_L2_STANDARD_BRIDGE = os.path.join(_ABI_DIR, "L2StandardBridge.json")
ABI_FAULT_DISPUTE_GAME = os.path.join(_ABI_DIR, "FaultDisputeGame.json")

ZERO_ADDRESS: Final[ChecksumAddress] = to_checksum_address(
    "0x0000000000000000000000000000000000000000"
)

# https://github.com/ethereum-optimism/optimism/blob/79cfece0e55f363c06e98e1019eb952cae18c858/packages/contracts-bedrock/src/L2/L2ToL1MessagePasser.sol#L21
RECEIVE_DEFAULT_GAS_LIMIT = 100_000

# plain ETH transfer between externally owned accounts
TRANSFER_GAS_LIMIT = 21_000

# root claim of a fault dispute game
ROOT_CLAIM_INDEX = 0

PERMISSIONED_GAME_TYPE = 1


class OP_STACK_ETHEREUM(Enum):
    OPTIMISM_PORTAL = "OPTIMISM_PORTAL"
    DISPUTE_GAME_FACTORY = "DISPUTE_GAME_FACTORY"


class OP_STACK_L2(Enum):
    L2_TO_L1_MESSAGE_PASSER = "L2_TO_L1_MESSAGE_PASSER"
    L2_STANDARD_BRIDGE = "L2_STANDARD_BRIDGE"


# Predeploys share the same address on every OP-Stack chain
OP_STACK_L2_CONTRACTS: Final[Dict[OP_STACK_L2, ContractType]] = {
    OP_STACK_L2.L2_TO_L1_MESSAGE_PASSER: _contract(
        "0x4200000000000000000000000000000000000016", ABI_L2_TO_L1_MESSAGE_PASSER
    ),
    OP_STACK_L2.L2_STANDARD_BRIDGE: _contract(
        "0x4200000000000000000000000000000000000010", ABI_L2_STANDARD_BRIDGE
    ),
}

LEGACY_ERC20_ETH: Final[ChecksumAddress] = to_checksum_address(
    "0xDeadDeAddeAddEAddeadDEaDDEAdDeaDDeAD0000"
)


OP_STACK_ETHEREUM_CONTRACTS: Final[
    Dict[ChainName, Dict[OP_STACK_ETHEREUM, ContractType]]
] = {
    ChainName.OP_SEPOLIA: {
        OP_STACK_ETHEREUM.OPTIMISM_PORTAL: _contract(
            "0x16FC5058F25648194471939DF75CF27A2FDC48BC", ABI_OPTIMISM_PORTAL
        ),
        OP_STACK_ETHEREUM.DISPUTE_GAME_FACTORY: _contract(
            "0x05F9613aDB30026FFd634f38e5C4dFd30a197Fa1", ABI_DISPUTE_GAME_FACTORY
        ),
    },
    ChainName.BASE_SEPOLIA: {
        OP_STACK_ETHEREUM.OPTIMISM_PORTAL: _contract(
            "0x49f53e41452C74589E85cA1677426Ba426459e85", ABI_OPTIMISM_PORTAL
        ),
        OP_STACK_ETHEREUM.DISPUTE_GAME_FACTORY: _contract(
            "0xd6E6dBf4F7EA0ac412fD8b65ED297e64BB7a06E1", ABI_DISPUTE_GAME_FACTORY
        ),
    },
}
