import os
import json
from decimal import Decimal
from typing import NamedTuple, Optional, Sequence
from dotenv import load_dotenv
from eth_account.signers.local import LocalAccount
from eth_typing import ABIComponent, ChecksumAddress
from eth_utils.address import is_address, to_checksum_address
from hexbytes import HexBytes
from web3 import Account, Web3
from web3.contract import Contract
from web3.exceptions import ContractCustomError

from withdrawals.custom_errors import InputValidationError

from .config import BUFFER, ENV, MULTIPLIER, ZERO_ADDRESS

UINT256_MAX = (1 << 256) - 1


def add_gas_buffer(
    gas_estimate: int, multiplier: Optional[float] = None, buffer: Optional[int] = None
) -> int:
    """
    Scale a gas estimate by `multiplier` (rounded down) and add a fixed `buffer`.

    The multiplication goes through `Decimal` so that the padded limit is the
    same for identical inputs regardless of float representation.
    """
    if multiplier is not None:
        if multiplier < 1.0:
            raise InputValidationError(
                "`multiplier` should be >= 1.0 to ensure sufficient gas"
            )
        effective_multiplier = multiplier
    else:
        effective_multiplier = MULTIPLIER

    # Use provided buffer, fallback to global BUFFER if not provided
    if buffer is not None:
        if buffer < 0:
            raise InputValidationError("`buffer` must be non-negative")
        effective_buffer = buffer
    else:
        effective_buffer = BUFFER

    scaled = Decimal(gas_estimate) * Decimal(str(effective_multiplier))

    return int(scaled) + effective_buffer


def get_account(private_key: Optional[str] = None) -> LocalAccount:
    if private_key is None:
        load_dotenv()
        private_key = os.getenv(ENV.PRIVATE_KEY)

    if type(private_key) is not str or not private_key.strip():
        raise InputValidationError(
            f"Pass --private-key or store {ENV.PRIVATE_KEY} in .env"
        )

    try:
        account: LocalAccount = Account.from_key(private_key.strip())
    except (ValueError, TypeError) as e:
        raise InputValidationError("failed to parse private key", original_error=e)

    return account


def get_abi(path: str) -> list:
    if os.path.isfile(path):
        with open(path, "r") as file:
            abi = json.load(file)

        return abi
    else:
        raise FileNotFoundError(f"File path not found: {path}")


def safe_parse_address(address: str) -> ChecksumAddress:
    """
    Parse a hex address, rejecting malformed input and the zero address.
    """
    address = address.strip().lower() if isinstance(address, str) else address

    if not isinstance(address, str) or not is_address(address):
        raise InputValidationError(f"invalid Ethereum address: {address}")

    checksum_address = to_checksum_address(address)

    if checksum_address == ZERO_ADDRESS:
        raise InputValidationError("zero address is not allowed")

    return checksum_address


def parse_uint256(value: str) -> int:
    """Parse a string of ASCII decimal digits into an integer that fits a uint256."""
    digits = value.strip() if isinstance(value, str) else ""

    # int() would also take signs, underscores and non-ASCII digits
    if not (digits.isascii() and digits.isdigit()):
        raise InputValidationError(f"could not parse value as valid uint256: {value}")

    parsed = int(digits, 10)

    if parsed > UINT256_MAX:
        raise InputValidationError(f"value out of uint256 range: {value}")

    return parsed


def parse_tx_hash(value: str) -> HexBytes:
    try:
        tx_hash = HexBytes(value.strip())
    except (AttributeError, ValueError, TypeError) as e:
        raise InputValidationError(f"invalid transaction hash: {value}", original_error=e)

    if len(tx_hash) != 32:
        raise InputValidationError(
            f"transaction hash must be 32 bytes, got {len(tx_hash)}: {value}"
        )

    return tx_hash


class ContractErrorInfo(NamedTuple):
    """
    Named tuple containing contract error information.

    Attributes:
        name: Error name (e.g., "OptimismPortal_ProofNotOldEnough")
        signature: Full error signature (e.g., "OptimismPortal_ProofNotOldEnough()")
        inputs: List of input parameters from ABI
        selector: 4-byte error selector hex string (e.g., "0x80698456")
    """

    name: str
    signature: str
    inputs: Sequence[ABIComponent]
    selector: str


def get_contract_error_info(
    contract: Contract, error: Exception
) -> Optional[ContractErrorInfo]:
    """
    Match a contract error to its ABI definition and return error information.

    Args:
        contract: Web3 Contract instance containing ABI
        error: Exception raised by contract call

    Returns:
        ContractErrorInfo named tuple if matched, None otherwise

    Example:
        >>> try:
        >>>     portal.functions.checkWithdrawal(withdrawal_hash, prover).call()
        >>> except ContractLogicError as e:
        >>>     error_info = get_contract_error_info(portal, e)
        >>>     if error_info:
        >>>         print(f"Error: {error_info.name}")
    """
    if not isinstance(error, ContractCustomError):
        return None

    raw = error.data if isinstance(error.data, str) else error.args[0]
    error_selector = HexBytes(raw)[:4].to_0x_hex()

    for item in contract.abi:
        if item.get("type") != "error":
            continue

        error_name = item.get("name")
        if error_name is None:
            continue

        inputs = item.get("inputs", [])

        input_types = []
        for inp in inputs:
            inp_type = inp.get("type")
            if inp_type is None:
                continue
            input_types.append(inp_type)

        signature = f"{error_name}({','.join(input_types)})"

        hash_bytes = Web3.keccak(text=signature)
        selector = HexBytes(hash_bytes[:4]).to_0x_hex()

        if selector == error_selector:
            return ContractErrorInfo(
                name=error_name,
                signature=signature,
                inputs=inputs,
                selector=selector,
            )

    return None
