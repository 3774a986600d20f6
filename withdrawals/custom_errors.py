from typing import Any, Optional

from hexbytes import HexBytes


class OPStackError(Exception):
    """Base Exception for OP Stack withdrawal operations."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class InputValidationError(OPStackError, ValueError):
    """Raised for malformed user input (addresses, amounts, hashes)."""

    pass


class InvalidChainError(OPStackError):
    """Raised when an invalid chain or contract is specified"""

    pass


class EventParseError(OPStackError):
    """Raised in case a transaction doesn't emit the expected event"""

    pass


class DisputeGameError(OPStackError):
    """Raised when a dispute game cannot be located or decoded"""

    pass


class ProofGenerationError(OPStackError):
    """Raised when the withdrawal proof parameters cannot be assembled"""

    pass


class InvalidRootClaimError(ProofGenerationError):
    """Raised when the computed output root doesn't match the game's root claim"""

    pass


class CheckWithdrawalError(OPStackError):
    """Raised when `OptimismPortal.checkWithdrawal` reverts on a dry-run."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        error_name: Optional[str] = None,
    ):
        super().__init__(message, original_error)
        self.error_name = error_name

    @classmethod
    def from_error_info(cls, error_info: Any, error: Exception) -> "CheckWithdrawalError":
        if error_info:
            return cls(
                f"`{error_info.signature}` returned by OptimismPortal.checkWithdrawal",
                original_error=error,
                error_name=error_info.name,
            )

        return cls(f"OptimismPortal.checkWithdrawal failed: {error}", original_error=error)


class TransactionRevertedError(OPStackError):
    """Raised when a mined transaction has a failed status."""

    def __init__(self, tx_hash: HexBytes, receipt: Any, trace: Any = None):
        super().__init__(f"transaction {HexBytes(tx_hash).to_0x_hex()} reverted")
        self.tx_hash = HexBytes(tx_hash)
        self.receipt = receipt
        self.trace = trace


class TimeoutErrorBase(OPStackError):
    """Base for errors signalling the caller should re-poll or re-submit."""

    pass


class ReceiptTimeoutError(TimeoutErrorBase):
    """Raised when a transaction receipt doesn't arrive in time"""

    def __init__(
        self,
        tx_hash: HexBytes,
        timeout: float,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            f"no receipt for {HexBytes(tx_hash).to_0x_hex()} after {timeout}s",
            original_error,
        )
        self.tx_hash = HexBytes(tx_hash)
        self.timeout = timeout


class ChainNotReadyError(TimeoutErrorBase):
    """Raised when chains fail to report block production before the deadline"""

    pass
