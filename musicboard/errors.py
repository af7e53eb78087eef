"""Module errors: structured error taxonomy for the MusicBoard client."""
#
# PURPOSE:
# Every failure the client can surface to a caller has an error code and a
# typed exception. The MusicBoard facade catches these at the call site and
# turns them into a status message; nothing is allowed to escape into the
# event loop.
#
# ERROR CODE FORMAT:
# - WALLET_XXX: Wallet/session errors
# - SDK_XXX: Encryption capability errors
# - LEDGER_XXX: Ledger read/write errors
# - TX_XXX: Transaction lifecycle errors
#
# USAGE:
#   from musicboard.errors import NoSessionError
#
#   raise NoSessionError("Connect a wallet before publishing")
#
import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Wallet / Session Errors
    NO_WALLET_PROVIDER = "WALLET_001"
    NO_SESSION = "WALLET_002"

    # Capability Errors
    ENVIRONMENT_UNSUPPORTED = "SDK_001"
    SCRIPT_LOAD_FAILED = "SDK_002"
    BOOT_FAILED = "SDK_003"
    CAPABILITY_NOT_READY = "SDK_004"
    DECRYPT_UNAVAILABLE = "SDK_005"

    # Ledger Errors
    VALIDATION_FAILED = "LEDGER_001"
    CHAIN_ERROR = "LEDGER_002"
    APPLAUSE_IN_FLIGHT = "LEDGER_003"

    # Transaction Errors
    TX_TIMEOUT = "TX_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class MusicBoardError(Exception):
    """
    Base exception with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "WALLET_002")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    default_code = ErrorCode.SYSTEM_INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ):
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with code, message and details
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class NoWalletProviderError(MusicBoardError):
    """Raised when no wallet transport is available to connect through."""
    default_code = ErrorCode.NO_WALLET_PROVIDER


class NoSessionError(MusicBoardError):
    """Raised when a write is attempted without an active signing session."""
    default_code = ErrorCode.NO_SESSION


class EnvironmentUnsupportedError(MusicBoardError):
    """Raised when the script-injection path is needed but no host runtime exists."""
    default_code = ErrorCode.ENVIRONMENT_UNSUPPORTED


class ScriptLoadError(MusicBoardError):
    """Raised when the remote capability script fails to load."""
    default_code = ErrorCode.SCRIPT_LOAD_FAILED


class BootError(MusicBoardError):
    """Raised when the capability instance cannot be created. Terminal for the runtime."""
    default_code = ErrorCode.BOOT_FAILED


class CapabilityNotReadyError(MusicBoardError):
    default_code = ErrorCode.CAPABILITY_NOT_READY


class DecryptUnavailableError(MusicBoardError):
    default_code = ErrorCode.DECRYPT_UNAVAILABLE


class NoteValidationError(MusicBoardError):
    """Raised when a required note field is empty."""
    default_code = ErrorCode.VALIDATION_FAILED


class ChainError(MusicBoardError):
    """Raised when a transaction is rejected or reverted."""
    default_code = ErrorCode.CHAIN_ERROR


class ApplauseInFlightError(MusicBoardError):
    default_code = ErrorCode.APPLAUSE_IN_FLIGHT


class ConfirmationTimeoutError(MusicBoardError):
    default_code = ErrorCode.TX_TIMEOUT


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> MusicBoardError:
    """
    Convert a generic exception to a MusicBoardError.

    Useful for catching unexpected exceptions from collaborators (wallet,
    contract binding, capability SDK) and wrapping them in structured errors.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while submitting applause")

    Returns:
        MusicBoardError with appropriate code and message
    """
    if isinstance(error, MusicBoardError):
        return error

    error_type = type(error).__name__
    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    return MusicBoardError(
        message,
        details={
            "original_type": error_type,
            "original_message": str(error),
        },
    )


def error_message(error: BaseException) -> str:
    """Return the human-readable part of an error, without the code prefix."""
    if isinstance(error, MusicBoardError):
        return error.message
    return str(error) or type(error).__name__


__all__ = [
    "ErrorCode",
    "MusicBoardError",
    "NoWalletProviderError",
    "NoSessionError",
    "EnvironmentUnsupportedError",
    "ScriptLoadError",
    "BootError",
    "CapabilityNotReadyError",
    "DecryptUnavailableError",
    "NoteValidationError",
    "ChainError",
    "ApplauseInFlightError",
    "ConfirmationTimeoutError",
    "handle_error",
    "error_message",
]
