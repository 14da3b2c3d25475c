"""
Ledger exception hierarchy for Vault Share.

Provides typed exceptions for substrate and program failures so callers can
tell validation problems from account conflicts and program rejections, and
decide which operations are safe to retry.
"""

from __future__ import annotations
from enum import Enum
from typing import Optional, Any, Dict, Union


class LedgerError(Exception):
    """Base exception for all ledger-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(LedgerError):
    """Raised when a transaction fails structural validation before execution."""
    pass


class SignatureError(ValidationError):
    """Raised when a required signature is missing or does not verify."""
    pass


class TransactionTooLargeError(ValidationError):
    """Raised when the serialized transaction exceeds the packet size ceiling."""

    def __init__(self, message: str, size: int, limit: int, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.size = size
        self.limit = limit


class DuplicateTransactionError(ValidationError):
    """Raised when an already committed transaction is submitted again."""
    pass


class StaleTransactionError(ValidationError):
    """Raised when a transaction's recent slot is ahead of the ledger or too old."""
    pass


class TooManyAccountLocksError(ValidationError):
    """Raised when a transaction references more accounts than may be locked."""
    pass


class InsufficientFundsError(ValidationError):
    """Raised when an account lacks lamports or tokens for a movement."""
    pass


# ==================== Account Errors ====================


class AccountError(LedgerError):
    """Raised when account access or creation fails."""
    pass


class AccountAlreadyInUseError(AccountError):
    """Raised when creating an account at an address that is already occupied."""
    pass


class AccountNotInTransactionError(AccountError):
    """Raised when an instruction touches an account its transaction did not list."""
    pass


class ReadonlyAccountModifiedError(AccountError):
    """Raised when an account passed as read-only changed during execution."""
    pass


class UnknownProgramError(AccountError):
    """Raised when an instruction targets a program the ledger does not host."""
    pass


# ==================== Execution Errors ====================


class ComputeBudgetExceededError(LedgerError):
    """Raised when an instruction consumes more compute units than requested."""
    pass


class LookupTableError(LedgerError):
    """Raised when a lookup table cannot be created, extended or resolved."""
    pass


class LookupTableNotReadyError(LookupTableError):
    """Raised when a lookup table never became resolvable within the poll budget."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ProgramError(LedgerError):
    """Raised by a program to reject an instruction with a stable error code."""

    def __init__(self, code: Union[Enum, str], message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.code = code

    @property
    def code_name(self) -> str:
        return self.code.name if isinstance(self.code, Enum) else str(self.code)

    def __str__(self) -> str:
        return f"{self.code_name}: {self.message}"


class TransactionError(LedgerError):
    """Raised when a transaction fails; no state from it persists.

    Attributes:
        instruction_index: Index of the failing instruction, if any
        cause: The underlying error
    """

    def __init__(
        self,
        message: str,
        cause: Exception,
        instruction_index: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.cause = cause
        self.instruction_index = instruction_index

    @property
    def code(self) -> Optional[Union[Enum, str]]:
        """Program error code of the cause, if the cause was a program rejection."""
        if isinstance(self.cause, ProgramError):
            return self.cause.code
        return None


# ==================== Configuration Errors ====================


class ConfigurationError(LedgerError):
    """Raised when required configuration is missing or invalid."""
    pass


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a recoverable error.

    Args:
        exc: The exception to check

    Returns:
        True if the error is recoverable and the operation can be retried
    """
    if isinstance(exc, TransactionError):
        return exc.recoverable or is_recoverable_error(exc.cause)
    if isinstance(exc, LedgerError):
        return exc.recoverable

    recoverable_types = (
        ConnectionError,
        TimeoutError,
    )
    return isinstance(exc, recoverable_types)


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, LedgerError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, TransactionError):
        context["cause_type"] = type(exc.cause).__name__
        if exc.instruction_index is not None:
            context["instruction_index"] = exc.instruction_index
        if exc.code is not None:
            context["error_code"] = exc.code.name if isinstance(exc.code, Enum) else exc.code

    if isinstance(exc, ProgramError):
        context["error_code"] = exc.code_name

    if isinstance(exc, TransactionTooLargeError):
        context["size"] = exc.size
        context["limit"] = exc.limit

    return context
