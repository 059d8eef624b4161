"""
Ledger-specific exception hierarchy for vestledger.

Provides typed exceptions for supply, access, vesting and storage operations
so callers can tell failure kinds apart and no operation reports failure
through a status flag.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


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


# ==================== Configuration Errors ====================


class InvalidConfigError(LedgerError):
    """Raised when a construction-time invariant is violated.

    Examples: zero max supply, zero escrow address.
    """
    pass


class ConfigurationError(InvalidConfigError):
    """Raised when environment configuration is missing or invalid."""
    pass


# ==================== Validation Errors ====================


class ValidationError(LedgerError):
    """Raised when input data fails validation rules."""
    pass


class InvalidScheduleError(ValidationError):
    """Raised when vesting schedule parameters are malformed.

    Examples: zero beneficiary, zero amount, zero duration, cliff past duration.
    """
    pass


class ArithmeticOverflowError(ValidationError):
    """Raised when a checked uint256 operation leaves the valid range."""
    pass


# ==================== Access Errors ====================


class AccessError(LedgerError):
    """Raised when a caller is not allowed to perform an operation."""
    pass


class UnauthorizedError(AccessError):
    """Raised when the caller lacks the capability for a privileged operation."""
    pass


# ==================== Supply Errors ====================


class SupplyError(LedgerError):
    """Raised when token issuance or balances are inconsistent."""
    pass


class SupplyExceededError(SupplyError):
    """Raised when a mint would push total supply above the ceiling."""
    pass


class InsufficientBalanceError(SupplyError):
    """Raised when an account lacks the balance for a transfer.

    Escrow transfers should never hit this; seeing it from the vesting engine
    means an accounting invariant is broken somewhere else.
    """
    pass


# ==================== Vesting Errors ====================


class VestingError(LedgerError):
    """Raised when a vesting operation cannot proceed."""
    pass


class ScheduleExistsError(VestingError):
    """Raised when a beneficiary already has a vesting schedule."""
    pass


class NoScheduleError(VestingError):
    """Raised when a beneficiary has no vesting schedule."""
    pass


class NothingDueError(VestingError):
    """Raised when a release finds no vested, unreleased tokens."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        # More tokens vest as time passes
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


# ==================== Storage Errors ====================


class StorageError(LedgerError):
    """Raised when schedule persistence fails."""
    pass


class CorruptedDataError(StorageError):
    """Raised when stored schedule data is corrupted or fails its checksum."""
    pass


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, LedgerError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context
