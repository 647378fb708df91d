"""
LEDGERLOCK - Centralized Exception Hierarchy
============================================

Structured exception types for the authorization engine and the
ledger adapter it commits through.

Exception Categories:
    - InvalidInput: Malformed or missing fields (never retried)
    - AlreadyRegistered: Address already holds an identity
    - NotFound: Read view found nothing for the key
    - Unauthorized: Signer lacks the authority the operation needs
    - CommitFailed: Ledger rejected or could not finalize a write
    - LoggingFailed: Audit commit of an access attempt did not land
    - Unavailable: Transient ledger or network failure
"""

from typing import Any, Dict, Optional


class LedgerLockError(Exception):
    """
    Base exception for all LedgerLock errors.

    Attributes:
        message: Human-readable error description
        code: Error kind for programmatic handling
        details: Optional dict with additional context
        recoverable: Whether the caller may retry the whole operation
    """

    code: str = "LedgerLockError"
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the error envelope returned to callers."""
        return {
            "kind": self.code,
            "reason": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


# =============================================================================
# CALLER ERRORS
# =============================================================================


class InvalidInput(LedgerLockError):
    """Malformed or missing request fields."""

    code = "InvalidInput"


class AlreadyRegistered(LedgerLockError):
    """Address already has a registered identity."""

    code = "AlreadyRegistered"

    def __init__(self, address: str, **kwargs):
        super().__init__(f"Identity already registered: {address}", **kwargs)
        self.address = address


class NotFound(LedgerLockError):
    """Requested entity does not exist on the ledger."""

    code = "NotFound"


class Unauthorized(LedgerLockError):
    """Signer lacks the authority required for the operation."""

    code = "Unauthorized"

    def __init__(self, message: str, signer: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.signer = signer


# =============================================================================
# LEDGER ERRORS
# =============================================================================


class LedgerError(LedgerLockError):
    """Base exception for failures reported by the ledger adapter."""

    pass


class CommitFailed(LedgerError):
    """Ledger rejected or could not finalize a write."""

    code = "CommitFailed"
    recoverable = True


class Unavailable(LedgerError):
    """Transient ledger unavailability; the full protocol may be retried."""

    code = "Unavailable"
    recoverable = True


class LoggingFailed(LedgerLockError):
    """
    Audit commit for an access attempt did not succeed.

    The access decision is undetermined and must not be honored.
    """

    code = "LoggingFailed"

    def __init__(
        self,
        requester: str,
        resource: str,
        reason: str,
        **kwargs,
    ):
        super().__init__(
            f"Access attempt {requester} -> {resource} was not logged: {reason}",
            **kwargs,
        )
        self.requester = requester
        self.resource = resource


__all__ = [
    "LedgerLockError",
    "InvalidInput",
    "AlreadyRegistered",
    "NotFound",
    "Unauthorized",
    "LedgerError",
    "CommitFailed",
    "Unavailable",
    "LoggingFailed",
]
