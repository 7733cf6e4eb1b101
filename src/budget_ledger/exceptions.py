"""Exception hierarchy for the budget ledger."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all budget ledger errors."""


class ValidationError(LedgerError):
    """Raised when an action is rejected before any write happens."""


class ReauthenticationError(ValidationError):
    """Raised when the password challenge for a guarded action fails."""

    def __init__(self, action: str, reason: str = "Password verification failed"):
        self.action = action
        self.reason = reason
        super().__init__(f"Re-authentication required for '{action}': {reason}")


class InvalidTransitionError(LedgerError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class DocumentNotFoundError(LedgerError):
    """Raised when a document path does not exist in the store."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Document not found: {path}")


class SubAccountNotFoundError(DocumentNotFoundError):
    """Raised when no account of the project owns the given sub-account."""

    def __init__(self, project_id: str, sub_account_id: str):
        self.project_id = project_id
        self.sub_account_id = sub_account_id
        super().__init__(f"projects/{project_id}/accounts/*/subaccounts/{sub_account_id}")


class ConcurrencyConflictError(LedgerError):
    """Raised when optimistic retries on a document are exhausted."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification of {path} not resolved after {attempts} attempts"
        )


class TerminalWriteError(LedgerError):
    """Raised when the parent status write fails after the sub-account pass.

    The entity keeps its prior status. Sub-account adjustments that were
    already applied are NOT rolled back; `result` carries them so a caller
    can decide whether to run the compensations.
    """

    def __init__(self, path: str, cause: Exception, result: object | None = None):
        self.path = path
        self.cause = cause
        self.result = result
        super().__init__(f"Failed to persist status for {path}: {cause}")
