"""Error taxonomy for the metadata and ledger engine."""


class LedgerError(Exception):
    """Base class for engine errors surfaced to callers as failed results."""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Raised for missing or malformed input. Never retried."""

    code = "validation"


class ConflictError(LedgerError):
    """Raised when a claim was already recorded for the same user and market."""

    code = "conflict"

    def __init__(self, message: str, transaction_id: str, points_earned: int):
        super().__init__(message)
        self.transaction_id = transaction_id
        self.points_earned = points_earned


class InsufficientFundsError(LedgerError):
    """Raised when a debit or withdrawal exceeds the current balance."""

    code = "insufficient_funds"


class StorageError(LedgerError):
    """Raised when a persistence read or write fails."""

    code = "storage"


HTTP_STATUS_BY_CODE = {
    ValidationError.code: 400,
    InsufficientFundsError.code: 400,
    ConflictError.code: 409,
    StorageError.code: 500,
}


def http_status_for(code: str | None) -> int:
    """HTTP status for a failed result's error code."""
    return HTTP_STATUS_BY_CODE.get(code, 500)
