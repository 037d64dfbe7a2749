"""Domain exceptions for the loan tracker.

Routers never build error responses themselves; the handlers registered in
``main.py`` map these classes to HTTP status codes and the response envelope.
"""


class LoanTrackerError(Exception):
    """Base exception for all loan tracker errors."""

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(LoanTrackerError):
    """Raised when input is malformed or out of range. User-correctable."""

    status_code = 400


class InvalidAmount(ValidationError):
    """Raised when principal is not positive or the rate is negative."""


class InvalidRange(ValidationError):
    """Raised when the due date is not after the start date."""

    def __init__(self, start=None, due=None):
        details = {}
        if start is not None:
            details["start_date"] = str(start)
        if due is not None:
            details["due_date"] = str(due)
        super().__init__("Due date must be after start date", details)


class NotFound(LoanTrackerError):
    """Raised when a record is absent or not owned by the caller."""

    status_code = 404

    def __init__(self, resource: str = "Loan", record_id: str = None):
        details = {"id": record_id} if record_id else {}
        super().__init__(f"{resource} not found", details)


class AlreadyPaid(LoanTrackerError):
    """Raised on a repeat payoff; the loan and the ledger are left untouched."""

    status_code = 400

    def __init__(self, loan_id: str):
        super().__init__("Loan is already paid", {"loan_id": loan_id})


class StorageError(LoanTrackerError):
    """Raised when a database operation fails."""


class LedgerWriteFailed(StorageError):
    """Raised when a ledger mirror entry cannot be written."""

    def __init__(self, loan_id: str, entry: str, cause: str = None):
        details = {"loan_id": loan_id, "entry": entry}
        if cause:
            details["cause"] = cause
        super().__init__(f"Failed to write {entry} ledger entry", details)
