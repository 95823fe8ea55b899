"""Shared domain error messages and error types."""

from datetime import date
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class InvalidStateTransition(ConflictError):
    """A workflow record was asked to move to a state it cannot reach."""


# Import failures


class TransactionImportError(DomainError):
    """Base class for failures of a whole import run."""


class InvalidDateRange(TransactionImportError, ValidationError):
    """Requested import range is not acceptable for the account's bank."""


class BankApiError(TransactionImportError):
    """The transaction provider could not deliver records.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, account_id: Optional[str] = None, operation: str = "fetch_transactions"):
        super().__init__(message)
        self.account_id = account_id
        self.operation = operation


class NoTransactionsFound(TransactionImportError):
    """The provider returned no records for the requested range."""

    def __init__(self, start_date: date, end_date: date):
        super().__init__(no_transactions_found(start_date, end_date))
        self.start_date = start_date
        self.end_date = end_date


class TransactionStorageError(TransactionImportError):
    """Imported records could not be persisted."""


# Port failures


class PortError(Exception):
    """Failure reported by an external system adapter."""


class PortTimeoutError(PortError, TimeoutError):
    """An external call did not finish within the allowed time."""


class TransactionProviderError(PortError):
    """Bank/statement provider failure."""


class CategorizationError(PortError):
    """Categorization provider failure."""


class SubmissionApiError(PortError):
    """Ledger submission failure."""


class RateLimitedError(SubmissionApiError):
    """Ledger rejected the request because of rate limiting.

    Unlike other submission failures this one is expected to succeed on retry.
    """

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


def transaction_not_found(transaction_id: object) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def status_not_replaceable(transaction_id: object, current: object, new: object) -> str:
    """Return message for a processing state write the stored status does not allow."""
    if str(current) == "Submitted":
        return f"Transaction {transaction_id} is already submitted"
    return f"Cannot move transaction {transaction_id} from {current} to {new}"


def start_after_end(start_date: date, end_date: date) -> str:
    """Return message for an inverted date range."""
    return f"Start date {start_date.isoformat()} cannot be after end date {end_date.isoformat()}"


def dates_in_future(end_date: date) -> str:
    """Return message for a range that ends in the future."""
    return f"Dates cannot be in the future (end date {end_date.isoformat()})"


def range_too_wide(max_days: int, bank_id: str) -> str:
    """Return message for a range exceeding the bank's limit."""
    return f"Date range cannot exceed {max_days} days ({bank_id} limitation)"


def no_transactions_found(start_date: date, end_date: date) -> str:
    """Return message for an empty provider response."""
    return f"No transactions found between {start_date.isoformat()} and {end_date.isoformat()}"


def invalid_status(status: object) -> str:
    """Return submission rejection reason for a state in the wrong status."""
    return f"Invalid status: {status}"


ALREADY_SUBMITTED = "Already submitted"


def already_submitted(ledger_transaction_id: Optional[str]) -> str:
    """Return submission rejection reason for a transaction that is already in the ledger."""
    if ledger_transaction_id:
        return f"{ALREADY_SUBMITTED} (ledger id {ledger_transaction_id})"
    return ALREADY_SUBMITTED


MISSING_CATEGORY = "Missing category"
MISSING_PAYEE = "Missing payee name"
MARKED_DUPLICATE = "Transaction is marked as duplicate"
ALREADY_CATEGORIZED = "Already categorized"
