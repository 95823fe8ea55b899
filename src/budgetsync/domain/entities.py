"""Domain model entities for budgetsync.

These are pure data classes representing business concepts, independent of
database schema. Financial facts (``Transaction``) never change once created;
everything that moves through the import → categorize → submit workflow lives
in ``TransactionProcessingState`` and is replaced, never mutated in place.
"""

import hashlib
import re
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from budgetsync.domain.errors import InvalidStateTransition, ValidationError


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class TransactionStatus(str, Enum):
    """Workflow stage of a transaction. Stages only move forward."""

    IMPORTED = "Imported"
    CATEGORIZED = "Categorized"
    SUBMITTED = "Submitted"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @property
    def replaceable_statuses(self) -> tuple["TransactionStatus", ...]:
        """Stored statuses a record in this status may be written over.

        Submitted is terminal and is only reached from Categorized.
        """
        if self == TransactionStatus.SUBMITTED:
            return (TransactionStatus.CATEGORIZED,)
        return tuple(s for s in _STATUS_ORDER if s.rank <= self.rank)

    def __str__(self) -> str:
        return self.value


_STATUS_ORDER = (TransactionStatus.IMPORTED, TransactionStatus.CATEGORIZED, TransactionStatus.SUBMITTED)


class ImportStatus(str, Enum):
    """Lifecycle of a single import run."""

    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AccountId:
    """Source account reference: bank identifier plus the account number at that bank."""

    bank_id: str
    bank_account_id: str

    def __post_init__(self):
        if not self.bank_id or not self.bank_id.strip():
            raise ValidationError("Bank ID must not be empty")
        if not self.bank_account_id or not self.bank_account_id.strip():
            raise ValidationError("Bank account ID must not be empty")

    @property
    def value(self) -> str:
        return f"{self.bank_id}-{self.bank_account_id}"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, s: str) -> "AccountId":
        """Parse ``"<bank>-<account>"``.

        Raises:
            ValidationError: If the string is not in composite form
        """
        if not s:
            raise ValidationError("Account ID string must not be empty")
        bank_id, sep, bank_account_id = s.partition("-")
        if not sep:
            raise ValidationError(f"Invalid account ID '{s}'. Expected format: 'bank-account'")
        return cls(bank_id=bank_id, bank_account_id=bank_account_id)


@dataclass(frozen=True)
class TransactionId:
    """Composite identity of a transaction: source account + provider-assigned ID."""

    account_id: str
    external_id: str

    def __post_init__(self):
        if not self.account_id:
            raise ValidationError("Transaction account reference must not be empty")
        if not self.external_id or not self.external_id.strip():
            raise ValidationError("Provider transaction ID must not be empty")

    def __str__(self) -> str:
        return f"{self.account_id}:{self.external_id}"

    @classmethod
    def from_string(cls, s: str) -> "TransactionId":
        """Parse ``"<account>:<external id>"``."""
        account_id, sep, external_id = s.partition(":")
        if not sep:
            raise ValidationError(f"Invalid transaction ID '{s}'. Expected format: 'account:id'")
        return cls(account_id=account_id, external_id=external_id)


_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


@dataclass(frozen=True)
class Money:
    """Decimal amount with an ISO 4217 currency code."""

    amount: Decimal
    currency: str

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            raise ValidationError(f"Amount must be a Decimal, got {type(self.amount).__name__}")
        if not self.currency or not _CURRENCY_RE.match(self.currency):
            raise ValidationError(f"Invalid currency code '{self.currency}'")

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


@dataclass(frozen=True, order=True)
class ConfidenceScore:
    """Confidence of a categorization decision, within [0.0, 1.0]."""

    value: float

    MIN = 0.0
    MAX = 1.0
    RELIABLE_THRESHOLD = 0.7

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise ValidationError(f"Confidence score must be a number, got {self.value!r}")
        if not (self.MIN <= self.value <= self.MAX):
            raise ValidationError(
                f"Confidence score must be between {self.MIN} and {self.MAX}, got {self.value}"
            )

    @classmethod
    def clamped(cls, value: float) -> "ConfidenceScore":
        """Build a score from a raw provider value, clamping it into range."""
        return cls(max(cls.MIN, min(cls.MAX, float(value))))

    def exceeds(self, threshold: float) -> bool:
        return self.value > threshold

    @property
    def is_high(self) -> bool:
        return self.value >= 0.8

    @property
    def is_medium(self) -> bool:
        return 0.5 <= self.value < 0.8

    @property
    def is_low(self) -> bool:
        return self.value < 0.5


@dataclass(frozen=True)
class TransactionFingerprint:
    """Deterministic key identifying the same external transaction across imports."""

    value: str

    @classmethod
    def for_external_id(cls, account_id: str, external_id: str) -> "TransactionFingerprint":
        """Fingerprint for providers that assign stable transaction IDs."""
        base = f"id|{account_id}|{external_id}"
        return cls(hashlib.sha256(base.encode("utf-8")).hexdigest())

    @classmethod
    def for_content(
        cls,
        account_id: str,
        txn_date: date,
        amount: Decimal,
        counterparty: Optional[str],
        description: Optional[str],
    ) -> "TransactionFingerprint":
        """Fingerprint for providers without stable IDs.

        Amounts are normalized so ``-50.0`` and ``-50.00`` hash the same.
        """
        base = "|".join(
            [
                "content",
                account_id,
                txn_date.isoformat(),
                format(amount.normalize(), "f"),
                (counterparty or "").strip(),
                (description or "").strip(),
            ]
        )
        return cls(hashlib.sha256(base.encode("utf-8")).hexdigest())

    @property
    def short(self) -> str:
        return self.value[:16]


@dataclass(frozen=True)
class ImportBatchId:
    """Per-account sequential import batch identifier."""

    account_id: str
    sequence_number: int

    def __post_init__(self):
        if not self.account_id:
            raise ValidationError("Account ID must not be empty")
        if self.sequence_number <= 0:
            raise ValidationError("Sequence number must be positive")

    @property
    def value(self) -> str:
        return f"{self.account_id}-{self.sequence_number}"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, s: str) -> "ImportBatchId":
        """Parse ``"<account>-<sequence>"``; the account part may itself contain dashes."""
        if not s:
            raise ValidationError("Import batch ID string must not be empty")
        account_id, sep, seq = s.rpartition("-")
        if not sep or not account_id:
            raise ValidationError(f"Invalid import batch ID '{s}'. Expected format: 'account-sequence'")
        try:
            sequence_number = int(seq)
        except ValueError:
            raise ValidationError(f"Invalid sequence number '{seq}' in import batch ID '{s}'")
        return cls(account_id=account_id, sequence_number=sequence_number)


@dataclass(frozen=True)
class ImportBatch:
    """One import run for an account and date range."""

    id: ImportBatchId
    account_id: str
    start_date: date
    end_date: date
    status: ImportStatus
    start_time: datetime
    created_at: datetime
    updated_at: datetime
    transaction_count: int = 0
    duplicate_count: int = 0
    error_message: Optional[str] = None
    end_time: Optional[datetime] = None

    @classmethod
    def create(cls, batch_id: ImportBatchId, start_date: date, end_date: date) -> "ImportBatch":
        if start_date > end_date:
            raise ValidationError("Start date cannot be after end date")
        now = utc_now()
        return cls(
            id=batch_id,
            account_id=batch_id.account_id,
            start_date=start_date,
            end_date=end_date,
            status=ImportStatus.NOT_STARTED,
            start_time=now,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_success(self) -> bool:
        return self.status == ImportStatus.COMPLETED and self.error_message is None

    @property
    def completion_time_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def mark_in_progress(self) -> "ImportBatch":
        if self.status != ImportStatus.NOT_STARTED:
            raise InvalidStateTransition(f"Cannot start import with status {self.status}")
        return replace(self, status=ImportStatus.IN_PROGRESS, updated_at=utc_now())

    def mark_completed(self, transaction_count: int, duplicate_count: int = 0) -> "ImportBatch":
        if self.status != ImportStatus.IN_PROGRESS:
            raise InvalidStateTransition(f"Cannot complete import with status {self.status}")
        now = utc_now()
        return replace(
            self,
            status=ImportStatus.COMPLETED,
            transaction_count=transaction_count,
            duplicate_count=duplicate_count,
            end_time=now,
            updated_at=now,
        )

    def mark_failed(self, error_message: str) -> "ImportBatch":
        if self.status in (ImportStatus.COMPLETED, ImportStatus.FAILED):
            raise InvalidStateTransition(f"Cannot fail import with status {self.status}")
        now = utc_now()
        return replace(
            self,
            status=ImportStatus.FAILED,
            error_message=error_message,
            end_time=now,
            updated_at=now,
        )


@dataclass(frozen=True)
class Transaction:
    """Immutable financial facts of one bank transaction."""

    id: TransactionId
    date: date
    amount: Money
    description: str
    import_batch_id: ImportBatchId
    fingerprint: TransactionFingerprint
    created_at: datetime
    transaction_type: str = ""
    counterparty_name: Optional[str] = None
    counter_account: Optional[str] = None
    counter_bank_code: Optional[str] = None
    variable_symbol: Optional[str] = None
    constant_symbol: Optional[str] = None
    specific_symbol: Optional[str] = None
    user_identification: Optional[str] = None
    message: Optional[str] = None
    comment: Optional[str] = None

    @property
    def account_id(self) -> str:
        return self.id.account_id


@dataclass(frozen=True)
class TransactionProcessingState:
    """Workflow record of a transaction: status, suggestions, overrides, ledger link.

    Every ``with_*`` method returns a new record; none of them can move the
    status backwards, and a submitted record cannot change at all.
    """

    transaction_id: TransactionId
    status: TransactionStatus = TransactionStatus.IMPORTED
    is_duplicate: bool = False

    suggested_category: Optional[str] = None
    suggested_payee_name: Optional[str] = None
    suggested_memo: Optional[str] = None
    category_confidence: Optional[ConfidenceScore] = None
    payee_confidence: Optional[ConfidenceScore] = None

    override_category: Optional[str] = None
    override_payee_name: Optional[str] = None
    override_memo: Optional[str] = None

    ledger_transaction_id: Optional[str] = None
    ledger_account_id: Optional[str] = None

    processed_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    @classmethod
    def initial(cls, transaction_id: TransactionId) -> "TransactionProcessingState":
        return cls(transaction_id=transaction_id)

    @property
    def effective_category(self) -> Optional[str]:
        return self.override_category if self.override_category is not None else self.suggested_category

    @property
    def effective_payee_name(self) -> Optional[str]:
        if self.override_payee_name is not None:
            return self.override_payee_name
        return self.suggested_payee_name

    @property
    def effective_memo(self) -> Optional[str]:
        return self.override_memo if self.override_memo is not None else self.suggested_memo

    @property
    def is_manually_categorized(self) -> bool:
        return self.override_category is not None

    @property
    def has_reliable_confidence(self) -> bool:
        return self.category_confidence is not None and self.category_confidence.exceeds(
            ConfidenceScore.RELIABLE_THRESHOLD
        )

    @property
    def is_ready_for_submission(self) -> bool:
        return (
            self.status == TransactionStatus.CATEGORIZED
            and not self.is_duplicate
            and bool(self.effective_category)
            and bool(self.effective_payee_name)
        )

    def _ensure_not_submitted(self) -> None:
        if self.status == TransactionStatus.SUBMITTED:
            raise InvalidStateTransition(f"Transaction {self.transaction_id} is already submitted")

    def with_suggestions(
        self,
        category: str,
        payee_name: Optional[str],
        memo: Optional[str],
        category_confidence: Optional[ConfidenceScore] = None,
        payee_confidence: Optional[ConfidenceScore] = None,
    ) -> "TransactionProcessingState":
        """Apply an automatic categorization; overrides are left alone."""
        self._ensure_not_submitted()
        if not category:
            raise ValidationError("Suggested category must not be empty")
        return replace(
            self,
            status=TransactionStatus.CATEGORIZED,
            suggested_category=category,
            suggested_payee_name=payee_name,
            suggested_memo=memo,
            category_confidence=category_confidence,
            payee_confidence=payee_confidence,
            processed_at=utc_now(),
        )

    def with_overrides(
        self,
        category: str,
        payee_name: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> "TransactionProcessingState":
        """Apply a manual category; ``None`` payee/memo keep the current overrides."""
        self._ensure_not_submitted()
        if not category:
            raise ValidationError("Category must not be empty")
        status = self.status
        if status == TransactionStatus.IMPORTED:
            status = TransactionStatus.CATEGORIZED
        return replace(
            self,
            status=status,
            override_category=category,
            override_payee_name=payee_name if payee_name is not None else self.override_payee_name,
            override_memo=memo if memo is not None else self.override_memo,
        )

    def with_submission(
        self, ledger_transaction_id: str, ledger_account_id: Optional[str] = None
    ) -> "TransactionProcessingState":
        if self.status != TransactionStatus.CATEGORIZED:
            raise InvalidStateTransition(
                f"Cannot submit transaction with status {self.status}, must be {TransactionStatus.CATEGORIZED}"
            )
        if not self.effective_category:
            raise InvalidStateTransition("Cannot submit transaction without a category")
        if not self.effective_payee_name:
            raise InvalidStateTransition("Cannot submit transaction without a payee name")
        if not ledger_transaction_id:
            raise ValidationError("Ledger transaction ID must not be empty")
        return replace(
            self,
            status=TransactionStatus.SUBMITTED,
            ledger_transaction_id=ledger_transaction_id,
            ledger_account_id=ledger_account_id,
            submitted_at=utc_now(),
        )

    def mark_duplicate(self) -> "TransactionProcessingState":
        return replace(self, is_duplicate=True)


@dataclass(frozen=True)
class Category:
    """Budget category mapped to an external ledger category."""

    id: str
    name: str
    external_id: Optional[str] = None
    parent_id: Optional[str] = None
    active: bool = True


@dataclass(frozen=True)
class TransactionFilter:
    """Criteria for selecting transactions in bulk operations.

    All given criteria must match. Text matching is case-sensitive.
    """

    account_id: Optional[str] = None
    description_contains: Optional[str] = None
    counterparty_contains: Optional[str] = None
    transaction_type: Optional[str] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None

    def matches(self, transaction: Transaction) -> bool:
        if self.account_id is not None and transaction.account_id != self.account_id:
            return False
        if self.description_contains is not None:
            texts = (transaction.description, transaction.message, transaction.user_identification)
            if not any(t and self.description_contains in t for t in texts):
                return False
        if self.counterparty_contains is not None:
            texts = (transaction.counterparty_name, transaction.counter_account)
            if not any(t and self.counterparty_contains in t for t in texts):
                return False
        if self.transaction_type is not None and transaction.transaction_type != self.transaction_type:
            return False
        if self.min_amount is not None and transaction.amount.amount < self.min_amount:
            return False
        if self.max_amount is not None and transaction.amount.amount > self.max_amount:
            return False
        return True


# Service results


@dataclass(frozen=True)
class TransactionCategorization:
    """Outcome of categorizing one transaction."""

    transaction_id: TransactionId
    category_id: str
    payee_name: Optional[str]
    memo: Optional[str]
    confidence: Optional[ConfidenceScore]
    reasoning: Optional[str] = None
    is_default: bool = False


@dataclass(frozen=True)
class ItemFailure:
    """Why a single item of a bulk operation did not go through."""

    transaction_id: TransactionId
    reason: str


@dataclass(frozen=True)
class CategorizationResult:
    categorized_count: int
    failed_count: int
    average_confidence: Optional[ConfidenceScore] = None
    failures: tuple[ItemFailure, ...] = ()


@dataclass(frozen=True)
class SubmissionError:
    """Reason a transaction was not submitted.

    ``retryable`` is set when the ledger asked us to back off.
    """

    transaction_id: TransactionId
    reason: str
    retryable: bool = False


@dataclass(frozen=True)
class TransactionSubmissionResult:
    transaction_id: TransactionId
    submitted: bool
    ledger_transaction_id: Optional[str] = None
    error: Optional[SubmissionError] = None


@dataclass(frozen=True)
class SubmissionResult:
    submitted_count: int
    failed_count: int
    errors: tuple[SubmissionError, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    """Partition of processing states into submission-ready and rejected (with reasons)."""

    valid_transactions: tuple[TransactionProcessingState, ...] = ()
    invalid_transactions: tuple[tuple[TransactionProcessingState, str], ...] = ()


@dataclass(frozen=True)
class SubmissionStatistics:
    total: int = 0
    imported: int = 0
    categorized: int = 0
    submitted: int = 0
    duplicate: int = 0
    by_status: dict[TransactionStatus, int] = field(default_factory=dict, compare=False)
