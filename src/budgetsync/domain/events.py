"""Domain events published by the workflow services.

Events are plain data. Services hand them to an injected publisher callable
right after the state change that produced them; delivery beyond that call is
the subscriber's business.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from budgetsync.domain.entities import ConfidenceScore, Money, TransactionId, utc_now


@dataclass(frozen=True)
class DomainEvent:
    """Base class for domain events."""

    occurred_at: datetime = field(default_factory=utc_now, kw_only=True)


EventPublisher = Callable[[DomainEvent], None]


def discard_event(event: DomainEvent) -> None:
    """Publisher used when nobody subscribes."""


@dataclass(frozen=True)
class TransactionImported(DomainEvent):
    transaction_id: TransactionId
    account_id: str
    date: date
    amount: Money


@dataclass(frozen=True)
class ImportCompleted(DomainEvent):
    account_id: str
    batch_id: str
    count: int
    duplicate_count: int = 0


@dataclass(frozen=True)
class DuplicateTransactionDetected(DomainEvent):
    external_id: str
    account_id: str
    existing_transaction_id: TransactionId
    fingerprint: str


@dataclass(frozen=True)
class TransactionCategorized(DomainEvent):
    transaction_id: TransactionId
    category: str
    payee_name: Optional[str]
    by_ai: bool


@dataclass(frozen=True)
class TransactionsCategorized(DomainEvent):
    transaction_count: int
    account_id: Optional[str]
    average_confidence: Optional[ConfidenceScore]


@dataclass(frozen=True)
class CategoryUpdated(DomainEvent):
    transaction_id: TransactionId
    old_category: Optional[str]
    new_category: str


@dataclass(frozen=True)
class BulkCategoryUpdated(DomainEvent):
    count: int
    category: str
    filter_criteria: str


@dataclass(frozen=True)
class TransactionSubmitted(DomainEvent):
    transaction_id: TransactionId
    ledger_transaction_id: str
    ledger_account_id: Optional[str]


@dataclass(frozen=True)
class TransactionsSubmitted(DomainEvent):
    count: int
    transaction_ids: tuple[TransactionId, ...] = ()


@dataclass(frozen=True)
class SubmissionFailed(DomainEvent):
    reason: str
    transaction_count: int
