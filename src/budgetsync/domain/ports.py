"""Interfaces to the external systems the workflow depends on.

Adapters implement these; the services only ever see the abstract types and
the ``PortError`` family from ``budgetsync.domain.errors``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from budgetsync.domain.entities import AccountId, Category, ConfidenceScore, Transaction


@dataclass(frozen=True)
class RawTransaction:
    """Transaction record as delivered by a bank provider."""

    date: date
    amount: Decimal
    currency: str
    external_id: Optional[str] = None
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
    def description(self) -> str:
        """Best human-readable text of the record."""
        for text in (self.message, self.user_identification, self.comment, self.transaction_type):
            if text and text.strip():
                return text.strip()
        return ""


@dataclass(frozen=True)
class CategorySuggestion:
    category_id: str
    confidence: Optional[ConfidenceScore] = None
    payee_name: Optional[str] = None
    memo: Optional[str] = None
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class SubmissionReceipt:
    """Identifiers assigned by the ledger to a submitted transaction."""

    external_id: str
    account_id: Optional[str] = None


class TransactionProvider(ABC):
    """Source of raw bank transactions."""

    @abstractmethod
    def fetch_transactions(self, account_id: AccountId, start_date: date, end_date: date) -> list[RawTransaction]:
        """Fetch raw records in the inclusive date range.

        Raises:
            PortError: If the provider cannot be reached or answers with an error
        """
        pass


class CategorizationProvider(ABC):
    """Suggests a category for a transaction (AI service, rules, ...)."""

    @abstractmethod
    def suggest_category(
        self, transaction: Transaction, categories: Sequence[Category]
    ) -> Optional[CategorySuggestion]:
        """Return a suggestion, or None when nothing matches.

        Raises:
            CategorizationError: If the provider fails
        """
        pass


class SubmissionProvider(ABC):
    """External ledger (budgeting service) accepting categorized transactions."""

    @abstractmethod
    def submit(
        self, transaction: Transaction, category: str, payee_name: str, memo: Optional[str]
    ) -> SubmissionReceipt:
        """Create the transaction in the ledger.

        Raises:
            RateLimitedError: If the ledger asks the caller to back off
            SubmissionApiError: For any other failure
        """
        pass
