"""Abstract repository interfaces.

Each repository covers one aggregate; ``Database`` bundles them together with
connection management so services can take a single storage object. The
in-memory and SQLAlchemy implementations are interchangeable.
"""

from abc import ABC, abstractmethod
from typing import Optional

# Import entities directly to avoid circular import through domain/__init__.py
from budgetsync.domain.entities import (
    Category,
    ImportBatch,
    ImportBatchId,
    Transaction,
    TransactionFilter,
    TransactionFingerprint,
    TransactionId,
    TransactionProcessingState,
    TransactionStatus,
)


class TransactionRepository(ABC):
    """Storage of immutable transactions."""

    @abstractmethod
    def add_transaction_if_absent(self, transaction: Transaction, state: TransactionProcessingState) -> bool:
        """Atomically store a transaction with its initial processing state.

        Returns:
            True if stored, False if the ID or the (account, fingerprint) pair
            already exists, in which case nothing is written.
        """
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: TransactionId) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def find_by_fingerprint(self, account_id: str, fingerprint: TransactionFingerprint) -> Optional[Transaction]:
        """Get the transaction of an account carrying the given fingerprint."""
        pass

    @abstractmethod
    def find_transactions(self, transaction_filter: Optional[TransactionFilter] = None) -> list[Transaction]:
        """List transactions matching the filter, newest first."""
        pass

    @abstractmethod
    def count_transactions(self, account_id: Optional[str] = None) -> int:
        """Count stored transactions, optionally for one account."""
        pass


class ProcessingStateRepository(ABC):
    """Storage of per-transaction workflow records."""

    @abstractmethod
    def get_processing_state(self, transaction_id: TransactionId) -> Optional[TransactionProcessingState]:
        """Get processing state by transaction ID."""
        pass

    @abstractmethod
    def save_processing_state(self, state: TransactionProcessingState) -> None:
        """Replace the stored state of an existing transaction.

        Writers for the same transaction are serialized; the last one wins.

        Raises:
            NotFoundError: If the transaction has no stored state
            InvalidStateTransition: If the write would move the status backwards
        """
        pass

    @abstractmethod
    def find_processing_states(
        self,
        account_id: Optional[str] = None,
        status: Optional[TransactionStatus] = None,
    ) -> list[TransactionProcessingState]:
        """List processing states with optional filters."""
        pass

    @abstractmethod
    def count_processing_states_by_status(self, account_id: Optional[str] = None) -> dict[TransactionStatus, int]:
        """Count processing states per status; every status is present in the result."""
        pass

    @abstractmethod
    def count_duplicate_states(self, account_id: Optional[str] = None) -> int:
        """Count processing states flagged as duplicates."""
        pass


class ImportBatchRepository(ABC):
    """Storage of import runs and their per-account sequence counters."""

    @abstractmethod
    def next_import_sequence(self, account_id: str) -> int:
        """Allocate the next batch sequence number for an account.

        Concurrent callers for the same account always receive distinct,
        increasing numbers.
        """
        pass

    @abstractmethod
    def save_import_batch(self, batch: ImportBatch) -> None:
        """Insert or replace an import batch.

        Raises:
            InvalidStateTransition: If the stored batch is already completed
        """
        pass

    @abstractmethod
    def get_import_batch(self, batch_id: ImportBatchId) -> Optional[ImportBatch]:
        """Get import batch by ID."""
        pass

    @abstractmethod
    def list_import_batches(self, account_id: Optional[str] = None) -> list[ImportBatch]:
        """List import batches ordered by account and sequence number."""
        pass


class CategoryRepository(ABC):
    """Storage of ledger-mapped categories."""

    @abstractmethod
    def save_category(self, category: Category) -> None:
        """Insert or replace a category."""
        pass

    @abstractmethod
    def get_category(self, category_id: str) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def list_categories(self, active_only: bool = False) -> list[Category]:
        """List categories ordered by name."""
        pass


class Database(TransactionRepository, ProcessingStateRepository, ImportBatchRepository, CategoryRepository):
    """Abstract database interface for budgetsync."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass
