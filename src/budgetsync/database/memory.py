"""In-memory implementation of the Database interface.

Used by tests and for dry runs. All maps are guarded by one re-entrant lock;
processing-state writes additionally take a per-transaction lock.
"""

import threading
from collections import defaultdict
from typing import Optional

from budgetsync.database.base import Database
from budgetsync.domain.entities import (
    Category,
    ImportBatch,
    ImportBatchId,
    ImportStatus,
    Transaction,
    TransactionFilter,
    TransactionFingerprint,
    TransactionId,
    TransactionProcessingState,
    TransactionStatus,
)
from budgetsync.domain.errors import (
    InvalidStateTransition,
    NotFoundError,
    status_not_replaceable,
    transaction_not_found,
)


class InMemoryDatabase(Database):
    """Dictionary-backed database, safe for use from several threads."""

    def __init__(self):
        self._lock = threading.RLock()
        self._transactions: dict[TransactionId, Transaction] = {}
        self._fingerprints: dict[tuple[str, str], TransactionId] = {}
        self._states: dict[TransactionId, TransactionProcessingState] = {}
        self._state_locks: dict[TransactionId, threading.Lock] = defaultdict(threading.Lock)
        self._batches: dict[ImportBatchId, ImportBatch] = {}
        self._sequences: dict[str, int] = {}
        self._categories: dict[str, Category] = {}

    def connect(self) -> None:
        """Connect to the database."""
        pass

    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    def initialize_schema(self) -> None:
        """Initialize database schema."""
        pass

    # Transaction operations
    def add_transaction_if_absent(self, transaction: Transaction, state: TransactionProcessingState) -> bool:
        """Atomically store a transaction with its initial processing state."""
        key = (transaction.account_id, transaction.fingerprint.value)
        with self._lock:
            if transaction.id in self._transactions or key in self._fingerprints:
                return False
            self._transactions[transaction.id] = transaction
            self._fingerprints[key] = transaction.id
            self._states[transaction.id] = state
            return True

    def get_transaction(self, transaction_id: TransactionId) -> Optional[Transaction]:
        """Get transaction by ID."""
        with self._lock:
            return self._transactions.get(transaction_id)

    def find_by_fingerprint(self, account_id: str, fingerprint: TransactionFingerprint) -> Optional[Transaction]:
        """Get the transaction of an account carrying the given fingerprint."""
        with self._lock:
            transaction_id = self._fingerprints.get((account_id, fingerprint.value))
            if transaction_id is None:
                return None
            return self._transactions[transaction_id]

    def find_transactions(self, transaction_filter: Optional[TransactionFilter] = None) -> list[Transaction]:
        """List transactions matching the filter, newest first."""
        with self._lock:
            transactions = list(self._transactions.values())
        if transaction_filter is not None:
            transactions = [t for t in transactions if transaction_filter.matches(t)]
        return sorted(transactions, key=lambda t: (t.date, t.created_at), reverse=True)

    def count_transactions(self, account_id: Optional[str] = None) -> int:
        """Count stored transactions, optionally for one account."""
        with self._lock:
            if account_id is None:
                return len(self._transactions)
            return sum(1 for t in self._transactions.values() if t.account_id == account_id)

    # Processing state operations
    def get_processing_state(self, transaction_id: TransactionId) -> Optional[TransactionProcessingState]:
        """Get processing state by transaction ID."""
        with self._lock:
            return self._states.get(transaction_id)

    def save_processing_state(self, state: TransactionProcessingState) -> None:
        """Replace the stored state of an existing transaction."""
        with self._lock:
            key_lock = self._state_locks[state.transaction_id]
        with key_lock:
            with self._lock:
                current = self._states.get(state.transaction_id)
            if current is None:
                raise NotFoundError(transaction_not_found(state.transaction_id))
            if current.status not in state.status.replaceable_statuses:
                raise InvalidStateTransition(
                    status_not_replaceable(state.transaction_id, current.status, state.status)
                )
            with self._lock:
                self._states[state.transaction_id] = state

    def find_processing_states(
        self,
        account_id: Optional[str] = None,
        status: Optional[TransactionStatus] = None,
    ) -> list[TransactionProcessingState]:
        """List processing states with optional filters."""
        with self._lock:
            states = list(self._states.values())
        if account_id is not None:
            states = [s for s in states if s.transaction_id.account_id == account_id]
        if status is not None:
            states = [s for s in states if s.status == status]
        return sorted(states, key=lambda s: (s.transaction_id.account_id, s.transaction_id.external_id))

    def count_processing_states_by_status(self, account_id: Optional[str] = None) -> dict[TransactionStatus, int]:
        """Count processing states per status."""
        counts = {status: 0 for status in TransactionStatus}
        for state in self.find_processing_states(account_id=account_id):
            counts[state.status] += 1
        return counts

    def count_duplicate_states(self, account_id: Optional[str] = None) -> int:
        """Count processing states flagged as duplicates."""
        return sum(1 for s in self.find_processing_states(account_id=account_id) if s.is_duplicate)

    # Import batch operations
    def next_import_sequence(self, account_id: str) -> int:
        """Allocate the next batch sequence number for an account."""
        with self._lock:
            current = self._sequences.get(account_id)
            if current is None:
                current = max(
                    (b.id.sequence_number for b in self._batches.values() if b.account_id == account_id),
                    default=0,
                )
            self._sequences[account_id] = current + 1
            return current + 1

    def save_import_batch(self, batch: ImportBatch) -> None:
        """Insert or replace an import batch."""
        with self._lock:
            existing = self._batches.get(batch.id)
            if existing is not None and existing.status == ImportStatus.COMPLETED and existing != batch:
                raise InvalidStateTransition(f"Import batch {batch.id} is completed and cannot change")
            self._batches[batch.id] = batch

    def get_import_batch(self, batch_id: ImportBatchId) -> Optional[ImportBatch]:
        """Get import batch by ID."""
        with self._lock:
            return self._batches.get(batch_id)

    def list_import_batches(self, account_id: Optional[str] = None) -> list[ImportBatch]:
        """List import batches ordered by account and sequence number."""
        with self._lock:
            batches = list(self._batches.values())
        if account_id is not None:
            batches = [b for b in batches if b.account_id == account_id]
        return sorted(batches, key=lambda b: (b.account_id, b.id.sequence_number))

    # Category operations
    def save_category(self, category: Category) -> None:
        """Insert or replace a category."""
        with self._lock:
            self._categories[category.id] = category

    def get_category(self, category_id: str) -> Optional[Category]:
        """Get category by ID."""
        with self._lock:
            return self._categories.get(category_id)

    def list_categories(self, active_only: bool = False) -> list[Category]:
        """List categories ordered by name."""
        with self._lock:
            categories = list(self._categories.values())
        if active_only:
            categories = [c for c in categories if c.active]
        return sorted(categories, key=lambda c: c.name)
