"""Duplicate detection for imported transactions."""

from typing import Optional

from budgetsync.database.base import Database
from budgetsync.domain.entities import Transaction, TransactionFingerprint
from budgetsync.domain.ports import RawTransaction


class DuplicateDetector:
    """Recognizes records that were already imported for an account.

    A record is a duplicate when the account already holds a transaction with
    the same fingerprint. The lookup is only a fast path: the repository's
    insert-if-absent is what settles races between concurrent imports.
    """

    def __init__(self, db: Database):
        """Initialize duplicate detector.

        Args:
            db: Database instance
        """
        self.db = db

    @staticmethod
    def fingerprint_for(account_id: str, raw: RawTransaction) -> TransactionFingerprint:
        """Compute the fingerprint of a provider record.

        Records with a provider ID are keyed by it; others fall back to their
        content (date, amount, counterparty, description).
        """
        if raw.external_id and raw.external_id.strip():
            return TransactionFingerprint.for_external_id(account_id, raw.external_id.strip())
        return TransactionFingerprint.for_content(
            account_id, raw.date, raw.amount, raw.counterparty_name, raw.description
        )

    def find_existing(self, transaction: Transaction) -> Optional[Transaction]:
        """Return the stored transaction this one duplicates, if any."""
        existing = self.db.get_transaction(transaction.id)
        if existing is not None:
            return existing
        return self.db.find_by_fingerprint(transaction.account_id, transaction.fingerprint)

    def is_duplicate(self, transaction: Transaction) -> bool:
        """Check whether the transaction is already stored for its account."""
        return self.find_existing(transaction) is not None
