"""Statistics domain service."""

from typing import Optional

from budgetsync.database.base import Database
from budgetsync.domain.entities import SubmissionStatistics, TransactionStatus


class StatisticsService:
    """Service for counting transactions per workflow stage."""

    def __init__(self, db: Database):
        """Initialize statistics service.

        Args:
            db: Database instance
        """
        self.db = db

    def get_statistics(self, account_id: Optional[str] = None) -> SubmissionStatistics:
        """Count processing states by status, optionally for one account.

        Args:
            account_id: Restrict the counts to this account

        Returns:
            SubmissionStatistics with per-status and duplicate counts
        """
        counts = self.db.count_processing_states_by_status(account_id)
        return SubmissionStatistics(
            total=sum(counts.values()),
            imported=counts[TransactionStatus.IMPORTED],
            categorized=counts[TransactionStatus.CATEGORIZED],
            submitted=counts[TransactionStatus.SUBMITTED],
            duplicate=self.db.count_duplicate_states(account_id),
            by_status=dict(counts),
        )
