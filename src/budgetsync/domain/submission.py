"""Submission domain service."""

from typing import Iterable, Optional, Sequence

from budgetsync.config import SubmissionSettings
from budgetsync.database.base import Database
from budgetsync.domain.entities import (
    SubmissionError,
    SubmissionResult,
    SubmissionStatistics,
    TransactionId,
    TransactionProcessingState,
    TransactionStatus,
    TransactionSubmissionResult,
    ValidationResult,
)
from budgetsync.domain.errors import (
    MARKED_DUPLICATE,
    MISSING_CATEGORY,
    MISSING_PAYEE,
    InvalidStateTransition,
    RateLimitedError,
    already_submitted,
    invalid_status,
    transaction_not_found,
)
from budgetsync.domain.events import (
    EventPublisher,
    SubmissionFailed,
    TransactionSubmitted,
    TransactionsSubmitted,
    discard_event,
)
from budgetsync.domain.port_calls import call_with_timeout
from budgetsync.domain.ports import SubmissionProvider
from budgetsync.domain.statistics import StatisticsService
from budgetsync.logging_setup import get_logger

logger = get_logger(__name__)


def rejection_reason(state: TransactionProcessingState) -> Optional[str]:
    """Return why a state cannot be submitted, or None if it is ready."""
    if state.status == TransactionStatus.SUBMITTED:
        return already_submitted(state.ledger_transaction_id)
    if state.is_duplicate:
        return MARKED_DUPLICATE
    if state.status != TransactionStatus.CATEGORIZED:
        return invalid_status(state.status)
    if not state.effective_category:
        return MISSING_CATEGORY
    if not state.effective_payee_name:
        return MISSING_PAYEE
    return None


def validate_for_submission(states: Iterable[TransactionProcessingState]) -> ValidationResult:
    """Split states into submission-ready ones and rejected ones with reasons.

    Already submitted transactions are always rejected, so nothing is sent
    to the ledger twice.
    """
    valid = []
    invalid = []
    for state in states:
        reason = rejection_reason(state)
        if reason is None:
            valid.append(state)
        else:
            invalid.append((state, reason))
    return ValidationResult(valid_transactions=tuple(valid), invalid_transactions=tuple(invalid))


class SubmissionService:
    """Service for submitting categorized transactions to the ledger."""

    def __init__(
        self,
        db: Database,
        provider: SubmissionProvider,
        settings: Optional[SubmissionSettings] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        """Initialize submission service.

        Args:
            db: Database instance
            provider: Ledger accepting transactions
            settings: Provider timeout
            event_publisher: Callable receiving domain events
        """
        self.db = db
        self.provider = provider
        self.settings = settings or SubmissionSettings()
        self.publish = event_publisher or discard_event
        self.statistics_service = StatisticsService(db)

    def validate_for_submission(self, states: Iterable[TransactionProcessingState]) -> ValidationResult:
        """Split states into submission-ready ones and rejected ones with reasons."""
        return validate_for_submission(states)

    def submit_transaction(self, transaction_id: TransactionId) -> TransactionSubmissionResult:
        """Submit one transaction to the ledger.

        Failures are returned, not raised, and leave the processing state untouched.

        Args:
            transaction_id: Transaction to submit

        Returns:
            TransactionSubmissionResult; ``error.retryable`` is set when the
            ledger asked to back off
        """
        transaction = self.db.get_transaction(transaction_id)
        state = self.db.get_processing_state(transaction_id)
        if transaction is None or state is None:
            return self._not_submitted(transaction_id, transaction_not_found(transaction_id))

        reason = rejection_reason(state)
        if reason is not None:
            return self._not_submitted(transaction_id, reason)

        try:
            receipt = call_with_timeout(
                self.provider.submit,
                transaction,
                state.effective_category,
                state.effective_payee_name,
                state.effective_memo,
                timeout=self.settings.provider_timeout,
            )
        except RateLimitedError as exc:
            logger.warning("Ledger rate limit hit submitting %s: %s", transaction_id, exc)
            return self._not_submitted(transaction_id, f"Rate limited: {exc}", retryable=True)
        except Exception as exc:
            logger.warning("Submission of %s failed: %s", transaction_id, exc)
            return self._not_submitted(transaction_id, str(exc) or type(exc).__name__)

        if not receipt.external_id:
            return self._not_submitted(transaction_id, "Ledger returned no transaction ID")

        submitted = state.with_submission(receipt.external_id, receipt.account_id)
        try:
            self.db.save_processing_state(submitted)
        except InvalidStateTransition as exc:
            logger.error("Transaction %s changed while being submitted: %s", transaction_id, exc)
            return self._not_submitted(transaction_id, str(exc))

        self.publish(
            TransactionSubmitted(
                transaction_id=transaction_id,
                ledger_transaction_id=receipt.external_id,
                ledger_account_id=receipt.account_id,
            )
        )
        return TransactionSubmissionResult(
            transaction_id=transaction_id,
            submitted=True,
            ledger_transaction_id=receipt.external_id,
        )

    def submit_transactions(self, transaction_ids: Sequence[TransactionId]) -> SubmissionResult:
        """Validate and submit several transactions.

        Only the valid subset reaches the ledger. Invalid and failed items are
        reported per transaction.

        Args:
            transaction_ids: Transactions to submit

        Returns:
            SubmissionResult with counts and per-item errors
        """
        errors = []
        states = []
        for transaction_id in transaction_ids:
            state = self.db.get_processing_state(transaction_id)
            if state is None:
                errors.append(SubmissionError(transaction_id, transaction_not_found(transaction_id)))
            else:
                states.append(state)

        validation = self.validate_for_submission(states)
        for state, reason in validation.invalid_transactions:
            errors.append(SubmissionError(state.transaction_id, reason))
        if errors:
            self.publish(
                SubmissionFailed(
                    reason=f"{len(errors)} transactions failed validation",
                    transaction_count=len(errors),
                )
            )

        submitted_ids = []
        failed = 0
        for state in validation.valid_transactions:
            result = self.submit_transaction(state.transaction_id)
            if result.submitted:
                submitted_ids.append(state.transaction_id)
            else:
                failed += 1
                errors.append(result.error)

        if submitted_ids:
            self.publish(TransactionsSubmitted(count=len(submitted_ids), transaction_ids=tuple(submitted_ids)))
        if failed:
            self.publish(
                SubmissionFailed(
                    reason=f"{failed} transactions failed to submit",
                    transaction_count=failed,
                )
            )
        logger.info("Submitted %d of %d transactions", len(submitted_ids), len(transaction_ids))
        return SubmissionResult(
            submitted_count=len(submitted_ids),
            failed_count=len(transaction_ids) - len(submitted_ids),
            errors=tuple(errors),
        )

    def get_submission_statistics(self, account_id: Optional[str] = None) -> SubmissionStatistics:
        """Count transactions per workflow stage, optionally for one account."""
        return self.statistics_service.get_statistics(account_id)

    @staticmethod
    def _not_submitted(
        transaction_id: TransactionId, reason: str, retryable: bool = False
    ) -> TransactionSubmissionResult:
        return TransactionSubmissionResult(
            transaction_id=transaction_id,
            submitted=False,
            error=SubmissionError(transaction_id, reason, retryable=retryable),
        )
