"""Import domain service."""

from datetime import date
from typing import Callable, Optional

from budgetsync.config import ImportSettings
from budgetsync.database.base import Database
from budgetsync.domain.duplicates import DuplicateDetector
from budgetsync.domain.entities import (
    AccountId,
    ImportBatch,
    ImportBatchId,
    Money,
    Transaction,
    TransactionId,
    TransactionProcessingState,
    utc_now,
)
from budgetsync.domain.errors import (
    BankApiError,
    DomainError,
    InvalidDateRange,
    NoTransactionsFound,
    TransactionStorageError,
    dates_in_future,
    range_too_wide,
    start_after_end,
)
from budgetsync.domain.events import (
    DuplicateTransactionDetected,
    EventPublisher,
    ImportCompleted,
    TransactionImported,
    discard_event,
)
from budgetsync.domain.port_calls import call_with_timeout
from budgetsync.domain.ports import RawTransaction, TransactionProvider
from budgetsync.logging_setup import get_logger

logger = get_logger(__name__)


class ImportService:
    """Service for importing bank transactions into import batches."""

    def __init__(
        self,
        db: Database,
        provider: TransactionProvider,
        settings: Optional[ImportSettings] = None,
        event_publisher: Optional[EventPublisher] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        """Initialize import service.

        Args:
            db: Database instance
            provider: Source of raw bank records
            settings: Date range limits and provider timeout
            event_publisher: Callable receiving domain events
            today: Clock used for the "not in the future" check
        """
        self.db = db
        self.provider = provider
        self.settings = settings or ImportSettings()
        self.publish = event_publisher or discard_event
        self.today = today or date.today
        self.duplicate_detector = DuplicateDetector(db)

    def validate_date_range(self, account_id: AccountId, start_date: date, end_date: date) -> None:
        """Check a requested import range against the account's bank limits.

        Args:
            account_id: Account to import
            start_date: First day of the range (inclusive)
            end_date: Last day of the range (inclusive)

        Raises:
            InvalidDateRange: If start is after end, end is in the future, or
                the range is wider than the bank allows
        """
        if start_date > end_date:
            raise InvalidDateRange(start_after_end(start_date, end_date))
        if end_date > self.today():
            raise InvalidDateRange(dates_in_future(end_date))
        max_days = self.settings.max_days_for(account_id.bank_id)
        if (end_date - start_date).days > max_days:
            raise InvalidDateRange(range_too_wide(max_days, account_id.bank_id))

    def import_transactions(self, account_id: AccountId, start_date: date, end_date: date) -> ImportBatch:
        """Import transactions for an account and date range.

        Records already stored for the account are counted as duplicates and
        skipped, so re-running an import is safe.

        Args:
            account_id: Account to import
            start_date: First day of the range (inclusive)
            end_date: Last day of the range (inclusive)

        Returns:
            The completed ImportBatch

        Raises:
            InvalidDateRange: If the range is not acceptable (nothing is stored)
            BankApiError: If the provider fails or times out
            NoTransactionsFound: If the provider returns no records
            TransactionStorageError: If records cannot be persisted
        """
        self.validate_date_range(account_id, start_date, end_date)

        account = account_id.value
        sequence_number = self.db.next_import_sequence(account)
        batch = ImportBatch.create(ImportBatchId(account, sequence_number), start_date, end_date)
        batch = batch.mark_in_progress()
        self.db.save_import_batch(batch)
        logger.info("Import %s started for %s to %s", batch.id, start_date, end_date)

        try:
            records = self._fetch_records(account_id, start_date, end_date)
            if not records:
                raise NoTransactionsFound(start_date, end_date)
            imported, duplicates = self._store_records(batch, records)
        except BaseException as exc:
            # Interrupted or failed runs must never look completed
            self._mark_failed(batch, str(exc) or type(exc).__name__)
            raise

        completed = batch.mark_completed(imported, duplicates)
        self.db.save_import_batch(completed)
        self.publish(
            ImportCompleted(
                account_id=account,
                batch_id=completed.id.value,
                count=imported,
                duplicate_count=duplicates,
            )
        )
        logger.info("Import %s completed: %d imported, %d duplicates", completed.id, imported, duplicates)
        return completed

    def _fetch_records(self, account_id: AccountId, start_date: date, end_date: date) -> list[RawTransaction]:
        try:
            return list(
                call_with_timeout(
                    self.provider.fetch_transactions,
                    account_id,
                    start_date,
                    end_date,
                    timeout=self.settings.provider_timeout,
                )
            )
        except Exception as exc:
            raise BankApiError(
                f"Failed to fetch transactions for account {account_id}: {exc}",
                account_id=account_id.value,
            ) from exc

    def _store_records(self, batch: ImportBatch, records: list[RawTransaction]) -> tuple[int, int]:
        imported = 0
        duplicates = 0
        for raw in records:
            transaction = self._build_transaction(batch, raw)
            existing = self.duplicate_detector.find_existing(transaction)
            if existing is None:
                if self._insert(transaction):
                    imported += 1
                    self.publish(
                        TransactionImported(
                            transaction_id=transaction.id,
                            account_id=transaction.account_id,
                            date=transaction.date,
                            amount=transaction.amount,
                        )
                    )
                    continue
                # Lost the race against a concurrent import of the same record
                existing = self.duplicate_detector.find_existing(transaction)

            duplicates += 1
            logger.debug("Skipping duplicate transaction %s", transaction.id)
            self.publish(
                DuplicateTransactionDetected(
                    external_id=transaction.id.external_id,
                    account_id=transaction.account_id,
                    existing_transaction_id=existing.id if existing is not None else transaction.id,
                    fingerprint=transaction.fingerprint.value,
                )
            )
        return imported, duplicates

    def _build_transaction(self, batch: ImportBatch, raw: RawTransaction) -> Transaction:
        fingerprint = self.duplicate_detector.fingerprint_for(batch.account_id, raw)
        if raw.external_id and raw.external_id.strip():
            external_id = raw.external_id.strip()
        else:
            external_id = f"fp-{fingerprint.short}"
        return Transaction(
            id=TransactionId(batch.account_id, external_id),
            date=raw.date,
            amount=Money(raw.amount, raw.currency),
            description=raw.description,
            import_batch_id=batch.id,
            fingerprint=fingerprint,
            created_at=utc_now(),
            transaction_type=raw.transaction_type,
            counterparty_name=raw.counterparty_name,
            counter_account=raw.counter_account,
            counter_bank_code=raw.counter_bank_code,
            variable_symbol=raw.variable_symbol,
            constant_symbol=raw.constant_symbol,
            specific_symbol=raw.specific_symbol,
            user_identification=raw.user_identification,
            message=raw.message,
            comment=raw.comment,
        )

    def _insert(self, transaction: Transaction) -> bool:
        try:
            return self.db.add_transaction_if_absent(transaction, TransactionProcessingState.initial(transaction.id))
        except DomainError:
            raise
        except Exception as exc:
            raise TransactionStorageError(f"Failed to store transaction {transaction.id}: {exc}") from exc

    def _mark_failed(self, batch: ImportBatch, error_message: str) -> None:
        try:
            self.db.save_import_batch(batch.mark_failed(error_message))
        except Exception:
            logger.exception("Could not record failure of import %s", batch.id)
        logger.warning("Import %s failed: %s", batch.id, error_message)
