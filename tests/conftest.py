"""Shared pytest fixtures for budgetsync tests."""

import tempfile
import threading
import os
import time
from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path
import pytest

from budgetsync.database.factories import create_memory_database, create_sqlite_database
from budgetsync.domain.entities import (
    ImportBatchId,
    Money,
    Transaction,
    TransactionFingerprint,
    TransactionId,
    TransactionProcessingState,
    TransactionStatus,
    utc_now,
)
from budgetsync.domain.ports import (
    CategorizationProvider,
    RawTransaction,
    SubmissionProvider,
    SubmissionReceipt,
    TransactionProvider,
)

ACCOUNT = "fio-2000"


class FakeTransactionProvider(TransactionProvider):
    """Bank provider returning configured records or raising a configured error."""

    def __init__(self):
        self.records: list[RawTransaction] = []
        self.error: BaseException | None = None
        self.delay: float | None = None
        self.calls = []

    def fetch_transactions(self, account_id, start_date, end_date):
        self.calls.append((account_id, start_date, end_date))
        if self.delay is not None:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeCategorizationProvider(CategorizationProvider):
    """Categorizer answering from per-transaction suggestion and error tables."""

    def __init__(self):
        self.suggestions = {}
        self.errors = {}
        self.calls = []

    def suggest_category(self, transaction, categories):
        self.calls.append(transaction.id)
        external_id = transaction.id.external_id
        if external_id in self.errors:
            raise self.errors[external_id]
        return self.suggestions.get(external_id)


class FakeSubmissionProvider(SubmissionProvider):
    """Ledger recording every submission and handing out sequential IDs.

    With ``barrier`` set, each call waits on it before answering.
    """

    def __init__(self):
        self.errors = {}
        self.submitted = []
        self.barrier: threading.Barrier | None = None
        self._next_id = 1
        self._lock = threading.Lock()

    def submit(self, transaction, category, payee_name, memo):
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        external_id = transaction.id.external_id
        if external_id in self.errors:
            raise self.errors[external_id]
        with self._lock:
            self.submitted.append((transaction.id, category, payee_name, memo))
            receipt = SubmissionReceipt(external_id=f"ynab-{self._next_id}", account_id="ynab-checking")
            self._next_id += 1
        return receipt


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def memory_db():
    """Create an in-memory database for testing."""
    db = create_memory_database()
    db.connect()
    yield db
    db.disconnect()


@pytest.fixture(params=["sqlite", "memory"])
def db(request):
    """Run the test against every Database implementation."""
    return request.getfixturevalue("temp_db" if request.param == "sqlite" else "memory_db")


@pytest.fixture
def events():
    """Collected domain events."""
    return []


@pytest.fixture
def publisher(events):
    """Event publisher appending to ``events``."""
    return events.append


@pytest.fixture
def transaction_provider():
    return FakeTransactionProvider()


@pytest.fixture
def categorization_provider():
    return FakeCategorizationProvider()


@pytest.fixture
def submission_provider():
    return FakeSubmissionProvider()


@pytest.fixture
def make_raw():
    """Factory for provider records."""

    def _make_raw(external_id, txn_date=date(2024, 1, 15), amount="-100.00", **fields):
        fields.setdefault("currency", "CZK")
        fields.setdefault("message", f"Payment {external_id}")
        return RawTransaction(date=txn_date, amount=Decimal(amount), external_id=external_id, **fields)

    return _make_raw


@pytest.fixture
def store_transaction(db):
    """Factory persisting a transaction with its initial state.

    ``update`` receives the initial state and returns the state to store.
    """

    def _store(
        external_id,
        account_id=ACCOUNT,
        description="Payment",
        amount="-100.00",
        txn_date=date(2024, 1, 15),
        update=None,
        **fields,
    ) -> TransactionId:
        transaction = Transaction(
            id=TransactionId(account_id, external_id),
            date=txn_date,
            amount=Money(Decimal(amount), "CZK"),
            description=description,
            import_batch_id=ImportBatchId(account_id, 1),
            fingerprint=TransactionFingerprint.for_external_id(account_id, external_id),
            created_at=utc_now(),
            **fields,
        )
        state = TransactionProcessingState.initial(transaction.id)
        assert db.add_transaction_if_absent(transaction, state)
        if update is not None:
            final = update(state)
            if final.status == TransactionStatus.SUBMITTED:
                # Submitted records are only written over Categorized ones
                db.save_processing_state(
                    replace(
                        final,
                        status=TransactionStatus.CATEGORIZED,
                        ledger_transaction_id=None,
                        ledger_account_id=None,
                        submitted_at=None,
                    )
                )
            db.save_processing_state(final)
        return transaction.id

    return _store


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
