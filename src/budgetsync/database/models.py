"""SQLAlchemy models for budgetsync database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ImportSequence(Base):
    """Per-account counter backing import batch sequence numbers."""

    __tablename__ = "import_sequences"

    account_id = Column(String(100), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)


class ImportBatch(Base):
    """Import run model."""

    __tablename__ = "import_batches"

    id = Column(String(150), primary_key=True)
    account_id = Column(String(100), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False)
    transaction_count = Column(Integer, nullable=False, default=0)
    duplicate_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "sequence_number", name="uq_batch_account_sequence"),
        Index("idx_import_batches_status", "status"),
    )

    transactions = relationship("Transaction", back_populates="import_batch")


class Transaction(Base):
    """Transaction model. Rows are written once and never updated."""

    __tablename__ = "transactions"

    account_id = Column(String(100), primary_key=True)
    external_id = Column(String(100), primary_key=True)
    fingerprint = Column(String(64), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(19, 4), nullable=False)
    currency = Column(String(3), nullable=False)
    description = Column(Text, nullable=False, default="")
    transaction_type = Column(String(100), nullable=False, default="")
    counterparty_name = Column(Text, nullable=True)
    counter_account = Column(String(100), nullable=True)
    counter_bank_code = Column(String(20), nullable=True)
    variable_symbol = Column(String(20), nullable=True)
    constant_symbol = Column(String(20), nullable=True)
    specific_symbol = Column(String(20), nullable=True)
    user_identification = Column(Text, nullable=True)
    message = Column(Text, nullable=True)
    comment = Column(Text, nullable=True)
    import_batch_id = Column(String(150), ForeignKey("import_batches.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    # Duplicate detection relies on this constraint under concurrent imports
    __table_args__ = (
        UniqueConstraint("account_id", "fingerprint", name="uq_account_fingerprint"),
        Index("idx_transactions_account_date", "account_id", "date"),
    )

    import_batch = relationship("ImportBatch", back_populates="transactions")
    processing_state = relationship(
        "ProcessingState", back_populates="transaction", uselist=False, cascade="all, delete-orphan"
    )


class ProcessingState(Base):
    """Workflow state of a transaction."""

    __tablename__ = "processing_states"

    account_id = Column(String(100), primary_key=True)
    external_id = Column(String(100), primary_key=True)
    status = Column(String(20), nullable=False)
    is_duplicate = Column(Boolean, default=False, nullable=False)
    suggested_category = Column(String(100), nullable=True)
    suggested_payee_name = Column(Text, nullable=True)
    suggested_memo = Column(Text, nullable=True)
    category_confidence = Column(Float, nullable=True)
    payee_confidence = Column(Float, nullable=True)
    override_category = Column(String(100), nullable=True)
    override_payee_name = Column(Text, nullable=True)
    override_memo = Column(Text, nullable=True)
    ledger_transaction_id = Column(String(100), nullable=True)
    ledger_account_id = Column(String(100), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        ForeignKeyConstraint(
            ["account_id", "external_id"],
            ["transactions.account_id", "transactions.external_id"],
        ),
        Index("idx_processing_states_status", "status"),
    )

    transaction = relationship("Transaction", back_populates="processing_state")


class Category(Base):
    """Category model mapped to a ledger category."""

    __tablename__ = "categories"

    id = Column(String(100), primary_key=True)
    name = Column(String, nullable=False)
    external_id = Column(String(100), nullable=True)
    parent_id = Column(String(100), ForeignKey("categories.id"), nullable=True)
    active = Column(Boolean, default=True, nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are per thread; give writers time to wait for SQLite's lock
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
