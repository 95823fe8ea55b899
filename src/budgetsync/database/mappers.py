"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic so the schema can change without
touching the domain. SQLite drops time zone information, so every datetime
read back is tagged as UTC.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

from budgetsync.domain import entities as domain
from budgetsync.database.models import (
    Category as ORMCategory,
    ImportBatch as ORMImportBatch,
    ProcessingState as ORMProcessingState,
    Transaction as ORMTransaction,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _confidence(value: Optional[float]) -> Optional[domain.ConfidenceScore]:
    return None if value is None else domain.ConfidenceScore(value)


def _score_value(score: Optional[domain.ConfidenceScore]) -> Optional[float]:
    return None if score is None else score.value


def import_batch_to_domain(orm_batch: ORMImportBatch) -> domain.ImportBatch:
    """Convert SQLAlchemy ImportBatch model to domain ImportBatch entity."""
    return domain.ImportBatch(
        id=domain.ImportBatchId(orm_batch.account_id, orm_batch.sequence_number),
        account_id=orm_batch.account_id,
        start_date=orm_batch.start_date,
        end_date=orm_batch.end_date,
        status=domain.ImportStatus(orm_batch.status),
        start_time=_as_utc(orm_batch.start_time),
        created_at=_as_utc(orm_batch.created_at),
        updated_at=_as_utc(orm_batch.updated_at),
        transaction_count=orm_batch.transaction_count,
        duplicate_count=orm_batch.duplicate_count,
        error_message=orm_batch.error_message,
        end_time=_as_utc(orm_batch.end_time),
    )


def import_batch_to_orm(batch: domain.ImportBatch, orm_batch: Optional[ORMImportBatch] = None) -> ORMImportBatch:
    """Copy a domain ImportBatch onto a (new or existing) SQLAlchemy row."""
    if orm_batch is None:
        orm_batch = ORMImportBatch(id=batch.id.value)
    orm_batch.account_id = batch.account_id
    orm_batch.sequence_number = batch.id.sequence_number
    orm_batch.start_date = batch.start_date
    orm_batch.end_date = batch.end_date
    orm_batch.status = batch.status.value
    orm_batch.transaction_count = batch.transaction_count
    orm_batch.duplicate_count = batch.duplicate_count
    orm_batch.error_message = batch.error_message
    orm_batch.start_time = batch.start_time
    orm_batch.end_time = batch.end_time
    orm_batch.created_at = batch.created_at
    orm_batch.updated_at = batch.updated_at
    return orm_batch


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=domain.TransactionId(orm_transaction.account_id, orm_transaction.external_id),
        date=orm_transaction.date,
        amount=domain.Money(Decimal(orm_transaction.amount), orm_transaction.currency),
        description=orm_transaction.description,
        import_batch_id=domain.ImportBatchId.from_string(orm_transaction.import_batch_id),
        fingerprint=domain.TransactionFingerprint(orm_transaction.fingerprint),
        created_at=_as_utc(orm_transaction.created_at),
        transaction_type=orm_transaction.transaction_type,
        counterparty_name=orm_transaction.counterparty_name,
        counter_account=orm_transaction.counter_account,
        counter_bank_code=orm_transaction.counter_bank_code,
        variable_symbol=orm_transaction.variable_symbol,
        constant_symbol=orm_transaction.constant_symbol,
        specific_symbol=orm_transaction.specific_symbol,
        user_identification=orm_transaction.user_identification,
        message=orm_transaction.message,
        comment=orm_transaction.comment,
    )


def transaction_to_orm(transaction: domain.Transaction) -> ORMTransaction:
    """Build a SQLAlchemy Transaction row from a domain Transaction."""
    return ORMTransaction(
        account_id=transaction.id.account_id,
        external_id=transaction.id.external_id,
        fingerprint=transaction.fingerprint.value,
        date=transaction.date,
        amount=transaction.amount.amount,
        currency=transaction.amount.currency,
        description=transaction.description,
        transaction_type=transaction.transaction_type,
        counterparty_name=transaction.counterparty_name,
        counter_account=transaction.counter_account,
        counter_bank_code=transaction.counter_bank_code,
        variable_symbol=transaction.variable_symbol,
        constant_symbol=transaction.constant_symbol,
        specific_symbol=transaction.specific_symbol,
        user_identification=transaction.user_identification,
        message=transaction.message,
        comment=transaction.comment,
        import_batch_id=transaction.import_batch_id.value,
        created_at=transaction.created_at,
    )


def processing_state_to_domain(orm_state: ORMProcessingState) -> domain.TransactionProcessingState:
    """Convert SQLAlchemy ProcessingState model to domain TransactionProcessingState."""
    return domain.TransactionProcessingState(
        transaction_id=domain.TransactionId(orm_state.account_id, orm_state.external_id),
        status=domain.TransactionStatus(orm_state.status),
        is_duplicate=orm_state.is_duplicate,
        suggested_category=orm_state.suggested_category,
        suggested_payee_name=orm_state.suggested_payee_name,
        suggested_memo=orm_state.suggested_memo,
        category_confidence=_confidence(orm_state.category_confidence),
        payee_confidence=_confidence(orm_state.payee_confidence),
        override_category=orm_state.override_category,
        override_payee_name=orm_state.override_payee_name,
        override_memo=orm_state.override_memo,
        ledger_transaction_id=orm_state.ledger_transaction_id,
        ledger_account_id=orm_state.ledger_account_id,
        processed_at=_as_utc(orm_state.processed_at),
        submitted_at=_as_utc(orm_state.submitted_at),
    )


def processing_state_values(state: domain.TransactionProcessingState) -> dict:
    """Column values of a processing state, excluding its key."""
    return {
        "status": state.status.value,
        "is_duplicate": state.is_duplicate,
        "suggested_category": state.suggested_category,
        "suggested_payee_name": state.suggested_payee_name,
        "suggested_memo": state.suggested_memo,
        "category_confidence": _score_value(state.category_confidence),
        "payee_confidence": _score_value(state.payee_confidence),
        "override_category": state.override_category,
        "override_payee_name": state.override_payee_name,
        "override_memo": state.override_memo,
        "ledger_transaction_id": state.ledger_transaction_id,
        "ledger_account_id": state.ledger_account_id,
        "processed_at": state.processed_at,
        "submitted_at": state.submitted_at,
    }


def processing_state_to_orm(state: domain.TransactionProcessingState) -> ORMProcessingState:
    """Build a SQLAlchemy ProcessingState row from a domain state."""
    return ORMProcessingState(
        account_id=state.transaction_id.account_id,
        external_id=state.transaction_id.external_id,
        **processing_state_values(state),
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        external_id=orm_category.external_id,
        parent_id=orm_category.parent_id,
        active=orm_category.active,
    )
