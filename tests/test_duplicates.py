"""Tests for fingerprints and duplicate detection."""

from datetime import date
from decimal import Decimal

from budgetsync.domain.duplicates import DuplicateDetector
from budgetsync.domain.entities import (
    ImportBatchId,
    Money,
    Transaction,
    TransactionFingerprint,
    TransactionId,
    utc_now,
)
from budgetsync.domain.ports import RawTransaction


def test_fingerprint_from_provider_id_is_deterministic():
    first = TransactionFingerprint.for_external_id("fio-2000", "26001")
    second = TransactionFingerprint.for_external_id("fio-2000", "26001")
    assert first == second
    assert len(first.value) == 64
    assert len(first.short) == 16


def test_fingerprint_depends_on_account():
    assert TransactionFingerprint.for_external_id("fio-2000", "1") != TransactionFingerprint.for_external_id(
        "fio-3000", "1"
    )


def test_content_fingerprint_normalizes_amount():
    first = TransactionFingerprint.for_content("fio-2000", date(2024, 1, 15), Decimal("-50.0"), "Shop", "Coffee")
    second = TransactionFingerprint.for_content("fio-2000", date(2024, 1, 15), Decimal("-50.00"), "Shop", "Coffee")
    assert first == second


def test_content_fingerprint_changes_with_content():
    base = TransactionFingerprint.for_content("fio-2000", date(2024, 1, 15), Decimal("-50"), "Shop", "Coffee")
    assert base != TransactionFingerprint.for_content("fio-2000", date(2024, 1, 16), Decimal("-50"), "Shop", "Coffee")
    assert base != TransactionFingerprint.for_content("fio-2000", date(2024, 1, 15), Decimal("-51"), "Shop", "Coffee")
    assert base != TransactionFingerprint.for_content("fio-2000", date(2024, 1, 15), Decimal("-50"), "Cafe", "Coffee")
    assert base != TransactionFingerprint.for_content("fio-2000", date(2024, 1, 15), Decimal("-50"), "Shop", "Tea")


def test_detector_prefers_provider_id():
    raw = RawTransaction(date=date(2024, 1, 15), amount=Decimal("-50"), currency="CZK", external_id=" 26001 ")
    assert DuplicateDetector.fingerprint_for("fio-2000", raw) == TransactionFingerprint.for_external_id(
        "fio-2000", "26001"
    )


def test_detector_falls_back_to_content():
    raw = RawTransaction(
        date=date(2024, 1, 15),
        amount=Decimal("-50"),
        currency="CZK",
        counterparty_name="Shop",
        message="Coffee",
    )
    assert DuplicateDetector.fingerprint_for("fio-2000", raw) == TransactionFingerprint.for_content(
        "fio-2000", date(2024, 1, 15), Decimal("-50"), "Shop", "Coffee"
    )


def _transaction(external_id, fingerprint, account_id="fio-2000"):
    return Transaction(
        id=TransactionId(account_id, external_id),
        date=date(2024, 1, 15),
        amount=Money(Decimal("-50.00"), "CZK"),
        description="Coffee",
        import_batch_id=ImportBatchId(account_id, 1),
        fingerprint=fingerprint,
        created_at=utc_now(),
    )


def test_is_duplicate(db, store_transaction):
    store_transaction("26001")
    detector = DuplicateDetector(db)

    same = _transaction("26001", TransactionFingerprint.for_external_id("fio-2000", "26001"))
    other = _transaction("26002", TransactionFingerprint.for_external_id("fio-2000", "26002"))
    other_account = _transaction("26001", TransactionFingerprint.for_external_id("fio-3000", "26001"), "fio-3000")

    assert detector.is_duplicate(same)
    assert not detector.is_duplicate(other)
    assert not detector.is_duplicate(other_account)


def test_is_duplicate_by_fingerprint_under_another_id(db, store_transaction):
    store_transaction("26001")
    detector = DuplicateDetector(db)

    renamed = _transaction("fp-abc", TransactionFingerprint.for_external_id("fio-2000", "26001"))
    existing = detector.find_existing(renamed)
    assert existing is not None
    assert existing.id == TransactionId("fio-2000", "26001")
