"""Tests for the CSV statement provider."""

from datetime import date
from decimal import Decimal

import pytest

from budgetsync.adapters.csv_statement import CsvStatementProvider
from budgetsync.domain.entities import AccountId
from budgetsync.domain.errors import TransactionProviderError

FIO = AccountId("fio", "2000123456")


def test_fio_export(fixtures_dir):
    provider = CsvStatementProvider(str(fixtures_dir / "fio_statement.csv"))

    records = provider.fetch_transactions(FIO, date(2024, 1, 1), date(2024, 1, 31))

    assert [r.external_id for r in records] == ["26001", "26002", "26003", "26004"]
    card, salary, fuel, coffee = records
    assert card.date == date(2024, 1, 3)
    assert card.amount == Decimal("-450.00")
    assert card.user_identification == "Nákup: ALBERT PRAHA"
    assert card.description == "Nákup: ALBERT PRAHA"
    assert card.counterparty_name is None
    assert card.transaction_type == "Platba kartou"

    assert salary.amount == Decimal("35000.00")
    assert salary.currency == "CZK"
    assert salary.counterparty_name == "ACME s.r.o."
    assert salary.counter_account == "123456789"
    assert salary.counter_bank_code == "0100"
    assert salary.constant_symbol == "0308"
    assert salary.variable_symbol == "202401"
    assert salary.message == "Výplata leden"
    assert salary.description == "Výplata leden"

    assert fuel.amount == Decimal("-1200.50")
    assert coffee.date == date(2024, 1, 15)


def test_bad_rows_are_reported_and_skipped(fixtures_dir):
    provider = CsvStatementProvider(str(fixtures_dir / "fio_statement.csv"))

    records = provider.fetch_transactions(FIO, date(2024, 1, 1), date(2024, 2, 29))

    assert len(records) == 5
    assert len(provider.errors) == 1
    assert provider.errors[0].startswith("Row 16:")


def test_range_is_inclusive(fixtures_dir):
    provider = CsvStatementProvider(str(fixtures_dir / "fio_statement.csv"))
    records = provider.fetch_transactions(FIO, date(2024, 1, 3), date(2024, 1, 5))
    assert [r.external_id for r in records] == ["26001", "26002"]


def test_missing_file(tmp_path):
    provider = CsvStatementProvider(str(tmp_path / "missing.csv"))
    with pytest.raises(TransactionProviderError, match="not found"):
        provider.fetch_transactions(FIO, date(2024, 1, 1), date(2024, 1, 31))


def test_file_without_header(tmp_path):
    path = tmp_path / "statement.csv"
    path.write_text('"accountId";"2000123456"\n"bankId";"2010"\n', encoding="utf-8")
    provider = CsvStatementProvider(str(path))
    with pytest.raises(TransactionProviderError, match="no header row"):
        provider.fetch_transactions(FIO, date(2024, 1, 1), date(2024, 1, 31))


def test_custom_columns_with_comma_delimiter(tmp_path):
    path = tmp_path / "statement.csv"
    path.write_text(
        "Id,Date,Amount,Payee,Note\n"
        'a1,2024-01-15,-12.50,Bistro,"Lunch, with team"\n'
        "a2,2024-01-16,100.00,Employer,Bonus\n",
        encoding="utf-8",
    )
    columns = {
        "external_id": "Id",
        "date": "Date",
        "amount": "Amount",
        "counterparty_name": "Payee",
        "message": "Note",
    }
    provider = CsvStatementProvider(str(path), columns=columns, dayfirst=False, default_currency="eur")

    records = provider.fetch_transactions(FIO, date(2024, 1, 1), date(2024, 1, 31))

    assert [r.external_id for r in records] == ["a1", "a2"]
    assert records[0].amount == Decimal("-12.50")
    assert records[0].message == "Lunch, with team"
    assert records[0].currency == "EUR"
    assert records[1].counterparty_name == "Employer"
