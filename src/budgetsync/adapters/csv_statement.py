"""Transaction provider reading bank statement CSV exports."""

import csv
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

from budgetsync.domain.entities import AccountId
from budgetsync.domain.errors import TransactionProviderError
from budgetsync.domain.ports import RawTransaction, TransactionProvider
from budgetsync.logging_setup import get_logger
from budgetsync.utils.amount_parser import parse_amount
from budgetsync.utils.date_parser import parse_date

logger = get_logger(__name__)

# RawTransaction field -> column header of a Fio Bank CSV export
FIO_COLUMNS: dict[str, str] = {
    "external_id": "ID pohybu",
    "date": "Datum",
    "amount": "Objem",
    "currency": "Měna",
    "counter_account": "Protiúčet",
    "counterparty_name": "Název protiúčtu",
    "counter_bank_code": "Kód banky",
    "constant_symbol": "KS",
    "variable_symbol": "VS",
    "specific_symbol": "SS",
    "user_identification": "Poznámka",
    "message": "Zpráva pro příjemce",
    "transaction_type": "Typ",
    "comment": "Komentář",
}

_OPTIONAL_FIELDS = (
    "counter_account",
    "counterparty_name",
    "counter_bank_code",
    "constant_symbol",
    "variable_symbol",
    "specific_symbol",
    "user_identification",
    "message",
    "comment",
)


class CsvStatementProvider(TransactionProvider):
    """Reads transactions from a CSV statement file.

    Fio exports start with a block of account metadata lines; everything
    before the header row is skipped. Rows that cannot be parsed are logged
    and left out, and their messages are kept in ``errors``.
    """

    def __init__(
        self,
        path: str,
        columns: Optional[Mapping[str, str]] = None,
        dayfirst: bool = True,
        default_currency: str = "CZK",
    ):
        """Initialize CSV statement provider.

        Args:
            path: Path to the CSV file
            columns: Mapping of RawTransaction field names to CSV headers
            dayfirst: Parse ambiguous dates as day.month.year
            default_currency: Currency used when the file has no currency column
        """
        self.path = Path(path)
        self.columns = dict(columns or FIO_COLUMNS)
        self.dayfirst = dayfirst
        self.default_currency = default_currency
        self.errors: list[str] = []

    def fetch_transactions(self, account_id: AccountId, start_date: date, end_date: date) -> list[RawTransaction]:
        """Return the statement rows dated within the inclusive range."""
        if not self.path.exists():
            raise TransactionProviderError(f"Statement file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8-sig", newline="") as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise TransactionProviderError(f"Could not read statement {self.path}: {e}") from e

        header_index = self._find_header(lines)
        body = lines[header_index:]
        try:
            delimiter = csv.Sniffer().sniff("\n".join(body[:5]), delimiters=";,\t").delimiter
        except csv.Error:
            delimiter = ";"
        reader = csv.DictReader(body, delimiter=delimiter)

        self.errors = []
        records = []
        # Line numbers are 1-based and the header occupies header_index + 1
        for line_num, row in enumerate(reader, start=header_index + 2):
            try:
                record = self._parse_row(row)
            except ValueError as e:
                self.errors.append(f"Row {line_num}: {e}")
                logger.warning("Skipping row %d of %s: %s", line_num, self.path.name, e)
                continue
            if start_date <= record.date <= end_date:
                records.append(record)

        logger.info("Read %d transactions for %s from %s", len(records), account_id, self.path.name)
        return records

    def _find_header(self, lines: list[str]) -> int:
        date_header = self.columns["date"]
        amount_header = self.columns["amount"]
        for index, line in enumerate(lines):
            if date_header in line and amount_header in line:
                return index
        raise TransactionProviderError(
            f"Statement {self.path} has no header row with '{date_header}' and '{amount_header}' columns"
        )

    def _value(self, row: dict, field: str) -> Optional[str]:
        header = self.columns.get(field)
        if header is None:
            return None
        value = row.get(header)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def _parse_row(self, row: dict) -> RawTransaction:
        date_str = self._value(row, "date")
        if not date_str:
            raise ValueError("Missing date")
        amount_str = self._value(row, "amount")
        if not amount_str:
            raise ValueError("Missing amount")

        optional = {field: self._value(row, field) for field in _OPTIONAL_FIELDS}
        return RawTransaction(
            date=parse_date(date_str, dayfirst=self.dayfirst),
            amount=parse_amount(amount_str),
            currency=(self._value(row, "currency") or self.default_currency).upper(),
            external_id=self._value(row, "external_id"),
            transaction_type=self._value(row, "transaction_type") or "",
            **optional,
        )
