"""Adapters implementing the domain ports."""

from budgetsync.adapters.csv_statement import FIO_COLUMNS, CsvStatementProvider

__all__ = ["FIO_COLUMNS", "CsvStatementProvider"]
