"""Utility functions for budgetsync."""

from budgetsync.utils.date_parser import parse_date
from budgetsync.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_amount"]
