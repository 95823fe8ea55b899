"""Database layer for budgetsync application."""

from budgetsync.database.base import Database
from budgetsync.database.factories import create_memory_database, create_sqlite_database

__all__ = ["Database", "create_memory_database", "create_sqlite_database"]
