"""Runtime settings for budgetsync.

Paths and log level come from the environment (or matching CLI options);
workflow limits are plain frozen dataclasses handed to the services.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DB_PATH_ENV = "BUDGETSYNC_DB_PATH"
LOG_LEVEL_ENV = "BUDGETSYNC_LOG_LEVEL"

# Fio Bank only serves 90 days of history per request.
BANK_MAX_DATE_RANGE_DAYS: dict[str, int] = {"fio": 90}
DEFAULT_MAX_DATE_RANGE_DAYS = 365

DEFAULT_CATEGORY_ID = "uncategorized"
DEFAULT_CATEGORY_NAME = "Uncategorized"


def default_database_path() -> str:
    """Return database path from BUDGETSYNC_DB_PATH, else ~/.budgetsync/budgetsync.db."""
    database_path = os.environ.get(DB_PATH_ENV)
    if database_path:
        return database_path
    db_dir = Path.home() / ".budgetsync"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "budgetsync.db")


@dataclass(frozen=True)
class ImportSettings:
    max_date_range_days: dict[str, int] = field(default_factory=lambda: dict(BANK_MAX_DATE_RANGE_DAYS))
    default_max_date_range_days: int = DEFAULT_MAX_DATE_RANGE_DAYS
    provider_timeout: Optional[float] = None

    def max_days_for(self, bank_id: str) -> int:
        """Maximum import range width for a bank, falling back to the default."""
        return self.max_date_range_days.get(bank_id.lower(), self.default_max_date_range_days)


@dataclass(frozen=True)
class CategorizationSettings:
    default_category_id: str = DEFAULT_CATEGORY_ID
    default_category_name: str = DEFAULT_CATEGORY_NAME
    provider_timeout: Optional[float] = None


@dataclass(frozen=True)
class SubmissionSettings:
    provider_timeout: Optional[float] = None
