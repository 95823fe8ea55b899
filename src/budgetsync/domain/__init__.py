"""Domain layer for budgetsync application."""

from budgetsync.domain.duplicates import DuplicateDetector
from budgetsync.domain.import_service import ImportService
from budgetsync.domain.categorization import CategorizationService, KeywordCategorizationProvider
from budgetsync.domain.submission import SubmissionService
from budgetsync.domain.statistics import StatisticsService

__all__ = [
    "DuplicateDetector",
    "ImportService",
    "CategorizationService",
    "KeywordCategorizationProvider",
    "SubmissionService",
    "StatisticsService",
]
