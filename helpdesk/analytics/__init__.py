"""Admin analytics report."""

from .repository import AnalyticsRepository
from .service import AnalyticsReport, AnalyticsService, ReportRange

__all__ = ["AnalyticsReport", "AnalyticsRepository", "AnalyticsService", "ReportRange"]
