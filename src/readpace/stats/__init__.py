"""Reading analytics."""

from .analytics import (
    EXPORT_COLUMNS,
    AnalyticsPeriod,
    AnalyticsSummary,
    DailyStats,
    DetailedAnalytics,
    ModeStats,
    ReadingAnalytics,
    period_start,
    summarize,
)

__all__ = [
    "EXPORT_COLUMNS",
    "AnalyticsPeriod",
    "AnalyticsSummary",
    "DailyStats",
    "DetailedAnalytics",
    "ModeStats",
    "ReadingAnalytics",
    "period_start",
    "summarize",
]
