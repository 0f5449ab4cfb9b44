"""Quiz attempt analytics."""

from .aggregator import (
    AnalyticsPolicy,
    AnalyticsReport,
    aggregate_analytics,
    format_relative_date,
)

__all__ = [
    "AnalyticsPolicy",
    "AnalyticsReport",
    "aggregate_analytics",
    "format_relative_date",
]
