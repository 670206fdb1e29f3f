"""Dashboard aggregation package."""

from verdant.dashboard.service import (
    DashboardService,
    SnapshotLoadError,
    build_snapshot,
)
from verdant.dashboard.summaries import (
    budget_progress,
    month_window,
    next_reminder,
    recent_expenses,
    sort_expenses,
    sort_reminders,
    summarize_expenses,
    week_window,
    year_window,
)

__all__ = [
    "DashboardService",
    "SnapshotLoadError",
    "build_snapshot",
    "budget_progress",
    "month_window",
    "next_reminder",
    "recent_expenses",
    "sort_expenses",
    "sort_reminders",
    "summarize_expenses",
    "week_window",
    "year_window",
]
