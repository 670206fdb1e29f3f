"""
Dashboard Aggregation Service

Builds a DashboardSnapshot from the four collections. There is no live
subscription: the UI calls refresh() after it changes data.

Stale-but-available: if a refresh fails, the previous snapshot stays in
place and the caller decides whether to show it or an error state.
"""

import asyncio
from datetime import datetime
from typing import Optional

import structlog

from verdant.config import get_settings
from verdant.dashboard.summaries import (
    budget_progress,
    next_reminder,
    recent_expenses,
    sort_expenses,
    sort_reminders,
    summarize_expenses,
)
from verdant.models.dashboard import DashboardSnapshot, ExpenseSummary
from verdant.models.expense import AppSettings, Category, Expense, Reminder
from verdant.services.storage import ExpenseStorageInterface


logger = structlog.get_logger(__name__)


class SnapshotLoadError(Exception):
    """One or more collections could not be fetched."""

    def __init__(self, errors: dict[str, BaseException]):
        self.errors = errors
        summary = "; ".join(f"{name}: {error}" for name, error in errors.items())
        super().__init__(f"Failed to load dashboard data ({summary})")


def build_snapshot(
    expenses: list[Expense],
    categories: list[Category],
    reminders: list[Reminder],
    settings: Optional[AppSettings],
    now: datetime,
    week_start: int = 0,
    recent_count: int = 5,
) -> DashboardSnapshot:
    """Derive every dashboard value from raw records and a fixed `now`."""
    summary = summarize_expenses(expenses, now, week_start=week_start)
    monthly_budget = settings.monthly_budget if settings else None
    return DashboardSnapshot(
        loaded_at=now,
        expenses=sort_expenses(expenses),
        categories=list(categories),
        reminders=sort_reminders(reminders),
        settings=settings,
        summary=summary,
        budget_progress=budget_progress(summary.month, monthly_budget),
        recent_expenses=recent_expenses(expenses, recent_count),
        next_reminder=next_reminder(reminders, now),
    )


class DashboardService:
    """
    Read model for the UI.

    load_all() fetches and derives; refresh() does the same and keeps the
    result as the current snapshot only when it succeeds.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        week_start: Optional[int] = None,
        recent_count: Optional[int] = None,
    ):
        budget_settings = get_settings().budget
        self._storage = storage
        self._week_start = week_start if week_start is not None else budget_settings.week_start
        self._recent_count = (
            recent_count if recent_count is not None else budget_settings.recent_expenses_count
        )
        self._snapshot: Optional[DashboardSnapshot] = None

    @property
    def snapshot(self) -> Optional[DashboardSnapshot]:
        """The last successfully loaded snapshot, if any."""
        return self._snapshot

    async def load_all(self, now: Optional[datetime] = None) -> DashboardSnapshot:
        """
        Fetch all four collections in parallel and derive a snapshot.

        Raises:
            SnapshotLoadError: If any fetch failed; carries every failure
        """
        names = ("expenses", "categories", "reminders", "settings")
        results = await asyncio.gather(
            self._storage.list_expenses(),
            self._storage.list_categories(),
            self._storage.list_reminders(),
            self._storage.get_settings(),
            return_exceptions=True,
        )

        errors = {
            name: result
            for name, result in zip(names, results)
            if isinstance(result, BaseException)
        }
        if errors:
            logger.error(
                "dashboard_load_failed",
                failed=list(errors),
                errors={name: str(error) for name, error in errors.items()},
            )
            raise SnapshotLoadError(errors)

        expenses, categories, reminders, settings = results
        return build_snapshot(
            expenses=expenses,
            categories=categories,
            reminders=reminders,
            settings=settings,
            now=now or datetime.now(),
            week_start=self._week_start,
            recent_count=self._recent_count,
        )

    async def refresh(self, now: Optional[datetime] = None) -> DashboardSnapshot:
        """Reload; on failure the previous snapshot is kept and the error raised."""
        snapshot = await self.load_all(now)
        self._snapshot = snapshot
        return snapshot

    def summary_at(self, now: datetime) -> ExpenseSummary:
        """
        Recompute the time windows of the current snapshot for another "now".

        Summaries depend on the clock, so a snapshot left open past
        midnight must not keep reporting yesterday's "today".
        """
        expenses = self._snapshot.expenses if self._snapshot else []
        return summarize_expenses(expenses, now, week_start=self._week_start)
