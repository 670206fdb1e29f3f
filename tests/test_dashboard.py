"""
Tests for dashboard summaries and the aggregation service.

NOW is Wednesday 2024-06-12 10:30, so with a Monday week start the
week window is [2024-06-10, 2024-06-17).
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from conftest import NOW, make_expense, make_reminder
from verdant.dashboard import (
    DashboardService,
    SnapshotLoadError,
    budget_progress,
    build_snapshot,
    month_window,
    next_reminder,
    recent_expenses,
    summarize_expenses,
    week_window,
    year_window,
)
from verdant.models import AppSettings, Expense
from verdant.services.storage import TransactionFailure


def _expenses() -> list[Expense]:
    return [
        make_expense(title="Today", amount="10", date=NOW.replace(hour=8)),
        make_expense(title="Monday", amount="20", date=datetime(2024, 6, 10, 12)),
        make_expense(title="Last Sunday", amount="40", date=datetime(2024, 6, 9, 23, 59)),
        make_expense(title="May", amount="80", date=datetime(2024, 5, 31, 12)),
        make_expense(title="Last year", amount="160", date=datetime(2023, 12, 31, 12)),
    ]


class TestWindows:
    """Tests for calendar window boundaries."""

    def test_week_starts_monday(self):
        """Test the default week starts on Monday."""
        start, end = week_window(NOW)
        assert start == datetime(2024, 6, 10)
        assert end == datetime(2024, 6, 17)

    def test_week_starts_sunday(self):
        """Test a Sunday week start."""
        start, _ = week_window(NOW, week_start=6)
        assert start == datetime(2024, 6, 9)

    def test_month_window_december(self):
        """Test the month window rolls over the year."""
        assert month_window(datetime(2024, 12, 15)) == (datetime(2024, 12, 1), datetime(2025, 1, 1))

    def test_year_window(self):
        """Test the year window."""
        assert year_window(NOW) == (datetime(2024, 1, 1), datetime(2025, 1, 1))


class TestSummaries:
    """Tests for totals and derived values."""

    def test_summarize_expenses(self):
        """Test hand-computed totals for each window."""
        summary = summarize_expenses(_expenses(), NOW)
        assert summary.today == Decimal("10")
        assert summary.week == Decimal("30")
        assert summary.month == Decimal("70")
        assert summary.year == Decimal("150")

    def test_summarize_with_sunday_week(self):
        """Test the week total follows the configured start day."""
        summary = summarize_expenses(_expenses(), NOW, week_start=6)
        assert summary.week == Decimal("70")

    def test_summary_of_nothing(self):
        """Test empty input sums to zero."""
        summary = summarize_expenses([], NOW)
        assert summary.today == summary.week == summary.month == summary.year == Decimal("0")

    def test_budget_progress(self):
        """Test progress is the share of the budget spent."""
        assert budget_progress(Decimal("250"), Decimal("1000")) == pytest.approx(25.0)

    def test_budget_progress_capped(self):
        """Test progress never exceeds 100."""
        assert budget_progress(Decimal("1500"), Decimal("1000")) == 100.0

    @pytest.mark.parametrize("budget", [Decimal("0"), None])
    def test_budget_progress_without_budget(self, budget):
        """Test zero or missing budget gives zero progress."""
        assert budget_progress(Decimal("500"), budget) == 0.0

    def test_recent_expenses_newest_first(self):
        """Test the recent list is the newest N."""
        recent = recent_expenses(_expenses(), count=3)
        assert [e.title for e in recent] == ["Today", "Monday", "Last Sunday"]

    def test_next_reminder(self):
        """Test the nearest not-yet-due reminder is chosen."""
        reminders = [
            make_reminder(title="Past", date=NOW - timedelta(hours=1)),
            make_reminder(title="Later", date=NOW + timedelta(days=5)),
            make_reminder(title="Soon", date=NOW + timedelta(days=1)),
        ]
        assert next_reminder(reminders, NOW).title == "Soon"

    def test_next_reminder_none(self):
        """Test no upcoming reminders gives None."""
        assert next_reminder([make_reminder(date=NOW - timedelta(days=1))], NOW) is None

    def test_build_snapshot(self):
        """Test a snapshot derives every value from the same now."""
        snapshot = build_snapshot(
            expenses=_expenses(),
            categories=[],
            reminders=[make_reminder(title="Rent", date=NOW + timedelta(days=2))],
            settings=AppSettings(monthly_budget=Decimal("140")),
            now=NOW,
            recent_count=5,
        )
        assert snapshot.loaded_at == NOW
        assert snapshot.budget_progress == pytest.approx(50.0)
        assert snapshot.remaining_budget == Decimal("70")
        assert snapshot.expenses[0].title == "Today"
        assert snapshot.next_reminder.title == "Rent"


class FailingExpenseStore:
    """Wraps a store so that one read fails."""

    def __init__(self, store):
        self._store = store

    async def list_expenses(self):
        raise TransactionFailure("disk I/O error")

    def __getattr__(self, name):
        return getattr(self._store, name)


class TestDashboardService:
    """Tests for loading snapshots from the store."""

    async def test_load_all(self, store):
        """Test load_all reads the store and derives the snapshot."""
        await store.add_expense(make_expense(amount="100", date=NOW))
        service = DashboardService(store)

        snapshot = await service.load_all(NOW)

        assert snapshot.summary.today == Decimal("100")
        assert snapshot.budget_progress == pytest.approx(10.0)
        assert len(snapshot.categories) == 6

    async def test_load_all_failure_aggregates_errors(self, store):
        """Test a failed read raises with every failure attached."""
        service = DashboardService(FailingExpenseStore(store))
        with pytest.raises(SnapshotLoadError) as exc_info:
            await service.load_all(NOW)
        assert list(exc_info.value.errors) == ["expenses"]

    async def test_refresh_keeps_previous_snapshot_on_failure(self, store):
        """Test stale-but-available behavior."""
        service = DashboardService(store)
        first = await service.refresh(NOW)

        service._storage = FailingExpenseStore(store)
        with pytest.raises(SnapshotLoadError):
            await service.refresh(NOW)

        assert service.snapshot is first

    async def test_summary_at_recomputes_windows(self, store):
        """Test summaries move with the clock across midnight."""
        await store.add_expense(make_expense(amount="25", date=NOW))
        service = DashboardService(store)
        await service.refresh(NOW)

        tomorrow = service.summary_at(NOW + timedelta(days=1))
        assert tomorrow.today == Decimal("0")
        assert tomorrow.week == Decimal("25")

    async def test_recent_count_setting(self, store):
        """Test the recent list length is configurable."""
        for day in range(6):
            await store.add_expense(make_expense(date=NOW - timedelta(days=day)))
        service = DashboardService(store, recent_count=3)
        snapshot = await service.load_all(NOW)
        assert len(snapshot.recent_expenses) == 3
