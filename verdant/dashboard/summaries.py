"""
Summary Calculations

Pure functions of (records, now). Nothing here touches storage or
reads the clock on its own, so every value can be recomputed for any
"now" and tested against hand-computed totals.

Windows are half-open local calendar periods [start, end):
- today: the calendar day of `now`
- week:  seven days starting on `week_start` (0 = Monday)
- month: the calendar month of `now`
- year:  the calendar year of `now`
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from verdant.models.dashboard import ExpenseSummary
from verdant.models.expense import Expense, Reminder, to_local_naive


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def week_window(now: datetime, week_start: int = 0) -> tuple[datetime, datetime]:
    """The week containing `now`, beginning on weekday `week_start`."""
    day = start_of_day(now)
    start = day - timedelta(days=(day.weekday() - week_start) % 7)
    return start, start + timedelta(days=7)


def month_window(now: datetime) -> tuple[datetime, datetime]:
    start = start_of_day(now).replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def year_window(now: datetime) -> tuple[datetime, datetime]:
    start = start_of_day(now).replace(month=1, day=1)
    return start, start.replace(year=start.year + 1)


def total_between(expenses: Iterable[Expense], start: datetime, end: datetime) -> Decimal:
    """Sum of amounts for expenses dated in [start, end)."""
    return sum(
        (expense.amount for expense in expenses if start <= expense.date < end),
        Decimal("0"),
    )


def summarize_expenses(
    expenses: list[Expense],
    now: datetime,
    week_start: int = 0,
) -> ExpenseSummary:
    """Totals for today, this week, this month and this year."""
    now = to_local_naive(now)
    day = start_of_day(now)
    return ExpenseSummary(
        today=total_between(expenses, day, day + timedelta(days=1)),
        week=total_between(expenses, *week_window(now, week_start)),
        month=total_between(expenses, *month_window(now)),
        year=total_between(expenses, *year_window(now)),
    )


def budget_progress(month_total: Decimal, monthly_budget: Optional[Decimal]) -> float:
    """
    Percentage of the monthly budget spent, capped at 100.

    0 when there is no budget (zero or absent).
    """
    if not monthly_budget:
        return 0.0
    return float(min(Decimal("100"), month_total / monthly_budget * 100))


def sort_expenses(expenses: Iterable[Expense], descending: bool = True) -> list[Expense]:
    """Sort by date; newest first unless `descending` is False."""
    return sorted(
        expenses,
        key=lambda e: (e.date, e.id or 0),
        reverse=descending,
    )


def sort_reminders(reminders: Iterable[Reminder]) -> list[Reminder]:
    """Soonest due first."""
    return sorted(reminders, key=lambda r: (r.date, r.id or 0))


def recent_expenses(expenses: Iterable[Expense], count: int = 5) -> list[Expense]:
    return sort_expenses(expenses)[:count]


def next_reminder(reminders: Iterable[Reminder], now: datetime) -> Optional[Reminder]:
    """The reminder with the nearest due date that is not before `now`."""
    now = to_local_naive(now)
    upcoming = [reminder for reminder in reminders if reminder.date >= now]
    if not upcoming:
        return None
    return sort_reminders(upcoming)[0]
