"""
Read-Model Schemas

CRITICAL: Everything in here is DERIVED data.
Nothing is persisted; every value is recomputed from the raw
collections and the wall-clock time of the snapshot.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from verdant.models.expense import Amount, AppSettings, Category, Expense, Reminder


class ExpenseSummary(BaseModel):
    """Totals for the calendar windows containing "now"."""

    today: Amount = Decimal("0")
    week: Amount = Decimal("0")
    month: Amount = Decimal("0")
    year: Amount = Decimal("0")


class DashboardSnapshot(BaseModel):
    """
    A consistent view of the store at one moment.

    Expenses are sorted newest first, reminders soonest first.
    """

    loaded_at: datetime = Field(
        ...,
        description="The 'now' all derived values were computed against"
    )

    expenses: list[Expense] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    reminders: list[Reminder] = Field(default_factory=list)
    settings: Optional[AppSettings] = None

    summary: ExpenseSummary = Field(default_factory=ExpenseSummary)
    budget_progress: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Share of the monthly budget spent, capped at 100"
    )
    recent_expenses: list[Expense] = Field(default_factory=list)
    next_reminder: Optional[Reminder] = None

    @property
    def monthly_budget(self) -> Decimal:
        return self.settings.monthly_budget if self.settings else Decimal("0")

    @property
    def remaining_budget(self) -> Decimal:
        """Budget left this month; negative when overspent."""
        return self.monthly_budget - self.summary.month


class ReportRow(BaseModel):
    """One line of the tabular expense report."""

    date: str
    title: str
    category: str
    payment_mode: str
    formatted_amount: str
    is_total: bool = False

    def as_tuple(self) -> tuple[str, str, str, str, str]:
        return (self.date, self.title, self.category, self.payment_mode, self.formatted_amount)


class ExpenseReport(BaseModel):
    """
    Rows ready for a renderer (PDF, CSV, table widget).

    The last row is always the total row.
    """

    rows: list[ReportRow] = Field(default_factory=list)
    total: Amount = Decimal("0")
    generated_at: datetime = Field(default_factory=datetime.now)

    @property
    def item_rows(self) -> list[ReportRow]:
        return [row for row in self.rows if not row.is_total]

    @property
    def total_row(self) -> ReportRow:
        return self.rows[-1]
