"""
Expense Report

Turns expenses into display-ready rows plus a trailing total row.
Pure function, no I/O: writing a PDF, CSV or table is the renderer's job.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from verdant.config import get_settings
from verdant.dashboard.summaries import sort_expenses
from verdant.models.dashboard import ExpenseReport, ReportRow
from verdant.models.expense import Expense, format_amount


REPORT_DATE_FORMAT = "%d %b %Y"


def generate_report(
    expenses: Iterable[Expense],
    currency_symbol: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> ExpenseReport:
    """
    Build report rows (date, title, category, payment mode, amount),
    newest first, followed by a total row.
    """
    if currency_symbol is None:
        currency_symbol = get_settings().budget.currency_symbol

    ordered = sort_expenses(expenses)
    rows = [
        ReportRow(
            date=expense.date.strftime(REPORT_DATE_FORMAT),
            title=expense.title,
            category=expense.category,
            payment_mode=expense.payment_mode.value,
            formatted_amount=format_amount(expense.amount, currency_symbol),
        )
        for expense in ordered
    ]

    total = sum((expense.amount for expense in ordered), Decimal("0"))
    rows.append(
        ReportRow(
            date="",
            title="Total",
            category="",
            payment_mode="",
            formatted_amount=format_amount(total, currency_symbol),
            is_total=True,
        )
    )

    return ExpenseReport(
        rows=rows,
        total=total,
        generated_at=generated_at or datetime.now(),
    )
