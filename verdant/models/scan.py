"""
Scan Models

CRITICAL: ScannedReceipt and ScannedLineItem hold what the AI THINKS
it saw. Every field is optional and loosely typed, because the model
output is untrusted. They must pass through the validation boundary
(verdant.validation) and become an ExpenseDraft before the user sees
them, and only a confirmed draft becomes an Expense.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from verdant.models.expense import Expense, PaymentMode


class ScannedReceipt(BaseModel):
    """Best-effort single-expense guess from a receipt image."""
    model_config = ConfigDict(extra="ignore")

    scan_id: UUID = Field(default_factory=uuid4)
    scanned_at: datetime = Field(default_factory=datetime.now)

    amount: Optional[Any] = None
    date: Optional[Any] = None
    category: Optional[Any] = None
    vendor: Optional[Any] = None


class ScannedLineItem(BaseModel):
    """One expense line found in a document with several entries."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: Optional[Any] = None
    amount: Optional[Any] = None
    date: Optional[Any] = None
    category: Optional[Any] = None
    payment_mode: Optional[Any] = Field(default=None, alias="paymentMode")


class ValidationIssue(BaseModel):
    """A single problem found while validating scanned data."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'fallback_applied')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ExpenseDraft(BaseModel):
    """
    Pre-filled expense form values.

    Fallbacks have already been applied, so every field except the amount
    has a usable value. The amount stays None when nothing trustworthy was
    read; the user must enter it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str
    amount: Optional[Decimal] = None
    date: datetime
    category: str
    payment_mode: PaymentMode = PaymentMode.OTHER

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    def to_expense(self, **overrides: Any) -> Expense:
        """
        Build a trusted Expense from this draft.

        Keyword overrides carry the user's edits. Raises pydantic's
        ValidationError when the result is still not a valid expense
        (for instance, no positive amount).
        """
        values = {
            "title": self.title,
            "amount": self.amount,
            "date": self.date,
            "category": self.category,
            "payment_mode": self.payment_mode,
        }
        values.update(overrides)
        return Expense(**values)
