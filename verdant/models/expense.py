"""
Core Data Models for Verdant View

These models define the strict schemas for every record kept in the
local store. They are designed to:
1. Reject malformed input before it reaches storage
2. Provide clear validation error messages
3. Serialize to the portable export document unchanged
4. Keep amounts exact (Decimal, never float arithmetic)

DESIGN DECISION: Dates are normalized to naive local time on the way in.
Every summary window ("today", "this week") is a local calendar concept,
so an aware timestamp from an import or a scan is converted once here
instead of at every comparison.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)


# =============================================================================
# CONSTANTS
# =============================================================================

# Seeded on first run and protected from deletion.
DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Groceries",
    "Dining",
    "Travel",
    "Utilities",
    "Shopping",
    "Other",
)

FALLBACK_CATEGORY = "Other"

# Fixed key of the singleton settings record.
SETTINGS_ID = 1

CENTS = Decimal("0.01")


# Exported as a JSON number, kept as Decimal in Python.
Amount = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


def round_amount(value: Decimal) -> Decimal:
    """Round an amount to cents, half up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, currency_symbol: str) -> str:
    """Format as e.g. '₹1,234.50'; negatives as '-₹12.00'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency_symbol}{abs(amount):,.2f}"


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentMode(str, Enum):
    """How an expense was paid."""
    CASH = "Cash"
    CARD = "Card"
    ONLINE = "Online"
    OTHER = "Other"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Expense(BaseModel):
    """
    A single expense.

    The id is assigned by the store on insert and never changes.
    The category refers to a Category by name; the store does not
    enforce that the name exists.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: Optional[int] = Field(
        default=None,
        description="Store-assigned identifier"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    amount: Amount = Field(
        ...,
        gt=0,
        description="Amount spent, rounded to cents"
    )
    date: datetime = Field(
        ...,
        description="When the expense happened (local time)"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Name of the category"
    )
    payment_mode: PaymentMode = Field(
        default=PaymentMode.OTHER,
        alias="paymentMode",
        description="Payment mode"
    )

    @field_validator('amount')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        """Round to cents; amounts that round to zero are rejected."""
        rounded = round_amount(v)
        if rounded <= 0:
            raise ValueError("Amount must be a positive number")
        return rounded

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_local_naive(v)


class Category(BaseModel):
    """An expense category. Names are unique and case-sensitive."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name"
    )

    @property
    def is_default(self) -> bool:
        """Default categories cannot be deleted."""
        return self.name in DEFAULT_CATEGORIES


class Reminder(BaseModel):
    """
    A bill reminder.

    The amount is informational only and never reconciled
    against expenses.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What is due"
    )
    amount: Optional[Amount] = Field(
        default=None,
        ge=0,
        description="Expected amount, if known"
    )
    date: datetime = Field(
        ...,
        description="Due date (local time)"
    )

    @field_validator('amount')
    @classmethod
    def round_to_cents(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round_amount(v) if v is not None else None

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_local_naive(v)


class AppSettings(BaseModel):
    """
    The singleton settings record.

    Exactly one exists after initialization, always under SETTINGS_ID.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(
        default=SETTINGS_ID,
        description="Fixed key of the singleton"
    )
    monthly_budget: Amount = Field(
        ...,
        ge=0,
        alias="monthlyBudget",
        description="Monthly spending budget"
    )

    @field_validator('monthly_budget')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return round_amount(v)


# =============================================================================
# PORTABLE DOCUMENT
# =============================================================================

class ExportDocument(BaseModel):
    """
    The whole data set as one portable document.

    Every key is optional on import: an absent collection is left untouched.
    Incoming ids are ignored for expenses, categories and reminders.
    """
    model_config = ConfigDict(populate_by_name=True)

    expenses: Optional[list[Expense]] = None
    categories: Optional[list[Category]] = None
    reminders: Optional[list[Reminder]] = None
    settings: Optional[AppSettings] = None

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Serialize using the camelCase field names of the document layout."""
        return self.model_dump_json(by_alias=True, indent=indent)
