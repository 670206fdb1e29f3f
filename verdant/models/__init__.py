"""
Data Models Package

This package contains all Pydantic models used in Verdant View.
All data flowing through the system must conform to these schemas.
"""

from verdant.models.expense import (
    DEFAULT_CATEGORIES,
    FALLBACK_CATEGORY,
    SETTINGS_ID,
    AppSettings,
    Category,
    Expense,
    ExportDocument,
    PaymentMode,
    Reminder,
    format_amount,
    round_amount,
    to_local_naive,
)
from verdant.models.notification import (
    ReminderAddedMessage,
    ReminderMilestone,
    SentNotificationMark,
    notification_tag,
)
from verdant.models.dashboard import (
    DashboardSnapshot,
    ExpenseReport,
    ExpenseSummary,
    ReportRow,
)
from verdant.models.scan import (
    ExpenseDraft,
    ScannedLineItem,
    ScannedReceipt,
    ValidationIssue,
)
from verdant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "DEFAULT_CATEGORIES",
    "FALLBACK_CATEGORY",
    "SETTINGS_ID",
    "AppSettings",
    "Category",
    "Expense",
    "ExportDocument",
    "PaymentMode",
    "Reminder",
    "format_amount",
    "round_amount",
    "to_local_naive",
    # Notifications
    "ReminderAddedMessage",
    "ReminderMilestone",
    "SentNotificationMark",
    "notification_tag",
    # Read models
    "DashboardSnapshot",
    "ExpenseReport",
    "ExpenseSummary",
    "ReportRow",
    # Scanning
    "ExpenseDraft",
    "ScannedLineItem",
    "ScannedReceipt",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
