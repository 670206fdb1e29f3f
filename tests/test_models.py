"""
Tests for Verdant View

Test strategy:
1. Unit tests for individual components (models, summaries, validators)
2. Store and scheduler tests against a real SQLite file per test
3. No real API calls in tests (fakes for Gemini and notifications)
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from verdant.models import (
    DEFAULT_CATEGORIES,
    AppSettings,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Category,
    Expense,
    ExpenseDraft,
    ExportDocument,
    PaymentMode,
    Reminder,
    ReminderMilestone,
    SentNotificationMark,
    ValidationIssue,
    format_amount,
    notification_tag,
)


class TestExpenseModels:
    """Tests for the stored record models."""

    def test_expense_creation(self):
        """Test Expense model creation."""
        expense = Expense(
            title="Groceries run",
            amount=Decimal("42.10"),
            date=datetime(2024, 6, 1, 9, 0),
            category="Groceries",
            payment_mode=PaymentMode.CASH,
        )
        assert expense.id is None
        assert expense.amount == Decimal("42.10")
        assert expense.payment_mode == PaymentMode.CASH

    def test_expense_strips_whitespace(self):
        """Test that whitespace is stripped from title and category."""
        expense = Expense(title="  Lunch  ", amount=1, date=datetime(2024, 6, 1), category=" Dining ")
        assert expense.title == "Lunch"
        assert expense.category == "Dining"

    def test_expense_amount_rounded_half_up(self):
        """Test amounts are rounded to cents, half up."""
        expense = Expense(title="Tea", amount="2.345", date=datetime(2024, 6, 1), category="Dining")
        assert expense.amount == Decimal("2.35")

    @pytest.mark.parametrize("amount", ["0", "-5", "0.004"])
    def test_expense_rejects_non_positive_amount(self, amount):
        """Test that zero, negative and round-to-zero amounts are rejected."""
        with pytest.raises(ValidationError):
            Expense(title="Bad", amount=amount, date=datetime(2024, 6, 1), category="Other")

    def test_expense_rejects_empty_title(self):
        """Test that a blank title is rejected."""
        with pytest.raises(ValidationError):
            Expense(title="   ", amount=1, date=datetime(2024, 6, 1), category="Other")

    def test_expense_accepts_camel_case_alias(self):
        """Test the paymentMode alias used by the export document."""
        expense = Expense.model_validate({
            "title": "Taxi",
            "amount": 12.5,
            "date": "2024-06-01T18:00:00",
            "category": "Travel",
            "paymentMode": "Online",
        })
        assert expense.payment_mode == PaymentMode.ONLINE

    def test_expense_defaults_payment_mode_other(self):
        """Test payment mode defaults to Other."""
        expense = Expense(title="Misc", amount=1, date=datetime(2024, 6, 1), category="Other")
        assert expense.payment_mode == PaymentMode.OTHER

    def test_aware_datetime_normalized_to_naive_local(self):
        """Test that timezone-aware dates become naive local time."""
        aware = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        expense = Expense(title="Book", amount=10, date=aware, category="Shopping")
        assert expense.date.tzinfo is None
        assert expense.date == aware.astimezone().replace(tzinfo=None)

    def test_category_is_default(self):
        """Test default category detection is case-sensitive."""
        assert Category(name="Groceries").is_default is True
        assert Category(name="groceries").is_default is False
        assert Category(name="Gym").is_default is False

    def test_reminder_amount_optional(self):
        """Test reminders may have no amount."""
        reminder = Reminder(title="Insurance", date=datetime(2024, 7, 1))
        assert reminder.amount is None

    def test_reminder_rejects_negative_amount(self):
        """Test that negative reminder amounts are rejected."""
        with pytest.raises(ValidationError):
            Reminder(title="Rent", amount=Decimal("-1"), date=datetime(2024, 7, 1))

    def test_app_settings_singleton_id(self):
        """Test settings always default to id 1 and accept the alias."""
        settings = AppSettings.model_validate({"monthlyBudget": 2500})
        assert settings.id == 1
        assert settings.monthly_budget == Decimal("2500.00")

    def test_app_settings_rejects_negative_budget(self):
        """Test that a negative budget is rejected."""
        with pytest.raises(ValidationError):
            AppSettings(monthly_budget=Decimal("-10"))

    def test_default_categories(self):
        """Test the seeded category list."""
        assert DEFAULT_CATEGORIES == (
            "Groceries", "Dining", "Travel", "Utilities", "Shopping", "Other",
        )

    def test_format_amount(self):
        """Test currency formatting with thousands separators."""
        assert format_amount(Decimal("1234.5"), "₹") == "₹1,234.50"
        assert format_amount(Decimal("-12"), "$") == "-$12.00"


class TestExportDocument:
    """Tests for the portable document model."""

    def test_to_json_uses_camel_case_and_numbers(self):
        """Test the JSON layout uses camelCase keys and numeric amounts."""
        document = ExportDocument(
            expenses=[Expense(id=3, title="Tea", amount="2.50", date=datetime(2024, 6, 1), category="Dining")],
            categories=[Category(id=1, name="Dining")],
            reminders=[],
            settings=AppSettings(monthly_budget=1000),
        )
        data = json.loads(document.to_json())

        assert data["expenses"][0]["paymentMode"] == "Other"
        assert data["expenses"][0]["amount"] == 2.5
        assert data["settings"] == {"id": 1, "monthlyBudget": 1000.0}
        assert data["reminders"] == []

    def test_missing_collections_are_none(self):
        """Test that absent keys are distinguishable from empty lists."""
        document = ExportDocument.model_validate({"categories": [{"name": "Gym"}]})
        assert document.expenses is None
        assert document.reminders is None
        assert document.settings is None
        assert document.categories[0].name == "Gym"


class TestNotificationModels:
    """Tests for sent-mark models."""

    def test_notification_tag_format(self):
        """Test tags are reminder-<milestone>-<id>."""
        assert notification_tag(7, ReminderMilestone.ONE_DAY) == "reminder-1day-7"
        assert notification_tag(7, ReminderMilestone.TODAY) == "reminder-today-7"

    def test_sent_mark_for_reminder(self):
        """Test building a mark from a reminder id and milestone."""
        sent_at = datetime(2024, 6, 12, 8, 0)
        mark = SentNotificationMark.for_reminder(4, ReminderMilestone.TODAY, sent_at=sent_at)
        assert mark.tag == "reminder-today-4"
        assert mark.reminder_id == 4
        assert mark.sent_at == sent_at

    def test_milestone_days(self):
        """Test each milestone's distance to the due date."""
        assert ReminderMilestone.ONE_DAY.days_until_due == 1
        assert ReminderMilestone.TODAY.days_until_due == 0


class TestExpenseDraft:
    """Tests for the scan draft model."""

    def _draft(self, amount=None, issues=None) -> ExpenseDraft:
        return ExpenseDraft(
            title="Corner Store",
            amount=amount,
            date=datetime(2024, 6, 10),
            category="Groceries",
            issues=issues or [],
        )

    def test_draft_has_errors(self):
        """Test has_errors property."""
        draft = self._draft(issues=[
            ValidationIssue(
                field="amount",
                issue_type="missing",
                message="The amount could not be read",
                severity="error",
            ),
        ])
        assert draft.has_errors is True

    def test_draft_warnings_only(self):
        """Test that warnings don't count as errors."""
        draft = self._draft(amount=Decimal("5"), issues=[
            ValidationIssue(
                field="date",
                issue_type="future_date",
                message="Date in future",
                severity="warning",
            ),
        ])
        assert draft.has_errors is False
        assert draft.warnings == ["Date in future"]

    def test_to_expense_requires_amount(self):
        """Test a draft without an amount cannot become an expense."""
        with pytest.raises(ValidationError):
            self._draft().to_expense()

    def test_to_expense_with_user_override(self):
        """Test user edits override draft values."""
        expense = self._draft().to_expense(amount=Decimal("18.20"), category="Shopping")
        assert expense.amount == Decimal("18.20")
        assert expense.category == "Shopping"
        assert expense.title == "Corner Store"

    def test_validation_issue_severity_pattern(self):
        """Test severity must be error, warning or info."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            description="Added expense",
        )
        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.REMINDER_ADDED,
            entity_type="reminder",
            entity_id=9,
            description="Added reminder",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "reminder_added"
        assert log_dict["entity_id"] == 9
        assert "timestamp" in log_dict

    def test_audit_event_builder_record_changed(self):
        """Test AuditEventBuilder.record_changed."""
        correlation_id = uuid4()
        event = AuditEventBuilder.record_changed(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=7,
            description="Added category 'Gym'",
            correlation_id=correlation_id,
        )
        assert event.entity_id == 7
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_delete_rejected(self):
        """Test protected-category rejections are warnings."""
        event = AuditEventBuilder.category_delete_rejected(1, "Groceries is a default category")
        assert event.event_type == AuditEventType.CATEGORY_DELETE_REJECTED
        assert event.severity == AuditSeverity.WARNING

    def test_audit_event_builder_delivery_uncertain(self):
        """Test uncertain delivery carries the tag."""
        event = AuditEventBuilder.notification_delivery_uncertain(3, "reminder-today-3", "boom")
        assert event.severity == AuditSeverity.WARNING
        assert event.details == {"tag": "reminder-today-3"}
        assert event.error_message == "boom"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
