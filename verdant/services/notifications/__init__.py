"""Reminder notification services package."""

from verdant.services.notifications.notifier import (
    CallbackNotifier,
    LogNotifier,
    NotificationDeliveryUncertain,
    Notifier,
)
from verdant.services.notifications.scheduler import (
    ReminderScheduler,
    ReminderState,
    build_notification,
    days_until_due,
    milestone_for,
    reminder_state,
)

__all__ = [
    "CallbackNotifier",
    "LogNotifier",
    "NotificationDeliveryUncertain",
    "Notifier",
    "ReminderScheduler",
    "ReminderState",
    "build_notification",
    "days_until_due",
    "milestone_for",
    "reminder_state",
]
