"""
Notification Models

A reminder passes through two milestones: one day before it is due,
and the due day itself. Each milestone may notify at most once, ever.
The proof that it already did is a SentNotificationMark, persisted in
the same local store as the reminders so it survives worker restarts.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from verdant.models.expense import Amount, to_local_naive


class ReminderMilestone(str, Enum):
    """Due-date thresholds that trigger a notification."""
    ONE_DAY = "1day"
    TODAY = "today"

    @property
    def days_until_due(self) -> int:
        return 1 if self is ReminderMilestone.ONE_DAY else 0


def notification_tag(reminder_id: int, milestone: ReminderMilestone) -> str:
    """
    Build the dedup tag for a (reminder, milestone) pair.

    Example: notification_tag(7, ReminderMilestone.ONE_DAY) == "reminder-1day-7"
    """
    return f"reminder-{milestone.value}-{reminder_id}"


class SentNotificationMark(BaseModel):
    """Record that a (reminder, milestone) pair has already notified."""

    tag: str = Field(
        ...,
        min_length=1,
        description="Composite dedup tag"
    )
    reminder_id: int
    milestone: ReminderMilestone
    sent_at: datetime = Field(
        default_factory=datetime.now,
        description="When the mark was written (local time)"
    )

    @classmethod
    def for_reminder(
        cls,
        reminder_id: int,
        milestone: ReminderMilestone,
        sent_at: Optional[datetime] = None,
    ) -> "SentNotificationMark":
        return cls(
            tag=notification_tag(reminder_id, milestone),
            reminder_id=reminder_id,
            milestone=milestone,
            sent_at=sent_at or datetime.now(),
        )


class ReminderAddedMessage(BaseModel):
    """
    Message posted from the UI context to the scheduler when a reminder
    is created, so near-term milestones do not wait for the next wake.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    reminder_id: Optional[int] = None
    title: str = Field(..., min_length=1)
    date: datetime
    amount: Optional[Amount] = None

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_local_naive(v)
