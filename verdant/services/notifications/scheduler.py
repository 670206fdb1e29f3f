"""
Reminder Notification Scheduler

Runs in its own context (task, thread or process) next to the UI and
reads reminders from the same local store.

Per reminder and check cycle:

    days == 1 and no mark "reminder-1day-<id>"  -> mark, then notify
    days == 0 and no mark "reminder-today-<id>" -> mark, then notify

States: Pending -> OneDayNotified -> DueNotified -> Terminal.

GUARANTEES:
- At most one notification per (reminder, milestone), ever. The persisted
  sent-mark is claimed atomically BEFORE the notifier is called, so a crash
  or a concurrent cycle can lose a notification but never duplicate one.
- Milestones are recomputed from absolute dates on every wake. Timers are
  only a shortcut for wakes the host would deliver late; losing one loses
  nothing the next wake cannot recover (except a milestone whose day has
  passed, which is accepted best-effort behavior).
- A deleted reminder is simply not found by the next cycle.
"""

import asyncio
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Callable, Optional

import structlog

from verdant.audit import AuditLogger
from verdant.config import get_settings
from verdant.models.expense import Reminder, format_amount, to_local_naive
from verdant.models.notification import (
    ReminderAddedMessage,
    ReminderMilestone,
    SentNotificationMark,
    notification_tag,
)
from verdant.services.notifications.notifier import Notifier
from verdant.services.storage import (
    ExpenseStorageInterface,
    SentMarkStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class ReminderState(str, Enum):
    """Where a reminder is in its notification lifecycle."""
    PENDING = "pending"
    ONE_DAY_NOTIFIED = "one_day_notified"
    DUE_NOTIFIED = "due_notified"
    TERMINAL = "terminal"


def days_until_due(due: datetime, now: datetime) -> int:
    """Calendar days from `now` to `due` (0 = due today, negative = past)."""
    return (to_local_naive(due).date() - to_local_naive(now).date()).days


def milestone_for(days: int) -> Optional[ReminderMilestone]:
    if days == 1:
        return ReminderMilestone.ONE_DAY
    if days == 0:
        return ReminderMilestone.TODAY
    return None


def reminder_state(reminder_id: int, due: datetime, sent_tags: set[str], now: datetime) -> ReminderState:
    if days_until_due(due, now) < 0:
        return ReminderState.TERMINAL
    if notification_tag(reminder_id, ReminderMilestone.TODAY) in sent_tags:
        return ReminderState.DUE_NOTIFIED
    if notification_tag(reminder_id, ReminderMilestone.ONE_DAY) in sent_tags:
        return ReminderState.ONE_DAY_NOTIFIED
    return ReminderState.PENDING


def build_notification(
    reminder: Reminder,
    milestone: ReminderMilestone,
    currency_symbol: str = "₹",
) -> tuple[str, str]:
    """Title and body for a milestone notification."""
    title = f"Reminder: {reminder.title}"
    if milestone is ReminderMilestone.ONE_DAY:
        body = f"Due tomorrow ({reminder.date:%d %b %Y})."
    else:
        body = "Due today."
    if reminder.amount:
        body += f" Amount: {format_amount(reminder.amount, currency_symbol)}"
    return title, body


class ReminderScheduler:
    """
    Emits reminder notifications, at most once per milestone.

    Triggers:
    - handle_message(): a reminder was just added in the UI context
    - check_reminders(): one cycle, called by the host's periodic wake
    - run_periodic(): a self-driven wake loop for hosts without one
    """

    def __init__(
        self,
        reminders: ExpenseStorageInterface,
        marks: SentMarkStorageInterface,
        notifier: Notifier,
        audit_logger: Optional[AuditLogger] = None,
        check_interval_seconds: Optional[float] = None,
        timer_horizon_hours: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        settings = get_settings()
        reminder_settings = settings.reminders

        self._reminders = reminders
        self._marks = marks
        self._notifier = notifier
        self._audit_logger = audit_logger
        self._clock = clock
        self._currency_symbol = settings.budget.currency_symbol
        self._interval = (
            check_interval_seconds
            if check_interval_seconds is not None
            else reminder_settings.check_interval_seconds
        )
        self._horizon = timedelta(
            hours=timer_horizon_hours
            if timer_horizon_hours is not None
            else reminder_settings.timer_horizon_hours
        )

        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_timer_count(self) -> int:
        return len(self._timers)

    # -- check cycle ----------------------------------------------------------

    async def check_reminders(self, now: Optional[datetime] = None) -> list[SentNotificationMark]:
        """
        Run one check cycle.

        Returns:
            The marks written (one per notification emitted) in this cycle
        """
        now = to_local_naive(now or self._clock())
        reminders = await self._reminders.list_reminders()

        written = []
        for reminder in reminders:
            if reminder.id is None:
                continue
            milestone = milestone_for(days_until_due(reminder.date, now))
            if milestone is None:
                continue

            mark = SentNotificationMark.for_reminder(reminder.id, milestone, sent_at=now)
            if await self._marks.has_sent_mark(mark.tag):
                continue
            # Another context may have claimed it since the check above
            if not await self._marks.claim_sent_mark(mark):
                continue

            await self._emit(reminder, milestone, mark.tag)
            written.append(mark)

        logger.debug("reminder_check_completed", reminders=len(reminders), emitted=len(written))
        return written

    async def _emit(self, reminder: Reminder, milestone: ReminderMilestone, tag: str) -> None:
        title, body = build_notification(reminder, milestone, self._currency_symbol)
        try:
            await self._notifier.show(title, body, tag)
        except Exception as e:
            # The mark stays: a retry could show the notification twice
            logger.warning(
                "notification_delivery_uncertain",
                reminder_id=reminder.id,
                tag=tag,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_notification_delivery_uncertain(
                    reminder_id=reminder.id,
                    tag=tag,
                    error_message=str(e),
                )
            return

        logger.info("notification_sent", reminder_id=reminder.id, tag=tag)
        if self._audit_logger:
            await self._audit_logger.log_notification_sent(reminder.id, tag)

    async def reminder_states(self, now: Optional[datetime] = None) -> dict[int, ReminderState]:
        """Lifecycle state of every stored reminder, keyed by id."""
        now = to_local_naive(now or self._clock())
        reminders = await self._reminders.list_reminders()
        sent_tags = {mark.tag for mark in await self._marks.list_sent_marks()}
        return {
            reminder.id: reminder_state(reminder.id, reminder.date, sent_tags, now)
            for reminder in reminders
            if reminder.id is not None
        }

    # -- triggers -------------------------------------------------------------

    async def handle_message(
        self,
        message: ReminderAddedMessage,
        now: Optional[datetime] = None,
    ) -> list[SentNotificationMark]:
        """
        React to a newly added reminder.

        Checks immediately (a reminder due today or tomorrow notifies now),
        then arms in-process timers for milestones that start soon.
        """
        now = to_local_naive(now or self._clock())
        written = await self.check_reminders(now)
        self._arm_timers(message, now)
        return written

    def _arm_timers(self, message: ReminderAddedMessage, now: datetime) -> None:
        loop = asyncio.get_running_loop()
        for milestone in ReminderMilestone:
            starts_at = datetime.combine(
                message.date.date() - timedelta(days=milestone.days_until_due),
                time.min,
            )
            delay = starts_at - now
            if delay <= timedelta(0) or delay > self._horizon:
                continue

            key = f"{message.reminder_id or message.title}:{milestone.value}"
            existing = self._timers.pop(key, None)
            if existing:
                existing.cancel()
            self._timers[key] = loop.call_later(delay.total_seconds(), self._on_timer, key)
            logger.debug("reminder_timer_armed", key=key, fires_at=starts_at.isoformat())

    def _on_timer(self, key: str) -> None:
        self._timers.pop(key, None)
        # The timer only triggers a full cycle; it never emits directly
        task = asyncio.ensure_future(self.check_reminders())
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("timed_reminder_check_failed", error=str(error))

    async def run_periodic(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Check on a fixed interval until `stop_event` is set.

        Storage failures are logged and the loop continues with the next wake.
        """
        stop_event = stop_event or asyncio.Event()
        logger.info("reminder_scheduler_started", interval_seconds=self._interval)
        while not stop_event.is_set():
            try:
                await self.check_reminders()
            except StorageError as e:
                logger.error("reminder_check_failed", error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_storage_error("reminder_check", str(e))
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
        logger.info("reminder_scheduler_stopped")

    async def close(self) -> None:
        """Cancel armed timers and in-flight timed checks."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
