"""
Audit Logger

DESIGN DECISION: Every user-visible data action is logged.
This provides:
1. Traceability of imports, clears and deletions
2. Debugging capability for the background scheduler
3. A trail of which notifications went out

The audit logger:
- Is async so callers can await it alongside storage calls
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from verdant.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Writes AuditEvents to the structured local log. Events are kept in
    memory as well (bounded) so the UI can show recent activity.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("verdant.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written.
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]
        return True

    async def log_record_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[int],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a create/update/delete of a single record."""
        event = AuditEventBuilder.record_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_delete_rejected(
        self,
        category_id: int,
        reason: str,
    ) -> None:
        await self.log(AuditEventBuilder.category_delete_rejected(category_id, reason))

    async def log_data_transferred(
        self,
        event_type: AuditEventType,
        counts: dict[str, int],
    ) -> None:
        """Log export, import or clear of the whole data set."""
        await self.log(AuditEventBuilder.data_transferred(event_type, counts))

    async def log_receipt_scanned(
        self,
        scan_id: UUID,
        item_count: int,
        issue_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.receipt_scanned(
            scan_id=scan_id,
            item_count=item_count,
            issue_count=issue_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_scan_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.scan_failed(error_message, correlation_id))

    async def log_notification_sent(
        self,
        reminder_id: int,
        tag: str,
    ) -> None:
        await self.log(AuditEventBuilder.notification_sent(reminder_id, tag))

    async def log_notification_delivery_uncertain(
        self,
        reminder_id: int,
        tag: str,
        error_message: str,
    ) -> None:
        event = AuditEventBuilder.notification_delivery_uncertain(
            reminder_id=reminder_id,
            tag=tag,
            error_message=error_message,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(operation, error_message))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step user action (e.g., scan then save).
    Pass it through all subsequent operations.
    """
    return uuid4()
