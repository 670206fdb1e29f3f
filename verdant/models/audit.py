"""
Audit Models for Verdant View

Every user-visible data action is logged for audit purposes.
This provides:
1. Traceability of what changed the local data and when
2. Debugging information when an import or clear goes wrong
3. A record of which reminder notifications went out

DESIGN DECISION: Audit events are write-only. Nothing reads them back
to make decisions; notification dedup uses sent-marks, not the log.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_DELETE_REJECTED = "category_delete_rejected"

    # Reminders
    REMINDER_ADDED = "reminder_added"
    REMINDER_DELETED = "reminder_deleted"
    REMINDERS_PURGED = "reminders_purged"

    # Settings
    SETTINGS_UPDATED = "settings_updated"

    # Data management
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    DATA_CLEARED = "data_cleared"

    # Scanning
    RECEIPT_SCANNED = "receipt_scanned"
    SCAN_FAILED = "scan_failed"

    # Notifications
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_DELIVERY_UNCERTAIN = "notification_delivery_uncertain"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of record (e.g., 'expense', 'category', 'reminder')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="Store id of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one scan-and-save flow)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_changed(
            AuditEventType.EXPENSE_ADDED, "expense", 12, "Added 'Coffee'"
        )
        await audit_logger.log(event)
    """

    @staticmethod
    def record_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[int],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def category_delete_rejected(
        category_id: int,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            description="Refused to delete a default category",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def data_transferred(
        event_type: AuditEventType,
        counts: dict[str, int],
    ) -> AuditEvent:
        """Export, import or clear of the whole data set."""
        verb = {
            AuditEventType.DATA_EXPORTED: "Exported",
            AuditEventType.DATA_IMPORTED: "Imported",
            AuditEventType.DATA_CLEARED: "Cleared",
        }.get(event_type, "Transferred")
        return AuditEvent(
            event_type=event_type,
            description=f"{verb} local data",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def receipt_scanned(
        scan_id: UUID,
        item_count: int,
        issue_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCANNED,
            entity_type="scan",
            correlation_id=correlation_id,
            description=f"Scanned document produced {item_count} draft(s)",
            details={
                "scan_id": str(scan_id),
                "item_count": item_count,
                "issue_count": issue_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def scan_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCAN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="scan",
            correlation_id=correlation_id,
            description="Document scan failed",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def notification_sent(
        reminder_id: int,
        tag: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_SENT,
            entity_type="reminder",
            entity_id=reminder_id,
            description="Reminder notification emitted",
            details={"tag": tag},
        )

    @staticmethod
    def notification_delivery_uncertain(
        reminder_id: int,
        tag: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_DELIVERY_UNCERTAIN,
            severity=AuditSeverity.WARNING,
            entity_type="reminder",
            entity_id=reminder_id,
            description="Could not confirm the notification was shown",
            details={"tag": tag},
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage operation failed: {operation}",
            error_message=error_message,
        )
