"""
Main Orchestrator for Verdant View

This module ties the components together behind one facade that the UI
calls:
1. Expense, category, reminder and budget changes (validate -> store -> audit)
2. Dashboard loading (store -> aggregation)
3. Import / export / clear of the whole data set
4. Scanning (upload -> Gemini -> validation -> draft for the user to confirm)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Records are validated by their models before any store call
- Scanned data is never saved without the user confirming a draft
- Every user-visible data action is audited
- The scheduler learns about new reminders by message, never by sharing
  state with the UI
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

import structlog

from verdant.audit import AuditLogger, create_correlation_id
from verdant.config import Settings, get_settings
from verdant.dashboard import DashboardService
from verdant.models.audit import AuditEventType
from verdant.models.dashboard import DashboardSnapshot, ExpenseReport
from verdant.models.expense import AppSettings, Category, Expense, ExportDocument, Reminder
from verdant.models.notification import ReminderAddedMessage
from verdant.models.scan import ExpenseDraft
from verdant.services.notifications import LogNotifier, Notifier, ReminderScheduler
from verdant.services.scanner import ReceiptScanner, ScanError
from verdant.services.storage import LocalStore, ProtectedCategoryError, StorageError, get_store
from verdant.transfer import DataTransferService, generate_report
from verdant.validation import ScanResultValidator


logger = structlog.get_logger(__name__)


def _document_counts(document: ExportDocument) -> dict[str, int]:
    counts = {}
    for name in ("expenses", "categories", "reminders"):
        records = getattr(document, name)
        if records is not None:
            counts[name] = len(records)
    if document.settings is not None:
        counts["settings"] = 1
    return counts


class ExpenseTracker:
    """
    Application facade.

    Flow for scanning:
    1. scan_receipt / scan_document -> ExpenseDraft(s) with issues
    2. User reviews and edits the draft (PAUSE)
    3. add_expense(draft.to_expense(...)) persists it

    The tracker NEVER saves a draft on its own.
    """

    def __init__(
        self,
        store: LocalStore,
        scheduler: Optional[ReminderScheduler] = None,
        scanner: Optional[ReceiptScanner] = None,
        audit_logger: Optional[AuditLogger] = None,
        dashboard: Optional[DashboardService] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._scheduler = scheduler or ReminderScheduler(
            store, store, LogNotifier(), audit_logger=self._audit_logger
        )
        self._scanner = scanner
        self._dashboard = dashboard or DashboardService(store)
        self._transfer = DataTransferService(store)

    @property
    def dashboard(self) -> DashboardService:
        return self._dashboard

    @property
    def scheduler(self) -> ReminderScheduler:
        return self._scheduler

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def can_scan(self) -> bool:
        return self._scanner is not None

    # -- lifecycle ------------------------------------------------------------

    async def start(self, now: Optional[datetime] = None) -> DashboardSnapshot:
        """
        Open (and on first run seed) the store, run housekeeping, and load
        the first dashboard snapshot.
        """
        await self._store.open()

        if self._settings.reminders.purge_past_on_start:
            purged = await self._store.purge_past_reminders(now)
            if purged:
                await self._audit_logger.log_record_changed(
                    event_type=AuditEventType.REMINDERS_PURGED,
                    entity_type="reminder",
                    entity_id=None,
                    description=f"Removed {purged} past reminder(s)",
                    details={"count": purged},
                )

        return await self._dashboard.refresh(now)

    async def refresh(self, now: Optional[datetime] = None) -> DashboardSnapshot:
        return await self._dashboard.refresh(now)

    async def close(self) -> None:
        await self._scheduler.close()
        await self._store.close()

    # -- expenses -------------------------------------------------------------

    async def add_expense(self, expense: Expense) -> Expense:
        """Store a new expense. Any id on the input is ignored."""
        stored = await self._store.add_expense(expense)
        await self._audit_logger.log_record_changed(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=stored.id,
            description=f"Added expense '{stored.title}'",
            details={"amount": str(stored.amount), "category": stored.category},
        )
        return stored

    async def update_expense(self, expense: Expense) -> Expense:
        """Overwrite an expense by id (last write wins)."""
        if expense.id is None:
            raise ValueError("Cannot update an expense without an id")
        stored = await self._store.update_expense(expense)
        await self._audit_logger.log_record_changed(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=stored.id,
            description=f"Updated expense '{stored.title}'",
            details={"amount": str(stored.amount), "category": stored.category},
        )
        return stored

    async def delete_expense(self, expense_id: int) -> bool:
        deleted = await self._store.delete_expense(expense_id)
        if deleted:
            await self._audit_logger.log_record_changed(
                event_type=AuditEventType.EXPENSE_DELETED,
                entity_type="expense",
                entity_id=expense_id,
                description="Deleted expense",
            )
        return deleted

    # -- categories -----------------------------------------------------------

    async def add_category(self, name: str) -> Category:
        """
        Raises:
            DuplicateError: If a category with this exact name exists
        """
        stored = await self._store.add_category(Category(name=name))
        await self._audit_logger.log_record_changed(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=stored.id,
            description=f"Added category '{stored.name}'",
        )
        return stored

    async def delete_category(self, category_id: int) -> bool:
        """
        Delete a user category. Expenses keep their category name.

        Raises:
            ProtectedCategoryError: If the category is a default one
        """
        try:
            deleted = await self._store.delete_category(category_id)
        except ProtectedCategoryError as e:
            await self._audit_logger.log_category_delete_rejected(
                category_id=category_id,
                reason=str(e),
            )
            raise

        if deleted:
            await self._audit_logger.log_record_changed(
                event_type=AuditEventType.CATEGORY_DELETED,
                entity_type="category",
                entity_id=category_id,
                description="Deleted category",
            )
        return deleted

    # -- reminders ------------------------------------------------------------

    async def add_reminder(self, reminder: Reminder, now: Optional[datetime] = None) -> Reminder:
        """
        Store a reminder, then tell the scheduler about it.

        The reminder is saved even if the scheduler hand-off fails; the
        next periodic check picks it up.
        """
        stored = await self._store.add_reminder(reminder)
        await self._audit_logger.log_record_changed(
            event_type=AuditEventType.REMINDER_ADDED,
            entity_type="reminder",
            entity_id=stored.id,
            description=f"Added reminder '{stored.title}'",
            details={"due": stored.date.isoformat()},
        )

        message = ReminderAddedMessage(
            reminder_id=stored.id,
            title=stored.title,
            date=stored.date,
            amount=stored.amount,
        )
        try:
            await self._scheduler.handle_message(message, now)
        except StorageError as e:
            logger.warning("reminder_handoff_failed", reminder_id=stored.id, error=str(e))
            await self._audit_logger.log_storage_error("reminder_handoff", str(e))
        return stored

    async def delete_reminder(self, reminder_id: int) -> bool:
        deleted = await self._store.delete_reminder(reminder_id)
        if deleted:
            await self._audit_logger.log_record_changed(
                event_type=AuditEventType.REMINDER_DELETED,
                entity_type="reminder",
                entity_id=reminder_id,
                description="Deleted reminder",
            )
        return deleted

    # -- settings -------------------------------------------------------------

    async def update_budget(self, monthly_budget: Union[Decimal, int, float, str]) -> AppSettings:
        """
        Raises:
            ValidationError: If the budget is negative or not a number
        """
        updated = await self._store.update_settings(AppSettings(monthly_budget=monthly_budget))
        await self._audit_logger.log_record_changed(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            entity_id=updated.id,
            description="Updated monthly budget",
            details={"monthly_budget": str(updated.monthly_budget)},
        )
        return updated

    # -- data management ------------------------------------------------------

    async def export_data(self, indent: int = 2) -> str:
        """The whole data set as JSON text, ready to save to a file."""
        document = await self._transfer.export()
        await self._audit_logger.log_data_transferred(
            AuditEventType.DATA_EXPORTED, _document_counts(document)
        )
        return document.to_json(indent=indent)

    async def import_data(self, data: Union[ExportDocument, dict[str, Any], str, bytes]) -> ExportDocument:
        """
        Replace the collections present in `data`, all or nothing.

        Raises:
            InvalidDocumentError: If the payload is not a JSON object
            ValidationError: If any record is malformed (nothing is written)
            TransactionFailure: If the import could not be committed
        """
        document = await self._transfer.import_document(data)
        await self._audit_logger.log_data_transferred(
            AuditEventType.DATA_IMPORTED, _document_counts(document)
        )
        return document

    async def clear_all_data(self) -> None:
        """Delete everything and restore the first-run defaults."""
        await self._store.clear_all()
        await self._audit_logger.log_data_transferred(AuditEventType.DATA_CLEARED, {})

    async def report(self, generated_at: Optional[datetime] = None) -> ExpenseReport:
        expenses = await self._store.list_expenses()
        return generate_report(
            expenses,
            currency_symbol=self._settings.budget.currency_symbol,
            generated_at=generated_at,
        )

    # -- scanning -------------------------------------------------------------

    def _require_scanner(self) -> ReceiptScanner:
        if self._scanner is None:
            raise ScanError("Receipt scanning is not configured. Set GEMINI_API_KEY to enable it.")
        return self._scanner

    async def _category_names(self) -> list[str]:
        return [category.name for category in await self._store.list_categories()]

    def _validator(self, category_names: list[str]) -> ScanResultValidator:
        return ScanResultValidator(category_names, settings=self._settings.scanner)

    async def scan_receipt(
        self,
        content: bytes,
        mime_type: str,
        now: Optional[datetime] = None,
    ) -> ExpenseDraft:
        """
        Scan a receipt photo into a single draft for the user to confirm.

        Raises:
            ScanError: If scanning is unavailable, the upload is rejected,
                or the model call fails
        """
        scanner = self._require_scanner()
        correlation_id = create_correlation_id()
        category_names = await self._category_names()

        try:
            scanned = await scanner.scan_receipt(content, mime_type, category_names)
        except ScanError as e:
            await self._audit_logger.log_scan_failed(str(e), correlation_id)
            raise

        draft = self._validator(category_names).draft_from_receipt(scanned, now)
        await self._audit_logger.log_receipt_scanned(
            scan_id=scanned.scan_id,
            item_count=1,
            issue_count=len(draft.issues),
            correlation_id=correlation_id,
        )
        return draft

    async def scan_document(
        self,
        content: bytes,
        mime_type: str,
        now: Optional[datetime] = None,
    ) -> list[ExpenseDraft]:
        """Scan an image or PDF into one draft per expense entry found."""
        scanner = self._require_scanner()
        correlation_id = create_correlation_id()
        category_names = await self._category_names()

        try:
            items = await scanner.scan_document(content, mime_type, category_names)
        except ScanError as e:
            await self._audit_logger.log_scan_failed(str(e), correlation_id)
            raise

        drafts = self._validator(category_names).drafts_from_line_items(items, now)
        await self._audit_logger.log_receipt_scanned(
            scan_id=correlation_id,
            item_count=len(drafts),
            issue_count=sum(len(draft.issues) for draft in drafts),
            correlation_id=correlation_id,
        )
        return drafts


def create_app_components(
    settings: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    store: Optional[LocalStore] = None,
) -> ExpenseTracker:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to get_settings())
        notifier: Host notification adapter (defaults to LogNotifier)
        store: Store to use (defaults to the process-wide get_store())

    Returns:
        A tracker whose scanner is None when Gemini is not configured
    """
    settings = settings or get_settings()
    audit_logger = AuditLogger()
    store = store or get_store()

    scanner = None
    try:
        scanner = ReceiptScanner(
            gemini_settings=settings.gemini,
            scanner_settings=settings.scanner,
        )
    except Exception as e:
        # Gemini not configured - continue without scanning
        logger.warning("scanner_not_configured", error=str(e))

    scheduler = ReminderScheduler(
        store,
        store,
        notifier or LogNotifier(),
        audit_logger=audit_logger,
    )

    return ExpenseTracker(
        store=store,
        scheduler=scheduler,
        scanner=scanner,
        audit_logger=audit_logger,
        settings=settings,
    )
