"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep dashboard, transfer and scheduler logic decoupled from SQLite
2. Use fakes in tests where a real database is not the point
3. Give the UI context and the scheduler narrow, separate contracts

Two contracts exist on purpose (single-writer discipline):
- ExpenseStorageInterface: written only by the UI context
- SentMarkStorageInterface: written only by the notification scheduler

The interface is intentionally simple - we're not building a full ORM.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from verdant.models.expense import (
    AppSettings,
    Category,
    Expense,
    ExportDocument,
    Reminder,
)
from verdant.models.notification import SentNotificationMark


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for the four user-data collections.

    Every operation is asynchronous and runs in its own transaction.
    Failures surface as StorageError subclasses; nothing is retried.
    """

    # -- lifecycle ------------------------------------------------------------

    @abstractmethod
    async def open(self) -> None:
        """
        Open (and on first use create) the store, then seed defaults.

        Idempotent: concurrent and repeated calls share one connection.

        Raises:
            StorageUnavailable: If persistent storage cannot be opened
        """
        pass

    @abstractmethod
    async def seed_defaults(self) -> None:
        """
        Insert default categories and settings where the collections are empty.

        Decided by row count, not content, so it is safe to call repeatedly.
        """
        pass

    # -- expenses -------------------------------------------------------------

    @abstractmethod
    async def list_expenses(self) -> list[Expense]:
        """Return every expense, in storage order."""
        pass

    @abstractmethod
    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Return one expense, or None if it does not exist."""
        pass

    @abstractmethod
    async def add_expense(self, expense: Expense) -> Expense:
        """
        Insert an expense. Any id on the input is ignored.

        Returns:
            The stored expense with its assigned id
        """
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> Expense:
        """
        Replace the expense with the given id (upsert).

        Raises:
            ValueError: If the expense has no id
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: int) -> bool:
        """Delete by id. Returns False if nothing was deleted."""
        pass

    # -- categories -----------------------------------------------------------

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def add_category(self, category: Category) -> Category:
        """
        Insert a category.

        Raises:
            DuplicateError: If the name already exists
        """
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def delete_category(self, category_id: int) -> bool:
        """
        Delete a category unless it is a default one.

        Raises:
            ProtectedCategoryError: If the category carries a default name.
                                    Nothing is changed in that case.
        """
        pass

    # -- reminders ------------------------------------------------------------

    @abstractmethod
    async def list_reminders(self) -> list[Reminder]:
        pass

    @abstractmethod
    async def add_reminder(self, reminder: Reminder) -> Reminder:
        pass

    @abstractmethod
    async def update_reminder(self, reminder: Reminder) -> Reminder:
        pass

    @abstractmethod
    async def delete_reminder(self, reminder_id: int) -> bool:
        pass

    @abstractmethod
    async def purge_past_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Delete reminders whose due day is before the day of `now`.

        Returns:
            Number of reminders removed
        """
        pass

    # -- settings -------------------------------------------------------------

    @abstractmethod
    async def get_settings(self) -> AppSettings:
        """
        Return the singleton settings record.

        Raises:
            NotFoundError: If the singleton is missing (store not seeded)
        """
        pass

    @abstractmethod
    async def update_settings(self, settings: AppSettings) -> AppSettings:
        """Upsert the singleton. The id is always forced to the fixed key."""
        pass

    # -- whole data set -------------------------------------------------------

    @abstractmethod
    async def export_all(self) -> ExportDocument:
        """Read all four collections as one consistent document."""
        pass

    @abstractmethod
    async def import_all(self, document: ExportDocument) -> None:
        """
        Replace collections from a document, all-or-nothing.

        Absent collections are left untouched. Categories always get
        the default set back; settings are merged, never cleared.
        """
        pass

    @abstractmethod
    async def clear_all(self) -> None:
        """Empty all four collections and re-seed defaults."""
        pass


class SentMarkStorageInterface(ABC):
    """
    Abstract interface for notification sent-marks.

    Marks are only ever inserted - never updated or deleted - and
    the insert is the de-duplication point for notifications.
    """

    @abstractmethod
    async def has_sent_mark(self, tag: str) -> bool:
        pass

    @abstractmethod
    async def claim_sent_mark(self, mark: SentNotificationMark) -> bool:
        """
        Atomically write a mark if its tag is not yet present.

        Returns:
            True if this call wrote the mark, False if it already existed
        """
        pass

    @abstractmethod
    async def list_sent_marks(self) -> list[SentNotificationMark]:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailable(StorageError):
    """Persistent storage cannot be opened in this environment."""
    pass


class TransactionFailure(StorageError):
    """
    The storage engine rejected a transaction.

    The transaction was rolled back; prior state is unchanged.
    The engine's own exception is kept in `native_error`.
    """

    def __init__(self, message: str, native_error: Optional[BaseException] = None):
        self.native_error = native_error
        super().__init__(message)


class DuplicateError(TransactionFailure):
    """Attempted to insert a duplicate entity."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ProtectedCategoryError(StorageError):
    """Attempted to delete or rename a default category."""

    def __init__(self, name: str, action: str = "delete"):
        self.name = name
        self.action = action
        super().__init__(f"Cannot {action} a default category: {name}")
