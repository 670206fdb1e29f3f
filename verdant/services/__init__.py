"""Services package."""

from verdant.services.storage import (
    DuplicateError,
    ExpenseStorageInterface,
    LocalStore,
    NotFoundError,
    ProtectedCategoryError,
    SentMarkStorageInterface,
    StorageError,
    StorageUnavailable,
    TransactionFailure,
)
from verdant.services.notifications import (
    CallbackNotifier,
    LogNotifier,
    NotificationDeliveryUncertain,
    Notifier,
    ReminderScheduler,
)
from verdant.services.scanner import (
    ReceiptScanner,
    ScanError,
    ScanFailedError,
    UnsupportedDocumentError,
)

__all__ = [
    # Storage services
    "DuplicateError",
    "ExpenseStorageInterface",
    "LocalStore",
    "NotFoundError",
    "ProtectedCategoryError",
    "SentMarkStorageInterface",
    "StorageError",
    "StorageUnavailable",
    "TransactionFailure",
    # Notification services
    "CallbackNotifier",
    "LogNotifier",
    "NotificationDeliveryUncertain",
    "Notifier",
    "ReminderScheduler",
    # Scanner services
    "ReceiptScanner",
    "ScanError",
    "ScanFailedError",
    "UnsupportedDocumentError",
]
