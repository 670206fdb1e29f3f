"""
Storage Services Package

Provides abstract interfaces and the concrete local store.
Currently implements SQLite as the backend, but designed to be swappable.
"""

from verdant.services.storage.interface import (
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    ProtectedCategoryError,
    SentMarkStorageInterface,
    StorageError,
    StorageUnavailable,
    TransactionFailure,
)
from verdant.services.storage.sqlite_store import (
    SCHEMA_VERSION,
    LocalStore,
    get_store,
)

__all__ = [
    # Interfaces
    "ExpenseStorageInterface",
    "SentMarkStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "ProtectedCategoryError",
    "StorageError",
    "StorageUnavailable",
    "TransactionFailure",
    # SQLite implementation
    "SCHEMA_VERSION",
    "LocalStore",
    "get_store",
]
