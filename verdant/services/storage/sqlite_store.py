"""
SQLite Storage Implementation

DESIGN DECISION: A single SQLite file is the local store because:
1. It is embedded - no server, nothing to install or run
2. Transactions span tables, so import and clear are all-or-nothing
3. Two contexts (UI and scheduler) can share the file safely
4. Backups are a file copy; the export document covers portability

TRADEOFFS:
- The sqlite3 module is blocking; calls run in a worker thread
- One connection per store, so operations are serialized by a lock
  (fine for one person's expenses)

Every collection is one table. Ids come from AUTOINCREMENT and are never
reused, which keeps notification sent-marks (keyed by reminder id) valid
across deletes, clears and imports.
"""

import asyncio
import sqlite3
from contextlib import contextmanager
from datetime import datetime, time
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar, Union

import structlog

from verdant.config import get_settings
from verdant.models.expense import (
    DEFAULT_CATEGORIES,
    SETTINGS_ID,
    AppSettings,
    Category,
    Expense,
    ExportDocument,
    PaymentMode,
    Reminder,
)
from verdant.models.notification import ReminderMilestone, SentNotificationMark
from verdant.services.storage.interface import (
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    ProtectedCategoryError,
    SentMarkStorageInterface,
    StorageUnavailable,
    TransactionFailure,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")

MEMORY_PATH = ":memory:"

SCHEMA_VERSION = 1

# MIGRATIONS[n] upgrades a database from version n to n + 1.
MIGRATIONS: list[tuple[str, ...]] = [
    (
        """
        CREATE TABLE IF NOT EXISTS expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            amount TEXT NOT NULL,
            date TEXT NOT NULL,
            category TEXT NOT NULL,
            payment_mode TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses (date)",
        """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS reminders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            amount TEXT,
            date TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS settings (
            id INTEGER PRIMARY KEY,
            monthly_budget TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS sent_notifications (
            tag TEXT PRIMARY KEY,
            reminder_id INTEGER NOT NULL,
            milestone TEXT NOT NULL,
            sent_at TEXT NOT NULL
        )
        """,
    ),
]

USER_TABLES = ("expenses", "categories", "reminders", "settings")


@contextmanager
def _transaction(
    conn: sqlite3.Connection,
    immediate: bool = True,
) -> Iterator[sqlite3.Connection]:
    """
    Run a block inside one transaction; roll back on any exception.

    IMMEDIATE takes the write lock up front, so two contexts writing the
    same file queue on the busy timeout instead of failing mid-way.
    """
    conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    try:
        conn.execute("COMMIT")
    except sqlite3.Error:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise


# =============================================================================
# ROW MAPPING
# =============================================================================

def _row_to_expense(row: sqlite3.Row) -> Expense:
    return Expense(
        id=row["id"],
        title=row["title"],
        amount=Decimal(row["amount"]),
        date=datetime.fromisoformat(row["date"]),
        category=row["category"],
        payment_mode=PaymentMode(row["payment_mode"]),
    )


def _expense_params(expense: Expense) -> tuple:
    return (
        expense.title,
        str(expense.amount),
        expense.date.isoformat(),
        expense.category,
        expense.payment_mode.value,
    )


def _row_to_category(row: sqlite3.Row) -> Category:
    return Category(id=row["id"], name=row["name"])


def _row_to_reminder(row: sqlite3.Row) -> Reminder:
    return Reminder(
        id=row["id"],
        title=row["title"],
        amount=Decimal(row["amount"]) if row["amount"] is not None else None,
        date=datetime.fromisoformat(row["date"]),
    )


def _reminder_params(reminder: Reminder) -> tuple:
    return (
        reminder.title,
        str(reminder.amount) if reminder.amount is not None else None,
        reminder.date.isoformat(),
    )


def _row_to_settings(row: sqlite3.Row) -> AppSettings:
    return AppSettings(id=row["id"], monthly_budget=Decimal(row["monthly_budget"]))


def _row_to_mark(row: sqlite3.Row) -> SentNotificationMark:
    return SentNotificationMark(
        tag=row["tag"],
        reminder_id=row["reminder_id"],
        milestone=ReminderMilestone(row["milestone"]),
        sent_at=datetime.fromisoformat(row["sent_at"]),
    )


# =============================================================================
# STORE
# =============================================================================

class LocalStore(ExpenseStorageInterface, SentMarkStorageInterface):
    """
    The local database: expenses, categories, reminders, settings,
    and the scheduler's sent-marks.

    Lifecycle: lazily opened on first use. Concurrent first calls share a
    single open task, so there is only ever one connection and one
    seeding pass per store instance.

    Tests create one store per temporary file; the app uses get_store().
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        busy_timeout_seconds: Optional[float] = None,
        default_monthly_budget: Optional[Decimal] = None,
    ):
        settings = get_settings()
        db_settings = settings.database

        if path is None:
            path = db_settings.path
        self._path = path if str(path) == MEMORY_PATH else Path(path).expanduser()
        self._busy_timeout = (
            busy_timeout_seconds
            if busy_timeout_seconds is not None
            else db_settings.busy_timeout_seconds
        )
        self._default_budget = (
            default_monthly_budget
            if default_monthly_budget is not None
            else settings.budget.default_monthly_budget
        )

        self._conn: Optional[sqlite3.Connection] = None
        self._open_task: Optional[asyncio.Future] = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Union[str, Path]:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # -- lifecycle ------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        """Open the file, apply migrations and seed defaults (worker thread)."""
        try:
            if self._path != MEMORY_PATH:
                self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self._path),
                timeout=self._busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"Cannot open local database at {self._path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            self._migrate(conn)
            self._seed(conn)
        except BaseException as e:
            conn.close()
            if isinstance(e, sqlite3.Error):
                raise StorageUnavailable(f"Local database at {self._path} is unusable: {e}") from e
            raise
        return conn

    def _migrate(self, conn: sqlite3.Connection) -> None:
        with _transaction(conn):
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version > SCHEMA_VERSION:
                raise StorageUnavailable(
                    f"Database schema version {version} is newer than supported "
                    f"version {SCHEMA_VERSION}"
                )
            for statements in MIGRATIONS[version:]:
                for statement in statements:
                    conn.execute(statement)
            if version < SCHEMA_VERSION:
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                logger.info(
                    "schema_migrated",
                    path=str(self._path),
                    from_version=version,
                    to_version=SCHEMA_VERSION,
                )

    def _seed(self, conn: sqlite3.Connection) -> None:
        """Insert defaults where a collection is empty. Count-based, not content-based."""
        with _transaction(conn):
            self._seed_in_transaction(conn)

    def _seed_in_transaction(self, conn: sqlite3.Connection) -> None:
        seeded = []
        if conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0] == 0:
            conn.executemany(
                "INSERT INTO categories (name) VALUES (?)",
                [(name,) for name in DEFAULT_CATEGORIES],
            )
            seeded.append("categories")
        if conn.execute("SELECT COUNT(*) FROM settings").fetchone()[0] == 0:
            conn.execute(
                "INSERT INTO settings (id, monthly_budget) VALUES (?, ?)",
                (SETTINGS_ID, str(self._default_budget)),
            )
            seeded.append("settings")
        if seeded:
            logger.info("defaults_seeded", collections=seeded)

    async def _open(self) -> sqlite3.Connection:
        try:
            conn = await asyncio.to_thread(self._connect)
        except BaseException:
            # Let a later call try again instead of caching the failure
            self._open_task = None
            raise
        self._conn = conn
        logger.info("store_opened", path=str(self._path), schema_version=SCHEMA_VERSION)
        return conn

    async def _connection(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        if self._open_task is None:
            self._open_task = asyncio.ensure_future(self._open())
        return await asyncio.shield(self._open_task)

    async def open(self) -> None:
        await self._connection()

    async def close(self) -> None:
        """Close the connection. The next operation reopens it."""
        if self._conn is None:
            return
        async with self._lock:
            conn, self._conn = self._conn, None
            self._open_task = None
            await asyncio.to_thread(conn.close)
        logger.info("store_closed", path=str(self._path))

    async def _run(self, operation: str, func: Callable[[sqlite3.Connection], T]) -> T:
        """
        Execute `func` against the connection in a worker thread.

        Engine failures become TransactionFailure (or DuplicateError);
        domain errors raised by `func` pass through untouched.
        """
        conn = await self._connection()
        async with self._lock:
            try:
                return await asyncio.to_thread(func, conn)
            except sqlite3.IntegrityError as e:
                logger.warning("storage_constraint_violation", operation=operation, error=str(e))
                raise DuplicateError(
                    f"{operation} violated a uniqueness constraint: {e}",
                    native_error=e,
                ) from e
            except sqlite3.Error as e:
                logger.error("storage_transaction_failed", operation=operation, error=str(e))
                raise TransactionFailure(f"{operation} failed: {e}", native_error=e) from e

    async def seed_defaults(self) -> None:
        await self._run("seed_defaults", self._seed)

    # -- expenses -------------------------------------------------------------

    async def list_expenses(self) -> list[Expense]:
        def _list(conn: sqlite3.Connection) -> list[Expense]:
            rows = conn.execute("SELECT * FROM expenses ORDER BY id").fetchall()
            return [_row_to_expense(row) for row in rows]

        return await self._run("list_expenses", _list)

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        def _get(conn: sqlite3.Connection) -> Optional[Expense]:
            row = conn.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,)).fetchone()
            return _row_to_expense(row) if row else None

        return await self._run("get_expense", _get)

    async def add_expense(self, expense: Expense) -> Expense:
        def _add(conn: sqlite3.Connection) -> int:
            with _transaction(conn):
                cursor = conn.execute(
                    "INSERT INTO expenses (title, amount, date, category, payment_mode) "
                    "VALUES (?, ?, ?, ?, ?)",
                    _expense_params(expense),
                )
                return cursor.lastrowid

        new_id = await self._run("add_expense", _add)
        return expense.model_copy(update={"id": new_id})

    async def update_expense(self, expense: Expense) -> Expense:
        if expense.id is None:
            raise ValueError("Cannot update an expense without an id")

        def _put(conn: sqlite3.Connection) -> None:
            with _transaction(conn):
                conn.execute(
                    "INSERT INTO expenses (id, title, amount, date, category, payment_mode) "
                    "VALUES (?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET title = excluded.title, "
                    "amount = excluded.amount, date = excluded.date, "
                    "category = excluded.category, payment_mode = excluded.payment_mode",
                    (expense.id, *_expense_params(expense)),
                )

        await self._run("update_expense", _put)
        return expense

    async def delete_expense(self, expense_id: int) -> bool:
        def _delete(conn: sqlite3.Connection) -> bool:
            with _transaction(conn):
                cursor = conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
                return cursor.rowcount > 0

        return await self._run("delete_expense", _delete)

    # -- categories -----------------------------------------------------------

    async def list_categories(self) -> list[Category]:
        def _list(conn: sqlite3.Connection) -> list[Category]:
            rows = conn.execute("SELECT * FROM categories ORDER BY id").fetchall()
            return [_row_to_category(row) for row in rows]

        return await self._run("list_categories", _list)

    async def add_category(self, category: Category) -> Category:
        def _add(conn: sqlite3.Connection) -> int:
            with _transaction(conn):
                cursor = conn.execute(
                    "INSERT INTO categories (name) VALUES (?)", (category.name,)
                )
                return cursor.lastrowid

        new_id = await self._run("add_category", _add)
        return category.model_copy(update={"id": new_id})

    async def update_category(self, category: Category) -> Category:
        if category.id is None:
            raise ValueError("Cannot update a category without an id")

        def _put(conn: sqlite3.Connection) -> None:
            with _transaction(conn):
                row = conn.execute(
                    "SELECT name FROM categories WHERE id = ?", (category.id,)
                ).fetchone()
                # Renaming a default away would shrink the protected set
                if row and row["name"] in DEFAULT_CATEGORIES and row["name"] != category.name:
                    raise ProtectedCategoryError(row["name"], action="rename")
                conn.execute(
                    "INSERT INTO categories (id, name) VALUES (?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET name = excluded.name",
                    (category.id, category.name),
                )

        await self._run("update_category", _put)
        return category

    async def delete_category(self, category_id: int) -> bool:
        def _delete(conn: sqlite3.Connection) -> bool:
            with _transaction(conn):
                row = conn.execute(
                    "SELECT name FROM categories WHERE id = ?", (category_id,)
                ).fetchone()
                if row is None:
                    return False
                if row["name"] in DEFAULT_CATEGORIES:
                    raise ProtectedCategoryError(row["name"])
                conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
                return True

        try:
            return await self._run("delete_category", _delete)
        except ProtectedCategoryError as e:
            logger.warning("protected_category_delete_rejected", category_id=category_id, name=e.name)
            raise

    # -- reminders ------------------------------------------------------------

    async def list_reminders(self) -> list[Reminder]:
        def _list(conn: sqlite3.Connection) -> list[Reminder]:
            rows = conn.execute("SELECT * FROM reminders ORDER BY id").fetchall()
            return [_row_to_reminder(row) for row in rows]

        return await self._run("list_reminders", _list)

    async def add_reminder(self, reminder: Reminder) -> Reminder:
        def _add(conn: sqlite3.Connection) -> int:
            with _transaction(conn):
                cursor = conn.execute(
                    "INSERT INTO reminders (title, amount, date) VALUES (?, ?, ?)",
                    _reminder_params(reminder),
                )
                return cursor.lastrowid

        new_id = await self._run("add_reminder", _add)
        return reminder.model_copy(update={"id": new_id})

    async def update_reminder(self, reminder: Reminder) -> Reminder:
        if reminder.id is None:
            raise ValueError("Cannot update a reminder without an id")

        def _put(conn: sqlite3.Connection) -> None:
            with _transaction(conn):
                conn.execute(
                    "INSERT INTO reminders (id, title, amount, date) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET title = excluded.title, "
                    "amount = excluded.amount, date = excluded.date",
                    (reminder.id, *_reminder_params(reminder)),
                )

        await self._run("update_reminder", _put)
        return reminder

    async def delete_reminder(self, reminder_id: int) -> bool:
        def _delete(conn: sqlite3.Connection) -> bool:
            with _transaction(conn):
                cursor = conn.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,))
                return cursor.rowcount > 0

        return await self._run("delete_reminder", _delete)

    async def purge_past_reminders(self, now: Optional[datetime] = None) -> int:
        cutoff = datetime.combine((now or datetime.now()).date(), time.min)

        def _purge(conn: sqlite3.Connection) -> int:
            with _transaction(conn):
                cursor = conn.execute(
                    "DELETE FROM reminders WHERE date < ?", (cutoff.isoformat(),)
                )
                return cursor.rowcount

        removed = await self._run("purge_past_reminders", _purge)
        if removed:
            logger.info("past_reminders_purged", removed=removed, cutoff=cutoff.isoformat())
        return removed

    # -- settings -------------------------------------------------------------

    async def get_settings(self) -> AppSettings:
        def _get(conn: sqlite3.Connection) -> Optional[AppSettings]:
            row = conn.execute(
                "SELECT * FROM settings WHERE id = ?", (SETTINGS_ID,)
            ).fetchone()
            return _row_to_settings(row) if row else None

        settings = await self._run("get_settings", _get)
        if settings is None:
            raise NotFoundError("Settings record is missing")
        return settings

    async def update_settings(self, settings: AppSettings) -> AppSettings:
        settings = settings.model_copy(update={"id": SETTINGS_ID})

        def _put(conn: sqlite3.Connection) -> None:
            with _transaction(conn):
                self._upsert_settings(conn, settings)

        await self._run("update_settings", _put)
        return settings

    @staticmethod
    def _upsert_settings(conn: sqlite3.Connection, settings: AppSettings) -> None:
        conn.execute(
            "INSERT INTO settings (id, monthly_budget) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET monthly_budget = excluded.monthly_budget",
            (SETTINGS_ID, str(settings.monthly_budget)),
        )

    # -- whole data set -------------------------------------------------------

    async def export_all(self) -> ExportDocument:
        def _export(conn: sqlite3.Connection) -> ExportDocument:
            # One read transaction so the four reads agree with each other
            with _transaction(conn, immediate=False):
                expenses = conn.execute("SELECT * FROM expenses ORDER BY id").fetchall()
                categories = conn.execute("SELECT * FROM categories ORDER BY id").fetchall()
                reminders = conn.execute("SELECT * FROM reminders ORDER BY id").fetchall()
                settings = conn.execute(
                    "SELECT * FROM settings WHERE id = ?", (SETTINGS_ID,)
                ).fetchone()
            return ExportDocument(
                expenses=[_row_to_expense(row) for row in expenses],
                categories=[_row_to_category(row) for row in categories],
                reminders=[_row_to_reminder(row) for row in reminders],
                settings=_row_to_settings(settings) if settings else None,
            )

        return await self._run("export_all", _export)

    async def import_all(self, document: ExportDocument) -> None:
        def _import(conn: sqlite3.Connection) -> None:
            with _transaction(conn):
                if document.expenses is not None:
                    conn.execute("DELETE FROM expenses")
                    conn.executemany(
                        "INSERT INTO expenses (title, amount, date, category, payment_mode) "
                        "VALUES (?, ?, ?, ?, ?)",
                        [_expense_params(expense) for expense in document.expenses],
                    )

                if document.categories is not None:
                    conn.execute("DELETE FROM categories")
                    conn.executemany(
                        "INSERT INTO categories (name) VALUES (?)",
                        [(name,) for name in DEFAULT_CATEGORIES],
                    )
                    # Deduplicated against the default set only
                    conn.executemany(
                        "INSERT INTO categories (name) VALUES (?)",
                        [
                            (category.name,)
                            for category in document.categories
                            if category.name not in DEFAULT_CATEGORIES
                        ],
                    )

                if document.reminders is not None:
                    conn.execute("DELETE FROM reminders")
                    conn.executemany(
                        "INSERT INTO reminders (title, amount, date) VALUES (?, ?, ?)",
                        [_reminder_params(reminder) for reminder in document.reminders],
                    )

                if document.settings is not None:
                    self._upsert_settings(conn, document.settings)

        await self._run("import_all", _import)
        logger.info(
            "data_imported",
            expenses=len(document.expenses) if document.expenses is not None else None,
            categories=len(document.categories) if document.categories is not None else None,
            reminders=len(document.reminders) if document.reminders is not None else None,
            settings=document.settings is not None,
        )

    async def clear_all(self) -> None:
        def _clear(conn: sqlite3.Connection) -> None:
            with _transaction(conn):
                for table in USER_TABLES:
                    conn.execute(f"DELETE FROM {table}")
                self._seed_in_transaction(conn)

        await self._run("clear_all", _clear)
        logger.info("data_cleared", tables=list(USER_TABLES))

    # -- sent-marks -----------------------------------------------------------

    async def has_sent_mark(self, tag: str) -> bool:
        def _has(conn: sqlite3.Connection) -> bool:
            row = conn.execute(
                "SELECT 1 FROM sent_notifications WHERE tag = ?", (tag,)
            ).fetchone()
            return row is not None

        return await self._run("has_sent_mark", _has)

    async def claim_sent_mark(self, mark: SentNotificationMark) -> bool:
        def _claim(conn: sqlite3.Connection) -> bool:
            with _transaction(conn):
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO sent_notifications "
                    "(tag, reminder_id, milestone, sent_at) VALUES (?, ?, ?, ?)",
                    (mark.tag, mark.reminder_id, mark.milestone.value, mark.sent_at.isoformat()),
                )
                return cursor.rowcount == 1

        return await self._run("claim_sent_mark", _claim)

    async def list_sent_marks(self) -> list[SentNotificationMark]:
        def _list(conn: sqlite3.Connection) -> list[SentNotificationMark]:
            rows = conn.execute("SELECT * FROM sent_notifications ORDER BY sent_at").fetchall()
            return [_row_to_mark(row) for row in rows]

        return await self._run("list_sent_marks", _list)


@lru_cache()
def get_store() -> LocalStore:
    """
    Get the process-wide store (cached).

    The store opens lazily on first use. Tests should construct their own
    LocalStore on a temporary path instead of using this.
    """
    return LocalStore()
