"""
Shared fixtures.

Every test gets its own database file under tmp_path and a settings
cache that reads a clean environment. No external service is called:
Gemini is replaced by FakeGeminiModel and notifications go to a
RecordingNotifier.
"""

from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Union

import pytest
from PIL import Image

from verdant.config import get_settings
from verdant.models import Expense, PaymentMode, Reminder
from verdant.services.notifications import Notifier
from verdant.services.storage import LocalStore, TransactionFailure


# Wednesday
NOW = datetime(2024, 6, 12, 10, 30)


class RecordingNotifier(Notifier):
    """Collects (title, body, tag) instead of showing anything."""

    def __init__(self, fail: bool = False):
        self.shown: list[tuple[str, str, str]] = []
        self.fail = fail

    async def show(self, title: str, body: str, tag: str) -> None:
        if self.fail:
            raise RuntimeError("host refused the notification")
        self.shown.append((title, body, tag))

    @property
    def tags(self) -> list[str]:
        return [tag for _, _, tag in self.shown]


class FakeResponse:
    def __init__(self, text: str):
        self.text = text


class FakeGeminiModel:
    """
    Stand-in for genai.GenerativeModel.

    Replies are consumed in order; an Exception instance is raised
    instead of returned.
    """

    def __init__(self, *replies: Union[str, Exception]):
        self.replies = list(replies)
        self.calls: list[list] = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return FakeResponse(reply)


class FailingReminderReads:
    """Wraps a store so that listing reminders fails."""

    def __init__(self, store):
        self._store = store

    async def list_reminders(self):
        raise TransactionFailure("database is locked")

    def __getattr__(self, name):
        return getattr(self._store, name)


def make_png(size: tuple[int, int] = (64, 64)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_expense(
    title: str = "Coffee",
    amount: str = "3.50",
    date: datetime = NOW,
    category: str = "Dining",
    payment_mode: PaymentMode = PaymentMode.CARD,
) -> Expense:
    return Expense(
        title=title,
        amount=Decimal(amount),
        date=date,
        category=category,
        payment_mode=payment_mode,
    )


def make_reminder(title: str = "Rent", date: datetime = NOW, amount: str = None) -> Reminder:
    return Reminder(
        title=title,
        date=date,
        amount=Decimal(amount) if amount is not None else None,
    )


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point settings at a throwaway database and drop any Gemini key."""
    monkeypatch.setenv("VERDANT_DB_PATH", str(tmp_path / "default.db"))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("VERDANT_REMINDERS_PURGE_PAST_ON_START", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
async def store(tmp_path):
    local_store = LocalStore(tmp_path / "verdant.db")
    yield local_store
    await local_store.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
