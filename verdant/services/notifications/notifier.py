"""
Local Notification Adapters

The host platform shows notifications; we only hand it (title, body, tag).
There is no delivery confirmation. Adapters raise
NotificationDeliveryUncertain when the host call itself failed, and the
scheduler logs that without retrying.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Union

import structlog


logger = structlog.get_logger(__name__)


class NotificationDeliveryUncertain(Exception):
    """The notification may or may not have been shown."""
    pass


class Notifier(ABC):
    """Abstract local-notification facility."""

    @abstractmethod
    async def show(self, title: str, body: str, tag: str) -> None:
        """
        Present a notification.

        Args:
            title: Notification title
            body: Notification text
            tag: Dedup tag; hosts that support tags replace same-tag notifications

        Raises:
            NotificationDeliveryUncertain: If the host call failed
        """
        pass


class LogNotifier(Notifier):
    """Writes notifications to the structured log (headless hosts)."""

    async def show(self, title: str, body: str, tag: str) -> None:
        logger.info("notification_shown", title=title, body=body, tag=tag)


NotifyCallback = Callable[[str, str, str], Union[Awaitable[Any], Any]]


class CallbackNotifier(Notifier):
    """
    Adapts a host-supplied callable, sync or async, taking (title, body, tag).
    """

    def __init__(self, callback: NotifyCallback):
        self._callback = callback

    async def show(self, title: str, body: str, tag: str) -> None:
        try:
            result = self._callback(title, body, tag)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise NotificationDeliveryUncertain(f"Host notification call failed: {e}") from e
