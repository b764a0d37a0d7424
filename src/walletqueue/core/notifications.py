"""
Notification sinks informed when queued operations fail permanently.
"""

import logging
from collections import deque
from typing import Deque, List, Protocol, runtime_checkable

from ..models import Notification, NotificationSeverity


@runtime_checkable
class NotificationSink(Protocol):
    """Receives user-facing notifications. Delivery is fire-and-forget."""

    async def notify(self, notification: Notification) -> None: ...


class LoggingNotificationSink:
    """Writes notifications to the log at a level matching their severity."""

    _LEVELS = {
        NotificationSeverity.ERROR: logging.ERROR,
        NotificationSeverity.WARNING: logging.WARNING,
        NotificationSeverity.INFO: logging.INFO,
        NotificationSeverity.SUCCESS: logging.INFO,
    }

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    async def notify(self, notification: Notification) -> None:
        level = self._LEVELS.get(notification.severity, logging.INFO)
        self.logger.log(level, f"{notification.title}: {notification.message}")


class MemoryNotificationSink:
    """Keeps the most recent notifications, newest last."""

    def __init__(self, max_items: int = 100):
        self._items: Deque[Notification] = deque(maxlen=max_items)

    async def notify(self, notification: Notification) -> None:
        self._items.append(notification)

    @property
    def notifications(self) -> List[Notification]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()
