# shelf/notifications.py

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3.0


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    id: str
    kind: NotificationKind
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


NotificationListener = Callable[[str, Notification], None]


class NotificationQueue:
    """Transient user feedback messages.

    Each pushed notification is removed automatically ``ttl`` seconds later.
    Expiry is scheduled on the running asyncio loop; when ``push`` is called
    without a running loop the entry is expired lazily the next time the
    queue is read.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._items: Dict[str, Notification] = {}
        self._deadlines: Dict[str, float] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._listeners: List[NotificationListener] = []

    def push(self, kind, message: str) -> str:
        """Append a notification and return its id straight away."""
        kind = NotificationKind(kind)
        notification_id = uuid.uuid4().hex
        while notification_id in self._items:
            notification_id = uuid.uuid4().hex
        notification = Notification(id=notification_id, kind=kind, message=message)
        self._items[notification_id] = notification
        self._deadlines[notification_id] = self._clock() + self.ttl
        self._schedule_expiry(notification_id)
        logger.debug(f"Notification {kind.value}: {message}")
        self._emit("push", notification)
        return notification_id

    def success(self, message: str) -> str:
        return self.push(NotificationKind.SUCCESS, message)

    def error(self, message: str) -> str:
        return self.push(NotificationKind.ERROR, message)

    def info(self, message: str) -> str:
        return self.push(NotificationKind.INFO, message)

    def dismiss(self, notification_id: str) -> bool:
        """Remove a notification now. Returns False if it was already gone."""
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        return self._remove(notification_id)

    def clear(self) -> None:
        for notification_id in list(self._items):
            self.dismiss(notification_id)

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        self._purge_expired()
        return tuple(self._items.values())

    def __len__(self) -> int:
        return len(self.notifications)

    def __contains__(self, notification_id: str) -> bool:
        self._purge_expired()
        return notification_id in self._items

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register ``listener(event, notification)`` for ``push``/``remove`` events."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _schedule_expiry(self, notification_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[notification_id] = loop.call_later(self.ttl, self._expire, notification_id)

    def _expire(self, notification_id: str) -> None:
        self._timers.pop(notification_id, None)
        self._remove(notification_id)

    def _purge_expired(self) -> None:
        now = self._clock()
        for notification_id, deadline in list(self._deadlines.items()):
            if deadline <= now:
                timer = self._timers.pop(notification_id, None)
                if timer is not None:
                    timer.cancel()
                self._remove(notification_id)

    def _remove(self, notification_id: str) -> bool:
        notification = self._items.pop(notification_id, None)
        self._deadlines.pop(notification_id, None)
        if notification is None:
            return False
        self._emit("remove", notification)
        return True

    def _emit(self, event: str, notification: Notification) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, notification)
            except Exception:
                logger.exception(f"Notification listener failed on {event}")
