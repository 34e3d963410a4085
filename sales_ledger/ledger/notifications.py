"""
Notification Channel

A single slot holding the latest user-facing message. Each notification
clears itself after a fixed interval (5 seconds by default).

A newer notification replaces the slot. The timer scheduled for the older
one still fires, but it only clears the notification it was scheduled
for, so it does nothing once the slot has moved on.
"""

import asyncio
from typing import Callable, Optional

from sales_ledger.models.records import Notification, NotificationKind


DEFAULT_TTL_SECONDS = 5.0

Listener = Callable[[Optional[Notification]], None]


class NotificationChannel:
    """Latest-message-wins notification slot with automatic expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._ttl = ttl_seconds
        self._loop = loop
        self._current: Optional[Notification] = None
        self._timers: list[asyncio.TimerHandle] = []
        self._listeners: list[Listener] = []

    @property
    def current(self) -> Optional[Notification]:
        return self._current

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def notify(self, message: str, kind: NotificationKind) -> Notification:
        """Show `message` and schedule it to clear after the TTL."""
        notification = Notification(message=message, kind=kind)
        self._current = notification

        loop = self._loop or asyncio.get_running_loop()
        # Forget timers that have already fired
        self._timers = [t for t in self._timers if t.when() > loop.time()]
        self._timers.append(loop.call_later(self._ttl, self._expire, notification))

        self._emit()
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(message, NotificationKind.SUCCESS)

    def error(self, message: str) -> Notification:
        return self.notify(message, NotificationKind.ERROR)

    def _expire(self, notification: Notification) -> None:
        if self._current is notification:
            self._current = None
            self._emit()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self._current)

    def close(self) -> None:
        """Cancel pending expiry timers. The visible notification stays."""
        for timer in self._timers:
            timer.cancel()
        self._timers = []
