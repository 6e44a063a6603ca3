"""
NotificationChannel — transient acknowledgements of mutation outcomes.

Only the most recent notification is visible; a new one replaces the old one
and each is dismissed automatically after a fixed duration. Nothing is
persisted. Pure asyncio, no HA dependencies.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from enum import StrEnum
from typing import Callable

from .const import NOTIFICATION_DURATION

_LOGGER = logging.getLogger(__name__)


class NotificationKind(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclasses.dataclass(frozen=True)
class Notification:
    message: str
    kind: NotificationKind
    created_at: float = dataclasses.field(default_factory=time.monotonic)


class NotificationChannel:
    """Holds at most one visible notification and notifies listeners on change."""

    def __init__(self, duration: float = NOTIFICATION_DURATION) -> None:
        self._duration = duration
        self._current: Notification | None = None
        self._dismiss_handle: asyncio.TimerHandle | None = None
        self._listeners: list[Callable[[Notification | None], None]] = []

    @property
    def current(self) -> Notification | None:
        return self._current

    def notify(self, message: str, kind: NotificationKind | str) -> Notification:
        """Show a notification, replacing any visible one."""
        notification = Notification(message=message, kind=NotificationKind(kind))
        self._cancel_timer()
        self._current = notification
        if kind == NotificationKind.ERROR:
            _LOGGER.warning("Action failed: %s", message)
        else:
            _LOGGER.info("Action succeeded: %s", message)

        self._dismiss_handle = asyncio.get_running_loop().call_later(
            self._duration, self._expire, notification
        )
        self._fire(notification)
        return notification

    def dismiss(self) -> None:
        """Hide the current notification immediately."""
        self._cancel_timer()
        if self._current is not None:
            self._current = None
            self._fire(None)

    def async_add_listener(self, listener: Callable[[Notification | None], None]) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove_listener() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove_listener

    def shutdown(self) -> None:
        self._cancel_timer()
        self._current = None
        self._listeners.clear()

    def _expire(self, notification: Notification) -> None:
        self._dismiss_handle = None
        # A newer notification owns its own timer
        if self._current is notification:
            self._current = None
            self._fire(None)

    def _cancel_timer(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None

    def _fire(self, notification: Notification | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Notification listener failed")
