"""Real-time change notification channel for watched tables."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from models.timestamps import utc_now
from tailor_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """Notification that a row in ``table`` changed.

    ``record`` may be partial or missing; listeners must treat the event as an
    invalidation signal and re-read whatever they display.
    """

    table: str
    event_type: str
    record: Optional[Dict[str, Any]] = None
    occurred_at: Any = field(default_factory=utc_now)


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by :meth:`ChangeChannel.subscribe`."""

    def __init__(self, channel: "ChangeChannel", table: str, callback: ChangeCallback) -> None:
        self.channel = channel
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.channel._remove(self)
            self.active = False


class ChangeChannel:
    """Interface for per-table change subscriptions."""

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        raise NotImplementedError

    def publish(self, event: ChangeEvent) -> None:
        raise NotImplementedError

    def _remove(self, subscription: Subscription) -> None:
        raise NotImplementedError


class LocalChangeChannel(ChangeChannel):
    """In-process channel fed by the persistence backend after each write."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        subscription = Subscription(self, table, callback)
        with self._lock:
            self._subscribers.setdefault(table, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._subscribers.get(subscription.table, [])
            if subscription in listeners:
                listeners.remove(subscription)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, []))

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            listeners = list(self._subscribers.get(event.table, []))
        for subscription in listeners:
            try:
                subscription.callback(event)
            except Exception:
                # Listener errors are logged and never reach the writer.
                log_event(
                    LOGGER,
                    logging.ERROR,
                    "change_listener_failed",
                    table=event.table,
                    event_type=event.event_type,
                    exc_info=True,
                )


__all__ = [
    "ChangeEvent",
    "ChangeCallback",
    "Subscription",
    "ChangeChannel",
    "LocalChangeChannel",
]
