"""In-process event bus carrying watcher status and new-notification events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

EVENT_NEW_NOTIFICATION = "notifications.new"
EVENT_WATCHER_STATUS = "notifications.watcherStatusChanged"
EVENT_WATCHER_ERROR = "notifications.watcherError"

EventHandler = Callable[[str, dict], None]


class EventEmitter(Protocol):
    def emit(self, event_type: str, payload: dict) -> None: ...


@dataclass
class Subscription:
    """A registered handler. An empty ``event_types`` list receives every event."""

    handler: EventHandler
    event_types: list[str] = field(default_factory=list)


class EventBus:
    """Synchronous fan-out to subscribed handlers.

    A handler that raises is logged and skipped; it never reaches the emitter,
    so a misbehaving listener cannot stop a poller.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(self, handler: EventHandler, event_types: list[str] | None = None) -> Subscription:
        subscription = Subscription(handler=handler, event_types=list(event_types or []))
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions = [s for s in self._subscriptions if s is not subscription]

    def get_subscribers(self, event_type: str) -> list[Subscription]:
        return [s for s in self._subscriptions if not s.event_types or event_type in s.event_types]

    def emit(self, event_type: str, payload: dict) -> None:
        for sub in self.get_subscribers(event_type):
            try:
                sub.handler(event_type, payload)
            except Exception:
                logger.exception("Event handler failed for %s", event_type)
