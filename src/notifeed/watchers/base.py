"""Poller contract and the shared scheduling/backoff machinery."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from notifeed.events.bus import EVENT_WATCHER_ERROR, EVENT_WATCHER_STATUS, EventEmitter
from notifeed.logging_config import bind_poll_context, clear_poll_context
from notifeed.models.enums import NotificationSource, WatcherState
from notifeed.models.notification import Notification
from notifeed.services.id_generator import generate_id
from notifeed.watchers.scheduler import Clock, RepeatingTask, SystemClock

logger = logging.getLogger(__name__)

MIN_POLL_INTERVAL_MS = 10_000
INITIAL_BACKOFF_MS = 5_000
MAX_BACKOFF_MS = 5 * 60 * 1000

NotificationSink = Callable[[Notification], None]


class NotificationPoller(ABC):
    """Periodically queries one upstream source for new notifications."""

    source: NotificationSource

    @abstractmethod
    def start(self) -> None:
        """Start polling. Never raises."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop scheduling further polls. Never raises."""
        ...

    @abstractmethod
    def is_active(self) -> bool: ...

    @abstractmethod
    async def poll(self) -> list[Notification]:
        """Run one poll cycle now, outside the schedule."""
        ...

    @abstractmethod
    def get_last_poll_time(self) -> str | None:
        """ISO timestamp of the last successful poll."""
        ...

    @abstractmethod
    def get_last_error(self) -> str | None: ...


class ScheduledPoller(NotificationPoller):
    """Timer, in-flight guard, backoff and status reporting shared by pollers.

    Subclasses implement :meth:`_fetch` (one poll cycle against the upstream)
    and :meth:`_poll_interval_seconds` (the configured rate).

    A poll requested while the previous one is unresolved returns ``[]``
    immediately instead of queueing a second upstream request.
    """

    def __init__(
        self,
        *,
        emitter: EventEmitter,
        sink: NotificationSink,
        clock: Clock | None = None,
        apply_backoff_to_schedule: bool = False,
    ) -> None:
        self._emitter = emitter
        self._sink = sink
        self._clock = clock or SystemClock()
        self._apply_backoff_to_schedule = apply_backoff_to_schedule

        self._task: RepeatingTask | None = None
        self._last_poll_time: str | None = None
        self._last_error: str | None = None
        self._polling = False
        self._backoff_ms = INITIAL_BACKOFF_MS
        self._consecutive_failures = 0

    @abstractmethod
    def _poll_interval_seconds(self) -> int: ...

    @abstractmethod
    async def _fetch(self) -> list[Notification]: ...

    @property
    def backoff_ms(self) -> int:
        return self._backoff_ms

    @property
    def is_polling(self) -> bool:
        return self._polling

    @property
    def task(self) -> RepeatingTask | None:
        return self._task

    @property
    def effective_interval_ms(self) -> int:
        return max(self._poll_interval_seconds() * 1000, MIN_POLL_INTERVAL_MS)

    def next_delay_seconds(self) -> float:
        """Delay before the next scheduled tick."""
        delay_ms = self.effective_interval_ms
        if self._apply_backoff_to_schedule and self._consecutive_failures:
            delay_ms = max(delay_ms, self._backoff_ms)
        return delay_ms / 1000

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._task is not None:
            return
        task = RepeatingTask(
            self.poll,
            self.next_delay_seconds,
            clock=self._clock,
            name=f"{self.source}-watcher",
        )
        try:
            task.start()
        except RuntimeError as exc:
            self._last_error = f"Could not schedule {self.source} watcher: {exc}"
            logger.error("Could not schedule %s watcher: %s", self.source, exc)
            return
        self._task = task
        logger.info("%s watcher started with %dms interval", self.source, self.effective_interval_ms)

    def stop(self) -> None:
        # An in-flight poll is not cancelled and may still deliver afterwards.
        if self._task is not None:
            self._task.stop()
            self._task = None
        logger.info("%s watcher stopped", self.source)

    def is_active(self) -> bool:
        return self._task is not None

    def get_last_poll_time(self) -> str | None:
        return self._last_poll_time

    def get_last_error(self) -> str | None:
        return self._last_error

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    async def poll(self) -> list[Notification]:
        if self._polling:
            logger.debug("%s poll already in flight, skipping tick", self.source)
            return []

        self._polling = True
        bind_poll_context(str(self.source), cycle_id=generate_id("poll_"))
        try:
            notifications = await self._fetch()

            self._backoff_ms = INITIAL_BACKOFF_MS
            self._consecutive_failures = 0
            self._last_error = None
            self._last_poll_time = self._clock.now().isoformat()

            for notification in notifications:
                self._sink(notification)

            if notifications:
                logger.info("%s poll found %d new notifications", self.source, len(notifications))
            return notifications
        except Exception as exc:
            self._record_failure(exc)
            return []
        finally:
            self._polling = False
            clear_poll_context()

    def _record_failure(self, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        self._last_error = message
        self._consecutive_failures += 1
        self._backoff_ms = min(self._backoff_ms * 2, MAX_BACKOFF_MS)
        logger.error("%s poll error: %s (backoff=%dms)", self.source, message, self._backoff_ms)

        self._emitter.emit(EVENT_WATCHER_ERROR, {"source": str(self.source), "error": message})
        self._emit_status(WatcherState.ERROR)

    def _emit_status(self, status: WatcherState) -> None:
        self._emitter.emit(EVENT_WATCHER_STATUS, {"source": str(self.source), "status": str(status)})
