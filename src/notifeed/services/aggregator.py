"""NotificationAggregator: orchestrates notification pollers.

Aggregates notifications from multiple sources with:
- per-source pollers on their own schedules
- duplicate detection via a time-bounded seen-ID cache
- a bounded, persisted notification cache
- live reconciliation of config changes (no restart needed)

All state is mutated from synchronous methods running on the event loop
thread, so no locking is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta

from notifeed.events.bus import EVENT_NEW_NOTIFICATION, EVENT_WATCHER_STATUS, EventEmitter
from notifeed.models.enums import NotificationSource, WatcherState
from notifeed.models.notification import Notification, NotificationFilter, WatcherStatus
from notifeed.models.watcher_config import AggregateConfig, AggregateConfigUpdate, merge_config
from notifeed.services.id_generator import generate_id
from notifeed.services.notification_filter import matches_filter
from notifeed.services.notification_store import NotificationStore
from notifeed.watchers.base import NotificationPoller
from notifeed.watchers.scheduler import Clock, RepeatingTask, SystemClock

logger = logging.getLogger(__name__)

SEEN_IDS_TTL = timedelta(hours=24)
SEEN_IDS_SWEEP_INTERVAL_SECONDS = 60 * 60
DEFAULT_LIST_LIMIT = 100


class NotificationAggregator:
    """Owns the poller registry, the notification cache and the dedup cache."""

    def __init__(
        self,
        store: NotificationStore,
        emitter: EventEmitter,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._emitter = emitter
        self._clock = clock or SystemClock()
        self._capacity = store.capacity

        self._watchers: dict[NotificationSource, NotificationPoller] = {}
        self._config = store.load_config()
        self._notifications = store.load_notifications()
        self._is_watching = False
        self._sweep_task: RepeatingTask | None = None

        # Seed with the persisted cache so a restart does not re-emit
        # items the poller re-scans before its cursor catches up.
        now = self._clock.now()
        self._seen_ids = {n.id: now for n in self._notifications if n.id}

    @property
    def is_watching(self) -> bool:
        return self._is_watching

    # ------------------------------------------------------------------
    # Registry and lifecycle
    # ------------------------------------------------------------------

    def register_watcher(self, watcher: NotificationPoller) -> None:
        self._watchers[watcher.source] = watcher

    def get_watcher(self, source: NotificationSource | str) -> NotificationPoller | None:
        return self._watchers.get(NotificationSource(source))

    def start_watching(self) -> dict:
        """Start every enabled, inactive watcher."""
        if not self._config.enabled:
            logger.info("Notification watching is disabled in config")
            return {"success": False, "watchers_started": []}

        self._ensure_sweep()

        started: list[str] = []
        for source, watcher in self._watchers.items():
            if self._config.section(source).enabled and not watcher.is_active():
                if self._start_watcher(source, watcher):
                    started.append(str(source))

        self._is_watching = any(w.is_active() for w in self._watchers.values())
        return {"success": True, "watchers_started": started}

    def stop_watching(self) -> dict:
        for source, watcher in self._watchers.items():
            if watcher.is_active():
                watcher.stop()
                self._emit_status(source, WatcherState.STOPPED)
        self._is_watching = False
        return {"success": True}

    def dispose(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.stop()
            self._sweep_task = None
        self.stop_watching()

    def get_status(self) -> WatcherStatus:
        active: list[NotificationSource] = []
        last_poll_time: dict[NotificationSource, str] = {}
        errors: dict[NotificationSource, str] = {}

        for source, watcher in self._watchers.items():
            if watcher.is_active():
                active.append(source)
            poll_time = watcher.get_last_poll_time()
            if poll_time:
                last_poll_time[source] = poll_time
            error = watcher.get_last_error()
            if error:
                errors[source] = error

        return WatcherStatus(
            is_watching=self._is_watching,
            active_watchers=active,
            last_poll_time=last_poll_time or None,
            errors=errors or None,
        )

    async def poll_now(self, source: NotificationSource | str | None = None) -> list[Notification]:
        """Run one on-demand poll on ``source`` (or every registered watcher)."""
        if source is not None:
            watcher = self.get_watcher(source)
            return await watcher.poll() if watcher else []

        results: list[Notification] = []
        for watcher in list(self._watchers.values()):
            results.extend(await watcher.poll())
        return results

    # ------------------------------------------------------------------
    # Read / write surface
    # ------------------------------------------------------------------

    def list_notifications(
        self,
        filter: NotificationFilter | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[Notification]:
        """Newest first, optionally filtered; returns copies."""
        result = sorted(self._notifications, key=lambda n: n.timestamp, reverse=True)
        if filter is not None:
            result = [n for n in result if matches_filter(n, filter)]
        return [n.model_copy(deep=True) for n in result[: max(limit, 0)]]

    def mark_read(self, notification_id: str) -> dict:
        for notification in self._notifications:
            if notification.id == notification_id:
                notification.read = True
                self._persist()
                return {"success": True}
        return {"success": False}

    def mark_all_read(self, source: NotificationSource | str | None = None) -> dict:
        count = 0
        for notification in self._notifications:
            if not notification.read and (source is None or notification.source == source):
                notification.read = True
                count += 1
        if count > 0:
            self._persist()
        return {"success": True, "count": count}

    def get_config(self) -> AggregateConfig:
        return self._config.model_copy(deep=True)

    def update_config(self, update: AggregateConfigUpdate | Mapping) -> AggregateConfig:
        """Merge ``update`` into the config, persist it, and reconcile running watchers.

        Raises pydantic.ValidationError for unknown fields or bad values.
        """
        if not isinstance(update, AggregateConfigUpdate):
            update = AggregateConfigUpdate.model_validate(update)

        self._config = merge_config(self._config, update)
        self._persist_config()

        if self._is_watching:
            self._reconcile()

        return self.get_config()

    def _reconcile(self) -> None:
        for source, watcher in self._watchers.items():
            if not self._config.section(source).enabled and watcher.is_active():
                watcher.stop()
                self._emit_status(source, WatcherState.STOPPED)

        for source, watcher in self._watchers.items():
            if self._config.section(source).enabled and not watcher.is_active():
                self._start_watcher(source, watcher)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def on_notification(self, notification: Notification) -> None:
        """Ingest a notification from a watcher; repeats of a seen id are dropped."""
        if not notification.id:
            notification = notification.model_copy(update={"id": generate_id("notif_")})

        if notification.id in self._seen_ids:
            return

        self._seen_ids[notification.id] = self._clock.now()
        self._ensure_sweep()

        self._notifications.append(notification.model_copy(deep=True))
        if len(self._notifications) > self._capacity:
            self._notifications = self._notifications[-self._capacity:]

        self._persist()
        self._emitter.emit(EVENT_NEW_NOTIFICATION, {"notification": notification.to_document()})

    def prune_seen_ids(self) -> int:
        """Evict seen-ID entries older than the TTL. Returns the number evicted."""
        cutoff = self._clock.now() - SEEN_IDS_TTL
        expired = [nid for nid, seen_at in self._seen_ids.items() if seen_at < cutoff]
        for nid in expired:
            del self._seen_ids[nid]
        if expired:
            logger.debug("Evicted %d seen notification ids", len(expired))
        return len(expired)

    def is_seen(self, notification_id: str) -> bool:
        return notification_id in self._seen_ids

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _start_watcher(self, source: NotificationSource, watcher: NotificationPoller) -> bool:
        """Start ``watcher``; report and emit ``started`` only if it is now active."""
        watcher.start()
        if not watcher.is_active():
            logger.warning("%s watcher failed to start: %s", source, watcher.get_last_error())
            return False
        self._emit_status(source, WatcherState.STARTED)
        return True

    def _ensure_sweep(self) -> None:
        if self._sweep_task is not None and self._sweep_task.running:
            return

        async def sweep() -> None:
            self.prune_seen_ids()

        task = RepeatingTask(
            sweep,
            SEEN_IDS_SWEEP_INTERVAL_SECONDS,
            clock=self._clock,
            name="seen-ids-sweep",
            run_immediately=False,
        )
        try:
            task.start()
        except RuntimeError as exc:
            logger.debug("Seen-id sweep not scheduled (no running event loop): %s", exc)
            return
        self._sweep_task = task

    def _persist(self) -> None:
        try:
            self._store.save_notifications(self._notifications)
        except OSError:
            logger.exception("Failed to persist notification cache")

    def _persist_config(self) -> None:
        try:
            self._store.save_config(self._config)
        except OSError:
            logger.exception("Failed to persist watcher config")

    def _emit_status(self, source: NotificationSource, status: WatcherState) -> None:
        self._emitter.emit(EVENT_WATCHER_STATUS, {"source": str(source), "status": str(status)})
