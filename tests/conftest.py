"""Shared test fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from notifeed.events.bus import EventBus
from notifeed.models.enums import NotificationSource, SlackNotificationType
from notifeed.models.notification import Notification, NotificationMetadata
from notifeed.services.aggregator import NotificationAggregator
from notifeed.services.notification_store import NotificationStore


async def settle(rounds: int = 20) -> None:
    """Let every ready task run until the loop is idle."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualClock:
    """Deterministic clock: time only moves when a test moves it."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._sleepers: list[tuple[datetime, asyncio.Future]] = []
        self.sleep_calls: list[float] = []

    def now(self) -> datetime:
        return self._now

    def shift(self, seconds: float) -> None:
        """Move time forward without waking any sleeper."""
        self._now += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleep_calls.append(seconds)
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self._now + timedelta(seconds=seconds), future))
        await future

    async def advance(self, seconds: float) -> None:
        """Move time forward, waking sleepers due on the way in order."""
        target = self._now + timedelta(seconds=seconds)
        while True:
            await settle()
            self._sleepers = [s for s in self._sleepers if not s[1].done()]
            due = [s for s in self._sleepers if s[0] <= target]
            if not due:
                break
            wake_at, future = min(due, key=lambda s: s[0])
            self._sleepers.remove((wake_at, future))
            self._now = max(self._now, wake_at)
            future.set_result(None)
        self._now = target
        await settle()


def make_notification(
    id: str = "slack-1.0-C1",
    *,
    source: NotificationSource = NotificationSource.SLACK,
    type=SlackNotificationType.CHANNEL,
    title: str = "New message in #general",
    body: str = "hello",
    timestamp: datetime | None = None,
    read: bool = False,
) -> Notification:
    return Notification(
        id=id,
        source=source,
        type=type,
        title=title,
        body=body,
        url="slack://channel?id=C1&message=1.0",
        timestamp=timestamp or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        read=read,
        metadata=NotificationMetadata(channel_id="C1", channel_name="general"),
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def events(bus) -> list[tuple[str, dict]]:
    """Every event emitted on ``bus``, in order."""
    recorded: list[tuple[str, dict]] = []
    bus.subscribe(lambda event_type, payload: recorded.append((event_type, payload)))
    return recorded


@pytest.fixture
def store(tmp_path) -> NotificationStore:
    return NotificationStore(tmp_path / "data")


@pytest.fixture
def aggregator(store, bus, events, clock) -> NotificationAggregator:
    return NotificationAggregator(store, bus, clock=clock)
