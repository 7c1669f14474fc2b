"""Slack watcher: polls Slack for mentions, DMs, thread replies and channel activity.

Rate limits: Slack allows roughly one request per second for most Web API
methods. The default poll interval is 60 seconds and a cycle costs one
``conversations.list`` (only when no channels are configured) plus one
``conversations.history`` per channel.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from notifeed.errors.exceptions import CredentialError
from notifeed.events.bus import EventEmitter
from notifeed.integrations.credentials import CredentialProvider
from notifeed.integrations.slack_client import SlackClient
from notifeed.models.enums import NotificationSource, SlackNotificationType, WatcherState
from notifeed.models.notification import Notification, NotificationMetadata
from notifeed.models.slack import SlackMessage
from notifeed.models.watcher_config import SlackWatcherConfig
from notifeed.watchers.base import NotificationSink, ScheduledPoller
from notifeed.watchers.scheduler import Clock

logger = logging.getLogger(__name__)

SLACK_PROVIDER = "slack"
CHANNEL_DISCOVERY_LIMIT = 50
MESSAGES_PER_CHANNEL = 10
BODY_MAX_CHARS = 300
MENTION_TOKEN = "<@"

SlackClientFactory = Callable[[str], SlackClient]


@dataclass(frozen=True)
class ChannelRef:
    id: str
    name: str

    @property
    def is_direct_message(self) -> bool:
        return self.id.startswith("D")


def parse_slack_timestamp(ts: str) -> datetime:
    """Convert a Slack ``ts`` ("1234567890.123456") to an aware UTC datetime."""
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)


def classify_message(
    message: SlackMessage,
    channel: ChannelRef,
    config: SlackWatcherConfig,
) -> SlackNotificationType | None:
    """Return the notification type for ``message``, or None to suppress it.

    First match wins, so a DM that contains a mention is a DM.
    """
    if channel.is_direct_message:
        return SlackNotificationType.DM if config.watch_dms else None

    if config.watch_mentions and MENTION_TOKEN in message.text:
        return SlackNotificationType.MENTION

    if config.watch_threads and message.thread_ts and message.thread_ts != message.ts:
        return SlackNotificationType.THREAD_REPLY

    # Replies in unwatched threads still surface as plain channel messages
    return SlackNotificationType.CHANNEL


def matches_keywords(text: str, keywords: list[str]) -> bool:
    if not keywords:
        return True
    text_lower = text.lower()
    return any(kw.lower() in text_lower for kw in keywords)


def _title_for(notification_type: SlackNotificationType, channel_name: str) -> str:
    if notification_type == SlackNotificationType.MENTION:
        return f"Mentioned in #{channel_name}"
    if notification_type == SlackNotificationType.DM:
        return "New direct message"
    if notification_type == SlackNotificationType.THREAD_REPLY:
        return f"Reply in thread (#{channel_name})"
    return f"New message in #{channel_name}"


def message_to_notification(
    message: SlackMessage,
    notification_type: SlackNotificationType,
    channel: ChannelRef,
) -> Notification:
    text = message.text
    body = f"{text[:BODY_MAX_CHARS - 3]}..." if len(text) > BODY_MAX_CHARS else text

    return Notification(
        id=f"slack-{message.ts}-{channel.id}",
        source=NotificationSource.SLACK,
        type=notification_type,
        title=_title_for(notification_type, channel.name),
        body=body,
        # Approximate; real deep links need the workspace domain
        url=f"slack://channel?id={channel.id}&message={message.ts}",
        timestamp=parse_slack_timestamp(message.ts),
        metadata=NotificationMetadata(
            channel_id=channel.id,
            channel_name=channel.name,
            user_id=message.user,
            thread_ts=message.thread_ts,
        ),
    )


class SlackPoller(ScheduledPoller):
    """Polls the configured (or all joined) Slack channels.

    The cursor (:attr:`last_seen_timestamp`) lives for the process lifetime
    only; after a restart recent history is re-scanned and the aggregator's
    seen-ID cache absorbs the repeats.
    """

    source = NotificationSource.SLACK

    def __init__(
        self,
        *,
        credentials: CredentialProvider,
        get_config: Callable[[], SlackWatcherConfig],
        emitter: EventEmitter,
        sink: NotificationSink,
        client_factory: SlackClientFactory = SlackClient,
        clock: Clock | None = None,
        apply_backoff_to_schedule: bool = False,
    ) -> None:
        super().__init__(
            emitter=emitter,
            sink=sink,
            clock=clock,
            apply_backoff_to_schedule=apply_backoff_to_schedule,
        )
        self._credentials = credentials
        self._get_config = get_config
        self._client_factory = client_factory
        self.last_seen_timestamp: str | None = None

    def _poll_interval_seconds(self) -> int:
        return self._get_config().poll_interval_seconds

    async def _open_client(self) -> SlackClient:
        try:
            token = await self._credentials.get_access_token(SLACK_PROVIDER)
        except Exception as exc:
            raise CredentialError(SLACK_PROVIDER, f"Slack authentication failed: {exc}") from exc
        return self._client_factory(token)

    async def _fetch(self) -> list[Notification]:
        config = self._get_config()
        client = await self._open_client()

        found: list[tuple[str, Notification]] = []
        async with client:
            self._emit_status(WatcherState.POLLING)

            for channel in await self._channels_to_check(client, config):
                try:
                    found.extend(await self._process_channel(client, channel, config))
                except Exception as exc:
                    logger.warning("Error reading Slack channel %s: %s", channel.name, exc)

        if found:
            newest_ts, _ = max(found, key=lambda pair: float(pair[0]))
            self.last_seen_timestamp = newest_ts

        return [notification for _, notification in found]

    async def _channels_to_check(self, client: SlackClient, config: SlackWatcherConfig) -> list[ChannelRef]:
        if config.channels:
            # Entries may be channel IDs or names; both are used verbatim.
            return [ChannelRef(id=entry, name=entry) for entry in config.channels]

        channels = await client.list_channels(limit=CHANNEL_DISCOVERY_LIMIT)
        return [
            ChannelRef(id=ch.id, name=ch.name)
            for ch in channels
            if ch.is_member and not ch.is_archived
        ]

    async def _process_channel(
        self,
        client: SlackClient,
        channel: ChannelRef,
        config: SlackWatcherConfig,
    ) -> list[tuple[str, Notification]]:
        results: list[tuple[str, Notification]] = []
        cursor = float(self.last_seen_timestamp) if self.last_seen_timestamp is not None else None

        for message in await client.read_channel(channel.id, limit=MESSAGES_PER_CHANNEL):
            if cursor is not None and float(message.ts) <= cursor:
                continue

            notification_type = classify_message(message, channel, config)
            if notification_type is None:
                continue

            if not matches_keywords(message.text, config.keywords):
                continue

            results.append((message.ts, message_to_notification(message, notification_type, channel)))

        return results
