"""Wires settings, store, event bus, aggregator and watchers together."""

from __future__ import annotations

import asyncio
import functools
import logging

from notifeed.config import Settings
from notifeed.events.bus import EventBus
from notifeed.integrations.credentials import CredentialProvider, EnvCredentialProvider
from notifeed.integrations.slack_client import SlackClient
from notifeed.services.aggregator import NotificationAggregator
from notifeed.services.notification_store import NotificationStore
from notifeed.watchers.scheduler import Clock
from notifeed.watchers.slack import SlackClientFactory, SlackPoller

logger = logging.getLogger(__name__)


def build_aggregator(
    settings: Settings,
    bus: EventBus,
    *,
    credentials: CredentialProvider | None = None,
    client_factory: SlackClientFactory | None = None,
    clock: Clock | None = None,
) -> NotificationAggregator:
    """Create the aggregator and register every available watcher."""
    store = NotificationStore(settings.data_dir)
    aggregator = NotificationAggregator(store, bus, clock=clock)

    if client_factory is None:
        client_factory = functools.partial(
            SlackClient,
            base_url=settings.slack_api_base_url,
            timeout=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            initial_backoff=settings.initial_retry_backoff_seconds,
        )

    slack = SlackPoller(
        credentials=credentials or EnvCredentialProvider({"slack": settings.slack_token_env}),
        get_config=lambda: aggregator.get_config().slack,
        emitter=bus,
        sink=aggregator.on_notification,
        client_factory=client_factory,
        clock=clock,
        apply_backoff_to_schedule=settings.apply_backoff_to_schedule,
    )
    aggregator.register_watcher(slack)
    return aggregator


async def run_until_stopped(aggregator: NotificationAggregator, stop: asyncio.Event) -> dict:
    """Start watching and keep the watchers running until ``stop`` is set."""
    result = aggregator.start_watching()
    if not result["success"]:
        return result

    logger.info("Watching %s", ", ".join(result["watchers_started"]) or "nothing")
    try:
        await stop.wait()
    finally:
        aggregator.dispose()
        logger.info("Notification watching shut down")
    return result
