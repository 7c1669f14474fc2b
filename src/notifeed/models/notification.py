"""Notification, metadata, filter and status models.

Persisted and emitted documents use camelCase keys; attributes are snake_case
and either spelling is accepted on input.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from notifeed.models.enums import (
    CiStatus,
    GitHubNotificationType,
    NotificationSource,
    SlackNotificationType,
)

NotificationType = SlackNotificationType | GitHubNotificationType


class NotificationMetadata(BaseModel):
    """Source-specific context for rendering a notification."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    # Slack
    channel_id: str | None = None
    channel_name: str | None = None
    user_id: str | None = None
    user_name: str | None = None
    thread_ts: str | None = None

    # GitHub
    owner: str | None = None
    repo: str | None = None
    pr_number: int | None = None
    issue_number: int | None = None
    ci_status: CiStatus | None = None


class Notification(BaseModel):
    """A single aggregated notification.

    ``id`` is assigned by the poller; an empty id is replaced by the
    aggregator at ingestion time and never changes afterwards.
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    id: str = ""
    source: NotificationSource
    type: NotificationType
    title: str
    body: str
    url: str = ""
    timestamp: datetime
    read: bool = False
    metadata: NotificationMetadata | None = None

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_document(self) -> dict:
        """Serialize to the camelCase JSON shape used on disk and on the event bus."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NotificationFilter(BaseModel):
    """Optional, independently-applied clauses. An absent clause matches everything."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    sources: list[NotificationSource] | None = None
    types: list[NotificationType] | None = None
    keywords: list[str] | None = None
    unread_only: bool | None = None


class WatcherStatus(BaseModel):
    """Snapshot of the aggregator and its registered pollers."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    is_watching: bool
    active_watchers: list[NotificationSource] = Field(default_factory=list)
    last_poll_time: dict[NotificationSource, str] | None = None
    errors: dict[NotificationSource, str] | None = None
