"""Watcher configuration models and their partial-update counterparts.

Full configs ignore unknown keys so older or newer config files still load.
Update models forbid unknown keys: a typo in an update is an error, not a
silent no-op.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CONFIG = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)
_UPDATE = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class SlackWatcherConfig(BaseModel):
    model_config = _CONFIG

    enabled: bool = False
    poll_interval_seconds: int = Field(60, ge=1)
    channels: list[str] = Field(default_factory=list)  # empty = every joined channel
    keywords: list[str] = Field(default_factory=list)
    watch_mentions: bool = True
    watch_dms: bool = True
    watch_threads: bool = True


class GitHubWatcherConfig(BaseModel):
    model_config = _CONFIG

    enabled: bool = False
    poll_interval_seconds: int = Field(60, ge=1)
    repos: list[str] = Field(default_factory=list)  # "owner/repo"; empty = all
    watch_pr_reviews: bool = True
    watch_pr_comments: bool = True
    watch_issue_mentions: bool = True
    watch_ci_status: bool = True


class AggregateConfig(BaseModel):
    """Top-level watcher configuration, one section per source."""

    model_config = _CONFIG

    enabled: bool = False
    slack: SlackWatcherConfig = Field(default_factory=SlackWatcherConfig)
    github: GitHubWatcherConfig = Field(default_factory=GitHubWatcherConfig)

    def section(self, source: str) -> SlackWatcherConfig | GitHubWatcherConfig:
        """Return the per-source section for ``source``."""
        return getattr(self, str(source))

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SlackWatcherConfigUpdate(BaseModel):
    model_config = _UPDATE

    enabled: bool | None = None
    poll_interval_seconds: int | None = Field(None, ge=1)
    channels: list[str] | None = None
    keywords: list[str] | None = None
    watch_mentions: bool | None = None
    watch_dms: bool | None = None
    watch_threads: bool | None = None


class GitHubWatcherConfigUpdate(BaseModel):
    model_config = _UPDATE

    enabled: bool | None = None
    poll_interval_seconds: int | None = Field(None, ge=1)
    repos: list[str] | None = None
    watch_pr_reviews: bool | None = None
    watch_pr_comments: bool | None = None
    watch_issue_mentions: bool | None = None
    watch_ci_status: bool | None = None


class AggregateConfigUpdate(BaseModel):
    model_config = _UPDATE

    enabled: bool | None = None
    slack: SlackWatcherConfigUpdate | None = None
    github: GitHubWatcherConfigUpdate | None = None


def _merge_section(current: BaseModel, update: BaseModel | None) -> BaseModel:
    if update is None:
        return current.model_copy(deep=True)
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    merged = current.model_dump()
    merged.update(changes)
    return type(current).model_validate(merged)


def merge_config(current: AggregateConfig, update: AggregateConfigUpdate) -> AggregateConfig:
    """Apply ``update`` over ``current`` section by section, field by field.

    Sections and fields the update leaves unset are carried over unchanged.
    """
    return AggregateConfig(
        enabled=current.enabled if update.enabled is None else update.enabled,
        slack=_merge_section(current.slack, update.slack),
        github=_merge_section(current.github, update.github),
    )
