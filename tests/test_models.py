"""Tests for notification and watcher config models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from notifeed.models.enums import GitHubNotificationType, SlackNotificationType
from notifeed.models.notification import Notification
from notifeed.models.watcher_config import (
    AggregateConfig,
    AggregateConfigUpdate,
    SlackWatcherConfig,
    merge_config,
)


class TestNotification:
    def test_type_resolves_to_source_enum(self):
        slack = Notification(source="slack", type="thread_reply", title="t", body="b", timestamp="2026-01-01T00:00:00Z")
        github = Notification(source="github", type="ci_status", title="t", body="b", timestamp="2026-01-01T00:00:00Z")

        assert slack.type is SlackNotificationType.THREAD_REPLY
        assert github.type is GitHubNotificationType.CI_STATUS

    def test_naive_timestamp_assumed_utc(self):
        n = Notification(source="slack", type="dm", title="t", body="b", timestamp=datetime(2026, 1, 1))
        assert n.timestamp.tzinfo == timezone.utc

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            Notification(source="slack", type="dm", title="t", body="b", timestamp="2026-01-01T00:00:00Z", priority=1)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Notification(source="slack", type="reaction", title="t", body="b", timestamp="2026-01-01T00:00:00Z")

    def test_document_omits_empty_metadata(self):
        n = Notification(id="x", source="slack", type="dm", title="t", body="b", timestamp="2026-01-01T00:00:00Z")
        doc = n.to_document()

        assert "metadata" not in doc
        assert doc["read"] is False
        assert Notification.model_validate(doc) == n


class TestMergeConfig:
    def test_unset_sections_carry_over(self):
        current = AggregateConfig(enabled=True, slack=SlackWatcherConfig(channels=["C1"]))
        merged = merge_config(current, AggregateConfigUpdate.model_validate({"github": {"repos": ["o/r"]}}))

        assert merged.enabled is True
        assert merged.slack.channels == ["C1"]
        assert merged.github.repos == ["o/r"]

    def test_explicit_empty_list_clears(self):
        current = AggregateConfig(slack=SlackWatcherConfig(keywords=["deploy"]))
        merged = merge_config(current, AggregateConfigUpdate.model_validate({"slack": {"keywords": []}}))

        assert merged.slack.keywords == []

    def test_merge_does_not_mutate_current(self):
        current = AggregateConfig()
        merge_config(current, AggregateConfigUpdate.model_validate({"enabled": True, "slack": {"enabled": True}}))

        assert current.enabled is False
        assert current.slack.enabled is False

    def test_section_lookup(self):
        config = AggregateConfig()
        assert config.section("slack") is config.slack
        assert config.section("github") is config.github
