"""JSON persistence for the watcher config and the cached notifications.

Both documents are written pretty-printed and created lazily on first save.
Loading never fails: a missing or unreadable file yields defaults (config)
or an empty list (notifications).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from notifeed.models.notification import Notification
from notifeed.models.watcher_config import AggregateConfig, GitHubWatcherConfig, SlackWatcherConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "notification-watcher-config.json"
NOTIFICATIONS_FILE = "notifications-cache.json"
MAX_CACHED_NOTIFICATIONS = 500


class NotificationStore:
    """Reads and writes the two JSON documents under ``data_dir``."""

    def __init__(self, data_dir: Path, capacity: int = MAX_CACHED_NOTIFICATIONS) -> None:
        self._data_dir = Path(data_dir)
        self.capacity = capacity

    @property
    def config_path(self) -> Path:
        return self._data_dir / CONFIG_FILE

    @property
    def notifications_path(self) -> Path:
        return self._data_dir / NOTIFICATIONS_FILE

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def load_config(self) -> AggregateConfig:
        """Load the config, merging defaults into any missing field or section."""
        data = self._read_json(self.config_path)
        if not isinstance(data, dict):
            return AggregateConfig()

        enabled = data.get("enabled")
        return AggregateConfig(
            enabled=enabled if isinstance(enabled, bool) else False,
            slack=self._load_section(SlackWatcherConfig, data.get("slack")),
            github=self._load_section(GitHubWatcherConfig, data.get("github")),
        )

    def save_config(self, config: AggregateConfig) -> None:
        self._write_json(self.config_path, config.to_document())

    @staticmethod
    def _load_section(model: type[SlackWatcherConfig] | type[GitHubWatcherConfig], raw):
        if not isinstance(raw, dict):
            return model()
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Invalid %s in config file, using defaults: %s", model.__name__, exc)
            return model()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def load_notifications(self) -> list[Notification]:
        data = self._read_json(self.notifications_path)
        if not isinstance(data, list):
            return []

        notifications: list[Notification] = []
        for raw in data:
            try:
                notifications.append(Notification.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping invalid cached notification: %s", exc)
        return notifications[-self.capacity:]

    def save_notifications(self, notifications: list[Notification]) -> None:
        """Persist the most recent ``capacity`` notifications."""
        to_save = notifications[-self.capacity:]
        self._write_json(self.notifications_path, [n.to_document() for n in to_save])

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _read_json(path: Path):
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s, falling back to defaults: %s", path, exc)
            return None

    @staticmethod
    def _write_json(path: Path, data) -> None:
        """Replace ``path`` atomically through a sibling ``.tmp`` file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(path)
