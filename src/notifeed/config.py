"""Application configuration via environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage for the watcher config and notification cache documents
    data_dir: Path = Path.home() / ".notifeed"

    # Logging
    log_level: str = "info"
    json_logs: bool = False

    # Slack
    slack_api_base_url: str = "https://slack.com/api"
    slack_token_env: str = "SLACK_TOKEN"

    # HTTP transport
    request_timeout_seconds: float = 30.0
    max_retries: int = 3
    initial_retry_backoff_seconds: float = 1.0

    # Pollers keep a fixed schedule unless this is set
    apply_backoff_to_schedule: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "NOTIFEED_",
    }

