"""slackbridge configuration.

Loaded once per process and passed into every component constructor.
Request-handling code never reads the environment directly.
"""

from __future__ import annotations

import logging
import os
import socket

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from slackbridge.errors import ConfigurationError

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _default_consumer_name() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class Settings(BaseSettings):
    """Environment-driven settings for both the webhook app and the worker."""

    # Slack request validation
    slack_signing_secret: str = Field(min_length=1)
    slack_channel_id: str = Field(min_length=1)
    replay_window_seconds: int = 300

    # Queue (Redis Streams): stream key is "{queue_namespace}:{queue_topic}"
    redis_url: str = "redis://localhost:6379/0"
    queue_namespace: str = Field(min_length=1)
    queue_topic: str = Field(min_length=1)
    consumer_group: str = "slackbridge"
    consumer_name: str = Field(default_factory=_default_consumer_name)
    publish_timeout_seconds: float = 2.5
    read_block_ms: int = 5000
    read_count: int = 10
    claim_idle_ms: int = 60_000
    max_deliveries: int = 5

    # Record store (Airtable)
    airtable_api_url: str = "https://api.airtable.com/v0"
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_table_id: str = ""
    airtable_view_id: str = ""

    http_timeout_seconds: float = 10.0
    enable_direct_search: bool = False
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore", "frozen": True}

    @property
    def stream_key(self) -> str:
        return f"{self.queue_namespace}:{self.queue_topic}"

    def require_lookup(self) -> None:
        """Fail fast when the record store settings are incomplete."""
        missing = [
            name
            for name in (
                "airtable_api_key",
                "airtable_base_id",
                "airtable_table_id",
                "airtable_view_id",
            )
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                "Missing record store configuration: " + ", ".join(name.upper() for name in missing)
            )


def load_settings(**overrides) -> Settings:
    """Build the process-wide settings object.

    Raises ConfigurationError when a required value is missing or invalid,
    so a misconfigured process dies at startup rather than on first request.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]).upper() for err in exc.errors() if err.get("loc")})
        raise ConfigurationError(
            "Invalid or missing configuration: " + ", ".join(fields)
        ) from exc


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup for process entry points."""
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
