"""Shared fixtures for the slackbridge test suite."""

from __future__ import annotations

import time
from urllib.parse import urlencode

import pytest

from slackbridge.config import Settings
from slackbridge.models import InboundRequest
from slackbridge.webhooks.verification import compute_signature

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
CHANNEL = "C0ALLOWED"
RESPONSE_URL = "https://hooks.slack.com/commands/T000/1234/abcd"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        slack_signing_secret=SECRET,
        slack_channel_id=CHANNEL,
        queue_namespace="test",
        queue_topic="lookups",
        airtable_api_key="key123",
        airtable_base_id="appBASE",
        airtable_table_id="tblTABLE",
        airtable_view_id="viwVIEW",
        _env_file=None,
    )


def form_body(text: str = "search golang", channel_id: str = CHANNEL, response_url: str = RESPONSE_URL) -> bytes:
    return urlencode(
        {
            "token": "legacy",
            "team_id": "T000",
            "channel_id": channel_id,
            "command": "/lookup",
            "text": text,
            "response_url": response_url,
        }
    ).encode()


def signed_headers(body: bytes, *, timestamp: int | None = None, secret: str = SECRET) -> dict[str, str]:
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return {
        "X-Slack-Request-Timestamp": ts,
        "X-Slack-Signature": compute_signature(ts, body, secret),
        "Content-Type": "application/x-www-form-urlencoded",
    }


def signed_request(body: bytes | None = None, *, method: str = "POST", **kwargs) -> InboundRequest:
    body = form_body() if body is None else body
    return InboundRequest.from_raw(method, signed_headers(body, **kwargs), body)


@pytest.fixture()
def make_body():
    """Factory for url-encoded slash-command bodies."""
    return form_body


@pytest.fixture()
def sign():
    """Factory for Slack signature headers over a body."""
    return signed_headers


@pytest.fixture()
def make_request():
    """Factory for signed InboundRequests (defaults: valid, fresh, allowed channel)."""
    return signed_request
