"""Slack reply formatting and response_url delivery.

Replies are posted to the slash command's response_url (no bot token
needed). `deliver` raises DeliveryFailure; `post` is the best-effort form
the consumer uses, logging the failure and returning False.

Security: response_url is a per-command capability URL, never logged in full.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import requests

from slackbridge.errors import DeliveryFailure
from slackbridge.models import DeliveryOutcome, Failure, Record, Success

logger = logging.getLogger(__name__)

NO_RESULTS_TEXT = "No items found, try another search term"
FAILURE_TEXT = "Failed to fetch records from Airtable :sob:"

# (field name, label) in display order
_FIELD_LABELS = (
    ("Roadmap", ":sparkles: *Roadmap:*"),
    ("Team responsible", ":one-team: *Team(s):*"),
    ("Plan", ":moneybag: *Plan:*"),
    ("Feature flag", ":triangular_flag_on_post: *Feature Flag:*"),
    ("Entitlements", ":crown: *Entitlements:*"),
    ("Documentation", ":books: *Documentation:*"),
)


def record_link(record: Record, table_id: str, view_id: str) -> str:
    return f"https://airtable.com/{table_id}/{view_id}/{record.id}"


def format_attachment(record: Record, table_id: str, view_id: str) -> dict[str, Any]:
    """One attachment per record: linked title plus one line per set field."""
    link = record_link(record, table_id, view_id)
    title = record.fields.get("Feature", "")
    value = "".join(
        f"{label} {record.fields[name]}\r\n"
        for name, label in _FIELD_LABELS
        if record.fields.get(name)
    )
    return {
        "title": title,
        "fallback": f"{title}: {link}",
        "title_link": link,
        "fields": [{"title": "", "value": value}],
    }


def results_text(count: int) -> str:
    if count == 0:
        return NO_RESULTS_TEXT
    return f"Found {count} items! Click on any result to learn more."


def failure_reply() -> dict[str, Any]:
    return {
        "replace_original": False,
        "response_type": "ephemeral",
        "text": FAILURE_TEXT,
    }


def build_reply(outcome: DeliveryOutcome, *, table_id: str, view_id: str) -> dict[str, Any]:
    """Map a lookup outcome to the payload posted to response_url."""
    if isinstance(outcome, Failure):
        return failure_reply()
    if not isinstance(outcome, Success):
        raise TypeError(f"unsupported outcome: {outcome!r}")
    return {
        "replace_original": True,
        "response_type": "ephemeral",
        "text": results_text(len(outcome.results)),
        "attachments": [format_attachment(r, table_id, view_id) for r in outcome.results],
    }


def _redact_url(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}/..."


class SlackResponder:
    """Posts JSON replies to a slash command's response_url."""

    def __init__(self, timeout: float = 10.0, session: requests.Session | None = None):
        self._timeout = timeout
        self._session = session or requests.Session()

    def deliver(self, url: str, payload: dict[str, Any]) -> None:
        """POST the payload. Raises DeliveryFailure unless Slack answers 2xx."""
        try:
            resp = self._session.post(url, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise DeliveryFailure(
                f"callback delivery to {_redact_url(url)} failed: {exc}"
            ) from exc
        if not 200 <= resp.status_code < 300:
            raise DeliveryFailure(
                f"callback delivery to {_redact_url(url)} refused: HTTP {resp.status_code}"
            )

    def post(self, url: str, payload: dict[str, Any]) -> bool:
        """Best-effort deliver. Returns True on a 2xx answer."""
        try:
            self.deliver(url, payload)
        except DeliveryFailure as exc:
            logger.warning("%s", exc.message)
            return False
        return True
