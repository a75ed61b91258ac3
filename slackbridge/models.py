"""Value objects passed through the pipeline.

Nothing here is mutated after construction. The inbound body is buffered
once into bytes so the signature check and the form parse each read the
same immutable value.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Mapping, Union
from urllib.parse import parse_qs, urlsplit

from slackbridge.errors import MalformedMessage

TIMESTAMP_HEADER = "x-slack-request-timestamp"
SIGNATURE_HEADER = "x-slack-signature"


def is_valid_url(value: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


@dataclass(frozen=True)
class InboundRequest:
    """A slash-command request as received, before any checks."""

    method: str
    headers: Mapping[str, str]
    body: bytes
    query_params: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_raw(
        cls,
        method: str,
        headers: Mapping[str, str],
        body: bytes,
        query_params: Mapping[str, str] | None = None,
    ) -> InboundRequest:
        return cls(
            method=method.upper(),
            headers={k.lower(): v for k, v in headers.items()},
            body=bytes(body),
            query_params=dict(query_params or {}),
        )

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @cached_property
    def form(self) -> dict[str, str]:
        """Form fields from the url-encoded body, first value wins."""
        try:
            decoded = self.body.decode("utf-8")
        except UnicodeDecodeError:
            return {}
        parsed = parse_qs(decoded, keep_blank_values=True)
        return {key: values[0] for key, values in parsed.items() if values}

    @property
    def channel_id(self) -> str | None:
        return self.form.get("channel_id")

    @property
    def text(self) -> str | None:
        return self.form.get("text")

    @property
    def response_url(self) -> str | None:
        return self.form.get("response_url")

    @property
    def timestamp(self) -> str | None:
        return self.header(TIMESTAMP_HEADER)

    @property
    def signature(self) -> str | None:
        return self.header(SIGNATURE_HEADER)


@dataclass(frozen=True)
class ValidatedQuery:
    text: str
    callback_url: str


@dataclass(frozen=True)
class DeferredMessage:
    """Unit of deferred work, serialized onto the queue as JSON.

    Wire format: {"query": str, "response_url": str}
    """

    query: str
    callback_url: str

    def __post_init__(self) -> None:
        if not isinstance(self.query, str) or not self.query:
            raise ValueError("query must be a non-empty string")
        if not isinstance(self.callback_url, str) or not is_valid_url(self.callback_url):
            raise ValueError(f"callback_url is not a valid URL: {self.callback_url!r}")

    def to_json(self) -> str:
        return json.dumps({"query": self.query, "response_url": self.callback_url})

    @classmethod
    def from_json(cls, data: str | bytes) -> DeferredMessage:
        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
            raise MalformedMessage(f"could not decode message: {exc}") from exc
        if not isinstance(payload, dict):
            raise MalformedMessage("message is not a JSON object")
        try:
            return cls(query=payload.get("query"), callback_url=payload.get("response_url"))
        except ValueError as exc:
            raise MalformedMessage(str(exc)) from exc


@dataclass(frozen=True)
class Record:
    """One row from the record store: stable id plus named string fields."""

    id: str
    fields: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Success:
    results: tuple[Record, ...] = ()


@dataclass(frozen=True)
class Failure:
    reason: str


DeliveryOutcome = Union[Success, Failure]


@dataclass(frozen=True)
class AckResponse:
    """Synchronous answer to the slash command."""

    status_code: int
    body: dict[str, Any] | None = None


class MessageOutcome(str, Enum):
    """Terminal state of one consumed queue message."""

    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    LOOKUP_FAILED = "lookup_failed"
    DROPPED = "dropped"
