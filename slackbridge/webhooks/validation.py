"""Slash-command content validation and query normalization."""

from __future__ import annotations

from enum import Enum

from slackbridge.errors import ValidationRejection
from slackbridge.models import InboundRequest, ValidatedQuery, is_valid_url

# Kept for users still typing the old "/cmd search <term>" form
LEGACY_PREFIX = "search "


class RejectionReason(str, Enum):
    WRONG_ORIGIN = "wrong_origin"
    EMPTY_QUERY = "empty_query"
    MISSING_CALLBACK = "missing_callback"


def normalize_query(text: str) -> str:
    """Strip one leading legacy "search " prefix, if present."""
    if text.startswith(LEGACY_PREFIX):
        return text[len(LEGACY_PREFIX):]
    return text


def rejection_text(reason: RejectionReason, allowed_channel: str) -> str:
    """User-facing ephemeral text for a rejected command."""
    if reason is RejectionReason.WRONG_ORIGIN:
        return f"This command needs to run in <#{allowed_channel}>, try again there! :broken_heart:"
    if reason is RejectionReason.EMPTY_QUERY:
        return "Unable to search for an empty string! :this-is-fine:"
    return "Slack did not send a response URL with this command, please try again."


class RequestValidator:
    """Checks origin channel and query content of an authenticated request."""

    def __init__(self, allowed_channel: str):
        self._allowed_channel = allowed_channel

    @property
    def allowed_channel(self) -> str:
        return self._allowed_channel

    def validate(self, request: InboundRequest) -> ValidatedQuery:
        """Return the canonical query, or raise ValidationRejection."""
        if request.channel_id != self._allowed_channel:
            raise ValidationRejection(RejectionReason.WRONG_ORIGIN)

        text = normalize_query((request.text or "").lstrip()).strip()
        if not text:
            raise ValidationRejection(RejectionReason.EMPTY_QUERY)

        callback_url = request.response_url or ""
        if not is_valid_url(callback_url):
            raise ValidationRejection(RejectionReason.MISSING_CALLBACK)

        return ValidatedQuery(text=text, callback_url=callback_url)
