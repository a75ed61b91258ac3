"""Slash-command dispatcher: verify, validate, enqueue, acknowledge.

Slack gives a slash command three seconds to answer. The dispatcher does
only what must happen synchronously and defers the record lookup to the
worker through the queue.

Security contract:
- Signature is verified before the form is inspected
- Auth failures -> 401 with no detail (reason is logged, never returned)
- Channel/empty-query rejections are user-facing ephemeral replies, not errors
- The "hang tight" reply is only sent after the queue accepted the message
"""

from __future__ import annotations

import logging
from typing import Protocol

from slackbridge.errors import AuthRejection, ValidationRejection
from slackbridge.models import AckResponse, DeferredMessage, InboundRequest, ValidatedQuery
from slackbridge.webhooks.validation import RequestValidator, rejection_text
from slackbridge.webhooks.verification import SignatureVerifier

logger = logging.getLogger(__name__)


class MessageQueue(Protocol):
    def publish(self, message: DeferredMessage) -> str:
        """Publish and return once the queue has accepted the message."""
        ...


def ephemeral(text: str) -> dict[str, str]:
    return {"response_type": "ephemeral", "text": text}


def acknowledgment_text(query: str) -> str:
    return f'Hang tight - gathering results for "{query}".'


def _audit(status: str, reason: str = "", entry_id: str = "") -> None:
    logger.info("WEBHOOK_AUDIT status=%s reason=%s entry=%s", status, reason, entry_id)


class Dispatcher:
    """Enqueue side of the bridge."""

    def __init__(
        self,
        verifier: SignatureVerifier,
        validator: RequestValidator,
        queue: MessageQueue,
    ):
        self._verifier = verifier
        self._validator = validator
        self._queue = queue

    def authenticate(self, request: InboundRequest) -> None:
        """Raise AuthRejection unless the request is signed and fresh."""
        check = self._verifier.verify(request.headers, request.body)
        if not check:
            raise AuthRejection(check.failure)

    def admit(self, request: InboundRequest) -> ValidatedQuery | AckResponse:
        """Run every synchronous check.

        Returns the canonical query, or the AckResponse that answers the
        request without enqueuing anything.
        """
        if request.method != "POST":
            return AckResponse(status_code=405, body={"error": "Only POST requests are accepted"})

        try:
            self.authenticate(request)
        except AuthRejection as exc:
            _audit("signature_failed", exc.failure.value)
            return AckResponse(status_code=401, body={"status": "unauthorized"})

        try:
            return self._validator.validate(request)
        except ValidationRejection as exc:
            _audit("rejected", exc.reason.value)
            return AckResponse(
                status_code=200,
                body=ephemeral(rejection_text(exc.reason, self._validator.allowed_channel)),
            )

    def handle(self, request: InboundRequest) -> AckResponse:
        """Answer one slash command.

        Raises DispatchFailure when the queue does not accept the message;
        every other outcome is an AckResponse.
        """
        query = self.admit(request)
        if isinstance(query, AckResponse):
            return query

        message = DeferredMessage(query=query.text, callback_url=query.callback_url)
        entry_id = self._queue.publish(message)
        _audit("queued", entry_id=entry_id)

        return AckResponse(status_code=200, body=ephemeral(acknowledgment_text(query.text)))
