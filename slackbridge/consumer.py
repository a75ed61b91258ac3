"""Queue consumer: resolve a deferred query and deliver it to response_url.

One call to ``Consumer.on_message`` walks a message through

    Received -> Deserialized -> Queried -> Delivered | DeliveryFailed

and always ends in a terminal MessageOutcome. Redelivery of the same
message repeats the lookup and the callback, which is harmless: each
callback is an independent ephemeral reply.

Nothing here retries. Retries belong to the stream's redelivery (see
slackbridge.worker).
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from slackbridge.errors import LookupFailure, MalformedMessage
from slackbridge.lookup import RecordLookup
from slackbridge.models import DeferredMessage, DeliveryOutcome, Failure, MessageOutcome, Success

logger = logging.getLogger(__name__)

ReplyBuilder = Callable[[DeliveryOutcome], dict[str, Any]]


def resolve(lookup: RecordLookup, query: str) -> DeliveryOutcome:
    """Run the lookup, folding its failure into a Failure outcome."""
    try:
        return Success(results=tuple(lookup.search(query)))
    except LookupFailure as exc:
        logger.warning("Lookup failed for query %r: %s", query, exc.message)
        return Failure(reason=exc.message)


class Consumer:
    """Response side of the bridge."""

    def __init__(self, lookup: RecordLookup, responder, build_reply: ReplyBuilder):
        self._lookup = lookup
        self._responder = responder
        self._build_reply = build_reply

    def on_message(self, data: str | bytes) -> MessageOutcome:
        try:
            message = DeferredMessage.from_json(data)
        except MalformedMessage as exc:
            # No response_url we can trust, nothing to report back to
            logger.error("Dropping malformed queue message: %s", exc.message)
            return MessageOutcome.DROPPED

        outcome = resolve(self._lookup, message.query)
        delivered = self._responder.post(message.callback_url, self._build_reply(outcome))

        if isinstance(outcome, Failure):
            result = MessageOutcome.LOOKUP_FAILED
        elif delivered:
            result = MessageOutcome.DELIVERED
        else:
            result = MessageOutcome.DELIVERY_FAILED
        logger.info("Processed query %r: %s", message.query, result.value)
        return result
