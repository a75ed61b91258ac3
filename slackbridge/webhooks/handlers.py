"""Webhook HTTP handlers: FastAPI routes for the slash command.

Each handler:
1. Reads the raw body once (needed for HMAC verification and form parsing)
2. Builds an immutable InboundRequest from it
3. Runs the dispatcher in a worker thread, bounded by the publish deadline
4. Returns the dispatcher's answer as JSON

Security contract:
- Never return error details to the caller (info disclosure)
- A failed or late publish -> 503 with a generic message, never "hang tight"
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from slackbridge.errors import DispatchFailure
from slackbridge.models import AckResponse, InboundRequest
from slackbridge.webhooks.dispatcher import Dispatcher, ephemeral

logger = logging.getLogger(__name__)

GENERIC_FAILURE_TEXT = "Something went wrong queuing your search, please try again."

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


async def _inbound(request: Request) -> InboundRequest:
    body = await request.body()
    return InboundRequest.from_raw(
        request.method,
        dict(request.headers),
        body,
        dict(request.query_params),
    )


def _to_response(ack: AckResponse) -> Response:
    if ack.body is None:
        return Response(status_code=ack.status_code)
    return JSONResponse(ack.body, status_code=ack.status_code)


def _unavailable() -> JSONResponse:
    return JSONResponse(ephemeral(GENERIC_FAILURE_TEXT), status_code=503)


def register_webhook_routes(
    app: FastAPI,
    dispatcher: Dispatcher,
    *,
    deadline_seconds: float,
    search: Callable[[str], dict[str, Any]] | None = None,
) -> None:
    """Register slash-command routes on the FastAPI app.

    ``search`` enables POST /search, which answers synchronously with the
    lookup result instead of going through the queue.
    """

    @app.api_route("/queue", methods=_METHODS)
    async def queue_command(request: Request):
        """Verify, validate and enqueue a slash command."""
        inbound = await _inbound(request)
        try:
            ack = await asyncio.wait_for(
                asyncio.to_thread(dispatcher.handle, inbound),
                timeout=deadline_seconds,
            )
        except DispatchFailure:
            logger.exception("Slash command could not be queued")
            return _unavailable()
        except asyncio.TimeoutError:
            logger.error("Queue publish exceeded %.1fs deadline", deadline_seconds)
            return _unavailable()
        return _to_response(ack)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    if search is not None:

        @app.api_route("/search", methods=_METHODS)
        async def search_command(request: Request):
            """Verify, validate and answer inline, bypassing the queue."""
            inbound = await _inbound(request)
            admitted = dispatcher.admit(inbound)
            if isinstance(admitted, AckResponse):
                return _to_response(admitted)
            payload = await asyncio.to_thread(search, admitted.text)
            return JSONResponse(payload, status_code=200)

    logger.info("Slash command routes registered (direct search %s)", "on" if search else "off")
