"""FastAPI application factory for the enqueue side.

Run with: uvicorn --factory slackbridge.serve:create_app
"""

from __future__ import annotations

import functools
import logging

from fastapi import FastAPI

from slackbridge import __version__
from slackbridge.bus import StreamQueue, build_queue
from slackbridge.channels.slack import build_reply
from slackbridge.config import Settings, configure_logging, load_settings
from slackbridge.consumer import resolve
from slackbridge.lookup import AirtableLookup, RecordLookup
from slackbridge.webhooks.dispatcher import Dispatcher
from slackbridge.webhooks.handlers import register_webhook_routes
from slackbridge.webhooks.validation import RequestValidator
from slackbridge.webhooks.verification import SignatureVerifier

logger = logging.getLogger(__name__)


def _direct_search(settings: Settings, lookup: RecordLookup | None):
    settings.require_lookup()
    lookup = lookup or AirtableLookup(
        settings.airtable_api_key,
        settings.airtable_base_id,
        settings.airtable_table_id,
        settings.airtable_view_id,
        api_url=settings.airtable_api_url,
        timeout=settings.http_timeout_seconds,
    )
    reply = functools.partial(
        build_reply,
        table_id=settings.airtable_table_id,
        view_id=settings.airtable_view_id,
    )
    return lambda query: reply(resolve(lookup, query))


def create_app(
    settings: Settings | None = None,
    *,
    queue: StreamQueue | None = None,
    lookup: RecordLookup | None = None,
) -> FastAPI:
    """Build the app. All configuration is read here, once."""
    if settings is None:
        settings = load_settings()
        configure_logging(settings.log_level)

    dispatcher = Dispatcher(
        SignatureVerifier(settings.slack_signing_secret, settings.replay_window_seconds),
        RequestValidator(settings.slack_channel_id),
        queue or build_queue(settings),
    )
    search = _direct_search(settings, lookup) if settings.enable_direct_search else None

    app = FastAPI(title="slackbridge", version=__version__)
    register_webhook_routes(
        app,
        dispatcher,
        deadline_seconds=settings.publish_timeout_seconds,
        search=search,
    )
    logger.info("slackbridge app ready, publishing to %s", settings.stream_key)
    return app
