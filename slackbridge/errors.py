"""Error taxonomy for the bridge.

Every per-request or per-message failure is one of these. None of them is
allowed to take the process down: the HTTP layer turns them into responses
and the worker turns them into message outcomes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from slackbridge.webhooks.validation import RejectionReason
    from slackbridge.webhooks.verification import SignatureFailure

__all__ = [
    "AuthRejection",
    "BridgeError",
    "ConfigurationError",
    "ConsumptionFailure",
    "DeliveryFailure",
    "DispatchFailure",
    "LookupFailure",
    "MalformedMessage",
    "ValidationRejection",
]


class BridgeError(Exception):
    """Base exception for slackbridge errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(BridgeError):
    """Raised at startup when required configuration is missing."""


class AuthRejection(BridgeError):
    """Request failed signature or replay-window verification."""

    def __init__(self, failure: SignatureFailure) -> None:
        super().__init__(f"signature verification failed: {failure.value}")
        self.failure = failure


class ValidationRejection(BridgeError):
    """Request is authentic but not something we can act on.

    User-facing: answered synchronously with an ephemeral message.
    """

    def __init__(self, reason: RejectionReason) -> None:
        super().__init__(f"request rejected: {reason.value}")
        self.reason = reason


class DispatchFailure(BridgeError):
    """The queue did not acknowledge a publish."""


class ConsumptionFailure(BridgeError):
    """Base for failures while processing a queued message."""


class MalformedMessage(ConsumptionFailure):
    """Queued payload could not be decoded into a DeferredMessage."""


class LookupFailure(ConsumptionFailure):
    """The record store query failed."""


class DeliveryFailure(BridgeError):
    """POST to the callback URL failed or was refused."""
