"""Slack request signature verification: constant-time HMAC with replay window.

Security contract:
- Comparison uses hmac.compare_digest() (constant-time, no timing oracle)
- Timestamps outside +/- 300s of now are rejected, stale or future
- A non-numeric timestamp is a failure, never a silent pass
- Missing secret -> verification always fails (fail-closed)
- The failure reason never includes the secret or the expected signature
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from slackbridge.models import SIGNATURE_HEADER, TIMESTAMP_HEADER

logger = logging.getLogger(__name__)

VERSION = "v0"
DEFAULT_TOLERANCE_SECONDS = 300

_DIGITS = re.compile(r"[0-9]+")
# Hex-encoded SHA-256, no separators
_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


class SignatureFailure(str, Enum):
    """Which check rejected the request."""
    NO_SECRET = "no_secret"
    MISSING_TIMESTAMP = "missing_timestamp"
    MALFORMED_TIMESTAMP = "malformed_timestamp"
    STALE_TIMESTAMP = "stale_timestamp"
    FUTURE_TIMESTAMP = "future_timestamp"
    MISSING_SIGNATURE = "missing_signature"
    MALFORMED_SIGNATURE = "malformed_signature"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class SignatureCheck:
    """Result of verification. Truthy only when the request is authentic."""
    ok: bool
    failure: SignatureFailure | None = None

    def __bool__(self) -> bool:
        return self.ok


_PASSED = SignatureCheck(ok=True)


def _fail(failure: SignatureFailure) -> SignatureCheck:
    return SignatureCheck(ok=False, failure=failure)


def _digest(timestamp: str, body: bytes, secret: str) -> bytes:
    base = f"{VERSION}:{timestamp}:".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), base, hashlib.sha256).digest()


def compute_signature(timestamp: str, body: bytes, secret: str) -> str:
    """Signature Slack would send for this timestamp and body: 'v0=<hex>'."""
    return f"{VERSION}={_digest(timestamp, body, secret).hex()}"


def verify_slack_signature(
    headers: Mapping[str, str],
    body: bytes,
    secret: str,
    now: float,
    *,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> SignatureCheck:
    """Verify a Slack request signature (v0 scheme).

    Slack sends:
        X-Slack-Request-Timestamp: <epoch seconds>
        X-Slack-Signature: v0=<hex HMAC-SHA256("v0:<ts>:<body>")>

    Args:
        headers: Request headers (any key case)
        body: Raw request body bytes, exactly as received
        secret: Slack signing secret
        now: Current epoch seconds
        tolerance: Replay window in seconds, applied both ways

    Returns:
        SignatureCheck; falsy with the failing check when rejected
    """
    if not secret:
        logger.warning("Slack signing secret not set, rejecting request")
        return _fail(SignatureFailure.NO_SECRET)

    lowered = {k.lower(): v for k, v in headers.items()}
    timestamp = lowered.get(TIMESTAMP_HEADER)
    signature = lowered.get(SIGNATURE_HEADER)

    if not timestamp:
        return _fail(SignatureFailure.MISSING_TIMESTAMP)
    if not _DIGITS.fullmatch(timestamp):
        return _fail(SignatureFailure.MALFORMED_TIMESTAMP)

    # Replay protection
    age = now - int(timestamp)
    if age > tolerance:
        return _fail(SignatureFailure.STALE_TIMESTAMP)
    if age < -tolerance:
        return _fail(SignatureFailure.FUTURE_TIMESTAMP)

    if not signature:
        return _fail(SignatureFailure.MISSING_SIGNATURE)
    prefix = f"{VERSION}="
    if not signature.startswith(prefix):
        return _fail(SignatureFailure.MALFORMED_SIGNATURE)
    encoded = signature[len(prefix):]
    if not _HEX_DIGEST.fullmatch(encoded):
        return _fail(SignatureFailure.MALFORMED_SIGNATURE)
    provided = bytes.fromhex(encoded)

    if not hmac.compare_digest(_digest(timestamp, body, secret), provided):
        return _fail(SignatureFailure.MISMATCH)
    return _PASSED


class SignatureVerifier:
    """Binds the signing secret and a clock for use by the dispatcher."""

    def __init__(
        self,
        secret: str,
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] | None = None,
    ):
        self._secret = secret
        self._tolerance = tolerance
        self._clock = clock

    def verify(self, headers: Mapping[str, str], body: bytes) -> SignatureCheck:
        now = self._clock() if self._clock else time.time()
        return verify_slack_signature(headers, body, self._secret, now, tolerance=self._tolerance)
