"""Tests for Slack signature verification.

Tests:
- Valid/invalid/tampered signatures (constant-time HMAC)
- Replay window in both directions, including the 300s boundary
- Missing and malformed headers fail with a distinguishable reason
- SignatureVerifier clock binding
"""

from __future__ import annotations

import hashlib
import hmac

from freezegun import freeze_time
from hypothesis import given, settings
from hypothesis import strategies as st

from slackbridge.webhooks.verification import (
    SignatureFailure,
    SignatureVerifier,
    compute_signature,
    verify_slack_signature,
)

SECRET = "slack-test-secret"
NOW = 1_700_000_000
BODY = b"token=x&channel_id=C0ALLOWED&text=search+golang&response_url=https%3A%2F%2Fhooks.slack.com%2Fx"


def _headers(ts: str, sig: str | None = None, body: bytes = BODY) -> dict[str, str]:
    headers = {"X-Slack-Request-Timestamp": ts}
    headers["X-Slack-Signature"] = sig if sig is not None else compute_signature(ts, body, SECRET)
    return headers


class TestSignatureComputation:
    def test_matches_slack_reference_construction(self):
        ts = str(NOW)
        expected = hmac.new(
            SECRET.encode(), f"v0:{ts}:".encode() + BODY, hashlib.sha256
        ).hexdigest()
        assert compute_signature(ts, BODY, SECRET) == f"v0={expected}"


class TestVerifySlackSignature:
    """Signature check over raw body bytes."""

    def test_valid_signature(self):
        check = verify_slack_signature(_headers(str(NOW)), BODY, SECRET, NOW)
        assert check
        assert check.failure is None

    def test_uppercase_hex_accepted(self):
        sig = compute_signature(str(NOW), BODY, SECRET)
        headers = _headers(str(NOW), "v0=" + sig[3:].upper())
        assert verify_slack_signature(headers, BODY, SECRET, NOW)

    def test_lowercase_header_names(self):
        headers = {k.lower(): v for k, v in _headers(str(NOW)).items()}
        assert verify_slack_signature(headers, BODY, SECRET, NOW)

    def test_tampered_body(self):
        check = verify_slack_signature(_headers(str(NOW)), BODY + b"x", SECRET, NOW)
        assert not check
        assert check.failure is SignatureFailure.MISMATCH

    def test_wrong_secret(self):
        check = verify_slack_signature(_headers(str(NOW)), BODY, "other-secret", NOW)
        assert check.failure is SignatureFailure.MISMATCH

    def test_missing_secret_rejects(self):
        """No secret configured -> always reject (fail-closed)."""
        check = verify_slack_signature(_headers(str(NOW)), BODY, "", NOW)
        assert check.failure is SignatureFailure.NO_SECRET

    def test_missing_timestamp(self):
        headers = {"X-Slack-Signature": compute_signature(str(NOW), BODY, SECRET)}
        check = verify_slack_signature(headers, BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MISSING_TIMESTAMP

    def test_non_numeric_timestamp_is_failure(self):
        check = verify_slack_signature(_headers("abc"), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MALFORMED_TIMESTAMP

    def test_fractional_timestamp_is_failure(self):
        check = verify_slack_signature(_headers(f"{NOW}.5"), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MALFORMED_TIMESTAMP

    def test_missing_signature(self):
        headers = {"X-Slack-Request-Timestamp": str(NOW)}
        check = verify_slack_signature(headers, BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MISSING_SIGNATURE

    def test_missing_version_prefix(self):
        sig = compute_signature(str(NOW), BODY, SECRET)[3:]
        check = verify_slack_signature(_headers(str(NOW), sig), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MALFORMED_SIGNATURE

    def test_non_hex_signature(self):
        check = verify_slack_signature(_headers(str(NOW), "v0=zzzz"), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MALFORMED_SIGNATURE

    def test_truncated_signature(self):
        sig = compute_signature(str(NOW), BODY, SECRET)[:-2]
        check = verify_slack_signature(_headers(str(NOW), sig), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MALFORMED_SIGNATURE

    def test_whitespace_between_hex_pairs_rejected(self):
        digest = compute_signature(str(NOW), BODY, SECRET)[3:]
        spaced = " ".join(digest[i:i + 2] for i in range(0, len(digest), 2))
        check = verify_slack_signature(_headers(str(NOW), "v0=" + spaced), BODY, SECRET, NOW)
        assert not check
        assert check.failure is SignatureFailure.MALFORMED_SIGNATURE

    def test_trailing_whitespace_rejected(self):
        sig = compute_signature(str(NOW), BODY, SECRET) + " "
        check = verify_slack_signature(_headers(str(NOW), sig), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.MALFORMED_SIGNATURE


class TestReplayWindow:
    """Timestamps more than 300s away from now are rejected either way."""

    def test_exactly_300s_old_accepted(self):
        ts = str(NOW - 300)
        assert verify_slack_signature(_headers(ts), BODY, SECRET, NOW)

    def test_301s_old_rejected(self):
        ts = str(NOW - 301)
        check = verify_slack_signature(_headers(ts), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.STALE_TIMESTAMP

    def test_exactly_300s_future_accepted(self):
        ts = str(NOW + 300)
        assert verify_slack_signature(_headers(ts), BODY, SECRET, NOW)

    def test_301s_future_rejected(self):
        ts = str(NOW + 301)
        check = verify_slack_signature(_headers(ts), BODY, SECRET, NOW)
        assert check.failure is SignatureFailure.FUTURE_TIMESTAMP

    @given(body=st.binary(max_size=512), offset=st.integers(min_value=-300, max_value=300))
    @settings(max_examples=100)
    def test_correct_signature_inside_window_passes(self, body: bytes, offset: int):
        ts = str(NOW + offset)
        assert verify_slack_signature(_headers(ts, body=body), body, SECRET, NOW)

    @given(
        body=st.binary(max_size=512),
        offset=st.integers(min_value=301, max_value=10**6),
        future=st.booleans(),
    )
    @settings(max_examples=100)
    def test_outside_window_fails_even_when_signed(self, body: bytes, offset: int, future: bool):
        ts = str(NOW + offset if future else NOW - offset)
        check = verify_slack_signature(_headers(ts, body=body), body, SECRET, NOW)
        assert not check
        assert check.failure in (SignatureFailure.STALE_TIMESTAMP, SignatureFailure.FUTURE_TIMESTAMP)

    @given(body=st.binary(max_size=256), forged=st.binary(min_size=32, max_size=32))
    @settings(max_examples=100)
    def test_forged_signature_fails(self, body: bytes, forged: bytes):
        real = compute_signature(str(NOW), body, SECRET)
        sig = "v0=" + forged.hex()
        check = verify_slack_signature(_headers(str(NOW), sig, body), body, SECRET, NOW)
        assert bool(check) is (sig == real)


class TestSignatureVerifier:
    def test_uses_injected_clock(self):
        verifier = SignatureVerifier(SECRET, clock=lambda: NOW + 1000)
        check = verifier.verify(_headers(str(NOW)), BODY)
        assert check.failure is SignatureFailure.STALE_TIMESTAMP

    def test_defaults_to_wall_clock(self):
        with freeze_time("2023-11-14 22:13:20"):  # == NOW
            verifier = SignatureVerifier(SECRET)
            assert verifier.verify(_headers(str(NOW)), BODY)

        with freeze_time("2023-11-14 22:20:00"):
            verifier = SignatureVerifier(SECRET)
            check = verifier.verify(_headers(str(NOW)), BODY)
            assert check.failure is SignatureFailure.STALE_TIMESTAMP

    def test_custom_tolerance(self):
        verifier = SignatureVerifier(SECRET, tolerance=10, clock=lambda: NOW + 11)
        assert not verifier.verify(_headers(str(NOW)), BODY)
