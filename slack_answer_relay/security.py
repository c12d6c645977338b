"""Utilities for validating Slack request signatures.

Every endpoint applies the same policy: requests without both signature
headers are rejected. The URL verification handshake is the only payload
accepted unsigned, and the dispatcher short-circuits it before calling in here.
"""

from __future__ import annotations

import hmac
import time
from hashlib import sha256

from .errors import AuthenticationError, ConfigurationError


SLACK_SIGNATURE_HEADER = "X-Slack-Signature"
SLACK_TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
VERSION = "v0"
DEFAULT_TOLERANCE = 60 * 5  # five minutes


def compute_signature(signing_secret: str, timestamp: str, body: bytes | str) -> str:
    """Return Slack-compatible signature for the provided payload.

    *body* must be the raw request body. Re-serialising a parsed payload
    changes its bytes and breaks verification.
    """

    if isinstance(body, str):
        body = body.encode("utf-8")
    basestring = f"{VERSION}:{timestamp}:".encode("utf-8") + body
    secret = signing_secret.encode("utf-8")
    digest = hmac.new(secret, basestring, sha256).hexdigest()
    return f"{VERSION}={digest}"


def verify_request(
    *,
    signing_secret: str | None,
    timestamp: str | None,
    signature: str | None,
    body: bytes | str,
    tolerance: int = DEFAULT_TOLERANCE,
) -> None:
    """Raise unless the request carries a valid, fresh Slack signature.

    A *tolerance* of zero disables the replay window check.
    """

    if not signing_secret:
        raise ConfigurationError(
            "Missing required environment variables: SLACK_SIGNING_SECRET",
            missing=("SLACK_SIGNING_SECRET",),
        )

    if not timestamp or not signature:
        raise AuthenticationError("Missing Slack signature headers", error_code="missing_signature_headers")

    try:
        request_ts = int(timestamp)
    except (TypeError, ValueError):
        raise AuthenticationError("Malformed Slack request timestamp") from None

    if tolerance:
        current_ts = int(time.time())
        if abs(current_ts - request_ts) > tolerance:
            raise AuthenticationError("Stale Slack request timestamp")

    expected = compute_signature(signing_secret, timestamp, body)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise AuthenticationError("Slack signature mismatch")
