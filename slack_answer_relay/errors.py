"""Error taxonomy shared by the request pipeline and the background flows."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors raised while relaying Slack events."""

    status_code = 500
    error_code = "internal_server_error"

    def __init__(self, message: str | None = None, *, error_code: str | None = None) -> None:
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message or self.error_code)


class ConfigurationError(RelayError):
    """A required setting (secret, token, URL) is missing or invalid."""

    error_code = "configuration_error"

    def __init__(self, message: str | None = None, *, missing: tuple[str, ...] = ()) -> None:
        self.missing = tuple(missing)
        super().__init__(message)


class AuthenticationError(RelayError):
    status_code = 401
    error_code = "invalid_signature"


class MalformedInput(RelayError):
    status_code = 400
    error_code = "malformed_input"


class BackendError(RelayError):
    """Failures talking to the answer backend; only ever seen post-acknowledgement."""

    status_code = 502
    error_code = "backend_error"


class BackendUnreachable(BackendError):
    error_code = "backend_unreachable"

    def __init__(self, message: str | None = None, *, reason: str = "transport") -> None:
        self.reason = reason
        super().__init__(message or f"answer backend unreachable ({reason})")


class BackendRejected(BackendError):
    """Non-success reply from the backend.

    The upstream HTTP status is kept as ``response_status``; ``status_code``
    stays the relay's own 502 like every other :class:`RelayError`.
    """

    error_code = "backend_rejected"

    def __init__(
        self,
        *,
        status_code: int,
        body: str,
        code: str | None = None,
        message: str | None = None,
    ) -> None:
        self.response_status = status_code
        self.body = body
        self.code = code
        self.detail = message
        super().__init__(f"answer backend returned {status_code}: {message or body}")


class BackendMalformed(BackendError):
    error_code = "backend_malformed"

    def __init__(self, message: str | None = None, *, body: str = "") -> None:
        self.body = body
        super().__init__(message or "answer backend returned a malformed response")


class PostFailure(RelayError):
    """Posting to Slack failed. ``kind`` is informational only."""

    error_code = "post_failure"

    def __init__(self, reason: str, *, kind: str = "not_ok") -> None:
        self.reason = reason
        self.kind = kind
        super().__init__(f"Slack post failed ({kind}): {reason}")
