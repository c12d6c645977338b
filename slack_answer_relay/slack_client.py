"""Thin wrapper utilities around the Slack WebClient."""

from __future__ import annotations

from typing import Any, Mapping

import structlog
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError

from .errors import PostFailure
from .messages import format_mention

DEFAULT_TIMEOUT = 10


class SlackClient:
    """Encapsulate Slack WebClient interactions for easier testing."""

    def __init__(
        self,
        *,
        token: str | None = None,
        client: WebClient | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        if client is None and token is None:
            raise ValueError("Either an instantiated client or a bot token must be provided.")

        self._client = client or WebClient(token=token, timeout=timeout)

    @classmethod
    def from_settings(cls, settings) -> "SlackClient":
        token = settings.require("bot_token")
        return cls(token=token, timeout=settings.slack_timeout)

    @property
    def client(self) -> WebClient:
        """Expose the underlying WebClient for advanced use cases."""

        return self._client

    def post_message(
        self,
        *,
        channel: str,
        text: str,
        thread_ts: str | None = None,
        mention_user: str | None = None,
    ) -> Mapping[str, Any]:
        """Post *text* to *channel*, optionally in a thread and mentioning a user.

        Transport errors, non-200 statuses and ``ok: false`` bodies all raise
        :class:`PostFailure`; ``kind`` tells them apart for logging only.
        """

        if mention_user:
            text = f"{format_mention(mention_user)} {text}"

        kwargs: dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            kwargs["thread_ts"] = thread_ts

        log = structlog.get_logger().bind(channel=channel, thread_ts=thread_ts)
        try:
            response = self._client.chat_postMessage(**kwargs)
        except SlackApiError as exc:
            status_code = getattr(exc.response, "status_code", None) if getattr(exc, "response", None) else None
            error_code = exc.response.get("error") if getattr(exc, "response", None) else str(exc)
            kind = "http_status" if status_code not in (None, 200) else "not_ok"
            log.error("slack_post_failed", kind=kind, error=error_code, status_code=status_code)
            raise PostFailure(str(error_code), kind=kind) from exc
        except (SlackClientError, OSError) as exc:
            log.error("slack_post_failed", kind="transport", error=str(exc))
            raise PostFailure(str(exc), kind="transport") from exc

        if not response.get("ok", False):
            error_code = response.get("error") or "unknown_error"
            log.error("slack_post_failed", kind="not_ok", error=error_code)
            raise PostFailure(str(error_code), kind="not_ok")

        log.info("slack_post_completed", text_length=len(text))
        return response
