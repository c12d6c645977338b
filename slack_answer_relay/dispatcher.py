"""Request validation and routing for inbound Slack calls.

The dispatcher never performs outbound calls itself. It returns an
:class:`Acknowledgement` describing the response to send and, for paths that
need it, the deferred task the HTTP layer schedules once that response has
been delivered.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping

import structlog

from .backend import AnswerBackendClient
from .config import AppSettings, get_settings
from .errors import MalformedInput
from .events import (
    DirectMention,
    HandshakeChallenge,
    WorkflowRelayMessage,
    classify_payload,
    parse_workflow_submission,
)
from .handlers import (
    BackendFactory,
    PosterFactory,
    answer_direct_mention,
    answer_workflow_relay,
    answer_workflow_submission,
)
from .security import verify_request
from .slack_client import SlackClient

RESPOND_CHALLENGE = "respond_challenge"
SCHEDULE_DIRECT_MENTION = "schedule_direct_mention"
SCHEDULE_WORKFLOW_RELAY = "schedule_workflow_relay"
SCHEDULE_WORKFLOW_SUBMISSION = "schedule_workflow_submission"
IGNORED = "ignored"


@dataclass(frozen=True)
class Acknowledgement:
    """The immediate response for a request plus any deferred work."""

    state: str
    status_code: int = 200
    body: Any = ""
    content_type: str = "text/plain"
    task: Callable[[], None] | None = None


class EventDispatcher:
    """Parse, authenticate and classify inbound calls."""

    def __init__(
        self,
        *,
        settings_provider: Callable[[], AppSettings] = get_settings,
        backend_factory: BackendFactory | None = None,
        poster_factory: PosterFactory | None = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._backend_factory = backend_factory or (
            lambda: AnswerBackendClient.from_settings(self._settings_provider())
        )
        self._poster_factory = poster_factory or (lambda: SlackClient.from_settings(self._settings_provider()))

    def dispatch_event(
        self,
        raw_body: bytes,
        *,
        timestamp: str | None = None,
        signature: str | None = None,
    ) -> Acknowledgement:
        """Handle one Events API call."""

        payload = self._parse_body(raw_body)
        event = classify_payload(payload)
        log = structlog.get_logger().bind(event_kind=type(event).__name__)

        if isinstance(event, HandshakeChallenge):
            if not event.token:
                raise MalformedInput("url_verification without a challenge", error_code="missing_challenge")
            log.info("url_verification_answered")
            return Acknowledgement(state=RESPOND_CHALLENGE, body=event.token)

        settings = self._authenticate(raw_body, timestamp=timestamp, signature=signature)

        if isinstance(event, DirectMention):
            log.info("slack_event_received", state=SCHEDULE_DIRECT_MENTION, channel=event.channel_id)
            return Acknowledgement(
                state=SCHEDULE_DIRECT_MENTION,
                task=partial(
                    answer_direct_mention,
                    event,
                    backend_factory=self._backend_factory,
                    poster_factory=self._poster_factory,
                ),
            )

        if isinstance(event, WorkflowRelayMessage):
            log.info("slack_event_received", state=SCHEDULE_WORKFLOW_RELAY, channel=event.channel_id)
            return Acknowledgement(
                state=SCHEDULE_WORKFLOW_RELAY,
                task=partial(
                    answer_workflow_relay,
                    event,
                    backend_factory=self._backend_factory,
                    poster_factory=self._poster_factory,
                    answer_header=settings.answer_header,
                ),
            )

        log.info("slack_event_received", state=IGNORED, reason=event.reason)
        return Acknowledgement(state=IGNORED)

    def dispatch_workflow_submission(
        self,
        raw_body: bytes,
        *,
        timestamp: str | None = None,
        signature: str | None = None,
    ) -> Acknowledgement:
        """Handle one workflow webhook step call."""

        payload = self._parse_body(raw_body)
        settings = self._authenticate(raw_body, timestamp=timestamp, signature=signature)
        submission = parse_workflow_submission(payload)
        log = structlog.get_logger().bind(channel=submission.channel_id, field_names=list(submission.fields))

        if not submission.fields:
            log.info("workflow_submission_skipped", reason="no_fields")
            return Acknowledgement(state=IGNORED, body={"ok": True}, content_type="application/json")

        log.info("workflow_submission_received", state=SCHEDULE_WORKFLOW_SUBMISSION)
        return Acknowledgement(
            state=SCHEDULE_WORKFLOW_SUBMISSION,
            body={"ok": True},
            content_type="application/json",
            task=partial(
                answer_workflow_submission,
                submission,
                backend_factory=self._backend_factory,
                poster_factory=self._poster_factory,
                answer_header=settings.answer_header,
            ),
        )

    @staticmethod
    def _parse_body(raw_body: bytes) -> Mapping[str, Any]:
        if not raw_body or not raw_body.strip():
            raise MalformedInput("Empty request body", error_code="empty_body")
        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedInput("Request body is not valid JSON", error_code="invalid_json") from exc
        if not isinstance(payload, dict):
            raise MalformedInput("Request body must be a JSON object", error_code="invalid_json")
        return payload

    def _authenticate(self, raw_body: bytes, *, timestamp: str | None, signature: str | None) -> AppSettings:
        settings = self._settings_provider()
        verify_request(
            signing_secret=settings.signing_secret,
            timestamp=timestamp,
            signature=signature,
            body=raw_body,
            tolerance=settings.signature_tolerance,
        )
        return settings
