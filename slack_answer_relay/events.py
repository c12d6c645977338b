"""Inbound Slack payloads and their classification."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from .errors import MalformedInput
from .fields import FieldSet, collect_submission_fields

# Posted by the form-automation workflow; both exclamation widths occur.
WORKFLOW_MARKERS = ("新しい質問が投稿されました!", "新しい質問が投稿されました！")

_MENTION_PATTERN = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")


@dataclass(frozen=True)
class HandshakeChallenge:
    token: str | None


@dataclass(frozen=True)
class DirectMention:
    channel_id: str
    user_id: str | None
    message_id: str
    raw_text: str


@dataclass(frozen=True)
class WorkflowRelayMessage:
    channel_id: str
    message_id: str
    raw_text: str


@dataclass(frozen=True)
class WorkflowSubmission:
    """Form inputs posted directly by a workflow webhook step."""

    channel_id: str
    user_id: str | None
    fields: FieldSet = field(default_factory=dict)


@dataclass(frozen=True)
class Other:
    raw: Mapping[str, Any]
    reason: str = "unhandled"


InboundEvent = Union[HandshakeChallenge, DirectMention, WorkflowRelayMessage, WorkflowSubmission, Other]


def is_workflow_message(text: str | None) -> bool:
    return bool(text) and any(marker in text for marker in WORKFLOW_MARKERS)


def strip_mentions(text: str | None) -> str:
    """Remove ``<@USER>`` tokens and surrounding whitespace."""

    return _MENTION_PATTERN.sub("", text or "").strip()


def classify_payload(payload: Mapping[str, Any]) -> InboundEvent:
    """Map an Events API payload onto one of the InboundEvent variants."""

    if payload.get("type") == "url_verification":
        challenge = payload.get("challenge")
        return HandshakeChallenge(token=challenge if isinstance(challenge, str) and challenge else None)

    event = payload.get("event")
    if not isinstance(event, Mapping):
        return Other(raw=payload, reason="no_event")

    event_type = event.get("type")
    text = event.get("text") or ""
    if event_type not in ("app_mention", "message"):
        return Other(raw=payload, reason=f"event_type:{event_type}")

    if is_workflow_message(text):
        return WorkflowRelayMessage(
            channel_id=event.get("channel", ""),
            message_id=event.get("ts", ""),
            raw_text=text,
        )

    if event_type == "message":
        return Other(raw=payload, reason="bot_message" if event.get("bot_id") else "plain_message")

    if event.get("subtype") == "bot_message":
        return Other(raw=payload, reason="bot_message")

    return DirectMention(
        channel_id=event.get("channel", ""),
        user_id=event.get("user"),
        message_id=event.get("ts", ""),
        raw_text=text,
    )


def parse_workflow_submission(payload: Mapping[str, Any]) -> WorkflowSubmission:
    """Build a submission from a workflow webhook body.

    Inputs may be nested under ``inputs`` or sent at the top level; the
    channel may appear in either place.
    """

    inputs = payload.get("inputs")
    if not isinstance(inputs, Mapping):
        inputs = payload

    channel = payload.get("channel") or inputs.get("channel")
    if not channel:
        raise MalformedInput("Workflow submission has no channel", error_code="missing_channel")

    return WorkflowSubmission(
        channel_id=str(channel),
        user_id=payload.get("user_id") or None,
        fields=collect_submission_fields(inputs),
    )
