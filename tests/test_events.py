"""Tests for inbound payload classification."""

from __future__ import annotations

import pytest

from slack_answer_relay.errors import MalformedInput
from slack_answer_relay.events import (
    DirectMention,
    HandshakeChallenge,
    Other,
    WorkflowRelayMessage,
    classify_payload,
    parse_workflow_submission,
    strip_mentions,
)


def _event(**event):
    return {"type": "event_callback", "event": event}


def test_url_verification_is_a_handshake():
    assert classify_payload({"type": "url_verification", "challenge": "abc123"}) == HandshakeChallenge(token="abc123")
    assert classify_payload({"type": "url_verification"}) == HandshakeChallenge(token=None)


@pytest.mark.parametrize("challenge", [12345, "", ["abc"], {"value": "abc"}, None])
def test_handshake_only_accepts_text_challenges(challenge):
    payload = {"type": "url_verification", "challenge": challenge}

    assert classify_payload(payload) == HandshakeChallenge(token=None)


def test_app_mention_is_a_direct_mention():
    event = classify_payload(_event(type="app_mention", channel="C1", user="U1", ts="1.1", text="<@UBOT> hello"))

    assert event == DirectMention(channel_id="C1", user_id="U1", message_id="1.1", raw_text="<@UBOT> hello")


@pytest.mark.parametrize("marker", ["新しい質問が投稿されました!", "新しい質問が投稿されました！"])
@pytest.mark.parametrize("event_type", ["message", "app_mention"])
def test_marker_phrase_makes_a_workflow_relay_message(marker, event_type):
    text = f"{marker}\n商品: Widget"
    event = classify_payload(_event(type=event_type, subtype="bot_message", channel="C1", ts="2.2", text=text))

    assert event == WorkflowRelayMessage(channel_id="C1", message_id="2.2", raw_text=text)


def test_bot_message_without_marker_is_ignored():
    event = classify_payload(_event(type="message", subtype="bot_message", bot_id="B1", text="hello"))

    assert isinstance(event, Other)
    assert event.reason == "bot_message"


def test_bot_authored_app_mention_without_marker_is_ignored():
    event = classify_payload(_event(type="app_mention", subtype="bot_message", text="<@UBOT> hi"))

    assert isinstance(event, Other)
    assert event.reason == "bot_message"


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "event_callback"},
        _event(type="reaction_added"),
        _event(type="message", user="U1", text="just chatting"),
    ],
)
def test_everything_else_is_other(payload):
    assert isinstance(classify_payload(payload), Other)


def test_strip_mentions_removes_all_user_tokens():
    assert strip_mentions("<@U123ABC> 質問です <@W999|someone>") == "質問です"
    assert strip_mentions("<@U123ABC>   ") == ""
    assert strip_mentions(None) == ""


def test_parse_workflow_submission_reads_nested_inputs():
    submission = parse_workflow_submission(
        {"channel": "C9", "user_id": "U7", "inputs": {"prize_winner": "Alice", "商品": "Widget"}}
    )

    assert submission.channel_id == "C9"
    assert submission.user_id == "U7"
    assert submission.fields == {"当選者": "Alice", "商品": "Widget"}


def test_parse_workflow_submission_reads_top_level_inputs_and_channel():
    submission = parse_workflow_submission({"channel": "C9", "概要": "相談"})

    assert submission.fields == {"概要": "相談"}
    assert submission.user_id is None


def test_parse_workflow_submission_takes_channel_from_inputs():
    submission = parse_workflow_submission({"inputs": {"channel": "C5", "option": "あり"}})

    assert submission.channel_id == "C5"


def test_parse_workflow_submission_requires_channel():
    with pytest.raises(MalformedInput) as err:
        parse_workflow_submission({"inputs": {"商品": "Widget"}})

    assert err.value.error_code == "missing_channel"
    assert err.value.status_code == 400
