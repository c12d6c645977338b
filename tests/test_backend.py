"""Tests for the answer-backend client."""

from __future__ import annotations

import json

import httpx
import pytest

from slack_answer_relay.backend import AnswerBackendClient, build_endpoint, build_query
from slack_answer_relay.config import AppSettings
from slack_answer_relay.errors import (
    BackendMalformed,
    BackendRejected,
    BackendUnreachable,
    ConfigurationError,
)


def _client(handler, **kwargs) -> AnswerBackendClient:
    transport = httpx.MockTransport(handler)
    return AnswerBackendClient(
        base_url=kwargs.pop("base_url", "https://dify.example.com"),
        api_key="app-key",
        client=httpx.Client(transport=transport),
        **kwargs,
    )


@pytest.mark.parametrize(
    "base_url, version, expected",
    [
        ("https://dify.example.com", "v1", "https://dify.example.com/v1/chat-messages"),
        ("https://dify.example.com/", "v2", "https://dify.example.com/v2/chat-messages"),
        ("https://dify.example.com/v1", "v9", "https://dify.example.com/v1/chat-messages"),
        (" https://dify.example.com/v1/ ", "v1", "https://dify.example.com/v1/chat-messages"),
    ],
)
def test_build_endpoint(base_url, version, expected):
    assert build_endpoint(base_url, version) == expected


def test_build_query_uses_vocabulary_order():
    fields = {"商品": "Widget", "extra": "x", "当選者": "Alice"}

    assert build_query(fields) == "当選者: Alice\n商品: Widget\nextra: x"


def test_ask_with_fields_posts_mapped_inputs():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"answer": "見積もりは10万円です", "message_id": "m1"})

    client = _client(handler)

    answer = client.ask({"商品": "Widget", "概要": "相談"})

    assert answer == "見積もりは10万円です"
    assert captured["url"] == "https://dify.example.com/v1/chat-messages"
    assert captured["auth"] == "Bearer app-key"
    assert captured["body"] == {
        "query": "概要: 相談\n商品: Widget",
        "inputs": {"概要": "相談", "product": "Widget"},
        "response_mode": "blocking",
        "user": "slack-workflow",
    }


def test_ask_with_text_passes_query_verbatim():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"answer": "hi"})

    _client(handler).ask("  今日の天気は？ ")

    assert captured["body"] == {
        "query": "今日の天気は？",
        "inputs": {},
        "response_mode": "blocking",
        "user": "slack-bot",
    }


def test_custom_field_mapping_is_applied():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"answer": "ok"})

    _client(handler, field_mapping={"概要": "summary"}).ask({"概要": "相談", "商品": "Widget"})

    assert captured["body"]["inputs"] == {"summary": "相談", "商品": "Widget"}


def test_empty_questions_are_refused():
    client = _client(lambda request: httpx.Response(200, json={"answer": "x"}))

    with pytest.raises(ValueError):
        client.ask({})
    with pytest.raises(ValueError):
        client.ask("   ")


def test_non_2xx_raises_backend_rejected_with_error_details():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "completion_request_error", "message": "boom"})

    with pytest.raises(BackendRejected) as err:
        _client(handler).ask("question")

    assert err.value.response_status == 400
    assert err.value.code == "completion_request_error"
    assert err.value.detail == "boom"


def test_rate_limited_response_keeps_plain_body():
    with pytest.raises(BackendRejected) as err:
        _client(lambda request: httpx.Response(429, text="slow down")).ask("question")

    assert err.value.response_status == 429
    assert err.value.body == "slow down"
    assert err.value.code is None


def test_rejection_keeps_upstream_status_apart_from_relay_status():
    error = BackendRejected(status_code=404, body="missing")

    assert error.response_status == 404
    assert error.status_code == 502
    assert error.error_code == "backend_rejected"


def test_timeout_raises_backend_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(BackendUnreachable) as err:
        _client(handler).ask("question")

    assert err.value.reason == "timeout"


def test_transport_error_raises_backend_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendUnreachable) as err:
        _client(handler).ask("question")

    assert err.value.reason == "transport"


def test_missing_answer_falls_back_to_serialised_payload():
    payload = {"event": "message", "conversation_id": "c1"}

    answer = _client(lambda request: httpx.Response(200, json=payload)).ask("question")

    assert json.loads(answer) == payload


def test_non_json_success_raises_backend_malformed():
    with pytest.raises(BackendMalformed):
        _client(lambda request: httpx.Response(200, text="<html>")).ask("question")


def test_from_settings_requires_url_and_key():
    settings = AppSettings(DIFY_API_URL="https://dify.example.com")

    with pytest.raises(ConfigurationError) as err:
        AnswerBackendClient.from_settings(settings)

    assert err.value.missing == ("DIFY_API_KEY",)


def test_from_settings_builds_versioned_endpoint():
    settings = AppSettings(DIFY_API_URL="https://dify.example.com", DIFY_API_KEY="k", DIFY_API_VERSION="v2")

    with AnswerBackendClient.from_settings(settings) as client:
        assert client.endpoint == "https://dify.example.com/v2/chat-messages"
