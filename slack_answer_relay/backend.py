"""Client for the generative-answer backend (Dify ``chat-messages`` API)."""

from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, Mapping

import httpx
import structlog

from .errors import BackendMalformed, BackendRejected, BackendUnreachable
from .fields import DEFAULT_BACKEND_FIELD_MAPPING, field_names, map_field_names, ordered_items

CHAT_MESSAGES_PATH = "chat-messages"
RESPONSE_MODE = "blocking"
WORKFLOW_USER = "slack-workflow"
MENTION_USER = "slack-bot"
DEFAULT_TIMEOUT = 8.0

_VERSIONED_URL = re.compile(r"/v\d+$")


def build_endpoint(base_url: str, api_version: str = "v1") -> str:
    """Return the chat-messages URL, honouring a version already in *base_url*."""

    base = base_url.strip().rstrip("/")
    if _VERSIONED_URL.search(base):
        return f"{base}/{CHAT_MESSAGES_PATH}"
    return f"{base}/{api_version.strip('/')}/{CHAT_MESSAGES_PATH}"


def build_query(fields: Mapping[str, str]) -> str:
    """Join fields into ``name: value`` lines in vocabulary order."""

    return "\n".join(f"{name}: {value}" for name, value in ordered_items(fields))


def _error_details(body: str) -> tuple[str | None, str | None]:
    try:
        data = json.loads(body)
    except ValueError:
        return None, None
    if not isinstance(data, dict):
        return None, None
    code = data.get("code") or data.get("error_code")
    message = data.get("message")
    return (str(code) if code else None), (str(message) if message else None)


class AnswerBackendClient:
    """Send one question to the answer backend and return its answer.

    A single request/response round trip is the whole contract: there is no
    retry and no conversation state is kept between calls.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        api_version: str = "v1",
        timeout: float = DEFAULT_TIMEOUT,
        field_mapping: Mapping[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url or not api_key:
            raise ValueError("Both a base URL and an API key must be provided.")

        self._endpoint = build_endpoint(base_url, api_version)
        self._api_key = api_key
        self._timeout = timeout
        self._field_mapping = dict(DEFAULT_BACKEND_FIELD_MAPPING if field_mapping is None else field_mapping)
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings) -> "AnswerBackendClient":
        base_url, api_key = settings.require("backend_url", "backend_api_key")
        return cls(
            base_url=base_url,
            api_key=api_key,
            api_version=settings.backend_api_version,
            timeout=settings.backend_timeout,
            field_mapping=settings.field_mapping,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "AnswerBackendClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def build_request(self, question: Mapping[str, str] | str) -> Dict[str, Any]:
        """Return the JSON body for *question* (a FieldSet or raw text)."""

        if isinstance(question, str):
            query = question.strip()
            if not query:
                raise ValueError("A question must not be empty.")
            return {"query": query, "inputs": {}, "response_mode": RESPONSE_MODE, "user": MENTION_USER}

        if not question:
            raise ValueError("At least one field is required to build a query.")
        return {
            "query": build_query(question),
            "inputs": map_field_names(question, self._field_mapping),
            "response_mode": RESPONSE_MODE,
            "user": WORKFLOW_USER,
        }

    def ask(self, question: Mapping[str, str] | str) -> str:
        """Ask the backend and return the answer text."""

        payload = self.build_request(question)
        log = structlog.get_logger().bind(endpoint=self._endpoint, user=payload["user"])
        if not isinstance(question, str):
            log = log.bind(field_names=field_names(question), mapped_inputs=list(payload["inputs"]))
        log.info("backend_request_started", query_length=len(payload["query"]))

        started = time.monotonic()
        try:
            response = self._client.post(
                self._endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            log.error("backend_request_failed", reason="timeout", error=str(exc))
            raise BackendUnreachable(
                f"answer backend timed out after {self._timeout}s", reason="timeout"
            ) from exc
        except httpx.TransportError as exc:
            log.error("backend_request_failed", reason="transport", error=str(exc))
            raise BackendUnreachable(f"network error calling answer backend: {exc}") from exc

        elapsed_ms = int((time.monotonic() - started) * 1000)
        log = log.bind(status_code=response.status_code, elapsed_ms=elapsed_ms)

        if not response.is_success:
            body = response.text
            code, message = _error_details(body)
            log.error("backend_request_rejected", code=code, body=body[:500])
            raise BackendRejected(status_code=response.status_code, body=body, code=code, message=message)

        return self._parse_answer(response, log)

    def _parse_answer(self, response: httpx.Response, log) -> str:
        try:
            data = response.json()
        except ValueError as exc:
            log.error("backend_response_malformed", body=response.text[:500])
            raise BackendMalformed(body=response.text) from exc

        answer = data.get("answer") if isinstance(data, dict) else None
        if isinstance(answer, str) and answer:
            log.info("backend_request_completed", answer_length=len(answer))
            return answer

        log.warning(
            "backend_answer_missing",
            response_keys=sorted(data) if isinstance(data, dict) else None,
        )
        return json.dumps(data, ensure_ascii=False, indent=2)
