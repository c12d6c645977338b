"""Pydantic-based configuration helpers for the Slack answer relay."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Dict, Iterable, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .fields import DEFAULT_BACKEND_FIELD_MAPPING
from .messages import DEFAULT_ANSWER_HEADER


class AppSettings(BaseModel):
    """Settings read from the environment.

    Secrets are optional at load time. Code paths that need one call
    :meth:`require`, so a missing value fails the individual call rather than
    process start-up.
    """

    model_config = ConfigDict(populate_by_name=True)

    bot_token: str | None = Field(None, alias="SLACK_BOT_TOKEN")
    signing_secret: str | None = Field(None, alias="SLACK_SIGNING_SECRET")
    backend_url: str | None = Field(None, alias="DIFY_API_URL")
    backend_api_key: str | None = Field(None, alias="DIFY_API_KEY")
    backend_api_version: str = Field("v1", alias="DIFY_API_VERSION")
    backend_timeout: float = Field(8.0, alias="DIFY_TIMEOUT_SECONDS")
    slack_timeout: int = Field(10, alias="SLACK_TIMEOUT_SECONDS")
    signature_tolerance: int = Field(300, alias="SLACK_SIGNATURE_TOLERANCE")
    field_mapping: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_BACKEND_FIELD_MAPPING),
        alias="BACKEND_FIELD_MAPPING",
    )
    answer_header: str = Field(DEFAULT_ANSWER_HEADER, alias="ANSWER_HEADER")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator("bot_token", "signing_secret", "backend_url", "backend_api_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("backend_api_version", mode="before")
    @classmethod
    def _default_version(cls, value: str | None) -> str:
        return (value or "").strip() or "v1"

    @field_validator("backend_timeout", "slack_timeout")
    @classmethod
    def _ensure_positive(cls, value):
        if value <= 0:
            raise ValueError("Timeouts must be greater than zero")
        return value

    @field_validator("signature_tolerance")
    @classmethod
    def _ensure_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Signature tolerance cannot be negative")
        return value

    @field_validator("field_mapping", mode="before")
    @classmethod
    def _merge_mapping(cls, value: str | dict | None) -> dict:
        if value is None or value == "":
            return dict(DEFAULT_BACKEND_FIELD_MAPPING)
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("BACKEND_FIELD_MAPPING must be a JSON object") from exc
        if not isinstance(value, dict):
            raise ValueError("BACKEND_FIELD_MAPPING must be a JSON object")
        merged = dict(DEFAULT_BACKEND_FIELD_MAPPING)
        merged.update({str(key): str(name) for key, name in value.items()})
        return merged

    @classmethod
    def env_name(cls, field_name: str) -> str:
        """Return the environment variable backing *field_name*."""

        return cls.model_fields[field_name].alias or field_name.upper()

    def missing(self, *names: str) -> List[str]:
        return [self.env_name(name) for name in names if not getattr(self, name)]

    def require(self, *names: str):
        """Return the values of *names*, raising when any of them is unset."""

        missing = self.missing(*names)
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {_format_missing(missing)}",
                missing=tuple(missing),
            )
        values = tuple(getattr(self, name) for name in names)
        return values[0] if len(values) == 1 else values


REQUIRED_SETTINGS = ("signing_secret", "bot_token", "backend_url", "backend_api_key")


def _format_missing(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of missing env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        invalid = [str(error["loc"][0]) for error in exc.errors()]
        raise ConfigurationError(
            f"Invalid environment variables: {_format_missing(invalid)}"
        ) from exc
