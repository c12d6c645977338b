"""Slack answer relay package initialisation."""

from .background import BackgroundScheduler, get_scheduler  # noqa: F401
from .backend import AnswerBackendClient  # noqa: F401
from .config import AppSettings, get_settings  # noqa: F401
from .dispatcher import Acknowledgement, EventDispatcher  # noqa: F401
from .errors import (  # noqa: F401
    AuthenticationError,
    BackendMalformed,
    BackendRejected,
    BackendUnreachable,
    ConfigurationError,
    MalformedInput,
    PostFailure,
    RelayError,
)
from .extraction import extract_fields  # noqa: F401
from .logging_config import configure_logging  # noqa: F401
from .slack_client import SlackClient  # noqa: F401

__all__ = [
    "AppSettings",
    "get_settings",
    "BackgroundScheduler",
    "get_scheduler",
    "AnswerBackendClient",
    "Acknowledgement",
    "EventDispatcher",
    "RelayError",
    "ConfigurationError",
    "AuthenticationError",
    "MalformedInput",
    "BackendUnreachable",
    "BackendRejected",
    "BackendMalformed",
    "PostFailure",
    "extract_fields",
    "SlackClient",
    "configure_logging",
]
