"""Extract form fields embedded in workflow-generated Slack messages."""

from __future__ import annotations

import json
import re
from typing import Iterable

import structlog

from .fields import FIELD_VOCABULARY, FieldSet, clean_fields

WORKFLOW_DATA_PATTERN = re.compile(r"<workflow_data>(.*?)</workflow_data>", re.DOTALL)

_SLACK_ESCAPES = (("&lt;", "<"), ("&gt;", ">"), ("&amp;", "&"))


def unescape_slack_text(text: str) -> str:
    """Undo the HTML entity escaping Slack applies to message text."""

    for entity, char in _SLACK_ESCAPES:
        text = text.replace(entity, char)
    return text


def _field_pattern(name: str) -> re.Pattern[str]:
    # Workflow forms emit either a full-width or a half-width colon.
    return re.compile(rf"{re.escape(name)}[：:]([^\n]+)")


def _parse_tagged_block(block: str) -> FieldSet:
    log = structlog.get_logger()
    try:
        data = json.loads(block.strip())
    except json.JSONDecodeError as exc:
        log.warning("workflow_data_malformed", error=str(exc), length=len(block))
        return {}
    if not isinstance(data, dict):
        log.warning("workflow_data_malformed", error="not a JSON object", kind=type(data).__name__)
        return {}
    return clean_fields(data)


def _scrape_fields(text: str, vocabulary: Iterable[str]) -> FieldSet:
    scraped = {}
    for name in vocabulary:
        match = _field_pattern(name).search(text)
        if match:
            scraped[name] = match.group(1)
    return clean_fields(scraped)


def extract_fields(text: str, *, vocabulary: Iterable[str] = FIELD_VOCABULARY) -> FieldSet:
    """Return the FieldSet embedded in *text*.

    A ``<workflow_data>`` JSON block takes precedence. When the block is
    present but unparseable the result is empty; the per-field scrape only
    runs for messages that carry no block at all. *text* is expected to be
    unescaped already (see :func:`unescape_slack_text`).
    """

    match = WORKFLOW_DATA_PATTERN.search(text or "")
    if match:
        fields = _parse_tagged_block(match.group(1))
        source = "workflow_data"
    else:
        fields = _scrape_fields(text or "", vocabulary)
        source = "text"
    structlog.get_logger().info(
        "fields_extracted",
        source=source,
        field_names=list(fields),
    )
    return fields
