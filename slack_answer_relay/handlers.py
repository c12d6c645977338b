"""Work performed after a Slack request has been acknowledged.

Each flow runs on the background scheduler. Nobody is left to receive an
exception once the acknowledgement has gone out, so :func:`run_guarded` turns
failures into a best-effort notice posted to the originating thread.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog

from .backend import AnswerBackendClient
from .errors import ConfigurationError, PostFailure
from .events import DirectMention, WorkflowRelayMessage, WorkflowSubmission, strip_mentions
from .extraction import extract_fields, unescape_slack_text
from .messages import (
    DEFAULT_ANSWER_HEADER,
    EMPTY_QUESTION_NOTICE,
    build_error_notice,
    build_relay_answer,
    build_submission_answer,
)
from .slack_client import SlackClient

BackendFactory = Callable[[], AnswerBackendClient]
PosterFactory = Callable[[], SlackClient]


def run_guarded(
    work: Callable[[SlackClient], None],
    *,
    poster_factory: PosterFactory,
    operation: str,
    channel: str,
    thread_ts: str | None = None,
    mention_user: str | None = None,
) -> None:
    """Run *work* with a poster, converting failures into an in-thread notice."""

    log = structlog.get_logger().bind(operation=operation, channel=channel, thread_ts=thread_ts)
    started = time.monotonic()

    try:
        poster = poster_factory()
    except ConfigurationError as exc:
        log.error("background_task_failed", error=str(exc), error_type=type(exc).__name__)
        return

    try:
        work(poster)
    except PostFailure as exc:
        log.error("background_task_failed", error=str(exc), error_type="PostFailure", kind=exc.kind)
        return
    except Exception as exc:  # background task boundary
        log.exception(
            "background_task_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        try:
            poster.post_message(
                channel=channel,
                text=build_error_notice(exc),
                thread_ts=thread_ts,
                mention_user=mention_user,
            )
        except PostFailure as post_exc:
            log.error("error_notice_failed", error=post_exc.reason, kind=post_exc.kind)
        return

    log.info("background_task_completed", elapsed_ms=int((time.monotonic() - started) * 1000))


def answer_direct_mention(
    event: DirectMention,
    *,
    backend_factory: BackendFactory,
    poster_factory: PosterFactory,
) -> None:
    """Answer a free-form question addressed to the bot, in its thread."""

    question = strip_mentions(event.raw_text)

    def work(poster: SlackClient) -> None:
        if not question:
            poster.post_message(
                channel=event.channel_id,
                text=EMPTY_QUESTION_NOTICE,
                thread_ts=event.message_id,
                mention_user=event.user_id,
            )
            return
        with backend_factory() as backend:
            answer = backend.ask(question)
        poster.post_message(
            channel=event.channel_id,
            text=answer,
            thread_ts=event.message_id,
            mention_user=event.user_id,
        )

    run_guarded(
        work,
        poster_factory=poster_factory,
        operation="direct_mention",
        channel=event.channel_id,
        thread_ts=event.message_id,
        mention_user=event.user_id,
    )


def answer_workflow_relay(
    event: WorkflowRelayMessage,
    *,
    backend_factory: BackendFactory,
    poster_factory: PosterFactory,
    answer_header: str = DEFAULT_ANSWER_HEADER,
) -> None:
    """Forward the fields of a workflow message and answer in its thread."""

    log = structlog.get_logger().bind(operation="workflow_relay", channel=event.channel_id, thread_ts=event.message_id)

    try:
        fields = extract_fields(unescape_slack_text(event.raw_text))
    except Exception as exc:  # background task boundary
        log.exception("background_task_failed", error=str(exc), error_type=type(exc).__name__)
        return

    if not fields:
        log.info("workflow_relay_skipped", reason="no_fields")
        return

    def work(poster: SlackClient) -> None:
        with backend_factory() as backend:
            answer = backend.ask(fields)
        poster.post_message(
            channel=event.channel_id,
            text=build_relay_answer(answer, header=answer_header),
            thread_ts=event.message_id,
        )

    run_guarded(
        work,
        poster_factory=poster_factory,
        operation="workflow_relay",
        channel=event.channel_id,
        thread_ts=event.message_id,
    )


def answer_workflow_submission(
    submission: WorkflowSubmission,
    *,
    backend_factory: BackendFactory,
    poster_factory: PosterFactory,
    answer_header: str = DEFAULT_ANSWER_HEADER,
) -> None:
    """Answer a workflow webhook submission in its channel."""

    def work(poster: SlackClient) -> None:
        with backend_factory() as backend:
            answer = backend.ask(submission.fields)
        poster.post_message(
            channel=submission.channel_id,
            text=build_submission_answer(answer, requester=submission.user_id, header=answer_header),
        )

    run_guarded(
        work,
        poster_factory=poster_factory,
        operation="workflow_submission",
        channel=submission.channel_id,
    )
