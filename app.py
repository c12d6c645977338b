"""Application entry point for the Slack answer relay."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from uuid import uuid4

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException
import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from slack_answer_relay.background import BackgroundScheduler, get_scheduler
from slack_answer_relay.config import REQUIRED_SETTINGS, get_settings
from slack_answer_relay.dispatcher import Acknowledgement, EventDispatcher
from slack_answer_relay.errors import RelayError
from slack_answer_relay.logging_config import configure_logging
from slack_answer_relay.security import SLACK_SIGNATURE_HEADER, SLACK_TIMESTAMP_HEADER


def _register_error_handlers(flask_app: Flask) -> None:
    """Register JSON error handlers; unexpected errors get a trace identifier."""

    @flask_app.errorhandler(RelayError)
    def handle_relay_error(error: RelayError):
        structlog.get_logger().warning(
            "request_rejected",
            error=error.error_code,
            status_code=error.status_code,
            detail=str(error),
        )
        response = jsonify({"error": error.error_code})
        response.status_code = error.status_code
        return response

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        if isinstance(error, HTTPException):
            return error
        trace_id = str(uuid4())
        flask_app.logger.exception(
            "Unhandled application error", extra={"trace_id": trace_id}, exc_info=error
        )
        response = jsonify({"error": "internal_server_error", "trace_id": trace_id})
        response.status_code = 500
        return response


def _defer_until_closed(response: Response, ack: Acknowledgement, scheduler: BackgroundScheduler, trace_id: str) -> None:
    """Schedule the deferred task once the response has been delivered.

    WSGI servers call ``close()`` after the body is written, so the
    acknowledgement always precedes the first outbound call.
    """

    lock = Lock()
    pending = [ack.task]

    def schedule_once() -> None:
        with lock:
            task = pending.pop() if pending else None
        if task is not None:
            scheduler.schedule(task, trace_id=trace_id)

    response.call_on_close(schedule_once)


def _load_version() -> str:
    version_file = Path(__file__).resolve().parent / "VERSION"
    if version_file.exists():
        return version_file.read_text(encoding="utf-8").strip()
    return "unknown"


_LOGGING_CONFIGURED = False


def create_app(
    *,
    dispatcher: EventDispatcher | None = None,
    scheduler: BackgroundScheduler | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Settings are read per request, so the app starts even when secrets are
    missing; the affected calls fail with a 500 instead.
    """

    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        try:
            configure_logging(get_settings().log_level)
        except RelayError:
            configure_logging()
        _LOGGING_CONFIGURED = True

    dispatcher = dispatcher or EventDispatcher()
    scheduler = scheduler or get_scheduler()

    flask_app = Flask(__name__)
    flask_app.config["APP_VERSION"] = _load_version()
    flask_app.logger.setLevel("INFO")

    _register_error_handlers(flask_app)

    def _respond(ack: Acknowledgement, trace_id: str) -> Response:
        if ack.content_type == "application/json":
            response = jsonify(ack.body)
        else:
            response = Response(ack.body, mimetype=ack.content_type)
        response.status_code = ack.status_code
        if ack.task is not None:
            _defer_until_closed(response, ack, scheduler, trace_id)
        return response

    def _handle(dispatch) -> Response:
        trace_id = str(uuid4())
        bind_contextvars(trace_id=trace_id)
        try:
            ack = dispatch(
                request.get_data(cache=False),
                timestamp=request.headers.get(SLACK_TIMESTAMP_HEADER),
                signature=request.headers.get(SLACK_SIGNATURE_HEADER),
            )
            return _respond(ack, trace_id)
        finally:
            unbind_contextvars("trace_id")

    @flask_app.route("/slack/events", methods=["POST"])
    def slack_events():
        return _handle(dispatcher.dispatch_event)

    @flask_app.route("/slack/workflow", methods=["POST"])
    def slack_workflow():
        return _handle(dispatcher.dispatch_workflow_submission)

    @flask_app.route("/healthz", methods=["GET"])
    def healthz():
        health: dict[str, object] = {"ok": True}
        health["version"] = flask_app.config.get("APP_VERSION", "unknown")
        try:
            settings = get_settings()
        except RelayError as exc:
            health["config"] = "invalid"
            health["config_error"] = str(exc)
            health["ok"] = False
        else:
            missing = settings.missing(*REQUIRED_SETTINGS)
            health["config"] = "incomplete" if missing else "valid"
            if missing:
                health["missing"] = missing
                health["ok"] = False

        status = 200 if health["ok"] else 503
        return jsonify(health), status

    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application = create_app()
    application.run(host="0.0.0.0", port=3000, debug=True)
