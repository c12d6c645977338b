"""Builders for the texts the relay posts back into Slack."""

from __future__ import annotations

from .errors import (
    BackendMalformed,
    BackendRejected,
    BackendUnreachable,
    ConfigurationError,
)

DEFAULT_ANSWER_HEADER = "📋 *質問への回答*"
EMPTY_QUESTION_NOTICE = "メッセージが空です。質問を入力してください。"

_LOG_HINT = "サーバーのログで詳細を確認してください。"


def format_mention(user_id: str) -> str:
    return f"<@{user_id}>"


def build_relay_answer(answer: str, *, header: str = DEFAULT_ANSWER_HEADER) -> str:
    """Frame a backend answer for the thread of a workflow message."""

    return f"{header}\n\n{answer}"


def build_submission_answer(
    answer: str,
    *,
    requester: str | None = None,
    header: str = DEFAULT_ANSWER_HEADER,
) -> str:
    """Frame a backend answer for a workflow webhook submission."""

    text = build_relay_answer(answer, header=header)
    if requester:
        text += f"\n\n_質問者: {format_mention(requester)}_"
    return text


def _describe_rejection(exc: BackendRejected) -> str:
    if exc.code in ("not_found", "workflow_not_found"):
        return (
            "回答バックエンドのアプリが見つかりません。\n"
            "• APIキーが正しいか\n"
            "• アプリが公開されているか\n"
            "を確認してください。"
        )
    if exc.code == "completion_request_error":
        return "回答バックエンドでテキスト生成に失敗しました。"
    detail = exc.detail or exc.body
    return f"ステータス {exc.response_status}: {detail}" if detail else f"ステータス {exc.response_status}"


def build_error_notice(exc: Exception) -> str:
    """Return the human-readable notice posted when background work fails."""

    if isinstance(exc, ConfigurationError):
        missing = "\n".join(f"• {name}" for name in exc.missing)
        body = "以下の環境変数が設定されているか確認してください：\n" + missing if missing else str(exc)
        return f"❌ 設定が不足しています。\n\n{body}\n\n{_LOG_HINT}"
    if isinstance(exc, BackendUnreachable):
        if exc.reason == "timeout":
            return (
                "❌ 回答バックエンドへのリクエストがタイムアウトしました。\n\n"
                "処理に時間がかかっている可能性があります。\n"
                f"{_LOG_HINT}"
            )
        return (
            "❌ 回答バックエンドへのネットワークエラーが発生しました。\n\n"
            f"{exc}\n\nネットワーク接続を確認してください。"
        )
    if isinstance(exc, BackendRejected):
        return f"❌ 回答バックエンドでエラーが発生しました。\n\n{_describe_rejection(exc)}\n\n{_LOG_HINT}"
    if isinstance(exc, BackendMalformed):
        return f"❌ 回答バックエンドから予期しない応答がありました。\n\n{_LOG_HINT}"
    return f"❌ エラーが発生しました。\n\n{str(exc) or type(exc).__name__}\n\n{_LOG_HINT}"
