"""Print Slack signature headers for a request body.

Usage:
    python scripts/sign_request.py payload.json

Environment:
    SLACK_SIGNING_SECRET must be set in the current shell. The output can be
    pasted into curl, e.g. ``curl -H "$(...)" --data-binary @payload.json``.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path

from slack_answer_relay.config import get_settings
from slack_answer_relay.security import (
    SLACK_SIGNATURE_HEADER,
    SLACK_TIMESTAMP_HEADER,
    compute_signature,
)


def sign_file(path: Path, *, timestamp: str | None = None) -> dict[str, str]:
    secret = get_settings().require("signing_secret")
    timestamp = timestamp or str(int(time.time()))
    body = path.read_bytes()
    return {
        SLACK_TIMESTAMP_HEADER: timestamp,
        SLACK_SIGNATURE_HEADER: compute_signature(secret, timestamp, body),
    }


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit(__doc__)
    for name, value in sign_file(Path(sys.argv[1])).items():
        print(f"{name}: {value}")
