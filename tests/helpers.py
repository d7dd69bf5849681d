"""Payload and request builders shared by the test modules."""

import json
import time

from taskflow_webhooks.auth.signatures import sign_github, sign_slack

GITHUB_SECRET = "gh-secret"
SLACK_SECRET = "slack-secret"
USER_ID = "user-1"
PROJECT_ID = "project-1"


def github_request(payload: dict, event: str, secret: str = GITHUB_SECRET) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode()
    return body, {
        "content-type": "application/json",
        "x-github-event": event,
        "x-hub-signature-256": sign_github(body, secret),
    }


def slack_request(payload: dict, secret: str = SLACK_SECRET, timestamp: int | None = None) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode()
    ts = int(time.time()) if timestamp is None else timestamp
    return body, {
        "content-type": "application/json",
        "x-slack-request-timestamp": str(ts),
        "x-slack-signature": sign_slack(body, ts, secret),
    }


def issue_payload(action: str, *, issue_id: int = 1001, number: int = 42, title: str = "Broken login") -> dict:
    return {
        "action": action,
        "issue": {
            "id": issue_id,
            "number": number,
            "title": title,
            "body": "Users cannot log in",
            "html_url": f"https://github.com/acme/widgets/issues/{number}",
            "state": "closed" if action == "closed" else "open",
        },
        "repository": {"full_name": "acme/widgets", "default_branch": "main"},
    }
