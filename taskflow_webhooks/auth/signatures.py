"""Delivery authentication per provider.

GitHub and Slack sign their deliveries with HMAC-SHA256. Notion and Google
Calendar deliveries carry no signature this service can check; they are only
trusted because the payload names a database / calendar id that a connected
integration owns (CONFIG_MATCH). That is a weaker guarantee than a signature
and is reported as such by `scheme_for`. Zapier deliveries are not
authenticated at all.
"""

import hashlib
import hmac
import logging
import time
from enum import Enum
from typing import Mapping

from taskflow_webhooks.models import Provider

logger = logging.getLogger(__name__)

GITHUB_SIGNATURE_HEADER = "x-hub-signature-256"
SLACK_SIGNATURE_HEADER = "x-slack-signature"
SLACK_TIMESTAMP_HEADER = "x-slack-request-timestamp"

DEFAULT_REPLAY_WINDOW = 300  # seconds


class VerificationScheme(str, Enum):
    HMAC_BODY = "hmac-sha256-body"
    HMAC_TIMESTAMPED = "hmac-sha256-timestamped"
    CONFIG_MATCH = "config-match"
    NONE = "none"


SCHEMES: dict[Provider, VerificationScheme] = {
    Provider.GITHUB: VerificationScheme.HMAC_BODY,
    Provider.SLACK: VerificationScheme.HMAC_TIMESTAMPED,
    Provider.NOTION: VerificationScheme.CONFIG_MATCH,
    Provider.GOOGLE_CALENDAR: VerificationScheme.CONFIG_MATCH,
    Provider.ZAPIER: VerificationScheme.NONE,
}


def scheme_for(provider: Provider) -> VerificationScheme:
    return SCHEMES[provider]


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    # Starlette headers are case-insensitive; plain dicts are not
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                return candidate
    return value


def _digests_match(expected: str, received: str) -> bool:
    # Header values may carry any byte; compare_digest only accepts ASCII str
    return hmac.compare_digest(expected.encode("ascii"), received.strip().encode("utf-8", "replace"))


def sign_github(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def sign_slack(raw_body: bytes, timestamp: str | int, secret: str) -> str:
    base = b"v0:" + str(timestamp).encode("utf-8") + b":" + raw_body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"v0={digest}"


def verify_github(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Check `X-Hub-Signature-256` against the raw body.

    With no secret configured every delivery is accepted.
    """
    if not secret:
        logger.warning("GitHub delivery accepted without signature check: no webhook secret configured")
        return True
    if not signature:
        return False
    return _digests_match(sign_github(raw_body, secret), signature)


def verify_slack(
    raw_body: bytes,
    signature: str | None,
    timestamp: str | None,
    secret: str,
    *,
    now: float | None = None,
    window: int = DEFAULT_REPLAY_WINDOW,
) -> bool:
    """Check `x-slack-signature` over `v0:{timestamp}:{body}` within the replay window."""
    if not signature or not timestamp:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - sent_at) > window:
        logger.warning(f"Slack delivery rejected: timestamp outside {window}s replay window")
        return False
    return _digests_match(sign_slack(raw_body, timestamp, secret), signature)


def verify(
    provider: Provider,
    raw_body: bytes,
    headers: Mapping[str, str],
    secret: str | None,
    *,
    now: float | None = None,
    window: int = DEFAULT_REPLAY_WINDOW,
) -> bool:
    """Authenticate one raw delivery.

    For CONFIG_MATCH and NONE schemes this returns True: whatever trust exists
    was established by the integration lookup, not here.
    """
    scheme = SCHEMES[provider]
    if scheme is VerificationScheme.HMAC_BODY:
        return verify_github(raw_body, get_header(headers, GITHUB_SIGNATURE_HEADER), secret)
    if scheme is VerificationScheme.HMAC_TIMESTAMPED:
        if not secret:
            logger.warning("Slack delivery accepted without signature check: no signing secret configured")
            return True
        return verify_slack(
            raw_body,
            get_header(headers, SLACK_SIGNATURE_HEADER),
            get_header(headers, SLACK_TIMESTAMP_HEADER),
            secret,
            now=now,
            window=window,
        )
    return True
