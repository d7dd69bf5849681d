"""Webhook error taxonomy and shared error-parsing utilities."""

import json


class WebhookError(Exception):
    """Base error for a delivery that could not be processed.

    Carries the HTTP status the boundary should answer with, plus the provider
    and action so the boundary can log with context.
    """

    status_code = 500

    def __init__(self, message: str, *, provider: str | None = None, action: str | None = None):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.action = action


class AuthenticationError(WebhookError):
    """Missing or invalid signature, or a stale timestamp."""

    status_code = 401


class ValidationError(WebhookError):
    """A required field is absent or the body is not usable."""

    status_code = 400


class NotFoundError(WebhookError):
    """No connected integration matches the remote resource."""

    status_code = 404


class DependencyError(WebhookError):
    """The datastore or the content analyzer failed."""

    status_code = 500


class DatastoreError(DependencyError):
    pass


class AnalyzerError(DependencyError):
    pass


def parse_postgrest_error(response_text: str) -> str:
    """Extract a readable message from a PostgREST error response.

    PostgREST returns JSON like {"code": "23505", "message": "...", "details": "...", "hint": null}.
    Returns "code: message" when parseable, raw text otherwise.
    """
    try:
        body = json.loads(response_text)
    except ValueError:
        return response_text
    if not isinstance(body, dict):
        return response_text
    msg = body.get("message", "")
    code = body.get("code", "")
    if msg:
        return f"{code}: {msg}" if code else msg
    return response_text
