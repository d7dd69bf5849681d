"""Provider payload -> ExternalEvent.

One function per payload shape. Each raises `ValidationError` when a field the
event cannot exist without is missing, and leaves optional fields as None
when the payload does not carry them.
"""

from typing import Any

import pydantic

from taskflow_webhooks.errors import ValidationError
from taskflow_webhooks.models import EntityKind, ExternalEvent, Priority, Provider, Status

from . import mapping, parsing

GITHUB_TITLE_TAG = "[GitHub]"
CALENDAR_UNTITLED = "(No title)"


def _require(value: Any, field: str, provider: Provider, action: str | None = None) -> Any:
    if value is None or value == "":
        raise ValidationError(f"{field} missing from payload", provider=provider.value, action=action)
    return value


def _require_object(value: Any, field: str, provider: Provider, action: str | None = None) -> dict[str, Any]:
    _require(value, field, provider, action)
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object", provider=provider.value, action=action)
    return value


def sub_object(value: Any) -> dict[str, Any]:
    """`value` when it is a JSON object, else an empty one."""
    return value if isinstance(value, dict) else {}


def _event(**fields: Any) -> ExternalEvent:
    try:
        return ExternalEvent(**fields)
    except pydantic.ValidationError as e:
        provider = fields["provider"]
        raise ValidationError(
            f"Payload field has the wrong type: {e.errors()[0]['loc'][0]}",
            provider=provider.value,
            action=fields.get("action") if isinstance(fields.get("action"), str) else None,
        ) from e


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


def issue_title(title: str) -> str:
    return f"{GITHUB_TITLE_TAG} {title}"


def issue_body(body: str | None, url: str | None) -> str:
    return f"{body or 'No description'}\n\nGitHub Issue: {url or ''}".rstrip()


def normalize_issue(payload: dict[str, Any]) -> ExternalEvent:
    action = payload.get("action")
    issue = _require_object(payload.get("issue"), "issue", Provider.GITHUB, action)
    issue_id = _require(issue.get("id"), "issue.id", Provider.GITHUB, action)

    fields: dict[str, Any] = {}
    if action == "opened":
        fields = {
            "title": issue_title(issue.get("title") or ""),
            "body": issue_body(issue.get("body"), issue.get("html_url")),
            "status": mapping.map_status(Provider.GITHUB, issue.get("state") or "open"),
            "url": issue.get("html_url"),
            "creation_worthy": True,
            "enrich": True,
        }
    elif action == "closed":
        fields = {"status": mapping.map_status(Provider.GITHUB, "closed")}
    elif action == "reopened":
        fields = {"status": mapping.map_status(Provider.GITHUB, "open")}
    elif action == "edited":
        fields = {
            "title": issue_title(issue.get("title") or ""),
            "body": issue_body(issue.get("body"), issue.get("html_url")),
        }

    return _event(
        provider=Provider.GITHUB,
        event_type="issues",
        action=action,
        remote_id=str(issue_id),
        issue_id=issue_id,
        issue_number=issue.get("number"),
        **fields,
    )


def normalize_pull_request(payload: dict[str, Any]) -> ExternalEvent:
    action = payload.get("action")
    pr = _require_object(payload.get("pull_request"), "pull_request", Provider.GITHUB, action)

    fields: dict[str, Any] = {}
    if action in ("opened", "reopened") and pr.get("draft"):
        fields = {"pull_request_url": pr.get("html_url")}
    elif action in ("opened", "reopened", "ready_for_review"):
        fields = {"status": Status.REVIEW, "pull_request_url": pr.get("html_url")}
    elif action == "closed":
        if pr.get("merged"):
            fields = {"status": Status.DONE, "pull_request_url": pr.get("html_url")}
    elif action in ("edited", "synchronize"):
        fields = {"pull_request_url": pr.get("html_url")}

    return _event(
        provider=Provider.GITHUB,
        event_type="pull_request",
        action=action,
        remote_id=str(pr.get("id") or pr.get("number") or ""),
        references=parsing.find_closing_references(pr.get("title"), pr.get("body")),
        **fields,
    )


def normalize_push(payload: dict[str, Any]) -> ExternalEvent:
    commits = payload.get("commits")
    if not isinstance(commits, list):
        commits = []
    refs = parsing.find_closing_references(*(c.get("message") for c in commits if isinstance(c, dict)))
    return _event(
        provider=Provider.GITHUB,
        event_type="push",
        action=None,
        remote_id=str(payload.get("after") or sub_object(payload.get("head_commit")).get("id") or ""),
        status=Status.DONE if refs else None,
        references=refs,
    )


# ---------------------------------------------------------------------------
# Slack
# ---------------------------------------------------------------------------


def slack_message_url(channel: str | None, ts: str) -> str:
    return f"https://slack.com/archives/{channel or ''}/{ts}"


def normalize_task_command(event: dict[str, Any]) -> ExternalEvent | None:
    """A `!task` message as a creation-worthy event; None for ordinary chatter."""
    if event.get("bot_id") or event.get("subtype"):
        return None
    command = parsing.parse_task_command(event.get("text"))
    if command is None:
        return None
    ts = _require(event.get("ts"), "event.ts", Provider.SLACK, "message")
    return _event(
        provider=Provider.SLACK,
        event_type="event_callback",
        action="message",
        remote_id=str(ts),
        title=command.title,
        body=command.description,
        status=Status.TODO,
        priority=Priority.MEDIUM,
        url=slack_message_url(event.get("channel"), ts),
        project_hint=command.project,
        creation_worthy=True,
    )


def normalize_reaction(event: dict[str, Any]) -> ExternalEvent | None:
    """A status-changing reaction on a message; None for other items or emoji."""
    item = sub_object(event.get("item"))
    if item.get("type") != "message":
        return None
    status = mapping.reaction_status(event.get("reaction"))
    if status is None:
        return None
    ts = _require(item.get("ts"), "event.item.ts", Provider.SLACK, "reaction_added")
    return _event(
        provider=Provider.SLACK,
        event_type="event_callback",
        action="reaction_added",
        remote_id=str(ts),
        status=status,
    )


# ---------------------------------------------------------------------------
# Notion
# ---------------------------------------------------------------------------


def notion_database_id(payload: dict[str, Any]) -> str | None:
    return sub_object(payload.get("database")).get("id") or (
        sub_object(sub_object(payload.get("page")).get("parent")).get("database_id")
    )


def notion_page_url(page_id: str) -> str:
    return f"https://notion.so/{page_id.replace('-', '')}"


def normalize_page(payload: dict[str, Any], *, created: bool) -> ExternalEvent:
    event_type = payload.get("type") or ""
    page = _require_object(payload.get("page"), "page", Provider.NOTION, event_type)
    page_id = _require(page.get("id"), "page.id", Provider.NOTION, event_type)
    properties = sub_object(page.get("properties"))

    status_name = parsing.notion_select(properties, "Status")
    priority_name = parsing.notion_select(properties, "Priority")
    return _event(
        provider=Provider.NOTION,
        event_type=event_type,
        action=None,
        remote_id=str(page_id),
        title=parsing.notion_title(properties),
        body=parsing.notion_rich_text(properties, "Description"),
        status=mapping.map_status(Provider.NOTION, status_name) if status_name else None,
        priority=mapping.map_priority(Provider.NOTION, priority_name) if priority_name else None,
        url=page.get("url") or notion_page_url(str(page_id)),
        creation_worthy=created,
    )


# ---------------------------------------------------------------------------
# Google Calendar
# ---------------------------------------------------------------------------


def calendar_id(payload: dict[str, Any]) -> str | None:
    return payload.get("calendarId") or sub_object(payload.get("calendar")).get("id")


def calendar_event_body(payload: dict[str, Any]) -> dict[str, Any]:
    event = payload.get("event")
    return event if isinstance(event, dict) else payload


def normalize_calendar_event(event: dict[str, Any]) -> ExternalEvent:
    status = event.get("status")
    event_id = _require(event.get("id"), "event.id", Provider.GOOGLE_CALENDAR, status)
    try:
        starts_at, all_day = parsing.parse_calendar_bound(event.get("start"))
        ends_at, _ = parsing.parse_calendar_bound(event.get("end"), end=True)
    except (ValueError, TypeError, AttributeError) as e:
        raise ValidationError(
            f"Unparseable event start/end: {e}", provider=Provider.GOOGLE_CALENDAR.value, action=status
        ) from e
    _require(starts_at, "event.start", Provider.GOOGLE_CALENDAR, status)

    title = event.get("summary") or CALENDAR_UNTITLED
    return _event(
        provider=Provider.GOOGLE_CALENDAR,
        event_type="event",
        action=status,
        remote_id=str(event_id),
        entity=EntityKind.CALENDAR_EVENT,
        title=title,
        body=event.get("description") or "",
        url=event.get("htmlLink"),
        attendees=parsing.emails(event.get("attendees")),
        starts_at=starts_at,
        ends_at=ends_at,
        all_day=all_day,
        duration_minutes=parsing.duration_minutes(starts_at, ends_at),
        location=event.get("location"),
        event_kind=parsing.classify_event(title),
        creation_worthy=True,
    )
