"""Pure parse helpers for provider payload fragments.

Nothing in here touches the network or the datastore.
"""

import difflib
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable, Sequence

from taskflow_webhooks.models import EventType

TASK_COMMAND_RE = re.compile(r"!task\s+([^:]+):\s*([^|]+)(?:\|\s*(.+))?")
CLOSING_REFERENCE_RE = re.compile(
    r"\b(?:close|closes|closed|fix|fixes|fixed|resolve|resolves|resolved)\s+#(\d+)",
    re.IGNORECASE,
)

DEFAULT_BRANCHES = ("main", "master")
DEFAULT_DURATION_MINUTES = 60

# Declaration order decides ties
EVENT_TYPE_KEYWORDS: list[tuple[EventType, tuple[str, ...]]] = [
    (EventType.MEETING, ("meeting", "sync", "call")),
    (EventType.DEADLINE, ("deadline", "due")),
    (EventType.REMINDER, ("reminder",)),
]

FOLLOW_UP_KEYWORDS = ("action item", "todo", "to-do", "task", "follow up", "followup")

PROJECT_MATCH_CUTOFF = 0.6


@dataclass(frozen=True)
class TaskCommand:
    project: str
    title: str
    description: str = ""


def parse_task_command(text: str | None) -> TaskCommand | None:
    """Parse `!task <project>: <title> | <description>`; None if the text is not a command."""
    if not text or not isinstance(text, str):
        return None
    match = TASK_COMMAND_RE.search(text)
    if not match:
        return None
    project = match.group(1).strip()
    title = match.group(2).strip()
    if not project or not title:
        return None
    description = (match.group(3) or "").strip()
    return TaskCommand(project=project, title=title, description=description)


def find_closing_references(*texts: str | None) -> list[int]:
    """Issue numbers referenced with a closing keyword, first-seen order, no duplicates."""
    seen: list[int] = []
    for text in texts:
        if not text or not isinstance(text, str):
            continue
        for match in CLOSING_REFERENCE_RE.finditer(text):
            number = int(match.group(1))
            if number not in seen:
                seen.append(number)
    return seen


def is_default_branch(ref: str | None, default_branch: str | None = None) -> bool:
    """True when a push `ref` (refs/heads/<name>) targets the default branch."""
    if not ref or not isinstance(ref, str):
        return False
    branch = ref.removeprefix("refs/heads/")
    if default_branch:
        return branch == default_branch
    return branch in DEFAULT_BRANCHES


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


def parse_calendar_bound(bound: dict[str, Any] | None, *, end: bool = False) -> tuple[datetime | None, bool]:
    """Parse a Google Calendar start/end object.

    Returns (datetime, all_day). Date-only bounds become 00:00:00 for a start
    and 23:59:59 for an end.
    """
    if not bound:
        return None, False
    if bound.get("dateTime"):
        return datetime.fromisoformat(bound["dateTime"].replace("Z", "+00:00")), False
    if bound.get("date"):
        day = date.fromisoformat(bound["date"])
        return datetime.combine(day, time(23, 59, 59) if end else time(0, 0, 0)), True
    return None, False


def duration_minutes(start: datetime | None, end: datetime | None) -> int:
    """Signed difference in minutes; 60 when either bound is missing."""
    if start is None or end is None:
        return DEFAULT_DURATION_MINUTES
    # An all-day bound is naive; align it with the other side's offset
    if (start.tzinfo is None) != (end.tzinfo is None):
        if start.tzinfo is None:
            start = start.replace(tzinfo=end.tzinfo)
        else:
            end = end.replace(tzinfo=start.tzinfo)
    return round((end - start).total_seconds() / 60)


def classify_event(title: str | None) -> EventType:
    lowered = title.lower() if isinstance(title, str) else ""
    for event_type, keywords in EVENT_TYPE_KEYWORDS:
        if any(k in lowered for k in keywords):
            return event_type
    return EventType.OTHER


def wants_follow_up(*texts: str | None) -> bool:
    combined = " ".join(t for t in texts if t and isinstance(t, str)).lower()
    return any(k in combined for k in FOLLOW_UP_KEYWORDS)


# ---------------------------------------------------------------------------
# Notion
# ---------------------------------------------------------------------------


def _first_plain_text(items: Any) -> str | None:
    if not isinstance(items, list) or not items:
        return None
    first = items[0]
    if not isinstance(first, dict):
        return None
    text = first.get("plain_text")
    if text is None and isinstance(first.get("text"), dict):
        text = first["text"].get("content")
    return text if isinstance(text, str) else None


def notion_title(properties: dict[str, Any], name: str = "Name") -> str | None:
    prop = properties.get(name)
    if not isinstance(prop, dict):
        return None
    return _first_plain_text(prop.get("title"))


def notion_rich_text(properties: dict[str, Any], name: str) -> str | None:
    prop = properties.get(name)
    if not isinstance(prop, dict):
        return None
    return _first_plain_text(prop.get("rich_text"))


def notion_select(properties: dict[str, Any], name: str) -> str | None:
    """Value of a select (or status-type) property."""
    prop = properties.get(name)
    if not isinstance(prop, dict):
        return None
    selected = prop.get("select") or prop.get("status")
    if not isinstance(selected, dict):
        return None
    name = selected.get("name")
    return name if isinstance(name, str) else None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def best_project_match(name: str, projects: Sequence[dict[str, Any]]) -> dict[str, Any] | None:
    """Pick the project whose name best matches `name`.

    Exact (case-insensitive) beats substring beats difflib similarity above
    PROJECT_MATCH_CUTOFF.
    """
    wanted = name.strip().lower()
    if not wanted:
        return None
    named = [p for p in projects if p.get("name")]

    for project in named:
        if project["name"].strip().lower() == wanted:
            return project
    for project in named:
        candidate = project["name"].lower()
        if wanted in candidate or candidate in wanted:
            return project

    by_name = {p["name"].lower(): p for p in named}
    close = difflib.get_close_matches(wanted, list(by_name), n=1, cutoff=PROJECT_MATCH_CUTOFF)
    return by_name[close[0]] if close else None


def emails(attendees: Iterable[dict[str, Any]] | None) -> list[str]:
    return [a["email"] for a in attendees or [] if isinstance(a, dict) and a.get("email")]
