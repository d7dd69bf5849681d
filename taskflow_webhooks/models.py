"""Canonical types shared by the normalizer, router and reconciliation engine."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Provider(str, Enum):
    GITHUB = "github"
    SLACK = "slack"
    NOTION = "notion"
    GOOGLE_CALENDAR = "google-calendar"
    ZAPIER = "zapier"


class Status(str, Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    DONE = "Done"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class EventType(str, Enum):
    MEETING = "meeting"
    DEADLINE = "deadline"
    REMINDER = "reminder"
    OTHER = "other"


class EntityKind(str, Enum):
    TASK = "task"
    CALENDAR_EVENT = "calendar_event"


class Integration(BaseModel):
    """One row of the `integrations` table."""

    id: str | None = None
    user_id: str
    type: Provider
    connected: bool = True
    config: dict[str, Any] = Field(default_factory=dict)
    project_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def config_value(self, *keys: str) -> Any:
        """First non-empty config value among `keys`."""
        for key in keys:
            value = self.config.get(key)
            if value:
                return value
        return None


class ExternalEvent(BaseModel):
    """Provider-agnostic view of one inbound delivery.

    Optional fields left as None are "not carried by this event": the
    reconciliation engine only writes what is present.
    """

    provider: Provider
    event_type: str
    action: str | None = None
    remote_id: str
    entity: EntityKind = EntityKind.TASK
    creation_worthy: bool = False

    title: str | None = None
    body: str | None = None
    status: Status | None = None
    priority: Priority | None = None
    url: str | None = None

    # Calendar
    attendees: list[str] | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    all_day: bool = False
    duration_minutes: int | None = None
    location: str | None = None
    event_kind: EventType | None = None

    # GitHub linkage
    issue_id: int | None = None
    issue_number: int | None = None
    pull_request_url: str | None = None
    references: list[int] = Field(default_factory=list)

    # Slack command target project name
    project_hint: str | None = None

    # Run the content analyzer when this event creates a task
    enrich: bool = False

    @property
    def external_id(self) -> str:
        return f"{self.provider.value}-{self.remote_id}"


class TaskAnalysis(BaseModel):
    """Content analyzer suggestions; every field optional."""

    priority: Priority | None = None
    tags: list[str] = Field(default_factory=list)
    suggested_due_date: str | None = None
    estimated_hours: float | None = None
    suggested_assignee_id: str | None = None


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class ReconcileResult(BaseModel):
    outcome: ReconcileOutcome
    external_id: str | None = None
    entity_id: str | None = None
