"""Reconciliation of canonical events into task and calendar rows.

Writes for a remote entity always go through one atomic datastore call keyed
on `external_id`: a conditional update (filtered by external id and source)
when the row exists or the event cannot create one, an upsert carrying the
full row otherwise. The read that precedes a creation-worthy write picks
between the two, decides whether to run the analyzer and catches
cross-provider id collisions. Two concurrent first deliveries may both run the
analyzer and both upsert, but the conflict key still leaves a single row.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from taskflow_webhooks.ai.analyzer import ContentAnalyzer
from taskflow_webhooks.datastore import Datastore, Row
from taskflow_webhooks.errors import AnalyzerError, DependencyError, ValidationError
from taskflow_webhooks.models import (
    EntityKind,
    EventType,
    ExternalEvent,
    Integration,
    Priority,
    ReconcileOutcome,
    ReconcileResult,
    Status,
    TaskAnalysis,
)

from . import parsing

logger = logging.getLogger(__name__)

TASKS = "tasks"
EVENTS = "events"
ASSIGNMENTS = "task_assignments"

CONFLICT_KEYS = ["external_id"]

UNTITLED_TASK = "Untitled Task"
TASK_DEFAULTS: Row = {
    "title": UNTITLED_TASK,
    "description": "",
    "status": Status.TODO.value,
    "priority": Priority.MEDIUM.value,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def task_fields(event: ExternalEvent) -> Row:
    """Task columns carried by this event."""
    fields: Row = {}
    if event.title is not None:
        fields["title"] = event.title
    if event.body is not None:
        fields["description"] = event.body
    if event.status is not None:
        fields["status"] = event.status.value
    if event.priority is not None:
        fields["priority"] = event.priority.value
    if event.url is not None:
        fields["external_url"] = event.url
        if event.issue_id is not None:
            fields["github_issue_url"] = event.url
    if event.issue_id is not None and event.creation_worthy:
        fields["github_issue_id"] = event.issue_id
        fields["github_issue_number"] = event.issue_number
    if event.pull_request_url is not None:
        fields["github_pr_url"] = event.pull_request_url
    return fields


def calendar_fields(event: ExternalEvent) -> Row:
    """Calendar event columns carried by this event."""
    fields: Row = {
        "title": event.title,
        "description": event.body or "",
        "duration": event.duration_minutes,
        "location": event.location,
        "external_url": event.url,
        "type": (event.event_kind or EventType.OTHER).value,
        "attendees": event.attendees or [],
    }
    if event.starts_at is not None:
        fields["date"] = event.starts_at.date().isoformat()
        fields["time"] = None if event.all_day else event.starts_at.strftime("%H:%M")
    return fields


class ReconciliationEngine:
    def __init__(
        self,
        datastore: Datastore,
        analyzer: ContentAnalyzer | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.datastore = datastore
        self.analyzer = analyzer
        self.clock = clock

    def _now(self) -> str:
        return self.clock().isoformat()

    async def reconcile(
        self,
        event: ExternalEvent,
        integration: Integration,
        *,
        project_id: str | None = None,
    ) -> ReconcileResult:
        """Create or update the row mirroring `event`'s remote entity.

        `project_id` overrides the integration's project binding (Slack
        commands name their project).
        """
        table = EVENTS if event.entity is EntityKind.CALENDAR_EVENT else TASKS
        if event.creation_worthy:
            return await self._upsert(table, event, integration, project_id or integration.project_id)
        return await self._update(table, event)

    async def _upsert(
        self, table: str, event: ExternalEvent, integration: Integration, project_id: str | None
    ) -> ReconcileResult:
        external_id = event.external_id
        fields = calendar_fields(event) if table == EVENTS else task_fields(event)
        now = self._now()

        existing = await self.datastore.select(table, {"external_id": external_id})
        if existing:
            source = existing[0].get("source")
            if source and source != event.provider.value:
                raise ValidationError(
                    f"External id {external_id} already belongs to a {source} entity",
                    provider=event.provider.value,
                    action=event.action,
                )
            # Redelivery patches only the columns this event carries
            rows = await self.datastore.update(
                table, {"external_id": external_id, "source": event.provider.value}, {**fields, "updated_at": now}
            )
            if rows:
                logger.info(f"Updated {table} row {rows[0].get('id')} from {external_id}")
                return ReconcileResult(
                    outcome=ReconcileOutcome.UPDATED, external_id=external_id, entity_id=rows[0].get("id")
                )
            # Row changed source or vanished since the read; create it below

        if table == TASKS and not project_id:
            raise ValidationError(
                "Integration has no project binding for new tasks",
                provider=event.provider.value,
                action=event.action,
            )

        row: Row = {**TASK_DEFAULTS} if table == TASKS else {}
        row.update(fields)
        row.update(
            {
                "external_id": external_id,
                "source": event.provider.value,
                "project_id": project_id,
                "created_by": integration.user_id,
                "created_at": now,
                "updated_at": now,
            }
        )

        analysis = None
        if table == TASKS and event.enrich:
            analysis = await self._analyze(row["title"], row["description"], project_id)
            if analysis is not None:
                self._merge_analysis(row, analysis)

        stored = await self.datastore.upsert(table, row, CONFLICT_KEYS)
        entity_id = stored.get("id")
        logger.info(f"Created {table} row {entity_id} from {external_id}")

        if analysis is not None and analysis.suggested_assignee_id and entity_id:
            await self._assign(entity_id, analysis.suggested_assignee_id, integration.user_id)
        if table == EVENTS:
            await self._follow_up(event, row, integration)

        return ReconcileResult(outcome=ReconcileOutcome.CREATED, external_id=external_id, entity_id=entity_id)

    async def _update(self, table: str, event: ExternalEvent) -> ReconcileResult:
        external_id = event.external_id
        patch = calendar_fields(event) if table == EVENTS else task_fields(event)
        if not patch:
            return ReconcileResult(outcome=ReconcileOutcome.SKIPPED, external_id=external_id)

        patch["updated_at"] = self._now()
        rows = await self.datastore.update(
            table, {"external_id": external_id, "source": event.provider.value}, patch
        )
        if not rows:
            # Terminal or follow-up action for an entity never seen: no implicit creation
            logger.info(f"No {table} row for {external_id}; {event.action or event.event_type} skipped")
            return ReconcileResult(outcome=ReconcileOutcome.SKIPPED, external_id=external_id)
        return ReconcileResult(
            outcome=ReconcileOutcome.UPDATED, external_id=external_id, entity_id=rows[0].get("id")
        )

    async def apply_references(self, event: ExternalEvent, integration: Integration) -> list[ReconcileResult]:
        """Apply `event`'s status / PR link to every task whose issue number it references.

        Each reference is independent: a failing update is logged and the rest
        still run.
        """
        patch: Row = {}
        if event.status is not None:
            patch["status"] = event.status.value
        if event.pull_request_url is not None:
            patch["github_pr_url"] = event.pull_request_url
        if not patch or not event.references:
            return []
        if not integration.project_id:
            # An unbound filter would match unbound tasks of every integration
            logger.warning(
                f"Ignoring references {event.references}: integration {integration.id} has no project binding"
            )
            return [ReconcileResult(outcome=ReconcileOutcome.SKIPPED) for _ in event.references]

        results = []
        for number in event.references:
            try:
                rows = await self.datastore.update(
                    TASKS,
                    {"github_issue_number": number, "project_id": integration.project_id},
                    {**patch, "updated_at": self._now()},
                )
            except DependencyError as e:
                logger.error(
                    f"Failed to update task for issue #{number} "
                    f"({event.provider.value} {event.event_type}/{event.action}): {e}"
                )
                results.append(ReconcileResult(outcome=ReconcileOutcome.SKIPPED))
                continue
            if not rows:
                results.append(ReconcileResult(outcome=ReconcileOutcome.SKIPPED))
                continue
            results.extend(
                ReconcileResult(
                    outcome=ReconcileOutcome.UPDATED, external_id=r.get("external_id"), entity_id=r.get("id")
                )
                for r in rows
            )
        return results

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def _analyze(self, title: str, description: str, project_id: str | None) -> TaskAnalysis | None:
        if self.analyzer is None:
            return None
        try:
            return await self.analyzer.analyze(title, description, project_id)
        except AnalyzerError as e:
            logger.warning(f"Content analysis failed, creating task with defaults: {e}")
            return None
        except Exception:
            logger.exception("Content analyzer raised unexpectedly, creating task with defaults")
            return None

    @staticmethod
    def _merge_analysis(row: Row, analysis: TaskAnalysis) -> None:
        if analysis.priority is not None:
            row["priority"] = analysis.priority.value
        if analysis.suggested_due_date:
            row["due_date"] = analysis.suggested_due_date
        if analysis.estimated_hours is not None:
            row["estimated_hours"] = analysis.estimated_hours
        row["tags"] = analysis.tags

    async def _assign(self, task_id: str, assignee_id: str, assigned_by: str) -> None:
        try:
            await self.datastore.insert(
                ASSIGNMENTS,
                {
                    "task_id": task_id,
                    "user_id": assignee_id,
                    "assigned_by": assigned_by,
                    "assigned_at": self._now(),
                },
            )
        except DependencyError as e:
            logger.error(f"Task {task_id} created but assignment to {assignee_id} failed: {e}")

    async def _follow_up(self, event: ExternalEvent, row: Row, integration: Integration) -> None:
        """Meetings that mention action items get a follow-up task due the next day."""
        if event.event_kind is not EventType.MEETING or not row.get("project_id"):
            return
        if not parsing.wants_follow_up(row.get("title"), row.get("description")):
            return

        title = row.get("title") or ""
        due = None
        if event.starts_at is not None:
            due = (event.starts_at.date() + timedelta(days=1)).isoformat()
        now = self._now()
        await self.datastore.upsert(
            TASKS,
            {
                **TASK_DEFAULTS,
                "title": f"Follow-up: {title}",
                "description": f"Follow-up task created from meeting: {title}\n\n{row.get('description') or ''}".rstrip(),
                "due_date": due,
                "project_id": row["project_id"],
                "external_id": f"{event.external_id}-followup",
                "external_url": event.url,
                "source": event.provider.value,
                "created_by": integration.user_id,
                "created_at": now,
                "updated_at": now,
            },
            CONFLICT_KEYS,
        )
