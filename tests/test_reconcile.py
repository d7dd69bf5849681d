"""Reconciliation of canonical events into stored rows."""

import json

import httpx
import pytest

from taskflow_webhooks.ai.analyzer import ContentAnalyzer, LLMContentAnalyzer
from taskflow_webhooks.ai.anthropic import AnthropicProvider
from taskflow_webhooks.datastore import MemoryDatastore, PostgrestDatastore
from taskflow_webhooks.errors import AnalyzerError, DatastoreError, ValidationError
from taskflow_webhooks.models import (
    ExternalEvent,
    Priority,
    Provider,
    ReconcileOutcome,
    Status,
    TaskAnalysis,
)
from taskflow_webhooks.webhooks import normalizer
from taskflow_webhooks.webhooks.reconcile import ReconciliationEngine

from tests.helpers import PROJECT_ID, USER_ID, issue_payload


def _llm_analyzer(answer: httpx.Response) -> LLMContentAnalyzer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: answer))
    return LLMContentAnalyzer(AnthropicProvider("test-key", client=client), "claude-haiku-4-5")


class StaticAnalyzer(ContentAnalyzer):
    def __init__(self, analysis: TaskAnalysis | None = None, error: Exception | None = None):
        self.analysis = analysis
        self.error = error
        self.calls = []

    async def analyze(self, title, description, project_id):
        self.calls.append((title, description, project_id))
        if self.error is not None:
            raise self.error
        return self.analysis


def _notion_page(title: str = "Write docs", status: str | None = "Not started") -> dict:
    properties = {"Name": {"title": [{"plain_text": title}]}}
    if status:
        properties["Status"] = {"select": {"name": status}}
    return {"type": "page.created", "page": {"id": "page-1", "parent": {"database_id": "db-1"}, "properties": properties}}


def _tasks(datastore: MemoryDatastore) -> list[dict]:
    return datastore.tables.get("tasks", [])


@pytest.mark.asyncio
async def test_notion_page_created_twice_is_idempotent(engine, datastore, integrations):
    integration = integrations[Provider.NOTION]
    first = await engine.reconcile(normalizer.normalize_page(_notion_page(), created=True), integration)
    second = await engine.reconcile(normalizer.normalize_page(_notion_page(), created=True), integration)

    assert first.outcome is ReconcileOutcome.CREATED
    assert second.outcome is ReconcileOutcome.UPDATED
    assert second.entity_id == first.entity_id
    assert len(_tasks(datastore)) == 1
    task = _tasks(datastore)[0]
    assert task["external_id"] == "notion-page-1"
    assert task["source"] == "notion"
    assert task["created_by"] == USER_ID
    assert task["project_id"] == PROJECT_ID


@pytest.mark.asyncio
async def test_notion_update_leaves_absent_properties(engine, datastore, integrations):
    integration = integrations[Provider.NOTION]
    await engine.reconcile(normalizer.normalize_page(_notion_page(status="In Progress"), created=True), integration)

    page = _notion_page(title="Write better docs", status=None)
    page["type"] = "page.updated"
    result = await engine.reconcile(normalizer.normalize_page(page, created=False), integration)

    assert result.outcome is ReconcileOutcome.UPDATED
    task = _tasks(datastore)[0]
    assert task["title"] == "Write better docs"
    assert task["status"] == Status.IN_PROGRESS.value


@pytest.mark.asyncio
async def test_issue_status_walk(engine, datastore, github_integration):
    opened = await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)
    assert opened.outcome is ReconcileOutcome.CREATED
    created = dict(_tasks(datastore)[0])
    assert created["status"] == "To Do"
    kept = ("title", "description", "priority", "github_issue_number", "created_by", "project_id", "created_at")

    closed = await engine.reconcile(normalizer.normalize_issue(issue_payload("closed")), github_integration)
    assert closed.outcome is ReconcileOutcome.UPDATED
    assert closed.entity_id == opened.entity_id
    assert _tasks(datastore)[0]["status"] == "Done"
    assert {k: _tasks(datastore)[0].get(k) for k in kept} == {k: created.get(k) for k in kept}

    reopened = await engine.reconcile(normalizer.normalize_issue(issue_payload("reopened")), github_integration)
    assert reopened.outcome is ReconcileOutcome.UPDATED
    assert _tasks(datastore)[0]["status"] == "To Do"
    assert {k: _tasks(datastore)[0].get(k) for k in kept} == {k: created.get(k) for k in kept}
    assert created["title"] == "[GitHub] Broken login"
    assert created["github_issue_number"] == 42
    assert len(_tasks(datastore)) == 1


@pytest.mark.asyncio
async def test_status_redelivery_keeps_user_edits(engine, datastore, github_integration):
    await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)
    _tasks(datastore)[0].update({"priority": "High", "assignee_id": "user-9"})
    datastore.calls.clear()

    await engine.reconcile(normalizer.normalize_issue(issue_payload("closed")), github_integration)

    task = _tasks(datastore)[0]
    assert task["priority"] == "High"
    assert task["assignee_id"] == "user-9"
    assert datastore.writes() == [("update", "tasks")]


@pytest.mark.asyncio
async def test_closing_unknown_issue_is_skipped(engine, datastore, github_integration):
    result = await engine.reconcile(normalizer.normalize_issue(issue_payload("closed")), github_integration)
    assert result.outcome is ReconcileOutcome.SKIPPED
    assert _tasks(datastore) == []


@pytest.mark.asyncio
async def test_merged_pr_closes_referenced_issue(engine, datastore, github_integration):
    await engine.reconcile(normalizer.normalize_issue(issue_payload("opened", number=42)), github_integration)
    pr = {
        "action": "closed",
        "pull_request": {
            "id": 9,
            "title": "Login fix",
            "body": "fixes #42",
            "html_url": "https://github.com/acme/widgets/pull/9",
            "merged": True,
        },
    }
    results = await engine.apply_references(normalizer.normalize_pull_request(pr), github_integration)

    assert [r.outcome for r in results] == [ReconcileOutcome.UPDATED]
    task = _tasks(datastore)[0]
    assert task["status"] == "Done"
    assert task["github_pr_url"] == "https://github.com/acme/widgets/pull/9"


@pytest.mark.asyncio
async def test_reference_to_missing_task_is_skipped(engine, github_integration):
    event = ExternalEvent(
        provider=Provider.GITHUB, event_type="push", remote_id="abc", status=Status.DONE, references=[77]
    )
    results = await engine.apply_references(event, github_integration)
    assert [r.outcome for r in results] == [ReconcileOutcome.SKIPPED]


@pytest.mark.asyncio
async def test_reference_failures_do_not_stop_the_batch(datastore, github_integration):
    class FlakyDatastore(MemoryDatastore):
        async def update(self, table, filters, patch):
            if filters.get("github_issue_number") == 1:
                raise DatastoreError("connection reset")
            return await super().update(table, filters, patch)

    flaky = FlakyDatastore(tables=datastore.tables)
    engine = ReconciliationEngine(flaky)
    await engine.reconcile(normalizer.normalize_issue(issue_payload("opened", issue_id=2, number=2)), github_integration)

    event = ExternalEvent(
        provider=Provider.GITHUB, event_type="push", remote_id="abc", status=Status.DONE, references=[1, 2]
    )
    results = await engine.apply_references(event, github_integration)

    assert [r.outcome for r in results] == [ReconcileOutcome.SKIPPED, ReconcileOutcome.UPDATED]
    assert flaky.tables["tasks"][0]["status"] == "Done"


@pytest.mark.asyncio
async def test_slack_reaction_updates_command_task(engine, datastore, integrations):
    integration = integrations[Provider.SLACK]
    command = normalizer.normalize_task_command({"text": "!task Mobile: Ship beta", "ts": "1700.1", "channel": "C1"})
    await engine.reconcile(command, integration, project_id="project-2")

    reaction = normalizer.normalize_reaction(
        {"reaction": "white_check_mark", "item": {"type": "message", "ts": "1700.1"}}
    )
    result = await engine.reconcile(reaction, integration)

    assert result.outcome is ReconcileOutcome.UPDATED
    task = _tasks(datastore)[0]
    assert task["status"] == "Done"
    assert task["project_id"] == "project-2"


@pytest.mark.asyncio
async def test_reaction_on_unknown_message_writes_nothing(engine, datastore, integrations):
    reaction = normalizer.normalize_reaction({"reaction": "eyes", "item": {"type": "message", "ts": "9"}})
    result = await engine.reconcile(reaction, integrations[Provider.SLACK])
    assert result.outcome is ReconcileOutcome.SKIPPED
    assert _tasks(datastore) == []


@pytest.mark.asyncio
async def test_analyzer_suggestions_are_merged(datastore, github_integration):
    analyzer = StaticAnalyzer(
        TaskAnalysis(
            priority=Priority.HIGH,
            tags=["auth"],
            suggested_due_date="2026-03-10",
            estimated_hours=3,
            suggested_assignee_id="user-2",
        )
    )
    engine = ReconciliationEngine(datastore, analyzer)
    result = await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)

    task = _tasks(datastore)[0]
    assert task["priority"] == "High"
    assert task["tags"] == ["auth"]
    assert task["due_date"] == "2026-03-10"
    assert task["estimated_hours"] == 3
    assert analyzer.calls[0][2] == PROJECT_ID
    assignments = datastore.tables["task_assignments"]
    assert assignments[0]["task_id"] == result.entity_id
    assert assignments[0]["user_id"] == "user-2"


@pytest.mark.asyncio
async def test_analyzer_failure_falls_back_to_defaults(datastore, github_integration):
    engine = ReconciliationEngine(datastore, StaticAnalyzer(error=AnalyzerError("model overloaded")))
    result = await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)

    assert result.outcome is ReconcileOutcome.CREATED
    task = _tasks(datastore)[0]
    assert task["priority"] == "Medium"
    assert "task_assignments" not in datastore.tables


@pytest.mark.asyncio
async def test_analyzer_not_called_for_existing_task(datastore, github_integration):
    analyzer = StaticAnalyzer(TaskAnalysis())
    engine = ReconciliationEngine(datastore, analyzer)
    await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)
    await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)
    assert len(analyzer.calls) == 1


@pytest.mark.asyncio
async def test_external_id_collision_is_rejected(engine, datastore, github_integration):
    datastore.tables["tasks"].append({"id": "t1", "external_id": "github-1001", "source": "notion"})
    with pytest.raises(ValidationError):
        await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)


@pytest.mark.asyncio
async def test_new_task_requires_project(engine, github_integration):
    unbound = github_integration.model_copy(update={"project_id": None})
    with pytest.raises(ValidationError):
        await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), unbound)


@pytest.mark.asyncio
async def test_meeting_with_action_items_gets_follow_up(engine, datastore, integrations):
    event = normalizer.normalize_calendar_event(
        {
            "id": "evt1",
            "summary": "Planning meeting",
            "description": "Agree on action items",
            "start": {"dateTime": "2026-03-02T10:00:00+00:00"},
            "end": {"dateTime": "2026-03-02T11:00:00+00:00"},
        }
    )
    result = await engine.reconcile(event, integrations[Provider.GOOGLE_CALENDAR])

    assert result.outcome is ReconcileOutcome.CREATED
    stored = datastore.tables["events"][0]
    assert stored["date"] == "2026-03-02"
    assert stored["time"] == "10:00"
    assert stored["type"] == "meeting"
    follow_up = _tasks(datastore)[0]
    assert follow_up["external_id"] == "google-calendar-evt1-followup"
    assert follow_up["title"] == "Follow-up: Planning meeting"
    assert follow_up["due_date"] == "2026-03-03"


@pytest.mark.asyncio
async def test_plain_event_has_no_follow_up(engine, datastore, integrations):
    event = normalizer.normalize_calendar_event({"id": "evt2", "summary": "Lunch", "start": {"date": "2026-03-02"}})
    await engine.reconcile(event, integrations[Provider.GOOGLE_CALENDAR])
    assert datastore.tables["events"][0]["time"] is None
    assert _tasks(datastore) == []


@pytest.mark.asyncio
async def test_redelivered_issue_patches_existing_row(github_integration):
    existing = {"id": "t1", "external_id": "github-1001", "source": "github", "priority": "High", "status": "Done"}
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "GET":
            return httpx.Response(200, json=[existing])
        return httpx.Response(200, json=[{**existing, **json.loads(request.content)}])

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    engine = ReconciliationEngine(PostgrestDatastore("https://db.example.com/rest/v1", "key", client=client))
    result = await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)

    assert result.outcome is ReconcileOutcome.UPDATED
    assert result.entity_id == "t1"
    assert [r.method for r in seen] == ["GET", "PATCH"]
    patch = seen[1]
    assert patch.url.params["external_id"] == "eq.github-1001"
    assert patch.url.params["source"] == "eq.github"
    body = json.loads(patch.content)
    assert body["title"] == "[GitHub] Broken login"
    assert "priority" not in body
    assert "created_by" not in body and "project_id" not in body


@pytest.mark.asyncio
async def test_redelivered_issue_keeps_user_edits(engine, datastore, github_integration):
    await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)
    _tasks(datastore)[0].update({"priority": "Low", "tags": ["triaged"]})
    datastore.calls.clear()

    result = await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)

    assert result.outcome is ReconcileOutcome.UPDATED
    task = _tasks(datastore)[0]
    assert task["priority"] == "Low"
    assert task["tags"] == ["triaged"]
    assert datastore.writes() == [("update", "tasks")]


@pytest.mark.asyncio
async def test_analyzer_crash_falls_back_to_defaults(datastore, github_integration):
    engine = ReconciliationEngine(datastore, StaticAnalyzer(error=KeyError("content")))
    result = await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)
    assert result.outcome is ReconcileOutcome.CREATED
    assert _tasks(datastore)[0]["priority"] == "Medium"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer",
    [
        httpx.Response(200, text="<html>upstream error</html>"),
        httpx.Response(200, json={"content": [{"type": "text", "text": '{"suggestedDueDate": 20260101}'}]}),
    ],
)
async def test_unusable_analyzer_answer_falls_back_to_defaults(datastore, github_integration, answer):
    engine = ReconciliationEngine(datastore, _llm_analyzer(answer))
    result = await engine.reconcile(normalizer.normalize_issue(issue_payload("opened")), github_integration)

    assert result.outcome is ReconcileOutcome.CREATED
    task = _tasks(datastore)[0]
    assert task["priority"] == "Medium"
    assert "due_date" not in task
    assert "task_assignments" not in datastore.tables


@pytest.mark.asyncio
async def test_references_ignored_without_project_binding(engine, datastore, github_integration):
    await engine.reconcile(normalizer.normalize_issue(issue_payload("opened", number=42)), github_integration)
    datastore.tables["tasks"].append(
        {"id": "t-other", "external_id": "github-7", "source": "github", "github_issue_number": 42, "project_id": None}
    )
    datastore.calls.clear()
    unbound = github_integration.model_copy(update={"project_id": None})
    event = ExternalEvent(
        provider=Provider.GITHUB, event_type="push", remote_id="abc", status=Status.DONE, references=[42]
    )

    results = await engine.apply_references(event, unbound)

    assert [r.outcome for r in results] == [ReconcileOutcome.SKIPPED]
    assert datastore.writes() == []
    assert all(t.get("status") != "Done" for t in _tasks(datastore))
