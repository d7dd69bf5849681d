"""Content analyzer: LLM suggestions for tasks created from inbound issues."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx
import pydantic

from taskflow_webhooks.datastore import Datastore
from taskflow_webhooks.errors import AnalyzerError, DatastoreError
from taskflow_webhooks.models import Priority, TaskAnalysis

from .anthropic import AnthropicProvider
from .base import BaseProvider, ChatCompletionRequest, ChatMessage
from .openrouter import OpenRouterProvider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a project management assistant. You triage incoming work items "
    "and answer with a single JSON object and nothing else."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class ContentAnalyzer(ABC):
    @abstractmethod
    async def analyze(self, title: str, description: str, project_id: str | None) -> TaskAnalysis:
        """Suggest priority, tags, due date, effort and assignee. Raises AnalyzerError."""
        pass


def select_provider(
    model: str,
    *,
    anthropic_api_key: str = "",
    openrouter_api_key: str = "",
    client: httpx.AsyncClient | None = None,
) -> tuple[BaseProvider, str] | None:
    """Pick a provider for `model`, returning it with the model name it expects."""
    if model.startswith("claude-"):
        if anthropic_api_key:
            return AnthropicProvider(anthropic_api_key, client=client), model
        if openrouter_api_key:
            return OpenRouterProvider(openrouter_api_key, client=client), f"anthropic/{model}"
        return None
    if openrouter_api_key:
        return OpenRouterProvider(openrouter_api_key, client=client), model
    return None


def _coerce_priority(value: Any) -> Priority | None:
    if not isinstance(value, str):
        return None
    try:
        return Priority(value.strip().capitalize())
    except ValueError:
        return None


def parse_analysis(text: str, member_ids: set[str] | None = None) -> TaskAnalysis:
    """Parse the model's JSON answer. Unknown assignee ids are dropped."""
    fenced = _FENCE_RE.search(text)
    raw = fenced.group(1) if fenced else text
    start, end = raw.find("{"), raw.rfind("}")
    if start == -1 or end <= start:
        raise AnalyzerError("Analyzer response contained no JSON object")
    try:
        data = json.loads(raw[start : end + 1])
    except json.JSONDecodeError as e:
        raise AnalyzerError(f"Analyzer response was not valid JSON: {e}") from e

    assignee = data.get("suggestedAssigneeId")
    if assignee is not None and member_ids is not None and str(assignee) not in member_ids:
        logger.info(f"Dropping suggested assignee {assignee}: not a project member")
        assignee = None

    hours = data.get("estimatedHours")
    tags = data.get("tags") or []
    try:
        return TaskAnalysis(
            priority=_coerce_priority(data.get("priority")),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            suggested_due_date=data.get("suggestedDueDate") or None,
            estimated_hours=float(hours) if isinstance(hours, (int, float)) else None,
            suggested_assignee_id=str(assignee) if assignee is not None else None,
        )
    except pydantic.ValidationError as e:
        raise AnalyzerError(f"Analyzer response had unexpected field types: {e}") from e


class LLMContentAnalyzer(ContentAnalyzer):
    """Analyzer backed by a chat-completion provider.

    When a datastore is given, the prompt includes the project's name,
    timeline and members with their open workload.
    """

    def __init__(self, provider: BaseProvider, model: str, datastore: Datastore | None = None):
        self.provider = provider
        self.model = model
        self.datastore = datastore

    async def _project_context(self, project_id: str | None) -> tuple[dict, list[dict]]:
        if self.datastore is None or not project_id:
            return {}, []
        try:
            projects = await self.datastore.select("projects", {"id": project_id})
            members = await self.datastore.select("project_members", {"project_id": project_id})
            tasks = await self.datastore.select("tasks", {"project_id": project_id})
        except DatastoreError as e:
            # Context is optional; analyze with what the task itself says
            logger.warning(f"Analyzer context unavailable for project {project_id}: {e}")
            return {}, []

        open_by_assignee: dict[str, int] = {}
        for task in tasks:
            assignee = task.get("assignee_id")
            if assignee and task.get("status") != "Done":
                open_by_assignee[assignee] = open_by_assignee.get(assignee, 0) + 1

        team = [
            {
                "id": str(m["user_id"]),
                "name": m.get("name") or m.get("email") or str(m["user_id"]),
                "workload": open_by_assignee.get(m["user_id"], 0),
            }
            for m in members
            if m.get("user_id")
        ]
        return (projects[0] if projects else {}), team

    def build_prompt(self, title: str, description: str, project: dict, team: list[dict]) -> str:
        if project.get("start_date"):
            timeline = f"{project['start_date']} to {project.get('due_date') or 'ongoing'}"
        else:
            timeline = "Unknown"
        members = "\n".join(
            f"- {m['name']} (ID: {m['id']}): current workload {m['workload']} open tasks" for m in team
        ) or "- none listed"
        return (
            "Analyze this task and determine:\n"
            "1. Priority (High, Medium, or Low)\n"
            "2. Best team member to assign based on current workload\n"
            "3. Suggested due date (YYYY-MM-DD format)\n"
            "4. Estimated hours to complete\n"
            "5. Relevant tags/categories for the task\n\n"
            f"Task Title: {title}\n"
            f"Task Description: {description or 'No description provided'}\n\n"
            f"Project: {project.get('name') or 'Unknown'}\n"
            f"Project Timeline: {timeline}\n\n"
            f"Team Members:\n{members}\n\n"
            "Format your response as JSON with the following structure:\n"
            '{"priority": "High|Medium|Low", "suggestedAssigneeId": "team_member_id or null", '
            '"suggestedDueDate": "YYYY-MM-DD", "estimatedHours": 4, "tags": ["tag1", "tag2"]}'
        )

    async def analyze(self, title: str, description: str, project_id: str | None) -> TaskAnalysis:
        project, team = await self._project_context(project_id)
        request = ChatCompletionRequest(
            model=self.model,
            messages=[
                ChatMessage(role="system", content=SYSTEM_PROMPT),
                ChatMessage(role="user", content=self.build_prompt(title, description, project, team)),
            ],
            max_tokens=512,
            temperature=0.2,
        )
        try:
            response = await self.provider.chat(request)
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: a 200 whose body is not JSON
            raise AnalyzerError(f"{self.provider.provider_name} request failed: {e}") from e

        member_ids = {m["id"] for m in team} if team else None
        return parse_analysis(response.content, member_ids)
