"""GitHub deliveries: issues, pull requests and pushes."""

import logging
import re
from typing import Any, Mapping

from taskflow_webhooks.auth.signatures import get_header
from taskflow_webhooks.models import Integration, Provider, ReconcileOutcome
from taskflow_webhooks.webhooks import normalizer, parsing
from taskflow_webhooks.webhooks.routing import Intent, NotHandled

from .base import ProviderHandler, Response

logger = logging.getLogger(__name__)

EVENT_HEADER = "x-github-event"

_REPO_SPLIT_RE = re.compile(r"[\s,]+")

ISSUE_MESSAGES = {
    ("opened", ReconcileOutcome.CREATED): "Task created from GitHub issue",
    ("opened", ReconcileOutcome.UPDATED): "Task updated from GitHub issue",
    ("closed", ReconcileOutcome.UPDATED): "Task marked as done",
    ("reopened", ReconcileOutcome.UPDATED): "Task reopened",
    ("edited", ReconcileOutcome.UPDATED): "Task updated",
}


def configured_repositories(integration: Integration) -> list[str]:
    """Repositories (owner/name) an integration is bound to.

    `repositories` may be a list or a comma / whitespace separated string.
    """
    value = integration.config_value("repositories", "repository")
    if isinstance(value, str):
        value = _REPO_SPLIT_RE.split(value)
    if not isinstance(value, list):
        return []
    return [str(r).strip().lower() for r in value if r and str(r).strip()]


class GitHubHandler(ProviderHandler):
    provider = Provider.GITHUB

    @property
    def resource_label(self) -> str:
        return "Repository information"

    def dispatch_table(self):
        return {
            Intent.ISSUE_OPENED: self.issue,
            Intent.ISSUE_CLOSED: self.issue,
            Intent.ISSUE_REOPENED: self.issue,
            Intent.ISSUE_EDITED: self.issue,
            Intent.PULL_REQUEST: self.pull_request,
            Intent.PUSH: self.push,
            Intent.PING: self.ping,
        }

    def event_key(self, payload: dict[str, Any], headers: Mapping[str, str]):
        return get_header(headers, EVENT_HEADER), payload.get("action")

    def resource_id(self, payload: dict[str, Any]) -> str | None:
        return normalizer.sub_object(payload.get("repository")).get("full_name")

    def owns(self, integration: Integration, resource: str) -> bool:
        return resource.lower() in configured_repositories(integration)

    def secret(self, integration: Integration) -> str | None:
        return integration.config_value("webhookSecret", "webhook_secret")

    def not_handled(self, reason: NotHandled) -> Response:
        if reason.event_type == "issues":
            return {"message": "Issue action not handled"}
        if reason.event_type == "pull_request":
            return {"message": "Pull request action not handled"}
        return {"message": "Event not handled"}

    async def ping(self, payload: dict[str, Any], integration: Integration) -> Response:
        logger.info(f"GitHub ping for {self.resource_id(payload)}: {payload.get('zen', '')}")
        return {"message": "pong"}

    async def issue(self, payload: dict[str, Any], integration: Integration) -> Response:
        event = normalizer.normalize_issue(payload)
        result = await self.engine.reconcile(event, integration)

        if result.outcome is ReconcileOutcome.SKIPPED:
            return {"message": "No task linked to this issue"}
        response: Response = {"message": ISSUE_MESSAGES.get((event.action, result.outcome), "Task updated")}
        if result.outcome is ReconcileOutcome.CREATED:
            response["taskId"] = result.entity_id
        return response

    async def pull_request(self, payload: dict[str, Any], integration: Integration) -> Response:
        event = normalizer.normalize_pull_request(payload)
        results = await self.engine.apply_references(event, integration)
        updated = sum(1 for r in results if r.outcome is ReconcileOutcome.UPDATED)
        if event.references:
            logger.info(
                f"Pull request {event.action} referencing {event.references}: {updated} task(s) updated"
            )
        return {"message": "Pull request processed"}

    async def push(self, payload: dict[str, Any], integration: Integration) -> Response:
        default_branch = normalizer.sub_object(payload.get("repository")).get("default_branch")
        if not parsing.is_default_branch(payload.get("ref"), default_branch):
            return {"message": "Not a push to the default branch"}

        event = normalizer.normalize_push(payload)
        results = await self.engine.apply_references(event, integration)
        updated = sum(1 for r in results if r.outcome is ReconcileOutcome.UPDATED)
        if event.references:
            logger.info(f"Push closing {event.references}: {updated} task(s) marked done")
        return {"message": "Push event processed"}
