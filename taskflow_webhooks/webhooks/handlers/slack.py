"""Slack Events API deliveries: `!task` commands and status reactions."""

import logging
from typing import Any, Mapping

from taskflow_webhooks.config import settings
from taskflow_webhooks.errors import ValidationError
from taskflow_webhooks.models import Integration, Provider
from taskflow_webhooks.webhooks import normalizer, parsing
from taskflow_webhooks.webhooks.routing import Intent

from .base import ProviderHandler, Response, parse_json

logger = logging.getLogger(__name__)

PROJECTS = "projects"


class SlackHandler(ProviderHandler):
    provider = Provider.SLACK

    def __init__(self, *args, app_signing_secret: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.app_signing_secret = settings.slack_signing_secret if app_signing_secret is None else app_signing_secret

    @property
    def resource_label(self) -> str:
        return "Team ID"

    def dispatch_table(self):
        return {
            Intent.URL_VERIFICATION: self.challenge,
            Intent.CHAT_MESSAGE: self.message,
            Intent.CHAT_REACTION: self.reaction,
        }

    def event_key(self, payload: dict[str, Any], headers: Mapping[str, str]):
        return payload.get("type"), normalizer.sub_object(payload.get("event")).get("type")

    def resource_id(self, payload: dict[str, Any]) -> str | None:
        return payload.get("team_id") or normalizer.sub_object(payload.get("team")).get("id")

    def owns(self, integration: Integration, resource: str) -> bool:
        return integration.config_value("team_id", "teamId") == resource

    def secret(self, integration: Integration) -> str | None:
        return integration.config_value("signingSecret", "signing_secret")

    async def handle(self, raw_body: bytes, headers: Mapping[str, str]) -> Response:
        # The handshake arrives before any team is connected, so it is checked
        # against the app-level secret instead of an integration's
        payload = parse_json(raw_body, self.provider)
        if isinstance(payload, dict) and payload.get("type") == "url_verification":
            self.authenticate(raw_body, headers, self.app_signing_secret, "url_verification")
            return await self.challenge(payload, None)
        return await super().handle(raw_body, headers)

    async def challenge(self, payload: dict[str, Any], integration: Integration | None) -> Response:
        challenge = payload.get("challenge")
        if not challenge:
            raise ValidationError("challenge missing from payload", provider=self.provider.value)
        return {"challenge": challenge}

    async def message(self, payload: dict[str, Any], integration: Integration) -> Response:
        event = normalizer.normalize_task_command(normalizer.sub_object(payload.get("event")))
        if event is None:
            return {"success": True}

        project = await self.find_project(event.project_hint or "", integration)
        if project is None:
            logger.warning(f"No project matching '{event.project_hint}' for Slack user {integration.user_id}")
            return {"success": True}

        result = await self.engine.reconcile(event, integration, project_id=project["id"])
        logger.info(f"Slack command {result.outcome.value} task {result.entity_id} in {project.get('name')}")
        return {"success": True}

    async def reaction(self, payload: dict[str, Any], integration: Integration) -> Response:
        event = normalizer.normalize_reaction(normalizer.sub_object(payload.get("event")))
        if event is not None:
            await self.engine.reconcile(event, integration)
        return {"success": True}

    async def find_project(self, name: str, integration: Integration) -> dict[str, Any] | None:
        projects = await self.datastore.select(PROJECTS, {"owner_id": integration.user_id})
        return parsing.best_project_match(name, projects)
