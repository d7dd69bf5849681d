"""Notion database page deliveries."""

from typing import Any, Mapping

from taskflow_webhooks.models import Integration, Provider
from taskflow_webhooks.webhooks import normalizer
from taskflow_webhooks.webhooks.routing import Intent

from .base import ProviderHandler, Response


def _compact(notion_id: str) -> str:
    # Notion ids appear both dashed and undashed
    return notion_id.replace("-", "").lower()


class NotionHandler(ProviderHandler):
    provider = Provider.NOTION

    @property
    def resource_label(self) -> str:
        return "Database ID"

    def dispatch_table(self):
        return {
            Intent.PAGE_CREATED: self.page_created,
            Intent.PAGE_UPDATED: self.page_updated,
        }

    def event_key(self, payload: dict[str, Any], headers: Mapping[str, str]):
        return payload.get("type"), None

    def resource_id(self, payload: dict[str, Any]) -> str | None:
        return normalizer.notion_database_id(payload)

    def owns(self, integration: Integration, resource: str) -> bool:
        configured = integration.config_value("database_id", "databaseId")
        return bool(configured) and _compact(str(configured)) == _compact(resource)

    async def page_created(self, payload: dict[str, Any], integration: Integration) -> Response:
        await self.engine.reconcile(normalizer.normalize_page(payload, created=True), integration)
        return {"success": True}

    async def page_updated(self, payload: dict[str, Any], integration: Integration) -> Response:
        await self.engine.reconcile(normalizer.normalize_page(payload, created=False), integration)
        return {"success": True}
