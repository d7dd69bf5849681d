"""Google Calendar event deliveries."""

from typing import Any, Mapping

from taskflow_webhooks.models import Integration, Provider
from taskflow_webhooks.webhooks import normalizer
from taskflow_webhooks.webhooks.routing import Intent

from .base import ProviderHandler, Response


class CalendarHandler(ProviderHandler):
    provider = Provider.GOOGLE_CALENDAR

    @property
    def resource_label(self) -> str:
        return "Calendar ID"

    def dispatch_table(self):
        return {Intent.CALENDAR_EVENT: self.event}

    def event_key(self, payload: dict[str, Any], headers: Mapping[str, str]):
        # Cancelled events route to NotHandled
        return "event", normalizer.calendar_event_body(payload).get("status")

    def resource_id(self, payload: dict[str, Any]) -> str | None:
        return normalizer.calendar_id(payload)

    def owns(self, integration: Integration, resource: str) -> bool:
        return integration.config_value("calendarId", "calendar_id") == resource

    async def event(self, payload: dict[str, Any], integration: Integration) -> Response:
        event = normalizer.normalize_calendar_event(normalizer.calendar_event_body(payload))
        await self.engine.reconcile(event, integration)
        return {"success": True}
