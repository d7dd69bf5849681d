"""Zapier relay: any JSON is accepted and logged, nothing is written."""

import logging
from typing import Any, Mapping

from taskflow_webhooks.models import Provider
from taskflow_webhooks.webhooks.routing import Intent

from .base import ProviderHandler, Response

logger = logging.getLogger(__name__)


class ZapierHandler(ProviderHandler):
    provider = Provider.ZAPIER
    requires_integration = False

    def dispatch_table(self):
        return {Intent.RELAY: self.relay}

    def validate(self, payload: Any) -> None:
        pass

    def event_key(self, payload: Any, headers: Mapping[str, str]):
        if isinstance(payload, dict):
            return payload.get("event") or payload.get("type"), payload.get("action")
        return None, None

    async def relay(self, payload: Any, integration: None) -> Response:
        logger.info(f"Zapier webhook received: {payload}")
        return {"success": True}
