"""Locate the connected integration a delivery belongs to."""

import logging
from typing import Callable

from taskflow_webhooks.datastore import Datastore
from taskflow_webhooks.errors import NotFoundError
from taskflow_webhooks.models import Integration, Provider

logger = logging.getLogger(__name__)

INTEGRATIONS = "integrations"


class IntegrationDirectory:
    def __init__(self, datastore: Datastore):
        self.datastore = datastore

    async def find(
        self,
        provider: Provider,
        resource: str,
        matches: Callable[[Integration, str], bool],
        *,
        action: str | None = None,
    ) -> Integration:
        """The connected `provider` integration whose config owns `resource`.

        Raises NotFoundError when none does. Only reads.
        """
        rows = await self.datastore.select(INTEGRATIONS, {"type": provider.value, "connected": True})
        found = [i for i in (Integration.model_validate(r) for r in rows) if matches(i, resource)]
        if not found:
            raise NotFoundError(
                f"No matching {provider.value} integration found for {resource}",
                provider=provider.value,
                action=action,
            )
        if len(found) > 1:
            logger.warning(
                f"{len(found)} connected {provider.value} integrations claim {resource}; using {found[0].id}"
            )
        return found[0]
