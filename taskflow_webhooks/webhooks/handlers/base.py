"""Shared delivery pipeline for provider handlers.

parse -> route -> locate integration -> verify -> dispatch. A handler
subclass supplies the provider-specific pieces and one coroutine per
intent its provider routes to; construction fails if any is missing.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, ClassVar, Mapping

from taskflow_webhooks.auth.signatures import DEFAULT_REPLAY_WINDOW, scheme_for, verify
from taskflow_webhooks.datastore import Datastore
from taskflow_webhooks.errors import AuthenticationError, ValidationError
from taskflow_webhooks.models import Integration, Provider
from taskflow_webhooks.webhooks.integrations import IntegrationDirectory
from taskflow_webhooks.webhooks.reconcile import ReconciliationEngine
from taskflow_webhooks.webhooks.routing import Intent, NotHandled, intents_for, route

logger = logging.getLogger(__name__)

Payload = Any
Response = dict[str, Any]
IntentHandler = Callable[[Payload, Integration | None], Awaitable[Response]]


def parse_json(raw_body: bytes, provider: Provider) -> Any:
    try:
        return json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError(f"Invalid JSON payload: {e}", provider=provider.value) from e


class ProviderHandler(ABC):
    provider: ClassVar[Provider]
    # Deliveries need a connected integration before anything is written
    requires_integration: ClassVar[bool] = True

    def __init__(
        self,
        datastore: Datastore,
        engine: ReconciliationEngine,
        *,
        replay_window: int = DEFAULT_REPLAY_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        self.datastore = datastore
        self.engine = engine
        self.integrations = IntegrationDirectory(datastore)
        self.replay_window = replay_window
        self.clock = clock

        self._dispatch = self.dispatch_table()
        missing = intents_for(self.provider) - set(self._dispatch)
        if missing:
            names = ", ".join(sorted(i.value for i in missing))
            raise TypeError(f"{type(self).__name__} has no handler for: {names}")

    # ------------------------------------------------------------------
    # Provider-specific pieces
    # ------------------------------------------------------------------

    @abstractmethod
    def dispatch_table(self) -> dict[Intent, IntentHandler]:
        pass

    @abstractmethod
    def event_key(self, payload: Payload, headers: Mapping[str, str]) -> tuple[str | None, str | None]:
        """(event type, action) used for routing."""
        pass

    def resource_id(self, payload: Payload) -> str | None:
        """Remote resource (repository, team, database, calendar) the delivery belongs to."""
        return None

    def owns(self, integration: Integration, resource: str) -> bool:
        return False

    def secret(self, integration: Integration) -> str | None:
        return None

    def validate(self, payload: Payload) -> None:
        if not isinstance(payload, dict):
            raise ValidationError("Payload must be a JSON object", provider=self.provider.value)

    def not_handled(self, reason: NotHandled) -> Response:
        return {"success": True}

    @property
    def resource_label(self) -> str:
        return "Resource id"

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def locate(self, payload: Payload, action: str | None) -> Integration:
        resource = self.resource_id(payload)
        if not resource or not isinstance(resource, str):
            raise ValidationError(
                f"{self.resource_label} missing from payload", provider=self.provider.value, action=action
            )
        return await self.integrations.find(self.provider, resource, self.owns, action=action)

    def authenticate(self, raw_body: bytes, headers: Mapping[str, str], secret: str | None, action: str | None):
        if not verify(
            self.provider, raw_body, headers, secret, now=self.clock(), window=self.replay_window
        ):
            raise AuthenticationError("Invalid signature", provider=self.provider.value, action=action)

    async def handle(self, raw_body: bytes, headers: Mapping[str, str]) -> Response:
        payload = parse_json(raw_body, self.provider)
        self.validate(payload)
        event_type, action = self.event_key(payload, headers)
        intent = route(self.provider, event_type, action)

        integration = None
        if self.requires_integration:
            integration = await self.locate(payload, action)
            self.authenticate(raw_body, headers, self.secret(integration), action)

        if isinstance(intent, NotHandled):
            logger.info(intent.reason)
            return self.not_handled(intent)

        logger.debug(
            f"{self.provider.value} {event_type}/{action} -> {intent.value} "
            f"(authenticated by {scheme_for(self.provider).value})"
        )
        return await self._dispatch[intent](payload, integration)
