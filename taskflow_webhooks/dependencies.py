"""FastAPI dependencies: shared clients live on app.state, set up in the lifespan."""

from typing import Callable

from fastapi import Depends, Request

from taskflow_webhooks.ai.analyzer import ContentAnalyzer
from taskflow_webhooks.config import settings
from taskflow_webhooks.datastore import Datastore
from taskflow_webhooks.models import Provider
from taskflow_webhooks.webhooks.handlers import HANDLERS, ProviderHandler
from taskflow_webhooks.webhooks.reconcile import ReconciliationEngine


def get_datastore(request: Request) -> Datastore:
    return request.app.state.datastore


def get_analyzer(request: Request) -> ContentAnalyzer | None:
    return getattr(request.app.state, "analyzer", None)


def get_engine(
    datastore: Datastore = Depends(get_datastore),
    analyzer: ContentAnalyzer | None = Depends(get_analyzer),
) -> ReconciliationEngine:
    return ReconciliationEngine(datastore, analyzer)


def handler_for(provider: Provider) -> Callable[..., ProviderHandler]:
    handler_cls = HANDLERS[provider]

    def get_handler(
        datastore: Datastore = Depends(get_datastore),
        engine: ReconciliationEngine = Depends(get_engine),
    ) -> ProviderHandler:
        return handler_cls(datastore, engine, replay_window=settings.slack_replay_window_seconds)

    return get_handler
