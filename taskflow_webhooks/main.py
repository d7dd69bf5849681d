"""Webhook integration service - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from taskflow_webhooks import __version__
from taskflow_webhooks.ai.analyzer import ContentAnalyzer, LLMContentAnalyzer, select_provider
from taskflow_webhooks.config import settings
from taskflow_webhooks.datastore import Datastore, MemoryDatastore, PostgrestDatastore
from taskflow_webhooks.errors import WebhookError
from taskflow_webhooks.logging_config import setup_logging
from taskflow_webhooks.routers import health, webhooks

setup_logging()
logger = logging.getLogger(__name__)


def build_datastore() -> Datastore:
    if not settings.datastore_url:
        logger.warning("DATASTORE_URL not set; using the in-memory datastore (data is lost on restart)")
        return MemoryDatastore()
    return PostgrestDatastore(settings.datastore_url, settings.datastore_key, timeout=settings.datastore_timeout)


def build_analyzer(datastore: Datastore, client: httpx.AsyncClient) -> ContentAnalyzer | None:
    if not settings.analyzer_enabled:
        return None
    selected = select_provider(
        settings.analyzer_model,
        anthropic_api_key=settings.anthropic_api_key,
        openrouter_api_key=settings.openrouter_api_key,
        client=client,
    )
    if selected is None:
        logger.info(f"Content analyzer disabled: no API key for {settings.analyzer_model}")
        return None
    provider, model = selected
    logger.info(f"Content analyzer using {provider.provider_name} ({model})")
    return LLMContentAnalyzer(provider, model, datastore)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting webhook service v{__version__}")

    # Collaborators injected by create_app() belong to the caller
    owned_datastore = getattr(app.state, "datastore", None) is None
    if owned_datastore:
        app.state.datastore = build_datastore()

    client = httpx.AsyncClient(timeout=60.0)
    if not hasattr(app.state, "analyzer"):
        app.state.analyzer = build_analyzer(app.state.datastore, client)

    yield

    logger.info("Shutting down webhook service")
    await client.aclose()
    if owned_datastore:
        await app.state.datastore.close()


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


async def webhook_error_handler(request: Request, exc: WebhookError) -> JSONResponse:
    context = f"provider={exc.provider or '-'} action={exc.action or '-'}"
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed ({context}): {exc.message}")
    else:
        logger.warning(f"{request.url.path} rejected with {exc.status_code} ({context}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    *,
    datastore: Datastore | None = None,
    analyzer: ContentAnalyzer | None = None,
    with_analyzer: bool = True,
) -> FastAPI:
    """Build the application.

    `datastore` / `analyzer` replace the ones the lifespan would otherwise
    build from settings; `with_analyzer=False` turns enrichment off.
    """
    app = FastAPI(
        title="Taskflow Webhooks",
        description="Inbound webhook integration for GitHub, Slack, Notion, Google Calendar and Zapier",
        version=__version__,
        lifespan=lifespan,
    )
    if datastore is not None:
        app.state.datastore = datastore
    if analyzer is not None or not with_analyzer:
        app.state.analyzer = analyzer

    # Rate limiting
    app.state.limiter = webhooks.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(WebhookError, webhook_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health.router)
    app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
    return app


app = create_app()
