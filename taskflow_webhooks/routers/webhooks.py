"""Inbound webhook endpoints, one per provider."""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from taskflow_webhooks.config import settings
from taskflow_webhooks.dependencies import handler_for
from taskflow_webhooks.models import Provider
from taskflow_webhooks.webhooks.handlers import ProviderHandler

router = APIRouter()

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


async def _deliver(request: Request, handler: ProviderHandler) -> dict:
    # Signatures cover the exact bytes received, so the body is never re-serialized
    raw_body = await request.body()
    return await handler.handle(raw_body, request.headers)


@router.post("/github")
@limiter.limit(settings.webhook_rate_limit)
async def github_webhook(request: Request, handler: ProviderHandler = Depends(handler_for(Provider.GITHUB))):
    """Issues, pull requests and pushes from a connected repository."""
    return await _deliver(request, handler)


@router.post("/slack")
@limiter.limit(settings.webhook_rate_limit)
async def slack_webhook(request: Request, handler: ProviderHandler = Depends(handler_for(Provider.SLACK))):
    """Slack Events API: URL verification, `!task` commands and reactions."""
    return await _deliver(request, handler)


@router.post("/notion")
@limiter.limit(settings.webhook_rate_limit)
async def notion_webhook(request: Request, handler: ProviderHandler = Depends(handler_for(Provider.NOTION))):
    return await _deliver(request, handler)


@router.post("/google-calendar")
@limiter.limit(settings.webhook_rate_limit)
async def google_calendar_webhook(
    request: Request, handler: ProviderHandler = Depends(handler_for(Provider.GOOGLE_CALENDAR))
):
    return await _deliver(request, handler)


@router.post("/zapier")
@limiter.limit(settings.webhook_rate_limit)
async def zapier_webhook(request: Request, handler: ProviderHandler = Depends(handler_for(Provider.ZAPIER))):
    """Accepts any JSON and logs it."""
    return await _deliver(request, handler)
