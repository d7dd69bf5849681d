from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel

from taskflow_webhooks import __version__
from taskflow_webhooks.datastore import MemoryDatastore

router = APIRouter(tags=["health"])

_startup_time = datetime.now(timezone.utc)


class EndpointInfo(BaseModel):
    path: str
    description: str
    provider: str | None = None


class BackendStatus(BaseModel):
    datastore: str
    analyzer: str


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    backends: BackendStatus
    endpoints: list[EndpointInfo]


ENDPOINTS = [
    EndpointInfo(path="/health", description="Service status"),
    EndpointInfo(path="/webhooks/github", description="Issues, pull requests and pushes", provider="GitHub"),
    EndpointInfo(path="/webhooks/slack", description="Task commands and status reactions", provider="Slack"),
    EndpointInfo(path="/webhooks/notion", description="Database page changes", provider="Notion"),
    EndpointInfo(path="/webhooks/google-calendar", description="Calendar events", provider="Google Calendar"),
    EndpointInfo(path="/webhooks/zapier", description="Relay (logged only)", provider="Zapier"),
]


def _backends(request: Request) -> BackendStatus:
    datastore = getattr(request.app.state, "datastore", None)
    if datastore is None:
        store = "not configured"
    elif isinstance(datastore, MemoryDatastore):
        store = "memory"
    else:
        store = "postgrest"

    analyzer = getattr(request.app.state, "analyzer", None)
    return BackendStatus(
        datastore=store,
        analyzer=getattr(analyzer, "model", None) or "disabled",
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    uptime = (datetime.now(timezone.utc) - _startup_time).total_seconds()

    return HealthResponse(
        status="ok",
        version=__version__,
        uptime_seconds=round(uptime, 2),
        backends=_backends(request),
        endpoints=ENDPOINTS,
    )
