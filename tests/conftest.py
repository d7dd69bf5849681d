"""
Pytest configuration and shared fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from taskflow_webhooks.datastore import MemoryDatastore
from taskflow_webhooks.main import create_app
from taskflow_webhooks.models import Integration, Provider
from taskflow_webhooks.routers.webhooks import limiter
from taskflow_webhooks.webhooks.reconcile import ReconciliationEngine

from tests.helpers import GITHUB_SECRET, PROJECT_ID, SLACK_SECRET, USER_ID


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def integration_rows():
    return [
        {
            "id": "int-github",
            "user_id": USER_ID,
            "type": "github",
            "connected": True,
            "project_id": PROJECT_ID,
            "config": {"repositories": ["acme/widgets"], "webhookSecret": GITHUB_SECRET},
        },
        {
            "id": "int-slack",
            "user_id": USER_ID,
            "type": "slack",
            "connected": True,
            "project_id": PROJECT_ID,
            "config": {"team_id": "T123", "signingSecret": SLACK_SECRET},
        },
        {
            "id": "int-notion",
            "user_id": USER_ID,
            "type": "notion",
            "connected": True,
            "project_id": PROJECT_ID,
            "config": {"database_id": "db-1"},
        },
        {
            "id": "int-gcal",
            "user_id": USER_ID,
            "type": "google-calendar",
            "connected": True,
            "project_id": PROJECT_ID,
            "config": {"calendarId": "team@example.com"},
        },
    ]


@pytest.fixture
def datastore(integration_rows):
    return MemoryDatastore(
        tables={
            "integrations": integration_rows,
            "projects": [
                {"id": PROJECT_ID, "name": "Website Redesign", "owner_id": USER_ID},
                {"id": "project-2", "name": "Mobile App", "owner_id": USER_ID},
            ],
            "tasks": [],
            "events": [],
        }
    )


@pytest.fixture
def engine(datastore):
    return ReconciliationEngine(datastore)


@pytest.fixture
def github_integration(integration_rows):
    return Integration.model_validate(integration_rows[0])


@pytest.fixture
def integrations(integration_rows):
    return {Provider(r["type"]): Integration.model_validate(r) for r in integration_rows}


@pytest.fixture
def client(datastore):
    app = create_app(datastore=datastore, with_analyzer=False)
    with TestClient(app) as test_client:
        yield test_client
