"""Event routing table."""

import pytest

from taskflow_webhooks.models import Provider
from taskflow_webhooks.webhooks.routing import Intent, NotHandled, intents_for, route


@pytest.mark.parametrize(
    "provider,event_type,action,expected",
    [
        (Provider.GITHUB, "issues", "opened", Intent.ISSUE_OPENED),
        (Provider.GITHUB, "issues", "closed", Intent.ISSUE_CLOSED),
        (Provider.GITHUB, "pull_request", "closed", Intent.PULL_REQUEST),
        (Provider.GITHUB, "push", None, Intent.PUSH),
        (Provider.GITHUB, "ping", None, Intent.PING),
        (Provider.SLACK, "url_verification", None, Intent.URL_VERIFICATION),
        (Provider.SLACK, "event_callback", "reaction_added", Intent.CHAT_REACTION),
        (Provider.NOTION, "page.properties_updated", None, Intent.PAGE_UPDATED),
        (Provider.GOOGLE_CALENDAR, "event", None, Intent.CALENDAR_EVENT),
        (Provider.GOOGLE_CALENDAR, "event", "tentative", Intent.CALENDAR_EVENT),
        (Provider.ZAPIER, None, None, Intent.RELAY),
        (Provider.ZAPIER, "anything", "at-all", Intent.RELAY),
    ],
)
def test_routes(provider, event_type, action, expected):
    assert route(provider, event_type, action) is expected


@pytest.mark.parametrize(
    "provider,event_type,action",
    [
        (Provider.GITHUB, "issues", "labeled"),
        (Provider.GITHUB, "star", "created"),
        (Provider.GITHUB, None, None),
        (Provider.SLACK, "event_callback", "app_mention"),
        (Provider.NOTION, "database.created", None),
        (Provider.GOOGLE_CALENDAR, "event", "cancelled"),
        (Provider.GITHUB, ["issues"], "opened"),
        (Provider.SLACK, "event_callback", {"type": "message"}),
    ],
)
def test_unrouted_is_not_handled(provider, event_type, action):
    result = route(provider, event_type, action)
    assert isinstance(result, NotHandled)
    assert result.provider is provider
    assert provider.value in result.reason


def test_intents_for():
    assert intents_for(Provider.NOTION) == {Intent.PAGE_CREATED, Intent.PAGE_UPDATED}
    assert intents_for(Provider.ZAPIER) == {Intent.RELAY}
