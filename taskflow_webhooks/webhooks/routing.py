"""Event routing: (provider, event type, action) -> Intent."""

from dataclasses import dataclass
from enum import Enum

from taskflow_webhooks.models import Provider

ANY = "*"


class Intent(str, Enum):
    # GitHub
    ISSUE_OPENED = "issue_opened"
    ISSUE_CLOSED = "issue_closed"
    ISSUE_REOPENED = "issue_reopened"
    ISSUE_EDITED = "issue_edited"
    PULL_REQUEST = "pull_request"
    PUSH = "push"
    PING = "ping"
    # Slack
    URL_VERIFICATION = "url_verification"
    CHAT_MESSAGE = "chat_message"
    CHAT_REACTION = "chat_reaction"
    # Notion
    PAGE_CREATED = "page_created"
    PAGE_UPDATED = "page_updated"
    # Google Calendar
    CALENDAR_EVENT = "calendar_event"
    # Zapier
    RELAY = "relay"


@dataclass(frozen=True)
class NotHandled:
    """Delivery the service deliberately ignores; answered with a 200."""

    provider: Provider
    event_type: str | None
    action: str | None

    @property
    def reason(self) -> str:
        return f"{self.provider.value} event {self.event_type or '?'}/{self.action or '-'} not handled"


RouteKey = tuple[Provider, str, str]

ROUTES: dict[RouteKey, Intent] = {
    (Provider.GITHUB, "issues", "opened"): Intent.ISSUE_OPENED,
    (Provider.GITHUB, "issues", "closed"): Intent.ISSUE_CLOSED,
    (Provider.GITHUB, "issues", "reopened"): Intent.ISSUE_REOPENED,
    (Provider.GITHUB, "issues", "edited"): Intent.ISSUE_EDITED,
    (Provider.GITHUB, "pull_request", "opened"): Intent.PULL_REQUEST,
    (Provider.GITHUB, "pull_request", "reopened"): Intent.PULL_REQUEST,
    (Provider.GITHUB, "pull_request", "ready_for_review"): Intent.PULL_REQUEST,
    (Provider.GITHUB, "pull_request", "edited"): Intent.PULL_REQUEST,
    (Provider.GITHUB, "pull_request", "synchronize"): Intent.PULL_REQUEST,
    (Provider.GITHUB, "pull_request", "closed"): Intent.PULL_REQUEST,
    (Provider.GITHUB, "push", ANY): Intent.PUSH,
    (Provider.GITHUB, "ping", ANY): Intent.PING,
    (Provider.SLACK, "url_verification", ANY): Intent.URL_VERIFICATION,
    (Provider.SLACK, "event_callback", "message"): Intent.CHAT_MESSAGE,
    (Provider.SLACK, "event_callback", "reaction_added"): Intent.CHAT_REACTION,
    (Provider.NOTION, "page.created", ANY): Intent.PAGE_CREATED,
    (Provider.NOTION, "page.updated", ANY): Intent.PAGE_UPDATED,
    (Provider.NOTION, "page.properties_updated", ANY): Intent.PAGE_UPDATED,
    (Provider.GOOGLE_CALENDAR, "event", "confirmed"): Intent.CALENDAR_EVENT,
    (Provider.GOOGLE_CALENDAR, "event", "tentative"): Intent.CALENDAR_EVENT,
    (Provider.GOOGLE_CALENDAR, "event", ""): Intent.CALENDAR_EVENT,
    (Provider.ZAPIER, ANY, ANY): Intent.RELAY,
}


def route(provider: Provider, event_type: str | None, action: str | None) -> Intent | NotHandled:
    """Resolve the intent for a delivery.

    Lookup order: exact triple, then (provider, event, *), then (provider, *, *).
    """
    # Non-string discriminators never match a route
    event = event_type if isinstance(event_type, str) else ""
    act = action if isinstance(action, str) else ""
    for key in ((provider, event, act), (provider, event, ANY), (provider, ANY, ANY)):
        intent = ROUTES.get(key)
        if intent is not None:
            return intent
    return NotHandled(provider, event_type, action)


def intents_for(provider: Provider) -> set[Intent]:
    return {intent for (p, _, _), intent in ROUTES.items() if p is provider}
