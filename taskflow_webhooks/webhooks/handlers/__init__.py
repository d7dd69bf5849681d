"""Provider handlers, one per inbound webhook endpoint."""

from taskflow_webhooks.models import Provider

from .base import ProviderHandler
from .calendar import CalendarHandler
from .github import GitHubHandler
from .notion import NotionHandler
from .slack import SlackHandler
from .zapier import ZapierHandler

HANDLERS: dict[Provider, type[ProviderHandler]] = {
    Provider.GITHUB: GitHubHandler,
    Provider.SLACK: SlackHandler,
    Provider.NOTION: NotionHandler,
    Provider.GOOGLE_CALENDAR: CalendarHandler,
    Provider.ZAPIER: ZapierHandler,
}

__all__ = [
    "HANDLERS",
    "CalendarHandler",
    "GitHubHandler",
    "NotionHandler",
    "ProviderHandler",
    "SlackHandler",
    "ZapierHandler",
]
