"""Provider vocabulary -> canonical Status / Priority.

One-directional: nothing here pushes canonical values back to a provider.
"""

from taskflow_webhooks.models import Priority, Provider, Status

# Checked in order; first keyword hit wins
STATUS_KEYWORDS: list[tuple[tuple[str, ...], Status]] = [
    (("done", "complete"), Status.DONE),
    (("progress", "doing"), Status.IN_PROGRESS),
    (("review",), Status.REVIEW),
]

PRIORITY_KEYWORDS: list[tuple[tuple[str, ...], Priority]] = [
    (("high", "urgent"), Priority.HIGH),
    (("low",), Priority.LOW),
]

GITHUB_STATES: dict[str, Status] = {
    "open": Status.TODO,
    "closed": Status.DONE,
}

SLACK_REACTIONS: dict[str, Status] = {
    "white_check_mark": Status.DONE,
    "heavy_check_mark": Status.DONE,
    "eyes": Status.REVIEW,
    "mag": Status.REVIEW,
    "rocket": Status.IN_PROGRESS,
    "arrow_forward": Status.IN_PROGRESS,
}


def _keyword_status(value: str) -> Status:
    lowered = value.lower()
    for keywords, status in STATUS_KEYWORDS:
        if any(k in lowered for k in keywords):
            return status
    return Status.TODO


def map_status(provider: Provider, value: str | None) -> Status:
    """Translate a provider status/state string. Unknown or empty -> To Do."""
    if not value or not isinstance(value, str):
        return Status.TODO
    if provider is Provider.GITHUB:
        return GITHUB_STATES.get(value.lower(), Status.TODO)
    if provider is Provider.SLACK:
        return SLACK_REACTIONS.get(value, Status.TODO)
    return _keyword_status(value)


def map_priority(provider: Provider, value: str | None) -> Priority:
    """Translate a provider priority string. Unknown or empty -> Medium."""
    if not value or not isinstance(value, str):
        return Priority.MEDIUM
    lowered = value.lower()
    for keywords, priority in PRIORITY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return priority
    return Priority.MEDIUM


def reaction_status(reaction: str | None) -> Status | None:
    """Slack emoji name -> status, or None for emoji outside the vocabulary."""
    if not reaction or not isinstance(reaction, str):
        return None
    # Skin-tone variants arrive as "rocket::skin-tone-2"
    return SLACK_REACTIONS.get(reaction.split("::", 1)[0])
