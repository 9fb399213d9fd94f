"""Exceptions raised inside the notification pipeline."""


class NotifyHubError(Exception):
    """Base class for pipeline errors."""


class MalformedEventError(NotifyHubError):
    """An event payload failed validation at handler entry."""

    def __init__(self, event_type: str, reason: str):
        self.event_type = event_type
        self.reason = reason
        super().__init__(f"Malformed {event_type} payload: {reason}")


class GroupingConflictError(NotifyHubError):
    """A grouping key kept losing the insert race and could not be resolved."""

    def __init__(self, group_key: str, attempts: int):
        self.group_key = group_key
        self.attempts = attempts
        super().__init__(f"Could not record notification for {group_key} after {attempts} attempts")
