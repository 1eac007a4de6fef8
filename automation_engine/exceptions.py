"""Error taxonomy for the automation engine."""


class AutomationError(Exception):
    """Base class for all engine errors."""


class ValidationError(AutomationError):
    """Malformed rule, action, recurrence or suggestion payload."""


class NotFoundError(AutomationError):
    """Unknown rule, recurring config, suggestion, task or user."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class TaskStoreError(AutomationError):
    """The external task store could not be reached or rejected a call."""
