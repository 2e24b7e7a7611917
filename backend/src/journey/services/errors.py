"""Service-layer exceptions.

All are ValueError subclasses so routers can roll back and translate them
to HTTP errors the same way.
"""


class NotFoundError(ValueError):
    """Requested entity does not exist."""


class StageTransitionError(ValueError):
    """A stage entry would move a user backwards or nowhere."""


class InvalidDateRangeError(ValueError):
    """start_date is after end_date."""


class TemplateInactiveError(ValueError):
    """Variant creation attempted on an inactive template."""


class TrafficAllocationError(ValueError):
    """Active variants of one template would exceed 100% of traffic."""

    def __init__(self, template_id, current: int, requested: int):
        self.template_id = template_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Traffic allocation for template {template_id} would reach {current + requested}% "
            f"({current}% already allocated to active variants, {requested}% requested)"
        )


class ReminderValidationError(ValueError):
    """Reminder form is incomplete; nothing was sent."""

    def __init__(self, title: str, description: str):
        self.title = title
        self.description = description
        super().__init__(title)


class InvalidReminderState(ValueError):
    """Reminder dispatch step is not allowed in the current state."""


class ReminderDeliveryError(Exception):
    """Notification collaborator reported a failed send."""

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)
