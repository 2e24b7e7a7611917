"""Pydantic schemas for operator reminders."""
import enum

from pydantic import BaseModel, Field

from journey.models.journey_stage import JourneyStage


class ReminderIntent(str, enum.Enum):
    """Reminder template choice."""

    COMPLETE_PROFILE = "complete_profile"
    CHOOSE_PLAN = "choose_plan"
    COMPLETE_PAYMENT = "complete_payment"
    CUSTOM = "custom"


class ReminderRequest(BaseModel):
    """Operator request to remind one user.

    Built-in intents derive subject and message; ``custom`` requires both.
    """

    user_id: str = Field(..., min_length=1)
    intent: ReminderIntent = ReminderIntent.COMPLETE_PROFILE
    subject: str | None = Field(default=None, max_length=500)
    message: str | None = None


class ReminderPayload(BaseModel):
    """Body submitted to the notification collaborator."""

    user_id: str
    user_email: str
    user_name: str | None
    journey_stage: JourneyStage
    subject: str
    message: str


class ReminderPreview(BaseModel):
    """Composed reminder shown before sending."""

    intent: ReminderIntent
    recipient: str
    subject: str
    message: str


class ReminderResult(BaseModel):
    """Outcome of a successful send."""

    status: str = "sent"
    recipient: str
    subject: str
    detail: str


class BuiltinReminder(BaseModel):
    """Entry of the built-in reminder catalog."""

    intent: ReminderIntent
    label: str
    subject: str
    message: str
