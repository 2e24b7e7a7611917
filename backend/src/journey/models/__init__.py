"""SQLAlchemy ORM models for the journey service."""
# Import all models here to ensure they are registered with Alembic

from journey.models.base import Base
from journey.models.journey_stage import JourneyStage, UnknownStageError
from journey.models.user_journey import UserJourney
from journey.models.email_template import EmailTemplate, TEMPLATE_VARIABLES
from journey.models.ab_variant import ABVariant
from journey.models.email_event import EmailEvent, EmailEventType
from journey.models.reminder_log import ReminderLog

__all__ = [
    "Base",
    "JourneyStage",
    "UnknownStageError",
    "UserJourney",
    "EmailTemplate",
    "TEMPLATE_VARIABLES",
    "ABVariant",
    "EmailEvent",
    "EmailEventType",
    "ReminderLog",
]
