"""Reminder activity log model."""
from sqlalchemy import Column, String, Text

from journey.models.base import Base, JSONType


class ReminderLog(Base):
    """
    Record of an operator-triggered reminder.

    Written after the notification collaborator confirms delivery, so the
    user's activity history shows which reminders reached them.
    """

    __tablename__ = "reminder_logs"

    user_id = Column(String(64), nullable=False, index=True)
    user_email = Column(String(255), nullable=False)
    journey_stage = Column(String(32), nullable=False)
    intent = Column(String(32), nullable=False)  # complete_profile, choose_plan, complete_payment, custom
    subject = Column(String(500), nullable=False)
    message = Column(Text, nullable=False)
    sent_by = Column(String(255), nullable=True)  # Operator who triggered the send
    details = Column(JSONType, nullable=False, default=dict)

    def __repr__(self) -> str:
        """String representation."""
        return f"<ReminderLog(user_id={self.user_id}, intent={self.intent})>"
