"""User journey record model."""
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Index, String

from journey.models.base import Base, JSONType


class UserJourney(Base):
    """
    One row per (user, stage assignment).

    A new row is written every time a user enters a stage; the previous
    row is marked completed. Rows are never deleted, the full history is
    the source of funnel statistics. ``created_at`` is the stage entry time.
    """

    __tablename__ = "user_journeys"

    user_id = Column(String(64), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    journey_stage = Column(String(32), nullable=False, index=True)  # JourneyStage value
    stage_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    extra_metadata = Column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_user_journeys_user_created", "user_id", "created_at"),
    )

    def hours_in_stage(self, now: Optional[datetime] = None) -> float:
        """
        Hours the user spent in this stage.

        Closed records stop the clock at ``completed_at``; open records run
        until ``now``.
        """
        end = self.completed_at or now or datetime.utcnow()
        return (end - self.created_at).total_seconds() / 3600

    def __repr__(self) -> str:
        """String representation."""
        return f"<UserJourney(user_id={self.user_id}, stage={self.journey_stage}, completed={self.stage_completed})>"
