"""Email tracking events used for A/B metrics."""
import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Index, String, Uuid

from journey.models.base import Base


class EmailEventType(enum.Enum):
    """Tracked email interaction."""

    SENT = "sent"
    OPENED = "opened"
    CLICKED = "clicked"
    CONVERTED = "converted"


class EmailEvent(Base):
    """Single send/open/click/conversion event for an A/B variant."""

    __tablename__ = "email_events"

    variant_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("email_ab_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    user_id = Column(String(64), nullable=True)
    event_type = Column(SQLEnum(EmailEventType), nullable=False)
    occurred_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_email_events_variant_occurred", "variant_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<EmailEvent(variant_id={self.variant_id}, type={self.event_type.value})>"
