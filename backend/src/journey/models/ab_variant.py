"""A/B test variant model."""
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from journey.models.base import Base


class ABVariant(Base):
    """Alternate version of an email template competing for send traffic."""

    __tablename__ = "email_ab_variants"

    template_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("email_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    variant_name = Column(String(100), nullable=False)
    subject = Column(String(500), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    traffic_percentage = Column(Integer, nullable=False, default=50)  # 0-100
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    template = relationship("EmailTemplate", back_populates="variants")

    def __repr__(self) -> str:
        """String representation."""
        return f"<ABVariant(id={self.id}, name={self.variant_name}, traffic={self.traffic_percentage}%)>"
