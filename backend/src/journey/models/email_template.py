"""Email template model for stage-targeted outreach."""
from sqlalchemy import Boolean, Column, String, Text
from sqlalchemy.orm import relationship

from journey.models.base import Base, JSONType

# Placeholders supported by managed templates
TEMPLATE_VARIABLES = [
    "{{user_name}}",
    "{{user_email}}",
    "{{stage_name}}",
    "{{action_url}}",
    "{{support_email}}",
]


class EmailTemplate(Base):
    """
    Reusable message template keyed to a journey stage.

    Inactive templates cannot be used as the base of new A/B variants.
    """

    __tablename__ = "email_templates"

    name = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    journey_stage = Column(String(32), nullable=False, index=True)
    variables = Column(JSONType, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    variants = relationship(
        "ABVariant",
        back_populates="template",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<EmailTemplate(id={self.id}, name={self.name}, stage={self.journey_stage})>"
