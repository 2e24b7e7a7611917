"""Pydantic schemas for managed email templates."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from journey.models.journey_stage import JourneyStage


class EmailTemplateBase(BaseModel):
    """Base template schema with common fields."""

    name: str = Field(..., min_length=1, max_length=255, description="Template name")
    subject: str = Field(..., min_length=1, max_length=500, description="Email subject")
    html_content: str = Field(..., min_length=1, description="HTML body, may contain {{placeholders}}")
    text_content: str | None = Field(default=None, description="Plain-text alternative")
    journey_stage: JourneyStage = Field(..., description="Stage this template targets")
    is_active: bool = Field(default=True, description="Offered as base for new A/B variants")


class EmailTemplateCreate(EmailTemplateBase):
    """Schema for creating a template.

    ``variables`` is not accepted: every template declares the full
    placeholder catalog.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Boas-vindas após cadastro",
                    "subject": "Bem-vinda, {{user_name}}!",
                    "html_content": "<p>Olá {{user_name}}, complete seu perfil em {{action_url}}</p>",
                    "journey_stage": "signup",
                    "is_active": True,
                }
            ]
        }
    )


class EmailTemplateUpdate(BaseModel):
    """Schema for updating a template (all fields optional)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    subject: str | None = Field(default=None, min_length=1, max_length=500)
    html_content: str | None = Field(default=None, min_length=1)
    text_content: str | None = None
    journey_stage: JourneyStage | None = None
    is_active: bool | None = None

    @field_validator("name", "subject", "html_content", "journey_stage", "is_active")
    @classmethod
    def reject_null(cls, v, info):
        """Omit a field to keep it; null is only allowed for text_content."""
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class EmailTemplate(EmailTemplateBase):
    """Schema for returning template data."""

    id: UUID
    variables: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmailTemplateWrite(EmailTemplate):
    """Template returned from create/update, with placeholder warnings."""

    unknown_placeholders: list[str] = Field(
        default_factory=list,
        description="{{tokens}} used in the content that are not in the supported catalog",
    )


class EmailTemplateList(BaseModel):
    """Schema for template list."""

    items: list[EmailTemplate]
    total: int
