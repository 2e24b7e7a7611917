"""Managed e-mail templates keyed to a journey stage."""
import re
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from journey import metrics
from journey.models.email_template import TEMPLATE_VARIABLES, EmailTemplate
from journey.schemas.email_template import EmailTemplateCreate, EmailTemplateUpdate
from journey.services.errors import NotFoundError

logger = structlog.get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*[a-zA-Z_][a-zA-Z0-9_]*\s*\}\}")


def find_placeholders(*texts: str | None) -> list[str]:
    """``{{token}}`` occurrences in the given texts, normalized and de-duplicated in order."""
    found: list[str] = []
    for text in texts:
        for match in PLACEHOLDER_PATTERN.findall(text or ""):
            token = "{{" + match[2:-2].strip() + "}}"
            if token not in found:
                found.append(token)
    return found


def unknown_placeholders(template: EmailTemplate) -> list[str]:
    """Placeholders used by ``template`` that are outside the supported catalog."""
    used = find_placeholders(template.subject, template.html_content, template.text_content)
    return [token for token in used if token not in TEMPLATE_VARIABLES]


class TemplateService:
    """Service layer for template operations."""

    def __init__(self, db: AsyncSession):
        """Initialize template service with database session."""
        self.db = db

    async def create_template(self, data: EmailTemplateCreate) -> EmailTemplate:
        """
        Create a template.

        ``variables`` always holds the full placeholder catalog. Tokens outside
        the catalog are accepted and logged; callers report them as warnings.

        Args:
            data: Template creation data

        Returns:
            Created template
        """
        template = EmailTemplate(
            name=data.name,
            subject=data.subject,
            html_content=data.html_content,
            text_content=data.text_content,
            journey_stage=data.journey_stage.value,
            variables=list(TEMPLATE_VARIABLES),
            is_active=data.is_active,
        )

        self.db.add(template)
        await self.db.flush()
        await self.db.refresh(template)

        unknown = unknown_placeholders(template)
        if unknown:
            logger.warning("template_unknown_placeholders", template_id=str(template.id), tokens=unknown)

        metrics.templates_written_total.labels(action="created").inc()
        logger.info("template_created", template_id=str(template.id), stage=template.journey_stage)
        return template

    async def get_template(self, template_id: UUID) -> EmailTemplate | None:
        """Get template by ID."""
        result = await self.db.execute(select(EmailTemplate).where(EmailTemplate.id == template_id))
        return result.scalar_one_or_none()

    async def list_templates(self) -> tuple[list[EmailTemplate], int]:
        """
        List every template, newest first.

        Returns:
            Tuple of (templates, total_count)
        """
        total = await self.db.scalar(select(func.count()).select_from(EmailTemplate))
        result = await self.db.execute(
            select(EmailTemplate).order_by(EmailTemplate.created_at.desc(), EmailTemplate.id)
        )
        return list(result.scalars().all()), total or 0

    async def update_template(self, template_id: UUID, update_data: EmailTemplateUpdate) -> EmailTemplate:
        """
        Apply the provided fields to a template. Last write wins.

        Raises:
            NotFoundError: If template not found
        """
        template = await self.get_template(template_id)
        if not template:
            raise NotFoundError(f"Template {template_id} not found")

        for field, value in update_data.model_dump(exclude_unset=True).items():
            if field == "journey_stage" and value is not None:
                value = value.value
            setattr(template, field, value)

        await self.db.flush()
        await self.db.refresh(template)

        metrics.templates_written_total.labels(action="updated").inc()
        logger.info("template_updated", template_id=str(template_id))
        return template

    async def delete_template(self, template_id: UUID) -> None:
        """
        Delete a template and its A/B variants. Irreversible.

        Raises:
            NotFoundError: If template not found
        """
        result = await self.db.execute(
            select(EmailTemplate)
            .options(selectinload(EmailTemplate.variants))
            .where(EmailTemplate.id == template_id)
        )
        template = result.scalar_one_or_none()
        if not template:
            raise NotFoundError(f"Template {template_id} not found")

        variant_count = len(template.variants)
        await self.db.delete(template)
        await self.db.flush()

        metrics.templates_written_total.labels(action="deleted").inc()
        logger.info("template_deleted", template_id=str(template_id), variants_deleted=variant_count)

    async def preview(self, template_id: UUID) -> str:
        """
        Raw ``html_content``; placeholders are shown literally.

        Raises:
            NotFoundError: If template not found
        """
        template = await self.get_template(template_id)
        if not template:
            raise NotFoundError(f"Template {template_id} not found")
        return template.html_content
