"""
A/B variant engine.

Variants compete for a share of a template's sends. The active variants of
one template may never claim more than 100% of traffic in total; whatever
is left unallocated goes to the base template.
"""
import hashlib
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from journey import metrics
from journey.models.ab_variant import ABVariant
from journey.models.email_event import EmailEvent, EmailEventType
from journey.models.email_template import EmailTemplate
from journey.schemas.ab_test import (
    ABMetrics,
    ABVariantCreate,
    ABVariantUpdate,
    ABVariantWithTemplate,
    EmailEventCreate,
    VariantAssignment,
)
from journey.schemas.ab_test import ABVariant as ABVariantSchema
from journey.services.errors import NotFoundError, TemplateInactiveError, TrafficAllocationError
from journey.utils.rates import percentage

logger = structlog.get_logger(__name__)

MAX_TRAFFIC_PERCENTAGE = 100


def assignment_bucket(template_id: UUID, user_id: str) -> int:
    """Stable bucket 0-99 for a (template, user) pair."""
    digest = hashlib.sha256(f"{template_id}:{user_id}".encode("utf-8")).hexdigest()
    return int(digest, 16) % 100


def pick_variant(variants: list[ABVariant], bucket: int) -> ABVariant | None:
    """
    Walk cumulative traffic shares and return the variant owning ``bucket``.

    Returns None when the bucket falls in the unallocated remainder.
    """
    cumulative = 0
    for variant in variants:
        cumulative += variant.traffic_percentage
        if bucket < cumulative:
            return variant
    return None


def build_metrics_row(variant: ABVariant, template_name: str, counts: dict[EmailEventType, int]) -> ABMetrics:
    """Per-variant metrics; every rate is 0 when nothing was sent."""
    sends = counts.get(EmailEventType.SENT, 0)
    opens = counts.get(EmailEventType.OPENED, 0)
    clicks = counts.get(EmailEventType.CLICKED, 0)
    conversions = counts.get(EmailEventType.CONVERTED, 0)

    return ABMetrics(
        variant_id=variant.id,
        variant_name=variant.variant_name,
        template_name=template_name,
        total_sends=sends,
        total_opens=opens,
        total_clicks=clicks,
        total_conversions=conversions,
        open_rate=percentage(opens, sends, clamp=False),
        click_rate=percentage(clicks, sends, clamp=False),
        conversion_rate=percentage(conversions, sends, clamp=False),
    )


class ABTestService:
    """Service layer for A/B variants, tracking events and metrics."""

    def __init__(self, db: AsyncSession):
        """Initialize A/B test service with database session."""
        self.db = db

    async def list_templates(self, active_only: bool = True) -> list[EmailTemplate]:
        """Templates that may be used as the base of a variant, by name."""
        query = select(EmailTemplate)
        if active_only:
            query = query.where(EmailTemplate.is_active == True)  # noqa: E712
        result = await self.db.execute(query.order_by(EmailTemplate.name))
        return list(result.scalars().all())

    async def list_variants(self) -> list[ABVariantWithTemplate]:
        """Every variant with its template's name and stage, newest first."""
        result = await self.db.execute(
            select(ABVariant, EmailTemplate.name, EmailTemplate.journey_stage)
            .join(EmailTemplate, ABVariant.template_id == EmailTemplate.id)
            .order_by(ABVariant.created_at.desc(), ABVariant.id)
        )
        return [
            ABVariantWithTemplate(
                **ABVariantSchema.model_validate(variant).model_dump(),
                template_name=template_name,
                template_stage=template_stage,
            )
            for variant, template_name, template_stage in result.all()
        ]

    async def get_variant(self, variant_id: UUID) -> ABVariant | None:
        """Get variant by ID."""
        result = await self.db.execute(select(ABVariant).where(ABVariant.id == variant_id))
        return result.scalar_one_or_none()

    async def allocated_traffic(self, template_id: UUID, exclude_variant_id: UUID | None = None) -> int:
        """Sum of traffic_percentage over the template's active variants."""
        query = select(func.coalesce(func.sum(ABVariant.traffic_percentage), 0)).where(
            ABVariant.template_id == template_id,
            ABVariant.is_active == True,  # noqa: E712
        )
        if exclude_variant_id is not None:
            query = query.where(ABVariant.id != exclude_variant_id)
        return int(await self.db.scalar(query) or 0)

    async def _check_allocation(
        self,
        template_id: UUID,
        requested: int,
        exclude_variant_id: UUID | None = None,
    ) -> None:
        current = await self.allocated_traffic(template_id, exclude_variant_id)
        if current + requested > MAX_TRAFFIC_PERCENTAGE:
            logger.warning(
                "ab_variant_blocked",
                template_id=str(template_id),
                allocated=current,
                requested=requested,
            )
            raise TrafficAllocationError(template_id, current, requested)

    async def create_variant(self, data: ABVariantCreate) -> ABVariant:
        """
        Create a variant of an active template.

        Args:
            data: Variant creation data

        Returns:
            Created variant

        Raises:
            NotFoundError: If the template does not exist
            TemplateInactiveError: If the template is inactive
            TrafficAllocationError: If active traffic would exceed 100%
        """
        template = await self.db.get(EmailTemplate, data.template_id)
        if template is None:
            raise NotFoundError(f"Template {data.template_id} not found")
        if not template.is_active:
            raise TemplateInactiveError(f"Template {data.template_id} is inactive")

        if data.is_active:
            await self._check_allocation(data.template_id, data.traffic_percentage)

        variant = ABVariant(
            template_id=data.template_id,
            variant_name=data.variant_name,
            subject=data.subject,
            html_content=data.html_content,
            text_content=data.text_content,
            traffic_percentage=data.traffic_percentage,
            is_active=data.is_active,
        )
        self.db.add(variant)
        await self.db.flush()
        await self.db.refresh(variant)

        metrics.ab_variants_created_total.inc()
        logger.info(
            "ab_variant_created",
            variant_id=str(variant.id),
            template_id=str(data.template_id),
            traffic_percentage=data.traffic_percentage,
        )
        return variant

    async def update_variant(self, variant_id: UUID, update_data: ABVariantUpdate) -> ABVariant:
        """
        Update or (de)activate a variant.

        Raises:
            NotFoundError: If variant not found
            TrafficAllocationError: If active traffic would exceed 100%
        """
        variant = await self.get_variant(variant_id)
        if not variant:
            raise NotFoundError(f"Variant {variant_id} not found")

        changes = update_data.model_dump(exclude_unset=True)
        will_be_active = changes.get("is_active", variant.is_active)
        traffic = changes.get("traffic_percentage", variant.traffic_percentage)
        if will_be_active:
            await self._check_allocation(variant.template_id, traffic, exclude_variant_id=variant.id)

        for field, value in changes.items():
            setattr(variant, field, value)

        await self.db.flush()
        await self.db.refresh(variant)

        logger.info("ab_variant_updated", variant_id=str(variant_id), fields=sorted(changes))
        return variant

    async def get_metrics(self, template_id: UUID, window_days: int = 30) -> list[ABMetrics]:
        """
        One metrics row per variant of the template over the trailing window.

        Raises:
            NotFoundError: If the template does not exist
        """
        template = await self.db.get(EmailTemplate, template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")

        since = datetime.utcnow() - timedelta(days=window_days)
        counts_result = await self.db.execute(
            select(EmailEvent.variant_id, EmailEvent.event_type, func.count(EmailEvent.id))
            .where(
                EmailEvent.template_id == template_id,
                EmailEvent.occurred_at >= since,
            )
            .group_by(EmailEvent.variant_id, EmailEvent.event_type)
        )
        counts: dict[UUID, dict[EmailEventType, int]] = {}
        for variant_id, event_type, count in counts_result.all():
            counts.setdefault(variant_id, {})[event_type] = count

        variants_result = await self.db.execute(
            select(ABVariant)
            .where(ABVariant.template_id == template_id)
            .order_by(ABVariant.created_at, ABVariant.id)
        )
        rows = [
            build_metrics_row(variant, template.name, counts.get(variant.id, {}))
            for variant in variants_result.scalars().all()
        ]

        logger.info("ab_metrics_computed", template_id=str(template_id), window_days=window_days, variants=len(rows))
        return rows

    async def record_event(self, data: EmailEventCreate) -> EmailEvent:
        """
        Store a send/open/click/conversion event for a variant.

        Raises:
            NotFoundError: If variant not found
        """
        variant = await self.get_variant(data.variant_id)
        if not variant:
            raise NotFoundError(f"Variant {data.variant_id} not found")

        event = EmailEvent(
            variant_id=variant.id,
            template_id=variant.template_id,
            user_id=data.user_id,
            event_type=data.event_type,
            occurred_at=data.occurred_at or datetime.utcnow(),
        )
        self.db.add(event)
        await self.db.flush()
        await self.db.refresh(event)

        metrics.email_events_total.labels(event_type=data.event_type.value).inc()
        return event

    async def assign_variant(self, template_id: UUID, user_id: str) -> VariantAssignment:
        """
        Deterministic variant for a user.

        The same (template, user) always lands in the same bucket; the bucket
        is mapped onto active variants by cumulative traffic share, oldest first.

        Raises:
            NotFoundError: If the template does not exist
        """
        template = await self.db.get(EmailTemplate, template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")

        result = await self.db.execute(
            select(ABVariant)
            .where(
                ABVariant.template_id == template_id,
                ABVariant.is_active == True,  # noqa: E712
            )
            .order_by(ABVariant.created_at, ABVariant.id)
        )
        bucket = assignment_bucket(template_id, user_id)
        variant = pick_variant(list(result.scalars().all()), bucket)

        return VariantAssignment(
            template_id=template_id,
            user_id=user_id,
            bucket=bucket,
            variant_id=variant.id if variant else None,
            variant_name=variant.variant_name if variant else None,
        )
