"""A/B variant, tracking event and metrics endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from journey.api.deps import get_current_user, get_db
from journey.auth.rbac import Role, require_roles
from journey.config import settings
from journey.schemas.ab_test import (
    ABMetricsList,
    ABVariant,
    ABVariantCreate,
    ABVariantUpdate,
    ABVariantWithTemplate,
    EmailEvent,
    EmailEventCreate,
    TemplateOption,
    VariantAssignment,
)
from journey.services.ab_test_service import ABTestService
from journey.services.errors import NotFoundError, TemplateInactiveError, TrafficAllocationError

router = APIRouter(prefix="/ab-tests", tags=["A/B Tests"])


@router.get("/templates", response_model=list[TemplateOption])
@require_roles(Role.ANALYST)
async def list_templates(
    active_only: bool = True,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[TemplateOption]:
    """Templates available as the base of a new variant, by name."""
    templates = await ABTestService(db).list_templates(active_only=active_only)
    return [TemplateOption.model_validate(t) for t in templates]


@router.get("/variants", response_model=list[ABVariantWithTemplate])
@require_roles(Role.ANALYST)
async def list_variants(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[ABVariantWithTemplate]:
    """Every variant with its template name and stage, newest first."""
    return await ABTestService(db).list_variants()


@router.post("/variants", response_model=ABVariant, status_code=status.HTTP_201_CREATED)
@require_roles(Role.MARKETING)
async def create_variant(
    variant_data: ABVariantCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> ABVariant:
    """
    Create a variant of an active template.

    - **traffic_percentage**: integer 0-100 (default 50)
    - active variants of one template may not exceed 100% together (409)
    """
    service = ABTestService(db)

    try:
        variant = await service.create_variant(variant_data)
        await db.commit()
        return ABVariant.model_validate(variant)
    except NotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except TemplateInactiveError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except TrafficAllocationError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.patch("/variants/{variant_id}", response_model=ABVariant)
@require_roles(Role.MARKETING)
async def update_variant(
    variant_id: UUID,
    update_data: ABVariantUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> ABVariant:
    """Change content or traffic, or (de)activate a variant."""
    service = ABTestService(db)

    try:
        variant = await service.update_variant(variant_id, update_data)
        await db.commit()
        return ABVariant.model_validate(variant)
    except NotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except TrafficAllocationError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/templates/{template_id}/metrics", response_model=ABMetricsList)
@require_roles(Role.ANALYST)
async def get_metrics(
    template_id: UUID,
    days: int = Query(default=settings.ab_metrics_window_days, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> ABMetricsList:
    """Sends, opens, clicks and conversions per variant over the trailing window."""
    try:
        items = await ABTestService(db).get_metrics(template_id, window_days=days)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return ABMetricsList(template_id=template_id, window_days=days, items=items)


@router.get("/templates/{template_id}/assignment", response_model=VariantAssignment)
@require_roles(Role.ANALYST)
async def get_assignment(
    template_id: UUID,
    user_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> VariantAssignment:
    """Variant this user receives; no variant means the base template."""
    try:
        return await ABTestService(db).assign_variant(template_id, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/events", response_model=EmailEvent, status_code=status.HTTP_201_CREATED)
@require_roles(Role.MARKETING)
async def record_event(
    event_data: EmailEventCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> EmailEvent:
    """Record a send, open, click or conversion for a variant."""
    service = ABTestService(db)

    try:
        event = await service.record_event(event_data)
        await db.commit()
        return EmailEvent.model_validate(event)
    except NotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
