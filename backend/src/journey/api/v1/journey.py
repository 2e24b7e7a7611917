"""Journey funnel, roster, stage recording, rollup and dashboard endpoints."""
from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from journey.api.deps import get_current_user, get_db, get_session_factory
from journey.auth.rbac import Role, require_roles
from journey.config import settings
from journey.models.journey_stage import (
    JourneyStage,
    UnknownStageError,
    all_stages,
    label,
    ordinal,
    parse_stage_filter,
)
from journey.schemas.analytics import AdvancedAnalyticsResponse
from journey.schemas.dashboard import DashboardOverview
from journey.schemas.journey import FunnelResponse, RosterList, StageEntry, StageEntryCreate, StageInfo
from journey.services.advanced_analytics_service import (
    ALLOWED_RANGE_DAYS,
    AdvancedAnalyticsService,
    resolve_date_range,
)
from journey.services.dashboard_service import DashboardSession, DashboardState
from journey.services.errors import InvalidDateRangeError, StageTransitionError
from journey.services.funnel_service import FunnelService
from journey.services.journey_record_service import JourneyRecordService
from journey.services.roster_service import MAX_ROSTER_LIMIT, RosterService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/journey", tags=["Journey"])


def stage_filter(stage: Optional[str]) -> Optional[JourneyStage]:
    """Query-string stage filter; unknown values are a client error."""
    try:
        return parse_stage_filter(stage)
    except UnknownStageError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


def range_days(days: int) -> int:
    if days not in ALLOWED_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"days must be one of {', '.join(str(d) for d in ALLOWED_RANGE_DAYS)}",
        )
    return days


@router.get("/stages", response_model=list[StageInfo])
@require_roles(Role.ANALYST)
async def list_stages(current_user: dict = Depends(get_current_user)) -> list[StageInfo]:
    """Stage vocabulary in funnel order, with pt-BR labels."""
    return [StageInfo(value=stage, label=label(stage), ordinal=ordinal(stage)) for stage in all_stages()]


@router.get("/funnel", response_model=FunnelResponse)
@require_roles(Role.ANALYST)
async def get_funnel(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> FunnelResponse:
    """
    Per-stage user counts, time in stage and completion rate.

    The summary carries total users, conversion to active, average time to
    active, the number of stages needing attention and pending payments.
    """
    return await FunnelService(db).build_funnel()


@router.get("/users", response_model=RosterList)
@require_roles(Role.ANALYST)
async def list_users(
    stage: Optional[str] = Query(default=None, description="Stage value, or 'all'"),
    limit: int = Query(default=settings.roster_default_limit, ge=1, le=MAX_ROSTER_LIMIT),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> RosterList:
    """
    Users whose current stage is ``stage``, newest entries first.

    Each entry flags ``needs_attention`` when the user has been in the stage
    for more than 48 hours.
    """
    return await RosterService(db).list_users_in_stage(stage_filter(stage), limit=limit, offset=offset)


@router.post("/users/{user_id}/stages", response_model=StageEntry, status_code=status.HTTP_201_CREATED)
@require_roles(Role.ADMIN)
async def record_stage(
    user_id: str,
    entry: StageEntryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> StageEntry:
    """
    Record that a user entered a stage.

    The previous record is marked completed. Moving backwards or to the
    same stage is rejected with 409.
    """
    service = JourneyRecordService(db)

    try:
        record = await service.record_stage(user_id, entry)
        await db.commit()
        return StageEntry.model_validate(record)
    except StageTransitionError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/analytics/advanced", response_model=AdvancedAnalyticsResponse)
@require_roles(Role.ANALYST)
async def get_advanced_analytics(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    days: int = Query(default=30, description="Trailing window when no explicit dates: 7, 30 or 90"),
    stage: Optional[str] = Query(default=None, description="Stage value, or 'all'"),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> AdvancedAnalyticsResponse:
    """
    Daily entered/completed/abandoned counts per stage.

    With ``stage=all`` the daily series sums every stage per date. Summary
    averages are plain means over rows.
    """
    selected = stage_filter(stage)
    try:
        start, end = resolve_date_range(start_date, end_date, days=range_days(days))
        return await AdvancedAnalyticsService(db).build_report(start, end, selected)
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/dashboard", response_model=DashboardOverview)
@require_roles(Role.ANALYST)
async def get_dashboard(
    stage: Optional[str] = Query(default=None, description="Stage selected in the funnel"),
    days: int = Query(default=30),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: dict = Depends(get_current_user),
) -> DashboardOverview:
    """
    Every dashboard section in one call.

    Sections load independently: a failing section carries an ``error``
    while the others still return data.
    """
    state = DashboardState(
        selected_stage=stage_filter(stage),
        range_days=range_days(days),
        roster_limit=settings.roster_default_limit,
    )
    return await DashboardSession(session_factory, state).load_all()
