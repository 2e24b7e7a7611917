"""Stage roster: users currently in a stage."""
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from journey.models.journey_stage import JourneyStage, label, needs_attention
from journey.models.user_journey import UserJourney
from journey.schemas.journey import RosterEntry, RosterList
from journey.services.journey_record_service import to_record

logger = structlog.get_logger(__name__)

MAX_ROSTER_LIMIT = 500


class RosterService:
    """Lists users by their current stage. Performs no writes."""

    def __init__(self, db: AsyncSession):
        """Initialize roster service with database session."""
        self.db = db

    async def list_users_in_stage(
        self,
        stage: Optional[JourneyStage],
        limit: int = 100,
        offset: int = 0,
    ) -> RosterList:
        """
        List users whose current record is in ``stage``.

        Only each user's newest record counts as current. Results are sorted
        by stage entry time, newest first, with the record id as tie-breaker
        so offset paging is stable.

        Args:
            stage: Stage to list, None for all stages
            limit: Page size (1-500)
            offset: Rows to skip

        Returns:
            Roster page with staleness flags

        Raises:
            ValueError: If limit or offset is out of range
        """
        if limit < 1 or limit > MAX_ROSTER_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_ROSTER_LIMIT}")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        latest = (
            select(
                UserJourney.user_id.label("user_id"),
                func.max(UserJourney.created_at).label("latest_at"),
            )
            .group_by(UserJourney.user_id)
            .subquery()
        )

        query = select(UserJourney).join(
            latest,
            and_(
                UserJourney.user_id == latest.c.user_id,
                UserJourney.created_at == latest.c.latest_at,
            ),
        )
        if stage is not None:
            query = query.where(UserJourney.journey_stage == stage.value)

        query = query.order_by(UserJourney.created_at.desc(), UserJourney.id).offset(offset).limit(limit)

        result = await self.db.execute(query)
        now = datetime.utcnow()

        items = []
        for row in result.scalars().all():
            record = to_record(row, now)
            items.append(
                RosterEntry(
                    **record.model_dump(),
                    stage_label=label(record.journey_stage),
                    needs_attention=needs_attention(record.hours_in_stage),
                )
            )

        logger.info(
            "roster_listed",
            stage=stage.value if stage else "all",
            count=len(items),
            offset=offset,
        )
        return RosterList(items=items, stage=stage, limit=limit, offset=offset)
