"""Journey record access and stage recording."""
from datetime import date, datetime, time
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journey.models.journey_stage import JourneyStage, all_stages, ordinal, parse_stage
from journey.models.user_journey import UserJourney
from journey.schemas.journey import JourneyRecord, StageEntryCreate
from journey.services.errors import StageTransitionError

logger = structlog.get_logger(__name__)


def to_record(row: UserJourney, now: Optional[datetime] = None) -> JourneyRecord:
    """
    Validate a stored row into a typed record.

    Raises:
        UnknownStageError: If the stored stage is not in the vocabulary
    """
    return JourneyRecord(
        user_id=row.user_id,
        email=row.email,
        full_name=row.full_name,
        journey_stage=parse_stage(row.journey_stage),
        stage_completed=bool(row.stage_completed),
        created_at=row.created_at,
        hours_in_stage=max(row.hours_in_stage(now), 0.0),
        metadata=row.extra_metadata or {},
    )


class JourneyRecordService:
    """Service layer for user journey records."""

    def __init__(self, db: AsyncSession):
        """Initialize journey record service with database session."""
        self.db = db

    async def load_records(
        self,
        stage: Optional[JourneyStage] = None,
        created_from: Optional[date] = None,
        created_to: Optional[date] = None,
    ) -> list[JourneyRecord]:
        """
        Load journey records, optionally filtered by stage and entry date.

        Args:
            stage: Only records of this stage
            created_from: First entry date (inclusive)
            created_to: Last entry date (inclusive)

        Returns:
            Validated records with hours_in_stage computed against one clock reading
        """
        query = select(UserJourney)
        if stage is not None:
            query = query.where(UserJourney.journey_stage == stage.value)
        if created_from is not None:
            query = query.where(UserJourney.created_at >= datetime.combine(created_from, time.min))
        if created_to is not None:
            query = query.where(UserJourney.created_at <= datetime.combine(created_to, time.max))

        result = await self.db.execute(query.order_by(UserJourney.created_at))
        now = datetime.utcnow()
        return [to_record(row, now) for row in result.scalars().all()]

    async def current_row(self, user_id: str) -> UserJourney | None:
        """Newest stage record for a user."""
        result = await self.db.execute(
            select(UserJourney)
            .where(UserJourney.user_id == user_id)
            .order_by(UserJourney.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def current_record(self, user_id: str) -> JourneyRecord | None:
        """Newest stage record for a user, validated."""
        row = await self.current_row(user_id)
        return to_record(row) if row else None

    async def record_stage(self, user_id: str, entry: StageEntryCreate) -> UserJourney:
        """
        Record that a user entered a stage.

        The current record is marked completed and a new one is created.
        Skipped stages are logged and kept in the new record's metadata.

        Args:
            user_id: User identifier
            entry: Stage entry data

        Returns:
            Created record

        Raises:
            StageTransitionError: If the stage is not after the current one
        """
        current = await self.current_row(user_id)
        previous_position = -1

        if current is not None:
            current_stage = parse_stage(current.journey_stage)
            previous_position = ordinal(current_stage)
            if ordinal(entry.stage) <= previous_position:
                raise StageTransitionError(
                    f"User {user_id} is already in stage {current_stage.value}; "
                    f"cannot move to {entry.stage.value}"
                )

        skipped = [stage.value for stage in all_stages()[previous_position + 1:ordinal(entry.stage)]]
        metadata = dict(entry.metadata)
        if skipped:
            metadata["skipped_stages"] = skipped
            logger.warning(
                "journey_stage_skipped",
                user_id=user_id,
                new_stage=entry.stage.value,
                skipped_stages=skipped,
            )

        now = datetime.utcnow()
        if current is not None and not current.stage_completed:
            current.stage_completed = True
            current.completed_at = now

        record = UserJourney(
            user_id=user_id,
            email=entry.email,
            full_name=entry.full_name,
            journey_stage=entry.stage.value,
            stage_completed=False,
            extra_metadata=metadata,
            created_at=now,
            updated_at=now,
        )
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)

        logger.info("journey_stage_recorded", user_id=user_id, stage=entry.stage.value)
        return record
