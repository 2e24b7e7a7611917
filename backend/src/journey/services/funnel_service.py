"""
Funnel aggregation over journey records.

For each stage with at least one record:
- user_count: distinct users with a record in the stage
- avg_hours_in_stage: arithmetic mean of hours_in_stage over the stage's records
- completion_rate: percent of the stage's records with stage_completed

Headline values (total users, conversion, time to active, stuck stages)
are derived from the per-stage statistics, never recomputed from records.
"""
from collections import defaultdict
from typing import Iterable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from journey.models.journey_stage import JourneyStage, all_stages, label, needs_attention
from journey.schemas.journey import (
    FunnelResponse,
    FunnelStageView,
    FunnelStat,
    FunnelSummary,
    JourneyRecord,
)
from journey.services.journey_record_service import JourneyRecordService
from journey.utils.rates import percentage

logger = structlog.get_logger(__name__)


def compute_funnel(records: Iterable[JourneyRecord]) -> list[FunnelStat]:
    """
    Compute one FunnelStat per stage present in ``records``.

    Args:
        records: Validated journey records

    Returns:
        Stats ordered by stage ordinal
    """
    by_stage: dict[JourneyStage, list[JourneyRecord]] = defaultdict(list)
    for record in records:
        by_stage[record.journey_stage].append(record)

    stats = []
    for stage in all_stages():
        rows = by_stage.get(stage)
        if not rows:
            continue
        completed = sum(1 for row in rows if row.stage_completed)
        stats.append(
            FunnelStat(
                stage=stage,
                user_count=len({row.user_id for row in rows}),
                avg_hours_in_stage=round(sum(row.hours_in_stage for row in rows) / len(rows), 2),
                completion_rate=percentage(completed, len(rows)),
            )
        )
    return stats


def summarize_funnel(stats: list[FunnelStat]) -> FunnelSummary:
    """Derive headline values from funnel statistics."""
    total_users = sum(stat.user_count for stat in stats)
    counts = {stat.stage: stat.user_count for stat in stats}
    active_users = counts.get(JourneyStage.ACTIVE, 0)

    weighted_hours = sum(stat.avg_hours_in_stage * stat.user_count for stat in stats)
    avg_time_to_active = round(weighted_hours / total_users, 2) if total_users else 0.0

    return FunnelSummary(
        total_users=total_users,
        active_users=active_users,
        conversion_rate=percentage(active_users, total_users),
        avg_time_to_active=avg_time_to_active,
        stuck_stage_count=sum(1 for stat in stats if needs_attention(stat.avg_hours_in_stage)),
        pending_payments=counts.get(JourneyStage.PAYMENT_PENDING, 0),
    )


def decorate_funnel(stats: list[FunnelStat], total_users: int) -> list[FunnelStageView]:
    """Attach label, share of total, drop-off and attention flag to each stat."""
    return [
        FunnelStageView(
            **stat.model_dump(),
            label=label(stat.stage),
            share_of_total=percentage(stat.user_count, total_users),
            dropoff_rate=percentage(total_users - stat.user_count, total_users),
            needs_attention=needs_attention(stat.avg_hours_in_stage),
        )
        for stat in stats
    ]


class FunnelService:
    """Service computing the journey funnel from stored records."""

    def __init__(self, db: AsyncSession):
        """Initialize funnel service with database session."""
        self.db = db

    async def fetch_funnel_stats(self) -> list[FunnelStat]:
        """
        Compute funnel statistics from every journey record.

        Returns:
            Stats ordered by stage ordinal
        """
        records = await JourneyRecordService(self.db).load_records()
        stats = compute_funnel(records)

        logger.info("funnel_computed", record_count=len(records), stage_count=len(stats))
        return stats

    async def build_funnel(self) -> FunnelResponse:
        """Funnel stats plus derived summary, ready for display."""
        stats = await self.fetch_funnel_stats()
        summary = summarize_funnel(stats)
        return FunnelResponse(
            stages=decorate_funnel(stats, summary.total_users),
            summary=summary,
        )
