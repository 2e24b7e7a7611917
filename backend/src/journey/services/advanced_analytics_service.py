"""
Advanced journey analytics: daily entered/completed/abandoned per stage.

The store-side rollup groups records by (entry date, stage):
- users_entered: records created that day in the stage
- users_completed: of those, records with stage_completed
- users_abandoned: of those, not completed and older than the 48h threshold
- conversion_rate: completed / entered * 100
- avg_time_hours: mean hours_in_stage (closed records stop at completed_at)

Display-side helpers then filter by stage, merge rows sharing a date when
every stage is selected, and summarize. Averages in the summary are plain
means over rows, not weighted by volume.
"""
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from journey.models.journey_stage import ALL_STAGES_FILTER, JourneyStage, needs_attention, ordinal
from journey.schemas.analytics import (
    AdvancedAnalyticsResponse,
    AdvancedMetric,
    DailyRollup,
    RollupSummary,
)
from journey.schemas.journey import JourneyRecord
from journey.services.errors import InvalidDateRangeError
from journey.services.journey_record_service import JourneyRecordService
from journey.utils.rates import mean, percentage

logger = structlog.get_logger(__name__)

ALLOWED_RANGE_DAYS = (7, 30, 90)
CONVERSION_CHART_LIMIT = 10


def resolve_date_range(
    start_date: Optional[date],
    end_date: Optional[date],
    days: int = 30,
    today: Optional[date] = None,
) -> tuple[date, date]:
    """
    Resolve an explicit range or a trailing ``days`` window ending today.

    Raises:
        InvalidDateRangeError: If start is after end
    """
    today = today or date.today()
    end = end_date or today
    start = start_date or (end - timedelta(days=days))
    if start > end:
        raise InvalidDateRangeError(f"start_date {start} is after end_date {end}")
    return start, end


def build_advanced_metrics(records: Iterable[JourneyRecord]) -> list[AdvancedMetric]:
    """Group records into one AdvancedMetric per (entry date, stage)."""
    groups: dict[tuple[date, JourneyStage], list[JourneyRecord]] = defaultdict(list)
    for record in records:
        groups[(record.created_at.date(), record.journey_stage)].append(record)

    rows = []
    for (day, stage), members in groups.items():
        entered = len(members)
        completed = sum(1 for member in members if member.stage_completed)
        abandoned = sum(
            1 for member in members
            if not member.stage_completed and needs_attention(member.hours_in_stage)
        )
        rows.append(
            AdvancedMetric(
                date=day,
                journey_stage=stage,
                users_entered=entered,
                users_completed=completed,
                users_abandoned=abandoned,
                conversion_rate=percentage(completed, entered),
                avg_time_hours=mean([member.hours_in_stage for member in members]),
            )
        )

    rows.sort(key=lambda row: (row.date, ordinal(row.journey_stage)))
    return rows


def filter_by_stage(rows: list[AdvancedMetric], stage: Optional[JourneyStage]) -> list[AdvancedMetric]:
    """Keep rows of one stage; None keeps every row."""
    if stage is None:
        return list(rows)
    return [row for row in rows if row.journey_stage == stage]


def aggregate_by_date(rows: list[AdvancedMetric], stage: Optional[JourneyStage]) -> list[DailyRollup]:
    """
    Build the time series for the chart.

    With every stage selected, counts of rows sharing a date are summed.
    With a single stage, each row maps one-to-one to a point.
    """
    if stage is not None:
        return [
            DailyRollup(
                date=row.date,
                users_entered=row.users_entered,
                users_completed=row.users_completed,
                users_abandoned=row.users_abandoned,
            )
            for row in rows
        ]

    merged: dict[date, DailyRollup] = {}
    for row in rows:
        point = merged.get(row.date)
        if point is None:
            merged[row.date] = DailyRollup(
                date=row.date,
                users_entered=row.users_entered,
                users_completed=row.users_completed,
                users_abandoned=row.users_abandoned,
            )
        else:
            point.users_entered += row.users_entered
            point.users_completed += row.users_completed
            point.users_abandoned += row.users_abandoned
    return list(merged.values())


def summarize_rollup(rows: list[AdvancedMetric]) -> RollupSummary:
    """Straight sums plus unweighted means over the filtered rows."""
    return RollupSummary(
        total_entered=sum(row.users_entered for row in rows),
        total_completed=sum(row.users_completed for row in rows),
        total_abandoned=sum(row.users_abandoned for row in rows),
        avg_conversion_rate=mean([row.conversion_rate for row in rows], digits=2),
        avg_time_hours=mean([row.avg_time_hours for row in rows], digits=1),
    )


def conversion_chart_rows(rows: list[AdvancedMetric], limit: int = CONVERSION_CHART_LIMIT) -> list[AdvancedMetric]:
    """Rows shown in the per-stage conversion bar chart (display cap only)."""
    return rows[:limit]


class AdvancedAnalyticsService:
    """Service for the time-bucketed journey rollup."""

    def __init__(self, db: AsyncSession):
        """Initialize advanced analytics service with database session."""
        self.db = db

    async def fetch_advanced_analytics(self, start_date: date, end_date: date) -> list[AdvancedMetric]:
        """
        Daily per-stage metrics for records entered between the two dates.

        Args:
            start_date: First day (inclusive)
            end_date: Last day (inclusive)

        Returns:
            Rows sorted by date then stage order

        Raises:
            InvalidDateRangeError: If start_date is after end_date
        """
        if start_date > end_date:
            raise InvalidDateRangeError(f"start_date {start_date} is after end_date {end_date}")

        records = await JourneyRecordService(self.db).load_records(
            created_from=start_date,
            created_to=end_date,
        )
        rows = build_advanced_metrics(records)

        logger.info(
            "advanced_analytics_computed",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            row_count=len(rows),
        )
        return rows

    async def build_report(
        self,
        start_date: date,
        end_date: date,
        stage: Optional[JourneyStage] = None,
    ) -> AdvancedAnalyticsResponse:
        """Rollup rows plus filtered series, summary and chart rows."""
        rows = await self.fetch_advanced_analytics(start_date, end_date)
        filtered = filter_by_stage(rows, stage)

        return AdvancedAnalyticsResponse(
            start_date=start_date,
            end_date=end_date,
            stage=stage.value if stage else ALL_STAGES_FILTER,
            rows=filtered,
            daily=aggregate_by_date(filtered, stage),
            summary=summarize_rollup(filtered),
            conversion_chart=conversion_chart_rows(filtered),
        )
