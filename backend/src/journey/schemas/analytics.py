"""Pydantic schemas for the advanced analytics rollup."""
import datetime as dt

from pydantic import BaseModel, Field

from journey.models.journey_stage import JourneyStage


class AdvancedMetric(BaseModel):
    """Entered/completed/abandoned counts for one (date, stage)."""

    date: dt.date
    journey_stage: JourneyStage
    users_entered: int = Field(..., ge=0)
    users_completed: int = Field(..., ge=0)
    users_abandoned: int = Field(..., ge=0)
    conversion_rate: float = Field(..., ge=0, le=100)
    avg_time_hours: float = Field(..., ge=0)


class DailyRollup(BaseModel):
    """Counts for one date, summed across the selected stages."""

    date: dt.date
    users_entered: int
    users_completed: int
    users_abandoned: int


class RollupSummary(BaseModel):
    """Totals and unweighted averages over the filtered rows."""

    total_entered: int
    total_completed: int
    total_abandoned: int
    avg_conversion_rate: float
    avg_time_hours: float


class AdvancedAnalyticsResponse(BaseModel):
    """Advanced analytics endpoint payload."""

    start_date: dt.date
    end_date: dt.date
    stage: str = Field(..., description="Stage value or 'all'")
    rows: list[AdvancedMetric]
    daily: list[DailyRollup]
    summary: RollupSummary
    conversion_chart: list[AdvancedMetric] = Field(..., description="First 10 filtered rows")
