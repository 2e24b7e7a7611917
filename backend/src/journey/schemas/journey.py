"""Pydantic schemas for journey stages, funnel and roster."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from journey.models.journey_stage import JourneyStage


class StageInfo(BaseModel):
    """Stage vocabulary entry."""

    value: JourneyStage
    label: str
    ordinal: int = Field(..., ge=0, le=5)


class JourneyRecord(BaseModel):
    """A user's stage assignment, validated at the store boundary."""

    user_id: str
    email: str
    full_name: str | None = None
    journey_stage: JourneyStage
    stage_completed: bool = False
    created_at: datetime
    hours_in_stage: float = Field(..., ge=0, description="Hours from stage entry to completion, or to now while open")
    metadata: dict[str, Any] = Field(default_factory=dict)


class RosterEntry(JourneyRecord):
    """Roster line for one user."""

    stage_label: str
    needs_attention: bool = Field(..., description="True when hours_in_stage > 48")


class RosterList(BaseModel):
    """Offset-paginated roster."""

    items: list[RosterEntry]
    stage: JourneyStage | None = Field(default=None, description="None means all stages")
    limit: int
    offset: int


class FunnelStat(BaseModel):
    """Per-stage funnel statistics computed on demand."""

    stage: JourneyStage
    user_count: int = Field(..., ge=0, description="Distinct users with a record in this stage")
    avg_hours_in_stage: float = Field(..., ge=0)
    completion_rate: float = Field(..., ge=0, le=100, description="Percent of stage records completed")


class FunnelStageView(FunnelStat):
    """Funnel statistic decorated for display."""

    label: str
    share_of_total: float = Field(..., ge=0, le=100)
    dropoff_rate: float = Field(..., ge=0, le=100)
    needs_attention: bool


class FunnelSummary(BaseModel):
    """Headline values derived from the funnel."""

    total_users: int
    active_users: int
    conversion_rate: float = Field(..., ge=0, le=100)
    avg_time_to_active: float
    stuck_stage_count: int
    pending_payments: int


class FunnelResponse(BaseModel):
    """Funnel endpoint payload."""

    stages: list[FunnelStageView]
    summary: FunnelSummary


class StageEntryCreate(BaseModel):
    """Schema for recording that a user entered a stage.

    Examples:
        ```json
        {
            "stage": "plan_selected",
            "email": "maria@example.com",
            "full_name": "Maria Souza",
            "metadata": {"plan": "premium"}
        }
        ```
    """

    stage: JourneyStage
    email: str = Field(..., min_length=3, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)
    metadata: dict[str, Any] = Field(default_factory=dict)


class StageEntry(BaseModel):
    """Stored stage record."""

    id: UUID
    user_id: str
    journey_stage: JourneyStage
    stage_completed: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
