"""Pydantic schemas for the composite dashboard load."""
from typing import Any

from pydantic import BaseModel

from journey.models.journey_stage import JourneyStage


class DashboardSection(BaseModel):
    """One independently loaded dashboard tab."""

    data: Any | None = None
    error: str | None = None


class DashboardOverview(BaseModel):
    """Every dashboard section for one state."""

    selected_stage: JourneyStage | None
    range_days: int
    funnel: DashboardSection
    roster: DashboardSection
    advanced: DashboardSection
