"""
Dashboard shell: funnel, roster and advanced analytics sections.

The selected stage and date range live in one immutable state value owned
by the session. Sections load independently, so one failing section never
hides the others, and a slow response never overwrites a newer one.
"""
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from journey.models.journey_stage import JourneyStage
from journey.schemas.dashboard import DashboardOverview, DashboardSection
from journey.services.advanced_analytics_service import (
    ALLOWED_RANGE_DAYS,
    AdvancedAnalyticsService,
    resolve_date_range,
)
from journey.services.funnel_service import FunnelService
from journey.services.roster_service import RosterService
from journey.utils.sequencing import LatestOnly

logger = structlog.get_logger(__name__)

SectionLoader = Callable[[AsyncSession, "DashboardState"], Awaitable[BaseModel]]

FUNNEL = "funnel"
ROSTER = "roster"
ADVANCED = "advanced"
SECTIONS = (FUNNEL, ROSTER, ADVANCED)


@dataclass(frozen=True)
class DashboardState:
    """Selection shared between dashboard sections."""

    selected_stage: Optional[JourneyStage] = None
    range_days: int = 30
    roster_limit: int = 100

    def with_stage(self, stage: Optional[JourneyStage]) -> "DashboardState":
        """State with a new stage selection (None means all stages)."""
        return replace(self, selected_stage=stage)

    def with_range(self, days: int) -> "DashboardState":
        """State with a new trailing date range."""
        if days not in ALLOWED_RANGE_DAYS:
            raise ValueError(f"range_days must be one of {ALLOWED_RANGE_DAYS}")
        return replace(self, range_days=days)


async def load_funnel(db: AsyncSession, state: DashboardState) -> BaseModel:
    return await FunnelService(db).build_funnel()


async def load_roster(db: AsyncSession, state: DashboardState) -> BaseModel:
    return await RosterService(db).list_users_in_stage(state.selected_stage, limit=state.roster_limit)


async def load_advanced(db: AsyncSession, state: DashboardState) -> BaseModel:
    start, end = resolve_date_range(None, None, days=state.range_days)
    return await AdvancedAnalyticsService(db).build_report(start, end, state.selected_stage)


DEFAULT_LOADERS: dict[str, SectionLoader] = {
    FUNNEL: load_funnel,
    ROSTER: load_roster,
    ADVANCED: load_advanced,
}


class DashboardSession:
    """Holds the dashboard state and the last applied result of each section."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        state: DashboardState | None = None,
        loaders: dict[str, SectionLoader] | None = None,
    ):
        self.session_factory = session_factory
        self.state = state or DashboardState()
        self.loaders = {**DEFAULT_LOADERS, **(loaders or {})}
        self.sections: dict[str, DashboardSection] = {}
        self._guards = {name: LatestOnly() for name in SECTIONS}

    async def load_section(self, name: str) -> bool:
        """
        Fetch one section with its own database session.

        Returns:
            True if the result was applied, False if a newer fetch superseded it
        """
        guard = self._guards[name]
        token = guard.begin()
        state = self.state

        try:
            async with self.session_factory() as db:
                data = await self.loaders[name](db, state)
            section = DashboardSection(data=data.model_dump(mode="json"))
        except Exception as exc:
            # A failing section is reported in place; the others still load
            logger.exception("dashboard_section_failed", section=name)
            section = DashboardSection(error=str(exc) or type(exc).__name__)

        if not guard.is_latest(token):
            logger.info("dashboard_stale_result_dropped", section=name, token=token)
            return False

        self.sections[name] = section
        return True

    async def load_all(self) -> DashboardOverview:
        """Load every section for the current state."""
        for name in SECTIONS:
            await self.load_section(name)
        return self.overview()

    async def select_stage(self, stage: Optional[JourneyStage]) -> DashboardSection:
        """Funnel click: new stage selection, roster reloads."""
        self.state = self.state.with_stage(stage)
        await self.load_section(ROSTER)
        return self.sections.get(ROSTER, DashboardSection())

    async def change_range(self, days: int) -> DashboardSection:
        """New date range, advanced analytics reloads."""
        self.state = self.state.with_range(days)
        await self.load_section(ADVANCED)
        return self.sections.get(ADVANCED, DashboardSection())

    def overview(self) -> DashboardOverview:
        """Current sections; sections never loaded are empty."""
        return DashboardOverview(
            selected_stage=self.state.selected_stage,
            range_days=self.state.range_days,
            funnel=self.sections.get(FUNNEL, DashboardSection()),
            roster=self.sections.get(ROSTER, DashboardSection()),
            advanced=self.sections.get(ADVANCED, DashboardSection()),
        )
