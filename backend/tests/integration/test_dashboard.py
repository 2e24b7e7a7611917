"""Integration tests for the dashboard session: independent sections and stale results."""
import asyncio

import pytest
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from journey.models.journey_stage import JourneyStage
from journey.services.dashboard_service import ADVANCED, FUNNEL, ROSTER, DashboardSession, DashboardState
from tests.conftest import TestAsyncSessionLocal


class Marker(BaseModel):
    stage: str | None


@pytest.mark.asyncio
async def test_load_all_sections(db_session: AsyncSession, add_journey) -> None:
    await add_journey(user_id="u1", journey_stage="signup", hours_ago=3)
    await add_journey(user_id="u2", journey_stage="plan_selected", hours_ago=3)

    overview = await DashboardSession(TestAsyncSessionLocal).load_all()

    assert overview.selected_stage is None
    assert overview.range_days == 30
    assert overview.funnel.data["summary"]["total_users"] == 2
    assert len(overview.roster.data["items"]) == 2
    assert overview.advanced.data["summary"]["total_entered"] == 2


@pytest.mark.asyncio
async def test_failing_section_does_not_hide_others(db_session: AsyncSession, add_journey) -> None:
    await add_journey(user_id="u1", journey_stage="signup", hours_ago=3)

    async def broken(db, state):
        raise RuntimeError("rollup unavailable")

    session = DashboardSession(TestAsyncSessionLocal, loaders={ADVANCED: broken})
    overview = await session.load_all()

    assert overview.advanced.error == "rollup unavailable"
    assert overview.advanced.data is None
    assert overview.funnel.error is None
    assert overview.funnel.data["summary"]["total_users"] == 1
    assert overview.roster.data["items"][0]["user_id"] == "u1"


@pytest.mark.asyncio
async def test_select_stage_reloads_roster(db_session: AsyncSession, add_journey) -> None:
    await add_journey(user_id="u1", journey_stage="signup", hours_ago=3)
    await add_journey(user_id="u2", journey_stage="active", hours_ago=3)
    session = DashboardSession(TestAsyncSessionLocal)
    await session.load_all()

    roster = await session.select_stage(JourneyStage.ACTIVE)

    assert session.state.selected_stage is JourneyStage.ACTIVE
    assert [item["user_id"] for item in roster.data["items"]] == ["u2"]


@pytest.mark.asyncio
async def test_change_range_rejects_unsupported_window(db_session: AsyncSession) -> None:
    session = DashboardSession(TestAsyncSessionLocal)

    with pytest.raises(ValueError):
        await session.change_range(14)

    assert session.state.range_days == 30


@pytest.mark.asyncio
async def test_stale_roster_result_is_dropped(db_session: AsyncSession) -> None:
    release_first = asyncio.Event()
    first_started = asyncio.Event()

    async def roster(db, state):
        if state.selected_stage is JourneyStage.SIGNUP:
            first_started.set()
            await release_first.wait()
        return Marker(stage=state.selected_stage.value if state.selected_stage else None)

    session = DashboardSession(TestAsyncSessionLocal, loaders={ROSTER: roster})

    slow = asyncio.ensure_future(session.select_stage(JourneyStage.SIGNUP))
    await first_started.wait()
    fast = await session.select_stage(JourneyStage.ACTIVE)
    release_first.set()
    await slow

    assert fast.data == {"stage": "active"}
    assert session.sections[ROSTER].data == {"stage": "active"}
    assert session.overview().selected_stage is JourneyStage.ACTIVE


@pytest.mark.asyncio
async def test_sections_never_loaded_are_empty(db_session: AsyncSession) -> None:
    session = DashboardSession(TestAsyncSessionLocal, DashboardState(range_days=7))

    await session.load_section(FUNNEL)
    overview = session.overview()

    assert overview.range_days == 7
    assert overview.funnel.data is not None
    assert overview.roster.data is None
    assert overview.roster.error is None
