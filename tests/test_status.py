# tests/test_status.py
from unittest.mock import AsyncMock

import pytest

from pov_tracker.models.pov import PoVStatus as S
from pov_tracker.services.status import (
    INVALID_TRANSITION,
    POV_NOT_FOUND,
    StatusCondition,
    StatusTransition,
    StatusTransitionEngine,
)
from tests.fakes import FakeRepository


@pytest.fixture()
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture()
def engine(repo) -> StatusTransitionEngine:
    return StatusTransitionEngine(repo)


def test_available_transitions_follow_edge_table(engine):
    assert engine.get_available_transitions(S.PROJECTED) == [S.IN_PROGRESS]
    assert engine.get_available_transitions(S.IN_PROGRESS) == [S.VALIDATION, S.STALLED]
    assert engine.get_available_transitions(S.VALIDATION) == [S.WON, S.LOST]
    assert engine.get_available_transitions(S.STALLED) == [S.IN_PROGRESS]
    assert engine.get_available_transitions(S.WON) == []
    assert engine.get_available_transitions(S.LOST) == []


def test_no_self_loops(engine):
    for status in S:
        assert engine.find_transition(status, status) is None


@pytest.mark.asyncio
async def test_start_requires_a_phase(engine, repo):
    repo.add_pov("p1", S.PROJECTED)

    result = await engine.transition_status("p1", S.IN_PROGRESS)

    assert not result.success
    assert [e.message for e in result.errors] == ["PoV must have at least one phase"]
    assert result.errors[0].type == "CONDITION_NOT_MET"
    assert repo.povs["p1"] == S.PROJECTED
    assert repo.calls["write_pov_status"] == 0


@pytest.mark.asyncio
async def test_start_with_phase_succeeds_and_returns_notifications(engine, repo):
    repo.add_pov("p1", S.PROJECTED, phases=[[False]])

    result = await engine.transition_status("p1", S.IN_PROGRESS)

    assert result.success
    assert result.new_status == S.IN_PROGRESS
    assert result.previous_status == S.PROJECTED
    assert repo.povs["p1"] == S.IN_PROGRESS
    assert [n.template for n in result.notifications] == ["POV_STATUS_CHANGE"]
    assert result.notifications[0].roles == ("OWNER", "ADMIN")


@pytest.mark.asyncio
async def test_undeclared_edge_is_rejected(engine, repo):
    repo.add_pov("p1", S.PROJECTED, phases=[[True]])

    result = await engine.transition_status("p1", S.WON)

    assert not result.success
    assert [e.message for e in result.errors] == [INVALID_TRANSITION]
    assert repo.povs["p1"] == S.PROJECTED


@pytest.mark.asyncio
async def test_missing_pov_is_reported_as_validation_error(engine):
    result = await engine.validate_transition("nope", S.IN_PROGRESS)

    assert not result.valid
    assert result.errors == [POV_NOT_FOUND]


@pytest.mark.asyncio
async def test_validation_requires_all_tasks_completed(engine, repo):
    repo.add_pov("p1", S.IN_PROGRESS, phases=[[True, False], []])

    result = await engine.validate_transition("p1", S.VALIDATION)

    assert not result.valid
    assert result.errors == ["All phases must be completed"]
    assert repo.calls["write_pov_status"] == 0


@pytest.mark.asyncio
async def test_phase_without_tasks_counts_as_completed(engine, repo):
    repo.add_pov("p1", S.IN_PROGRESS, phases=[[True, True], []])

    result = await engine.transition_status("p1", S.VALIDATION)

    assert result.success
    assert [n.template for n in result.notifications] == ["POV_READY_FOR_VALIDATION"]


@pytest.mark.asyncio
async def test_won_notifies_customer(engine, repo):
    repo.add_pov("p1", S.VALIDATION, phases=[[True]])

    result = await engine.transition_status("p1", S.WON)

    assert result.success
    assert result.notifications[0].template == "POV_WON"
    assert result.notifications[0].data == {"notifyCustomer": True}


@pytest.mark.asyncio
async def test_stalled_pov_can_resume(engine, repo):
    repo.add_pov("p1", S.IN_PROGRESS, phases=[[False]])

    stalled = await engine.transition_status("p1", S.STALLED)
    resumed = await engine.transition_status("p1", S.IN_PROGRESS)

    assert stalled.success and resumed.success
    assert resumed.previous_status == S.STALLED
    assert [n.template for n in resumed.notifications] == ["POV_RESUMED"]
    assert repo.povs["p1"] == S.IN_PROGRESS


@pytest.mark.asyncio
async def test_concurrent_change_is_reported(engine, repo):
    repo.add_pov("p1", S.IN_PROGRESS, phases=[[True]])
    repo.write_pov_status = AsyncMock(return_value=False)

    result = await engine.transition_status("p1", S.VALIDATION)

    assert not result.success
    assert result.errors[0].type == "CONCURRENT_MODIFICATION"
    assert result.errors[0].message == "Failed to update PoV status"
    repo.write_pov_status.assert_awaited_once_with("p1", S.VALIDATION, S.IN_PROGRESS)


@pytest.mark.asyncio
async def test_every_failed_condition_is_reported(repo):
    async def never(pov):
        return False

    async def always(pov):
        return True

    engine = StatusTransitionEngine(repo, transitions=(
        StatusTransition(S.PROJECTED, S.IN_PROGRESS, conditions=(
            StatusCondition("A", never, "first"),
            StatusCondition("B", always, "second"),
            StatusCondition("C", never, "third"),
        )),
    ))
    repo.add_pov("p1", S.PROJECTED)

    result = await engine.transition_status("p1", S.IN_PROGRESS)

    assert [e.message for e in result.errors] == ["first", "third"]


@pytest.mark.asyncio
async def test_unconditional_edge_writes_once(engine, repo):
    repo.add_pov("p1", S.VALIDATION)

    result = await engine.transition_status("p1", S.LOST)

    assert result.success
    assert repo.calls["write_pov_status"] == 1
    assert repo.povs["p1"] == S.LOST
