# tests/test_pov_flow.py
import uuid

import pytest

from pov_tracker.models.pov import PoV, PoVStatus
from pov_tracker.models.user import Role
from tests.helpers import (
    auth_header,
    count_activities,
    create_pov_in_db,
    create_team_in_db,
    create_user_in_db,
    login,
    seed_role_permissions,
)


@pytest.fixture()
def members(client, db_session):
    """PoV 소유자 / 같은 팀원 / 외부인 + 각자의 access token"""
    seed_role_permissions(db_session)
    owner = create_user_in_db(db_session)
    teammate = create_user_in_db(db_session)
    outsider = create_user_in_db(db_session)
    team = create_team_in_db(db_session, owner, teammate)
    return {
        "owner": owner,
        "teammate": teammate,
        "outsider": outsider,
        "team": team,
        "owner_token": login(client, owner),
        "teammate_token": login(client, teammate),
        "outsider_token": login(client, outsider),
    }


def test_create_and_view_pov_with_permission_matrix(client, members):
    owner_h = auth_header(members["owner_token"])

    created = client.post("/api/povs", json={"title": "Acme PoV", "team_id": str(members["team"].id)}, headers=owner_h)
    assert created.status_code == 201, created.text
    pov = created.json()["data"]
    assert pov["status"] == "PROJECTED"
    assert pov["owner_id"] == str(members["owner"].id)

    as_owner = client.get(f"/api/povs/{pov['id']}", headers=owner_h)
    assert as_owner.status_code == 200, as_owner.text
    data = as_owner.json()["data"]
    assert data["permissions"]["view"] is True
    assert data["permissions"]["edit"] is True
    assert data["permissions"]["delete"] is False
    assert data["permissions"]["assign"] is False
    assert set(data["permissions"]) == {"view", "create", "edit", "delete", "approve", "reject", "assign", "comment", "upload"}
    assert data["available_transitions"] == ["IN_PROGRESS"]

    as_teammate = client.get(f"/api/povs/{pov['id']}", headers=auth_header(members["teammate_token"]))
    assert as_teammate.status_code == 200
    assert as_teammate.json()["data"]["permissions"]["edit"] is False
    assert as_teammate.json()["data"]["permissions"]["comment"] is True

    as_outsider = client.get(f"/api/povs/{pov['id']}", headers=auth_header(members["outsider_token"]))
    assert as_outsider.status_code == 403


def test_unknown_pov_and_team(client, members):
    owner_h = auth_header(members["owner_token"])

    missing = client.get(f"/api/povs/{uuid.uuid4()}", headers=owner_h)
    assert missing.status_code == 404
    assert missing.json()["code"] == "RECORD_NOT_FOUND"

    bad_team = client.post("/api/povs", json={"title": "x", "team_id": str(uuid.uuid4())}, headers=owner_h)
    assert bad_team.status_code == 404


def test_full_status_lifecycle(client, db_session, members):
    owner_h = auth_header(members["owner_token"])
    pov = create_pov_in_db(db_session, members["owner"], team=members["team"])

    no_phase = client.post(f"/api/povs/{pov.id}/status", json={"status": "IN_PROGRESS"}, headers=owner_h)
    assert no_phase.status_code == 400
    assert no_phase.json()["code"] == "VALIDATION_ERROR"
    assert no_phase.json()["errors"][0] == {
        "type": "CONDITION_NOT_MET",
        "message": "PoV must have at least one phase",
        "details": None,
    }

    phase = client.post(f"/api/povs/{pov.id}/phases", json={"name": "Discovery"}, headers=owner_h)
    assert phase.status_code == 201, phase.text
    phase_id = phase.json()["data"]["id"]

    task = client.post(f"/api/povs/{pov.id}/phases/{phase_id}/tasks", json={"title": "Kickoff"}, headers=owner_h)
    assert task.status_code == 201, task.text
    task_id = task.json()["data"]["id"]

    started = client.post(f"/api/povs/{pov.id}/status", json={"status": "IN_PROGRESS"}, headers=owner_h)
    assert started.status_code == 200, started.text
    assert started.json()["data"]["status"] == "IN_PROGRESS"
    assert started.json()["data"]["notifications"][0]["template"] == "POV_STATUS_CHANGE"

    incomplete = client.post(f"/api/povs/{pov.id}/status", json={"status": "VALIDATION"}, headers=owner_h)
    assert incomplete.status_code == 400
    assert incomplete.json()["errors"][0]["message"] == "All phases must be completed"

    done = client.patch(f"/api/povs/{pov.id}/tasks/{task_id}", json={"completed": True}, headers=owner_h)
    assert done.status_code == 200, done.text

    validation = client.post(f"/api/povs/{pov.id}/status", json={"status": "VALIDATION"}, headers=owner_h)
    assert validation.status_code == 200, validation.text

    won = client.post(f"/api/povs/{pov.id}/status", json={"status": "WON"}, headers=owner_h)
    assert won.status_code == 200, won.text
    notification = won.json()["data"]["notifications"][0]
    assert notification["template"] == "POV_WON"
    assert notification["data"] == {"notifyCustomer": True}
    assert notification["roles"] == ["OWNER", "ADMIN"]

    db_session.expire_all()
    assert db_session.get(PoV, pov.id).status == PoVStatus.WON
    assert count_activities(db_session, "STATUS_CHANGE", "UPDATE") == 3


def test_stall_and_resume(client, db_session, members):
    owner_h = auth_header(members["owner_token"])
    pov = create_pov_in_db(db_session, members["owner"], status=PoVStatus.IN_PROGRESS, phases=[[False]])

    transitions = client.get(f"/api/povs/{pov.id}/transitions", headers=owner_h)
    assert transitions.json()["data"] == {"status": "IN_PROGRESS", "available": ["VALIDATION", "STALLED"]}

    stalled = client.post(f"/api/povs/{pov.id}/status", json={"status": "STALLED"}, headers=owner_h)
    assert stalled.status_code == 200, stalled.text

    resumed = client.post(f"/api/povs/{pov.id}/status", json={"status": "IN_PROGRESS"}, headers=owner_h)
    assert resumed.status_code == 200, resumed.text
    assert resumed.json()["data"]["notifications"][0]["template"] == "POV_RESUMED"


def test_invalid_transitions(client, db_session, members):
    owner_h = auth_header(members["owner_token"])
    pov = create_pov_in_db(db_session, members["owner"], phases=[[True]])

    skip = client.post(f"/api/povs/{pov.id}/status", json={"status": "WON"}, headers=owner_h)
    assert skip.status_code == 400
    assert skip.json()["errors"][0]["message"] == "Invalid status transition"

    unknown = client.post(f"/api/povs/{pov.id}/status", json={"status": "DONE"}, headers=owner_h)
    assert unknown.status_code == 400
    assert unknown.json()["code"] == "VALIDATION_ERROR"

    db_session.expire_all()
    assert db_session.get(PoV, pov.id).status == PoVStatus.PROJECTED


def test_only_owner_changes_status(client, db_session, members):
    pov = create_pov_in_db(db_session, members["owner"], team=members["team"], phases=[[True]])

    res = client.post(
        f"/api/povs/{pov.id}/status",
        json={"status": "IN_PROGRESS"},
        headers=auth_header(members["teammate_token"]),
    )

    assert res.status_code == 403
    assert count_activities(db_session, "STATUS_CHANGE") == 0


def test_reassign_refreshes_cached_decisions(client, db_session, members):
    admin = create_user_in_db(db_session, role=Role.ADMIN)
    admin_h = auth_header(login(client, admin))
    teammate_h = auth_header(members["teammate_token"])
    pov = create_pov_in_db(db_session, members["owner"], team=members["team"])

    before = client.get(f"/api/povs/{pov.id}", headers=teammate_h)
    assert before.json()["data"]["permissions"]["edit"] is False

    denied = client.patch(f"/api/povs/{pov.id}", json={"owner_id": str(members["teammate"].id)},
                          headers=auth_header(members["owner_token"]))
    assert denied.status_code == 403

    res = client.patch(f"/api/povs/{pov.id}", json={"owner_id": str(members["teammate"].id)}, headers=admin_h)
    assert res.status_code == 200, res.text
    assert res.json()["data"]["owner_id"] == str(members["teammate"].id)

    after = client.get(f"/api/povs/{pov.id}", headers=teammate_h)
    assert after.json()["data"]["permissions"]["edit"] is True

    empty = client.patch(f"/api/povs/{pov.id}", json={}, headers=admin_h)
    assert empty.status_code == 400


def test_super_admin_sees_everything(client, db_session, members):
    superadmin = create_user_in_db(db_session, role=Role.SUPER_ADMIN)
    pov = create_pov_in_db(db_session, members["owner"])

    res = client.get(f"/api/povs/{pov.id}", headers=auth_header(login(client, superadmin)))

    assert res.status_code == 200, res.text
    assert all(res.json()["data"]["permissions"].values())
