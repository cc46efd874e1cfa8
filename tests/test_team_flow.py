# tests/test_team_flow.py
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


def test_admin_creates_team_and_becomes_owner(client, db_session):
    seed_role_permissions(db_session)
    admin = create_user_in_db(db_session, role=Role.ADMIN)

    res = client.post("/api/teams", json={"name": "Sales East"}, headers=auth_header(login(client, admin)))

    assert res.status_code == 201, res.text
    members = res.json()["data"]["members"]
    assert members == [{"user_id": str(admin.id), "role": "OWNER"}]


def test_user_cannot_create_team_by_default(client, db_session):
    seed_role_permissions(db_session)
    user = create_user_in_db(db_session)

    res = client.post("/api/teams", json={"name": "Mine"}, headers=auth_header(login(client, user)))

    assert res.status_code == 403


def test_membership_changes_are_audited_and_take_effect(client, db_session):
    seed_role_permissions(db_session)
    admin = create_user_in_db(db_session, role=Role.ADMIN)
    owner = create_user_in_db(db_session)
    user = create_user_in_db(db_session)
    team = create_team_in_db(db_session, owner)
    pov = create_pov_in_db(db_session, owner, team=team)
    admin_h = auth_header(login(client, admin))
    user_h = auth_header(login(client, user))

    assert client.get(f"/api/teams/{team.id}", headers=user_h).status_code == 403
    assert client.get(f"/api/povs/{pov.id}", headers=user_h).status_code == 403

    added = client.post(f"/api/teams/{team.id}/members", json={"user_id": str(user.id)}, headers=admin_h)
    assert added.status_code == 201, added.text
    assert added.json()["data"]["role"] == "MEMBER"

    assert client.get(f"/api/teams/{team.id}", headers=user_h).status_code == 200
    assert client.get(f"/api/povs/{pov.id}", headers=user_h).status_code == 200

    duplicate = client.post(f"/api/teams/{team.id}/members", json={"user_id": str(user.id)}, headers=admin_h)
    assert duplicate.status_code == 400

    removed = client.delete(f"/api/teams/{team.id}/members/{user.id}", headers=admin_h)
    assert removed.status_code == 200, removed.text

    assert client.get(f"/api/teams/{team.id}", headers=user_h).status_code == 403
    assert client.get(f"/api/povs/{pov.id}", headers=user_h).status_code == 403

    assert count_activities(db_session, "TEAM_MEMBERSHIP", "ADD") == 1
    assert count_activities(db_session, "TEAM_MEMBERSHIP", "REMOVE") == 1


def test_team_owner_sees_team_but_cannot_manage_members(client, db_session):
    seed_role_permissions(db_session)
    owner = create_user_in_db(db_session)
    other = create_user_in_db(db_session)
    team = create_team_in_db(db_session, owner)
    owner_h = auth_header(login(client, owner))

    view = client.get(f"/api/teams/{team.id}", headers=owner_h)
    assert view.status_code == 200, view.text
    assert view.json()["data"]["name"] == "Team"

    add = client.post(f"/api/teams/{team.id}/members", json={"user_id": str(other.id)}, headers=owner_h)
    assert add.status_code == 403


def test_missing_member_and_user(client, db_session):
    seed_role_permissions(db_session)
    admin = create_user_in_db(db_session, role=Role.ADMIN)
    owner = create_user_in_db(db_session)
    outsider = create_user_in_db(db_session)
    team = create_team_in_db(db_session, owner)
    admin_h = auth_header(login(client, admin))

    missing_member = client.delete(f"/api/teams/{team.id}/members/{outsider.id}", headers=admin_h)
    assert missing_member.status_code == 404
