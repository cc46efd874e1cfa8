# tests/test_policy.py
import pytest

from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.models.user import Role
from pov_tracker.services.policy import (
    ROUTES,
    default_role_permission_rows,
    find_static_rule,
    get_role_permissions,
    has_permissions,
    has_route_access,
    role_at_least,
)

ORDERED = [Role.USER, Role.ADMIN, Role.SUPER_ADMIN]


@pytest.mark.parametrize("route", list(ROUTES))
def test_route_access_is_monotonic_in_role(route):
    allowed = [has_route_access(role, route) for role in ORDERED]
    # 한 번 허용되면 상위 역할은 모두 허용
    assert allowed == sorted(allowed)


def test_role_permissions_grow_with_role():
    user, admin, superadmin = (set(get_role_permissions(r)) for r in ORDERED)

    assert user <= admin <= superadmin
    assert "manage:roles" in superadmin
    assert "manage:roles" not in admin
    assert "manage:users" not in user


def test_role_permissions_have_no_duplicates():
    perms = get_role_permissions(Role.SUPER_ADMIN)
    assert len(perms) == len(set(perms))


def test_route_checks():
    assert has_route_access(Role.USER, "/api/povs")
    assert not has_route_access(Role.USER, "/api/admin/users")
    assert has_route_access(Role.ADMIN, "/api/admin/users")
    assert not has_route_access(Role.ADMIN, "/api/admin/roles")
    assert has_route_access(Role.SUPER_ADMIN, "/api/admin/roles")
    assert not has_route_access(Role.SUPER_ADMIN, "/api/unknown")


def test_has_permissions_requires_all():
    assert has_permissions(Role.USER, ["read:PoV", "write:PoV"])
    assert not has_permissions(Role.USER, ["read:PoV", "manage:users"])
    assert has_permissions(Role.USER, [])


def test_role_at_least():
    assert role_at_least(Role.SUPER_ADMIN, Role.ADMIN)
    assert role_at_least(Role.ADMIN, Role.ADMIN)
    assert not role_at_least(Role.USER, Role.ADMIN)


def test_static_rules():
    edit = find_static_rule(Role.USER, ResourceType.POV, ResourceAction.EDIT)
    assert edit.conditions.is_owner and not edit.conditions.is_team_member

    assert find_static_rule(Role.USER, ResourceType.POV, ResourceAction.CREATE).conditions is None
    assert find_static_rule(Role.USER, ResourceType.POV, ResourceAction.DELETE) is None
    assert find_static_rule(Role.ADMIN, ResourceType.SETTINGS, ResourceAction.EDIT) is None
    assert find_static_rule(Role.SUPER_ADMIN, ResourceType.SETTINGS, ResourceAction.EDIT) is not None


def test_default_rows_cover_user_and_admin_only():
    rows = default_role_permission_rows()

    assert len(rows) == 2 * len(ResourceType) * len(ResourceAction)
    assert {r[0] for r in rows} == {Role.USER, Role.ADMIN}
    enabled = {(r[0], r[1], r[2]) for r in rows if r[3]}
    assert (Role.USER, ResourceType.POV, ResourceAction.VIEW) in enabled
    assert (Role.USER, ResourceType.POV, ResourceAction.DELETE) not in enabled
    assert (Role.ADMIN, ResourceType.POV, ResourceAction.DELETE) in enabled
