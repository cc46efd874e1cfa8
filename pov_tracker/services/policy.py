"""
services/policy.py

역할 계층(Role Hierarchy) 및 라우트 정책(Route Policy) 정의 파일.

이 파일은 DB를 조회하지 않는 순수한 선언적 정책 계층으로,
라우트 가드와 권한 테이블 초기값(seed)에 사용된다.

주요 기능:
- 역할 상속 관계 (SUPER_ADMIN → ADMIN, USER / ADMIN → USER)
- 라우트별 필요 역할 및 권한 문자열
- 역할별 정적 리소스 권한 규칙 (소유자 / 팀 멤버 / 역할 조건 포함)
- 역할 순서(ROLE_LEVEL) 비교

설계 원칙:
- 부수 효과 없음 (입력이 같으면 결과도 같음)
- 상위 역할은 하위 역할이 가진 권한을 모두 가진다 (단조 증가)
- 동적 권한 평가기(services.permissions)와 독립적으로 동작

관련 파일:
- pov_tracker.core.deps             : require_route / require_min_role 가드
- pov_tracker.services.permissions  : 정적 조건으로 리소스 단위 허용 범위를 좁힘
- scripts/seed_permissions.py       : role_permissions 테이블 초기화

"""

from dataclasses import dataclass, field

from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.models.user import Role


ROLE_LEVEL = {
    Role.USER: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}


# 역할이 추가로 상속받는 역할 목록
ROLE_HIERARCHY: dict[Role, list[Role]] = {
    Role.SUPER_ADMIN: [Role.ADMIN, Role.USER],
    Role.ADMIN: [Role.USER],
}


@dataclass(frozen=True)
class RouteConfig:
    roles: tuple[Role, ...]
    permissions: tuple[str, ...] = ()


_POV_RW = ("read:PoV", "write:PoV")

ROUTES: dict[str, RouteConfig] = {
    # PoV
    "/api/povs": RouteConfig((Role.USER,), _POV_RW),
    "/api/povs/{pov_id}": RouteConfig((Role.USER,), _POV_RW),
    "/api/povs/{pov_id}/phases": RouteConfig((Role.USER,), _POV_RW),
    "/api/povs/{pov_id}/status": RouteConfig((Role.USER,), _POV_RW),
    "/api/teams": RouteConfig((Role.USER,), ("read:team",)),

    # 관리자
    "/api/admin/users": RouteConfig((Role.ADMIN, Role.SUPER_ADMIN), ("manage:users",)),
    "/api/admin/roles": RouteConfig((Role.SUPER_ADMIN,), ("manage:roles",)),
    "/api/admin/permissions": RouteConfig((Role.ADMIN, Role.SUPER_ADMIN), ("manage:permissions",)),
    "/api/admin/audit": RouteConfig((Role.ADMIN, Role.SUPER_ADMIN), ("read:audit",)),
    "/api/admin/settings": RouteConfig((Role.ADMIN, Role.SUPER_ADMIN), ("manage:system",)),

    # 대시보드
    "/api/dashboard/team-activity": RouteConfig((Role.USER,), ("read:activity",)),
    "/api/dashboard/pov-overview": RouteConfig((Role.USER,), ("read:PoV",)),
}


def expand_roles(role: Role) -> list[Role]:
    return [role, *ROLE_HIERARCHY.get(role, [])]


def has_route_access(role: Role, route: str) -> bool:
    config = ROUTES.get(route)
    if config is None:
        return False
    expanded = expand_roles(role)
    return any(r in expanded for r in config.roles)


def get_role_permissions(role: Role) -> list[str]:
    expanded = expand_roles(role)
    seen: dict[str, None] = {}
    for config in ROUTES.values():
        if any(r in expanded for r in config.roles):
            for p in config.permissions:
                seen.setdefault(p, None)
    return list(seen)


def has_permissions(role: Role, permissions: list[str]) -> bool:
    granted = set(get_role_permissions(role))
    return all(p in granted for p in permissions)


def role_at_least(role: Role, minimum: Role) -> bool:
    return ROLE_LEVEL[role] >= ROLE_LEVEL[minimum]


"""
리소스 단위 권한 조건

- is_owner       : 리소스 소유자인지
- is_team_member : 리소스가 속한 팀의 멤버(OWNER / MEMBER)인지
- has_role       : 비어있지 않으면 사용자 역할이 목록에 있어야 함 (하드 게이트)

is_owner 와 is_team_member 가 모두 요구되면 둘 중 하나만 만족해도 통과(OR).

"""

@dataclass(frozen=True)
class Conditions:
    is_owner: bool = False
    is_team_member: bool = False
    has_role: tuple[Role, ...] = ()


@dataclass(frozen=True)
class PermissionRule:
    resource_type: ResourceType
    action: ResourceAction
    conditions: Conditions | None = None


def _rules(resource_type: ResourceType, *actions: ResourceAction,
           conditions: Conditions | None = None) -> list[PermissionRule]:
    return [PermissionRule(resource_type, a, conditions) for a in actions]


A = ResourceAction
T = ResourceType

_OWNER = Conditions(is_owner=True)
_TEAM = Conditions(is_team_member=True)
_OWNER_OR_TEAM = Conditions(is_owner=True, is_team_member=True)


ROLE_PERMISSIONS: dict[Role, list[PermissionRule]] = {
    Role.SUPER_ADMIN: [
        PermissionRule(rt, a) for rt in ResourceType for a in ResourceAction
    ],
    Role.ADMIN: [
        *_rules(T.POV, *ResourceAction),
        *_rules(T.PHASE, A.VIEW, A.CREATE, A.EDIT, A.DELETE),
        *_rules(T.TASK, A.VIEW, A.CREATE, A.EDIT, A.DELETE, A.ASSIGN, A.COMMENT),
        *_rules(T.USER, A.VIEW, A.CREATE, A.EDIT),
        *_rules(T.TEAM, A.VIEW, A.CREATE, A.EDIT),
        *_rules(T.ANALYTICS, A.VIEW),
        *_rules(T.USER_MANAGEMENT, A.VIEW),
        *_rules(T.PERMISSIONS, A.VIEW),
        *_rules(T.AUDIT, A.VIEW),
    ],
    Role.USER: [
        *_rules(T.POV, A.VIEW, conditions=_OWNER_OR_TEAM),
        *_rules(T.POV, A.CREATE),
        *_rules(T.POV, A.EDIT, conditions=_OWNER),
        *_rules(T.POV, A.COMMENT, A.UPLOAD, conditions=_TEAM),
        *_rules(T.PHASE, A.VIEW, A.CREATE, A.EDIT, conditions=_TEAM),
        *_rules(T.TASK, A.VIEW, A.CREATE, A.COMMENT, conditions=_TEAM),
        *_rules(T.TASK, A.EDIT, conditions=_OWNER),
        *_rules(T.TEAM, A.VIEW, conditions=_TEAM),
    ],
}


def find_static_rule(role: Role, resource_type: ResourceType, action: ResourceAction) -> PermissionRule | None:
    for rule in ROLE_PERMISSIONS.get(role, []):
        if rule.resource_type == resource_type and rule.action == action:
            return rule
    return None


def default_role_permission_rows() -> list[tuple[Role, ResourceType, ResourceAction, bool]]:
    """role_permissions 테이블 초기값. 정적 정책에 있는 조합만 enabled=True."""
    rows = []
    for role in (Role.USER, Role.ADMIN):
        for rt in ResourceType:
            for action in ResourceAction:
                rows.append((role, rt, action, find_static_rule(role, rt, action) is not None))
    return rows
