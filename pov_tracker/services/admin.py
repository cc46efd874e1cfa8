"""
services/admin.py

관리자 관련 비즈니스 로직(Service) 모음.

이 파일은 관리자 기능에서 공통으로 사용되는
순수 비즈니스 로직을 담당한다.
라우터에서는 이 파일의 함수를 호출하여
DB 조회/검증/정책 판단을 수행한다.

주요 기능:
- 현재 SUPER_ADMIN 계정 수 계산
- 역할 변경 가능 여부 판단 (누가 누구를 어떤 역할로)
- role_permissions 행 조회 / upsert

설계 원칙:
- HTTP / FastAPI 의존성 없음
- 트랜잭션 제어는 라우터에서 수행
- 관리자 정책(마지막 SUPER_ADMIN 보호 등)을 중앙에서 관리

관련 파일:
- pov_tracker.models.user         : User / Role 모델
- pov_tracker.models.permission   : RolePermission 모델
- pov_tracker.routers.admin       : 관리자 API

"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pov_tracker.models.permission import ResourceAction, ResourceType, RolePermission
from pov_tracker.models.user import Role, User


"""
현재 SUPER_ADMIN 계정 수를 반환

- 마지막 SUPER_ADMIN 강등 방지 로직에서 사용

"""

def count_super_admins(db: Session) -> int:
    return db.scalar(
        select(func.count()).select_from(User).where(User.role == Role.SUPER_ADMIN)
    ) or 0


"""
역할 변경 가능 여부 판단

- 자기 자신의 역할은 변경할 수 없음
- ADMIN 이상으로 올리거나, ADMIN 이상인 사용자의 역할을 바꾸는 것은 SUPER_ADMIN 만 가능
- 마지막 SUPER_ADMIN 은 강등할 수 없음

반환값: 거부 사유 문자열 (허용 시 None)

"""

def role_change_error(db: Session, actor: User, target: User, new_role: Role) -> str | None:
    if actor.id == target.id:
        return "Cannot change your own role"

    privileged = (Role.ADMIN, Role.SUPER_ADMIN)
    if (new_role in privileged or target.role in privileged) and actor.role != Role.SUPER_ADMIN:
        return "Only SUPER_ADMIN can change ADMIN-level roles"

    if target.role == Role.SUPER_ADMIN and new_role != Role.SUPER_ADMIN and count_super_admins(db) <= 1:
        return "Cannot demote the last SUPER_ADMIN"

    return None


def list_role_permissions(db: Session, role: Role | None = None) -> list[RolePermission]:
    stmt = select(RolePermission).order_by(
        RolePermission.role, RolePermission.resource_type, RolePermission.action
    )
    if role is not None:
        stmt = stmt.where(RolePermission.role == role)
    return list(db.scalars(stmt).all())


"""
역할 권한 upsert

- (role, resource_type, action) 행이 없으면 생성, 있으면 enabled 갱신
- 반환값: (행, 변경 전 enabled 값 또는 None)

NOTE:
- db.commit()은 호출 측(라우터)에서 수행

"""

def upsert_role_permission(
    db: Session,
    role: Role,
    resource_type: ResourceType,
    action: ResourceAction,
    enabled: bool,
) -> tuple[RolePermission, bool | None]:
    row = db.scalar(
        select(RolePermission).where(
            RolePermission.role == role,
            RolePermission.resource_type == resource_type,
            RolePermission.action == action,
        )
    )
    if row is None:
        row = RolePermission(role=role, resource_type=resource_type, action=action, enabled=enabled)
        db.add(row)
        return row, None

    before = row.enabled
    row.enabled = enabled
    return row, before
