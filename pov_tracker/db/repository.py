"""
repository.py

권한 엔진 / 토큰 수명주기 / 상태 전이 엔진이 사용하는 저장소(Repository) 정의 파일.

코어 서비스는 스키마를 직접 알지 못하고
이 파일의 AuthRepository 프로토콜이 정의한 추상 연산만 사용한다.
SqlAlchemyRepository 는 요청 단위 Session 위에서 이 연산을 구현한다.

설계 원칙:
- 조회는 필요한 컬럼만 projection 하여 가볍게 수행
- 쓰기 연산은 각자 commit 하고, 실패 시 rollback 후 예외를 그대로 전파
- 감사 로그 행 추가 실패 시 rollback 되는 것은 감사 로그 행뿐 (호출 측이 먼저 commit)
- 메서드는 async 이지만 동기 Session 을 사용하므로
  이벤트 루프의 협력적 스케줄링으로 Session 접근이 직렬화된다

NOTE:
- 라우터는 권한 검사 / 감사 로그 기록 전에 자신의 변경 사항을 먼저 commit 해야 한다

관련 파일:
- pov_tracker.services.permissions : 권한 규칙 / 팀 멤버십 조회
- pov_tracker.services.resources   : 소유자 / 팀 조회
- pov_tracker.services.session     : Refresh Token 저장 / 조회 / 폐기
- pov_tracker.services.audit       : 감사 로그 추가 / 조회
- pov_tracker.services.status      : PoV 상태 조회 / 변경

"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pov_tracker.models.activity import Activity
from pov_tracker.models.permission import ResourceAction, ResourceType, RolePermission
from pov_tracker.models.pov import Phase, PoV, PoVStatus, Task
from pov_tracker.models.team import Team, TeamMember, TeamRole
from pov_tracker.models.token import RefreshToken
from pov_tracker.models.user import Role, User


@dataclass(frozen=True)
class RolePermissionRecord:
    role: Role
    resource_type: ResourceType
    action: ResourceAction
    enabled: bool


@dataclass(frozen=True)
class OwnerAndTeam:
    owner_id: str | None = None
    team_id: str | None = None


@dataclass(frozen=True)
class RefreshTokenRecord:
    id: str
    user_id: str
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class PhaseProgress:
    phase_id: str
    tasks_completed: list[bool] = field(default_factory=list)


@dataclass(frozen=True)
class AuditEntry:
    user_id: str
    type: str
    action: str
    metadata: dict[str, Any]
    created_at: datetime | None = None
    id: str | None = None


@dataclass
class AuditFilters:
    user_id: str | None = None
    type: str | None = None
    action: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    resource_type: str | None = None
    resource_id: str | None = None


@dataclass
class AuditPage:
    entries: list[AuditEntry]
    total: int
    page: int
    limit: int
    types: list[str]
    actions: list[str]

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class AuthRepository(Protocol):
    """코어 엔진이 소비하는 저장소 연산."""

    async def find_role_permission(
        self, role: Role, resource_type: ResourceType, action: ResourceAction
    ) -> RolePermissionRecord | None: ...

    async def find_resource_owner_and_team(
        self, resource_type: ResourceType, resource_id: str
    ) -> OwnerAndTeam | None: ...

    async def find_team_membership(self, user_id: str, team_id: str) -> bool: ...

    async def persist_refresh_token(self, user_id: str, token: str, expires_at: datetime) -> None: ...

    async def find_valid_refresh_token(self, token: str, user_id: str) -> RefreshTokenRecord | None: ...

    async def touch_refresh_token_expiry(self, token_id: str, new_expiry: datetime) -> None: ...

    async def delete_refresh_token(self, token: str) -> int: ...

    async def delete_user_refresh_tokens(self, user_id: str) -> int: ...

    async def append_audit_row(self, entry: AuditEntry) -> None: ...

    async def list_audit_rows(self, filters: AuditFilters, page: int, limit: int) -> AuditPage: ...

    async def read_pov_status(self, pov_id: str) -> PoVStatus | None: ...

    async def read_pov_phases(self, pov_id: str) -> list[PhaseProgress]: ...

    async def write_pov_status(self, pov_id: str, new_status: PoVStatus, expected_status: PoVStatus) -> bool: ...


def as_uuid(value: Any) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


class SqlAlchemyRepository:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    # ---- 권한 규칙 / 리소스 ----

    async def find_role_permission(self, role, resource_type, action):
        row = self.db.execute(
            select(RolePermission.enabled).where(
                RolePermission.role == role,
                RolePermission.resource_type == resource_type,
                RolePermission.action == action,
            )
        ).first()
        if row is None:
            return None
        return RolePermissionRecord(role=role, resource_type=resource_type, action=action, enabled=bool(row.enabled))

    async def find_resource_owner_and_team(self, resource_type, resource_id):
        rid = as_uuid(resource_id)
        if rid is None:
            return None

        if resource_type == ResourceType.POV:
            stmt = select(PoV.owner_id, PoV.team_id).where(PoV.id == rid)
        elif resource_type == ResourceType.PHASE:
            stmt = (
                select(PoV.owner_id, PoV.team_id)
                .join(Phase, Phase.pov_id == PoV.id)
                .where(Phase.id == rid)
            )
        elif resource_type == ResourceType.TASK:
            stmt = (
                select(PoV.owner_id, PoV.team_id)
                .join(Phase, Phase.pov_id == PoV.id)
                .join(Task, Task.phase_id == Phase.id)
                .where(Task.id == rid)
            )
        elif resource_type == ResourceType.USER:
            exists = self.db.scalar(select(User.id).where(User.id == rid))
            return OwnerAndTeam() if exists else None
        elif resource_type == ResourceType.TEAM:
            return self._team_owner(rid)
        else:
            raise ValueError(f"Resource type has no backing entity: {resource_type}")

        row = self.db.execute(stmt).first()
        if row is None:
            return None
        return OwnerAndTeam(owner_id=_str_or_none(row.owner_id), team_id=_str_or_none(row.team_id))

    def _team_owner(self, team_id: uuid.UUID) -> OwnerAndTeam | None:
        if self.db.scalar(select(Team.id).where(Team.id == team_id)) is None:
            return None
        owner_id = self.db.scalar(
            select(TeamMember.user_id)
            .where(TeamMember.team_id == team_id, TeamMember.role == TeamRole.OWNER)
            .limit(1)
        )
        # 팀 리소스의 소속 팀은 자기 자신
        return OwnerAndTeam(owner_id=_str_or_none(owner_id), team_id=str(team_id))

    async def find_team_membership(self, user_id, team_id):
        uid, tid = as_uuid(user_id), as_uuid(team_id)
        if uid is None or tid is None:
            return False
        found = self.db.scalar(
            select(TeamMember.id).where(
                TeamMember.user_id == uid,
                TeamMember.team_id == tid,
                TeamMember.role.in_([TeamRole.MEMBER, TeamRole.OWNER]),
            ).limit(1)
        )
        return found is not None

    # ---- Refresh Token ----

    async def persist_refresh_token(self, user_id, token, expires_at):
        self.db.add(RefreshToken(user_id=as_uuid(user_id), token=token, expires_at=expires_at))
        self._commit()

    async def find_valid_refresh_token(self, token, user_id):
        uid = as_uuid(user_id)
        if uid is None:
            return None
        row = self.db.scalar(
            select(RefreshToken).where(
                RefreshToken.token == token,
                RefreshToken.user_id == uid,
                RefreshToken.expires_at > datetime.now(timezone.utc),
            )
        )
        if row is None:
            return None
        return RefreshTokenRecord(id=str(row.id), user_id=str(row.user_id), token=row.token, expires_at=row.expires_at)

    async def touch_refresh_token_expiry(self, token_id, new_expiry):
        self.db.execute(
            update(RefreshToken).where(RefreshToken.id == as_uuid(token_id)).values(expires_at=new_expiry)
        )
        self._commit()

    async def delete_refresh_token(self, token):
        result = self.db.execute(delete(RefreshToken).where(RefreshToken.token == token))
        self._commit()
        return result.rowcount or 0

    async def delete_user_refresh_tokens(self, user_id):
        result = self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == as_uuid(user_id)))
        self._commit()
        return result.rowcount or 0

    # ---- 감사 로그 ----

    async def append_audit_row(self, entry):
        row = Activity(
            user_id=as_uuid(entry.user_id),
            type=entry.type,
            action=entry.action,
            details=entry.metadata,
        )
        self.db.add(row)
        self._commit()

    async def list_audit_rows(self, filters, page, limit):
        conditions = []
        if filters.user_id:
            conditions.append(Activity.user_id == as_uuid(filters.user_id))
        if filters.type:
            conditions.append(Activity.type == filters.type)
        if filters.action:
            conditions.append(Activity.action == filters.action)
        if filters.start_date:
            conditions.append(Activity.created_at >= filters.start_date)
        if filters.end_date:
            conditions.append(Activity.created_at <= filters.end_date)
        if filters.resource_type:
            conditions.append(Activity.details["resourceType"].as_string() == filters.resource_type)
        if filters.resource_id:
            conditions.append(Activity.details["resourceId"].as_string() == filters.resource_id)

        total = self.db.scalar(select(func.count()).select_from(Activity).where(*conditions)) or 0
        rows = self.db.scalars(
            select(Activity)
            .where(*conditions)
            .order_by(Activity.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        types = self.db.scalars(select(Activity.type).distinct()).all()
        actions = self.db.scalars(select(Activity.action).distinct()).all()

        return AuditPage(
            entries=[
                AuditEntry(
                    id=str(r.id),
                    user_id=str(r.user_id),
                    type=r.type,
                    action=r.action,
                    metadata=r.details or {},
                    created_at=r.created_at,
                )
                for r in rows
            ],
            total=total,
            page=page,
            limit=limit,
            types=sorted(types),
            actions=sorted(actions),
        )

    # ---- PoV 상태 ----

    async def read_pov_status(self, pov_id):
        pid = as_uuid(pov_id)
        if pid is None:
            return None
        return self.db.scalar(select(PoV.status).where(PoV.id == pid))

    async def read_pov_phases(self, pov_id):
        pid = as_uuid(pov_id)
        if pid is None:
            return []
        rows = self.db.execute(
            select(Phase.id, Task.completed)
            .outerjoin(Task, Task.phase_id == Phase.id)
            .where(Phase.pov_id == pid)
            .order_by(Phase.order)
        ).all()

        progress: dict[str, list[bool]] = {}
        for phase_id, completed in rows:
            tasks = progress.setdefault(str(phase_id), [])
            if completed is not None:
                tasks.append(bool(completed))
        return [PhaseProgress(phase_id=pid_, tasks_completed=done) for pid_, done in progress.items()]

    async def write_pov_status(self, pov_id, new_status, expected_status):
        # compare-and-set: 검증 이후 다른 요청이 상태를 바꿨다면 0 행 갱신
        result = self.db.execute(
            update(PoV)
            .where(PoV.id == as_uuid(pov_id), PoV.status == expected_status)
            .values(status=new_status, updated_at=datetime.now(timezone.utc))
        )
        self._commit()
        return (result.rowcount or 0) == 1
