"""
services/permissions.py

권한 평가기(Permission Evaluator).

"사용자 U 가 리소스 R 에 대해 행위 A 를 할 수 있는가?" 를 판단한다.

판단 순서:
1. SUPER_ADMIN 은 캐시 / 권한 테이블 조회 없이 항상 허용 (SUPER_ADMIN_BYPASS 로 감사 기록)
2. 권한 캐시 (userId, resourceType, resourceId, action) 확인
3. 캐시 미스 시 role_permissions 테이블에서 (role, resourceType, action) 조회
   - 행 없음        → 거부 (PERMISSION_NOT_FOUND)
   - enabled=False  → 거부 (PERMISSION_DISABLED)
   - enabled=True   → 역할 단위 허용
4. ENFORCE_RESOURCE_CONDITIONS 가 켜져 있고 정적 정책(services.policy)에
   같은 조합의 조건이 있으면 소유자 / 팀 멤버 / 역할 조건으로 한 번 더 좁힌다
   (CONDITIONS_MET / CONDITIONS_NOT_MET)
5. 판단 결과를 감사 로그에 남기고 캐시에 저장

설계 원칙:
- 여러 행위 검사는 동시에 수행하며 하나가 거부되어도 나머지를 모두 평가
- 저장소 장애는 감사 로그에 남긴 뒤 그대로 전파 (거부로 캐시하지 않음)
- 존재하지 않는 리소스(NotFoundError)는 거부가 아닌 실패로 전파

관련 파일:
- pov_tracker.services.cache      : 권한 / 팀 멤버십 캐시
- pov_tracker.services.resources  : Resource / ResourceResolver
- pov_tracker.services.policy     : 정적 조건 규칙
- pov_tracker.services.audit      : 판단 결과 감사 기록

"""

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from pov_tracker.core.errors import ForbiddenError
from pov_tracker.db.repository import AuthRepository
from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.models.user import Role
from pov_tracker.services.audit import AuditLogger
from pov_tracker.services.cache import PermissionCache
from pov_tracker.services.policy import Conditions, find_static_rule
from pov_tracker.services.resources import Resource, ResourceResolver

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role

    @classmethod
    def of(cls, user) -> "Principal":
        return cls(id=str(user.id), role=Role(user.role))


@dataclass(frozen=True)
class RequestContext:
    ip: str | None = None
    user_agent: str | None = None

    def as_metadata(self) -> dict[str, Any]:
        meta = {}
        if self.ip:
            meta["ip"] = self.ip
        if self.user_agent:
            meta["userAgent"] = self.user_agent
        return meta


class PermissionEvaluator:
    def __init__(
        self,
        repository: AuthRepository,
        cache: PermissionCache,
        audit: AuditLogger,
        *,
        enforce_conditions: bool = True,
        resolver: ResourceResolver | None = None,
    ):
        self.repository = repository
        self.cache = cache
        self.audit = audit
        self.enforce_conditions = enforce_conditions
        self.resolver = resolver or ResourceResolver(repository)

    async def check_permission(self, user, resource: Resource, action: ResourceAction,
                               context: RequestContext | None = None) -> bool:
        principal = Principal.of(user)
        action = ResourceAction(action)
        meta = (context or RequestContext()).as_metadata()

        if principal.role == Role.SUPER_ADMIN:
            await self.audit.log_permission_check(
                principal.id, resource.type, resource.id, action, True,
                {**meta, "reason": "SUPER_ADMIN_BYPASS"},
            )
            return True

        async def compute() -> bool:
            return await self._evaluate(principal, resource, action, meta)

        return await self.cache.get_permission(principal.id, resource.type, resource.id, action, compute)

    async def _evaluate(self, principal: Principal, resource: Resource, action: ResourceAction,
                        meta: dict[str, Any]) -> bool:
        try:
            record = await self.repository.find_role_permission(principal.role, resource.type, action)
            if record is None:
                await self.audit.log_permission_check(
                    principal.id, resource.type, resource.id, action, False,
                    {**meta, "error": "PERMISSION_NOT_FOUND"},
                )
                return False

            if not record.enabled:
                await self.audit.log_permission_check(
                    principal.id, resource.type, resource.id, action, False,
                    {**meta, "enabled": False, "reason": "PERMISSION_DISABLED"},
                )
                return False

            granted = True
            rule = find_static_rule(principal.role, resource.type, action) if self.enforce_conditions else None
            if rule is not None and rule.conditions is not None:
                granted = await self.evaluate_conditions(principal, resource, rule.conditions)

        except Exception as e:
            logger.error(
                "permission_check_failed",
                user_id=principal.id,
                resource_type=resource.type.value,
                resource_id=resource.id,
                action=action.value,
                error=type(e).__name__,
            )
            await self.audit.log_permission_check(
                principal.id, resource.type, resource.id, action, False,
                {**meta, "error": type(e).__name__},
            )
            raise

        await self.audit.log_permission_check(
            principal.id, resource.type, resource.id, action, granted,
            {**meta, "enabled": True, "reason": "CONDITIONS_MET" if granted else "CONDITIONS_NOT_MET"},
        )
        if not granted:
            logger.info(
                "permission_denied",
                user_id=principal.id,
                resource_type=resource.type.value,
                resource_id=resource.id,
                action=action.value,
            )
        return granted

    async def check_permissions(self, user, resource: Resource, actions: list[ResourceAction],
                                context: RequestContext | None = None) -> dict[ResourceAction, bool]:
        actions = [ResourceAction(a) for a in actions]
        results = await asyncio.gather(*(self.check_permission(user, resource, a, context) for a in actions))
        return dict(zip(actions, results))

    """
    리소스 단위 조건 평가

    - has_role 이 비어있지 않으면 사용자 역할이 포함되어야 함 (그 외 조건과 무관하게 실패)
    - is_owner / is_team_member 둘 다 요구되지 않으면 통과
    - 하나만 요구되면 그 결과를 그대로 사용
    - 둘 다 요구되면 둘 중 하나만 만족해도 통과 (OR)

    """

    async def evaluate_conditions(self, user, resource: Resource, conditions: Conditions | None) -> bool:
        if conditions is None:
            return True

        principal = Principal.of(user)
        if conditions.has_role and principal.role not in conditions.has_role:
            return False

        if not conditions.is_owner and not conditions.is_team_member:
            return True

        async def owner_check() -> bool:
            return conditions.is_owner and resource.owner_id is not None and resource.owner_id == principal.id

        async def team_check() -> bool:
            if not conditions.is_team_member or not resource.team_id:
                return False
            return await self.is_team_member(principal.id, resource.team_id)

        is_owner, is_member = await asyncio.gather(owner_check(), team_check())
        return is_owner or is_member

    async def is_team_member(self, user_id, team_id) -> bool:
        async def compute() -> bool:
            return await self.repository.find_team_membership(str(user_id), str(team_id))

        return await self.cache.get_team_membership(str(user_id), str(team_id), compute)

    async def authorize(self, user, resource_type: ResourceType, resource_id, action: ResourceAction,
                        context: RequestContext | None = None) -> Resource:
        """리소스를 조회해 권한을 검사한다. 거부 시 ForbiddenError, 없는 리소스는 NotFoundError."""
        resource = await self.resolver.get_resource_by_id(resource_type, resource_id)
        if not await self.check_permission(user, resource, action, context):
            raise ForbiddenError("Permission denied")
        return resource

    # ---- 캐시 무효화 ----

    def invalidate_user_permissions(self, user_id) -> None:
        self.cache.invalidate_user_permissions(str(user_id))

    def invalidate_resource_permissions(self, resource_type: ResourceType, resource_id) -> None:
        self.cache.invalidate_resource_permissions(resource_type, str(resource_id))

    def invalidate_team_permissions(self, team_id) -> None:
        self.cache.invalidate_team(str(team_id))

    def invalidate_all_permissions(self) -> None:
        # 역할 단위 규칙 변경은 모든 사용자 / 리소스 키에 영향
        self.cache.invalidate_all_permissions()
