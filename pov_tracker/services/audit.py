"""
services/audit.py

감사 로그(Audit Log) 기록 서비스.

이 파일은 권한 판단, 역할 변경, 팀 멤버십 변경,
권한 설정 변경, PoV 상태 전이를 activities 테이블에 기록한다.

라우터 또는 서비스 계층에서 호출되며,
로그 기록 자체는 비즈니스 흐름에 개입하지 않는다.

설계 원칙:
- 감사 로그 기록 실패가 주 기능을 막거나 실패시키지 않음
  (예외는 structlog 로 error 레벨에 남기고 전파하지 않음)
- metadata 에는 서버에서 생성한 timestamp 를 먼저 넣고 호출 측 값으로 덮어쓴다
- 로그 데이터는 수정/삭제하지 않는 것을 전제로 설계

관련 파일:
- pov_tracker.models.activity      : Activity 모델 / ActivityType
- pov_tracker.db.repository        : append_audit_row / list_audit_rows
- pov_tracker.routers.admin        : 감사 로그 조회 API

"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from pov_tracker.db.repository import AuditEntry, AuditFilters, AuditPage, AuthRepository
from pov_tracker.models.activity import ActivityType

logger = structlog.get_logger(__name__)


def _plain(value: Any) -> Any:
    # JSON 컬럼에 들어갈 수 있는 값으로 변환
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class AuditLogger:
    def __init__(self, repository: AuthRepository):
        self.repository = repository

    """
    활동 기록 공통 함수

    - user_id  : 행위자(또는 권한 검사 대상) 사용자 ID
    - type     : 로그 유형
    - action   : 세부 행위
    - metadata : 구조화된 상세 정보 (timestamp 위에 병합)

    NOTE:
    - 어떤 예외도 호출 측으로 전파하지 않는다

    """

    async def track_activity(self, user_id, type: ActivityType | str, action: str,
                             metadata: dict[str, Any] | None = None) -> None:
        merged = {"timestamp": datetime.now(timezone.utc).isoformat(), **(metadata or {})}
        entry = AuditEntry(
            user_id=str(user_id),
            type=_plain(type),
            action=_plain(action),
            metadata=_plain(merged),
        )
        try:
            await self.repository.append_audit_row(entry)
        except Exception:
            logger.exception("audit_write_failed", user_id=entry.user_id, type=entry.type, action=entry.action)

    async def log_permission_check(self, user_id, resource_type, resource_id, action, granted: bool,
                                   metadata: dict[str, Any] | None = None) -> None:
        await self.track_activity(
            user_id,
            ActivityType.PERMISSION_CHECK,
            "GRANTED" if granted else "DENIED",
            {
                "resourceType": resource_type,
                "resourceId": str(resource_id),
                "action": action,
                "success": granted,
                **(metadata or {}),
            },
        )

    async def log_role_change(self, user_id, target_user_id, old_role, new_role,
                              metadata: dict[str, Any] | None = None) -> None:
        await self.track_activity(
            user_id,
            ActivityType.ROLE_CHANGE,
            "UPDATE",
            {"targetUserId": str(target_user_id), "oldRole": old_role, "newRole": new_role, **(metadata or {})},
        )

    async def log_team_membership_change(self, user_id, target_user_id, team_id, action: str,
                                         metadata: dict[str, Any] | None = None) -> None:
        # action: ADD / REMOVE
        await self.track_activity(
            user_id,
            ActivityType.TEAM_MEMBERSHIP,
            action,
            {"targetUserId": str(target_user_id), "teamId": str(team_id), **(metadata or {})},
        )

    async def log_permission_change(self, user_id, role, resource_type, action, old_value: bool | None,
                                    new_value: bool, metadata: dict[str, Any] | None = None) -> None:
        await self.track_activity(
            user_id,
            ActivityType.PERMISSION_CHANGE,
            "UPDATE",
            {
                "role": role,
                "resourceType": resource_type,
                "action": action,
                "oldValue": old_value,
                "newValue": new_value,
                **(metadata or {}),
            },
        )

    async def log_status_change(self, user_id, pov_id, old_status, new_status,
                                metadata: dict[str, Any] | None = None) -> None:
        await self.track_activity(
            user_id,
            ActivityType.STATUS_CHANGE,
            "UPDATE",
            {
                "resourceType": "pov",
                "resourceId": str(pov_id),
                "oldStatus": old_status,
                "newStatus": new_status,
                **(metadata or {}),
            },
        )

    async def get_audit_logs(self, filters: AuditFilters, page: int = 1, limit: int = 50) -> AuditPage:
        # 조회는 감사 기록과 달리 실패를 그대로 전파한다
        return await self.repository.list_audit_rows(filters, max(page, 1), max(limit, 1))
