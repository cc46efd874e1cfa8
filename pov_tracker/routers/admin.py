"""
admin.py

관리자(Admin) 전용 API 모음.

주요 기능:
- 사용자 목록 조회
- 사용자 역할 변경 (감사 로그 + 권한 캐시 무효화)
- 계정 정지 / 재활성화 (정지 시 모든 Refresh Token 폐기)
- 역할별 권한(role_permissions) 조회 / 변경
- 감사 로그 조회 (필터 / 페이지네이션)

설계 원칙:
- 라우트 정책(services.policy.ROUTES)으로 1차 접근 제어
- DB 변경을 먼저 commit 한 뒤 감사 로그 기록 / 캐시 무효화
- ADMIN 규칙 변경과 ADMIN 이상 역할 변경은 SUPER_ADMIN 만 가능

관련 파일:
- pov_tracker.services.admin        : 역할 변경 정책 / 권한 행 upsert
- pov_tracker.services.audit        : 감사 로그 기록 / 조회
- pov_tracker.services.permissions  : 캐시 무효화

"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from pov_tracker.core.deps import (
    get_audit_logger,
    get_db,
    get_evaluator,
    get_request_context,
    get_session_service,
    require_route,
)
from pov_tracker.core.errors import ForbiddenError
from pov_tracker.db.repository import AuditFilters
from pov_tracker.models.activity import ActivityType
from pov_tracker.models.user import Role, User, UserStatus
from pov_tracker.schemas.admin import (
    AuditLogResponse,
    PermissionUpdate,
    RolePermissionResponse,
    RoleUpdate,
    StatusUpdate,
    UserResponse,
)
from pov_tracker.services.admin import list_role_permissions, role_change_error, upsert_role_permission
from pov_tracker.services.audit import AuditLogger
from pov_tracker.services.permissions import PermissionEvaluator, RequestContext
from pov_tracker.services.session import SessionService

router = APIRouter(prefix="/api/admin", tags=["admin"])

get_users_admin = require_route("/api/admin/users")
get_permissions_admin = require_route("/api/admin/permissions")
get_audit_admin = require_route("/api/admin/audit")


# 전체 회원 목록 조회 엔드포인트(관리자 전용)
@router.get("/users")
def list_users(
    db: Session = Depends(get_db),
    _: User = Depends(get_users_admin),
):
    users = db.scalars(select(User).order_by(User.created_at)).all()
    return {
        "data": [UserResponse.model_validate(u).model_dump(mode="json") for u in users]
    }


# 관리자가 회원 권한을 변경하는 엔드포인트
@router.patch("/users/{user_id}/role")
async def set_role(
    user_id: uuid.UUID,
    data: RoleUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_users_admin),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    audit: AuditLogger = Depends(get_audit_logger),
    ctx: RequestContext = Depends(get_request_context),
):
    user = db.scalar(select(User).where(User.id == user_id))

    # 해당 사용자가 존재하지 않는 경우
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    # 이미 해당 권한인 경우
    if user.role == data.role:
        raise HTTPException(status_code=400, detail=f"User already {user.role.value}")

    error = role_change_error(db, current_admin, user, data.role)
    if error:
        raise ForbiddenError(error)

    before = user.role

    try:
        user.role = data.role
        db.commit()
        db.refresh(user)
    except Exception:
        db.rollback()
        raise

    evaluator.invalidate_user_permissions(user.id)
    await audit.log_role_change(current_admin.id, user.id, before, user.role, ctx.as_metadata())

    return {
        "message": "Role updated",
        "data": {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
        },
    }


# 계정 정지 / 재활성화 엔드포인트
@router.patch("/users/{user_id}/status")
async def set_status(
    user_id: uuid.UUID,
    data: StatusUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_users_admin),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    sessions: SessionService = Depends(get_session_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    user = db.scalar(select(User).where(User.id == user_id))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.id == current_admin.id:
        raise HTTPException(status_code=400, detail="Cannot change your own status")

    if user.role == Role.SUPER_ADMIN and current_admin.role != Role.SUPER_ADMIN:
        raise ForbiddenError("Cannot change SUPER_ADMIN status")

    before = user.status

    try:
        user.status = data.status
        db.commit()
    except Exception:
        db.rollback()
        raise

    # 정지된 계정은 기존 세션으로 재발급 받을 수 없어야 한다
    if data.status == UserStatus.SUSPENDED:
        await sessions.revoke_all(user.id)

    evaluator.invalidate_user_permissions(user.id)
    await audit.track_activity(
        current_admin.id,
        ActivityType.USER_STATUS_CHANGE,
        "UPDATE",
        {"targetUserId": str(user.id), "oldStatus": before, "newStatus": data.status},
    )

    return {
        "data": {
            "id": str(user.id),
            "status": user.status.value,
        }
    }


# 역할별 권한 목록 조회 엔드포인트
@router.get("/permissions")
def list_permissions(
    role: Role | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_permissions_admin),
):
    rows = list_role_permissions(db, role)
    return {
        "data": [RolePermissionResponse.model_validate(r).model_dump(mode="json") for r in rows]
    }


"""
역할 권한 변경 API

- (role, resource_type, action) 행을 생성하거나 enabled 값을 변경
- ADMIN 규칙은 SUPER_ADMIN 만 변경 가능
- SUPER_ADMIN 은 권한 테이블을 조회하지 않으므로 규칙 변경 대상이 아님
- 역할 단위 규칙은 모든 사용자의 캐시된 판단에 영향을 주므로 권한 캐시 전체 무효화

"""

@router.put("/permissions")
async def update_permission(
    data: PermissionUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_permissions_admin),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    audit: AuditLogger = Depends(get_audit_logger),
    ctx: RequestContext = Depends(get_request_context),
):
    if data.role == Role.SUPER_ADMIN:
        raise HTTPException(status_code=400, detail="SUPER_ADMIN permissions cannot be modified")

    if data.role == Role.ADMIN and current_admin.role != Role.SUPER_ADMIN:
        raise ForbiddenError("Only SUPER_ADMIN can modify ADMIN permissions")

    try:
        row, before = upsert_role_permission(db, data.role, data.resource_type, data.action, data.enabled)
        db.commit()
        db.refresh(row)
    except Exception:
        db.rollback()
        raise

    evaluator.invalidate_all_permissions()
    await audit.log_permission_change(
        current_admin.id, data.role, data.resource_type, data.action, before, data.enabled, ctx.as_metadata()
    )

    return {
        "message": "Permission updated",
        "data": RolePermissionResponse.model_validate(row).model_dump(mode="json"),
    }


# 감사 로그 조회 엔드포인트
@router.get("/audit")
async def list_audit_logs(
    user_id: uuid.UUID | None = None,
    type: str | None = None,
    action: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    _: User = Depends(get_audit_admin),
    audit: AuditLogger = Depends(get_audit_logger),
):
    filters = AuditFilters(
        user_id=str(user_id) if user_id else None,
        type=type,
        action=action,
        start_date=start_date,
        end_date=end_date,
        resource_type=resource_type,
        resource_id=resource_id,
    )
    result = await audit.get_audit_logs(filters, page, limit)

    return {
        "data": [
            AuditLogResponse(
                id=e.id,
                user_id=e.user_id,
                type=e.type,
                action=e.action,
                metadata=e.metadata,
                created_at=e.created_at,
            ).model_dump(mode="json")
            for e in result.entries
        ],
        "meta": {
            "total": result.total,
            "pages": result.pages,
            "current": result.page,
            "limit": result.limit,
        },
        "filters": {
            "types": result.types,
            "actions": result.actions,
        },
    }
