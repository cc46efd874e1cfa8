"""
teams.py

팀(Team) 및 팀 멤버십 관리 API.

주요 기능:
- 팀 생성 (생성자는 팀 OWNER 로 등록)
- 팀 상세 / 멤버 목록 조회
- 팀 멤버 추가 / 제거 (감사 로그 + 팀 멤버십 캐시 무효화)

설계 원칙:
- 팀 리소스에 대한 권한은 PermissionEvaluator 로 판단
- 멤버십 변경 후 해당 팀 / 사용자의 캐시된 판단을 즉시 무효화

"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pov_tracker.core.deps import get_audit_logger, get_db, get_evaluator, get_request_context, require_route
from pov_tracker.core.errors import ForbiddenError
from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.models.team import Team, TeamMember, TeamRole
from pov_tracker.models.user import User
from pov_tracker.schemas.pov import TeamCreate, TeamMemberAdd
from pov_tracker.services.audit import AuditLogger
from pov_tracker.services.permissions import PermissionEvaluator, RequestContext
from pov_tracker.services.resources import collection_resource

router = APIRouter(prefix="/api/teams", tags=["teams"])

get_team_user = require_route("/api/teams")


def _team_body(db: Session, team: Team) -> dict:
    members = db.scalars(select(TeamMember).where(TeamMember.team_id == team.id)).all()
    return {
        "id": str(team.id),
        "name": team.name,
        "members": [
            {"user_id": str(m.user_id), "role": m.role.value}
            for m in members
        ],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team(
    data: TeamCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_team_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    ctx: RequestContext = Depends(get_request_context),
):
    if not await evaluator.check_permission(user, collection_resource(ResourceType.TEAM), ResourceAction.CREATE, ctx):
        raise ForbiddenError("Permission denied")

    try:
        team = Team(name=data.name)
        db.add(team)
        db.flush()
        db.add(TeamMember(team_id=team.id, user_id=user.id, role=TeamRole.OWNER))
        db.commit()
        db.refresh(team)
    except Exception:
        db.rollback()
        raise

    return {"data": _team_body(db, team)}


@router.get("/{team_id}")
async def get_team(
    team_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_team_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.TEAM, team_id, ResourceAction.VIEW, ctx)
    team = db.get(Team, team_id)
    return {"data": _team_body(db, team)}


"""
팀 멤버 추가 API

- 팀 EDIT 권한 필요
- 이미 멤버인 사용자는 추가 불가
- 추가 후 해당 팀 멤버십 캐시와 대상 사용자의 권한 캐시 무효화

"""

@router.post("/{team_id}/members", status_code=status.HTTP_201_CREATED)
async def add_member(
    team_id: uuid.UUID,
    data: TeamMemberAdd,
    db: Session = Depends(get_db),
    user: User = Depends(get_team_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    audit: AuditLogger = Depends(get_audit_logger),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.TEAM, team_id, ResourceAction.EDIT, ctx)

    if db.get(User, data.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        db.add(TeamMember(team_id=team_id, user_id=data.user_id, role=data.role))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User already a team member")

    evaluator.invalidate_team_permissions(team_id)
    evaluator.invalidate_resource_permissions(ResourceType.TEAM, team_id)
    evaluator.invalidate_user_permissions(data.user_id)
    await audit.log_team_membership_change(
        user.id, data.user_id, team_id, "ADD", {"teamRole": data.role, **ctx.as_metadata()}
    )

    return {
        "data": {
            "team_id": str(team_id),
            "user_id": str(data.user_id),
            "role": data.role.value,
        }
    }


@router.delete("/{team_id}/members/{user_id}")
async def remove_member(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_team_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    audit: AuditLogger = Depends(get_audit_logger),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.TEAM, team_id, ResourceAction.EDIT, ctx)

    member = db.scalar(
        select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
    )
    if not member:
        raise HTTPException(status_code=404, detail="Team member not found")

    try:
        db.delete(member)
        db.commit()
    except Exception:
        db.rollback()
        raise

    evaluator.invalidate_team_permissions(team_id)
    evaluator.invalidate_resource_permissions(ResourceType.TEAM, team_id)
    evaluator.invalidate_user_permissions(user_id)
    await audit.log_team_membership_change(user.id, user_id, team_id, "REMOVE", ctx.as_metadata())

    return {
        "data": {
            "status": "removed",
        }
    }
