"""
povs.py

PoV(Proof of Value) 관리 API.

주요 기능:
- PoV 생성 / 상세 조회 (현재 사용자의 행위별 권한 매트릭스 포함)
- 소유자 / 팀 재지정 (리소스 단위 권한 캐시 무효화)
- 단계(Phase) / 작업(Task) 추가 및 작업 완료 처리
- 가능한 상태 전이 목록 조회 / 상태 전이

설계 원칙:
- 모든 리소스 접근은 PermissionEvaluator 로 판단 (없는 리소스는 404)
- 상태 전이 실패 시 충족되지 않은 조건 메시지를 모두 돌려준다
- 알림은 보내지 않고 전이에 선언된 알림 의도만 응답에 포함

관련 파일:
- pov_tracker.services.permissions : 권한 판단
- pov_tracker.services.status      : 상태 전이 엔진
- pov_tracker.services.audit       : 상태 변경 감사 기록

"""

import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from pov_tracker.core.deps import (
    get_audit_logger,
    get_db,
    get_evaluator,
    get_request_context,
    get_status_engine,
    require_route,
)
from pov_tracker.core.errors import ForbiddenError, ValidationError
from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.models.pov import Phase, PoV, Task
from pov_tracker.models.team import Team
from pov_tracker.models.user import User
from pov_tracker.schemas.pov import PhaseCreate, PoVCreate, PoVReassign, StatusTransitionRequest, TaskCreate, TaskUpdate
from pov_tracker.services.audit import AuditLogger
from pov_tracker.services.permissions import PermissionEvaluator, RequestContext
from pov_tracker.services.resources import collection_resource
from pov_tracker.services.status import StatusTransitionEngine

router = APIRouter(prefix="/api/povs", tags=["povs"])

get_pov_user = require_route("/api/povs")


def _pov_body(pov: PoV) -> dict:
    return {
        "id": str(pov.id),
        "title": pov.title,
        "status": pov.status.value,
        "owner_id": str(pov.owner_id),
        "team_id": str(pov.team_id) if pov.team_id else None,
        "created_at": pov.created_at.isoformat(),
        "updated_at": pov.updated_at.isoformat(),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_pov(
    data: PoVCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    ctx: RequestContext = Depends(get_request_context),
):
    if not await evaluator.check_permission(user, collection_resource(ResourceType.POV), ResourceAction.CREATE, ctx):
        raise ForbiddenError("Permission denied")

    if data.team_id and db.get(Team, data.team_id) is None:
        raise HTTPException(status_code=404, detail="Team not found")

    try:
        pov = PoV(title=data.title, owner_id=user.id, team_id=data.team_id)
        db.add(pov)
        db.commit()
        db.refresh(pov)
    except Exception:
        db.rollback()
        raise

    return {"data": _pov_body(pov)}


"""
PoV 상세 조회 API

- VIEW 권한 필요
- 모든 행위(ResourceAction)에 대한 현재 사용자의 허용 여부를 함께 반환
- 현재 상태에서 가능한 다음 상태 목록 포함

"""

@router.get("/{pov_id}")
async def get_pov(
    pov_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    engine: StatusTransitionEngine = Depends(get_status_engine),
    ctx: RequestContext = Depends(get_request_context),
):
    resource = await evaluator.authorize(user, ResourceType.POV, pov_id, ResourceAction.VIEW, ctx)
    matrix = await evaluator.check_permissions(user, resource, list(ResourceAction), ctx)

    pov = db.get(PoV, pov_id)
    return {
        "data": {
            **_pov_body(pov),
            "permissions": {a.value: allowed for a, allowed in matrix.items()},
            "available_transitions": [s.value for s in engine.get_available_transitions(pov.status)],
        }
    }


"""
소유자 / 팀 재지정 API

- ASSIGN 권한 필요
- 소유자 / 팀이 바뀌면 PoV 와 하위 단계 / 작업의 캐시된 판단이 모두 무효

"""

@router.patch("/{pov_id}")
async def reassign_pov(
    pov_id: uuid.UUID,
    data: PoVReassign,
    db: Session = Depends(get_db),
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.POV, pov_id, ResourceAction.ASSIGN, ctx)

    if data.owner_id is None and data.team_id is None:
        raise HTTPException(status_code=400, detail="No changes provided")
    if data.owner_id and db.get(User, data.owner_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    if data.team_id and db.get(Team, data.team_id) is None:
        raise HTTPException(status_code=404, detail="Team not found")

    pov = db.get(PoV, pov_id)
    try:
        if data.owner_id:
            pov.owner_id = data.owner_id
        if data.team_id:
            pov.team_id = data.team_id
        db.commit()
        db.refresh(pov)
    except Exception:
        db.rollback()
        raise

    evaluator.invalidate_resource_permissions(ResourceType.POV, pov_id)
    phase_ids = db.scalars(select(Phase.id).where(Phase.pov_id == pov_id)).all()
    for phase_id in phase_ids:
        evaluator.invalidate_resource_permissions(ResourceType.PHASE, phase_id)
    task_ids = db.scalars(select(Task.id).join(Phase, Task.phase_id == Phase.id).where(Phase.pov_id == pov_id)).all()
    for task_id in task_ids:
        evaluator.invalidate_resource_permissions(ResourceType.TASK, task_id)

    return {"data": _pov_body(pov)}


@router.post("/{pov_id}/phases", status_code=status.HTTP_201_CREATED)
async def add_phase(
    pov_id: uuid.UUID,
    data: PhaseCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.POV, pov_id, ResourceAction.EDIT, ctx)

    try:
        phase = Phase(pov_id=pov_id, name=data.name, order=data.order)
        db.add(phase)
        db.commit()
        db.refresh(phase)
    except Exception:
        db.rollback()
        raise

    return {
        "data": {
            "id": str(phase.id),
            "pov_id": str(phase.pov_id),
            "name": phase.name,
            "order": phase.order,
        }
    }


@router.post("/{pov_id}/phases/{phase_id}/tasks", status_code=status.HTTP_201_CREATED)
async def add_task(
    pov_id: uuid.UUID,
    phase_id: uuid.UUID,
    data: TaskCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.POV, pov_id, ResourceAction.EDIT, ctx)

    phase = db.get(Phase, phase_id)
    if not phase or phase.pov_id != pov_id:
        raise HTTPException(status_code=404, detail="Phase not found")

    try:
        task = Task(phase_id=phase_id, title=data.title, completed=data.completed, assignee_id=data.assignee_id)
        db.add(task)
        db.commit()
        db.refresh(task)
    except Exception:
        db.rollback()
        raise

    return {
        "data": {
            "id": str(task.id),
            "phase_id": str(task.phase_id),
            "title": task.title,
            "completed": task.completed,
        }
    }


@router.patch("/{pov_id}/tasks/{task_id}")
async def update_task(
    pov_id: uuid.UUID,
    task_id: uuid.UUID,
    data: TaskUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.TASK, task_id, ResourceAction.EDIT, ctx)

    task = db.get(Task, task_id)
    phase = db.get(Phase, task.phase_id)
    if phase.pov_id != pov_id:
        raise HTTPException(status_code=404, detail="Task not found")

    try:
        task.completed = data.completed
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {
        "data": {
            "id": str(task.id),
            "completed": task.completed,
        }
    }


@router.get("/{pov_id}/transitions")
async def list_transitions(
    pov_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    engine: StatusTransitionEngine = Depends(get_status_engine),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.POV, pov_id, ResourceAction.VIEW, ctx)
    pov = db.get(PoV, pov_id)
    return {
        "data": {
            "status": pov.status.value,
            "available": [s.value for s in engine.get_available_transitions(pov.status)],
        }
    }


"""
PoV 상태 전이 API

- EDIT 권한 필요
- 전이 조건을 모두 만족하면 상태를 변경하고 알림 의도 목록 반환
- 실패 시 400 + 충족되지 않은 조건 메시지 전체 (상태는 변경되지 않음)

"""

@router.post("/{pov_id}/status")
async def transition_status(
    pov_id: uuid.UUID,
    data: StatusTransitionRequest,
    user: User = Depends(get_pov_user),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    engine: StatusTransitionEngine = Depends(get_status_engine),
    audit: AuditLogger = Depends(get_audit_logger),
    ctx: RequestContext = Depends(get_request_context),
):
    await evaluator.authorize(user, ResourceType.POV, pov_id, ResourceAction.EDIT, ctx)

    result = await engine.transition_status(str(pov_id), data.status)

    if not result.success:
        raise ValidationError(
            "Status transition failed",
            details=[asdict(e) for e in result.errors],
        )

    await audit.log_status_change(user.id, pov_id, result.previous_status, result.new_status, ctx.as_metadata())

    return {
        "data": {
            "status": result.new_status.value,
            "notifications": [asdict(n) for n in result.notifications],
        }
    }
