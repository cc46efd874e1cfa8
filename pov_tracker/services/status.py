"""
services/status.py

PoV 상태 전이 엔진(Status Transition Engine).

이 파일은 PoV 의 생명주기(PROJECTED → IN_PROGRESS → VALIDATION → WON / LOST)를
선언된 전이 표(edge table)로 관리하고,
각 전이의 조건을 평가한 뒤에만 상태를 변경한다.

주요 기능:
- 전이 가능 여부 검증 (조건은 동시에 평가)
- 검증 통과 시에만 상태 변경 (compare-and-set)
- 성공 시 전이에 선언된 알림 의도(notification intent) 반환
- 현재 상태에서 가능한 다음 상태 목록 조회

설계 원칙:
- 잘못된 전이는 예외가 아닌 구조화된 결과 {success: False, errors} 로 반환
- 예외는 저장소 장애 같은 인프라 실패에만 사용
- 알림은 직접 보내지 않는다 (호출 측이 전달)
- 자기 자신으로의 전이(self-loop)는 선언되지 않음

관련 파일:
- pov_tracker.db.repository  : read_pov_status / read_pov_phases / write_pov_status
- pov_tracker.routers.povs   : 상태 전이 API

"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from pov_tracker.db.repository import AuthRepository, PhaseProgress
from pov_tracker.models.pov import PoVStatus

logger = structlog.get_logger(__name__)


POV_NOT_FOUND = "PoV not found"
INVALID_TRANSITION = "Invalid status transition"


@dataclass(frozen=True)
class PoVSnapshot:
    id: str
    status: PoVStatus
    phases: list[PhaseProgress]


@dataclass(frozen=True)
class StatusCondition:
    type: str
    check: Callable[[PoVSnapshot], Awaitable[bool]]
    error_message: str


@dataclass(frozen=True)
class NotificationIntent:
    roles: tuple[str, ...]
    template: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatusTransition:
    from_status: PoVStatus
    to_status: PoVStatus
    conditions: tuple[StatusCondition, ...] = ()
    notifications: tuple[NotificationIntent, ...] = ()


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class TransitionError:
    type: str
    message: str
    details: dict[str, Any] | None = None


@dataclass
class TransitionResult:
    success: bool
    new_status: PoVStatus | None = None
    previous_status: PoVStatus | None = None
    errors: list[TransitionError] = field(default_factory=list)
    notifications: list[NotificationIntent] = field(default_factory=list)


async def has_phases(pov: PoVSnapshot) -> bool:
    return len(pov.phases) > 0


async def all_phases_completed(pov: PoVSnapshot) -> bool:
    # 작업이 없는 단계는 완료로 본다
    return all(all(phase.tasks_completed) for phase in pov.phases)


async def kpi_targets_met(pov: PoVSnapshot) -> bool:
    # TODO: KPI 목표 달성 여부 평가 (목표/실적 테이블이 생기면 고정된 계산 전략 enum 으로 구현)
    logger.warning("kpi_check_not_implemented", pov_id=pov.id)
    return True


_NOTIFY = ("OWNER", "ADMIN")


def _notify(template: str, **data) -> NotificationIntent:
    return NotificationIntent(roles=_NOTIFY, template=template, data=data)


DEFAULT_TRANSITIONS: tuple[StatusTransition, ...] = (
    StatusTransition(
        PoVStatus.PROJECTED,
        PoVStatus.IN_PROGRESS,
        conditions=(StatusCondition("PHASE", has_phases, "PoV must have at least one phase"),),
        notifications=(_notify("POV_STATUS_CHANGE"),),
    ),
    StatusTransition(
        PoVStatus.IN_PROGRESS,
        PoVStatus.VALIDATION,
        conditions=(StatusCondition("PHASE", all_phases_completed, "All phases must be completed"),),
        notifications=(_notify("POV_READY_FOR_VALIDATION"),),
    ),
    StatusTransition(
        PoVStatus.VALIDATION,
        PoVStatus.WON,
        conditions=(StatusCondition("KPI", kpi_targets_met, "KPI targets not met"),),
        notifications=(_notify("POV_WON", notifyCustomer=True),),
    ),
    StatusTransition(
        PoVStatus.IN_PROGRESS,
        PoVStatus.STALLED,
        notifications=(_notify("POV_STALLED"),),
    ),
    StatusTransition(
        PoVStatus.VALIDATION,
        PoVStatus.LOST,
        notifications=(_notify("POV_LOST"),),
    ),
    StatusTransition(
        PoVStatus.STALLED,
        PoVStatus.IN_PROGRESS,
        notifications=(_notify("POV_RESUMED"),),
    ),
)


class StatusTransitionEngine:
    def __init__(self, repository: AuthRepository,
                 transitions: tuple[StatusTransition, ...] = DEFAULT_TRANSITIONS):
        self.repository = repository
        self.transitions = transitions

    def find_transition(self, from_status: PoVStatus, to_status: PoVStatus) -> StatusTransition | None:
        for t in self.transitions:
            if t.from_status == from_status and t.to_status == to_status:
                return t
        return None

    def get_available_transitions(self, current_status: PoVStatus) -> list[PoVStatus]:
        return [t.to_status for t in self.transitions if t.from_status == current_status]

    async def _load(self, pov_id: str) -> PoVSnapshot | None:
        current = await self.repository.read_pov_status(pov_id)
        if current is None:
            return None
        phases = await self.repository.read_pov_phases(pov_id)
        return PoVSnapshot(id=str(pov_id), status=PoVStatus(current), phases=phases)

    async def _check(self, pov: PoVSnapshot, transition: StatusTransition) -> list[str]:
        results = await asyncio.gather(*(c.check(pov) for c in transition.conditions))
        return [c.error_message for c, ok in zip(transition.conditions, results) if not ok]

    async def validate_transition(self, pov_id: str, new_status: PoVStatus) -> ValidationResult:
        valid, errors, _, _ = await self._validate(pov_id, new_status)
        return ValidationResult(valid=valid, errors=errors)

    async def _validate(self, pov_id, new_status):
        pov = await self._load(pov_id)
        if pov is None:
            return False, [POV_NOT_FOUND], None, None

        transition = self.find_transition(pov.status, PoVStatus(new_status))
        if transition is None:
            return False, [INVALID_TRANSITION], pov, None

        errors = await self._check(pov, transition)
        return not errors, errors, pov, transition

    async def transition_status(self, pov_id: str, new_status: PoVStatus) -> TransitionResult:
        new_status = PoVStatus(new_status)
        valid, errors, pov, transition = await self._validate(pov_id, new_status)

        if not valid:
            logger.info("status_transition_rejected", pov_id=str(pov_id), to=new_status.value, errors=errors)
            return TransitionResult(
                success=False,
                errors=[TransitionError(type="CONDITION_NOT_MET", message=m) for m in errors],
            )

        # 검증 시점의 상태가 그대로일 때만 갱신된다
        written = await self.repository.write_pov_status(pov.id, new_status, pov.status)
        if not written:
            logger.info("status_transition_conflict", pov_id=pov.id, expected=pov.status.value)
            return TransitionResult(
                success=False,
                errors=[TransitionError(
                    type="CONCURRENT_MODIFICATION",
                    message="Failed to update PoV status",
                    details={"expectedStatus": pov.status.value},
                )],
            )

        logger.info("status_transitioned", pov_id=pov.id, from_status=pov.status.value, to=new_status.value)
        return TransitionResult(
            success=True,
            new_status=new_status,
            previous_status=pov.status,
            notifications=list(transition.notifications),
        )
