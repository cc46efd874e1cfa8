"""
pov.py

PoV(Proof of Value) / Phase / Task 모델 정의 파일.

PoV의 status 필드는 상태 전이 엔진(services.status)만 변경하며,
Phase / Task 는 전이 조건(단계 존재 여부, 작업 완료 여부) 평가에 사용된다.

"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pov_tracker.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PoVStatus(str, Enum):
    PROJECTED = "PROJECTED"
    IN_PROGRESS = "IN_PROGRESS"
    VALIDATION = "VALIDATION"
    STALLED = "STALLED"
    WON = "WON"
    LOST = "LOST"


class PoV(Base):
    __tablename__ = "povs"
    __table_args__ = (
        Index("ix_povs_owner_id", "owner_id"),
        Index("ix_povs_team_id", "team_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[PoVStatus] = mapped_column(
        SAEnum(PoVStatus, name="pov_status"), nullable=False, default=PoVStatus.PROJECTED
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("teams.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class Phase(Base):
    __tablename__ = "phases"
    __table_args__ = (
        Index("ix_phases_pov_id", "pov_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    pov_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("povs.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_phase_id", "phase_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    phase_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("phases.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assignee_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
