"""

activity.py

감사 로그(Audit Log) / 활동 기록 모델 정의 파일.

이 파일은 모든 권한 판단, 역할 변경, 팀 멤버십 변경,
권한 설정 변경, PoV 상태 전이를 DB에 영구적으로 기록하기 위한
로그 테이블을 정의한다.

운영 중 발생할 수 있는 문제 추적,
권한 오남용 방지, 감사(Audit) 목적을 위한 핵심 모델이다.

설계 원칙:
- 실제 데이터 변경과 로그 기록을 분리
- 로그 데이터는 수정/삭제하지 않는 것을 전제로 설계 (append-only)
- 상세 내용은 구조화된 metadata(JSON)에 담는다

"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pov_tracker.db.base import Base


#  감사 로그 유형 Enum

class ActivityType(str, Enum):
    PERMISSION_CHECK = "PERMISSION_CHECK"
    ROLE_CHANGE = "ROLE_CHANGE"
    TEAM_MEMBERSHIP = "TEAM_MEMBERSHIP"
    PERMISSION_CHANGE = "PERMISSION_CHANGE"
    STATUS_CHANGE = "STATUS_CHANGE"
    USER_STATUS_CHANGE = "USER_STATUS_CHANGE"
    AUTH = "AUTH"


"""
활동 로그 모델

- user_id    : 행위를 수행한(또는 권한 검사를 받은) 사용자 ID
- type       : 로그 유형 (ActivityType 값 또는 자유 문자열)
- action     : 세부 행위 (GRANTED / DENIED / UPDATE / ADD / REMOVE ...)
- metadata   : 구조화된 상세 정보 + 서버 생성 timestamp
- created_at : 기록 시각 (UTC)

"""

class Activity(Base):
    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_user_id", "user_id"),
        Index("ix_activities_type", "type"),
        Index("ix_activities_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    # "metadata" 는 Declarative 예약어라 속성 이름만 details 로 둔다
    details: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
