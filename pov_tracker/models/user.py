"""
user.py

사용자(User) 및 권한(Role) / 계정 상태(UserStatus) 모델 정의 파일.

이 파일은 PoV 트래커 사용자의 기본 정보와
권한(Role), 계정 상태, 이메일 인증 정보를 관리한다.

모든 인증, 권한 평가, 관리자 기능의 기준이 되는 핵심 모델이다.

"""

import uuid
import datetime
from enum import Enum

from sqlalchemy import String, Boolean, DateTime, Enum as SAEnum, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pov_tracker.db.base import Base


"""
사용자 권한(Role) 정의

- USER         : 일반 사용자 (자신이 소유하거나 팀에 속한 PoV만 다룸)
- ADMIN        : 관리자
- SUPER_ADMIN  : 최고 관리자 (모든 권한 검사를 우회)

USER < ADMIN < SUPER_ADMIN 의 엄격한 순서를 가진다.

"""

class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


"""
계정 상태(UserStatus) 정의

- ACTIVE     : 이메일 인증이 끝난 정상 계정
- INACTIVE   : 가입 후 이메일 인증 대기
- SUSPENDED  : 관리자에 의해 정지된 계정

"""

class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


"""
사용자(User) 모델

- email 은 고유 식별자
- role 을 통해 역할 기반 접근 제어
- status / is_verified 로 가입 → 인증 → 정지 라이프사이클 관리

"""

class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    role: Mapped[Role] = mapped_column(SAEnum(Role, name="user_role"), nullable=False, default=Role.USER)
    status: Mapped[UserStatus] = mapped_column(
        SAEnum(UserStatus, name="user_status"), nullable=False, default=UserStatus.INACTIVE
    )

    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verification_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    verified_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_login: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
