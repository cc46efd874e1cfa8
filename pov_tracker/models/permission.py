"""
permission.py

역할별 권한(RolePermission) 모델 및 리소스 타입 / 행위 Enum 정의 파일.

정적 정책(services.policy)의 기본값을 DB에 한 행씩 저장해
배포 없이 런타임에 역할별 권한을 켜고 끌 수 있게 한다.

설계 원칙:
- (role, resource_type, action) 조합당 한 행 (unique)
- enabled 플래그 하나로 역할 단위 허용/거부 결정
- SUPER_ADMIN 은 이 테이블을 조회하지 않는다

"""

import uuid
import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pov_tracker.db.base import Base
from pov_tracker.models.user import Role


class ResourceType(str, Enum):
    POV = "pov"
    PHASE = "phase"
    TASK = "task"
    USER = "user"
    TEAM = "team"
    SETTINGS = "settings"
    ANALYTICS = "analytics"
    USER_MANAGEMENT = "user-management"
    PERMISSIONS = "permissions"
    AUDIT = "audit"


class ResourceAction(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    COMMENT = "comment"
    UPLOAD = "upload"


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role", "resource_type", "action", name="uq_role_permissions_triple"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    role: Mapped[Role] = mapped_column(SAEnum(Role, name="user_role"), nullable=False)
    resource_type: Mapped[ResourceType] = mapped_column(SAEnum(ResourceType, name="resource_type"), nullable=False)
    action: Mapped[ResourceAction] = mapped_column(SAEnum(ResourceAction, name="resource_action"), nullable=False)

    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.datetime.now(datetime.timezone.utc),
        onupdate=lambda: datetime.datetime.now(datetime.timezone.utc),
        nullable=False,
    )
