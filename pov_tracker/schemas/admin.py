import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.models.user import Role, UserStatus


# 관리자 role 변경 요청용
class RoleUpdate(BaseModel):
    role: Role


# 계정 정지 / 재활성화 요청용
class StatusUpdate(BaseModel):
    status: UserStatus


class PermissionUpdate(BaseModel):
    role: Role
    resource_type: ResourceType
    action: ResourceAction
    enabled: bool


class RolePermissionResponse(BaseModel):
    role: Role
    resource_type: ResourceType
    action: ResourceAction
    enabled: bool

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: uuid.UUID | None = None
    user_id: uuid.UUID
    type: str
    action: str
    metadata: dict[str, Any]
    created_at: datetime | None = None


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: Role
    status: UserStatus

    class Config:
        from_attributes = True
