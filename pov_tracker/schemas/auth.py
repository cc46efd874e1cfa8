import uuid
from pydantic import BaseModel, EmailStr, Field

from pov_tracker.models.user import Role, UserStatus


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=64)
    name: str = Field(min_length=1, max_length=100)

class RegisterResponse(BaseModel):
    id: uuid.UUID
    email: EmailStr

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class MeResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: Role
    status: UserStatus

    class Config:
        from_attributes = True  # SQLAlchemy → Pydantic 변환
