import uuid

from pydantic import BaseModel, Field

from pov_tracker.models.pov import PoVStatus
from pov_tracker.models.team import TeamRole


class PoVCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    team_id: uuid.UUID | None = None


class PoVReassign(BaseModel):
    owner_id: uuid.UUID | None = None
    team_id: uuid.UUID | None = None


class PhaseCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    order: int = 0


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    completed: bool = False
    assignee_id: uuid.UUID | None = None


class TaskUpdate(BaseModel):
    completed: bool


class StatusTransitionRequest(BaseModel):
    status: PoVStatus


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class TeamMemberAdd(BaseModel):
    user_id: uuid.UUID
    role: TeamRole = TeamRole.MEMBER
