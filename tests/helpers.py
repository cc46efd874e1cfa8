# tests/helpers.py
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pov_tracker.core.security import get_password_hash
from pov_tracker.models.activity import Activity
from pov_tracker.models.pov import Phase, PoV, PoVStatus, Task
from pov_tracker.models.team import Team, TeamMember, TeamRole
from pov_tracker.models.user import Role, User, UserStatus
from scripts.seed_permissions import seed

DEFAULT_PASSWORD = "Passw0rd!"


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_user_in_db(
    db: Session,
    *,
    email: str | None = None,
    password: str = DEFAULT_PASSWORD,
    role: Role = Role.USER,
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    user = User(
        email=email or f"{role.value.lower()}_{uuid.uuid4().hex[:6]}@test.com",
        password_hash=get_password_hash(password),
        name=role.value,
        role=role,
        status=status,
        is_verified=status != UserStatus.INACTIVE,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login(client, user: User, password: str = DEFAULT_PASSWORD) -> str:
    res = client.post("/api/auth/login", json={"email": user.email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["data"]["access_token"]


def seed_role_permissions(db: Session) -> None:
    seed(db)


def create_team_in_db(db: Session, owner: User, *members: User, name: str = "Team") -> Team:
    team = Team(name=name)
    db.add(team)
    db.flush()
    db.add(TeamMember(team_id=team.id, user_id=owner.id, role=TeamRole.OWNER))
    for m in members:
        db.add(TeamMember(team_id=team.id, user_id=m.id, role=TeamRole.MEMBER))
    db.commit()
    db.refresh(team)
    return team


def create_pov_in_db(
    db: Session,
    owner: User,
    *,
    team: Team | None = None,
    status: PoVStatus = PoVStatus.PROJECTED,
    phases: list[list[bool]] | None = None,
) -> PoV:
    """phases: 단계별 작업 완료 여부 목록 (예: [[True, False], []])"""
    pov = PoV(title="PoV", owner_id=owner.id, team_id=team.id if team else None, status=status)
    db.add(pov)
    db.flush()
    for i, tasks in enumerate(phases or []):
        phase = Phase(pov_id=pov.id, name=f"Phase {i + 1}", order=i)
        db.add(phase)
        db.flush()
        for j, done in enumerate(tasks):
            db.add(Task(phase_id=phase.id, title=f"Task {j + 1}", completed=done))
    db.commit()
    db.refresh(pov)
    return pov


def count_activities(db: Session, type: str, action: str | None = None) -> int:
    stmt = select(func.count()).select_from(Activity).where(Activity.type == type)
    if action:
        stmt = stmt.where(Activity.action == action)
    return db.scalar(stmt)


def get_user(db: Session, user_id) -> User:
    db.expire_all()
    return db.scalar(select(User).where(User.id == uuid.UUID(str(user_id))))
