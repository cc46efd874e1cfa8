# tests/test_session.py
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from pov_tracker.core.errors import AuthError
from pov_tracker.core.security import TokenManager
from pov_tracker.db.repository import RefreshTokenRecord
from pov_tracker.models.user import Role
from pov_tracker.services.session import SessionService
from tests.fakes import FakeRepository


@pytest.fixture()
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture()
def sessions(repo) -> SessionService:
    return SessionService(repo, TokenManager(access_secret="a-secret", refresh_secret="r-secret"))


def make_user():
    return SimpleNamespace(id=uuid.uuid4(), email="user@test.com", role=Role.USER)


@pytest.mark.asyncio
async def test_login_persists_refresh_token(sessions, repo):
    user = make_user()

    issued = await sessions.login(user)

    stored = repo.refresh_tokens[issued.refresh_token]
    assert stored.user_id == str(user.id)
    assert stored.expires_at > datetime.now(timezone.utc) + timedelta(days=6)
    assert sessions.tokens.verify_access_token(issued.access_token).user_id == str(user.id)


@pytest.mark.asyncio
async def test_refresh_issues_new_access_token_and_extends_expiry(sessions, repo):
    user = make_user()
    issued = await sessions.login(user)
    repo.refresh_tokens[issued.refresh_token] = RefreshTokenRecord(
        id=repo.refresh_tokens[issued.refresh_token].id,
        user_id=str(user.id),
        token=issued.refresh_token,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=1),
    )

    refreshed = await sessions.refresh(issued.refresh_token)

    assert refreshed.access_token != issued.access_token
    assert refreshed.payload.email == "user@test.com"
    assert repo.refresh_tokens[issued.refresh_token].expires_at > datetime.now(timezone.utc) + timedelta(days=6)


@pytest.mark.asyncio
async def test_refresh_without_token(sessions):
    with pytest.raises(AuthError) as exc:
        await sessions.refresh(None)
    assert exc.value.message == "No refresh token"


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(sessions):
    issued = await sessions.login(make_user())

    with pytest.raises(AuthError) as exc:
        await sessions.refresh(issued.access_token)
    assert exc.value.message == "Invalid refresh token"


@pytest.mark.asyncio
async def test_revoked_token_cannot_refresh(sessions, repo):
    issued = await sessions.login(make_user())

    assert await sessions.revoke(issued.refresh_token) == 1

    with pytest.raises(AuthError) as exc:
        await sessions.refresh(issued.refresh_token)
    assert exc.value.message == "Invalid refresh token"
    assert repo.calls["touch_refresh_token_expiry"] == 0


@pytest.mark.asyncio
async def test_revoke_all_removes_only_that_users_tokens(sessions, repo):
    user, other = make_user(), make_user()
    await sessions.login(user)
    await sessions.login(user)
    kept = await sessions.login(other)

    assert await sessions.revoke_all(user.id) == 2
    assert list(repo.refresh_tokens) == [kept.refresh_token]
