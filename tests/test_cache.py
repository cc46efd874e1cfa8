# tests/test_cache.py
import pytest

from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.services.cache import PermissionCache, TTLCache, permission_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def returning(value):
    calls = []

    async def compute():
        calls.append(value)
        return value

    return compute, calls


@pytest.mark.asyncio
async def test_value_is_reused_until_ttl_expires():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    compute, calls = returning(True)

    assert await cache.get("k", compute) is True
    clock.advance(59)
    assert await cache.get("k", compute) is True
    assert len(calls) == 1

    clock.advance(1)
    assert "k" not in cache
    assert await cache.get("k", compute) is True
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_false_is_cached_like_any_other_value():
    cache = TTLCache(ttl_seconds=60, clock=FakeClock())
    compute, calls = returning(False)

    assert await cache.get("k", compute) is False
    assert await cache.get("k", compute) is False
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_failed_compute_is_not_cached():
    cache = TTLCache(ttl_seconds=60, clock=FakeClock())

    async def boom():
        raise RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await cache.get("k", boom)
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_least_recently_used_entry_is_evicted():
    cache = TTLCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)

    compute, _ = returning(0)
    await cache.get("a", compute)
    cache.set("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2


def test_invalidate_user_permissions_clears_both_maps():
    cache = PermissionCache(clock=FakeClock())
    cache.permissions.set(permission_key("u1", ResourceType.POV, "p1", ResourceAction.VIEW), True)
    cache.permissions.set(permission_key("u2", ResourceType.POV, "p1", ResourceAction.VIEW), True)
    cache.teams.set("u1:t1", True)
    cache.teams.set("u2:t1", True)

    cache.invalidate_user_permissions("u1")

    assert len(cache.permissions) == 1
    assert "u2:t1" in cache.teams
    assert "u1:t1" not in cache.teams


def test_invalidate_resource_permissions_matches_type_and_id():
    cache = PermissionCache(clock=FakeClock())
    cache.permissions.set(permission_key("u1", ResourceType.POV, "p1", ResourceAction.VIEW), True)
    cache.permissions.set(permission_key("u2", ResourceType.POV, "p1", ResourceAction.EDIT), False)
    cache.permissions.set(permission_key("u1", ResourceType.POV, "p2", ResourceAction.VIEW), True)
    cache.permissions.set(permission_key("u1", ResourceType.PHASE, "p1", ResourceAction.VIEW), True)

    cache.invalidate_resource_permissions(ResourceType.POV, "p1")

    assert len(cache.permissions) == 2
    assert permission_key("u1", ResourceType.POV, "p2", ResourceAction.VIEW) in cache.permissions
    assert permission_key("u1", ResourceType.PHASE, "p1", ResourceAction.VIEW) in cache.permissions


def test_invalidate_team_only_touches_membership_entries():
    cache = PermissionCache(clock=FakeClock())
    cache.teams.set("u1:t1", True)
    cache.teams.set("u2:t1", False)
    cache.teams.set("u1:t2", True)
    cache.permissions.set(permission_key("u1", ResourceType.TEAM, "t1", ResourceAction.VIEW), True)

    cache.invalidate_team("t1")

    assert len(cache.teams) == 1
    assert len(cache.permissions) == 1


def test_single_key_invalidation():
    cache = PermissionCache(clock=FakeClock())
    cache.permissions.set(permission_key("u1", ResourceType.POV, "p1", ResourceAction.VIEW), True)
    cache.permissions.set(permission_key("u1", ResourceType.POV, "p1", ResourceAction.EDIT), True)

    cache.invalidate("u1", ResourceType.POV, "p1", ResourceAction.VIEW)

    assert len(cache.permissions) == 1


def test_team_entries_use_their_own_ttl():
    clock = FakeClock()
    cache = PermissionCache(permission_ttl_seconds=300, team_ttl_seconds=600, clock=clock)
    cache.permissions.set("u1:pov:p1:view", True)
    cache.teams.set("u1:t1", True)

    clock.advance(301)

    assert "u1:pov:p1:view" not in cache.permissions
    assert "u1:t1" in cache.teams
