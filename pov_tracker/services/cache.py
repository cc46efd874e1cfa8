"""
services/cache.py

권한 판단 / 팀 멤버십 결과를 짧은 TTL 동안 기억하는 캐시(Permission Cache).

주요 기능:
- (userId, resourceType, resourceId, action) → 허용 여부 캐시 (기본 5분)
- (userId, teamId) → 팀 멤버 여부 캐시 (기본 10분)
- 역할 / 팀 / 리소스 소유 변경 시 명시적 무효화

설계 원칙:
- TTL이 지난 값은 절대 반환하지 않음 (staleness 상한 보장, 강한 일관성은 아님)
- 모듈 전역 싱글턴 대신 프로세스 수명 동안 하나를 만들어 의존성으로 주입
- TTL 만료 외에 LRU 상한(max_entries)으로 메모리 사용량 제한
- 프로세스마다 독립 캐시 (분산 무효화 없음, TTL 범위 내 최종 일관성)
- 단일 이벤트 루프에서만 변경되므로 별도 락을 두지 않음

관련 파일:
- pov_tracker.services.permissions : 캐시 소비자
- pov_tracker.main                 : app.state.permission_cache 생성
- pov_tracker.core.deps            : get_permission_cache 의존성

"""

import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pov_tracker.models.permission import ResourceAction, ResourceType

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """문자열 키 → (값, 만료 시각). 만료 + LRU 상한으로 정리된다."""

    def __init__(self, ttl_seconds: float, max_entries: int | None = None, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.peek(key) is not None

    def peek(self, key: str) -> CacheEntry[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        entry = self.peek(key)
        if entry is not None:
            self._entries.move_to_end(key)
            return entry.value

        value = await compute()
        self.set(key, value)
        return value

    def set(self, key: str, value: T, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
        self._entries.move_to_end(key)
        self._evict()

    def _evict(self) -> None:
        if not self.max_entries:
            return
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_where(self, predicate: Callable[[str], bool]) -> int:
        doomed = [k for k in self._entries if predicate(k)]
        for k in doomed:
            del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()


def _enum_value(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def permission_key(user_id, resource_type: ResourceType | str, resource_id, action: ResourceAction | str) -> str:
    return f"{user_id}:{_enum_value(resource_type)}:{resource_id}:{_enum_value(action)}"


def team_key(user_id, team_id) -> str:
    return f"{user_id}:{team_id}"


class PermissionCache:
    """권한 판단 캐시와 팀 멤버십 캐시 두 개를 함께 소유한다."""

    def __init__(
        self,
        *,
        permission_ttl_seconds: float = 5 * 60,
        team_ttl_seconds: float = 10 * 60,
        max_entries: int | None = 10_000,
        clock: Clock = time.monotonic,
    ):
        self.permissions: TTLCache[bool] = TTLCache(permission_ttl_seconds, max_entries, clock)
        self.teams: TTLCache[bool] = TTLCache(team_ttl_seconds, max_entries, clock)

    @classmethod
    def from_settings(cls, conf) -> "PermissionCache":
        return cls(
            permission_ttl_seconds=conf.PERMISSION_CACHE_TTL_SECONDS,
            team_ttl_seconds=conf.TEAM_CACHE_TTL_SECONDS,
            max_entries=conf.PERMISSION_CACHE_MAX_ENTRIES,
        )

    async def get_permission(self, user_id, resource_type, resource_id, action,
                             compute: Callable[[], Awaitable[bool]]) -> bool:
        return await self.permissions.get(permission_key(user_id, resource_type, resource_id, action), compute)

    async def get_team_membership(self, user_id, team_id, compute: Callable[[], Awaitable[bool]]) -> bool:
        return await self.teams.get(team_key(user_id, team_id), compute)

    def invalidate(self, user_id, resource_type, resource_id, action) -> None:
        self.permissions.invalidate(permission_key(user_id, resource_type, resource_id, action))

    def invalidate_user_permissions(self, user_id) -> None:
        prefix = f"{user_id}:"
        self.permissions.invalidate_where(lambda k: k.startswith(prefix))
        self.teams.invalidate_where(lambda k: k.startswith(prefix))

    def invalidate_resource_permissions(self, resource_type, resource_id) -> None:
        needle = f":{_enum_value(resource_type)}:{resource_id}:"
        self.permissions.invalidate_where(lambda k: needle in k)

    def invalidate_team(self, team_id) -> None:
        suffix = f":{team_id}"
        self.teams.invalidate_where(lambda k: k.endswith(suffix))

    def invalidate_all_permissions(self) -> None:
        self.permissions.clear()

    def clear(self) -> None:
        self.permissions.clear()
        self.teams.clear()
