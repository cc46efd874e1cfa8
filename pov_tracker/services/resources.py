"""
services/resources.py

리소스 조회기(Resource Resolver).

(resourceType, resourceId) 를 권한 평가에 필요한
Resource(id, type, owner_id, team_id) 로 변환한다.

- pov           : PoV 자신의 소유자 / 팀
- phase, task   : 상위 PoV 의 소유자 / 팀
- user          : 소유자 / 팀 없음
- team          : 팀 역할이 OWNER 인 멤버를 소유자로, 팀 자신을 소속 팀으로 사용
- settings 등   : 관리 화면 단위의 싱글턴 리소스 (id = 타입 값, 조회 없음)

존재하지 않는 엔티티는 NotFoundError 로 실패한다.
권한 평가기는 이를 "거부" 가 아닌 하드 실패로 취급해야 한다.

"""

from dataclasses import dataclass

from pov_tracker.core.errors import NotFoundError
from pov_tracker.db.repository import AuthRepository
from pov_tracker.models.permission import ResourceType


SINGLETON_TYPES = frozenset({
    ResourceType.SETTINGS,
    ResourceType.ANALYTICS,
    ResourceType.USER_MANAGEMENT,
    ResourceType.PERMISSIONS,
    ResourceType.AUDIT,
})


@dataclass(frozen=True)
class Resource:
    id: str
    type: ResourceType
    owner_id: str | None = None
    team_id: str | None = None


def singleton_resource(resource_type: ResourceType) -> Resource:
    return Resource(id=resource_type.value, type=resource_type)


# 아직 존재하지 않는 리소스의 생성 권한 검사용 (역할 단위 판단만 가능)
COLLECTION_ID = "*"


def collection_resource(resource_type: ResourceType) -> Resource:
    return Resource(id=COLLECTION_ID, type=resource_type)


class ResourceResolver:
    def __init__(self, repository: AuthRepository):
        self.repository = repository

    async def get_resource_by_id(self, resource_type: ResourceType | str, resource_id: str) -> Resource:
        try:
            resource_type = ResourceType(resource_type)
        except ValueError:
            raise NotFoundError(f"Unknown resource type: {resource_type}") from None

        if resource_type in SINGLETON_TYPES:
            return singleton_resource(resource_type)

        found = await self.repository.find_resource_owner_and_team(resource_type, str(resource_id))
        if found is None:
            raise NotFoundError(f"{resource_type.value} not found")

        return Resource(
            id=str(resource_id),
            type=resource_type,
            owner_id=found.owner_id,
            team_id=found.team_id,
        )
