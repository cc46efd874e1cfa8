"""

역할별 권한(role_permissions) 초기화 스크립트.

- services.policy 의 정적 정책을 기준으로 USER / ADMIN 의
  (resource_type, action) 전체 조합을 한 행씩 생성한다.
  정적 정책에 있는 조합은 enabled=True, 나머지는 enabled=False.
- 이미 존재하는 행은 건드리지 않는다 (운영 중 변경한 값 보존).
  --reset 옵션을 주면 기존 행의 enabled 값도 정적 정책 기준으로 되돌린다.

사용 방법
- (.venv) ~\backend~$ python -m scripts.seed_permissions
- (.venv) ~\backend~$ python -m scripts.seed_permissions --reset

"""

import sys

from dotenv import load_dotenv
load_dotenv()

from sqlalchemy import select
from pov_tracker.db.session import SessionLocal
from pov_tracker.models.permission import RolePermission
from pov_tracker.services.policy import default_role_permission_rows


def seed(db, reset: bool = False) -> tuple[int, int]:
    created = updated = 0
    for role, resource_type, action, enabled in default_role_permission_rows():
        row = db.scalar(
            select(RolePermission).where(
                RolePermission.role == role,
                RolePermission.resource_type == resource_type,
                RolePermission.action == action,
            )
        )
        if row is None:
            db.add(RolePermission(role=role, resource_type=resource_type, action=action, enabled=enabled))
            created += 1
        elif reset and row.enabled != enabled:
            row.enabled = enabled
            updated += 1
    db.commit()
    return created, updated


def main():
    reset = "--reset" in sys.argv[1:]
    db = SessionLocal()
    try:
        created, updated = seed(db, reset=reset)
        print(f"✅ role_permissions seeded: {created} created, {updated} reset")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
