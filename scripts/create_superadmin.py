"""

SUPER_ADMIN 초기 계정 생성 스크립트.

- 서버 최초 세팅 시 단 한 번 실행하는 용도
- .env에 정의된 SUPERADMIN_* 환경 변수를 읽어
  이메일 인증이 끝난 ACTIVE 상태의 SUPER_ADMIN 계정을 생성한다.
- 이미 SUPER_ADMIN 계정이 존재하면 생성하지 않고 종료한다.

사용 목적:
- 역할 / 권한 관리 API에 접근할 수 있는
  최상위 관리자 계정을 안전하게 초기화하기 위함

사용 방법
- 가상환경 접속
- (.venv) ~\backend~$ python -m scripts.create_superadmin

"""

import os
from datetime import datetime, timezone

from dotenv import load_dotenv
load_dotenv()

from sqlalchemy import select
from pov_tracker.db.session import SessionLocal
from pov_tracker.models.user import Role, User, UserStatus
from pov_tracker.core.security import get_password_hash


def main():
    db = SessionLocal()
    try:
        exists = db.scalar(
            select(User).where(User.role == Role.SUPER_ADMIN)
        )
        if exists:
            print("✅ SUPER_ADMIN already exists. Skip creation.")
            return

        email = os.environ["SUPERADMIN_EMAIL"]
        password = os.environ["SUPERADMIN_PASSWORD"]
        name = os.environ.get("SUPERADMIN_NAME", "Super Admin")

        email_exists = db.scalar(
            select(User).where(User.email == email)
        )
        if email_exists:
            raise RuntimeError("Email already exists but is not SUPER_ADMIN")

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name,
            role=Role.SUPER_ADMIN,
            status=UserStatus.ACTIVE,
            is_verified=True,
            verified_at=datetime.now(timezone.utc),
        )

        db.add(user)
        db.commit()

        print(f"🚀 SUPER_ADMIN created: {email}")

    finally:
        db.close()


if __name__ == "__main__":
    main()
