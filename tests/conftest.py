import os

# 설정 객체가 import 시점에 생성되므로 pov_tracker import 전에 환경 변수를 채운다
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-access-secret")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pov_tracker.main import app as fastapi_app
from pov_tracker.core.config import settings
from pov_tracker.core.deps import get_db
from pov_tracker.db.base import Base
from pov_tracker.services.cache import PermissionCache

# ✅ 모델 import (Base.metadata에 테이블 등록)
import pov_tracker.models.activity  # noqa: F401
import pov_tracker.models.permission  # noqa: F401
import pov_tracker.models.pov  # noqa: F401
import pov_tracker.models.team  # noqa: F401
import pov_tracker.models.token  # noqa: F401
import pov_tracker.models.user  # noqa: F401


TEST_DB_URL = settings.TEST_DATABASE_URL or os.getenv("TEST_DATABASE_URL")

if TEST_DB_URL:
    engine = create_engine(TEST_DB_URL, pool_pre_ping=True)
else:
    # 별도 DB가 없으면 프로세스 내 sqlite 하나를 모든 세션이 공유
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_test_db():
    """테스트마다 스키마를 새로 만든다 (테이블 + row 모두 초기화)"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    """테스트에서 직접 DB 조작할 때 쓰는 세션"""
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def permission_cache():
    return PermissionCache()


@pytest.fixture()
def client(permission_cache):
    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.state.permission_cache = permission_cache
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
