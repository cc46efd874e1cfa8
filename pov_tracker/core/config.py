"""
config.py

애플리케이션 전역 설정(Configuration) 관리 파일.

이 파일은 .env 환경 변수들을 Pydantic BaseSettings를 통해 로드하여
애플리케이션 전반에서 공통으로 사용하는 설정 값을 제공한다.

주요 설정 항목:
- 데이터베이스 연결 정보
- JWT 인증 관련 시크릿 및 만료 정책 (access / refresh 분리)
- 세션 쿠키 이름 및 보안 옵션
- 권한 캐시 TTL / 최대 엔트리 수
- 로깅 레벨 및 출력 형식
- CORS 허용 도메인 목록

설계 원칙:
- 모든 환경 변수는 이 파일을 통해서만 접근
- 로컬 / 테스트 / 운영 환경을 .env로 분리하여 관리
- 설정 값은 런타임 중 변경되지 않는 불변 객체로 취급

관련 파일:
- pov_tracker.main               : CORS 및 앱 초기화 시 설정 사용
- pov_tracker.core.security      : JWT 시크릿 / 만료 설정 사용
- pov_tracker.core.log           : 로깅 레벨 / 형식 사용
- pov_tracker.services.cache     : 권한 캐시 TTL 사용
- pov_tracker.db.session         : DATABASE_URL 사용

"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


# .env 파일에 정의된 환경 변수를 로드하는 설정 클래스
# extra="ignore" 옵션으로 정의되지 않은 환경 변수는 무시
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENVIRONMENT: str = "development"

    DATABASE_URL: str
    TEST_DATABASE_URL: str | None = None

    SECRET_KEY: str
    REFRESH_SECRET_KEY: str
    ALGORITHM: str = "HS256"

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # 세션 쿠키
    # - COOKIE_SECURE: None이면 운영(production) 환경에서만 True
    # - COOKIE_SAMESITE: CSRF 완화를 위해 "lax" 기본값
    ACCESS_COOKIE_NAME: str = "token"
    REFRESH_COOKIE_NAME: str = "refresh_token"
    COOKIE_SECURE: bool | None = None
    COOKIE_SAMESITE: str = "lax"
    COOKIE_DOMAIN: str | None = None

    # 권한 판단 캐시 (초 단위)
    PERMISSION_CACHE_TTL_SECONDS: int = 5 * 60
    TEAM_CACHE_TTL_SECONDS: int = 10 * 60
    PERMISSION_CACHE_MAX_ENTRIES: int = 10_000

    # DB 권한 테이블 허용 후 정적 정책의 소유자/팀 조건으로 한 번 더 좁힐지 여부
    ENFORCE_RESOURCE_CONDITIONS: bool = True

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # CORS 허용 도메인 (프론트엔드 주소)
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cookie_secure(self) -> bool:
        if self.COOKIE_SECURE is None:
            return self.is_production
        return self.COOKIE_SECURE


# 애플리케이션 전역에서 import하여 사용하는 Settings 인스턴스
# 실행 시 한 번만 생성됨
settings = Settings()
