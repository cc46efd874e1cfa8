"""
deps.py

FastAPI 의존성(Dependency) 모음.

주요 기능:
- 요청 단위 DB 세션 / 저장소 / 서비스 객체 조립
- 프로세스 단위 권한 캐시(app.state.permission_cache) 주입
- 인증 (Bearer Header 또는 access 쿠키) + 만료 시 refresh 쿠키로 자동 재발급
- 역할 / 라우트 정책 가드

설계 원칙:
- 인증 실패는 401, 비활성 / 정지 계정과 권한 부족은 403
- 자동 재발급은 요청 처리 안에서 완료될 때까지 기다린 뒤 진행 (백그라운드 재발급 없음)
- 재발급된 access 토큰은 같은 응답의 쿠키로 내려준다

관련 파일:
- pov_tracker.core.security          : TokenManager
- pov_tracker.services.session       : 재발급
- pov_tracker.services.permissions   : PermissionEvaluator
- pov_tracker.services.policy        : ROLE_LEVEL / has_route_access

"""

from typing import Generator

import structlog
from fastapi import Depends, Request, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.orm import Session

from pov_tracker.core.config import settings
from pov_tracker.core.errors import AuthError, ForbiddenError, InvalidTokenError
from pov_tracker.core.security import TokenManager, token_manager
from pov_tracker.db.repository import SqlAlchemyRepository, as_uuid
from pov_tracker.db.session import SessionLocal
from pov_tracker.models.user import Role, User, UserStatus
from pov_tracker.services.audit import AuditLogger
from pov_tracker.services.cache import PermissionCache
from pov_tracker.services.permissions import PermissionEvaluator, RequestContext
from pov_tracker.services.policy import has_route_access, role_at_least
from pov_tracker.services.session import SessionService
from pov_tracker.services.status import StatusTransitionEngine

logger = structlog.get_logger(__name__)

# Swagger Authorize에서 "Bearer 토큰" 입력받는 스키마
bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> SqlAlchemyRepository:
    return SqlAlchemyRepository(db)


def get_permission_cache(request: Request) -> PermissionCache:
    return request.app.state.permission_cache


def get_token_manager() -> TokenManager:
    return token_manager


def get_audit_logger(repo: SqlAlchemyRepository = Depends(get_repository)) -> AuditLogger:
    return AuditLogger(repo)


def get_evaluator(
    repo: SqlAlchemyRepository = Depends(get_repository),
    cache: PermissionCache = Depends(get_permission_cache),
    audit: AuditLogger = Depends(get_audit_logger),
) -> PermissionEvaluator:
    return PermissionEvaluator(repo, cache, audit, enforce_conditions=settings.ENFORCE_RESOURCE_CONDITIONS)


def get_session_service(
    repo: SqlAlchemyRepository = Depends(get_repository),
    tokens: TokenManager = Depends(get_token_manager),
) -> SessionService:
    return SessionService(repo, tokens)


def get_status_engine(repo: SqlAlchemyRepository = Depends(get_repository)) -> StatusTransitionEngine:
    return StatusTransitionEngine(repo)


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


# ---- 세션 쿠키 ----

def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.COOKIE_SAMESITE,
        "domain": settings.COOKIE_DOMAIN,
        "path": "/",
    }


def set_access_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.ACCESS_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **_cookie_options(),
    )


def set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        **_cookie_options(),
    )


def clear_session_cookies(response: Response) -> None:
    for name in (settings.ACCESS_COOKIE_NAME, settings.REFRESH_COOKIE_NAME):
        response.delete_cookie(key=name, path="/", domain=settings.COOKIE_DOMAIN)


"""
현재 사용자 인증 의존성

- Authorization: Bearer <token> 헤더 우선, 없으면 access 쿠키 사용
- access 토큰이 없거나 만료 / 위조된 경우 refresh 쿠키가 있으면
  재발급을 기다린 뒤 새 access 쿠키를 설정하고 계속 진행
- 토큰 속 role 이 아닌 DB 의 최신 사용자 정보를 사용
- request.state.user 에 사용자 주입

"""

async def get_current_user(
    request: Request,
    response: Response,
    cred: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    sessions: SessionService = Depends(get_session_service),
) -> User:
    token = cred.credentials if cred else request.cookies.get(settings.ACCESS_COOKIE_NAME)

    payload = None
    if token:
        try:
            payload = sessions.tokens.verify_access_token(token)
        except InvalidTokenError as e:
            logger.debug("access_token_rejected", reason=e.code.value)

    if payload is None:
        refresh_token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
        if not refresh_token:
            raise AuthError("Not authenticated")
        refreshed = await sessions.refresh(refresh_token)
        set_access_cookie(response, refreshed.access_token)
        payload = refreshed.payload

    user = db.scalar(select(User).where(User.id == as_uuid(payload.user_id)))
    if not user:
        raise AuthError("User not found")

    if user.status != UserStatus.ACTIVE:
        raise ForbiddenError("Account is not active")

    request.state.user = user
    return user


def require_min_role(min_role: Role):
    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if not role_at_least(current_user.role, min_role):
            raise ForbiddenError(f"Requires role >= {min_role.value}")
        return current_user
    return _checker


def require_route(route: str):
    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_route_access(current_user.role, route):
            raise ForbiddenError(f"Route not allowed: {route}")
        return current_user
    return _checker


get_current_admin = require_min_role(Role.ADMIN)
get_current_superadmin = require_min_role(Role.SUPER_ADMIN)
