"""
auth.py

인증(Authentication) 및 세션 관리 API 모음.

이 파일은 회원 가입, 이메일 인증, 로그인, 토큰 재발급,
로그아웃, Refresh Token 폐기와 같은 인증 흐름 전반을 담당한다.
JWT 기반 인증 방식을 사용하며, Access Token + Refresh Token 구조를 따른다.

주요 기능:
- 회원 가입 (INACTIVE / 미인증 상태로 생성)
- 이메일 인증 토큰 확인 후 계정 활성화
- 로그인 및 토큰 발급 (응답 바디 + HttpOnly 쿠키)
- Refresh Token 기반 Access Token 재발급
- 로그아웃 (사용자의 모든 Refresh Token 삭제)
- 현재 Refresh Token 폐기 (revoke)

설계 원칙:
- Access Token은 Authorization Header 또는 access 쿠키로 전달
- Refresh Token은 HttpOnly Cookie로 관리하고 DB에 저장하여 폐기 가능
- 재발급 실패는 원인과 무관하게 401

관련 파일:
- pov_tracker.core.security        : 비밀번호 해시 / JWT 생성·검증
- pov_tracker.core.deps            : 인증 의존성 / 쿠키 헬퍼
- pov_tracker.services.session     : 세션 수명주기
- pov_tracker.schemas.auth         : 인증 관련 요청/응답

"""

import secrets
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pov_tracker.core.config import settings
from pov_tracker.core.deps import (
    clear_session_cookies,
    get_audit_logger,
    get_current_user,
    get_db,
    get_session_service,
    set_access_cookie,
    set_refresh_cookie,
)
from pov_tracker.core.errors import AuthError, ForbiddenError
from pov_tracker.core.security import get_password_hash, verify_password
from pov_tracker.models.activity import ActivityType
from pov_tracker.models.user import Role, User, UserStatus
from pov_tracker.schemas.auth import LoginRequest, MeResponse, RegisterRequest
from pov_tracker.services.audit import AuditLogger
from pov_tracker.services.session import SessionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


"""
회원 가입 API

- 이메일 기준으로 신규 회원 가입
- 가입 시 기본 권한은 USER, 상태는 INACTIVE (이메일 인증 필요)
- 인증 메일 발송은 외부 시스템 담당 (토큰만 생성)

"""

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):

    exists = db.scalar(select(User.id).where(User.email == data.email))
    if exists:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = User(
        email=data.email,
        password_hash=get_password_hash(data.password),
        name=data.name,
        role=Role.USER,
        status=UserStatus.INACTIVE,
        is_verified=False,
        verification_token=secrets.token_urlsafe(32),
    )

    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already registered")

    logger.info("user_registered", user_id=str(user.id))
    return {
        "data": {
            "id": str(user.id),
            "email": user.email,
        }
    }


"""
이메일 인증 API

- 가입 시 발급된 인증 토큰으로 계정 활성화
- 인증 후 토큰은 재사용할 수 없도록 제거

"""

@router.get("/verify/{token}")
def verify_email(token: str, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.verification_token == token))
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid verification token")

    try:
        user.is_verified = True
        user.verified_at = datetime.now(timezone.utc)
        user.verification_token = None
        user.status = UserStatus.ACTIVE
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {
        "data": {
            "status": "verified",
        }
    }


"""
로그인 API

- 이메일 / 비밀번호 인증
- 이메일 미인증 / 정지된 계정은 로그인 불가
- Access Token은 응답 바디와 HttpOnly Cookie 로 반환
- Refresh Token은 HttpOnly Cookie로 설정하고 DB에 저장

"""

@router.post("/login")
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionService = Depends(get_session_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    user = db.scalar(select(User).where(User.email == data.email))

    if not user or not verify_password(data.password, user.password_hash):
        raise AuthError("Invalid credentials")

    if user.status == UserStatus.SUSPENDED:
        raise ForbiddenError("Account suspended")

    if not user.is_verified or user.status != UserStatus.ACTIVE:
        raise ForbiddenError("Email not verified")

    try:
        user.last_login = datetime.now(timezone.utc)
        db.commit()
    except Exception:
        db.rollback()
        raise

    tokens = await sessions.login(user)
    set_access_cookie(response, tokens.access_token)
    set_refresh_cookie(response, tokens.refresh_token)

    await audit.track_activity(
        user.id, ActivityType.AUTH, "LOGIN",
        {"ip": request.client.host if request.client else None},
    )

    return {
        "data": {
            "access_token": tokens.access_token,
            "token_type": "bearer",
        }
    }


"""
Access Token 재발급 API

- Refresh Token 쿠키를 사용해 새로운 Access Token 발급
- 서명 유효 + DB에 존재 + 만료 전이어야 하며, 저장된 만료 시각은 연장
- 실패 시 항상 401

"""

@router.post("/refresh")
async def refresh(
    request: Request,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
):
    token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    refreshed = await sessions.refresh(token)

    set_access_cookie(response, refreshed.access_token)
    set_refresh_cookie(response, token)

    return {
        "data": {
            "access_token": refreshed.access_token,
            "token_type": "bearer",
        }
    }


"""
로그아웃 API

- 현재 사용자의 모든 Refresh Token 삭제
- 클라이언트의 access / refresh 쿠키 삭제

"""

@router.post("/logout")
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
):
    await sessions.revoke_all(user.id)
    clear_session_cookies(response)
    return {
        "data": {
            "status": "logged_out",
        }
    }


"""
Refresh Token 폐기 API

- 쿠키의 Refresh Token 한 개만 DB에서 삭제 (다른 기기 세션은 유지)
- 쿠키가 없으면 401

"""

@router.post("/revoke")
async def revoke(
    request: Request,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
):
    token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token:
        raise AuthError("Refresh token not found")

    await sessions.revoke(token)
    clear_session_cookies(response)
    return {
        "data": {
            "status": "revoked",
        }
    }


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"data": MeResponse.model_validate(user).model_dump(mode="json")}
