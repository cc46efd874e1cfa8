"""
services/session.py

세션(Access / Refresh Token) 수명주기 서비스.

주요 기능:
- 로그인 시 Access / Refresh Token 발급 및 Refresh Token DB 저장
- Refresh Token 으로 Access Token 재발급 (+ 저장된 만료 시각 연장)
- 단일 Refresh Token 폐기 (revoke) / 사용자 전체 폐기 (logout)

설계 원칙:
- HTTP / FastAPI 의존성 없음 (쿠키 처리는 core.deps / routers.auth)
- 재발급은 "서명 유효 + DB 에 존재 + 만료 전" 세 조건을 모두 만족해야 함
- 재발급 실패는 원인과 무관하게 AuthError (401) 하나로 표현

관련 파일:
- pov_tracker.core.security   : TokenManager
- pov_tracker.db.repository   : refresh_tokens 저장 / 조회 / 삭제
- pov_tracker.routers.auth    : login / refresh / logout / revoke API
- pov_tracker.core.deps       : 요청 처리 중 자동 재발급

"""

from dataclasses import dataclass

import structlog

from pov_tracker.core.errors import AuthError, InvalidTokenError
from pov_tracker.core.security import TokenManager, TokenPayload
from pov_tracker.db.repository import AuthRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class RefreshedAccess:
    access_token: str
    payload: TokenPayload


def payload_for(user) -> TokenPayload:
    return TokenPayload(user_id=str(user.id), email=user.email, role=user.role)


class SessionService:
    def __init__(self, repository: AuthRepository, tokens: TokenManager):
        self.repository = repository
        self.tokens = tokens

    async def login(self, user) -> IssuedTokens:
        access, refresh = self.tokens.generate_tokens(payload_for(user))
        await self.repository.persist_refresh_token(str(user.id), refresh, self.tokens.refresh_expiry_from_now())
        logger.info("session_started", user_id=str(user.id))
        return IssuedTokens(access_token=access, refresh_token=refresh)

    async def refresh(self, refresh_token: str | None) -> RefreshedAccess:
        if not refresh_token:
            raise AuthError("No refresh token")

        try:
            payload = self.tokens.verify_refresh_token(refresh_token)
        except InvalidTokenError as e:
            logger.info("refresh_rejected", reason=e.code.value)
            raise AuthError("Invalid refresh token") from e

        stored = await self.repository.find_valid_refresh_token(refresh_token, payload.user_id)
        if stored is None:
            logger.info("refresh_rejected", reason="NOT_FOUND", user_id=payload.user_id)
            raise AuthError("Invalid refresh token")

        access = self.tokens.sign_access_token(payload)
        await self.repository.touch_refresh_token_expiry(stored.id, self.tokens.refresh_expiry_from_now())

        logger.info("token_refreshed", user_id=payload.user_id)
        return RefreshedAccess(access_token=access, payload=payload)

    async def revoke(self, refresh_token: str) -> int:
        return await self.repository.delete_refresh_token(refresh_token)

    async def revoke_all(self, user_id) -> int:
        removed = await self.repository.delete_user_refresh_tokens(str(user_id))
        logger.info("sessions_revoked", user_id=str(user_id), count=removed)
        return removed
