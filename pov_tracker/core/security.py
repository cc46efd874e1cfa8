"""
security.py

비밀번호 해싱 및 JWT 토큰 발급/검증(Token Manager)을 담당하는 보안 유틸리티 모음.

이 파일은 인증(auth) 로직에서 사용하는
저수준(low-level) 보안 기능만을 제공하며,
라우터나 비즈니스 로직은 포함하지 않는다.

주요 기능:
- 비밀번호 해싱 및 검증 (bcrypt)
- Access Token / Refresh Token 서명 (서로 다른 시크릿)
- Access Token / Refresh Token 검증 (서명 + 만료 + payload 형식)
- 서명 검증 없는 디코딩 (로깅/디버깅 용도)

설계 원칙:
- Access Token과 Refresh Token을 시크릿과 type 클레임으로 명확히 분리
- payload는 {sub=userId, email, role} 고정, 누락 시 기본값으로 채우지 않고 거부
- 시간 기반(exp / iat) 처리는 UTC 기준
- Refresh Token의 서버측 폐기(revoke)는 DB 저장으로 처리 (services.session)

관련 파일:
- pov_tracker.core.config        : JWT 시크릿 키 및 만료 설정
- pov_tracker.core.deps          : 요청마다 토큰을 검증하는 인증 의존성
- pov_tracker.services.session   : 로그인 / 재발급 / 폐기

"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

import structlog
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

from pov_tracker.core.config import settings
from pov_tracker.core.errors import ErrorCode, InvalidTokenError, SigningError
from pov_tracker.models.user import Role

logger = structlog.get_logger(__name__)

TokenType = Literal["access", "refresh"]


# bcrypt 기반 비밀번호 해싱 컨텍스트
# deprecated="auto"로 향후 알고리즘 교체 가능하도록 설정

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


"""
비밀번호 해싱 함수

- 평문 비밀번호를 bcrypt 해시로 변환
- DB에는 해시 값만 저장

"""

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


"""
비밀번호 검증 함수

- 사용자가 입력한 평문 비밀번호와
  DB에 저장된 해시 값을 비교

"""

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    email: str
    role: Role
    issued_at: datetime | None = None
    expires_at: datetime | None = None


def _payload_from_claims(claims: dict) -> TokenPayload | None:
    sub = claims.get("sub")
    email = claims.get("email")
    role = claims.get("role")
    if not sub or not email or not role:
        return None
    try:
        role = Role(role)
    except ValueError:
        return None

    iat = claims.get("iat")
    exp = claims.get("exp")
    return TokenPayload(
        user_id=str(sub),
        email=str(email),
        role=role,
        issued_at=datetime.fromtimestamp(iat, tz=timezone.utc) if isinstance(iat, (int, float)) else None,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if isinstance(exp, (int, float)) else None,
    )


class TokenManager:
    """서명된 만료형 세션 토큰을 발급/검증한다.

    access 와 refresh 는 서로 다른 시크릿으로 서명되므로
    한쪽 시크릿으로 서명된 토큰은 다른 쪽 검증을 통과하지 못한다.
    """

    def __init__(
        self,
        *,
        access_secret: str | None,
        refresh_secret: str | None,
        algorithm: str = "HS256",
        access_expire_minutes: int = 15,
        refresh_expire_days: int = 7,
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_expires = timedelta(minutes=access_expire_minutes)
        self.refresh_expires = timedelta(days=refresh_expire_days)

    @classmethod
    def from_settings(cls, conf=settings) -> "TokenManager":
        return cls(
            access_secret=conf.SECRET_KEY,
            refresh_secret=conf.REFRESH_SECRET_KEY,
            algorithm=conf.ALGORITHM,
            access_expire_minutes=conf.ACCESS_TOKEN_EXPIRE_MINUTES,
            refresh_expire_days=conf.REFRESH_TOKEN_EXPIRE_DAYS,
        )

    """
    JWT 토큰 생성 내부 공통 함수

    - Access / Refresh 토큰 생성 로직을 공통화
    - sub: 사용자 식별자(user_id), email, role
    - type: access 또는 refresh
    - iat / exp: 발급 / 만료 시각 (UTC timestamp)
    - jti: 토큰 고유 ID

    """

    def _sign(self, payload: TokenPayload, *, token_type: TokenType, secret: str | None,
              expires_delta: timedelta) -> str:
        if not secret:
            raise SigningError(f"{token_type} token secret is not configured")

        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(payload.user_id),
            "email": payload.email,
            "role": Role(payload.role).value,
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
            # 같은 초에 발급된 토큰도 서로 달라야 DB unique 제약을 통과한다
            "jti": uuid.uuid4().hex,
        }
        try:
            return jwt.encode(claims, secret, algorithm=self.algorithm)
        except JWTError as e:
            raise SigningError(f"Failed to sign {token_type} token") from e

    def _verify(self, token: str, *, token_type: TokenType, secret: str | None) -> TokenPayload:
        if not secret:
            raise InvalidTokenError("Token secret is not configured")
        try:
            claims = jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise InvalidTokenError("Token expired", code=ErrorCode.TOKEN_EXPIRED) from e
        except JWTError as e:
            raise InvalidTokenError("Invalid token") from e

        # access 토큰 자리에 refresh 토큰을 쓰는 경우 차단 (반대도 동일)
        if claims.get("type") != token_type:
            raise InvalidTokenError("Invalid token type")

        payload = _payload_from_claims(claims)
        if payload is None:
            raise InvalidTokenError("Invalid token payload")
        return payload

    """
    Access Token 생성 함수

    - API 요청 인증에 사용
    - 짧은 만료 시간 (분 단위)
    - Authorization Header(Bearer) 또는 access 쿠키로 전달됨

    """

    def sign_access_token(self, payload: TokenPayload, expires_delta: Optional[timedelta] = None) -> str:
        return self._sign(
            payload,
            token_type="access",
            secret=self.access_secret,
            expires_delta=expires_delta or self.access_expires,
        )

    """
    Refresh Token 생성 함수

    - Access Token 재발급에 사용
    - 긴 만료 시간 (일 단위)
    - 발급 후 DB에 저장되어 만료 전 폐기 가능

    """

    def sign_refresh_token(self, payload: TokenPayload, expires_delta: Optional[timedelta] = None) -> str:
        return self._sign(
            payload,
            token_type="refresh",
            secret=self.refresh_secret,
            expires_delta=expires_delta or self.refresh_expires,
        )

    def generate_tokens(self, payload: TokenPayload) -> tuple[str, str]:
        return self.sign_access_token(payload), self.sign_refresh_token(payload)

    def verify_access_token(self, token: str) -> TokenPayload:
        return self._verify(token, token_type="access", secret=self.access_secret)

    def verify_refresh_token(self, token: str) -> TokenPayload:
        return self._verify(token, token_type="refresh", secret=self.refresh_secret)

    def decode_token(self, token: str) -> TokenPayload | None:
        """서명 검증 없이 payload만 꺼낸다. 실패 시 None (예외 없음)."""
        try:
            claims = jwt.get_unverified_claims(token)
        except (JWTError, AttributeError, TypeError, ValueError):
            logger.debug("token_decode_failed")
            return None
        if not isinstance(claims, dict):
            return None
        return _payload_from_claims(claims)

    def refresh_expiry_from_now(self) -> datetime:
        return datetime.now(timezone.utc) + self.refresh_expires


# 애플리케이션 전역에서 사용하는 TokenManager 인스턴스
token_manager = TokenManager.from_settings(settings)
