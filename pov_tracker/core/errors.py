"""
errors.py

애플리케이션 공통 예외(Error) 정의 및 HTTP 응답 변환 파일.

서비스 계층(토큰 관리자, 권한 평가기, 리소스 조회기 등)은
HTTP를 모르는 타입 예외(AppError 하위 클래스)를 던지고,
main.py에 등록된 핸들러가 이를 에러 코드 체계에 맞는
HTTP 상태 코드 / JSON 응답으로 변환한다.

응답 형식:
- {"detail": "<메시지>", "code": "<ERROR_CODE>"}
- 401 / 403 은 어떤 규칙이 실패했는지 노출하지 않는 일반 메시지 사용
- 요청 검증 실패는 400 + 필드 단위 상세 정보

관련 파일:
- pov_tracker.main               : register_exception_handlers 호출
- pov_tracker.core.security      : SigningError / InvalidTokenError
- pov_tracker.services.resources : NotFoundError

"""

from enum import Enum
from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


STATUS_BY_CODE = {
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RECORD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# 클라이언트에 그대로 노출하지 않는 코드
GENERIC_MESSAGES = {
    ErrorCode.UNAUTHORIZED: "Not authenticated",
    ErrorCode.INVALID_TOKEN: "Not authenticated",
    ErrorCode.TOKEN_EXPIRED: "Not authenticated",
    ErrorCode.FORBIDDEN: "Permission denied",
    ErrorCode.DATABASE_ERROR: "Database error",
    ErrorCode.INTERNAL_SERVER_ERROR: "Internal server error",
}


class AppError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: ErrorCode | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE.get(self.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class AuthError(AppError):
    code = ErrorCode.UNAUTHORIZED


class InvalidTokenError(AuthError):
    code = ErrorCode.INVALID_TOKEN


class SigningError(AppError):
    code = ErrorCode.INTERNAL_SERVER_ERROR


class ForbiddenError(AppError):
    code = ErrorCode.FORBIDDEN


class ValidationError(AppError):
    code = ErrorCode.VALIDATION_ERROR


class NotFoundError(AppError):
    code = ErrorCode.RECORD_NOT_FOUND


class DatabaseError(AppError):
    code = ErrorCode.DATABASE_ERROR


def error_body(code: ErrorCode, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": message, "code": code.value}
    if details is not None:
        body["errors"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    message = GENERIC_MESSAGES.get(exc.code, exc.message)
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code.value, error=exc.message)
    # 400 계열만 상세 정보를 돌려준다
    details = exc.details if exc.status_code == status.HTTP_400_BAD_REQUEST else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, message, details), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ErrorCode.VALIDATION_ERROR, "Invalid request", fields),
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("database_error", path=request.url.path, error=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCode.DATABASE_ERROR, GENERIC_MESSAGES[ErrorCode.DATABASE_ERROR]),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
