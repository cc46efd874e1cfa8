"""
log.py

structlog 기반 로깅 설정 파일.

애플리케이션 시작 시 한 번 configure_logging()을 호출하면
이후 모든 모듈은 structlog.get_logger(__name__)로 로거를 얻어
key=value 형태의 구조화 로그를 남긴다.

설계 원칙:
- 운영(json) / 로컬(console) 출력 형식을 설정으로 전환
- 타임스탬프는 UTC ISO 형식
- 감사 로그(Audit) 실패 등 에러 채널 기록도 동일한 로거를 사용

관련 파일:
- pov_tracker.core.config        : LOG_LEVEL / LOG_FORMAT
- pov_tracker.main               : 앱 생성 시 configure_logging 호출

"""

import logging

import structlog

from pov_tracker.core.config import settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if (fmt or settings.LOG_FORMAT) == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=False,
    )
