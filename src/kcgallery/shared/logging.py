"""
구조적 로깅 시스템 for KC Gallery.

fetch & cache 엔진의 작업(요청, 재시도, 캐시 이벤트)을 컨텍스트와 함께
구조화된 로그로 기록하는 헬퍼 함수들을 제공합니다.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from kcgallery.shared.errors import ErrorContext, FetchError, KCGalleryError

ROOT_LOGGER_NAME = "kcgallery"

# LogRecord extra 필드 중 JSON 출력에 포함할 항목
_EXTRA_FIELDS = (
    "error_code",
    "operation",
    "context",
    "duration_ms",
    "result_info",
    "attempt",
    "source",
)


class StructuredFormatter(logging.Formatter):
    """JSON 한 줄로 로그 레코드를 출력하는 포맷터."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def _create_rich_console() -> Console:
    """
    로그 레벨별 색상 테마가 적용된 Rich Console을 생성합니다.

    Returns:
        stderr로 출력하는 Console 인스턴스
    """
    theme = Theme(
        {
            "logging.level.debug": "cyan",
            "logging.level.info": "green",
            "logging.level.warning": "yellow",
            "logging.level.error": "red bold",
            "logging.level.critical": "red bold reverse",
            "log.time": "dim cyan",
        }
    )
    # CLI 결과는 stdout, 로그는 stderr
    return Console(theme=theme, stderr=True)


def setup_structured_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_file: str | Path | None = None,
    *,
    use_rich_console: bool = True,
) -> logging.Logger:
    """
    구조화된 로깅을 위한 로거를 설정합니다.

    Args:
        name: 로거 이름 (기본값: "kcgallery")
        level: 로그 레벨 이름
        log_file: JSON 로그 파일 경로 (선택사항)
        use_rich_console: True면 RichHandler, False면 JSON StreamHandler

    Returns:
        설정된 로거 인스턴스

    Raises:
        ValueError: 알 수 없는 로그 레벨인 경우
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        msg = f"Unknown log level: {level}"
        raise ValueError(msg)

    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.setLevel(log_level)

    handler: logging.Handler
    if use_rich_console:
        handler = RichHandler(
            console=_create_rich_console(),
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%H:%M:%S]",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
    handler.setLevel(log_level)
    logger.addHandler(handler)

    # 파일 로그는 항상 JSON
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def _context_to_dict(context: dict[str, Any] | ErrorContext | None) -> dict[str, Any]:
    if context is None:
        return {}
    if isinstance(context, ErrorContext):
        return context.safe_dict()
    return dict(context)


def log_operation_start(
    logger: logging.Logger,
    operation: str,
    context: dict[str, Any] | ErrorContext | None = None,
) -> None:
    """
    작업 시작 로그를 기록합니다.

    Args:
        logger: 로거 인스턴스
        operation: 작업 이름
        context: 컨텍스트 정보 (선택사항)
    """
    logger.debug(
        "Starting operation '%s'",
        operation,
        extra={"operation": operation, "context": _context_to_dict(context)},
    )


def log_operation_success(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    result_info: dict[str, Any] | None = None,
    context: dict[str, Any] | ErrorContext | None = None,
) -> None:
    """
    성공한 작업의 소요 시간과 결과 정보를 기록합니다.

    Args:
        logger: 로거 인스턴스
        operation: 작업 이름
        duration_ms: 소요 시간 (밀리초)
        result_info: 결과 요약 (선택사항)
        context: 컨텍스트 정보 (선택사항)
    """
    logger.debug(
        "Operation '%s' completed in %.1fms",
        operation,
        duration_ms,
        extra={
            "operation": operation,
            "duration_ms": duration_ms,
            "result_info": result_info or {},
            "context": _context_to_dict(context),
        },
    )


def log_operation_error(
    logger: logging.Logger,
    error: KCGalleryError,
    operation: str | None = None,
    additional_context: dict[str, Any] | ErrorContext | None = None,
) -> None:
    """
    KCGalleryError를 구조화된 에러 로그로 기록합니다.

    FetchError인 경우 분류 정보(kind, attempt, source)도 함께 남깁니다.

    Args:
        logger: 로거 인스턴스
        error: 기록할 에러
        operation: 작업 이름 (없으면 에러 컨텍스트의 operation 사용)
        additional_context: 병합할 추가 컨텍스트 (선택사항)
    """
    context_dict = error.context.safe_dict()
    context_dict.update(_context_to_dict(additional_context))

    extra: dict[str, Any] = {
        "error_code": error.code.value,
        "context": context_dict,
        "operation": operation or error.context.operation,
    }
    if isinstance(error, FetchError):
        context_dict["kind"] = error.kind.value
        extra["attempt"] = error.attempt
        extra["source"] = error.source

    logger.error(
        error.message,
        extra=extra,
        exc_info=error.original_error is not None,
    )


def log_retry_attempt(
    logger: logging.Logger,
    error: FetchError,
    delay: float,
    operation: str | None = None,
) -> None:
    """
    재시도 직전(backoff 대기 전) 경고 로그를 기록합니다.

    Args:
        logger: 로거 인스턴스
        error: 해당 시도에서 분류된 에러
        delay: 다음 시도까지 대기할 시간 (초)
        operation: 작업 이름 (선택사항)
    """
    logger.warning(
        "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
        operation or error.context.operation or "fetch",
        error.kind.value,
        delay,
        error.attempt,
        error.max_attempts,
        extra={
            "error_code": error.code.value,
            "operation": operation or error.context.operation,
            "attempt": error.attempt,
            "source": error.source,
            "context": error.context.safe_dict(),
        },
    )


def log_api_call(
    logger: logging.Logger,
    url: str,
    method: str = "GET",
    status_code: int | None = None,
    duration_ms: float | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """
    트랜스포트 호출 결과를 기록합니다.

    Args:
        logger: 로거 인스턴스
        url: 요청 URL
        method: HTTP 메서드 (기본값: "GET")
        status_code: HTTP 상태 코드 (선택사항)
        duration_ms: 소요 시간 (밀리초, 선택사항)
        context: 컨텍스트 정보 (선택사항)
    """
    api_context: dict[str, Any] = {"url": url, "method": method}
    if status_code is not None:
        api_context["status_code"] = status_code
    if context:
        api_context.update(context)

    level = logging.DEBUG
    message = f"{method} {url}"
    if status_code is not None:
        if status_code >= 400:
            level = logging.WARNING
            message += f" failed with status {status_code}"
        else:
            message += f" -> {status_code}"

    extra: dict[str, Any] = {"operation": "api_call", "context": api_context}
    if duration_ms is not None:
        extra["duration_ms"] = duration_ms
    logger.log(level, message, extra=extra)


__all__ = [
    "ROOT_LOGGER_NAME",
    "StructuredFormatter",
    "log_api_call",
    "log_operation_error",
    "log_operation_start",
    "log_operation_success",
    "log_retry_attempt",
    "setup_structured_logger",
]
