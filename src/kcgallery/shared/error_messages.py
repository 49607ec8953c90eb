"""
KC Gallery Error Messages Module

User-facing messages for classified fetch failures. A failure that will be
retried gets a "still retrying" message carrying the attempt number; a
failure the retry engine gave up on gets a final message. The secondary
source has its own wording since its servers are known to be slow.

Messages are centralized here, keyed by language and ErrorCode.
"""

from __future__ import annotations

from typing import Any

from .errors import ErrorCode, ErrorKind, FetchError, KCGalleryError, SearchGuidanceError

DEFAULT_LANGUAGE = "en"

SECONDARY_SOURCE = "secondary"

ERROR_MESSAGES: dict[str, dict[ErrorCode, str]] = {
    "en": {
        ErrorCode.FETCH_TIMEOUT: "Connection timeout",
        ErrorCode.FETCH_NETWORK_ERROR: "Network connection issue",
        ErrorCode.FETCH_SERVER_UNAVAILABLE: "Server temporarily unavailable",
        ErrorCode.FETCH_NOT_FOUND: "Content not found",
        ErrorCode.FETCH_RATE_LIMITED: "Too many requests. Please wait a moment and try again",
        ErrorCode.FETCH_INVALID_RESPONSE: "Server returned an unexpected response",
        ErrorCode.FETCH_PARSE_ERROR: "Could not read the server response",
        ErrorCode.FETCH_UNKNOWN: "Loading error",
        ErrorCode.SEARCH_SERVICE_REQUIRED: (
            "Numeric ID search requires selecting a specific service "
            "(e.g. Patreon/OnlyFans). Please pick a service and retry."
        ),
        ErrorCode.CACHE_CORRUPTED: "Cache data corrupted: {key}",
        ErrorCode.CONFIGURATION_ERROR: "Configuration error: {setting}",
        ErrorCode.INVALID_CONFIG: "Invalid configuration value: {config}",
        ErrorCode.FILE_READ_ERROR: "Failed to read file: {path}",
        ErrorCode.FILE_WRITE_ERROR: "Failed to write file: {path}",
        ErrorCode.DIRECTORY_CREATION_FAILED: "Failed to create directory: {path}",
        ErrorCode.CLI_UNEXPECTED_ERROR: "Unexpected error: {error}",
    },
    "ko": {
        ErrorCode.FETCH_TIMEOUT: "연결 시간이 초과되었습니다",
        ErrorCode.FETCH_NETWORK_ERROR: "네트워크 연결에 문제가 있습니다",
        ErrorCode.FETCH_SERVER_UNAVAILABLE: "서버를 일시적으로 사용할 수 없습니다",
        ErrorCode.FETCH_NOT_FOUND: "콘텐츠를 찾을 수 없습니다",
        ErrorCode.FETCH_RATE_LIMITED: "요청이 너무 많습니다. 잠시 후 다시 시도해주세요",
        ErrorCode.FETCH_INVALID_RESPONSE: "서버가 예상하지 못한 응답을 반환했습니다",
        ErrorCode.FETCH_PARSE_ERROR: "서버 응답을 해석할 수 없습니다",
        ErrorCode.FETCH_UNKNOWN: "불러오기 오류",
        ErrorCode.SEARCH_SERVICE_REQUIRED: (
            "숫자 ID 검색은 특정 서비스를 선택해야 합니다 (예: Patreon/OnlyFans). "
            "서비스를 선택한 뒤 다시 시도해주세요."
        ),
        ErrorCode.CACHE_CORRUPTED: "캐시 데이터가 손상되었습니다: {key}",
        ErrorCode.CONFIGURATION_ERROR: "설정 오류가 발생했습니다: {setting}",
        ErrorCode.INVALID_CONFIG: "유효하지 않은 설정값입니다: {config}",
        ErrorCode.FILE_READ_ERROR: "파일을 읽을 수 없습니다: {path}",
        ErrorCode.FILE_WRITE_ERROR: "파일을 저장할 수 없습니다: {path}",
        ErrorCode.DIRECTORY_CREATION_FAILED: "디렉토리 생성에 실패했습니다: {path}",
        ErrorCode.CLI_UNEXPECTED_ERROR: "예상치 못한 오류: {error}",
    },
}

# Wording used while the secondary source is still being retried
SECONDARY_RETRY_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "Coomer servers are slow",
    ErrorKind.NETWORK_ERROR: "Network issue with Coomer",
    ErrorKind.SERVER_UNAVAILABLE: "Coomer servers temporarily unavailable",
    ErrorKind.INVALID_RESPONSE: "Coomer returned an unexpected page",
    ErrorKind.PARSE_ERROR: "Coomer returned an unreadable response",
    ErrorKind.UNKNOWN: "Coomer server error",
}

SECONDARY_FINAL_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "Creator not found on Coomer servers",
    ErrorKind.RATE_LIMITED: "Coomer is rate limiting requests. Please wait and try again",
}


def get_error_message(
    error_code: ErrorCode,
    language: str = DEFAULT_LANGUAGE,
    **kwargs: Any,
) -> str:
    """Get the user-facing template for an error code.

    Unknown languages fall back to the default language. Missing template
    variables leave the template unformatted rather than raising.

    Args:
        error_code: Error code to look up
        language: Language code ('en' or 'ko')
        **kwargs: Template variables

    Returns:
        Formatted message
    """
    messages = ERROR_MESSAGES.get(language, ERROR_MESSAGES[DEFAULT_LANGUAGE])
    template = messages.get(error_code)
    if template is None:
        return f"Unknown error occurred: {error_code.value}"
    try:
        return template.format(**kwargs)
    except (KeyError, IndexError):
        return template


def _base_message(error: FetchError, language: str) -> str:
    if language == DEFAULT_LANGUAGE and error.source == SECONDARY_SOURCE:
        if error.gave_up and error.kind in SECONDARY_FINAL_MESSAGES:
            return SECONDARY_FINAL_MESSAGES[error.kind]
        if error.kind in SECONDARY_RETRY_MESSAGES:
            return SECONDARY_RETRY_MESSAGES[error.kind]
    return get_error_message(error.kind.error_code, language)


def retrying_message(error: FetchError, language: str = DEFAULT_LANGUAGE) -> str:
    """Message shown while another attempt is scheduled.

    Example:
        "Coomer servers are slow. Auto-retrying... (attempt 2/6)"
    """
    if error.max_attempts:
        suffix = f"(attempt {error.attempt}/{error.max_attempts})"
    else:
        suffix = f"(attempt {error.attempt})"
    return f"{_base_message(error, language)}. Auto-retrying... {suffix}"


def gave_up_message(error: FetchError, language: str = DEFAULT_LANGUAGE) -> str:
    """Message shown once the retry engine stopped for good.

    Non-retryable kinds (NotFound, RateLimited, ...) are reported without an
    attempt count since only one attempt was spent on them.
    """
    base = _base_message(error, language)
    if not error.retryable or error.max_attempts <= 1:
        return base
    return f"{base}. Gave up after {error.max_attempts} attempts"


def user_message(error: BaseException, language: str = DEFAULT_LANGUAGE) -> str:
    """Pick the user-facing message for any error raised by the engine."""
    if isinstance(error, SearchGuidanceError):
        return get_error_message(ErrorCode.SEARCH_SERVICE_REQUIRED, language)
    if isinstance(error, FetchError):
        if error.gave_up:
            return gave_up_message(error, language)
        return retrying_message(error, language)
    if isinstance(error, KCGalleryError):
        return error.message
    return get_error_message(ErrorCode.CLI_UNEXPECTED_ERROR, language, error=str(error))


__all__ = [
    "DEFAULT_LANGUAGE",
    "ERROR_MESSAGES",
    "get_error_message",
    "gave_up_message",
    "retrying_message",
    "user_message",
]
