"""
Error definitions for the service.

원칙:
- 원격 서비스 실패 → 해당 작업 범위에서만 실패 (프로세스 치명적 에러 없음)
- 응답 파싱 → 에러 아님, fallback 체인으로 해결
- 로컬 저장 실패 → 로그 후 무시 (호출자는 항상 타입이 맞는 결과를 받음)
"""

from typing import Any


class AppError(Exception):
    """
    작업 단위로 사용자에게 노출되는 에러.

    원격 서비스 실패, 잘못된 요청, 동시 제출 등에 사용:
    - 빈 프롬프트
    - 이미 진행 중인 요청 (busy)
    - 존재하지 않는 세션

    Usage:
        raise AppError("BUILD_BUSY", build_id=build_id)
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **self.context,
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Input ===
    EMPTY_PROMPT = "EMPTY_PROMPT"
    EMPTY_MESSAGE = "EMPTY_MESSAGE"
    EMPTY_FILE_PATH = "EMPTY_FILE_PATH"

    # === Concurrency (busy flag) ===
    BUILD_BUSY = "BUILD_BUSY"
    CHAT_BUSY = "CHAT_BUSY"

    # === Lookup ===
    BUILD_NOT_FOUND = "BUILD_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    MESSAGE_INDEX_OUT_OF_RANGE = "MESSAGE_INDEX_OUT_OF_RANGE"
    NOT_ASSISTANT_MESSAGE = "NOT_ASSISTANT_MESSAGE"
    NOTHING_TO_RETRY = "NOTHING_TO_RETRY"

    # === Remote services ===
    GENERATION_FAILED = "GENERATION_FAILED"
    SANDBOX_FAILED = "SANDBOX_FAILED"
    CHAT_STREAM_FAILED = "CHAT_STREAM_FAILED"
