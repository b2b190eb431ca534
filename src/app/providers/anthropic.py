"""
Anthropic (Claude) Provider.

채팅 응답 스트리밍 기본 provider.
- model_requested + model_used 기록
- 자동 재시도 없음 (사용자가 재시도)
"""

import logging
import os
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from .base import (
    ChatStreamError,
    CompletionResult,
    GenerationError,
    GenerationParams,
    LLMProvider,
)

logger = logging.getLogger(__name__)


class ClaudeProvider(LLMProvider):
    """
    Claude API Provider.

    Usage:
        provider = ClaudeProvider(model="claude-sonnet-4-20250514")
        async for chunk in provider.stream_chat(messages, system=prompt):
            ...
    """

    name = "anthropic"

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
    ):
        """
        Args:
            model: 모델 ID (config에서 주입)
            api_key: API 키 (환경변수 MY_ANTHROPIC_KEY 또는 ANTHROPIC_API_KEY 사용 가능)
            max_tokens: 최대 토큰 수
            temperature: 샘플링 온도 (None이면 API 기본값)

        Raises:
            GenerationError: API 키가 없을 때 (fail-fast)
        """
        self.model = model
        # API 키 결정: 인자 > MY_ANTHROPIC_KEY > ANTHROPIC_API_KEY
        self.api_key = (
            api_key
            or os.environ.get("MY_ANTHROPIC_KEY")
            or os.environ.get("ANTHROPIC_API_KEY")
        )

        # Fail-fast: 키가 없으면 즉시 에러 (나중에 모호한 에러 방지)
        if not self.api_key:
            raise GenerationError(
                "ANTHROPIC_KEY_MISSING",
                "Anthropic API 키가 없습니다. "
                "MY_ANTHROPIC_KEY 또는 ANTHROPIC_API_KEY 환경변수를 설정하세요.",
            )

        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client: Any = None

    def _get_client(self) -> Any:
        """Anthropic 클라이언트 (lazy init)."""
        if self._client is None:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    def _build_kwargs(
        self,
        messages: list[dict[str, str]],
        system: str | None,
        params: GenerationParams | None,
    ) -> dict[str, Any]:
        """API 호출 파라미터 구성."""
        max_tokens = self.max_tokens
        temperature = self.temperature
        top_p = None
        top_k = None
        if params is not None:
            max_tokens = params.max_tokens or max_tokens
            temperature = params.temperature if params.temperature is not None else temperature
            top_p = params.top_p
            top_k = params.top_k

        api_kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [
                {"role": m["role"], "content": m["content"]} for m in messages
            ],
        }
        # 선택적 파라미터 추가
        if system:
            api_kwargs["system"] = system
        if temperature is not None:
            api_kwargs["temperature"] = temperature
        if top_p is not None:
            api_kwargs["top_p"] = top_p
        if top_k is not None:
            api_kwargs["top_k"] = top_k
        return api_kwargs

    async def complete(
        self,
        prompt: str,
        params: GenerationParams | None = None,
    ) -> CompletionResult:
        """단건 완성 API."""
        now = datetime.now(UTC).isoformat()
        try:
            client = self._get_client()
            response = await client.messages.create(
                **self._build_kwargs([{"role": "user", "content": prompt}], None, params)
            )
            text: str = response.content[0].text
            return CompletionResult(
                text=text,
                provider=self.name,
                model_requested=self.model,
                model_used=getattr(response, "model", None) or self.model,
                request_id=getattr(response, "id", None),
                completed_at=now,
            )
        except Exception as e:
            logger.error(f"Claude completion failed: {e}", exc_info=True)
            raise GenerationError(
                "COMPLETION_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
    ) -> AsyncIterator[str]:
        """
        채팅 응답 스트림.

        텍스트 조각을 도착 순서대로 yield.
        도중 실패 시 ChatStreamError (이미 yield된 조각은 호출자가 버림).
        """
        try:
            client = self._get_client()
            async with client.messages.stream(
                **self._build_kwargs(messages, system, None)
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except Exception as e:
            logger.error(f"Claude stream failed: {e}", exc_info=True)
            raise ChatStreamError(
                "CHAT_STREAM_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """사용자 친화적인 에러 메시지 생성."""
        import anthropic

        if isinstance(error, anthropic.APIConnectionError):
            return (
                "인터넷 연결을 확인해주세요. "
                "Anthropic API 서버에 연결할 수 없습니다."
            )
        elif isinstance(error, anthropic.RateLimitError):
            return "API 사용량 한도를 초과했습니다. 잠시 후 다시 시도해주세요."
        elif isinstance(error, anthropic.AuthenticationError):
            return (
                "API 인증에 실패했습니다. MY_ANTHROPIC_KEY 환경변수를 확인해주세요."
            )
        elif isinstance(error, anthropic.PermissionDeniedError):
            return "이 작업을 수행할 권한이 없습니다. API 키의 권한을 확인해주세요."
        elif isinstance(error, anthropic.BadRequestError):
            return "요청 형식이 올바르지 않습니다. 입력 데이터를 확인해주세요."

        # 기본 메시지
        error_str = str(error)
        if "api_key" in error_str.lower():
            return "API 키 설정을 확인해주세요."
        elif "timeout" in error_str.lower():
            return "요청 시간이 초과되었습니다. 다시 시도해주세요."
        elif "connection" in error_str.lower():
            return "네트워크 연결 오류가 발생했습니다."

        return f"Claude API 호출 중 오류가 발생했습니다: {error_str}"
