"""
Google Gemini Provider.

코드 생성 기본 provider.

Fallback 예외 정책:
- FALLBACK_ERRORS: NotFound, ServiceUnavailable, ResourceExhausted → fallback 모델로 1회
- REJECT_IMMEDIATELY: InvalidArgument, PermissionDenied, Unauthenticated → 즉시 에러
- 그 외 예외 → 즉시 에러 (자동 재시도 없음)
"""

import logging
import os
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from google.api_core.exceptions import (
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ResourceExhausted,
    ServiceUnavailable,
    Unauthenticated,
)

from .base import (
    ChatStreamError,
    CompletionResult,
    GenerationError,
    GenerationParams,
    LLMProvider,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Exception Mapping
# =============================================================================

# Fallback 타는 예외
FALLBACK_ERRORS: tuple[type[Exception], ...] = (
    NotFound,           # 모델명 오류/미지원
    ServiceUnavailable,  # 5xx
    ResourceExhausted,   # 429 쿼터/레이트리밋
)

# 즉시 reject하는 예외
REJECT_IMMEDIATELY: tuple[type[Exception], ...] = (
    InvalidArgument,    # 입력 오류
    PermissionDenied,   # 권한 오류
    Unauthenticated,    # API 키 오류
)

# 채팅 role → Gemini role
_ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiProvider(LLMProvider):
    """
    Gemini Provider.

    Usage:
        provider = GeminiProvider(
            model="gemini-1.5-pro",
            fallback="gemini-1.5-flash",
        )
        result = await provider.complete(prompt, CODEGEN_PARAMS)
    """

    name = "gemini"

    def __init__(
        self,
        model: str = "gemini-1.5-pro",
        fallback: str | None = "gemini-1.5-flash",
        api_key: str | None = None,
    ):
        """
        Args:
            model: 기본 모델 ID (config에서 주입)
            fallback: Fallback 모델 (None이면 재시도 없이 실패)
            api_key: API 키 (환경변수 GOOGLE_API_KEY 사용 가능)
        """
        self.model = model
        self.fallback = fallback
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        self._client: Any = None

    def _get_client(self) -> Any:
        """Gemini 클라이언트 (lazy init)."""
        if self._client is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._client = genai
        return self._client

    def _build_model(
        self,
        model: str,
        params: GenerationParams | None = None,
        system: str | None = None,
    ) -> Any:
        """모델 인스턴스 생성."""
        genai = self._get_client()

        config: dict[str, Any] = {}
        if params is not None:
            if params.temperature is not None:
                config["temperature"] = params.temperature
            if params.top_k is not None:
                config["top_k"] = params.top_k
            if params.top_p is not None:
                config["top_p"] = params.top_p
            if params.max_tokens is not None:
                config["max_output_tokens"] = params.max_tokens

        kwargs: dict[str, Any] = {}
        if config:
            kwargs["generation_config"] = config
        if system:
            kwargs["system_instruction"] = system
        return genai.GenerativeModel(model, **kwargs)

    async def complete(
        self,
        prompt: str,
        params: GenerationParams | None = None,
    ) -> CompletionResult:
        """
        단건 완성 API.

        Fallback 정책:
        - FALLBACK_ERRORS → fallback 모델로 재시도
        - REJECT_IMMEDIATELY → 즉시 에러
        """
        model_requested = self.model

        # 1차 시도: 기본 모델
        try:
            result = await self._call_api(self.model, prompt, params)
            result.model_requested = model_requested
            result.model_used = self.model
            result.fallback_triggered = False
            return result

        except FALLBACK_ERRORS as e:
            logger.warning(
                f"Primary model ({self.model}) failed with fallback error: {e}. "
                f"Attempting fallback..."
            )

            if self.fallback is None:
                raise GenerationError(
                    "NO_FALLBACK",
                    self._get_user_friendly_error_message(e),
                    model=self.model,
                ) from e

            try:
                logger.info(f"Trying fallback model: {self.fallback}")
                result = await self._call_api(self.fallback, prompt, params)
                result.model_requested = model_requested
                result.model_used = self.fallback
                result.fallback_triggered = True
                logger.info("Fallback model succeeded")
                return result
            except Exception as fallback_error:
                logger.error(f"Fallback model also failed: {fallback_error}")
                user_friendly_message = (
                    f"{self._get_user_friendly_error_message(fallback_error)} "
                    f"기본 모델과 대체 모델 모두 실패했습니다."
                )
                raise GenerationError(
                    "FALLBACK_FAILED",
                    user_friendly_message,
                    primary_model=self.model,
                    fallback_model=self.fallback,
                ) from fallback_error

        except REJECT_IMMEDIATELY as e:
            # 즉시 실패 (인증/입력 오류)
            logger.error(f"Authentication or input error: {e}", exc_info=True)
            raise GenerationError(
                "AUTH_OR_INPUT_ERROR",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

        except Exception as e:
            logger.error(f"Generation failed with unexpected error: {e}", exc_info=True)
            raise GenerationError(
                "GENERATION_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

    async def _call_api(
        self,
        model: str,
        prompt: str,
        params: GenerationParams | None,
    ) -> CompletionResult:
        """실제 Gemini API 호출. 예외는 상위로 전파 (fallback 정책 적용)."""
        now = datetime.now(UTC).isoformat()
        model_instance = self._build_model(model, params)
        response = await model_instance.generate_content_async(prompt)

        return CompletionResult(
            text=response.text or "",
            provider=self.name,
            completed_at=now,
        )

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
    ) -> AsyncIterator[str]:
        """
        채팅 응답 스트림 (fallback 없음).

        Gemini는 assistant 대신 model role을 사용.
        """
        contents = [
            {"role": _ROLE_MAP.get(m["role"], "user"), "parts": [m["content"]]}
            for m in messages
        ]
        try:
            model_instance = self._build_model(self.model, system=system)
            response = await model_instance.generate_content_async(
                contents, stream=True
            )
            async for chunk in response:
                if chunk.text:
                    yield chunk.text
        except Exception as e:
            logger.error(f"Gemini stream failed: {e}", exc_info=True)
            raise ChatStreamError(
                "CHAT_STREAM_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """사용자 친화적인 에러 메시지 생성."""
        if isinstance(error, Unauthenticated):
            return (
                "Google API 인증에 실패했습니다. "
                "GOOGLE_API_KEY 환경변수를 확인해주세요."
            )
        elif isinstance(error, PermissionDenied):
            return (
                "이 작업을 수행할 권한이 없습니다. "
                "API 키의 권한을 확인해주세요."
            )
        elif isinstance(error, ResourceExhausted):
            return (
                "API 사용량 한도를 초과했습니다. "
                "잠시 후 다시 시도하거나 할당량을 확인해주세요."
            )
        elif isinstance(error, ServiceUnavailable):
            return (
                "Google API 서비스를 일시적으로 사용할 수 없습니다. "
                "잠시 후 다시 시도해주세요."
            )
        elif isinstance(error, InvalidArgument):
            return "요청 형식이 올바르지 않습니다. 프롬프트를 확인해주세요."

        # 기본 메시지
        error_str = str(error)
        if "api_key" in error_str.lower() or "api key" in error_str.lower():
            return "API 키 설정을 확인해주세요."
        elif "quota" in error_str.lower() or "limit" in error_str.lower():
            return "API 사용량 한도를 초과했습니다. 잠시 후 다시 시도해주세요."
        elif "connection" in error_str.lower():
            return "네트워크 연결 오류가 발생했습니다."
        elif "timeout" in error_str.lower():
            return "요청 시간이 초과되었습니다. 다시 시도해주세요."

        return f"코드 생성 중 오류가 발생했습니다: {error_str}"
