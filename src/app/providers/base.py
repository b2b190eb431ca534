"""
AI Provider 추상 인터페이스.

- Provider 추상화로 모델 교체 가능 (코드 생성 / 채팅 각각 config로 선택)
- model_requested + model_used 기록 (fallback 시 다를 수 있음)
- 자동 재시도 없음: 실패는 호출자에게 전파, 재시도는 사용자가 직접
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any


@dataclass
class GenerationParams:
    """
    LLM 호출 파라미터.

    코드 생성 기본값: temperature 0.2, top_k 40, top_p 0.95, 8192 토큰
    """
    temperature: float | None = None
    top_k: int | None = None
    top_p: float | None = None
    max_tokens: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "top_k": self.top_k,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
        }


CODEGEN_PARAMS = GenerationParams(
    temperature=0.2,
    top_k=40,
    top_p=0.95,
    max_tokens=8192,
)


# =============================================================================
# Result Data Classes
# =============================================================================

@dataclass
class CompletionResult:
    """
    단건 완성 결과.

    - model_requested: config에 설정된 모델
    - model_used: 실제 호출된 모델 (fallback 시 다를 수 있음)
    - fallback_triggered: fallback 발생 여부
    """
    text: str
    provider: str
    model_requested: str | None = None
    model_used: str | None = None
    fallback_triggered: bool = False
    request_id: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "provider": self.provider,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "fallback_triggered": self.fallback_triggered,
            "request_id": self.request_id,
            "completed_at": self.completed_at,
            "text_length": len(self.text),
        }
        return {k: v for k, v in result.items() if v is not None}


# =============================================================================
# Provider Exceptions
# =============================================================================

class ProviderError(Exception):
    """Provider 관련 에러."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")


class GenerationError(ProviderError):
    """코드 생성(단건 완성) 관련 에러."""
    pass


class ChatStreamError(ProviderError):
    """채팅 스트림 관련 에러."""
    pass


# =============================================================================
# Abstract Provider
# =============================================================================

class LLMProvider(ABC):
    """
    LLM Provider 추상 인터페이스.

    역할:
    - complete: 코드 생성 요청 (요청 1회 → 응답 텍스트 1개)
    - stream_chat: 채팅 응답 스트림 (텍스트 조각을 도착 순서대로)
    """

    name: str = "base"

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        params: GenerationParams | None = None,
    ) -> CompletionResult:
        """
        단건 완성 API.

        Args:
            prompt: 프롬프트
            params: 호출 파라미터 (None이면 provider 기본값)

        Returns:
            CompletionResult

        Raises:
            GenerationError: API 호출 실패
        """
        ...

    @abstractmethod
    def stream_chat(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
    ) -> AsyncIterator[str]:
        """
        채팅 응답 스트림.

        Args:
            messages: [{"role": "user"|"assistant", "content": ...}, ...]
            system: 시스템 프롬프트

        Returns:
            텍스트 조각 async iterator (한 번만 소비 가능)

        Raises:
            ChatStreamError: 스트림 도중 실패 (소비 중 발생할 수 있음)
        """
        ...
