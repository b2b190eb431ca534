"""
AI Provider Abstraction.

모델 교체 가능하게 설계.
모델명은 config만 SSOT.
"""

from .anthropic import ClaudeProvider
from .base import (
    CODEGEN_PARAMS,
    ChatStreamError,
    CompletionResult,
    GenerationError,
    GenerationParams,
    LLMProvider,
    ProviderError,
)
from .gemini import GeminiProvider

__all__ = [
    "LLMProvider",
    "CompletionResult",
    "GenerationParams",
    "CODEGEN_PARAMS",
    "ProviderError",
    "GenerationError",
    "ChatStreamError",
    "ClaudeProvider",
    "GeminiProvider",
]
