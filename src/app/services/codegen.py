"""
Code Generation Service: 자연어 설명 → Expo 앱 파일.

- 프롬프트 구성 (기존 파일이 있으면 수정 요청)
- LLM 호출 1회 (자동 재시도 없음)
- 응답 파싱은 core/response_parser에 위임 (실패 없이 fallback)
"""

import logging

from src.app.providers.base import (
    CODEGEN_PARAMS,
    GenerationError,
    GenerationParams,
    LLMProvider,
)
from src.app.providers.gemini import GeminiProvider
from src.core.response_parser import parse_generation_response
from src.domain.schemas import GeneratedCode

logger = logging.getLogger(__name__)

RESPONSE_FORMAT_INSTRUCTIONS = """

Respond with a detailed explanation of what you built and how it works, followed by the code files.
For each file, use the format:

FILE: filename.js
```
// file content here
```

Do not use JSON format for your response."""


def build_codegen_prompt(
    prompt: str,
    existing_files: dict[str, str] | None = None,
) -> str:
    """
    코드 생성 프롬프트 구성.

    Args:
        prompt: 사용자 설명
        existing_files: 수정 대상 기존 파일 (없으면 신규 프로젝트)

    Returns:
        LLM에 보낼 전체 프롬프트
    """
    full_prompt = (
        "Generate a React Native and Expo mobile app based on this description: "
        f'"{prompt}".'
    )

    if existing_files:
        full_prompt += "\n\nHere are the existing files to modify or extend:\n"
        for filename, content in existing_files.items():
            full_prompt += f"\n--- {filename} ---\n{content}\n"
        full_prompt += (
            "\n\nPlease provide only the files that need to be changed or added. "
            "Explain your changes."
        )
    else:
        full_prompt += (
            "\n\nProvide a complete project structure with all necessary files "
            "for a working Expo app."
        )

    return full_prompt + RESPONSE_FORMAT_INSTRUCTIONS


class CodeGenerationService:
    """
    코드 생성 서비스.

    Usage:
        service = CodeGenerationService(GeminiProvider())
        result = await service.generate("A tip calculator")
        result = await service.generate("Add dark mode", existing_files=result.files)
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        config: dict | None = None,
        params: GenerationParams | None = None,
    ):
        """
        Args:
            provider: LLM Provider (None이면 config 기반 Gemini 생성)
            config: 설정 (ai.codegen 포함)
            params: 호출 파라미터 (None이면 CODEGEN_PARAMS)
        """
        self.config = config or {}

        if provider is not None:
            self.provider = provider
        else:
            codegen_config = self.config.get("ai", {}).get("codegen", {})
            self.provider = GeminiProvider(
                model=codegen_config.get("model", "gemini-1.5-pro"),
                fallback=codegen_config.get("fallback", "gemini-1.5-flash"),
            )
        self.params = params or CODEGEN_PARAMS

    async def generate(
        self,
        prompt: str,
        existing_files: dict[str, str] | None = None,
    ) -> GeneratedCode:
        """
        앱 코드 생성.

        Args:
            prompt: 사용자 설명
            existing_files: 기존 프로젝트 파일 (수정 요청 시)

        Returns:
            GeneratedCode (기존 파일이 있으면 병합된 files + changed_files)

        Raises:
            GenerationError: LLM 호출 실패
        """
        full_prompt = build_codegen_prompt(prompt, existing_files)

        try:
            completion = await self.provider.complete(full_prompt, self.params)
        except GenerationError:
            raise
        except Exception as e:
            logger.error(f"Code generation failed: {e}", exc_info=True)
            raise GenerationError(
                "GENERATION_FAILED",
                f"Failed to generate code: {e}",
            ) from e

        logger.info(
            f"Generation completed: provider={completion.provider}, "
            f"model_used={completion.model_used}, "
            f"fallback={completion.fallback_triggered}, "
            f"response_length={len(completion.text)}"
        )

        return parse_generation_response(completion.text, existing_files)
