"""
Pytest fixtures for the app builder tests.

구성:
- 경로/설정 fixture
- 가짜 LLM provider (complete / stream_chat)
- 샘플 LLM 응답 텍스트
"""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import yaml

from src.app.providers.base import (
    ChatStreamError,
    CompletionResult,
    GenerationParams,
    LLMProvider,
)
from src.core.kv_store import InMemoryBackend
from src.core.session_store import SessionStore

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


# =============================================================================
# Fake Provider
# =============================================================================


class FakeLLMProvider(LLMProvider):
    """
    테스트용 provider.

    - complete: responses를 순서대로 반환 (Exception이면 raise)
    - stream_chat: chunks를 yield, fail_after가 있으면 그 개수 이후 ChatStreamError
    """

    name = "fake"

    def __init__(
        self,
        responses: list[str | Exception] | None = None,
        chunks: list[str] | None = None,
        fail_after: int | None = None,
    ):
        self.responses = list(responses or [])
        self.chunks = list(chunks or [])
        self.fail_after = fail_after
        self.prompts: list[str] = []
        self.stream_calls: list[list[dict[str, str]]] = []

    async def complete(
        self,
        prompt: str,
        params: GenerationParams | None = None,
    ) -> CompletionResult:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return CompletionResult(
            text=response,
            provider=self.name,
            model_requested="fake-model",
            model_used="fake-model",
        )

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
    ) -> AsyncIterator[str]:
        self.stream_calls.append(list(messages))
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise ChatStreamError("CHAT_STREAM_FAILED", "stream dropped")
            yield chunk
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise ChatStreamError("CHAT_STREAM_FAILED", "stream dropped")


@pytest.fixture
def fake_provider_cls() -> type[FakeLLMProvider]:
    """FakeLLMProvider 클래스 (테스트별 설정용)."""
    return FakeLLMProvider


@pytest.fixture
def memory_store() -> SessionStore:
    """메모리 백엔드 세션 저장소."""
    return SessionStore(InMemoryBackend())


# =============================================================================
# Sample Responses
# =============================================================================

SAMPLE_CODEGEN_RESPONSE = """I built a simple counter app with increment and reset buttons.

FILE: App.js
```javascript
import React, { useState } from 'react';
export default function App() {
  const [count, setCount] = useState(0);
  return null;
}
```

FILE: components/Button.js
```jsx
export const Button = () => null;
```
"""

SAMPLE_FOLLOWUP_RESPONSE = """Added a dark theme toggle to the main screen.

FILE: App.js
```javascript
export default function App() { return 'dark'; }
```
"""


@pytest.fixture
def sample_codegen_response() -> str:
    """FILE + fenced 블록 2개가 있는 코드 생성 응답."""
    return SAMPLE_CODEGEN_RESPONSE


@pytest.fixture
def sample_followup_response() -> str:
    """App.js만 바꾸는 후속 응답."""
    return SAMPLE_FOLLOWUP_RESPONSE
