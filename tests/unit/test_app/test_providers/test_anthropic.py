"""
test_anthropic.py - Claude Provider 테스트

- API 키 fail-fast
- complete: model_requested + model_used 기록
- stream_chat: 조각을 순서대로, 도중 실패 시 ChatStreamError

Mock 주의사항:
- MagicMock은 접근되지 않은 속성에 자동으로 새 MagicMock을 반환
- response.model, response.id 등 실제 API 응답 속성을 명시적으로 설정해야 함
- make_anthropic_response() factory 사용 권장
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.app.providers.anthropic import ClaudeProvider
from src.app.providers.base import ChatStreamError, GenerationError, GenerationParams

# =============================================================================
# Mock Factories
# =============================================================================


def make_anthropic_response(
    text: str,
    model: str = "claude-sonnet-4-20250514",
    request_id: str = "msg_test_default",
) -> MagicMock:
    """
    Anthropic API 응답 mock 생성.

    Args:
        text: API 응답 텍스트
        model: 사용된 모델 이름
        request_id: API 요청 ID
    """
    response = MagicMock()
    response.content = [MagicMock()]
    response.content[0].text = text
    response.model = model  # 명시적 설정 필수!
    response.id = request_id  # 명시적 설정 필수!
    return response


class FakeMessageStream:
    """client.messages.stream() 컨텍스트 매니저 mock."""

    def __init__(self, chunks: list[str], error: Exception | None = None):
        self.chunks = chunks
        self.error = error

    async def __aenter__(self) -> "FakeMessageStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    @property
    async def text_stream(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def provider():
    """기본 Claude provider."""
    return ClaudeProvider(
        model="claude-sonnet-4-20250514",
        api_key="test-api-key",
        max_tokens=4096,
    )


# =============================================================================
# 초기화 테스트
# =============================================================================


class TestClaudeProviderInit:
    """ClaudeProvider 초기화 테스트."""

    def test_init_with_api_key(self):
        """API 키 인자."""
        provider = ClaudeProvider(api_key="k")

        assert provider.model == "claude-sonnet-4-20250514"
        assert provider.max_tokens == 4096
        assert provider.api_key == "k"

    def test_init_reads_my_anthropic_key_first(self, monkeypatch):
        """MY_ANTHROPIC_KEY > ANTHROPIC_API_KEY."""
        monkeypatch.setenv("MY_ANTHROPIC_KEY", "mine")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "default")

        assert ClaudeProvider().api_key == "mine"

    def test_missing_key_fails_fast(self, monkeypatch):
        """키 없음 → 즉시 GenerationError."""
        monkeypatch.delenv("MY_ANTHROPIC_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(GenerationError) as exc_info:
            ClaudeProvider()

        assert exc_info.value.code == "ANTHROPIC_KEY_MISSING"

    def test_client_not_created_on_init(self, provider):
        """클라이언트는 lazy."""
        assert provider._client is None


# =============================================================================
# complete 테스트
# =============================================================================


class TestComplete:
    """complete() 테스트."""

    @pytest.mark.asyncio
    async def test_returns_text_and_models(self, provider):
        """응답 텍스트 + model_requested/model_used."""
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            return_value=make_anthropic_response(
                "FILE: App.js\n```js\nx\n```",
                model="claude-sonnet-4-20250514-v2",
                request_id="msg_1",
            )
        )
        provider._client = mock_client

        result = await provider.complete("Build a timer")

        assert result.text.startswith("FILE: App.js")
        assert result.provider == "anthropic"
        assert result.model_requested == "claude-sonnet-4-20250514"
        assert result.model_used == "claude-sonnet-4-20250514-v2"
        assert result.request_id == "msg_1"

    @pytest.mark.asyncio
    async def test_params_forwarded(self, provider):
        """GenerationParams → API kwargs."""
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            return_value=make_anthropic_response("ok")
        )
        provider._client = mock_client

        await provider.complete(
            "p", GenerationParams(temperature=0.2, top_k=40, top_p=0.95, max_tokens=8192)
        )

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 8192
        assert kwargs["temperature"] == 0.2
        assert kwargs["top_k"] == 40
        assert kwargs["top_p"] == 0.95
        assert kwargs["messages"] == [{"role": "user", "content": "p"}]

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, provider):
        """API 예외 → GenerationError(COMPLETION_FAILED)."""
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(side_effect=RuntimeError("boom"))
        provider._client = mock_client

        with pytest.raises(GenerationError) as exc_info:
            await provider.complete("p")

        assert exc_info.value.code == "COMPLETION_FAILED"
        assert "boom" in exc_info.value.message


# =============================================================================
# stream_chat 테스트
# =============================================================================


class TestStreamChat:
    """stream_chat() 테스트."""

    @pytest.mark.asyncio
    async def test_yields_chunks_in_order(self, provider):
        """조각 순서 유지 + system 프롬프트 전달."""
        mock_client = MagicMock()
        mock_client.messages.stream = MagicMock(
            return_value=FakeMessageStream(["Hel", "lo", "!"])
        )
        provider._client = mock_client

        chunks = [
            c
            async for c in provider.stream_chat(
                [{"role": "user", "content": "hi"}], system="You are Grok"
            )
        ]

        assert chunks == ["Hel", "lo", "!"]
        kwargs = mock_client.messages.stream.call_args.kwargs
        assert kwargs["system"] == "You are Grok"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_failure_midway_raises_chat_stream_error(self, provider):
        """도중 실패 → 이미 받은 조각 후 ChatStreamError."""
        mock_client = MagicMock()
        mock_client.messages.stream = MagicMock(
            return_value=FakeMessageStream(["partial"], error=RuntimeError("reset"))
        )
        provider._client = mock_client

        received = []
        with pytest.raises(ChatStreamError) as exc_info:
            async for chunk in provider.stream_chat([{"role": "user", "content": "hi"}]):
                received.append(chunk)

        assert received == ["partial"]
        assert exc_info.value.code == "CHAT_STREAM_FAILED"


# =============================================================================
# 에러 메시지 테스트
# =============================================================================


class TestUserFriendlyErrors:
    """_get_user_friendly_error_message 테스트."""

    def test_timeout_message(self, provider):
        message = provider._get_user_friendly_error_message(Exception("Request timeout"))

        assert "시간이 초과" in message

    def test_generic_message_includes_error(self, provider):
        message = provider._get_user_friendly_error_message(Exception("weird"))

        assert "weird" in message
