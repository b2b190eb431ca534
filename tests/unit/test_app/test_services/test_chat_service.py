"""
test_chat_service.py - 채팅 서비스 테스트

검증 포인트:
1. 메시지 전송 → user + assistant 저장, 제목 파생
2. 조각은 도착 순서대로 이어 붙임
3. 스트림 도중 실패 → 부분 응답 버리고 fallback 메시지
4. 재생성 → 같은 위치 교체 (ID 유지, 다른 메시지 그대로)
5. 같은 세션 동시 요청 → CHAT_BUSY
"""

import pytest

from src.app.services.chat import ChatService, ChatStreamEvent, to_provider_messages
from src.core.kv_store import NullBackend
from src.core.session_store import SessionStore
from src.domain.constants import CHAT_FALLBACK_MESSAGE, CHAT_SYSTEM_PROMPT
from src.domain.errors import AppError, ErrorCodes

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def provider(fake_provider_cls):
    """'Hello', ' there' 두 조각."""
    return fake_provider_cls(chunks=["Hello", " there"])


@pytest.fixture
def service(memory_store, provider) -> ChatService:
    return ChatService(memory_store, provider)


async def collect(events):
    return [event async for event in events]


# =============================================================================
# Sessions
# =============================================================================


class TestSessions:
    """세션 관리 테스트."""

    def test_new_session_not_stored_until_first_message(self, service):
        """새 세션은 pending (목록에 없음)."""
        session = service.new_session()

        assert service.store.list() == []
        assert service.get_session(session.id) is session

    def test_get_missing_session(self, service):
        with pytest.raises(AppError) as exc_info:
            service.get_session("missing")

        assert exc_info.value.code == ErrorCodes.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_session(self, service):
        session = service.new_session()
        await service.send_message(session.id, "hi")

        service.delete_session(session.id)

        assert service.store.list() == []
        with pytest.raises(AppError):
            service.get_session(session.id)


# =============================================================================
# Send
# =============================================================================


class TestSendMessage:
    """메시지 전송 테스트."""

    @pytest.mark.asyncio
    async def test_reply_is_concatenated_chunks(self, service):
        """조각 순서대로 이어 붙인 응답 저장."""
        session = service.new_session()

        result = await service.send_message(session.id, "  Build me a timer app  ")

        assert [m.role for m in result.messages] == ["user", "assistant"]
        assert result.messages[0].content == "Build me a timer app"
        assert result.messages[1].content == "Hello there"
        assert result.title == "Build me a timer app"

        stored = service.store.get(session.id)
        assert stored is not None
        assert stored.to_dict() == result.to_dict()

    @pytest.mark.asyncio
    async def test_stream_events(self, service):
        """chunk 이벤트 → done 이벤트."""
        session = service.new_session()

        events = await collect(service.stream_reply(session.id, "hi"))

        assert [e.type for e in events] == ["chunk", "chunk", "done"]
        assert [e.text for e in events[:2]] == ["Hello", " there"]
        assert events[-1].text == "Hello there"
        assert events[-1].session is not None

    @pytest.mark.asyncio
    async def test_history_and_system_prompt_sent(self, service, provider):
        """전체 히스토리 + 시스템 프롬프트."""
        session = service.new_session()
        await service.send_message(session.id, "first")
        await service.send_message(session.id, "second")

        last_call = provider.stream_calls[-1]
        assert [m["content"] for m in last_call] == ["first", "Hello there", "second"]

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, service):
        session = service.new_session()

        with pytest.raises(AppError) as exc_info:
            await service.send_message(session.id, "   ")

        assert exc_info.value.code == ErrorCodes.EMPTY_MESSAGE

    @pytest.mark.asyncio
    async def test_stream_failure_uses_fallback(self, memory_store, fake_provider_cls):
        """도중 실패 → reset 이벤트, fallback 메시지 저장."""
        provider = fake_provider_cls(chunks=["partial ", "answer"], fail_after=1)
        service = ChatService(memory_store, provider)
        session = service.new_session()

        events = await collect(service.stream_reply(session.id, "hi"))

        assert [e.type for e in events] == ["chunk", "reset", "done"]
        assert events[1].text == CHAT_FALLBACK_MESSAGE
        assert events[1].extra == {"error": "CHAT_STREAM_FAILED"}
        stored = memory_store.get(session.id)
        assert stored.messages[-1].content == CHAT_FALLBACK_MESSAGE
        assert not service.is_busy(session.id)

    @pytest.mark.asyncio
    async def test_busy_rejects_second_send(self, service):
        """응답 진행 중 → CHAT_BUSY."""
        session = service.new_session()
        stream = service.stream_reply(session.id, "first")
        await stream.__anext__()

        assert service.is_busy(session.id)
        with pytest.raises(AppError) as exc_info:
            await service.send_message(session.id, "second")
        assert exc_info.value.code == ErrorCodes.CHAT_BUSY

        await collect(stream)
        assert not service.is_busy(session.id)

    @pytest.mark.asyncio
    async def test_lazy_provider_missing_key_is_stream_failure(
        self, memory_store, monkeypatch
    ):
        """provider 없음 + API 키 없음 → fallback 응답."""
        monkeypatch.delenv("MY_ANTHROPIC_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        service = ChatService(memory_store)
        session = service.new_session()

        result = await service.send_message(session.id, "hi")

        assert result.messages[-1].content == CHAT_FALLBACK_MESSAGE


# =============================================================================
# Regenerate
# =============================================================================


class TestRegenerate:
    """재생성 테스트."""

    @pytest.mark.asyncio
    async def test_replaces_in_place(self, service, provider):
        """같은 인덱스 교체, ID 유지, 다른 메시지 그대로."""
        session = service.new_session()
        await service.send_message(session.id, "first")
        await service.send_message(session.id, "second")
        before = service.get_session(session.id)
        old = before.messages[1]

        provider.chunks = ["New", " answer"]
        result = await service.regenerate(session.id, 1)

        assert len(result.messages) == 4
        assert result.messages[1].id == old.id
        assert result.messages[1].content == "New answer"
        assert [m.content for m in result.messages[2:]] == ["second", "Hello there"]
        assert [m["content"] for m in provider.stream_calls[-1]] == ["first"]

    @pytest.mark.asyncio
    async def test_index_out_of_range(self, service):
        session = service.new_session()
        await service.send_message(session.id, "hi")

        with pytest.raises(AppError) as exc_info:
            await service.regenerate(session.id, 5)

        assert exc_info.value.code == ErrorCodes.MESSAGE_INDEX_OUT_OF_RANGE

    @pytest.mark.asyncio
    async def test_user_message_rejected(self, service):
        session = service.new_session()
        await service.send_message(session.id, "hi")

        with pytest.raises(AppError) as exc_info:
            await service.regenerate(session.id, 0)

        assert exc_info.value.code == ErrorCodes.NOT_ASSISTANT_MESSAGE


class TestHelpers:
    """보조 함수 테스트."""

    def test_default_system_prompt(self, service):
        assert service.system_prompt == CHAT_SYSTEM_PROMPT

    def test_to_provider_messages(self, service):
        session = service.new_session()

        assert to_provider_messages(session.messages) == []


class TestFinalSession:
    """스트림 없는 호출의 최종 세션 테스트."""

    @pytest.mark.asyncio
    async def test_missing_done_event_raises(self, service):
        """done 이벤트 없이 끝난 스트림 → CHAT_STREAM_FAILED."""

        async def events():
            yield ChatStreamEvent(type="chunk", text="partial")

        with pytest.raises(AppError) as exc_info:
            await service._final_session("s1", events())

        assert exc_info.value.code == ErrorCodes.CHAT_STREAM_FAILED

    @pytest.mark.asyncio
    async def test_null_backend_still_returns_session(self, provider):
        """저장소 없음 → 저장은 안 되지만 응답 세션은 반환."""
        service = ChatService(SessionStore(NullBackend()), provider)
        session = service.new_session()

        result = await service.send_message(session.id, "hi")

        assert [m.content for m in result.messages] == ["hi", "Hello there"]
        assert service.store.list() == []
