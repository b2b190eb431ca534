"""
Chat Service: 사용자 메시지 → 스트리밍 응답 → 세션 저장.

흐름:
1. 사용자 메시지 추가 + 제목 확정 + 저장
2. provider 스트림 소비 (조각을 도착 순서대로 이어 붙임)
3. 어시스턴트 메시지 추가 + 저장

스트림이 도중에 실패하면 부분 응답은 버리고 CHAT_FALLBACK_MESSAGE로 대체.
같은 세션에 대한 요청은 한 번에 하나 (busy).
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field, replace
from typing import Any

from src.app.providers.anthropic import ClaudeProvider
from src.app.providers.base import LLMProvider
from src.core.ids import generate_message_id, generate_session_id, utc_now_iso
from src.core.session_store import SessionStore, apply_derived_title
from src.domain.constants import CHAT_FALLBACK_MESSAGE, CHAT_SYSTEM_PROMPT
from src.domain.errors import AppError, ErrorCodes
from src.domain.schemas import ChatMessage, ChatSession, MessageRole

logger = logging.getLogger(__name__)


@dataclass
class ChatStreamEvent:
    """
    스트림 이벤트 (SSE 라우트로 전달).

    - chunk: 응답 조각
    - reset: 스트림 실패, 지금까지 받은 조각을 버리고 text로 대체
    - done: 완료, session에 최종 상태
    """
    type: str
    text: str = ""
    session: ChatSession | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def to_provider_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """ChatMessage → provider 입력 포맷 (role, content만)."""
    return [{"role": m.role, "content": m.content} for m in messages]


class ChatService:
    """
    채팅 서비스.

    Usage:
        service = ChatService(store, ClaudeProvider())
        session = service.new_session()
        async for event in service.stream_reply(session.id, "Hello"):
            ...
    """

    def __init__(
        self,
        store: SessionStore,
        provider: LLMProvider | None = None,
        config: dict | None = None,
        system_prompt: str = CHAT_SYSTEM_PROMPT,
    ):
        """
        Args:
            store: 세션 저장소
            provider: 스트리밍 LLM provider (None이면 첫 요청 시 config 기반 생성)
            config: 설정 (ai.chat 포함)
            system_prompt: 시스템 프롬프트
        """
        self.store = store
        self.config = config or {}
        self.provider = provider
        self.system_prompt = system_prompt
        # 아직 메시지가 없어 저장되지 않은 새 세션
        self._pending: dict[str, ChatSession] = {}
        self._busy: set[str] = set()

    def _get_provider(self) -> LLMProvider:
        """
        Provider (lazy init).

        API 키가 없으면 여기서 GenerationError가 나고, 스트림 실패로 처리됨.
        """
        if self.provider is None:
            chat_config = self.config.get("ai", {}).get("chat", {})
            self.provider = ClaudeProvider(
                model=chat_config.get("model", "claude-sonnet-4-20250514"),
                max_tokens=chat_config.get("max_tokens", 4096),
            )
        return self.provider

    # =========================================================================
    # Sessions
    # =========================================================================

    def new_session(self) -> ChatSession:
        """새 세션 (첫 메시지 전까지는 저장하지 않음)."""
        now = utc_now_iso()
        session = ChatSession(id=generate_session_id(), created_at=now, updated_at=now)
        self._pending[session.id] = session
        return session

    def get_session(self, session_id: str) -> ChatSession:
        """
        세션 조회.

        Raises:
            AppError: SESSION_NOT_FOUND
        """
        session = self.store.get(session_id) or self._pending.get(session_id)
        if session is None:
            raise AppError(ErrorCodes.SESSION_NOT_FOUND, session_id=session_id)
        return session

    def update_session(self, session: ChatSession) -> ChatSession:
        """제목 확정 후 저장."""
        apply_derived_title(session)
        self.store.save(session)
        self._pending.pop(session.id, None)
        return session

    def delete_session(self, session_id: str) -> None:
        """세션 삭제 (없으면 no-op)."""
        self._pending.pop(session_id, None)
        self.store.delete(session_id)

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._busy

    # =========================================================================
    # Streaming
    # =========================================================================

    async def _consume(
        self,
        history: list[ChatMessage],
    ) -> AsyncIterator[ChatStreamEvent]:
        """
        provider 스트림 소비.

        마지막 이벤트의 text가 최종 응답 (실패 시 fallback 메시지).
        """
        parts: list[str] = []
        try:
            async for chunk in self._get_provider().stream_chat(
                to_provider_messages(history), system=self.system_prompt
            ):
                parts.append(chunk)
                yield ChatStreamEvent(type="chunk", text=chunk)
        except Exception as e:
            logger.error(
                f"Chat stream failed after {len(parts)} chunk(s): {e}", exc_info=True
            )
            yield ChatStreamEvent(
                type="reset",
                text=CHAT_FALLBACK_MESSAGE,
                extra={"error": getattr(e, "code", type(e).__name__)},
            )
            return
        yield ChatStreamEvent(type="final", text="".join(parts))

    def _acquire(self, session_id: str) -> None:
        if session_id in self._busy:
            raise AppError(ErrorCodes.CHAT_BUSY, session_id=session_id)
        self._busy.add(session_id)

    def check_reply(self, session_id: str, content: str) -> ChatSession:
        """
        전송 전 검사 (스트림 시작 전에 HTTP 상태를 정하기 위해 라우트에서도 호출).

        Raises:
            AppError: EMPTY_MESSAGE, SESSION_NOT_FOUND, CHAT_BUSY
        """
        if not content or not content.strip():
            raise AppError(ErrorCodes.EMPTY_MESSAGE, session_id=session_id)
        session = self.get_session(session_id)
        if self.is_busy(session_id):
            raise AppError(ErrorCodes.CHAT_BUSY, session_id=session_id)
        return session

    def check_regenerate(self, session_id: str, index: int) -> ChatSession:
        """
        재생성 전 검사.

        Raises:
            AppError: SESSION_NOT_FOUND, MESSAGE_INDEX_OUT_OF_RANGE,
                NOT_ASSISTANT_MESSAGE, CHAT_BUSY
        """
        session = self.get_session(session_id)
        if index < 0 or index >= len(session.messages):
            raise AppError(
                ErrorCodes.MESSAGE_INDEX_OUT_OF_RANGE,
                session_id=session_id,
                index=index,
                size=len(session.messages),
            )
        if session.messages[index].role != MessageRole.ASSISTANT.value:
            raise AppError(
                ErrorCodes.NOT_ASSISTANT_MESSAGE, session_id=session_id, index=index
            )
        if self.is_busy(session_id):
            raise AppError(ErrorCodes.CHAT_BUSY, session_id=session_id)
        return session

    async def stream_reply(
        self,
        session_id: str,
        content: str,
    ) -> AsyncIterator[ChatStreamEvent]:
        """
        메시지 전송 + 응답 스트림.

        Raises:
            AppError: EMPTY_MESSAGE, SESSION_NOT_FOUND, CHAT_BUSY
        """
        session = self.check_reply(session_id, content)
        self._acquire(session_id)
        try:
            user_message = ChatMessage(
                id=generate_message_id(),
                role=MessageRole.USER.value,
                content=content.strip(),
                timestamp=utc_now_iso(),
            )
            session.messages.append(user_message)
            session.updated_at = utc_now_iso()
            self.update_session(session)

            reply = ""
            async for event in self._consume(session.messages):
                if event.type == "final":
                    reply = event.text
                    continue
                if event.type == "reset":
                    reply = event.text
                yield event

            session.messages.append(
                ChatMessage(
                    id=generate_message_id(),
                    role=MessageRole.ASSISTANT.value,
                    content=reply,
                    timestamp=utc_now_iso(),
                )
            )
            session.updated_at = utc_now_iso()
            self.update_session(session)
            yield ChatStreamEvent(type="done", text=reply, session=session)
        finally:
            self._busy.discard(session_id)

    async def stream_regenerate(
        self,
        session_id: str,
        index: int,
    ) -> AsyncIterator[ChatStreamEvent]:
        """
        어시스턴트 메시지 재생성.

        messages[:index]로 다시 스트림을 받아 index 위치의 메시지를 교체.
        ID는 유지, 내용/시각만 바뀜. 다른 메시지의 순서는 그대로.

        Raises:
            AppError: SESSION_NOT_FOUND, MESSAGE_INDEX_OUT_OF_RANGE,
                NOT_ASSISTANT_MESSAGE, CHAT_BUSY
        """
        session = self.check_regenerate(session_id, index)
        self._acquire(session_id)
        try:
            reply = ""
            async for event in self._consume(session.messages[:index]):
                if event.type == "final":
                    reply = event.text
                    continue
                if event.type == "reset":
                    reply = event.text
                yield event

            session.messages[index] = replace(
                session.messages[index],
                content=reply,
                timestamp=utc_now_iso(),
            )
            session.updated_at = utc_now_iso()
            self.update_session(session)
            yield ChatStreamEvent(type="done", text=reply, session=session)
        finally:
            self._busy.discard(session_id)

    async def _final_session(
        self,
        session_id: str,
        events: AsyncIterator[ChatStreamEvent],
    ) -> ChatSession:
        """스트림을 끝까지 소비하고 done 이벤트의 세션 반환."""
        session: ChatSession | None = None
        async for event in events:
            if event.type == "done":
                session = event.session
        if session is None:
            raise AppError(ErrorCodes.CHAT_STREAM_FAILED, session_id=session_id)
        return session

    async def send_message(self, session_id: str, content: str) -> ChatSession:
        """메시지 전송 후 최종 세션 반환 (스트림 없이)."""
        return await self._final_session(
            session_id, self.stream_reply(session_id, content)
        )

    async def regenerate(self, session_id: str, index: int) -> ChatSession:
        """재생성 후 최종 세션 반환 (스트림 없이)."""
        return await self._final_session(
            session_id, self.stream_regenerate(session_id, index)
        )
