"""
Chat session 저장소 + 검색.

저장 정책:
- 키 하나(grok-chat-sessions)에 세션 목록 전체를 JSON으로 저장 (통째로 읽고 씀)
- 새 세션은 맨 앞에 삽입, 기존 세션은 제자리 교체 (앞으로 옮기지 않음)
- 최대 50개, 초과분은 뒤에서부터 제거 (삽입 순서 기준)

에러 정책:
- 읽기/쓰기 실패는 로그만 남기고 호출자에게 전파하지 않음
- 읽기 실패 시 항상 빈 목록
"""

from __future__ import annotations

import json
import logging

from src.core.kv_store import KeyValueBackend
from src.domain.constants import (
    DEFAULT_SESSION_TITLE,
    MAX_STORED_SESSIONS,
    SESSION_STORAGE_KEY,
    TITLE_ELLIPSIS,
    TITLE_MAX_LENGTH,
)
from src.domain.schemas import ChatSession, MessageRole

logger = logging.getLogger(__name__)


# =============================================================================
# Title Derivation
# =============================================================================


def truncate_title(text: str) -> str:
    """50자 초과 시 앞 50자 + '...'."""
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + TITLE_ELLIPSIS
    return text


def derive_title(session: ChatSession) -> str | None:
    """
    기본 제목 세션의 파생 제목.

    Returns:
        첫 사용자 메시지 기반 제목.
        기본 제목이 아니면 기존 제목, 사용자 메시지가 없으면 None.
    """
    if session.title != DEFAULT_SESSION_TITLE:
        return session.title

    for message in session.messages:
        if message.role == MessageRole.USER.value:
            return truncate_title(message.content)
    return None


def display_title(session: ChatSession) -> str:
    """목록/검색 결과 표시용 제목."""
    return derive_title(session) or DEFAULT_SESSION_TITLE


def apply_derived_title(session: ChatSession) -> ChatSession:
    """
    저장 전 제목 확정.

    기본 제목이고 사용자 메시지가 있으면 파생 제목으로 교체.
    한 번 바뀐 제목은 다시 기본값으로 돌아가지 않음.
    """
    if session.title == DEFAULT_SESSION_TITLE:
        derived = derive_title(session)
        if derived is not None:
            session.title = derived
    return session


# =============================================================================
# Session Store
# =============================================================================


class SessionStore:
    """
    채팅 세션 저장소.

    Usage:
        store = SessionStore(FileBackend(Path("data")))
        store.save(session)
        sessions = store.list()
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        key: str = SESSION_STORAGE_KEY,
        capacity: int = MAX_STORED_SESSIONS,
    ):
        """
        Args:
            backend: key-value 백엔드 (NullBackend면 항상 빈 저장소처럼 동작)
            key: 세션 목록 저장 키
            capacity: 최대 보관 세션 수
        """
        self.backend = backend
        self.key = key
        self.capacity = capacity
        if not backend.available:
            logger.warning(
                f"No storage backend for {key!r} ({type(backend).__name__}), "
                f"chat sessions will not be kept"
            )

    def list(self) -> list[ChatSession]:
        """
        저장된 세션 전체 (최근 삽입 순).

        저장소가 없거나, 비었거나, 역직렬화 실패 시 빈 목록.
        """
        try:
            raw = self.backend.get(self.key)
            if not raw:
                return []

            data = json.loads(raw)
            if not isinstance(data, list):
                logger.error(
                    f"Invalid session data under {self.key!r}: "
                    f"expected list, got {type(data).__name__}"
                )
                return []

            return [ChatSession.from_dict(item) for item in data]

        except Exception as e:
            logger.error(f"Error loading chat sessions: {e}", exc_info=True)
            return []

    def get(self, session_id: str) -> ChatSession | None:
        """ID로 세션 조회."""
        for session in self.list():
            if session.id == session_id:
                return session
        return None

    def save(self, session: ChatSession) -> None:
        """
        세션 저장 (upsert).

        - 같은 ID가 있으면 그 위치에서 교체
        - 없으면 맨 앞에 삽입 후 capacity 초과분 제거
        """
        try:
            sessions = self.list()
            existing_index = next(
                (i for i, s in enumerate(sessions) if s.id == session.id),
                None,
            )

            if existing_index is not None:
                sessions[existing_index] = session
            else:
                sessions.insert(0, session)

            self._write(sessions[: self.capacity])

        except Exception as e:
            logger.error(f"Error saving chat session {session.id}: {e}", exc_info=True)

    def delete(self, session_id: str) -> None:
        """세션 삭제 (없으면 no-op, 마지막 세션이면 키 자체를 제거)."""
        try:
            sessions = self.list()
            remaining = [s for s in sessions if s.id != session_id]
            if len(remaining) == len(sessions):
                return
            if not remaining:
                self.backend.remove(self.key)
                return
            self._write(remaining)

        except Exception as e:
            logger.error(f"Error deleting chat session {session_id}: {e}", exc_info=True)

    def search(self, query: str) -> list[ChatSession]:
        """
        제목 또는 메시지 내용 부분 일치 검색 (대소문자 무시).

        빈 쿼리(공백만 포함 포함)는 검색하지 않음 → 빈 목록.
        """
        if not query or not query.strip():
            return []

        needle = query.lower()
        return [
            session
            for session in self.list()
            if needle in session.title.lower()
            or any(needle in m.content.lower() for m in session.messages)
        ]

    def _write(self, sessions: list[ChatSession]) -> None:
        payload = json.dumps([s.to_dict() for s in sessions], ensure_ascii=False)
        self.backend.set(self.key, payload)
