"""
Core layer: 외부 서비스와 무관한 핵심 로직.

역할:
- LLM 응답 파싱 (설명 + 파일)
- 채팅 세션 저장/검색 (key-value 백엔드)
- ID 생성, 생성 실행 로그
"""

from .ids import generate_build_id, generate_message_id, generate_session_id
from .kv_store import FileBackend, InMemoryBackend, KeyValueBackend, NullBackend
from .logging import (
    complete_generation_log,
    create_generation_log,
    emit_event,
    save_generation_log,
)
from .response_parser import parse_generation_response
from .session_store import SessionStore, apply_derived_title, display_title

__all__ = [
    # response_parser
    "parse_generation_response",
    # session_store
    "SessionStore",
    "apply_derived_title",
    "display_title",
    # kv_store
    "KeyValueBackend",
    "InMemoryBackend",
    "FileBackend",
    "NullBackend",
    # ids
    "generate_session_id",
    "generate_message_id",
    "generate_build_id",
    # logging
    "create_generation_log",
    "emit_event",
    "complete_generation_log",
    "save_generation_log",
]
