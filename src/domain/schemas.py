"""
Data schemas for the service.

규칙:
- 타임스탬프는 ISO 8601 문자열 (UTC)
- 직렬화는 to_dict() / from_dict() 로 통일
- 메시지 순서는 삽입 순서, 재생성 시에만 같은 인덱스에서 교체
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.domain.constants import DEFAULT_SESSION_TITLE

# =============================================================================
# Chat Schemas
# =============================================================================

class MessageRole(str, Enum):
    """메시지 작성자."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    """채팅 메시지."""
    id: str
    role: str  # user, assistant
    content: str
    timestamp: str  # ISO 8601
    attachments: list[str] = field(default_factory=list)  # 코어 로직에서 사용 안 함

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "attachments": list(self.attachments),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        role = MessageRole(data["role"]).value
        return cls(
            id=str(data["id"]),
            role=role,
            content=str(data["content"]),
            timestamp=data["timestamp"],
            attachments=list(data.get("attachments") or []),
        )


@dataclass
class ChatSession:
    """
    채팅 세션.

    title은 기본값("New Chat")으로 시작하고, 첫 사용자 메시지가 도착하면
    파생 제목으로 한 번 바뀐 뒤 다시 기본값으로 돌아가지 않음.
    """
    id: str
    created_at: str  # ISO 8601
    updated_at: str  # ISO 8601
    title: str = DEFAULT_SESSION_TITLE
    messages: list[ChatMessage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatSession":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or DEFAULT_SESSION_TITLE),
            messages=[ChatMessage.from_dict(m) for m in data.get("messages", [])],
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )


# =============================================================================
# Code Generation Schemas
# =============================================================================

@dataclass
class GeneratedCode:
    """
    코드 생성 결과 (ResponseParser 출력).

    - files: 샌드박스로 보내는 전체 파일 집합 (기존 파일 위에 병합됨)
    - changed_files: 기존 파일 대비 새로 생기거나 내용이 바뀐 파일만.
      기존 파일 컨텍스트 없이 생성한 경우 None.
    - strategy: 파일을 얻은 추출 단계 (fenced, lenient, placeholder)
    """
    explanation: str
    files: dict[str, str]
    changed_files: dict[str, str] | None = None
    strategy: str = "fenced"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "explanation": self.explanation,
            "files": self.files,
            "strategy": self.strategy,
        }
        if self.changed_files is not None:
            result["changed_files"] = self.changed_files
        return result


@dataclass
class SandboxState:
    """
    원격 샌드박스 상태 (로컬 소유 아님).

    마지막으로 성공한 publish 호출 시점 기준.
    """
    sandbox_id: str
    preview_url: str
    qr_code_url: str
    files: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sandbox_id": self.sandbox_id,
            "preview_url": self.preview_url,
            "qr_code_url": self.qr_code_url,
        }


# =============================================================================
# Build Session Schemas (앱 생성 대화)
# =============================================================================

class BuildStatus(str, Enum):
    """어시스턴트 메시지 상태."""
    THINKING = "thinking"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class BuildMessage:
    """앱 생성 대화 메시지."""
    role: str  # user, assistant
    content: str
    status: str | None = None  # BuildStatus 값 (assistant 전용)
    files: dict[str, str] | None = None  # 화면에 보여줄 파일 (전체 또는 변경분)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.status is not None:
            result["status"] = self.status
        if self.files is not None:
            result["files"] = self.files
        return result


@dataclass
class BuildSession:
    """
    앱 생성 세션 (메모리 전용).

    busy 플래그로 같은 세션에서의 중복 제출을 막음.
    """
    id: str
    created_at: str  # ISO 8601
    messages: list[BuildMessage] = field(default_factory=list)
    project_files: dict[str, str] = field(default_factory=dict)
    sandbox: SandboxState | None = None
    error: str | None = None
    # 에러가 파일 저장/실행(샌드박스 동기화)에서 난 경우
    sync_failed: bool = False
    busy: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "messages": [m.to_dict() for m in self.messages],
            "project_files": self.project_files,
            "sandbox": self.sandbox.to_dict() if self.sandbox else None,
            "error": self.error,
            "retryable": self.error is not None,
            "busy": self.busy,
        }


# =============================================================================
# Generation Log Schemas (core/logging.py에서 사용)
# =============================================================================

@dataclass
class EventLog:
    """
    추적 이벤트.

    name: initial_prompt, send_message, code_generated, code_updated, error
    """
    name: str
    timestamp: str  # ISO 8601
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "timestamp": self.timestamp,
            "properties": self.properties,
        }


@dataclass
class GenerationLog:
    """
    생성 실행 로그.

    제출 1회(프롬프트 → 코드 생성 → 샌드박스 반영) 단위 기록.
    """
    gen_id: str
    build_id: str
    started_at: str  # ISO 8601
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed

    # 결과 요약
    file_count: int | None = None
    parse_strategy: str | None = None
    sandbox_id: str | None = None

    # Events
    events: list[EventLog] = field(default_factory=list)

    # Error (if failed)
    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "gen_id": self.gen_id,
            "build_id": self.build_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "file_count": self.file_count,
            "parse_strategy": self.parse_strategy,
            "sandbox_id": self.sandbox_id,
            "events": [e.to_dict() for e in self.events],
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
