"""
ID 생성: session_id, message_id, build_id, gen_id

- 채팅 세션/메시지 ID: 저장 목록 안에서 유일 (UUID v4 기반)
- build_id, gen_id: 사람이 읽기 쉬운 prefix + timestamp 포맷
"""

import uuid
from datetime import UTC, datetime

from src.domain.constants import BUILD_ID_PREFIX, GEN_ID_PREFIX


def utc_now_iso() -> str:
    """현재 시각 (UTC, ISO 8601)."""
    return datetime.now(UTC).isoformat()


def generate_session_id() -> str:
    """
    채팅 세션 ID 생성.

    포맷: uuid4 hex (32자)
    """
    return uuid.uuid4().hex


def generate_message_id() -> str:
    """
    메시지 ID 생성.

    포맷: {epoch_ms}-{uuid[:8]}
    같은 밀리초에 만들어진 user/assistant 메시지도 구분됨.
    """
    epoch_ms = int(datetime.now(UTC).timestamp() * 1000)
    return f"{epoch_ms}-{uuid.uuid4().hex[:8]}"


def generate_build_id() -> str:
    """
    앱 생성 세션 ID.

    포맷: BUILD-{uuid[:8] 대문자}
    """
    return f"{BUILD_ID_PREFIX}{uuid.uuid4().hex[:8].upper()}"


def generate_gen_id() -> str:
    """
    생성 실행 ID.

    포맷: GEN-{timestamp}-{uuid[:8]}
    """
    timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    return f"{GEN_ID_PREFIX}{timestamp}-{uuid.uuid4().hex[:8]}"
