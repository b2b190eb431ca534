"""
Generation logging: 생성 실행 로그, 추적 이벤트

기록 규칙:
- 제출 1회 = GenerationLog 1개 (gen_id)
- 이벤트 이름: initial_prompt, send_message, code_generated, code_updated, error
- 실패 시 error_code + error_context 필수
- 프롬프트 원문은 저장하지 않음 (길이만)
"""

import json
import logging
from pathlib import Path
from typing import Any

from src.core.ids import generate_gen_id, utc_now_iso
from src.core.kv_store import atomic_write_text
from src.domain.schemas import EventLog, GenerationLog

logger = logging.getLogger(__name__)

# =============================================================================
# Generation Log Management
# =============================================================================


def create_generation_log(build_id: str) -> GenerationLog:
    """
    새 GenerationLog 생성.

    Args:
        build_id: 앱 생성 세션 ID

    Returns:
        초기화된 GenerationLog
    """
    return GenerationLog(
        gen_id=generate_gen_id(),
        build_id=build_id,
        started_at=utc_now_iso(),
        result="pending",
    )


def emit_event(
    gen_log: GenerationLog,
    name: str,
    **properties: Any,
) -> None:
    """
    추적 이벤트 기록.

    logging에도 같은 내용을 INFO로 남김.

    Args:
        gen_log: GenerationLog 인스턴스
        name: 이벤트 이름
        **properties: 이벤트 속성 (prompt_length, file_count, sandbox_id 등)
    """
    event = EventLog(name=name, timestamp=utc_now_iso(), properties=dict(properties))
    gen_log.events.append(event)
    logger.info(f"[{gen_log.gen_id}] event={name} {properties}")


def complete_generation_log(
    gen_log: GenerationLog,
    success: bool,
    file_count: int | None = None,
    parse_strategy: str | None = None,
    sandbox_id: str | None = None,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    GenerationLog 완료 처리.

    Args:
        gen_log: GenerationLog 인스턴스
        success: 성공 여부
        file_count: 생성된 파일 수
        parse_strategy: 파일 추출 단계 (fenced, lenient, placeholder)
        sandbox_id: 반영된 샌드박스 ID
        error_code: 에러 코드 (실패 시)
        error_context: 에러 컨텍스트 (실패 시)
    """
    gen_log.finished_at = utc_now_iso()
    gen_log.result = "success" if success else "failed"
    gen_log.file_count = file_count
    gen_log.parse_strategy = parse_strategy
    gen_log.sandbox_id = sandbox_id

    if not success:
        gen_log.error_code = error_code
        gen_log.error_context = error_context


def save_generation_log(gen_log: GenerationLog, logs_dir: Path) -> Path:
    """
    GenerationLog를 파일로 저장.

    Args:
        gen_log: GenerationLog 인스턴스
        logs_dir: logs/ 디렉터리 경로

    Returns:
        저장된 파일 경로
    """
    log_path = logs_dir / f"gen_{gen_log.gen_id}.json"
    atomic_write_text(
        log_path,
        json.dumps(gen_log.to_dict(), indent=2, ensure_ascii=False),
    )
    return log_path


def load_generation_log(log_path: Path) -> dict[str, Any]:
    """GenerationLog 파일 로드."""
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_generation_logs(logs_dir: Path) -> list[Path]:
    """
    logs/ 디렉터리의 생성 로그 목록.

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob("gen_*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
