"""
Builder Service: 앱 생성 대화 (프롬프트 → 코드 → 샌드박스).

흐름 (제출 1회):
1. user 메시지 + "thinking" assistant 메시지 추가
2. 코드 생성 (첫 제출은 기존 파일 없음, 이후는 현재 프로젝트 파일을 컨텍스트로)
3. 샌드박스 반영 (첫 제출은 생성, 이후는 같은 sandbox_id로 갱신)
4. thinking 메시지를 설명으로 교체

파일 표시 규칙:
- 샌드박스에는 항상 병합된 전체 파일 집합을 보냄
- 대화 메시지에는 첫 제출이면 전체 파일, 이후는 변경된 파일만 표시

실패 시:
- thinking 메시지를 에러 메시지(status=error)로 교체, session.error 기록
- 재시도는 사용자가 retry()로 마지막 입력을 다시 제출

코드 편집기:
- save_file: 파일 하나 저장 + 샌드박스에 그 파일만 반영
- sync: 프로젝트 파일 전체 반영 (실행)
- 실패는 session.error + sync_failed, 재시도는 sync()
"""

import logging
from pathlib import Path

from src.app.providers.base import ProviderError
from src.app.services.codegen import CodeGenerationService
from src.app.services.sandbox import SandboxService
from src.core.ids import generate_build_id, utc_now_iso
from src.core.logging import (
    complete_generation_log,
    create_generation_log,
    emit_event,
    list_generation_logs,
    load_generation_log,
    save_generation_log,
)
from src.domain.constants import (
    BUILD_ERROR_FOLLOWUP,
    BUILD_ERROR_INITIAL,
    BUILD_THINKING_FOLLOWUP,
    BUILD_THINKING_INITIAL,
)
from src.domain.errors import AppError, ErrorCodes
from src.domain.schemas import BuildMessage, BuildSession, BuildStatus, MessageRole

logger = logging.getLogger(__name__)


class BuilderService:
    """
    앱 생성 세션 관리 서비스 (메모리 전용).

    Usage:
        builder = BuilderService(codegen, sandbox, logs_dir=Path("logs"))
        session = builder.create_session()
        session = await builder.submit(session.id, "A habit tracker")
    """

    def __init__(
        self,
        codegen: CodeGenerationService,
        sandbox: SandboxService,
        logs_dir: Path | None = None,
    ):
        """
        Args:
            codegen: 코드 생성 서비스
            sandbox: 샌드박스 서비스
            logs_dir: 생성 로그 저장 디렉토리 (None이면 파일 저장 안 함)
        """
        self.codegen = codegen
        self.sandbox = sandbox
        self.logs_dir = logs_dir
        self._sessions: dict[str, BuildSession] = {}

    def create_session(self) -> BuildSession:
        """새 앱 생성 세션."""
        session = BuildSession(id=generate_build_id(), created_at=utc_now_iso())
        self._sessions[session.id] = session
        return session

    def get_session(self, build_id: str) -> BuildSession:
        """
        세션 조회.

        Raises:
            AppError: BUILD_NOT_FOUND
        """
        session = self._sessions.get(build_id)
        if session is None:
            raise AppError(ErrorCodes.BUILD_NOT_FOUND, build_id=build_id)
        return session

    async def submit(self, build_id: str, prompt: str) -> BuildSession:
        """
        프롬프트 제출.

        원격 서비스 실패는 예외로 올리지 않고 세션의 에러 상태로 기록.

        Raises:
            AppError: BUILD_NOT_FOUND, EMPTY_PROMPT, BUILD_BUSY
        """
        session = self.get_session(build_id)

        if not prompt or not prompt.strip():
            raise AppError(ErrorCodes.EMPTY_PROMPT, build_id=build_id)
        if session.busy:
            raise AppError(ErrorCodes.BUILD_BUSY, build_id=build_id)

        prompt = prompt.strip()
        is_initial = not session.project_files
        gen_log = create_generation_log(build_id)

        session.busy = True
        session.error = None
        session.sync_failed = False
        session.messages.append(BuildMessage(role=MessageRole.USER.value, content=prompt))
        session.messages.append(
            BuildMessage(
                role=MessageRole.ASSISTANT.value,
                content=BUILD_THINKING_INITIAL if is_initial else BUILD_THINKING_FOLLOWUP,
                status=BuildStatus.THINKING.value,
            )
        )

        if is_initial:
            emit_event(gen_log, "initial_prompt", prompt_length=len(prompt))
        else:
            emit_event(gen_log, "send_message", message_length=len(prompt))

        try:
            result = await self.codegen.generate(
                prompt,
                existing_files=None if is_initial else session.project_files,
            )
            state = await self.sandbox.publish(
                result.files,
                sandbox_id=session.sandbox.sandbox_id if session.sandbox else None,
            )

            session.sandbox = state
            session.project_files = state.files

            if is_initial:
                shown_files = result.files
                emit_event(
                    gen_log,
                    "code_generated",
                    file_count=len(result.files),
                    sandbox_id=state.sandbox_id,
                )
            else:
                shown_files = result.changed_files or {}
                emit_event(gen_log, "code_updated", file_count=len(shown_files))

            session.messages[-1] = BuildMessage(
                role=MessageRole.ASSISTANT.value,
                content=result.explanation,
                status=BuildStatus.COMPLETED.value,
                files=shown_files,
            )
            complete_generation_log(
                gen_log,
                success=True,
                file_count=len(result.files),
                parse_strategy=result.strategy,
                sandbox_id=state.sandbox_id,
            )

        except ProviderError as e:
            logger.error(f"Build {build_id} failed: [{e.code}] {e.message}")
            session.error = e.message
            session.messages[-1] = BuildMessage(
                role=MessageRole.ASSISTANT.value,
                content=BUILD_ERROR_INITIAL if is_initial else BUILD_ERROR_FOLLOWUP,
                status=BuildStatus.ERROR.value,
            )
            emit_event(
                gen_log,
                "error",
                error_type="initial_prompt_error" if is_initial else "message_error",
                error_message=e.message,
            )
            complete_generation_log(
                gen_log,
                success=False,
                error_code=e.code,
                error_context={"message": e.message, **e.context},
            )

        finally:
            session.busy = False
            self._save_log(gen_log)

        return session

    def retry(self, build_id: str) -> str:
        """
        재시도 준비.

        에러 메시지를 제거하고 에러 상태를 지운 뒤, 다시 제출할
        마지막 사용자 입력을 반환. 마지막 제출이 실패한 상태일 때만 가능
        (파일 저장/실행 실패는 sync()로 다시 시도).

        Raises:
            AppError: BUILD_NOT_FOUND, NOTHING_TO_RETRY
        """
        session = self.get_session(build_id)
        user_messages = [m for m in session.messages if m.role == MessageRole.USER.value]
        failed = bool(session.messages) and (
            session.messages[-1].status == BuildStatus.ERROR.value
        )
        if session.error is None or not failed or not user_messages:
            raise AppError(ErrorCodes.NOTHING_TO_RETRY, build_id=build_id)

        last_user_message = user_messages[-1]
        session.messages = [
            m for m in session.messages if m.status != BuildStatus.ERROR.value
        ]
        # 재제출 시 같은 사용자 메시지가 다시 추가되므로 이전 것은 제거
        if session.messages and session.messages[-1] is last_user_message:
            session.messages.pop()
        session.error = None
        return last_user_message.content

    # =========================================================================
    # Code Editor (저장 / 실행)
    # =========================================================================

    async def save_file(self, build_id: str, path: str, content: str) -> BuildSession:
        """
        편집한 파일 하나를 프로젝트에 저장하고 샌드박스에 반영.

        샌드박스가 아직 없으면 프로젝트 파일만 갱신.
        샌드박스 실패는 세션의 에러 상태로 기록 (sync()로 재시도).

        Raises:
            AppError: BUILD_NOT_FOUND, EMPTY_FILE_PATH, BUILD_BUSY
        """
        session = self.get_session(build_id)
        if not path or not path.strip():
            raise AppError(ErrorCodes.EMPTY_FILE_PATH, build_id=build_id)
        if session.busy:
            raise AppError(ErrorCodes.BUILD_BUSY, build_id=build_id)

        path = path.strip()
        session.project_files = {**session.project_files, path: content}
        return await self._push(session, {path: content}, action="save")

    async def sync(self, build_id: str) -> BuildSession:
        """
        프로젝트 파일 전체를 샌드박스에 반영 (실행).

        샌드박스가 없으면 아무것도 하지 않음.

        Raises:
            AppError: BUILD_NOT_FOUND, BUILD_BUSY
        """
        session = self.get_session(build_id)
        if session.busy:
            raise AppError(ErrorCodes.BUILD_BUSY, build_id=build_id)
        return await self._push(session, dict(session.project_files), action="run")

    async def _push(
        self,
        session: BuildSession,
        files: dict[str, str],
        action: str,
    ) -> BuildSession:
        if session.sandbox is None:
            logger.info(f"Build {session.id}: no sandbox yet, {action} kept locally")
            return session

        session.busy = True
        try:
            await self.sandbox.update_files(session.sandbox.sandbox_id, files)
            session.sandbox.files = dict(session.project_files)
            if session.sync_failed:
                session.error = None
                session.sync_failed = False
        except ProviderError as e:
            logger.error(f"Build {session.id} {action} failed: [{e.code}] {e.message}")
            session.error = e.message
            session.sync_failed = True
        finally:
            session.busy = False

        return session

    def list_logs(self, build_id: str) -> list[dict]:
        """세션의 생성 로그 (최신순)."""
        self.get_session(build_id)
        if self.logs_dir is None:
            return []
        logs = []
        for log_path in list_generation_logs(self.logs_dir):
            try:
                data = load_generation_log(log_path)
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable log {log_path.name}: {e}")
                continue
            if data.get("build_id") == build_id:
                logs.append(data)
        return logs

    def _save_log(self, gen_log) -> None:
        if self.logs_dir is None:
            return
        try:
            save_generation_log(gen_log, self.logs_dir)
        except OSError as e:
            logger.warning(f"Failed to save generation log {gen_log.gen_id}: {e}")
