"""
test_build_flow.py - 서비스 조합 통합 테스트

외부 호출만 대체 (가짜 LLM provider, httpx.MockTransport)하고
서비스/저장소는 실제 구현 사용.

검증 포인트:
1. 빌드: 첫 요청 → 후속 요청 → 실패 → 재시도 (같은 샌드박스 유지)
2. 채팅: 파일 백엔드에 저장된 세션이 새 서비스 인스턴스에서도 보임
"""

import json

import httpx
import pytest

from src.app.providers.base import GenerationError
from src.app.services.builder import BuilderService
from src.app.services.chat import ChatService
from src.app.services.codegen import CodeGenerationService
from src.app.services.sandbox import SandboxService
from src.core.kv_store import FileBackend
from src.core.session_store import SessionStore, display_title
from src.domain.constants import BUILD_ERROR_FOLLOWUP

# =============================================================================
# Build Flow
# =============================================================================


class TestBuildFlow:
    """빌드 전체 흐름."""

    @pytest.mark.asyncio
    async def test_build_update_fail_retry(
        self,
        tmp_path,
        fake_provider_cls,
        sample_codegen_response,
        sample_followup_response,
    ):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"sandbox": {"id": "sb-flow"}})

        provider = fake_provider_cls(
            responses=[
                sample_codegen_response,
                GenerationError("GENERATION_FAILED", "잠시 후 다시 시도해주세요."),
                sample_followup_response,
            ]
        )
        builder = BuilderService(
            codegen=CodeGenerationService(provider),
            sandbox=SandboxService(
                api_key="k",
                base_url="https://sb.test",
                client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            ),
            logs_dir=tmp_path / "logs",
        )
        session = builder.create_session()

        # 1. 첫 요청
        await builder.submit(session.id, "A counter app")
        assert session.sandbox.sandbox_id == "sb-flow"

        # 2. 후속 요청 실패 → 이전 결과 유지
        await builder.submit(session.id, "Add dark mode")
        assert session.messages[-1].content == BUILD_ERROR_FOLLOWUP
        assert session.sandbox.sandbox_id == "sb-flow"
        assert len(requests) == 1

        # 3. 재시도 → 같은 샌드박스 갱신
        prompt = builder.retry(session.id)
        await builder.submit(session.id, prompt)

        assert prompt == "Add dark mode"
        assert [m.role for m in session.messages] == [
            "user",
            "assistant",
            "user",
            "assistant",
        ]
        assert session.messages[-1].status == "completed"
        assert requests[-1].method == "PUT"
        sent = json.loads(requests[-1].content)["files"]
        assert {"App.js", "components/Button.js", "package.json"} <= set(sent)

        logs = builder.list_logs(session.id)
        assert sorted(log["result"] for log in logs) == [
            "failed",
            "success",
            "success",
        ]


# =============================================================================
# Chat Flow
# =============================================================================


class TestChatPersistence:
    """파일 백엔드 세션 저장."""

    @pytest.mark.asyncio
    async def test_sessions_survive_restart(self, tmp_path, fake_provider_cls):
        provider = fake_provider_cls(chunks=["Sure", "!"])
        service = ChatService(SessionStore(FileBackend(tmp_path)), provider)

        first = service.new_session()
        await service.send_message(first.id, "Recommend a book about gardening")
        second = service.new_session()
        await service.send_message(second.id, "x" * 60)

        restarted = ChatService(SessionStore(FileBackend(tmp_path)), provider)
        sessions = restarted.store.list()

        assert [s.id for s in sessions] == [second.id, first.id]
        assert display_title(sessions[0]) == "x" * 50 + "..."
        assert [s.id for s in restarted.store.search("GARDEN")] == [first.id]

        restarted.delete_session(first.id)
        assert [s.id for s in ChatService(
            SessionStore(FileBackend(tmp_path)), provider
        ).store.list()] == [second.id]
