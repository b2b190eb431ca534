"""
Chat Routes: Grok 스타일 대화.

- GET /chat → 채팅 화면
- GET /api/chat/sessions → 세션 목록 (최신 순)
- POST /api/chat/sessions → 새 세션
- GET /api/chat/sessions/<id> → 세션 상세
- DELETE /api/chat/sessions/<id> → 세션 삭제
- POST /api/chat/sessions/<id>/messages → 메시지 전송 (SSE)
- POST /api/chat/sessions/<id>/regenerate/<index> → 응답 재생성 (SSE)
- GET /api/chat/search?q= → 제목/내용 검색

SSE 이벤트:
- chunk: {"text": 조각}
- reset: {"text": fallback, "error": 코드} (지금까지 받은 조각을 버릴 것)
- done: {"session": 최종 세션}
- error: {"code": ...} (스트림 시작 후 발생한 AppError)
"""

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates

from src.app.routes.errors import to_http_exception
from src.app.services.chat import ChatService, ChatStreamEvent
from src.core.session_store import display_title
from src.domain.errors import AppError
from src.domain.schemas import ChatSession

logger = logging.getLogger(__name__)

_templates_dir = Path(__file__).parent.parent / "templates"
jinja_templates = Jinja2Templates(directory=_templates_dir)

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


def get_chat_service(request: Request) -> ChatService:
    """Request에서 ChatService 가져오기."""
    return request.app.state.chat_service


def session_payload(session: ChatSession) -> dict[str, Any]:
    """세션 JSON (표시용 제목 포함)."""
    data = session.to_dict()
    data["display_title"] = display_title(session)
    return data


def format_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


async def sse_events(
    events: AsyncIterator[ChatStreamEvent],
) -> AsyncGenerator[str, None]:
    """ChatStreamEvent → SSE 문자열."""
    try:
        async for event in events:
            if event.type == "done" and event.session is not None:
                yield format_sse("done", {"session": session_payload(event.session)})
            elif event.type == "reset":
                yield format_sse("reset", {"text": event.text, **event.extra})
            else:
                yield format_sse(event.type, {"text": event.text})
    except AppError as e:
        # 검사 후 스트림 시작 전 사이에 상태가 바뀐 경우
        logger.warning(f"Chat stream rejected: {e}")
        yield format_sse("error", e.to_dict())


def sse_response(events: AsyncIterator[ChatStreamEvent]) -> StreamingResponse:
    return StreamingResponse(
        sse_events(events),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


# =============================================================================
# Page Routes (HTML)
# =============================================================================


@router.get("/chat", response_class=HTMLResponse)
async def chat_page(request: Request) -> HTMLResponse:
    """채팅 화면 (사이드바 세션 목록 + 대화)."""
    service = get_chat_service(request)
    sessions = service.store.list()
    return jinja_templates.TemplateResponse(
        request,
        "chat.html",
        {
            "sessions": [session_payload(s) for s in sessions],
        },
    )


# =============================================================================
# API Routes
# =============================================================================


@api_router.get("/sessions")
async def list_sessions(request: Request) -> dict[str, Any]:
    """세션 목록 (최신 순, 최대 50개)."""
    sessions = get_chat_service(request).store.list()
    return {"sessions": [session_payload(s) for s in sessions]}


@api_router.post("/sessions")
async def create_session(request: Request) -> dict[str, Any]:
    """새 세션 (첫 메시지 전까지 목록에 나타나지 않음)."""
    session = get_chat_service(request).new_session()
    return session_payload(session)


@api_router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: str) -> dict[str, Any]:
    """세션 상세."""
    try:
        session = get_chat_service(request).get_session(session_id)
    except AppError as e:
        raise to_http_exception(e) from e
    return session_payload(session)


@api_router.delete("/sessions/{session_id}")
async def delete_session(request: Request, session_id: str) -> dict[str, Any]:
    """세션 삭제 (없는 ID도 성공)."""
    get_chat_service(request).delete_session(session_id)
    return {"deleted": session_id}


@api_router.post("/sessions/{session_id}/messages")
async def send_message(
    request: Request,
    session_id: str,
    content: str = Form(...),
) -> StreamingResponse:
    """
    메시지 전송 + 응답 스트림 (SSE).

    빈 메시지는 400, 없는 세션은 404, 응답 진행 중이면 409.
    """
    service = get_chat_service(request)
    try:
        service.check_reply(session_id, content)
    except AppError as e:
        raise to_http_exception(e) from e

    return sse_response(service.stream_reply(session_id, content))


@api_router.post("/sessions/{session_id}/regenerate/{index}")
async def regenerate_message(
    request: Request,
    session_id: str,
    index: int,
) -> StreamingResponse:
    """어시스턴트 응답 재생성 (SSE, 같은 위치에서 교체)."""
    service = get_chat_service(request)
    try:
        service.check_regenerate(session_id, index)
    except AppError as e:
        raise to_http_exception(e) from e

    return sse_response(service.stream_regenerate(session_id, index))


@api_router.get("/search")
async def search_sessions(request: Request, q: str = "") -> dict[str, Any]:
    """제목/메시지 내용 검색 (대소문자 무시, 빈 검색어는 빈 결과)."""
    sessions = get_chat_service(request).store.search(q)
    return {"query": q, "sessions": [session_payload(s) for s in sessions]}
