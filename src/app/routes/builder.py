"""
Builder Routes: 자연어 → Expo 앱 (미리보기 + QR).

- GET /build?prompt= → 빌더 화면 (prompt가 있으면 화면에서 바로 제출)
- POST /api/build → 새 빌드 세션 (prompt가 있으면 첫 제출까지)
- GET /api/build/<build_id> → 빌드 세션 상태
- POST /api/build/<build_id>/message → 후속 요청
- POST /api/build/<build_id>/retry → 마지막 요청 재시도
- PUT /api/build/<build_id>/files → 편집한 파일 저장 (샌드박스에 그 파일 반영)
- POST /api/build/<build_id>/run → 프로젝트 파일 전체를 샌드박스에 반영
- GET /api/build/<build_id>/logs → 생성 로그

원격 서비스 실패는 200 + session.error / 마지막 메시지 status=error 로 전달.
"""

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from src.app.routes.errors import to_http_exception
from src.app.services.builder import BuilderService
from src.domain.errors import AppError, ErrorCodes

logger = logging.getLogger(__name__)

_templates_dir = Path(__file__).parent.parent / "templates"
jinja_templates = Jinja2Templates(directory=_templates_dir)

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


def get_builder_service(request: Request) -> BuilderService:
    """Request에서 BuilderService 가져오기."""
    return request.app.state.builder_service


# =============================================================================
# Page Routes (HTML)
# =============================================================================


@router.get("/build", response_class=HTMLResponse)
async def build_page(request: Request, prompt: str = "") -> HTMLResponse:
    """빌더 화면."""
    return jinja_templates.TemplateResponse(
        request,
        "build.html",
        {"initial_prompt": prompt.strip()},
    )


# =============================================================================
# API Routes
# =============================================================================


@api_router.post("")
async def create_build(
    request: Request,
    prompt: str | None = Form(None),
) -> dict[str, Any]:
    """새 빌드 세션. prompt가 있으면 첫 제출 결과까지 반환."""
    service = get_builder_service(request)
    session = service.create_session()
    if prompt is None:
        return session.to_dict()

    try:
        session = await service.submit(session.id, prompt)
    except AppError as e:
        raise to_http_exception(e) from e
    return session.to_dict()


@api_router.get("/{build_id}")
async def get_build(request: Request, build_id: str) -> dict[str, Any]:
    """빌드 세션 상태."""
    try:
        session = get_builder_service(request).get_session(build_id)
    except AppError as e:
        raise to_http_exception(e) from e
    return session.to_dict()


@api_router.post("/{build_id}/message")
async def send_build_message(
    request: Request,
    build_id: str,
    content: str = Form(...),
) -> dict[str, Any]:
    """후속 요청 (기존 파일을 컨텍스트로 수정)."""
    try:
        session = await get_builder_service(request).submit(build_id, content)
    except AppError as e:
        raise to_http_exception(e) from e
    return session.to_dict()


@api_router.post("/{build_id}/retry")
async def retry_build(request: Request, build_id: str) -> dict[str, Any]:
    """
    실패한 작업 재시도.

    - 제출 실패: 에러 메시지를 지우고 마지막 사용자 요청을 다시 제출
    - 파일 저장/실행 실패: 프로젝트 파일 전체를 다시 반영
    """
    service = get_builder_service(request)
    try:
        session = service.get_session(build_id)
        if session.busy:
            raise AppError(ErrorCodes.BUILD_BUSY, build_id=build_id)
        if session.sync_failed:
            session = await service.sync(build_id)
        else:
            prompt = service.retry(build_id)
            session = await service.submit(build_id, prompt)
    except AppError as e:
        raise to_http_exception(e) from e
    return session.to_dict()


@api_router.get("/{build_id}/logs")
async def list_build_logs(request: Request, build_id: str) -> dict[str, Any]:
    """빌드 세션의 생성 로그 (최신순)."""
    try:
        logs = get_builder_service(request).list_logs(build_id)
    except AppError as e:
        raise to_http_exception(e) from e
    return {"build_id": build_id, "logs": logs}


# =============================================================================
# Code Editor Routes
# =============================================================================


@api_router.put("/{build_id}/files")
async def save_build_file(
    request: Request,
    build_id: str,
    path: str = Form(...),
    content: str = Form(""),
) -> dict[str, Any]:
    """편집한 파일 저장."""
    try:
        session = await get_builder_service(request).save_file(build_id, path, content)
    except AppError as e:
        raise to_http_exception(e) from e
    return session.to_dict()


@api_router.post("/{build_id}/run")
async def run_build(request: Request, build_id: str) -> dict[str, Any]:
    """프로젝트 파일 전체를 샌드박스에 반영."""
    try:
        session = await get_builder_service(request).sync(build_id)
    except AppError as e:
        raise to_http_exception(e) from e
    return session.to_dict()
