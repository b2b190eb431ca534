"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from fastapi import FastAPI

# Routes
from src.app.routes import builder, chat
from src.app.services.builder import BuilderService
from src.app.services.chat import ChatService
from src.app.services.codegen import CodeGenerationService
from src.app.services.sandbox import SandboxService
from src.core.kv_store import create_backend
from src.core.session_store import SessionStore
from src.domain.constants import DEFAULT_SANDBOX_API_BASE

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = PROJECT_ROOT / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def resolve_path(value: str | None, default: str) -> Path:
    """설정 경로 (상대 경로는 프로젝트 루트 기준)."""
    path = Path(value or default)
    return path if path.is_absolute() else PROJECT_ROOT / path


def create_services(config: dict) -> dict[str, Any]:
    """
    설정으로 서비스 구성.

    Provider는 API 키가 필요한 시점(첫 호출)까지 클라이언트를 만들지 않음.

    Returns:
        {"session_store", "chat_service", "sandbox_service", "builder_service"}
    """
    storage_config = config.get("storage", {})
    backend = create_backend(
        storage_config.get("backend", "file"),
        resolve_path(storage_config.get("path"), "data/sessions"),
    )
    session_store = SessionStore(backend)

    sandbox_config = config.get("sandbox", {})
    sandbox_service = SandboxService(
        base_url=sandbox_config.get("base_url", DEFAULT_SANDBOX_API_BASE),
    )

    builder_service = BuilderService(
        codegen=CodeGenerationService(config=config),
        sandbox=sandbox_service,
        logs_dir=resolve_path(config.get("logs", {}).get("dir"), "logs"),
    )

    return {
        "session_store": session_store,
        "chat_service": ChatService(session_store, config=config),
        "sandbox_service": sandbox_service,
        "builder_service": builder_service,
    }


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 서비스 초기화
    종료 시: 샌드박스 HTTP 클라이언트 정리
    """
    # Startup
    app.state.config = load_config()
    for name, service in create_services(app.state.config).items():
        setattr(app.state, name, service)
    logger.info("App services initialized")

    yield

    # Shutdown
    await app.state.sandbox_service.aclose()


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Expo App Builder",
    description="자연어 설명 → React Native (Expo) 앱 + 스트리밍 채팅",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Routes
# =============================================================================

# 페이지 라우트 (HTML)
app.include_router(builder.router, prefix="", tags=["Builder"])
app.include_router(chat.router, prefix="", tags=["Chat"])

# API 라우트
app.include_router(builder.api_router, prefix="/api/build", tags=["Builder API"])
app.include_router(chat.api_router, prefix="/api/chat", tags=["Chat API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    """엔드포인트 안내."""
    return {
        "message": "Expo App Builder",
        "endpoints": {
            "build": "/build",
            "chat": "/chat",
            "health": "/health",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
