"""
FastAPI Routes.

페이지 라우트 (HTML) + API 라우트 (REST + SSE)
"""

from . import builder, chat

__all__ = ["builder", "chat"]
