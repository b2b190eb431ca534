"""
Domain layer: 스키마, 상수, 에러 정의.
"""

from .errors import AppError, ErrorCodes
from .schemas import (
    BuildMessage,
    BuildSession,
    ChatMessage,
    ChatSession,
    GeneratedCode,
    SandboxState,
)

__all__ = [
    "AppError",
    "ErrorCodes",
    "ChatMessage",
    "ChatSession",
    "GeneratedCode",
    "SandboxState",
    "BuildMessage",
    "BuildSession",
]
