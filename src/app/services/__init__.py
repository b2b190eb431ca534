"""
Application Services.

역할:
- codegen: 자연어 → 앱 파일 (LLM + 응답 파싱)
- sandbox: 파일 → 원격 Expo 샌드박스 (미리보기 + QR)
- builder: 앱 생성 대화 (codegen + sandbox + 생성 로그)
- chat: 스트리밍 채팅 + 세션 저장
"""

from .builder import BuilderService
from .chat import ChatService, ChatStreamEvent
from .codegen import CodeGenerationService, build_codegen_prompt
from .sandbox import SandboxError, SandboxService

__all__ = [
    "BuilderService",
    "ChatService",
    "ChatStreamEvent",
    "CodeGenerationService",
    "build_codegen_prompt",
    "SandboxError",
    "SandboxService",
]
