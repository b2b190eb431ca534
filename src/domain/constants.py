"""
Domain Constants: 서비스 전역 상수.

세션 저장 정책, 파일 추출 마커, 샌드박스 스캐폴드 등
시스템 전반에서 사용되는 값들.
"""

# =============================================================================
# Chat Session Policy (채팅 세션 정책)
# =============================================================================
# - 기본 제목은 첫 사용자 메시지가 도착하면 파생 제목으로 교체됨
# - 저장 목록은 최대 50개 (초과 시 가장 오래 삽입된 세션부터 제거)

DEFAULT_SESSION_TITLE = "New Chat"
TITLE_MAX_LENGTH = 50
TITLE_ELLIPSIS = "..."
MAX_STORED_SESSIONS = 50
SESSION_STORAGE_KEY = "grok-chat-sessions"

CHAT_SYSTEM_PROMPT = (
    "You are Grok, a helpful AI assistant created by xAI. "
    "You are witty, informative, and slightly rebellious in your responses. "
    "Keep your answers helpful but with a touch of humor when appropriate."
)

# 스트림 도중 실패 시 부분 응답 대신 저장되는 메시지
CHAT_FALLBACK_MESSAGE = (
    "I'm having trouble generating a response right now. Please try again."
)

# =============================================================================
# Response Parsing (LLM 응답 → 파일)
# =============================================================================
# 응답 형식:
#   FILE: App.js
#   ```jsx
#   ...
#   ```

FILE_MARKER = "FILE:"
FENCE = "```"

# 코드 펜스에 붙을 수 있는 언어 힌트 (그 외 태그는 펜스로 인식하지 않음)
RECOGNIZED_LANGUAGE_HINTS = (
    "javascript",
    "typescript",
    "json",
    "jsx",
    "tsx",
    "js",
    "ts",
)

PLACEHOLDER_FILENAME = "App.js"

# =============================================================================
# Sandbox (Expo 미리보기)
# =============================================================================

SANDBOX_TEMPLATE = "expo"
SANDBOX_PACKAGE_JSON = "package.json"
SANDBOX_APP_JSON = "app.json"
DEFAULT_SANDBOX_API_BASE = "https://codesandbox.io/api/v1"
SANDBOX_PREVIEW_URL = "https://codesandbox.io/s/{sandbox_id}"
QR_CODE_URL = (
    "https://api.qrserver.com/v1/create-qr-code/"
    "?size=200x200&data=exp://exp.host/@codesandbox/{sandbox_id}"
)

# =============================================================================
# Build Session Messages (앱 생성 대화)
# =============================================================================

BUILD_THINKING_INITIAL = "Thinking about how to build your app..."
BUILD_THINKING_FOLLOWUP = "Thinking about your request..."
BUILD_ERROR_INITIAL = (
    "Sorry, I encountered an error while building your app. "
    "Please try again with a different description."
)
BUILD_ERROR_FOLLOWUP = (
    "Sorry, I encountered an error while processing your request. "
    "Please try again with a different description."
)

# =============================================================================
# ID Prefixes
# =============================================================================

BUILD_ID_PREFIX = "BUILD-"
GEN_ID_PREFIX = "GEN-"
