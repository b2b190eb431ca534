"""
Sandbox Service: 생성된 파일 → 원격 Expo 샌드박스 (미리보기 + QR).

- 생성: POST {base}/sandboxes/create → 새 sandbox_id
- 갱신: PUT {base}/sandboxes/{id} (같은 sandbox_id 재사용)
- 파일만 갱신: PUT {base}/sandboxes/{id}/files
- package.json / app.json 이 없으면 Expo 스캐폴드를 자동으로 채움

SandboxState는 마지막으로 성공한 호출 기준 (원격 상태의 사본).
"""

import json
import logging
import os
from typing import Any

import httpx

from src.app.providers.base import ProviderError
from src.domain.constants import (
    DEFAULT_SANDBOX_API_BASE,
    QR_CODE_URL,
    SANDBOX_APP_JSON,
    SANDBOX_PACKAGE_JSON,
    SANDBOX_PREVIEW_URL,
    SANDBOX_TEMPLATE,
)
from src.domain.schemas import SandboxState

logger = logging.getLogger(__name__)


class SandboxError(ProviderError):
    """샌드박스 API 관련 에러."""
    pass


# =============================================================================
# Expo Scaffold
# =============================================================================

EXPO_PACKAGE_JSON: dict[str, Any] = {
    "name": "expo-app",
    "version": "1.0.0",
    "main": "node_modules/expo/AppEntry.js",
    "scripts": {
        "start": "expo start",
        "android": "expo start --android",
        "ios": "expo start --ios",
        "web": "expo start --web",
    },
    "dependencies": {
        "expo": "~49.0.0",
        "expo-status-bar": "~1.6.0",
        "react": "18.2.0",
        "react-dom": "18.2.0",
        "react-native": "0.72.6",
        "react-native-web": "~0.19.6",
    },
    "devDependencies": {
        "@babel/core": "^7.20.0",
        "@types/react": "~18.2.14",
        "typescript": "^5.1.3",
    },
    "private": True,
}

EXPO_APP_JSON: dict[str, Any] = {
    "expo": {
        "name": "AI Generated App",
        "slug": "ai-generated-app",
        "version": "1.0.0",
        "orientation": "portrait",
        "icon": "./assets/icon.png",
        "userInterfaceStyle": "light",
        "splash": {
            "image": "./assets/splash.png",
            "resizeMode": "contain",
            "backgroundColor": "#ffffff",
        },
        "assetBundlePatterns": ["**/*"],
        "ios": {"supportsTablet": True},
        "android": {
            "adaptiveIcon": {
                "foregroundImage": "./assets/adaptive-icon.png",
                "backgroundColor": "#ffffff",
            },
        },
        "web": {"favicon": "./assets/favicon.png"},
    },
}


def with_scaffold(files: dict[str, str]) -> dict[str, str]:
    """package.json / app.json 이 없으면 기본값 추가."""
    result: dict[str, str] = {}
    if SANDBOX_PACKAGE_JSON not in files:
        result[SANDBOX_PACKAGE_JSON] = json.dumps(EXPO_PACKAGE_JSON, indent=2)
    if SANDBOX_APP_JSON not in files:
        result[SANDBOX_APP_JSON] = json.dumps(EXPO_APP_JSON, indent=2)
    result.update(files)
    return result


def to_sandbox_files(files: dict[str, str]) -> dict[str, dict[str, str]]:
    """{경로: 내용} → API 포맷 {경로: {"content": 내용}}."""
    return {path: {"content": content} for path, content in files.items()}


def build_sandbox_state(sandbox_id: str, files: dict[str, str]) -> SandboxState:
    """sandbox_id에서 미리보기/QR URL 파생."""
    return SandboxState(
        sandbox_id=sandbox_id,
        preview_url=SANDBOX_PREVIEW_URL.format(sandbox_id=sandbox_id),
        qr_code_url=QR_CODE_URL.format(sandbox_id=sandbox_id),
        files=dict(files),
    )


# =============================================================================
# Service
# =============================================================================


class SandboxService:
    """
    샌드박스 반영 서비스.

    Usage:
        service = SandboxService(api_key="...")
        state = await service.publish(files)
        state = await service.publish(files, sandbox_id=state.sandbox_id)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_SANDBOX_API_BASE,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Args:
            api_key: API 키 (환경변수 CSB_API_KEY 사용 가능)
            base_url: API base URL (config에서 주입)
            client: httpx 클라이언트 (테스트에서 MockTransport 주입)
        """
        self.api_key = api_key or os.environ.get("CSB_API_KEY")
        self.base_url = base_url.rstrip("/")
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """httpx 클라이언트 (lazy init, 타임아웃은 transport 기본값)."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        payload: dict[str, Any],
    ) -> httpx.Response:
        """API 호출 + 상태 코드 검사."""
        try:
            response = await self._get_client().request(
                method, url, headers=self._headers(), json=payload
            )
        except httpx.HTTPError as e:
            logger.error(f"Sandbox request failed: {method} {url}: {e}")
            raise SandboxError(
                "SANDBOX_UNREACHABLE",
                "샌드박스 서비스에 연결할 수 없습니다. 잠시 후 다시 시도해주세요.",
                url=url,
            ) from e

        if not response.is_success:
            logger.error(
                f"Sandbox API error: {method} {url} → {response.status_code}"
            )
            raise SandboxError(
                "SANDBOX_API_ERROR",
                f"CodeSandbox API error: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def publish(
        self,
        files: dict[str, str],
        sandbox_id: str | None = None,
    ) -> SandboxState:
        """
        샌드박스 생성 또는 갱신.

        Args:
            files: 전체 파일 집합 (변경분이 아니라 병합된 전체)
            sandbox_id: 기존 샌드박스 ID (없으면 새로 생성)

        Returns:
            SandboxState (files는 스캐폴드 제외 호출자 파일)

        Raises:
            SandboxError: 비정상 상태 코드, 전송 실패, 응답에 ID 없음
        """
        payload = {
            "files": to_sandbox_files(with_scaffold(files)),
            "template": SANDBOX_TEMPLATE,
        }

        if sandbox_id:
            url = f"{self.base_url}/sandboxes/{sandbox_id}"
            method = "PUT"
        else:
            url = f"{self.base_url}/sandboxes/create"
            method = "POST"

        response = await self._request(method, url, payload)

        try:
            data = response.json()
            new_id = str(data["sandbox"]["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise SandboxError(
                "SANDBOX_BAD_RESPONSE",
                "샌드박스 응답에 sandbox id가 없습니다.",
            ) from e

        logger.info(
            f"Sandbox {'updated' if sandbox_id else 'created'}: {new_id} "
            f"({len(files)} file(s))"
        )
        return build_sandbox_state(new_id, files)

    async def update_files(self, sandbox_id: str, files: dict[str, str]) -> None:
        """
        기존 샌드박스의 파일만 갱신 (스캐폴드 추가 없음).

        Raises:
            SandboxError: 비정상 상태 코드 또는 전송 실패
        """
        url = f"{self.base_url}/sandboxes/{sandbox_id}/files"
        await self._request("PUT", url, {"files": to_sandbox_files(files)})
        logger.info(f"Sandbox files updated: {sandbox_id} ({len(files)} file(s))")

    async def aclose(self) -> None:
        """httpx 클라이언트 정리 (app shutdown)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
