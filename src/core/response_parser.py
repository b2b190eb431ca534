"""
Response parsing: LLM 응답 텍스트 → 설명 + 파일 매핑

응답 형식 (codegen 프롬프트에서 요구):
    <설명>
    FILE: App.js
    ```jsx
    ...
    ```

추출 단계 (앞 단계가 파일을 하나도 못 찾으면 다음 단계):
1. fenced: FILE: 줄 다음의 코드 펜스 블록
2. lenient: 다음 FILE: 마커(또는 끝)까지 전부, 남은 펜스 제거
3. placeholder: 기본 App.js 1개 생성

규칙:
- 순수 텍스트 변환 (I/O 없음), 동일 입력 → 동일 출력
- 같은 경로가 여러 번 나오면 마지막 것이 이김
- 어떤 입력에도 예외를 던지지 않음
"""

import logging
import re

from src.domain.constants import (
    FENCE,
    FILE_MARKER,
    PLACEHOLDER_FILENAME,
    RECOGNIZED_LANGUAGE_HINTS,
)
from src.domain.schemas import GeneratedCode

logger = logging.getLogger(__name__)

_HINTS = "|".join(RECOGNIZED_LANGUAGE_HINTS)

# FILE: <path>\n```<hint>\n<content>```
_FENCED_FILE_RE = re.compile(
    rf"{FILE_MARKER}[ \t]*(?P<path>[^\n]+)\n\s*```(?:{_HINTS})?[ \t]*\n(?P<content>.*?)```",
    re.DOTALL,
)

# FILE: <path>\n<content> (다음 마커 또는 끝까지)
_LENIENT_FILE_RE = re.compile(
    rf"{FILE_MARKER}[ \t]*(?P<path>[^\n]+)\n(?P<content>.*?)(?={FILE_MARKER}|\Z)",
    re.DOTALL,
)

_FENCE_OPEN_RE = re.compile(rf"```(?:{_HINTS})?[ \t]*\n")

PLACEHOLDER_APP = """import React from 'react';
import { StyleSheet, Text, View } from 'react-native';

export default function App() {
  return (
    <View style={styles.container}>
      <Text>Hello World! Your app is running.</Text>
      <Text>We had trouble generating your specific app.</Text>
      <Text>Please try again with more details.</Text>
    </View>
  );
}

const styles = StyleSheet.create({
  container: {
    flex: 1,
    backgroundColor: '#fff',
    alignItems: 'center',
    justifyContent: 'center',
    padding: 20,
  },
});"""


# =============================================================================
# Extraction Passes
# =============================================================================


def extract_explanation(text: str) -> str:
    """첫 FILE: 마커 앞의 텍스트 (마커가 없으면 전체)."""
    return text.split(FILE_MARKER, 1)[0].strip()


def extract_fenced_files(text: str) -> dict[str, str]:
    """
    1단계: FILE: 마커 + 코드 펜스 블록 추출.

    Returns:
        {경로: 내용} (못 찾으면 빈 dict)
    """
    files: dict[str, str] = {}
    for match in _FENCED_FILE_RE.finditer(text):
        path = match.group("path").strip()
        if not path:
            continue
        files[path] = match.group("content").strip()
    return files


def extract_lenient_files(text: str) -> dict[str, str]:
    """
    2단계: 펜스가 빠진 응답용 느슨한 추출.

    다음 마커까지를 내용으로 보고, 남아 있는 펜스 구분자와 언어 태그를 제거.
    """
    files: dict[str, str] = {}
    for match in _LENIENT_FILE_RE.finditer(text):
        path = match.group("path").strip()
        if not path:
            continue
        content = _FENCE_OPEN_RE.sub("", match.group("content").strip())
        files[path] = content.replace(FENCE, "").strip()
    return files


def placeholder_files() -> dict[str, str]:
    """3단계: 기본 앱 1개."""
    return {PLACEHOLDER_FILENAME: PLACEHOLDER_APP}


# =============================================================================
# Composition
# =============================================================================


def compute_changed_files(
    existing_files: dict[str, str],
    new_files: dict[str, str],
) -> dict[str, str]:
    """기존에 없거나 내용이 달라진 파일만."""
    return {
        path: content
        for path, content in new_files.items()
        if path not in existing_files or existing_files[path] != content
    }


def parse_generation_response(
    text: str,
    existing_files: dict[str, str] | None = None,
) -> GeneratedCode:
    """
    LLM 응답을 설명 + 파일로 분리.

    Args:
        text: LLM 응답 원문
        existing_files: 수정 요청 시 기존 파일 (없거나 비어 있으면 신규 생성)

    Returns:
        GeneratedCode
        - existing_files가 있으면 files = 기존 위에 병합, changed_files = 변경분
        - 없으면 files = 추출 결과, changed_files = None
    """
    explanation = extract_explanation(text)

    strategy = "fenced"
    files = extract_fenced_files(text)

    if not files:
        strategy = "lenient"
        files = extract_lenient_files(text)

    if not files:
        strategy = "placeholder"
        files = placeholder_files()
        logger.warning(
            "No files found in generation response "
            f"(length={len(text)}). Using placeholder {PLACEHOLDER_FILENAME}."
        )
    elif strategy == "lenient":
        logger.info(f"Fenced extraction found nothing; lenient pass found {len(files)} file(s)")

    if existing_files:
        return GeneratedCode(
            explanation=explanation,
            files={**existing_files, **files},
            changed_files=compute_changed_files(existing_files, files),
            strategy=strategy,
        )

    return GeneratedCode(
        explanation=explanation,
        files=files,
        strategy=strategy,
    )
