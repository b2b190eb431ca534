"""
Key-value 저장소 백엔드.

SessionStore가 사용하는 저장 기반 (키 하나에 직렬화된 문자열 하나):
- InMemoryBackend: 프로세스 메모리 (테스트/임시)
- FileBackend: 키별 파일, 원자적 쓰기 (temp → rename + fsync)
- NullBackend: 저장소 없음 (읽기는 항상 None, 쓰기는 무시)

저장소 유무와 관계없이 SessionStore 동작은 동일해야 함.
"""

import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueBackend(ABC):
    """Key-value 백엔드 추상 인터페이스."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """값 조회 (없으면 None)."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """값 저장 (전체 덮어쓰기)."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """값 삭제 (없으면 무시)."""
        ...

    @property
    def available(self) -> bool:
        """실제 저장이 가능한 백엔드인지."""
        return True


class InMemoryBackend(KeyValueBackend):
    """메모리 백엔드."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class NullBackend(KeyValueBackend):
    """저장소가 없는 환경용 no-op 백엔드."""

    def get(self, key: str) -> str | None:
        return None

    def set(self, key: str, value: str) -> None:
        return None

    def remove(self, key: str) -> None:
        return None

    @property
    def available(self) -> bool:
        return False


class FileBackend(KeyValueBackend):
    """
    파일 백엔드.

    키 하나 = 파일 하나 (<root>/<key>.json).
    쓰기는 temp → rename 으로 중간 상태 없음.
    """

    def __init__(self, root: Path):
        """
        Args:
            root: 저장 디렉토리 (없으면 첫 쓰기 때 생성)
        """
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        safe_key = _SAFE_KEY_RE.sub("_", key) or "_"
        return self.root / f"{safe_key}.json"

    def get(self, key: str) -> str | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        atomic_write_text(self._path_for(key), value)

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass


# =============================================================================
# Atomic Write
# =============================================================================


def _fsync_dir(dir_path: Path) -> None:
    """디렉토리 fsync (rename 엔트리 내구성). 실패 시 경고만."""
    try:
        fd = os.open(dir_path, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.warning(f"Directory fsync failed for {dir_path}: {e}")
    finally:
        os.close(fd)


def atomic_write_text(path: Path, text: str) -> None:
    """
    원자적 텍스트 쓰기.

    동작:
    - 중간 상태 없음: temp → rename
    - 파일 fsync + 디렉토리 fsync (실패 시 경고 후 계속)
    - 실패 시 temp 파일 삭제, 기존 파일 보존

    Args:
        path: 저장할 파일 경로
        text: 저장할 내용
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            f.write(text)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


def create_backend(kind: str, path: Path | None = None) -> KeyValueBackend:
    """
    설정값으로 백엔드 생성.

    Args:
        kind: "file", "memory", "none"
        path: file 백엔드 저장 디렉토리

    Raises:
        ValueError: 알 수 없는 kind 또는 file인데 path 없음
    """
    if kind == "memory":
        return InMemoryBackend()
    if kind == "none":
        return NullBackend()
    if kind == "file":
        if path is None:
            raise ValueError("file backend requires a storage path")
        return FileBackend(path)
    raise ValueError(f"Unknown storage backend: {kind!r}")
