"""
SnapshotStore 기본 구현체.

[ 포함 클래스 ]
    MemoryStore   - dict 기반. 테스트 및 저장이 필요 없는 세션용
    JsonFileStore - 디렉토리 아래 키별 "{key}.json" 파일. 임시 파일에 쓴 뒤 교체

[ 호출하는 곳 ]
    - storage/repository.py::SessionRepository
    - run_paper_trading.py에서 config.storage.backend에 따라 생성
"""

import contextlib
import logging
import os
from pathlib import Path
from typing import Optional

from paper_trading.core.errors import StoreError
from paper_trading.core.snapshot_store import SnapshotStore

logger = logging.getLogger("paper_trading.storage")


class MemoryStore(SnapshotStore):
    """프로세스 메모리에만 저장."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def save(self, key: str, blob: str) -> None:
        self._data[key] = blob

    def load(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore(SnapshotStore):
    """키별 JSON 파일 저장소.

    사용 예:
        store = JsonFileStore("data/session")
        store.save("paper-trading-portfolio", '{"cash": 10000, ...}')
    """

    SUFFIX = ".json"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StoreError(f"Invalid key: {key!r}")
        return self.directory / f"{key}{self.SUFFIX}"

    def save(self, key: str, blob: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(self.SUFFIX + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp_path, path)
        except OSError as e:
            # 정리 실패는 원래 오류를 가리지 않도록 무시
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to write {path}: {e}") from e

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to delete {key}: {e}") from e

    def clear(self) -> None:
        if not self.directory.exists():
            return
        try:
            for path in self.directory.glob(f"*{self.SUFFIX}"):
                path.unlink()
        except OSError as e:
            raise StoreError(f"Failed to clear {self.directory}: {e}") from e
        logger.debug(f"저장소 비움: {self.directory}")
