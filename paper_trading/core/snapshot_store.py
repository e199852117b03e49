"""
스냅샷 저장소 추상 클래스 정의.

[ 역할 ]
    원장/거래기록/설정 스냅샷을 키-값 형태로 저장하는 인터페이스.
    값은 JSON 직렬화된 문자열(불투명 blob)이며, 해석은 storage/repository.py가 담당.

[ 구현체 ]
    - storage/stores.py::MemoryStore           (테스트/임시 세션용)
    - storage/stores.py::JsonFileStore         (디렉토리 내 키별 JSON 파일)
    - storage/clickhouse_store.py::ClickHouseStore

[ 호출하는 곳 ]
    - storage/repository.py::SessionRepository만 직접 호출.
      구현체는 실패 시 StoreError를 발생시키고, Repository가 잡아서 로그로 남긴다.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SnapshotStore(ABC):
    """키-값 스냅샷 저장소 추상 클래스."""

    @abstractmethod
    def save(self, key: str, blob: str) -> None:
        """키에 blob 저장 (기존 값 덮어쓰기)."""
        ...

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """키의 blob 조회. 없으면 None."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """키 삭제. 없으면 무시."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """전체 삭제."""
        ...
