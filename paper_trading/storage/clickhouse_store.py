"""
ClickHouse 기반 SnapshotStore 구현.

[ 역할 ]
    키-값 스냅샷을 ClickHouse 테이블 하나에 저장.
    ReplacingMergeTree(updated_at)로 같은 키의 최신 행만 남기고, 조회 시 FINAL 사용.

[ 테이블 ]
    key String, value String, updated_at DateTime64(3)
    ENGINE = ReplacingMergeTree(updated_at) ORDER BY key

[ 호출하는 곳 ]
    - run_paper_trading.py (config.storage.backend == "clickhouse")
"""

import logging
from datetime import datetime
from typing import Optional

import clickhouse_connect
from clickhouse_connect.driver import Client

from paper_trading.core.errors import StoreError
from paper_trading.core.snapshot_store import SnapshotStore

logger = logging.getLogger("paper_trading.storage")

DEFAULT_TABLE = "paper_trading_snapshots"


def get_client(
    host: str = "localhost",
    port: int = 8123,
    database: str = "default",
    user: str = "default",
    password: str = "password",
) -> Client:
    """
    ClickHouse 클라이언트 연결 생성

    Args:
        host: ClickHouse 호스트
        port: HTTP 포트 (기본값: 8123)
        database: 데이터베이스 이름
        user: 사용자 이름
        password: 비밀번호
    """
    return clickhouse_connect.get_client(
        host=host,
        port=port,
        database=database,
        username=user,
        password=password,
    )


class ClickHouseStore(SnapshotStore):
    """ClickHouse 스냅샷 저장소.

    사용 예:
        store = ClickHouseStore(get_client("localhost", 8123))
        store.initialize_schema()
    """

    def __init__(self, client: Client, table: str = DEFAULT_TABLE):
        if not table.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table!r}")
        self.client = client
        self.table = table

    def initialize_schema(self) -> None:
        """스냅샷 테이블 생성 (이미 존재하면 무시)"""
        self._command(f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                key String,
                value String,
                updated_at DateTime64(3) DEFAULT now64(3)
            )
            ENGINE = ReplacingMergeTree(updated_at)
            ORDER BY key
        """)
        logger.info(f"스냅샷 테이블 준비 완료: {self.table}")

    def save(self, key: str, blob: str) -> None:
        try:
            self.client.insert(
                self.table,
                [[key, blob, datetime.now()]],
                column_names=["key", "value", "updated_at"],
            )
        except Exception as e:
            raise StoreError(f"ClickHouse insert failed for {key}: {e}") from e

    def load(self, key: str) -> Optional[str]:
        query = f"SELECT value FROM {self.table} FINAL WHERE key = %(key)s LIMIT 1"
        try:
            result = self.client.query(query, parameters={"key": key})
        except Exception as e:
            raise StoreError(f"ClickHouse query failed for {key}: {e}") from e

        if result.result_rows:
            return result.result_rows[0][0]
        return None

    def delete(self, key: str) -> None:
        self._command(f"DELETE FROM {self.table} WHERE key = %(key)s", {"key": key})

    def clear(self) -> None:
        self._command(f"TRUNCATE TABLE IF EXISTS {self.table}")

    def verify_connection(self) -> bool:
        """연결 검증. 실패해도 예외를 던지지 않는다."""
        try:
            return self.client.command("SELECT 1") == 1
        except Exception as e:
            logger.error(f"연결 실패: {e}")
            return False

    def _command(self, sql: str, parameters: Optional[dict] = None) -> None:
        try:
            self.client.command(sql, parameters=parameters)
        except Exception as e:
            raise StoreError(f"ClickHouse command failed: {e}") from e
