from unittest.mock import MagicMock, patch

import pytest

from paper_trading.core.errors import StoreError
from paper_trading.storage.clickhouse_store import ClickHouseStore
from paper_trading.storage.stores import JsonFileStore


def test_json_store_round_trip(tmp_path):
    store = JsonFileStore(tmp_path / "session")
    assert store.load("paper-trading-portfolio") is None

    store.save("paper-trading-portfolio", '{"cash": 1}')
    store.save("paper-trading-portfolio", '{"cash": 2}')
    assert store.load("paper-trading-portfolio") == '{"cash": 2}'
    assert not list((tmp_path / "session").glob("*.tmp"))


def test_json_store_delete_and_clear(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save("a", "1")
    store.save("b", "2")
    store.delete("a")
    store.delete("missing")
    assert store.load("a") is None

    store.clear()
    assert store.load("b") is None


def test_json_store_rejects_path_keys(tmp_path):
    store = JsonFileStore(tmp_path)
    with pytest.raises(StoreError):
        store.save("../escape", "x")


def test_clickhouse_store_save_and_load():
    client = MagicMock()
    client.query.return_value.result_rows = [['{"cash": 1}']]
    store = ClickHouseStore(client, table="snapshots")

    store.save("k", '{"cash": 1}')
    args, kwargs = client.insert.call_args
    assert args[0] == "snapshots"
    assert args[1][0][:2] == ["k", '{"cash": 1}']
    assert kwargs["column_names"] == ["key", "value", "updated_at"]

    assert store.load("k") == '{"cash": 1}'
    sql = client.query.call_args[0][0]
    assert "FINAL" in sql
    assert client.query.call_args[1]["parameters"] == {"key": "k"}


def test_clickhouse_store_missing_key():
    client = MagicMock()
    client.query.return_value.result_rows = []
    assert ClickHouseStore(client).load("nothing") is None


def test_clickhouse_store_wraps_errors():
    client = MagicMock()
    client.insert.side_effect = RuntimeError("connection refused")
    client.command.side_effect = RuntimeError("connection refused")
    store = ClickHouseStore(client)

    with pytest.raises(StoreError):
        store.save("k", "v")
    with pytest.raises(StoreError):
        store.clear()
    assert store.verify_connection() is False


def test_clickhouse_store_schema_and_table_name():
    client = MagicMock()
    ClickHouseStore(client, table="snap_v1").initialize_schema()
    sql = client.command.call_args[0][0]
    assert "ReplacingMergeTree(updated_at)" in sql

    with pytest.raises(ValueError):
        ClickHouseStore(client, table="x; DROP TABLE y")


def test_json_store_failed_write_leaves_no_temp_file(tmp_path):
    store = JsonFileStore(tmp_path)
    with patch("paper_trading.storage.stores.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(StoreError):
            store.save("paper-trading-trades", "[]")

    assert list(tmp_path.iterdir()) == []
