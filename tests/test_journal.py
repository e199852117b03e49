import pytest

from paper_trading.core.assets import Asset
from paper_trading.data.journal import BUY, SELL, Trade, TradeJournal, generate_trade_id


def _trade(side=BUY, asset=Asset.BTC, pnl=None, ts=1):
    return Trade(
        id=generate_trade_id(ts),
        asset=asset,
        side=side,
        quantity=1.0,
        price=100.0,
        total=100.0,
        timestamp=ts,
        realized_pnl=pnl,
    )


def test_trade_id_format():
    trade_id = generate_trade_id(1_700_000_000_000)
    prefix, ts, suffix = trade_id.split("-")
    assert prefix == "trade"
    assert ts == "1700000000000"
    assert len(suffix) == 9


def test_trade_ids_are_unique():
    ids = {generate_trade_id(1) for _ in range(200)}
    assert len(ids) == 200


def test_record_keeps_newest_first():
    journal = TradeJournal()
    first = _trade(ts=1)
    second = _trade(SELL, pnl=5.0, ts=2)
    journal.record(first)
    journal.record(second)

    assert journal.latest(1) == [second]
    assert list(journal) == [second, first]
    assert journal.sells() == [second]
    assert journal.realized_pnl == 5.0


def test_for_asset():
    journal = TradeJournal([_trade(asset=Asset.ETH), _trade(asset=Asset.BTC)])
    assert len(journal.for_asset(Asset.ETH)) == 1


def test_buy_dict_omits_realized_pnl():
    data = _trade().to_dict()
    assert "realized_pnl" not in data
    assert data["asset"] == "BTC"
    assert data["side"] == "buy"


def test_journal_list_round_trip():
    journal = TradeJournal([_trade(SELL, pnl=-3.5, ts=2), _trade(ts=1)])
    assert TradeJournal.from_list(journal.to_list()) == journal


def test_from_list_rejects_bad_payload():
    with pytest.raises(ValueError):
        TradeJournal.from_list({"not": "a list"})
    with pytest.raises(ValueError):
        Trade.from_dict({**_trade().to_dict(), "side": "hold"})
