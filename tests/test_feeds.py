from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import requests

from paper_trading.core.assets import Asset
from paper_trading.core.errors import FeedError
from paper_trading.core.result import ResultStatus
from paper_trading.data.market_data import MarketDataManager
from paper_trading.feeds.coingecko import CoinGeckoPriceFeed
from paper_trading.feeds.yahoo_finance import YahooFinancePriceFeed, normalize_history, validate_data


def _response(payload, status=200):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    return response


def test_coingecko_price():
    session = MagicMock()
    session.get.return_value = _response({"bitcoin": {"usd": 50_000, "usd_24h_change": 2.0}})
    feed = CoinGeckoPriceFeed(session=session)

    quote = feed.get_price(Asset.BTC)
    assert quote.price == 50_000
    assert quote.change_percent_24h == 2.0
    assert quote.change_24h == pytest.approx(1_000)

    url = session.get.call_args[0][0]
    assert url.endswith("/simple/price")
    assert session.get.call_args[1]["params"]["ids"] == "bitcoin"


def test_coingecko_ohlc_sorted():
    session = MagicMock()
    session.get.return_value = _response([
        [2_000, 2, 3, 1, 2.5],
        [1_000, 1, 2, 0.5, 1.5],
    ])
    candles = CoinGeckoPriceFeed(session=session).get_ohlc(Asset.ETH, days=7)

    assert [c.timestamp for c in candles] == [1_000, 2_000]
    assert candles[0].close == 1.5
    assert session.get.call_args[1]["params"]["days"] == 7


@pytest.mark.parametrize("response", [
    _response({}, status=429),
    _response({"bitcoin": {}}),
    _response({"bitcoin": {"usd": 0}}),
    _response({"bitcoin": ["x"]}),
    _response({"bitcoin": {"usd": "n/a"}}),
    _response({"bitcoin": {"usd": 100, "usd_24h_change": {"bad": 1}}}),
    _response({"bitcoin": {"usd": "NaN"}}),
    _response(["not", "a", "dict"]),
])
def test_coingecko_bad_responses_raise_feed_error(response):
    session = MagicMock()
    session.get.return_value = response
    with pytest.raises(FeedError):
        CoinGeckoPriceFeed(session=session).get_price(Asset.BTC)


def test_coingecko_network_error_and_fake_asset():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("offline")
    feed = CoinGeckoPriceFeed(session=session)
    with pytest.raises(FeedError):
        feed.get_price(Asset.BTC)
    with pytest.raises(FeedError):
        feed.get_price(Asset.FAKE)


def _history():
    index = pd.DatetimeIndex(
        ["2024-06-01 00:00:00+00:00", "2024-06-01 00:30:00+00:00"], name="Datetime"
    )
    return pd.DataFrame(
        {
            "Open": [100.0, 104.0],
            "High": [105.0, 111.0],
            "Low": [99.0, 103.0],
            "Close": [104.0, 110.0],
            "Adj Close": [104.0, 110.0],
            "Volume": [10, 20],
        },
        index=index,
    )


def test_normalize_history():
    df = normalize_history(_history())
    assert list(df.columns) == ["timestamp", "open", "high", "low", "close", "volume"]
    assert df["timestamp"].iloc[0] == 1_717_200_000_000
    assert df["timestamp"].iloc[1] - df["timestamp"].iloc[0] == 30 * 60 * 1000
    assert validate_data(df, "BTC-USD")


def test_validate_data_rejects_null_prices():
    df = normalize_history(_history())
    df.loc[0, "close"] = None
    assert not validate_data(df, "BTC-USD")


def test_yahoo_price_from_history():
    ticker = MagicMock()
    ticker.history.return_value = _history()
    with patch("paper_trading.feeds.yahoo_finance.yf.Ticker", return_value=ticker):
        quote = YahooFinancePriceFeed().get_price(Asset.BTC)

    assert quote.price == 110.0
    assert quote.change_24h == pytest.approx(10.0)
    assert quote.change_percent_24h == pytest.approx(10.0)
    assert ticker.history.call_args[1]["period"] == "1d"


def test_yahoo_retries_then_raises():
    with patch("paper_trading.feeds.yahoo_finance.yf.Ticker", side_effect=RuntimeError("boom")) as ticker, \
            patch("paper_trading.feeds.yahoo_finance.time.sleep") as sleep:
        with pytest.raises(FeedError):
            YahooFinancePriceFeed(max_retries=3, retry_delay=1).get_ohlc(Asset.SOL)

    assert ticker.call_count == 3
    assert sleep.call_count == 2


def test_yahoo_empty_history_raises():
    ticker = MagicMock()
    ticker.history.return_value = pd.DataFrame()
    with patch("paper_trading.feeds.yahoo_finance.yf.Ticker", return_value=ticker):
        with pytest.raises(FeedError):
            YahooFinancePriceFeed().get_ohlc(Asset.BTC)


def test_malformed_coingecko_quote_is_unavailable_not_a_crash():
    session = MagicMock()
    session.get.return_value = _response({"bitcoin": ["x"]})
    result = MarketDataManager(CoinGeckoPriceFeed(session=session)).get_price(Asset.BTC)
    assert result.status is ResultStatus.UNAVAILABLE


def test_yahoo_history_without_volume_is_rejected():
    ticker = MagicMock()
    ticker.history.return_value = _history().drop(columns=["Volume"])
    with patch("paper_trading.feeds.yahoo_finance.yf.Ticker", return_value=ticker):
        with pytest.raises(FeedError):
            YahooFinancePriceFeed().get_ohlc(Asset.BTC)
        result = MarketDataManager(YahooFinancePriceFeed()).get_price(Asset.BTC)

    assert result.status is ResultStatus.UNAVAILABLE


def test_validate_data_reports_missing_columns():
    df = normalize_history(_history().drop(columns=["Volume"]))
    assert "volume" not in df.columns
    assert not validate_data(df, "BTC-USD")
