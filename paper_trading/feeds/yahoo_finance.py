"""
Yahoo Finance 시세 피드 (yfinance)
"""
import logging
import time
from typing import Optional

import pandas as pd
import yfinance as yf

from paper_trading.core.assets import Asset
from paper_trading.core.errors import FeedError
from paper_trading.core.price_feed import Candle, PriceFeed, PriceQuote

logger = logging.getLogger("paper_trading.feed")

YAHOO_TICKERS: dict[Asset, str] = {
    Asset.BTC: "BTC-USD",
    Asset.ETH: "ETH-USD",
    Asset.SOL: "SOL-USD",
}

REQUIRED_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']


class YahooFinancePriceFeed(PriceFeed):
    """
    yfinance 기반 시세 피드.

    24시간 변동은 조회한 캔들 중 가장 오래된 캔들의 시가 대비로 계산합니다.
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 5,
        interval: str = "30m",
    ):
        """
        Args:
            max_retries: 최대 재시도 횟수
            retry_delay: 재시도 간 대기 시간 (초)
            interval: 캔들 간격 (yfinance interval 문자열)
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.interval = interval

    def get_price(self, asset: Asset) -> PriceQuote:
        candles = self.get_ohlc(asset, days=1)
        price = candles[-1].close
        if price <= 0:
            raise FeedError(f"Non-positive price for {asset.value}: {price}")

        reference = candles[0].open
        change = price - reference
        return PriceQuote(
            price=price,
            change_24h=change,
            change_percent_24h=change / reference * 100 if reference > 0 else 0.0,
        )

    def get_ohlc(self, asset: Asset, days: int = 1) -> list[Candle]:
        if asset not in YAHOO_TICKERS:
            raise FeedError(f"No Yahoo ticker for {asset.value}")

        df = self._fetch_history(YAHOO_TICKERS[asset], days)
        return [
            Candle(
                timestamp=int(row.timestamp),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=int(row.volume) if pd.notna(row.volume) else None,
            )
            for row in df.itertuples(index=False)
        ]

    def _fetch_history(self, ticker: str, days: int) -> pd.DataFrame:
        """
        Yahoo Finance에서 최근 N일 데이터를 수집합니다.

        Returns:
            DataFrame with columns: [timestamp, open, high, low, close, volume]
            timestamp는 epoch milliseconds, 오래된 순

        Raises:
            FeedError: 재시도 후에도 실패하거나 데이터가 없을 때
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                logger.info(f"Fetching {ticker} for {days}d (attempt {attempt + 1}/{self.max_retries})")

                ticker_obj = yf.Ticker(ticker)
                df = ticker_obj.history(
                    period=f"{days}d",
                    interval=self.interval,
                    auto_adjust=False,
                    actions=False,
                )
            except Exception as e:
                last_error = e
                logger.error(f"Error fetching {ticker} (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    logger.info(f"Retrying in {self.retry_delay} seconds...")
                    time.sleep(self.retry_delay)
                continue

            if df is None or df.empty:
                raise FeedError(f"No data found for {ticker}")

            try:
                df = normalize_history(df)
            except (KeyError, TypeError, ValueError) as e:
                raise FeedError(f"Unexpected history format for {ticker}: {e}") from e

            if not validate_data(df, ticker):
                raise FeedError(f"Data validation failed for {ticker}")

            logger.info(f"Successfully fetched {len(df)} rows for {ticker}")
            return df

        raise FeedError(f"Max retries reached for {ticker}: {last_error}")


def normalize_history(df: pd.DataFrame) -> pd.DataFrame:
    """
    yfinance history() 결과를 표준 컬럼으로 변환합니다.

    인덱스(Datetime 또는 Date)를 epoch milliseconds timestamp 컬럼으로 바꿉니다.
    """
    df = df.reset_index()
    date_column = 'Datetime' if 'Datetime' in df.columns else 'Date'

    df = df.rename(columns={
        'Open': 'open',
        'High': 'high',
        'Low': 'low',
        'Close': 'close',
        'Volume': 'volume',
    })

    if date_column in df.columns:
        times = pd.to_datetime(df[date_column], utc=True)
        df['timestamp'] = [int(t.timestamp() * 1000) for t in times]

    # 없는 컬럼은 validate_data()에서 걸러낸다
    df = df[[c for c in REQUIRED_COLUMNS if c in df.columns]]
    if 'timestamp' not in df.columns:
        return df
    return df.sort_values('timestamp').reset_index(drop=True)


def validate_data(df: pd.DataFrame, ticker: str) -> bool:
    """
    수집한 데이터를 검증합니다.

    Args:
        df: 검증할 DataFrame
        ticker: 티커 심볼

    Returns:
        검증 통과 여부
    """
    if df is None or df.empty:
        logger.warning(f"Empty DataFrame for {ticker}")
        return False

    missing_columns = set(REQUIRED_COLUMNS) - set(df.columns)
    if missing_columns:
        logger.error(f"Missing columns for {ticker}: {missing_columns}")
        return False

    price_columns = ['open', 'high', 'low', 'close']
    if df[price_columns].isnull().any().any():
        logger.error(f"NULL prices found in {ticker}")
        return False

    for col in price_columns:
        if (df[col] <= 0).any():
            invalid_count = (df[col] <= 0).sum()
            logger.warning(f"Invalid {col} values (<=0) for {ticker}: {invalid_count} rows")

    if (df['high'] < df['low']).any():
        invalid_count = (df['high'] < df['low']).sum()
        logger.warning(f"Invalid OHLC relationship (high < low) for {ticker}: {invalid_count} rows")

    return True
