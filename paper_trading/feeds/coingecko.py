"""
CoinGecko 시세 피드 (HTTP JSON, API 키 불필요).

[ 엔드포인트 ]
    GET /simple/price?ids={id}&vs_currencies=usd&include_24hr_change=true
    GET /coins/{id}/ohlc?vs_currency=usd&days={days}   → [[ts, o, h, l, c], ...]

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager (config의 feed.source == "coingecko")
"""

import logging
import math
from typing import Any, Optional

import requests

from paper_trading.core.assets import Asset
from paper_trading.core.errors import FeedError
from paper_trading.core.price_feed import Candle, PriceFeed, PriceQuote

logger = logging.getLogger("paper_trading.feed")

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"

COINGECKO_IDS: dict[Asset, str] = {
    Asset.BTC: "bitcoin",
    Asset.ETH: "ethereum",
    Asset.SOL: "solana",
}


class CoinGeckoPriceFeed(PriceFeed):
    """CoinGecko REST 클라이언트."""

    def __init__(
        self,
        base_url: str = COINGECKO_BASE_URL,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _coin_id(self, asset: Asset) -> str:
        if asset not in COINGECKO_IDS:
            raise FeedError(f"No CoinGecko id for {asset.value}")
        return COINGECKO_IDS[asset]

    def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise FeedError(f"Request to {endpoint} failed: {e}") from e

        if response.status_code != 200:
            raise FeedError(f"API error: {response.status_code} ({endpoint})")

        try:
            return response.json()
        except ValueError as e:
            raise FeedError(f"Invalid JSON from {endpoint}") from e

    def get_price(self, asset: Asset) -> PriceQuote:
        coin_id = self._coin_id(asset)
        data = self._get(
            "/simple/price",
            {"ids": coin_id, "vs_currencies": "usd", "include_24hr_change": "true"},
        )

        coin = data.get(coin_id) if isinstance(data, dict) else None
        if not isinstance(coin, dict) or coin.get("usd") is None:
            raise FeedError(f"No data returned for {asset.value}")

        try:
            price = float(coin["usd"])
            change_percent = float(coin.get("usd_24h_change") or 0.0)
        except (TypeError, ValueError) as e:
            raise FeedError(f"Malformed price payload for {asset.value}: {e}") from e

        if not math.isfinite(price) or price <= 0:
            raise FeedError(f"Invalid price for {asset.value}: {price}")
        if not math.isfinite(change_percent):
            change_percent = 0.0

        return PriceQuote(
            price=price,
            change_24h=price * change_percent / 100,
            change_percent_24h=change_percent,
        )

    def get_ohlc(self, asset: Asset, days: int = 1) -> list[Candle]:
        coin_id = self._coin_id(asset)
        data = self._get(f"/coins/{coin_id}/ohlc", {"vs_currency": "usd", "days": days})

        if not isinstance(data, list):
            raise FeedError(f"Unexpected OHLC payload for {asset.value}")

        try:
            candles = [
                Candle(
                    timestamp=int(row[0]),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                )
                for row in data
            ]
        except (TypeError, ValueError, IndexError) as e:
            raise FeedError(f"Malformed OHLC row for {asset.value}: {e}") from e

        logger.debug(f"Fetched {len(candles)} OHLC candles for {asset.value}")
        return sorted(candles, key=lambda c: c.timestamp)
