"""
시세 피드 추상 클래스 정의.

[ 역할 ]
    실제 암호화폐(BTC/ETH/SOL)의 현재가 + 24시간 변동, OHLC 이력을 제공하는 인터페이스.
    원장(PortfolioLedger)은 피드를 직접 호출하지 않으며, 호출자가 받아온 가격을 넘겨준다.

[ 구현체 ]
    - feeds/coingecko.py::CoinGeckoPriceFeed       (HTTP JSON, 기본값)
    - feeds/yahoo_finance.py::YahooFinancePriceFeed (yfinance)

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager가 이 인터페이스를 감싸서
      실패 시 마지막 정상값(STALE)으로 대체
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional

from paper_trading.core.assets import Asset


def now_ms() -> int:
    """현재 시각 (epoch milliseconds)."""
    return int(datetime.now().timestamp() * 1000)


@dataclass(frozen=True)
class Candle:
    """단일 봉(캔들) 데이터. timestamp는 epoch milliseconds."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: Optional[int] = None   # 표시용 (원장은 사용하지 않음)

    @property
    def time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Candle":
        volume = data.get("volume")
        return cls(
            timestamp=int(data["timestamp"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=int(volume) if volume is not None else None,
        )


@dataclass(frozen=True)
class PriceQuote:
    """get_price()의 반환값."""
    price: float               # 현재가 (> 0)
    change_24h: float          # 24시간 변동 금액
    change_percent_24h: float  # 24시간 변동률 (%)


class PriceFeed(ABC):
    """시세 피드 추상 클래스.

    구현체는 실패 시 FeedError를 발생시킨다. FAKE 자산은 피드 대상이 아니다.
    """

    @abstractmethod
    def get_price(self, asset: Asset) -> PriceQuote:
        """현재가 + 24시간 변동 조회."""
        ...

    @abstractmethod
    def get_ohlc(self, asset: Asset, days: int = 1) -> list[Candle]:
        """최근 N일 OHLC 이력 조회 (오래된 순)."""
        ...
