import sys
from pathlib import Path

import pytest

# 프로젝트 루트를 sys.path에 추가 (설치 없이 paper_trading 임포트)
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from paper_trading.core.assets import Asset  # noqa: E402
from paper_trading.core.errors import FeedError  # noqa: E402
from paper_trading.core.price_feed import Candle, PriceFeed, PriceQuote  # noqa: E402
from paper_trading.data.portfolio import PortfolioLedger  # noqa: E402
from paper_trading.simulation.fake_market import SyntheticMarket  # noqa: E402
from paper_trading.storage.repository import SessionRepository  # noqa: E402
from paper_trading.storage.stores import MemoryStore  # noqa: E402

FIXED_NOW = 1_700_000_000_000


class FixedClock:
    """호출할 때마다 step만큼 진행하는 테스트용 시계."""

    def __init__(self, start: int = FIXED_NOW, step: int = 0):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        current = self.now
        self.now += self.step
        return current


class StubFeed(PriceFeed):
    """가격을 직접 지정하는 피드. failing=True면 FeedError."""

    def __init__(self, prices=None):
        self.prices = dict(prices or {})
        self.failing = False
        self.calls = 0

    def get_price(self, asset):
        self.calls += 1
        if self.failing or asset not in self.prices:
            raise FeedError(f"stub feed down for {asset.value}")
        price = self.prices[asset]
        return PriceQuote(price=price, change_24h=price * 0.01, change_percent_24h=1.0)

    def get_ohlc(self, asset, days=1):
        if self.failing or asset not in self.prices:
            raise FeedError(f"stub feed down for {asset.value}")
        price = self.prices[asset]
        return [
            Candle(timestamp=FIXED_NOW - 60_000, open=price * 0.99, high=price * 1.01, low=price * 0.98, close=price),
            Candle(timestamp=FIXED_NOW, open=price, high=price * 1.02, low=price * 0.97, close=price),
        ]


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def ledger(clock):
    return PortfolioLedger(10_000, clock=clock)


@pytest.fixture
def fake_market(clock):
    return SyntheticMarket(seed=42, clock=clock)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def repository(store):
    return SessionRepository(store)


@pytest.fixture
def stub_feed():
    return StubFeed({Asset.BTC: 50_000.0, Asset.ETH: 3_000.0})
