"""
시장 데이터 관리 모듈.

[ 역할 ]
    MarketDataManager - PriceFeed를 감싸서 마지막 정상값을 캐싱.
                        피드 실패 시 예외 대신 Result(STALE / UNAVAILABLE) 반환.
    MarketWatch       - 자산별 MarketState(현재가, 24시간 변동, 고가/저가, 캔들)를 유지.
                        FAKE는 SyntheticMarket, 실제 자산은 MarketDataManager에서 갱신.

[ 의존성 ]
    - core/price_feed.py::PriceFeed (실제 자산 시세)
    - simulation/fake_market.py::SyntheticMarket (FAKE 자산 시세)

[ 호출하는 곳 ]
    - engine/session.py::TradingSession.tick()이 주기적으로 update() 호출 후
      known_prices()를 PortfolioLedger.mark_to_market()에 전달
    - run_paper_trading.py의 market / watch 명령
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional

import pandas as pd

from paper_trading.core.assets import Asset, SpeedMode
from paper_trading.core.errors import FeedError
from paper_trading.core.price_feed import Candle, PriceFeed, PriceQuote, now_ms
from paper_trading.core.result import Result, ResultStatus
from paper_trading.simulation.fake_market import MAX_CANDLES, SyntheticMarket

logger = logging.getLogger("paper_trading.market")

NO_FEED_MESSAGE = "No price feed configured for real assets"


def candles_to_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    """캔들 목록 → DataFrame (columns: time, open, high, low, close, volume)."""
    rows = [c.to_dict() for c in candles]
    df = pd.DataFrame(rows, columns=["timestamp", "open", "high", "low", "close", "volume"])
    df.insert(0, "time", pd.to_datetime(df["timestamp"], unit="ms"))
    return df.drop(columns=["timestamp"])


class MarketDataManager:
    """PriceFeed 위에 마지막 정상값 캐시를 추가한 매니저.

    사용 예:
        manager = MarketDataManager(CoinGeckoPriceFeed())
        result = manager.get_price(Asset.BTC)
        if result.has_value:
            price = result.value.price
    """

    def __init__(self, feed: PriceFeed):
        self.feed = feed
        self._quotes: dict[Asset, PriceQuote] = {}          # asset → 마지막 정상 시세
        self._ohlc: dict[tuple[Asset, int], list[Candle]] = {}  # (asset, days) → 마지막 정상 OHLC

    def get_price(self, asset: Asset) -> Result[PriceQuote]:
        try:
            quote = self.feed.get_price(asset)
        except FeedError as e:
            return self._fallback(self._quotes.get(asset), f"price {asset.value}", e)

        self._quotes[asset] = quote
        return Result.ok(quote)

    def get_ohlc(self, asset: Asset, days: int = 1) -> Result[list[Candle]]:
        key = (asset, days)
        try:
            candles = self.feed.get_ohlc(asset, days)
        except FeedError as e:
            return self._fallback(self._ohlc.get(key), f"OHLC {asset.value}", e)

        self._ohlc[key] = candles
        return Result.ok(list(candles))

    @staticmethod
    def _fallback(cached, what: str, error: Exception) -> Result:
        if cached is None:
            logger.error(f"{what} 조회 실패 (캐시 없음): {error}")
            return Result.unavailable(str(error))
        logger.warning(f"{what} 조회 실패, 마지막 값 사용: {error}")
        return Result.stale(cached, str(error))

    def clear_cache(self) -> None:
        """캐시 초기화."""
        self._quotes.clear()
        self._ohlc.clear()


@dataclass
class MarketState:
    """자산 하나의 시장 상태 (차트/가격 표시용)."""
    asset: Asset
    current_price: float
    change_24h: float
    change_percent_24h: float
    high_24h: float
    low_24h: float
    candles: list[Candle] = field(default_factory=list)
    status: ResultStatus = ResultStatus.OK

    @property
    def is_stale(self) -> bool:
        return self.status is not ResultStatus.OK


def _high_low(candles: list[Candle], price: float) -> tuple[float, float]:
    if not candles:
        return price, price
    return max(c.high for c in candles), min(c.low for c in candles)


class MarketWatch:
    """자산별 MarketState 관리자.

    load()로 초기 데이터를 채우고, 외부 스케줄러가 update()를 주기적으로 호출한다.
    호출 간격이 불규칙해도 상태는 틱 단위로만 진행된다.
    """

    def __init__(
        self,
        fake_market: SyntheticMarket,
        data_manager: Optional[MarketDataManager] = None,
        ohlc_days: int = 1,
        clock: Callable[[], int] = now_ms,
    ):
        self.fake_market = fake_market
        self.data_manager = data_manager
        self.ohlc_days = ohlc_days
        self._clock = clock
        self.states: dict[Asset, MarketState] = {}

    def get_state(self, asset: Asset) -> Optional[MarketState]:
        return self.states.get(asset)

    def current_price(self, asset: Asset) -> Optional[float]:
        if asset.is_fake:
            return self.fake_market.price if self.fake_market.initialized else None
        state = self.states.get(asset)
        return state.current_price if state else None

    # ─── 로드 ──────────────────────────────────────────────────────────────

    def load(self, asset: Asset) -> Result[MarketState]:
        """초기 데이터 로드. FAKE는 가상 시장 세션을 (재)시작한다."""
        if asset.is_fake:
            self.fake_market.initialize_session()
            state = self.fake_state()
            self.states[asset] = state
            return Result.ok(state)
        return self._load_real(asset)

    def _load_real(self, asset: Asset) -> Result[MarketState]:
        manager = self.data_manager
        if manager is None:
            return Result.unavailable(NO_FEED_MESSAGE)

        price_result = manager.get_price(asset)
        if not price_result.has_value:
            return Result.unavailable(price_result.error)

        ohlc_result = manager.get_ohlc(asset, self.ohlc_days)
        previous = self.states.get(asset)
        if ohlc_result.has_value:
            candles = ohlc_result.value[-MAX_CANDLES:]
        else:
            candles = previous.candles if previous else []

        quote = price_result.value
        high, low = _high_low(candles, quote.price)
        fresh = price_result.is_ok and ohlc_result.is_ok
        state = MarketState(
            asset=asset,
            current_price=quote.price,
            change_24h=quote.change_24h,
            change_percent_24h=quote.change_percent_24h,
            high_24h=high,
            low_24h=low,
            candles=list(candles),
            status=ResultStatus.OK if fresh else ResultStatus.STALE,
        )
        self.states[asset] = state
        if fresh:
            return Result.ok(state)
        return Result.stale(state, price_result.error or ohlc_result.error)

    # ─── 틱 ────────────────────────────────────────────────────────────────

    def update(self, asset: Asset, mode: SpeedMode = SpeedMode.MEDIUM) -> Result[MarketState]:
        """한 틱 진행. FAKE는 캔들 하나 생성, 실제 자산은 현재가 조회 후 캔들 추가."""
        if asset.is_fake:
            if not self.fake_market.initialized:
                return self.load(asset)
            self.fake_market.next_candle(mode)
            state = self.fake_state()
            self.states[asset] = state
            return Result.ok(state)

        previous = self.states.get(asset)
        if previous is None or self.data_manager is None:
            return self.load(asset)

        result = self.data_manager.get_price(asset)
        if not result.is_ok:
            # 실패 시 기존 상태 유지, 오래된 데이터로 표시
            stale = replace(previous, status=ResultStatus.STALE)
            self.states[asset] = stale
            return Result.stale(stale, result.error)

        quote = result.value
        last = previous.candles[-1] if previous.candles else None
        open_price = last.close if last else quote.price
        candle = Candle(
            timestamp=self._clock(),
            open=open_price,
            high=max(open_price, quote.price),
            low=min(open_price, quote.price),
            close=quote.price,
        )
        candles = previous.candles[-(MAX_CANDLES - 1):] + [candle]
        high, low = _high_low(candles, quote.price)
        state = MarketState(
            asset=asset,
            current_price=quote.price,
            change_24h=quote.change_24h,
            change_percent_24h=quote.change_percent_24h,
            high_24h=high,
            low_24h=low,
            candles=candles,
        )
        self.states[asset] = state
        return Result.ok(state)

    def prices(self, assets: Optional[Iterable[Asset]] = None) -> dict[Asset, float]:
        """mark_to_market()에 넘길 가격 맵. 조회할 수 없는 자산은 빠진다."""
        prices: dict[Asset, float] = {}
        for asset in assets if assets is not None else list(Asset):
            if asset.is_fake:
                if self.fake_market.initialized:
                    prices[asset] = self.fake_market.price
                continue
            if self.data_manager is None:
                continue
            result = self.data_manager.get_price(asset)
            if result.has_value:
                prices[asset] = result.value.price
        return prices

    def known_prices(self) -> dict[Asset, float]:
        """피드를 다시 호출하지 않고 현재 보유한 상태의 가격만 모은다."""
        prices = {asset: state.current_price for asset, state in self.states.items()}
        if self.fake_market.initialized:
            prices[Asset.FAKE] = self.fake_market.price
        return prices

    # ─── 가상 시장 ─────────────────────────────────────────────────────────

    def fake_state(self) -> MarketState:
        """가상 시장의 현재 상태를 MarketState로 변환 (진행시키지 않음)."""
        snapshot = self.fake_market.current_state()
        high, low = _high_low(snapshot.candles, snapshot.price)
        return MarketState(
            asset=Asset.FAKE,
            current_price=snapshot.price,
            change_24h=snapshot.change_24h,
            change_percent_24h=snapshot.change_percent_24h,
            high_24h=high,
            low_24h=low,
            candles=snapshot.candles,
        )
