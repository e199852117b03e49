"""
가상(FAKE) 시장 가격 생성 모듈.

[ 역할 ]
    추세(trend) + 모멘텀(momentum) + 평균회귀(mean reversion) + 가우시안 노이즈를
    조합한 랜덤워크로 FAKE 자산의 가격과 OHLC 캔들을 만든다.

[ 가격 갱신 한 스텝 (next_price) ]
    1. noise      = N(0,1) * volatility * noise_level        (Box-Muller)
    2. trend      = clamp(trend*0.95 + (U(0,1)-0.5)*0.2, -1, 1)
       trend_move = trend * volatility * trend_strength
    3. pull       = (INITIAL_PRICE - price) / INITIAL_PRICE * mean_reversion
    4. momentum_move = momentum * 0.1
    5. change     = price * (noise + trend_move + pull + momentum_move)
    6. momentum   = momentum*0.9 + change/price
    7. price      = max(1, price + change)

[ 상태 ]
    SyntheticMarket 객체 하나가 하나의 가상 시장 세션이다. 전역 상태 없음.
    initialize_session() 호출 전은 Uninitialized, 이후 Active (종료 상태 없음).

[ 호출하는 곳 ]
    - data/market_data.py::MarketWatch가 FAKE 자산 로드/틱 시 호출
    - storage/repository.py에서 state를 저장/복원
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import numpy as np

from paper_trading.core.assets import SpeedMode
from paper_trading.core.price_feed import Candle, now_ms

logger = logging.getLogger("paper_trading.market")

INITIAL_PRICE = 100.0        # 기준가 (평균회귀 목표)
MIN_PRICE = 1.0              # 가격 하한
MAX_CANDLES = 100            # 유지하는 캔들 수
BACKFILL_CANDLES = 50        # 세션 시작 시 채우는 과거 캔들 수
CANDLE_INTERVAL_MS = 60_000  # 과거 캔들 간격 (1분)
TICKS_PER_CANDLE = 4         # 캔들 하나를 만드는 가격 스텝 수
VOLUME_RANGE = (100_000, 1_100_000)  # 표시용 거래량 [low, high)

TREND_DECAY = 0.95
TREND_SHOCK = 0.2
MOMENTUM_DECAY = 0.9
MOMENTUM_WEIGHT = 0.1
INITIAL_TREND_RANGE = 0.4    # 초기 추세 ±0.2


@dataclass(frozen=True)
class MarketParams:
    """속도 모드별 가격 생성 파라미터."""
    volatility: float       # 틱당 최대 변동 규모
    trend_strength: float   # 추세 추종 가중치
    noise_level: float      # 노이즈 가중치
    mean_reversion: float   # 기준가로 끌어당기는 힘


MARKET_PARAMS: dict[SpeedMode, MarketParams] = {
    SpeedMode.FAST: MarketParams(volatility=0.02, trend_strength=0.6, noise_level=0.4, mean_reversion=0.001),
    SpeedMode.MEDIUM: MarketParams(volatility=0.015, trend_strength=0.5, noise_level=0.5, mean_reversion=0.002),
    SpeedMode.SLOW: MarketParams(volatility=0.01, trend_strength=0.4, noise_level=0.6, mean_reversion=0.003),
}


@dataclass
class SyntheticMarketState:
    """가상 시장의 가변 상태."""
    price: float = INITIAL_PRICE
    trend: float = 0.0          # 추세 방향 [-1, 1]
    momentum: float = 0.0       # 최근 변동 누적
    candles: list[Candle] = field(default_factory=list)
    last_update: int = 0        # epoch ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "trend": self.trend,
            "momentum": self.momentum,
            "candles": [c.to_dict() for c in self.candles],
            "last_update": self.last_update,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyntheticMarketState":
        state = cls(
            price=float(data["price"]),
            trend=float(data["trend"]),
            momentum=float(data["momentum"]),
            candles=[Candle.from_dict(c) for c in data.get("candles", [])][-MAX_CANDLES:],
            last_update=int(data.get("last_update", 0)),
        )
        if not math.isfinite(state.price) or state.price < MIN_PRICE or not -1.0 <= state.trend <= 1.0:
            raise ValueError(f"Invalid synthetic market state: price={state.price}, trend={state.trend}")
        return state


@dataclass(frozen=True)
class FakeMarketSnapshot:
    """current_state()의 반환값."""
    price: float
    candles: list[Candle]
    change_24h: float
    change_percent_24h: float


def gaussian(rng: np.random.Generator) -> float:
    """표준정규분포 샘플 (Box-Muller). u1은 (0, 1]로 뽑아 log(0)을 피한다."""
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


class SyntheticMarket:
    """가상 시장 세션.

    사용법:
        market = SyntheticMarket(seed=42)
        market.initialize_session()             # 과거 캔들 50개 생성
        candle = market.next_candle(SpeedMode.FAST)
        snapshot = market.current_state()
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
        params: Optional[dict[SpeedMode, MarketParams]] = None,
    ):
        self.rng = np.random.default_rng(seed)
        self._clock = clock
        self.params = params or MARKET_PARAMS
        self.state = SyntheticMarketState()
        self.initialized = False

    @property
    def price(self) -> float:
        return self.state.price

    def next_price(self, mode: "SpeedMode | str" = SpeedMode.MEDIUM) -> float:
        """가격 한 스텝 갱신. 상태를 바꾸는 유일한 기본 연산."""
        params = self.params[SpeedMode.parse(mode)]
        state = self.state

        noise = gaussian(self.rng) * params.volatility * params.noise_level

        trend_change = (self.rng.random() - 0.5) * TREND_SHOCK
        state.trend = max(-1.0, min(1.0, state.trend * TREND_DECAY + trend_change))
        trend_move = state.trend * params.volatility * params.trend_strength

        pull = (INITIAL_PRICE - state.price) / INITIAL_PRICE * params.mean_reversion
        momentum_move = state.momentum * MOMENTUM_WEIGHT

        price_change = state.price * (noise + trend_move + pull + momentum_move)
        state.momentum = state.momentum * MOMENTUM_DECAY + price_change / state.price
        if not math.isfinite(state.momentum):
            state.momentum = 0.0

        new_price = state.price + price_change
        state.price = max(MIN_PRICE, new_price) if math.isfinite(new_price) else MIN_PRICE
        return state.price

    def next_candle(
        self,
        mode: "SpeedMode | str" = SpeedMode.MEDIUM,
        timestamp: Optional[int] = None,
    ) -> Candle:
        """가격 스텝 4회로 캔들 하나 생성 후 윈도우에 추가 (최대 100개 유지)."""
        ts = self._clock() if timestamp is None else timestamp
        open_price = self.state.price

        prices = [open_price]
        for _ in range(TICKS_PER_CANDLE):
            prices.append(self.next_price(mode))

        candle = Candle(
            timestamp=ts,
            open=open_price,
            high=max(prices),
            low=min(prices),
            close=self.state.price,
            volume=int(self.rng.integers(*VOLUME_RANGE)),
        )

        self.state.candles = self.state.candles[-(MAX_CANDLES - 1):] + [candle]
        self.state.last_update = ts
        return candle

    def reset_state(self) -> None:
        """기준가 100, ±0.2 랜덤 추세, 모멘텀 0, 캔들 비움."""
        self.state = SyntheticMarketState(
            price=INITIAL_PRICE,
            trend=(self.rng.random() - 0.5) * INITIAL_TREND_RANGE,
            momentum=0.0,
            candles=[],
            last_update=self._clock(),
        )

    def initialize_session(self) -> list[Candle]:
        """상태 초기화 후 1분 간격 과거 캔들 50개를 현재 시각까지 채운다."""
        self.reset_state()
        now = self.state.last_update
        for i in range(BACKFILL_CANDLES - 1, -1, -1):
            self.next_candle(SpeedMode.MEDIUM, timestamp=now - i * CANDLE_INTERVAL_MS)

        self.initialized = True
        logger.info(f"가상 시장 초기화: 캔들 {len(self.state.candles)}개, 현재가 {self.state.price:,.2f}")
        return list(self.state.candles)

    def reset(self) -> list[Candle]:
        return self.initialize_session()

    def restore(self, state: SyntheticMarketState) -> None:
        """저장된 상태로 세션 재개 (Active)."""
        self.state = state
        self.initialized = True

    def current_state(self) -> FakeMarketSnapshot:
        """현재가 + 캔들 + 24시간 변동.

        24시간 기준가는 윈도우에서 가장 오래된 캔들의 시가이며 (실제 24시간 전이 아님),
        캔들이 없으면 기준가 100을 사용한다.
        """
        candles = list(self.state.candles)
        reference = candles[0].open if candles else INITIAL_PRICE
        change = self.state.price - reference
        return FakeMarketSnapshot(
            price=self.state.price,
            candles=candles,
            change_24h=change,
            change_percent_24h=change / reference * 100,
        )
