import math

import numpy as np
import pytest

from paper_trading.core.assets import SpeedMode
from paper_trading.simulation.fake_market import (
    BACKFILL_CANDLES,
    CANDLE_INTERVAL_MS,
    INITIAL_PRICE,
    MAX_CANDLES,
    MIN_PRICE,
    SyntheticMarket,
    SyntheticMarketState,
    gaussian,
)

from conftest import FIXED_NOW


@pytest.mark.parametrize("mode", list(SpeedMode))
def test_price_never_below_floor(mode):
    market = SyntheticMarket(seed=7)
    market.reset_state()
    for _ in range(10_000):
        price = market.next_price(mode)
        assert price >= MIN_PRICE
        assert math.isfinite(price)
    assert -1.0 <= market.state.trend <= 1.0


def test_price_floor_applies_after_crash():
    market = SyntheticMarket(seed=1)
    market.state.price = 1.0
    market.state.momentum = -50.0
    assert market.next_price(SpeedMode.FAST) == MIN_PRICE


def test_same_seed_same_path(clock):
    a = SyntheticMarket(seed=123, clock=clock)
    b = SyntheticMarket(seed=123, clock=clock)
    a.initialize_session()
    b.initialize_session()
    assert a.state.candles == b.state.candles


def test_initialize_session_backfills_candles(fake_market):
    candles = fake_market.initialize_session()

    assert len(candles) == BACKFILL_CANDLES
    assert fake_market.initialized
    assert candles[0].open == INITIAL_PRICE
    assert candles[-1].timestamp == FIXED_NOW
    assert candles[0].timestamp == FIXED_NOW - (BACKFILL_CANDLES - 1) * CANDLE_INTERVAL_MS
    gaps = {b.timestamp - a.timestamp for a, b in zip(candles, candles[1:])}
    assert gaps == {CANDLE_INTERVAL_MS}


def test_candles_are_well_formed(fake_market):
    for candle in fake_market.initialize_session():
        assert candle.high >= max(candle.open, candle.close)
        assert candle.low <= min(candle.open, candle.close)
        assert candle.low >= MIN_PRICE
        assert 100_000 <= candle.volume < 1_100_000


def test_candles_chain_open_to_previous_close(fake_market):
    fake_market.initialize_session()
    candles = fake_market.state.candles
    for prev, cur in zip(candles, candles[1:]):
        assert cur.open == prev.close


def test_window_is_capped(fake_market):
    fake_market.initialize_session()
    for _ in range(80):
        fake_market.next_candle(SpeedMode.FAST)
    candles = fake_market.state.candles
    assert len(candles) == MAX_CANDLES
    assert candles[-1].close == fake_market.price


def test_reset_state(fake_market):
    fake_market.initialize_session()
    fake_market.reset_state()
    state = fake_market.state
    assert state.price == INITIAL_PRICE
    assert state.momentum == 0
    assert -0.2 <= state.trend <= 0.2
    assert state.candles == []


def test_current_state_uses_oldest_open(fake_market):
    fake_market.initialize_session()
    snapshot = fake_market.current_state()
    assert snapshot.price == fake_market.price
    assert snapshot.change_24h == pytest.approx(fake_market.price - INITIAL_PRICE)
    assert snapshot.change_percent_24h == pytest.approx((fake_market.price - INITIAL_PRICE) / INITIAL_PRICE * 100)


def test_current_state_without_candles():
    snapshot = SyntheticMarket(seed=0).current_state()
    assert snapshot.candles == []
    assert snapshot.change_24h == 0
    assert snapshot.change_percent_24h == 0


def test_state_dict_round_trip_and_validation(fake_market):
    fake_market.initialize_session()
    data = fake_market.state.to_dict()
    assert SyntheticMarketState.from_dict(data) == fake_market.state

    with pytest.raises(ValueError):
        SyntheticMarketState.from_dict({**data, "price": 0.5})
    with pytest.raises(ValueError):
        SyntheticMarketState.from_dict({**data, "trend": 3})


def test_restore_resumes_session(fake_market, clock):
    fake_market.initialize_session()
    other = SyntheticMarket(seed=9, clock=clock)
    other.restore(SyntheticMarketState.from_dict(fake_market.state.to_dict()))
    assert other.initialized
    assert other.price == fake_market.price


def test_gaussian_is_roughly_standard_normal():
    rng = np.random.default_rng(0)
    samples = np.array([gaussian(rng) for _ in range(20_000)])
    assert abs(samples.mean()) < 0.05
    assert abs(samples.std() - 1.0) < 0.05
