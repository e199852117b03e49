import pytest

from paper_trading.core.assets import Asset, SpeedMode
from paper_trading.core.errors import InsufficientFunds, InvalidCapital, SessionNotStarted
from paper_trading.data.market_data import MarketDataManager, MarketWatch
from paper_trading.engine.session import TradingSession
from paper_trading.simulation.fake_market import BACKFILL_CANDLES, SyntheticMarket
from paper_trading.storage.repository import SessionRepository, StorageKey


@pytest.fixture
def watch(fake_market, stub_feed, clock):
    return MarketWatch(fake_market, MarketDataManager(stub_feed), clock=clock)


@pytest.fixture
def session(repository, watch, clock):
    return TradingSession.restore(repository, watch, clock=clock)


def test_fresh_session_is_not_started(session):
    assert not session.is_initialized
    assert session.selected_asset is Asset.BTC
    assert session.speed_mode is SpeedMode.MEDIUM
    with pytest.raises(SessionNotStarted):
        session.buy(Asset.BTC, 0.1, 50_000)


@pytest.mark.parametrize("capital", [50, 20_000_000])
def test_start_rejects_capital_out_of_range(session, capital):
    with pytest.raises(InvalidCapital):
        session.start(capital)
    assert not session.is_initialized


def test_start_persists_state(session, store):
    session.start(50_000)
    assert session.portfolio.cash == 50_000
    assert store.load(StorageKey.IS_INITIALIZED.value) == "true"
    assert store.load(StorageKey.STARTING_CAPITAL.value) == "50000.0"


def test_orders_are_persisted_and_restored(session, repository, watch, clock):
    session.start(10_000)
    session.buy(Asset.BTC, 0.1, 50_000)
    session.sell(Asset.BTC, 0.04, 55_000)

    restored = TradingSession.restore(repository, watch, clock=clock)
    assert restored.is_initialized
    assert restored.portfolio == session.portfolio
    assert restored.journal == session.journal
    assert restored.starting_capital == 10_000


def test_rejected_order_is_not_persisted(session, store):
    session.start(1_000)
    before = store.load(StorageKey.PORTFOLIO.value)
    with pytest.raises(InsufficientFunds):
        session.buy(Asset.BTC, 1, 50_000)
    assert store.load(StorageKey.PORTFOLIO.value) == before


def test_select_asset_and_speed_are_persisted(session, repository, watch, clock):
    session.select_asset("eth")
    session.set_speed_mode("fast")

    restored = TradingSession.restore(repository, watch, clock=clock)
    assert restored.selected_asset is Asset.ETH
    assert restored.speed_mode is SpeedMode.FAST


def test_tick_marks_positions_to_market(session, stub_feed):
    session.start(10_000)
    session.load_market(Asset.BTC)
    session.buy(Asset.BTC, 0.1, 50_000)

    stub_feed.prices[Asset.BTC] = 60_000
    result = session.tick()

    assert result.is_ok
    assert session.portfolio.total_value == pytest.approx(11_000)
    assert session.portfolio.get_position(Asset.BTC).current_price == 60_000


def test_fake_market_survives_restore(session, repository, clock, stub_feed):
    session.select_asset(Asset.FAKE)
    session.load_market()
    session.tick()
    saved_price = session.current_price()

    new_watch = MarketWatch(SyntheticMarket(seed=1, clock=clock), MarketDataManager(stub_feed), clock=clock)
    restored = TradingSession.restore(repository, new_watch, clock=clock)
    result = restored.load_market()

    assert result.value.current_price == saved_price
    assert len(result.value.candles) == BACKFILL_CANDLES + 1


def test_reset_clears_everything(session, store):
    session.start(20_000)
    session.buy(Asset.ETH, 1, 3_000)
    session.reset()

    assert not session.is_initialized
    assert session.portfolio.cash == session.config.default_capital
    assert len(session.journal) == 0
    assert store.load(StorageKey.TRADES.value) is None


def test_corrupted_portfolio_starts_fresh(store, watch, clock):
    store.save(StorageKey.IS_INITIALIZED.value, "true")
    store.save(StorageKey.PORTFOLIO.value, '{"cash": -1, "positions": [], "total_value": 0, '
                                           '"total_pnl": 0, "total_pnl_percent": 0}')
    session = TradingSession.restore(SessionRepository(store), watch, clock=clock)
    assert not session.is_initialized
    assert session.portfolio.cash == 10_000


def test_portfolio_without_starting_capital_starts_fresh(session, store, watch, clock):
    session.start(50_000)
    session.buy(Asset.ETH, 1, 3_000)
    store.save(StorageKey.STARTING_CAPITAL.value, '"lots"')

    restored = TradingSession.restore(SessionRepository(store), watch, clock=clock)
    assert not restored.is_initialized
    assert restored.portfolio.positions == ()
