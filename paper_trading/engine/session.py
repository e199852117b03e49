"""
모의 투자 세션 모듈.

[ 역할 ]
    원장(PortfolioLedger), 시장(MarketWatch), 저장소(SessionRepository)를 묶어
    UI/CLI에 노출하는 단일 진입점. 시스템의 핵심 실행 흐름을 담당.

[ 실행 흐름 ]
    start(capital) 호출 시:
        1. 자금 범위 검증 (SessionConfig.min_capital ~ max_capital)
        2. ledger.initialize() → 포지션/거래기록 초기화
        3. 시작 자금 / 포트폴리오 / 거래기록 / 초기화 여부 저장

    외부 스케줄러가 tick()을 주기적으로 호출:
        1. market_watch.update(selected_asset, speed_mode) → 캔들 하나 진행
        2. market_watch.known_prices()로 ledger.mark_to_market()
        3. 포트폴리오 (+ 가상 시장 상태) 저장

    buy() / sell():
        ledger에 그대로 전달 → 성공 시 포트폴리오/거래기록 저장.
        저장 실패는 로그만 남고 메모리 상태는 그대로 유지된다.

[ 의존성 ]
    - data/portfolio.py::PortfolioLedger
    - data/market_data.py::MarketWatch
    - storage/repository.py::SessionRepository

[ 호출하는 곳 ]
    - run_paper_trading.py (진입점)에서 restore()로 생성
"""

import logging
from typing import Any, Callable, Mapping, Optional

from paper_trading.core.assets import Asset, SpeedMode
from paper_trading.core.errors import InvalidCapital, LedgerError, SessionNotStarted
from paper_trading.core.price_feed import now_ms
from paper_trading.core.result import Result
from paper_trading.data.journal import Trade, TradeJournal
from paper_trading.data.market_data import MarketState, MarketWatch
from paper_trading.data.portfolio import Portfolio, PortfolioLedger
from paper_trading.storage.repository import SessionRepository
from paper_trading.utils.config import SessionConfig

logger = logging.getLogger("paper_trading.session")


class TradingSession:
    """모의 투자 세션. restore()로 저장된 상태에서 시작하는 것이 일반적."""

    def __init__(
        self,
        repository: SessionRepository,
        market_watch: MarketWatch,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.repository = repository
        self.market_watch = market_watch
        self.config = config or SessionConfig()
        self._clock = clock

        self.ledger = PortfolioLedger(self.config.default_capital, clock=clock)
        self.selected_asset = Asset.parse(self.config.default_asset)
        self.speed_mode = SpeedMode.parse(self.config.default_speed)
        self.is_initialized = False

    @classmethod
    def restore(
        cls,
        repository: SessionRepository,
        market_watch: MarketWatch,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], int] = now_ms,
    ) -> "TradingSession":
        """저장소에서 세션 복원. 없거나 손상된 값은 기본값으로 시작."""
        session = cls(repository, market_watch, config=config, clock=clock)
        saved = repository.load_state()

        session.selected_asset = saved.selected_asset
        session.speed_mode = saved.speed_mode

        if saved.is_initialized and saved.portfolio is not None and not saved.has_starting_capital:
            # 시작 자금 없이는 총손익을 계산할 수 없으므로 포트폴리오도 버린다
            logger.warning("저장된 시작 자금이 없거나 손상됨, 새 세션으로 시작")
        elif saved.is_initialized and saved.portfolio is not None:
            try:
                session.ledger = PortfolioLedger.from_snapshot(
                    saved.portfolio,
                    saved.starting_capital,
                    journal=saved.journal,
                    clock=clock,
                )
            except (ValueError, LedgerError) as e:
                logger.warning(f"저장된 포트폴리오 복원 실패, 새 세션으로 시작: {e}")
            else:
                session.is_initialized = True
                logger.info(f"세션 복원: 총평가 {session.ledger.total_value:,.2f}, 거래 {len(saved.journal)}건")

        if saved.fake_market is not None:
            market_watch.fake_market.restore(saved.fake_market)

        return session

    # ─── 조회 ──────────────────────────────────────────────────────────────

    @property
    def portfolio(self) -> Portfolio:
        return self.ledger.snapshot

    @property
    def journal(self) -> TradeJournal:
        return self.ledger.journal

    @property
    def starting_capital(self) -> float:
        return self.ledger.starting_capital

    def current_price(self, asset: Optional[Asset] = None) -> Optional[float]:
        return self.market_watch.current_price(asset or self.selected_asset)

    # ─── 세션 ──────────────────────────────────────────────────────────────

    def start(self, capital: float) -> Portfolio:
        """새 세션 시작. 기존 포지션/거래기록은 모두 사라진다."""
        if not isinstance(capital, (int, float)) or isinstance(capital, bool):
            raise InvalidCapital(capital, "must be a number")
        if capital < self.config.min_capital:
            raise InvalidCapital(capital, f"minimum is {self.config.min_capital:,.0f}")
        if capital > self.config.max_capital:
            raise InvalidCapital(capital, f"maximum is {self.config.max_capital:,.0f}")

        portfolio = self.ledger.initialize(capital)
        self.is_initialized = True

        self.repository.save_starting_capital(self.ledger.starting_capital)
        self._persist_ledger()
        self.repository.set_initialized(True)
        return portfolio

    def reset(self) -> Portfolio:
        """모든 데이터 삭제 후 미시작 상태로. 가상 시장이 활성화되어 있으면 재생성."""
        self.repository.clear()
        portfolio = self.ledger.initialize(self.config.default_capital)
        self.is_initialized = False
        if self.market_watch.fake_market.initialized:
            self.market_watch.load(Asset.FAKE)
        logger.info("세션 초기화")
        return portfolio

    def select_asset(self, asset: "Asset | str") -> Asset:
        self.selected_asset = Asset.parse(asset)
        self.repository.save_selected_asset(self.selected_asset)
        return self.selected_asset

    def set_speed_mode(self, mode: "SpeedMode | str") -> SpeedMode:
        self.speed_mode = SpeedMode.parse(mode)
        self.repository.save_speed_mode(self.speed_mode)
        return self.speed_mode

    # ─── 주문 ──────────────────────────────────────────────────────────────

    def buy(self, asset: "Asset | str", quantity: float, price: float) -> Trade:
        self._require_started()
        trade = self.ledger.buy(asset, quantity, price)
        self._persist_ledger()
        return trade

    def sell(self, asset: "Asset | str", quantity: float, price: float) -> Trade:
        self._require_started()
        trade = self.ledger.sell(asset, quantity, price)
        self._persist_ledger()
        return trade

    def max_buy_quantity(self, price: float) -> float:
        return self.ledger.max_buy_quantity(price)

    def max_sell_quantity(self, asset: "Asset | str") -> float:
        return self.ledger.max_sell_quantity(asset)

    # ─── 평가 / 틱 ─────────────────────────────────────────────────────────

    def mark_to_market(self, prices: Optional[Mapping[Any, float]] = None) -> Portfolio:
        """보유 포지션 재평가. prices가 없으면 MarketWatch가 가진 최신 가격 사용."""
        if prices is None:
            prices = self.market_watch.known_prices()
        portfolio = self.ledger.mark_to_market(prices)
        if self.is_initialized:
            self.repository.save_portfolio(portfolio)
        return portfolio

    def load_market(self, asset: Optional[Asset] = None) -> Result[MarketState]:
        """선택 자산의 시장 데이터 로드. FAKE는 저장된 상태가 있으면 그대로 이어간다."""
        asset = asset or self.selected_asset
        fake_market = self.market_watch.fake_market
        if asset.is_fake and fake_market.initialized:
            state = self.market_watch.fake_state()
            self.market_watch.states[asset] = state
            return Result.ok(state)
        result = self.market_watch.load(asset)
        if asset.is_fake:
            self.repository.save_fake_market(fake_market.state)
        return result

    def tick(self) -> Result[MarketState]:
        """한 틱 진행 후 재평가. 호출 간격은 외부 스케줄러가 정한다."""
        result = self.market_watch.update(self.selected_asset, self.speed_mode)
        if self.selected_asset.is_fake:
            self.repository.save_fake_market(self.market_watch.fake_market.state)
        self.mark_to_market()
        return result

    # ─── 내부 ──────────────────────────────────────────────────────────────

    def _require_started(self) -> None:
        if not self.is_initialized:
            raise SessionNotStarted()

    def _persist_ledger(self) -> None:
        self.repository.save_portfolio(self.ledger.snapshot)
        self.repository.save_trades(self.ledger.journal)
