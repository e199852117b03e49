"""
포트폴리오 원장(Ledger) 모듈.

[ 역할 ]
    현금, 보유 자산(Position), 평가 손익을 통합 관리.
    매수/매도는 평균단가(average-cost) 방식으로 반영하고 체결 내역은 TradeJournal에 기록.

[ 주요 클래스 ]
    Position        - 자산별 수량/평균 매수가/현재가 (불변, 변경 시 교체)
    Portfolio       - 특정 시점의 원장 스냅샷 (현금 + 포지션들 + 총평가/손익)
    PortfolioLedger - 원장 본체. initialize / mark_to_market / buy / sell

[ 불변 조건 ]
    - 현금은 음수가 될 수 없다. 매수 금액이 현금을 넘으면 InsufficientFunds.
    - 수량 0인 포지션은 존재하지 않는다 (전량 매도 시 삭제).
    - 평균 매수가는 매수 시에만 가중평균으로 갱신되고 매도 시에는 변하지 않는다.
    - 검증에 실패한 연산은 원장을 전혀 변경하지 않는다.

[ 호출하는 곳 ]
    - engine/session.py::TradingSession이 소유하며 사용자 주문을 전달
    - storage/repository.py에서 snapshot / from_snapshot()으로 저장/복원
"""

import logging
import math
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Mapping, Optional

from paper_trading.core.assets import Asset
from paper_trading.core.errors import (
    InsufficientFunds,
    InsufficientPosition,
    InvalidCapital,
    InvalidPrice,
    InvalidQuantity,
)
from paper_trading.core.price_feed import now_ms
from paper_trading.data.journal import BUY, SELL, Trade, TradeJournal, generate_trade_id

logger = logging.getLogger("paper_trading.ledger")

DEFAULT_CAPITAL = 10_000.0

# 부동소수점 오차 허용치 (잔량/가용현금 비교)
EPSILON = 1e-9

QUICK_FRACTIONS = (0.25, 0.5, 0.75, 1.0)


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass(frozen=True)
class Position:
    """자산별 포지션. 수량 > 0인 동안만 Portfolio에 존재."""
    asset: Asset
    quantity: float
    avg_buy_price: float    # 마지막 전량 청산 이후 매수 체결가의 수량 가중평균
    current_price: float    # 마지막으로 반영된 시세

    @property
    def market_value(self) -> float:
        """현재가 기준 평가 금액."""
        return self.quantity * self.current_price

    @property
    def unrealized_pnl(self) -> float:
        """평가 손익."""
        return (self.current_price - self.avg_buy_price) * self.quantity

    @property
    def unrealized_pnl_percent(self) -> float:
        if self.avg_buy_price <= 0:
            return 0.0
        return (self.current_price - self.avg_buy_price) / self.avg_buy_price * 100

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["asset"] = self.asset.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Position":
        position = cls(
            asset=Asset.parse(data["asset"]),
            quantity=float(data["quantity"]),
            avg_buy_price=float(data["avg_buy_price"]),
            current_price=float(data["current_price"]),
        )
        if position.quantity <= 0 or position.avg_buy_price < 0 or position.current_price < 0:
            raise ValueError(f"Invalid position payload: {data!r}")
        return position


@dataclass(frozen=True)
class Portfolio:
    """원장 스냅샷. PortfolioLedger.snapshot으로 생성."""
    cash: float
    positions: tuple[Position, ...]
    total_value: float
    total_pnl: float
    total_pnl_percent: float

    def get_position(self, asset: Asset) -> Optional[Position]:
        for position in self.positions:
            if position.asset == asset:
                return position
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cash": self.cash,
            "positions": [p.to_dict() for p in self.positions],
            "total_value": self.total_value,
            "total_pnl": self.total_pnl,
            "total_pnl_percent": self.total_pnl_percent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Portfolio":
        return cls(
            cash=float(data["cash"]),
            positions=tuple(Position.from_dict(p) for p in data.get("positions", [])),
            total_value=float(data["total_value"]),
            total_pnl=float(data["total_pnl"]),
            total_pnl_percent=float(data["total_pnl_percent"]),
        )


class PortfolioLedger:
    """포트폴리오 원장.

    TradingSession이 소유하며, 모든 상태 변경은 initialize / mark_to_market /
    buy / sell을 통해서만 일어난다. 가격은 호출자가 넘겨준 값을 그대로 사용한다.
    """

    def __init__(
        self,
        starting_capital: float = DEFAULT_CAPITAL,
        journal: Optional[TradeJournal] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._clock = clock
        self.journal = journal if journal is not None else TradeJournal()
        self.starting_capital: float = 0.0
        self.cash: float = 0.0
        self._positions: dict[Asset, Position] = {}   # asset → Position (수량 > 0만)
        self.total_value: float = 0.0
        self.total_pnl: float = 0.0
        self.total_pnl_percent: float = 0.0
        self.initialize(starting_capital)

    # ─── 세션 ──────────────────────────────────────────────────────────────

    def initialize(self, capital: float) -> Portfolio:
        """새 세션 시작. 기존 포지션/거래기록을 모두 지우고 시작 자금을 기록."""
        if not _is_finite_number(capital) or capital <= 0:
            raise InvalidCapital(capital)

        self.starting_capital = float(capital)
        self.cash = float(capital)
        self._positions.clear()
        self.journal.clear()
        self._recompute()
        logger.info(f"세션 시작: 시작 자금 {capital:,.2f}")
        return self.snapshot

    @classmethod
    def from_snapshot(
        cls,
        portfolio: Portfolio,
        starting_capital: float,
        journal: Optional[TradeJournal] = None,
        clock: Callable[[], int] = now_ms,
    ) -> "PortfolioLedger":
        """저장된 스냅샷으로 원장 복원. 합계는 포지션으로부터 다시 계산한다."""
        if portfolio.cash < 0 or not math.isfinite(portfolio.cash):
            raise ValueError(f"Invalid cash in snapshot: {portfolio.cash!r}")

        # initialize()가 journal을 비우므로 생성 후에 연결한다
        ledger = cls(starting_capital, clock=clock)
        if journal is not None:
            ledger.journal = journal
        ledger.cash = portfolio.cash
        ledger._positions = {p.asset: p for p in portfolio.positions}
        ledger._recompute()
        return ledger

    # ─── 조회 ──────────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> Portfolio:
        return Portfolio(
            cash=self.cash,
            positions=tuple(self._positions.values()),
            total_value=self.total_value,
            total_pnl=self.total_pnl,
            total_pnl_percent=self.total_pnl_percent,
        )

    @property
    def positions(self) -> tuple[Position, ...]:
        return tuple(self._positions.values())

    def get_position(self, asset: "Asset | str") -> Optional[Position]:
        return self._positions.get(Asset.parse(asset))

    def get_holding_assets(self) -> list[Asset]:
        return list(self._positions.keys())

    def max_buy_quantity(self, price: float) -> float:
        """현재 현금으로 살 수 있는 최대 수량."""
        if not _is_finite_number(price) or price <= 0:
            return 0.0
        return self.cash / price

    def max_sell_quantity(self, asset: "Asset | str") -> float:
        position = self.get_position(asset)
        return position.quantity if position else 0.0

    def quick_amount(self, fraction: float, side: str, asset: "Asset | str", price: float = 0.0) -> float:
        """최대 수량의 일정 비율 (25/50/75/100% 버튼)."""
        if fraction not in QUICK_FRACTIONS:
            raise ValueError(f"fraction must be one of {QUICK_FRACTIONS}")
        if side == BUY:
            return self.max_buy_quantity(price) * fraction
        if side == SELL:
            return self.max_sell_quantity(asset) * fraction
        raise ValueError(f"Unknown side: {side!r}")

    # ─── 평가 ──────────────────────────────────────────────────────────────

    def mark_to_market(self, prices: Mapping[Any, float]) -> Portfolio:
        """보유 포지션의 현재가를 갱신하고 총평가/손익을 다시 계산.

        가격 맵에 없거나 사용할 수 없는 값(None, 0 이하, NaN)이면 마지막 가격을 유지한다.
        키는 Asset 또는 심볼 문자열 모두 허용.
        """
        for asset, position in list(self._positions.items()):
            price = prices.get(asset, prices.get(asset.value))
            if _is_finite_number(price) and price > 0:
                self._positions[asset] = replace(position, current_price=float(price))
        self._recompute()
        return self.snapshot

    # ─── 주문 ──────────────────────────────────────────────────────────────

    def buy(self, asset: "Asset | str", quantity: float, price: float) -> Trade:
        """매수 실행. 실패 시 예외 발생, 원장은 변경되지 않음."""
        asset = Asset.parse(asset)
        self._validate_order(quantity, price)

        total = quantity * price
        if total > self.cash + EPSILON:
            logger.info(f"매수 거부: {asset.value} {quantity} @ {price} (필요 {total:,.2f} > 현금 {self.cash:,.2f})")
            raise InsufficientFunds(required=total, available=self.cash)

        existing = self._positions.get(asset)
        if existing is not None:
            new_quantity = existing.quantity + quantity
            new_avg = (existing.avg_buy_price * existing.quantity + total) / new_quantity
            position = replace(
                existing,
                quantity=new_quantity,
                avg_buy_price=new_avg,
                current_price=price,
            )
        else:
            position = Position(asset=asset, quantity=quantity, avg_buy_price=price, current_price=price)

        trade = self._new_trade(asset, BUY, quantity, price, total)

        self.cash = max(0.0, self.cash - total)
        self._positions[asset] = position
        self.journal.record(trade)
        self._recompute()

        logger.debug(f"매수: {asset.value} {quantity} @ {price:,.4f} (총 {total:,.2f}, 평균가 {position.avg_buy_price:,.4f})")
        return trade

    def sell(self, asset: "Asset | str", quantity: float, price: float) -> Trade:
        """매도 실행. 실현 손익 = (매도가 - 평균 매수가) * 수량."""
        asset = Asset.parse(asset)
        self._validate_order(quantity, price)

        position = self._positions.get(asset)
        held = position.quantity if position is not None else 0.0
        if position is None or quantity > held + EPSILON:
            logger.info(f"매도 거부: {asset.value} {quantity} (보유 {held})")
            raise InsufficientPosition(asset.value, requested=quantity, held=held)

        total = quantity * price
        realized_pnl = (price - position.avg_buy_price) * quantity
        trade = self._new_trade(asset, SELL, quantity, price, total, realized_pnl)

        self.cash += total
        remaining = held - quantity
        if remaining <= EPSILON:
            # 전량 청산: 평균가도 함께 폐기 (재매수 시 새로 시작)
            del self._positions[asset]
        else:
            self._positions[asset] = replace(position, quantity=remaining)
        self.journal.record(trade)
        self._recompute()

        logger.debug(f"매도: {asset.value} {quantity} @ {price:,.4f} (총 {total:,.2f}, 실현손익 {realized_pnl:+,.2f})")
        return trade

    # ─── 내부 ──────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_order(quantity: float, price: float) -> None:
        if not _is_finite_number(quantity) or quantity <= 0:
            raise InvalidQuantity(quantity)
        if not _is_finite_number(price) or price < 0:
            raise InvalidPrice(price)

    def _new_trade(
        self,
        asset: Asset,
        side: str,
        quantity: float,
        price: float,
        total: float,
        realized_pnl: Optional[float] = None,
    ) -> Trade:
        timestamp = self._clock()
        return Trade(
            id=generate_trade_id(timestamp),
            asset=asset,
            side=side,
            quantity=quantity,
            price=price,
            total=total,
            timestamp=timestamp,
            realized_pnl=realized_pnl,
        )

    def _recompute(self) -> None:
        positions_value = sum(p.quantity * p.current_price for p in self._positions.values())
        self.total_value = self.cash + positions_value
        self.total_pnl = self.total_value - self.starting_capital
        self.total_pnl_percent = self.total_pnl / self.starting_capital * 100

    def get_summary(self) -> dict[str, Any]:
        """원장 요약."""
        return {
            "starting_capital": self.starting_capital,
            "cash": self.cash,
            "total_value": self.total_value,
            "total_pnl": self.total_pnl,
            "total_pnl_percent": self.total_pnl_percent,
            "realized_pnl": self.journal.realized_pnl,
            "num_positions": len(self._positions),
            "num_trades": len(self.journal),
        }
