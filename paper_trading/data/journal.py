"""
거래 기록(Trade Journal) 모듈.

[ 역할 ]
    체결된 거래(Trade)를 최신순으로 쌓는 추가 전용(append-only) 로그.
    PortfolioLedger.buy/sell()의 부수 효과로만 기록된다.

[ 주요 클래스 ]
    Trade        - 단일 체결 기록 (불변). 매도 시에만 realized_pnl 포함
    TradeJournal - Trade 목록 (index 0이 가장 최근)

[ 호출하는 곳 ]
    - data/portfolio.py::PortfolioLedger가 체결 시 record() 호출
    - engine/metrics.py에서 매도 기록으로 성과 계산
    - storage/repository.py에서 to_list()/from_list()로 저장/복원
"""

import secrets
from dataclasses import asdict, dataclass
from typing import Any, Iterator, Optional

from paper_trading.core.assets import Asset

BUY = "buy"
SELL = "sell"


def generate_trade_id(timestamp: int) -> str:
    """'trade-{epoch_ms}-{랜덤 9자}' 형식의 거래 ID."""
    return f"trade-{timestamp}-{secrets.token_hex(5)[:9]}"


@dataclass(frozen=True)
class Trade:
    """개별 거래 기록. 생성 후 변경되지 않는다."""
    id: str
    asset: Asset
    side: str                 # "buy" or "sell"
    quantity: float
    price: float              # 체결 가격
    total: float              # quantity * price
    timestamp: int            # epoch milliseconds
    realized_pnl: Optional[float] = None  # 실현 손익 (매도 시에만)

    @property
    def is_buy(self) -> bool:
        return self.side == BUY

    @property
    def is_sell(self) -> bool:
        return self.side == SELL

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["asset"] = self.asset.value
        if self.realized_pnl is None:
            del data["realized_pnl"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trade":
        side = str(data["side"])
        if side not in (BUY, SELL):
            raise ValueError(f"Unknown trade side: {side!r}")
        pnl = data.get("realized_pnl")
        return cls(
            id=str(data["id"]),
            asset=Asset.parse(data["asset"]),
            side=side,
            quantity=float(data["quantity"]),
            price=float(data["price"]),
            total=float(data["total"]),
            timestamp=int(data["timestamp"]),
            realized_pnl=float(pnl) if pnl is not None else None,
        )


class TradeJournal:
    """최신순 거래 기록. 기록된 Trade는 수정/삭제되지 않는다 (clear 제외)."""

    def __init__(self, trades: Optional[list[Trade]] = None):
        self._trades: list[Trade] = list(trades or [])

    def record(self, trade: Trade) -> None:
        """거래를 맨 앞에 추가 (최신순 유지)."""
        self._trades.insert(0, trade)

    def clear(self) -> None:
        self._trades.clear()

    @property
    def trades(self) -> tuple[Trade, ...]:
        return tuple(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(tuple(self._trades))

    def __len__(self) -> int:
        return len(self._trades)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TradeJournal):
            return NotImplemented
        return self._trades == other._trades

    def latest(self, n: int = 10) -> list[Trade]:
        return self._trades[:n]

    def for_asset(self, asset: Asset) -> list[Trade]:
        return [t for t in self._trades if t.asset == asset]

    def sells(self) -> list[Trade]:
        return [t for t in self._trades if t.is_sell]

    @property
    def realized_pnl(self) -> float:
        """누적 실현 손익."""
        return sum(t.realized_pnl or 0.0 for t in self._trades if t.is_sell)

    def to_list(self) -> list[dict[str, Any]]:
        return [t.to_dict() for t in self._trades]

    @classmethod
    def from_list(cls, data: list[dict[str, Any]]) -> "TradeJournal":
        if not isinstance(data, list):
            raise ValueError("Trade journal payload must be a list")
        return cls([Trade.from_dict(item) for item in data])
