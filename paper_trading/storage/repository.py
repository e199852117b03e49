"""
세션 상태 저장/복원 모듈.

[ 역할 ]
    SnapshotStore 위에서 원장/거래기록/설정을 키별로 JSON 직렬화하여 저장.
    저장 실패는 로그만 남기고 False 반환 (메모리 상태가 원본이며 롤백/재시도 없음).
    읽기 실패나 손상된 값은 "없음"으로 취급하여 기본값으로 대체.

[ 저장 키 ]
    StorageKey 참고. 포트폴리오, 거래기록, 시작 자금, 선택 자산, 속도 모드,
    초기화 여부, 가상 시장 상태.

[ 호출하는 곳 ]
    - engine/session.py::TradingSession이 상태 변경 후 save_*() 호출,
      시작 시 load_state()로 복원
"""

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from paper_trading.core.assets import Asset, SpeedMode
from paper_trading.core.errors import StoreError
from paper_trading.core.snapshot_store import SnapshotStore
from paper_trading.data.journal import TradeJournal
from paper_trading.data.portfolio import DEFAULT_CAPITAL, Portfolio
from paper_trading.simulation.fake_market import SyntheticMarketState

logger = logging.getLogger("paper_trading.storage")

T = TypeVar("T")


class StorageKey(Enum):
    PORTFOLIO = "paper-trading-portfolio"
    TRADES = "paper-trading-trades"
    STARTING_CAPITAL = "paper-trading-starting-capital"
    SELECTED_ASSET = "paper-trading-selected-asset"
    SPEED_MODE = "paper-trading-speed-mode"
    IS_INITIALIZED = "paper-trading-initialized"
    FAKE_MARKET = "paper-trading-fake-market"


@dataclass
class SavedState:
    """load_state()의 반환값. 없는 항목은 기본값."""
    portfolio: Optional[Portfolio] = None
    journal: TradeJournal = field(default_factory=TradeJournal)
    starting_capital: float = DEFAULT_CAPITAL
    has_starting_capital: bool = False   # 저장된 시작 자금을 정상적으로 읽었는지
    selected_asset: Asset = Asset.BTC
    speed_mode: SpeedMode = SpeedMode.MEDIUM
    is_initialized: bool = False
    fake_market: Optional[SyntheticMarketState] = None


def _parse_capital(value: Any) -> float:
    capital = float(value)
    if not math.isfinite(capital) or capital <= 0:
        raise ValueError(f"Invalid starting capital: {value!r}")
    return capital


def _parse_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool, got {value!r}")
    return value


class SessionRepository:
    """SnapshotStore에 대한 타입 있는 fail-soft 접근 계층."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    # ─── 저장 ──────────────────────────────────────────────────────────────

    def save_portfolio(self, portfolio: Portfolio) -> bool:
        return self._save(StorageKey.PORTFOLIO, portfolio.to_dict())

    def save_trades(self, journal: TradeJournal) -> bool:
        return self._save(StorageKey.TRADES, journal.to_list())

    def save_starting_capital(self, capital: float) -> bool:
        return self._save(StorageKey.STARTING_CAPITAL, capital)

    def save_selected_asset(self, asset: Asset) -> bool:
        return self._save(StorageKey.SELECTED_ASSET, asset.value)

    def save_speed_mode(self, mode: SpeedMode) -> bool:
        return self._save(StorageKey.SPEED_MODE, mode.value)

    def set_initialized(self, value: bool) -> bool:
        return self._save(StorageKey.IS_INITIALIZED, bool(value))

    def save_fake_market(self, state: SyntheticMarketState) -> bool:
        return self._save(StorageKey.FAKE_MARKET, state.to_dict())

    def clear(self) -> bool:
        """전체 삭제. 실패해도 예외를 던지지 않는다."""
        try:
            self.store.clear()
        except StoreError as e:
            logger.error(f"저장소 초기화 실패: {e}")
            return False
        return True

    # ─── 조회 ──────────────────────────────────────────────────────────────

    def load_portfolio(self) -> Optional[Portfolio]:
        return self._load(StorageKey.PORTFOLIO, Portfolio.from_dict)

    def load_trades(self) -> TradeJournal:
        return self._load(StorageKey.TRADES, TradeJournal.from_list) or TradeJournal()

    def load_starting_capital(self) -> Optional[float]:
        return self._load(StorageKey.STARTING_CAPITAL, _parse_capital)

    def load_selected_asset(self) -> Optional[Asset]:
        return self._load(StorageKey.SELECTED_ASSET, Asset.parse)

    def load_speed_mode(self) -> Optional[SpeedMode]:
        return self._load(StorageKey.SPEED_MODE, SpeedMode.parse)

    def is_initialized(self) -> bool:
        return bool(self._load(StorageKey.IS_INITIALIZED, _parse_bool))

    def load_fake_market(self) -> Optional[SyntheticMarketState]:
        return self._load(StorageKey.FAKE_MARKET, SyntheticMarketState.from_dict)

    def load_state(self) -> SavedState:
        """저장된 전체 상태 로드. 없거나 손상된 항목은 기본값."""
        starting_capital = self.load_starting_capital()
        return SavedState(
            portfolio=self.load_portfolio(),
            journal=self.load_trades(),
            starting_capital=starting_capital if starting_capital is not None else DEFAULT_CAPITAL,
            has_starting_capital=starting_capital is not None,
            selected_asset=self.load_selected_asset() or Asset.BTC,
            speed_mode=self.load_speed_mode() or SpeedMode.MEDIUM,
            is_initialized=self.is_initialized(),
            fake_market=self.load_fake_market(),
        )

    # ─── 내부 ──────────────────────────────────────────────────────────────

    def _save(self, key: StorageKey, value: Any) -> bool:
        try:
            blob = json.dumps(value, ensure_ascii=False, allow_nan=False)
            self.store.save(key.value, blob)
        except (StoreError, TypeError, ValueError) as e:
            logger.error(f"저장 실패 ({key.value}): {e}")
            return False
        return True

    def _load(self, key: StorageKey, parse: Callable[[Any], T]) -> Optional[T]:
        try:
            blob = self.store.load(key.value)
        except StoreError as e:
            logger.error(f"읽기 실패 ({key.value}): {e}")
            return None

        if blob is None:
            return None

        try:
            return parse(json.loads(blob))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"손상된 값 무시 ({key.value}): {e}")
            return None
