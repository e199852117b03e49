"""
거래 가능 자산 / 속도 모드 정의.

[ 역할 ]
    시스템이 다루는 자산 목록(실제 암호화폐 3종 + 가상 FAKE 자산)과
    가상 시장의 틱 속도 모드를 열거형으로 정의.

[ 호출하는 곳 ]
    - data/portfolio.py, data/journal.py에서 포지션/거래의 자산 식별자로 사용
    - simulation/fake_market.py에서 SpeedMode별 파라미터 조회
    - feeds/*.py에서 자산 → 외부 심볼 매핑
"""

from dataclasses import dataclass
from enum import Enum


class Asset(Enum):
    """자산 식별자. 값은 저장/직렬화 시 사용하는 심볼 문자열."""
    BTC = "BTC"
    ETH = "ETH"
    SOL = "SOL"
    FAKE = "FAKE"

    @property
    def info(self) -> "AssetInfo":
        return ASSETS[self]

    @property
    def is_fake(self) -> bool:
        return ASSETS[self].is_fake

    @classmethod
    def parse(cls, value: "str | Asset") -> "Asset":
        """'btc', 'BTC', Asset.BTC 모두 허용."""
        if isinstance(value, Asset):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            available = ", ".join(a.value for a in cls)
            raise ValueError(f"알 수 없는 자산: '{value}'. 사용 가능: {available}") from None


class SpeedMode(Enum):
    """가상 시장 속도 모드. fast일수록 변동성/추세 비중이 크다."""
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"

    @classmethod
    def parse(cls, value: "str | SpeedMode") -> "SpeedMode":
        if isinstance(value, SpeedMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            available = ", ".join(m.value for m in cls)
            raise ValueError(f"알 수 없는 속도 모드: '{value}'. 사용 가능: {available}") from None


@dataclass(frozen=True)
class AssetInfo:
    """자산 참조 데이터 (불변)."""
    name: str
    symbol: str
    is_fake: bool = False


ASSETS: dict[Asset, AssetInfo] = {
    Asset.BTC: AssetInfo(name="Bitcoin", symbol="BTC"),
    Asset.ETH: AssetInfo(name="Ethereum", symbol="ETH"),
    Asset.SOL: AssetInfo(name="Solana", symbol="SOL"),
    Asset.FAKE: AssetInfo(name="Fake Market", symbol="FAKE", is_fake=True),
}

# 외부 시세 피드로 조회 가능한 자산
REAL_ASSETS: tuple[Asset, ...] = tuple(a for a in Asset if not ASSETS[a].is_fake)
