"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    세션(시작 자금), 시장(틱 간격/시드), 시세 피드, 저장소, 로깅 설정을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    session:          → SessionConfig (시작 자금 범위, 기본 자산/속도)
    market:           → MarketConfig (속도별 틱 간격, 가상 시장 시드)
    feed:             → FeedConfig (coingecko / yahoo)
    storage:          → StorageConfig (json / memory / clickhouse)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_paper_trading.py에서 Config.from_yaml()로 로드
    - engine/session.py::TradingSession이 SessionConfig로 시작 자금 검증
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from paper_trading.core.assets import Asset, SpeedMode


@dataclass
class SessionConfig:
    """세션 설정. config.yaml의 session 섹션에 대응."""
    default_capital: float = 10_000
    min_capital: float = 100
    max_capital: float = 10_000_000
    capital_presets: list[float] = field(default_factory=lambda: [10_000, 50_000, 100_000, 500_000])
    default_asset: str = "BTC"
    default_speed: str = "medium"


@dataclass
class MarketConfig:
    """시장 설정. config.yaml의 market 섹션에 대응."""
    speed_intervals_ms: dict[str, int] = field(
        default_factory=lambda: {"fast": 1000, "medium": 3000, "slow": 6000}
    )
    crypto_poll_interval_ms: int = 30_000  # 실제 자산은 API 제한 때문에 30초
    ohlc_days: int = 1
    seed: Optional[int] = None             # 가상 시장 난수 시드 (None이면 매번 다름)

    def interval_seconds(self, asset: Asset, mode: SpeedMode) -> float:
        """틱 간격 (초). FAKE는 속도 모드, 실제 자산은 폴링 주기."""
        if asset.is_fake:
            return self.speed_intervals_ms.get(mode.value, 3000) / 1000
        return self.crypto_poll_interval_ms / 1000


@dataclass
class FeedConfig:
    """시세 피드 설정. config.yaml의 feed 섹션에 대응."""
    source: str = "coingecko"   # "coingecko" or "yahoo"
    base_url: str = "https://api.coingecko.com/api/v3"
    timeout: float = 10
    max_retries: int = 3
    retry_delay: float = 5
    yahoo_interval: str = "30m"


@dataclass
class StorageConfig:
    """저장소 설정. config.yaml의 storage 섹션에 대응."""
    backend: str = "json"       # "json", "memory", "clickhouse"
    path: str = "data/session"
    host: str = "localhost"
    port: int = 8123
    database: str = "default"
    user: str = "default"
    password: str = "password"
    table: str = "paper_trading_snapshots"


def _section(cls, data: dict[str, Any]):
    """알 수 없는 키는 무시하고 dataclass 생성."""
    return cls(**{k: v for k, v in (data or {}).items() if k in cls.__dataclass_fields__})


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    session: SessionConfig = field(default_factory=SessionConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        market_data = dict(data.get("market") or {})
        # speed_intervals_ms는 일부 모드만 지정해도 나머지는 기본값 유지
        if "speed_intervals_ms" in market_data:
            intervals = MarketConfig().speed_intervals_ms
            intervals.update(market_data["speed_intervals_ms"] or {})
            market_data["speed_intervals_ms"] = intervals

        return cls(
            session=_section(SessionConfig, data.get("session")),
            market=_section(MarketConfig, market_data),
            feed=_section(FeedConfig, data.get("feed")),
            storage=_section(StorageConfig, data.get("storage")),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
