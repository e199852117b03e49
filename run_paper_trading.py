"""
모의 투자 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 세션 시작 (시작 자금)
    python run_paper_trading.py start --capital 10000

    # 매수 / 매도 (가격 생략 시 현재 시세 사용)
    python run_paper_trading.py buy BTC 0.05
    python run_paper_trading.py buy FAKE --fraction 0.5
    python run_paper_trading.py sell BTC 0.02 --price 65000

    # 상태 / 거래 기록 / 성과
    python run_paper_trading.py status
    python run_paper_trading.py history --limit 20
    python run_paper_trading.py metrics

    # 시장 데이터 / 실시간 갱신
    python run_paper_trading.py market FAKE
    python run_paper_trading.py watch --ticks 20

    # 자산 / 속도 선택, 초기화
    python run_paper_trading.py select FAKE
    python run_paper_trading.py speed fast
    python run_paper_trading.py reset
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

from paper_trading.core.assets import ASSETS, Asset, SpeedMode
from paper_trading.core.errors import LedgerError
from paper_trading.core.price_feed import PriceFeed
from paper_trading.core.snapshot_store import SnapshotStore
from paper_trading.data.journal import BUY, SELL
from paper_trading.data.market_data import MarketDataManager, MarketState, MarketWatch, candles_to_frame
from paper_trading.engine.metrics import calculate_metrics
from paper_trading.engine.session import TradingSession
from paper_trading.feeds.coingecko import CoinGeckoPriceFeed
from paper_trading.feeds.yahoo_finance import YahooFinancePriceFeed
from paper_trading.simulation.fake_market import SyntheticMarket
from paper_trading.storage.clickhouse_store import ClickHouseStore, get_client
from paper_trading.storage.repository import SessionRepository
from paper_trading.storage.stores import JsonFileStore, MemoryStore
from paper_trading.utils.config import Config, FeedConfig, StorageConfig
from paper_trading.utils.formatting import format_percent, format_price
from paper_trading.utils.logger import setup_logger


def build_store(config: StorageConfig) -> SnapshotStore:
    """config.storage.backend에 맞는 저장소 생성."""
    if config.backend == "memory":
        return MemoryStore()
    if config.backend == "json":
        return JsonFileStore(config.path)
    if config.backend == "clickhouse":
        store = ClickHouseStore(
            get_client(config.host, config.port, config.database, config.user, config.password),
            table=config.table,
        )
        store.initialize_schema()
        return store
    raise ValueError(f"알 수 없는 저장소: '{config.backend}'. 사용 가능: json, memory, clickhouse")


def build_feed(config: FeedConfig) -> PriceFeed:
    """config.feed.source에 맞는 시세 피드 생성."""
    if config.source == "coingecko":
        return CoinGeckoPriceFeed(base_url=config.base_url, timeout=config.timeout)
    if config.source == "yahoo":
        return YahooFinancePriceFeed(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            interval=config.yahoo_interval,
        )
    raise ValueError(f"알 수 없는 시세 피드: '{config.source}'. 사용 가능: coingecko, yahoo")


def build_session(config: Config) -> TradingSession:
    """설정으로 세션 구성 후 저장된 상태 복원."""
    market_watch = MarketWatch(
        fake_market=SyntheticMarket(seed=config.market.seed),
        data_manager=MarketDataManager(build_feed(config.feed)),
        ohlc_days=config.market.ohlc_days,
    )
    repository = SessionRepository(build_store(config.storage))
    return TradingSession.restore(repository, market_watch, config=config.session)


def resolve_price(session: TradingSession, asset: Asset, price: Optional[float]) -> Optional[float]:
    """가격 인자가 없으면 현재 시세 조회."""
    if price is not None:
        return price
    result = session.load_market(asset)
    if not result.has_value:
        print(f"오류: {asset.value} 시세를 가져올 수 없습니다 ({result.error})")
        return None
    if not result.is_ok:
        print(f"주의: {asset.value} 시세가 최신이 아닙니다 ({result.error})")
    return result.value.current_price


# ─── 출력 ────────────────────────────────────────────────────────────────────

def print_portfolio(session: TradingSession) -> None:
    p = session.portfolio
    print("=" * 60)
    print(f"시작 자금:   {format_price(session.starting_capital):>16}")
    print(f"현금:        {format_price(p.cash):>16}")
    print(f"총 평가:     {format_price(p.total_value):>16}")
    print(f"총 손익:     {format_price(p.total_pnl):>16}  ({format_percent(p.total_pnl_percent)})")
    print("-" * 60)
    if not p.positions:
        print("보유 자산 없음")
    for pos in p.positions:
        print(
            f"  {pos.asset.value:<5} {pos.quantity:>14.6f}  평균 {format_price(pos.avg_buy_price):>12}"
            f"  현재 {format_price(pos.current_price):>12}"
            f"  {format_price(pos.unrealized_pnl):>12} ({format_percent(pos.unrealized_pnl_percent)})"
        )
    print("=" * 60)


def print_history(session: TradingSession, limit: int) -> None:
    trades = session.journal.latest(limit)
    if not trades:
        print("거래 기록 없음")
        return
    print(f"거래 기록 ({len(session.journal)}건 중 최근 {len(trades)}건)")
    for t in trades:
        when = time.strftime("%m-%d %H:%M", time.localtime(t.timestamp / 1000))
        side = "매수" if t.is_buy else "매도"
        line = f"  [{when}] {side} {t.asset.value:<5} {t.quantity:.6f} @ {format_price(t.price)} = {format_price(t.total)}"
        if t.realized_pnl is not None:
            line += f"  손익 {'+' if t.realized_pnl >= 0 else ''}{format_price(t.realized_pnl)}"
        print(line)


def print_market(state: MarketState, candles: int = 10) -> None:
    info = ASSETS[state.asset]
    stale = "  [STALE]" if state.is_stale else ""
    print(f"\n{info.name} ({info.symbol}){stale}")
    print(f"  현재가: {format_price(state.current_price)}  "
          f"변동: {format_price(state.change_24h)} ({format_percent(state.change_percent_24h)})")
    print(f"  고가: {format_price(state.high_24h)}  저가: {format_price(state.low_24h)}")
    if state.candles and candles > 0:
        print(candles_to_frame(state.candles).tail(candles).to_string(index=False))


# ─── 명령 ────────────────────────────────────────────────────────────────────

def cmd_start(session: TradingSession, args: argparse.Namespace) -> int:
    capital = args.capital if args.capital is not None else session.config.default_capital
    session.start(capital)
    print(f"세션 시작: {format_price(capital)}")
    print_portfolio(session)
    return 0


def _order(session: TradingSession, args: argparse.Namespace, side: str) -> int:
    asset = Asset.parse(args.asset)
    price = resolve_price(session, asset, args.price)
    if price is None:
        return 1

    if args.fraction is not None:
        quantity = session.ledger.quick_amount(args.fraction, side, asset, price)
    elif args.quantity is not None:
        quantity = args.quantity
    else:
        print("오류: 수량 또는 --fraction을 지정하세요.")
        return 1

    order = session.buy if side == BUY else session.sell
    trade = order(asset, quantity, price)
    action = "매수" if side == BUY else "매도"
    print(f"{action} 완료: {trade.quantity:.6f} {asset.value} @ {format_price(trade.price)} = {format_price(trade.total)}")
    if trade.realized_pnl is not None:
        print(f"실현 손익: {format_price(trade.realized_pnl)}")
    session.mark_to_market()
    print_portfolio(session)
    return 0


def cmd_buy(session: TradingSession, args: argparse.Namespace) -> int:
    return _order(session, args, BUY)


def cmd_sell(session: TradingSession, args: argparse.Namespace) -> int:
    return _order(session, args, SELL)


def cmd_status(session: TradingSession, args: argparse.Namespace) -> int:
    if not session.is_initialized:
        print("세션이 시작되지 않았습니다. 'start --capital N'으로 시작하세요.")
        return 0
    if args.refresh:
        held = session.ledger.get_holding_assets()
        session.mark_to_market(session.market_watch.prices(held))
    print(f"선택 자산: {session.selected_asset.value}  속도: {session.speed_mode.value}")
    print_portfolio(session)
    return 0


def cmd_history(session: TradingSession, args: argparse.Namespace) -> int:
    print_history(session, args.limit)
    return 0


def cmd_metrics(session: TradingSession, args: argparse.Namespace) -> int:
    metrics = calculate_metrics(session.journal)
    print(metrics.summary())
    for asset, count in sorted(metrics.trades_by_asset.items()):
        print(f"  {asset}: {count}건")
    return 0


def cmd_market(session: TradingSession, args: argparse.Namespace) -> int:
    asset = Asset.parse(args.asset) if args.asset else session.selected_asset
    result = session.load_market(asset)
    if not result.has_value:
        print(f"오류: {asset.value} 시장 데이터를 가져올 수 없습니다 ({result.error})")
        return 1
    print_market(result.value, args.candles)
    return 0


def cmd_watch(session: TradingSession, args: argparse.Namespace, config: Config) -> int:
    asset = session.selected_asset
    interval = args.interval or config.market.interval_seconds(asset, session.speed_mode)
    result = session.load_market(asset)
    if not result.has_value:
        print(f"오류: {asset.value} 시장 데이터를 가져올 수 없습니다 ({result.error})")
        return 1
    print_market(result.value, candles=0)
    print(f"\n{interval:.1f}초 간격으로 갱신 (Ctrl+C로 종료)")

    try:
        for _ in range(args.ticks):
            time.sleep(interval)
            result = session.tick()
            if not result.has_value:
                print(f"  시세 없음 ({result.error})")
                continue
            state = result.value
            stale = " [STALE]" if state.is_stale else ""
            p = session.portfolio
            print(
                f"  {asset.value} {format_price(state.current_price):>12} "
                f"({format_percent(state.change_percent_24h)}){stale}  "
                f"총평가 {format_price(p.total_value)} ({format_percent(p.total_pnl_percent)})"
            )
    except KeyboardInterrupt:
        print("\n중단")
    return 0


def cmd_select(session: TradingSession, args: argparse.Namespace) -> int:
    asset = session.select_asset(args.asset)
    print(f"선택 자산: {ASSETS[asset].name} ({asset.value})")
    return 0


def cmd_speed(session: TradingSession, args: argparse.Namespace) -> int:
    mode = session.set_speed_mode(args.mode)
    print(f"속도 모드: {mode.value}")
    return 0


def cmd_reset(session: TradingSession, args: argparse.Namespace) -> int:
    session.reset()
    print("모든 데이터를 초기화했습니다.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="모의 투자 (paper trading)")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("start", help="세션 시작")
    p.add_argument("--capital", type=float, default=None, help="시작 자금")

    for name in ("buy", "sell"):
        p = sub.add_parser(name, help="매수" if name == "buy" else "매도")
        p.add_argument("asset", type=str, help="자산 (BTC, ETH, SOL, FAKE)")
        p.add_argument("quantity", type=float, nargs="?", default=None, help="수량")
        p.add_argument("--price", type=float, default=None, help="체결 가격 (생략 시 현재 시세)")
        p.add_argument("--fraction", type=float, default=None, choices=[0.25, 0.5, 0.75, 1.0],
                       help="최대 수량 대비 비율")

    p = sub.add_parser("status", help="포트폴리오 조회")
    p.add_argument("--refresh", action="store_true", help="보유 자산 시세로 재평가")

    p = sub.add_parser("history", help="거래 기록")
    p.add_argument("--limit", type=int, default=20)

    sub.add_parser("metrics", help="거래 성과 지표")

    p = sub.add_parser("market", help="시장 데이터 조회")
    p.add_argument("asset", type=str, nargs="?", default=None)
    p.add_argument("--candles", type=int, default=10, help="출력할 캔들 수")

    p = sub.add_parser("watch", help="선택 자산 주기적 갱신")
    p.add_argument("--ticks", type=int, default=20)
    p.add_argument("--interval", type=float, default=None, help="갱신 간격 (초). 생략 시 속도 모드 기준")

    p = sub.add_parser("select", help="자산 선택")
    p.add_argument("asset", type=str)

    p = sub.add_parser("speed", help="속도 모드 선택")
    p.add_argument("mode", type=str, choices=[m.value for m in SpeedMode])

    sub.add_parser("reset", help="모든 데이터 초기화")
    return parser


COMMANDS = {
    "start": cmd_start,
    "buy": cmd_buy,
    "sell": cmd_sell,
    "status": cmd_status,
    "history": cmd_history,
    "metrics": cmd_metrics,
    "market": cmd_market,
    "select": cmd_select,
    "speed": cmd_speed,
    "reset": cmd_reset,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    setup_logger(level=config.log_level, log_dir=config.log_dir)
    session = build_session(config)

    try:
        if args.command == "watch":
            return cmd_watch(session, args, config)
        return COMMANDS[args.command](session, args)
    except (LedgerError, ValueError) as e:
        print(f"오류: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
