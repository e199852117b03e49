"""
거래 성과 지표 계산 모듈.

[ 역할 ]
    TradeJournal의 매도 기록(실현 손익)으로 성과 지표를 계산.
    calculate_metrics() 함수가 핵심.

[ 계산하는 지표 ]
    - 누적 실현 손익, 승률, 평균 수익/손실, 수익 팩터
    - 최대 연속 승/패 (시간순)
    - 자산별 거래 횟수

[ 호출하는 곳 ]
    - run_paper_trading.py의 metrics 명령
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any

import numpy as np

from paper_trading.data.journal import TradeJournal


@dataclass
class JournalMetrics:
    """거래 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    realized_pnl: float = 0.0         # 누적 실현 손익
    total_trades: int = 0             # 전체 체결 수 (매수+매도)
    sell_trades: int = 0              # 매도 체결 수
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0             # 승률 (%)
    avg_profit: float = 0.0           # 수익 거래 평균 이익
    avg_loss: float = 0.0             # 손실 거래 평균 손실 (음수)
    profit_factor: float = 0.0        # 총이익 / 총손실 (1 이상이면 수익)
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    trades_by_asset: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "거래 성과 리포트",
            "=" * 50,
            f"실현 손익:       {self.realized_pnl:>14,.2f}",
            f"총 체결:         {self.total_trades:>14d}",
            f"매도 체결:       {self.sell_trades:>14d}",
            "-" * 50,
            f"승률:            {self.win_rate:>13.2f}%",
            f"수익 거래:       {self.winning_trades:>14d}",
            f"손실 거래:       {self.losing_trades:>14d}",
            f"평균 수익:       {self.avg_profit:>14,.2f}",
            f"평균 손실:       {self.avg_loss:>14,.2f}",
            f"수익 팩터:       {self.profit_factor:>14.2f}",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>14d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>14d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def calculate_metrics(journal: TradeJournal) -> JournalMetrics:
    """거래 기록으로 성과 지표 계산. 매도 거래만 손익 분석 대상."""
    metrics = JournalMetrics()
    metrics.total_trades = len(journal)
    metrics.trades_by_asset = dict(Counter(t.asset.value for t in journal))

    # 저널은 최신순이므로 연속 승패 계산을 위해 시간순으로 뒤집는다
    sells = list(reversed(journal.sells()))
    metrics.sell_trades = len(sells)
    if not sells:
        return metrics

    profits = np.array([t.realized_pnl or 0.0 for t in sells])
    winners = profits[profits > 0]
    losers = profits[profits <= 0]

    metrics.realized_pnl = float(profits.sum())
    metrics.winning_trades = int(winners.size)
    metrics.losing_trades = int(losers.size)
    metrics.win_rate = winners.size / profits.size * 100

    if winners.size:
        metrics.avg_profit = float(winners.mean())
    if losers.size:
        metrics.avg_loss = float(losers.mean())

    total_profit = float(winners.sum())
    total_loss = abs(float(losers.sum()))
    metrics.profit_factor = total_profit / total_loss if total_loss > 0 else float("inf")

    # 연속 승패
    consecutive_wins = 0
    consecutive_losses = 0
    for p in profits:
        if p > 0:
            consecutive_wins += 1
            consecutive_losses = 0
            metrics.max_consecutive_wins = max(metrics.max_consecutive_wins, consecutive_wins)
        else:
            consecutive_losses += 1
            consecutive_wins = 0
            metrics.max_consecutive_losses = max(metrics.max_consecutive_losses, consecutive_losses)

    return metrics
