"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    백테스트 결과(거래기록 + 라운드별 자산가치)를 받아 성과 지표를 계산하고
    SimulationReport로 묶는다.

[ 계산하는 지표 ]
    - 총 수익 / 수익률 (Portfolio.total_pnl 기준)
    - MDD (최대 낙폭): DrawdownTracker
    - 승률: calculate_win_rate()

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest()

[ 승률 정의 ]
    매도 거래마다 거래 기록을 거꾸로 훑어 같은 코인의 가장 최근 매수 가격과 비교.
    매도가 > 매수가 이면 수익, 같거나 낮으면 손실. 매도 거래가 없으면 0.
"""

from dataclasses import dataclass, field
from typing import Any, Sequence

from crypto_sim.core.trading_strategy import SignalType, TradeSignal
from crypto_sim.data.portfolio import Portfolio, Trade


class DrawdownTracker:
    """라운드별 총 자산으로 고점 대비 최대 낙폭(%)을 추적.

    고점은 초기 자본에서 시작한다.
    """

    def __init__(self, initial_value: float):
        self.max_value = initial_value
        self.max_drawdown = 0.0

    def update(self, value: float) -> float:
        """자산 가치 반영 후 현재 낙폭(%) 반환."""
        self.max_value = max(self.max_value, value)
        drawdown = (self.max_value - value) / self.max_value * 100 if self.max_value > 0 else 0.0
        self.max_drawdown = max(self.max_drawdown, drawdown)
        return drawdown


def calculate_win_rate(trades: Sequence[Trade]) -> float:
    """매도 거래 기준 승률 (%)."""
    sells = 0
    wins = 0
    for i, trade in enumerate(trades):
        if trade.side is not SignalType.SELL:
            continue
        sells += 1
        buy = next(
            (t for t in reversed(trades[:i]) if t.coin == trade.coin and t.side is SignalType.BUY),
            None,
        )
        if buy is not None and trade.price > buy.price:
            wins += 1
    return wins / sells * 100 if sells else 0.0


@dataclass
class SimulationReport:
    """백테스트 결과. summary()로 포맷된 리포트 출력 가능."""
    strategy: str
    initial_capital: float
    coins: list[str]
    duration_days: int
    portfolio: Portfolio
    signals: list[TradeSignal] = field(default_factory=list)   # 최근 시그널
    start_date: str = ""              # 시뮬레이션 구간 시작일 (YYYY-MM-DD)
    end_date: str = ""
    total_return: float = 0.0         # 총 수익 (통화 단위)
    total_return_pct: float = 0.0     # 총 수익률 (%)
    max_drawdown: float = 0.0         # 최대 낙폭 MDD (%)
    win_rate: float = 0.0             # 승률 (%)
    total_trades: int = 0             # 매수 + 매도 거래 수
    errors: list[str] = field(default_factory=list)            # 코인별 데이터 조회 실패

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환."""
        return {
            "strategy": self.strategy,
            "initial_capital": self.initial_capital,
            "coins": list(self.coins),
            "duration_days": self.duration_days,
            "portfolio": self.portfolio.to_dict(),
            "signals": [s.to_dict() for s in self.signals],
            "start_date": self.start_date,
            "end_date": self.end_date,
            "total_return": self.total_return,
            "total_return_pct": self.total_return_pct,
            "max_drawdown": self.max_drawdown,
            "win_rate": self.win_rate,
            "total_trades": self.total_trades,
            "errors": list(self.errors),
        }

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "시뮬레이션 성과 리포트 (가상 자금, 투자 조언 아님)",
            "=" * 50,
            f"전략:            {self.strategy:>10}",
            f"초기 자본:       {self.initial_capital:>10,.2f}",
            f"코인:            {', '.join(self.coins):>10}",
            f"기간:            {self.start_date} ~ {self.end_date} ({self.duration_days}일)",
            "-" * 50,
            f"총 수익:         {self.total_return:>10,.2f}",
            f"총 수익률:       {self.total_return_pct:>10.2f}%",
            f"최대 낙폭(MDD):  {self.max_drawdown:>10.2f}%",
            f"승률:            {self.win_rate:>10.2f}%",
            f"총 거래 횟수:    {self.total_trades:>10d}",
        ]
        if self.signals:
            lines.append("-" * 50)
            lines.append("최근 시그널:")
            for s in self.signals[-5:]:
                lines.append(f"  {s.coin:<6} {s.signal.value:<4} (score: {s.score:>4}) @ {s.price:,.2f}")
        if self.errors:
            lines.append("-" * 50)
            lines.append("데이터 오류:")
            lines.extend(f"  {e}" for e in self.errors)
        lines.append("=" * 50)
        return "\n".join(lines)
