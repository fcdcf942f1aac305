"""
백테스팅 엔진 모듈.

[ 역할 ]
    과거 시세에 전략을 적용하여 가상 자금으로 매매를 시뮬레이션하고 성과를 측정.
    시스템의 핵심 실행 루프를 담당.

[ 실행 흐름 ]
    run_backtest() 호출 시:
        1. 전략 이름 확인 (알 수 없는 전략이면 데이터 조회 전에 실패)
        2. 코인별로 duration_days + 워밍업(30)일치 시계열 조회
           → 조회 실패 코인은 errors에 기록하고 제외
        3. 최소 캔들 수가 30 미만이면 InsufficientDataError (포트폴리오 생성 전)
        4. [30, 최소 캔들 수) 구간을 step 간격으로 순회 (하루 약 6회 평가)
           → 코인별로 현재 인덱스까지 자른 시계열의 최근 60개로 score_coin()
           → 보유 포지션 현재가 갱신 후 Ledger.apply_signal()
        5. 라운드마다 총 자산 기록 → DrawdownTracker로 MDD 갱신
        6. 승률 계산 후 SimulationReport 반환

[ 미래 데이터 누출 방지 ]
    각 인덱스에서는 그 인덱스까지의 캔들만 사용한다.
    원장 시계도 현재 캔들 시각으로 맞춘다 (손절/익절 거래 시각).

[ 의존성 ]
    - strategies/scorer.py::score_coin() (시그널 계산)
    - data/ledger.py::Ledger (포지션/거래기록 관리, FractionalReserve)
    - backtest/metrics.py (MDD, 승률, SimulationReport)

[ 호출하는 곳 ]
    - run_simulator.py --simulate
"""

import logging
from collections import deque
from datetime import datetime, timezone

import pandas as pd

from crypto_sim.backtest.metrics import DrawdownTracker, SimulationReport, calculate_win_rate
from crypto_sim.core.exceptions import DataUnavailableError, InsufficientDataError
from crypto_sim.data.ledger import Ledger
from crypto_sim.data.market_data import MarketDataManager
from crypto_sim.data.portfolio import Portfolio
from crypto_sim.strategies import get_strategy
from crypto_sim.strategies.scorer import score_coin
from crypto_sim.utils.clock import Clock, FixedClock, SystemClock
from crypto_sim.utils.config import Config

logger = logging.getLogger("crypto_sim.backtest")


def _iso_date(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


class BacktestEngine:
    """백테스팅 엔진. run_backtest()로 시뮬레이션 실행."""

    def __init__(
        self,
        market_data: MarketDataManager,
        settings: Config | None = None,
        clock: Clock | None = None,
    ):
        self.market_data = market_data
        self.settings = settings or Config()
        self.clock = clock or SystemClock()

        # 백테스트 실행 후 채워지는 결과
        self.portfolio: Portfolio | None = None    # 최종 포트폴리오 상태
        self.round_values: list[float] = []        # 라운드별 총 자산 (MDD 계산용)
        self.report: SimulationReport | None = None

    def run_backtest(
        self,
        strategy_name: str,
        initial_capital: float | None = None,
        coins: list[str] | None = None,
        duration_days: int | None = None,
    ) -> SimulationReport:
        """백테스트 실행.

        Args:
            strategy_name: 전략 이름 (conservative / balanced / aggressive)
            initial_capital: 초기 자본 (없으면 설정값)
            coins: 코인 심볼 목록 (없으면 설정값)
            duration_days: 시뮬레이션 기간 (일, 없으면 설정값)

        Returns:
            SimulationReport: 성과 리포트

        Raises:
            UnknownStrategyError: 알 수 없는 전략
            InsufficientDataError: 사용 가능한 코인이 없거나 최소 캔들 수 < 워밍업
        """
        strategy = get_strategy(strategy_name)
        sim = self.settings.simulation
        initial_capital = sim.initial_capital if initial_capital is None else initial_capital
        coins = [c.upper() for c in (coins or sim.coins)]
        duration_days = sim.duration_days if duration_days is None else duration_days
        if initial_capital <= 0:
            raise ValueError(f"initial_capital은 양수여야 함 ({initial_capital})")
        if duration_days <= 0:
            raise ValueError(f"duration_days는 양수여야 함 ({duration_days})")

        warmup = sim.warmup_candles
        logger.info(
            f"시뮬레이션 시작: {strategy.name} 전략, 자본 {initial_capital:.2f}, "
            f"{','.join(coins)}, {duration_days}일",
        )

        # ─── 데이터 조회 ─────────────────────────────────────────────────
        coin_data: dict[str, pd.DataFrame] = {}
        errors: list[str] = []
        for coin in coins:
            try:
                coin_data[coin] = self.market_data.get_historical_series(coin, duration_days + warmup)
                logger.info(f"{coin}: {len(coin_data[coin])}개 캔들 로드")
            except DataUnavailableError as e:
                logger.error(f"{coin} 조회 실패: {e}")
                errors.append(f"{coin}: {e}")

        min_candles = min((len(df) for df in coin_data.values()), default=0)
        if min_candles < warmup:
            logger.error(f"시뮬레이션 데이터 부족 ({min_candles}개 캔들)")
            raise InsufficientDataError(min_candles, warmup)

        # ─── 시뮬레이션 ──────────────────────────────────────────────────
        step = max(1, (min_candles - warmup) // (duration_days * sim.evaluations_per_day))
        logger.info(f"{min_candles - warmup}개 캔들 시뮬레이션, step={step}")

        candle_clock = FixedClock(self._timestamp_at(coin_data, warmup))
        self.portfolio = Portfolio.fresh(initial_capital, now_ms=candle_clock.now_ms())
        ledger = Ledger(
            self.portfolio,
            reserve=sim.reserve(),
            min_trade_amount=self.settings.ledger.min_trade_amount,
            clock=candle_clock,
        )
        drawdown = DrawdownTracker(initial_capital)
        signals = deque(maxlen=sim.signal_history)
        self.round_values = []

        last_index = warmup
        for i in range(warmup, min_candles, step):
            for coin, df in coin_data.items():
                window = df.iloc[: i + 1]
                price = float(window["close"].iloc[-1])
                candle_clock.set(int(window["timestamp"].iloc[-1]))

                ledger.update_price(coin, price)
                signal = score_coin(coin, window, strategy, window=sim.signal_window)
                signals.append(signal)
                ledger.apply_signal(signal, strategy)

            value = ledger.total_value
            self.round_values.append(value)
            drawdown.update(value)
            last_index = i

        ledger.recompute_totals()
        trades = ledger.trades

        self.report = SimulationReport(
            strategy=strategy.name,
            initial_capital=initial_capital,
            coins=list(coin_data),
            duration_days=duration_days,
            portfolio=self.portfolio,
            signals=list(signals),
            start_date=_iso_date(self._timestamp_at(coin_data, warmup)),
            end_date=_iso_date(self._timestamp_at(coin_data, last_index, latest=True)),
            total_return=self.portfolio.total_pnl,
            total_return_pct=self.portfolio.total_pnl_percent,
            max_drawdown=drawdown.max_drawdown,
            win_rate=calculate_win_rate(trades),
            total_trades=len(trades),
            errors=errors,
        )
        logger.info(
            f"시뮬레이션 완료. 수익률: {self.report.total_return_pct:.2f}%, "
            f"MDD: {self.report.max_drawdown:.2f}%, 거래: {self.report.total_trades}",
            extra={"data": {"win_rate": self.report.win_rate, "errors": len(errors)}},
        )
        return self.report

    @staticmethod
    def _timestamp_at(coin_data: dict[str, pd.DataFrame], index: int, latest: bool = False) -> int:
        """모든 코인의 index번째 캔들 시각 중 가장 이른(latest=True면 가장 늦은) 값."""
        stamps = [int(df["timestamp"].iloc[index]) for df in coin_data.values()]
        return max(stamps) if latest else min(stamps)
