"""
auto-trade 사이클 모듈.

[ 역할 ]
    저장된 포트폴리오를 로드하고, 현재 시세로 시그널을 계산해 가상 매매를 실행한 뒤
    다시 저장한다. 외부 스케줄러(cron, heartbeat)가 주기적으로 호출하는 것을 가정.
    가상 자금만 사용하며 실제 주문은 없다.

[ 사이클 흐름 ]
    run_cycle() 호출 시:
        1. 전략 이름 확인 (알 수 없으면 상태 변경 전에 실패)
        2. PortfolioStore.load() (파일 없으면 initial_capital로 새로 생성)
        3. 보유 포지션 현재가 갱신 (실패 시 "Price update failed: ..." 기록)
        4. 손절/익절 체크 (신규 시그널보다 먼저)
        5. 코인별: lookback_days 시계열 → score_coin() → 매수/매도
           → 코인 하나의 실패는 errors에 기록하고 다음 코인 진행
        6. 총계 재계산 → PortfolioStore.save() → CycleReport 반환

[ 출력 ]
    CycleReport.to_json()이 자동화 스크립트와의 유일한 계약.
    run_simulator.py --auto-trade는 stdout에 이 JSON만 출력한다.

[ 예비금 ]
    AbsoluteReserve(live.reserve_amount, 기본 10 EUR)
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from crypto_sim.core.trading_strategy import SignalType
from crypto_sim.data.ledger import Ledger
from crypto_sim.data.market_data import MarketDataManager
from crypto_sim.data.portfolio import Trade
from crypto_sim.data.portfolio_store import PortfolioStore
from crypto_sim.strategies import get_strategy
from crypto_sim.strategies.scorer import RELIABLE_CANDLES, score_coin
from crypto_sim.utils.clock import Clock, SystemClock
from crypto_sim.utils.config import Config

logger = logging.getLogger("crypto_sim.live")


@dataclass(frozen=True)
class CycleTrade:
    """이번 사이클에 체결된 거래 요약."""
    action: SignalType
    coin: str
    amount: float           # 수량
    price: float
    signal: str             # 근거 (지표 reason 또는 손절/익절 사유)
    pnl: float | None = None

    @classmethod
    def from_trade(cls, trade: Trade, rationale: str | None = None) -> "CycleTrade":
        return cls(
            action=trade.side,
            coin=trade.coin,
            amount=trade.quantity,
            price=trade.price,
            signal=trade.reason if rationale is None else rationale,
            pnl=trade.pnl,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {
            "action": self.action.value,
            "coin": self.coin,
            "amount": self.amount,
            "price": self.price,
            "signal": self.signal,
        }
        if self.pnl is not None:
            data["pnl"] = self.pnl
        return data


@dataclass
class CycleReport:
    """auto-trade 사이클 결과."""
    new_trades: list[CycleTrade] = field(default_factory=list)
    portfolio: dict[str, Any] = field(default_factory=dict)   # Portfolio.get_summary()
    errors: list[str] = field(default_factory=list)
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_trades": [t.to_dict() for t in self.new_trades],
            "portfolio": dict(self.portfolio),
            "errors": list(self.errors),
            "timestamp": self.timestamp,
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)


class AutoTrader:
    """auto-trade 드라이버. run_cycle() 한 번이 한 사이클."""

    def __init__(
        self,
        market_data: MarketDataManager,
        store: PortfolioStore,
        settings: Config | None = None,
        clock: Clock | None = None,
    ):
        self.market_data = market_data
        self.store = store
        self.settings = settings or Config()
        self.clock = clock or SystemClock()

    def run_cycle(
        self,
        coins: list[str],
        strategy_name: str,
        initial_capital: float,
    ) -> CycleReport:
        """auto-trade 한 사이클 실행.

        Args:
            coins: 분석할 코인 심볼 목록
            strategy_name: 전략 이름
            initial_capital: 저장된 포트폴리오가 없을 때의 초기 자본

        Raises:
            UnknownStrategyError: 알 수 없는 전략 (포트폴리오 로드 전)
        """
        strategy = get_strategy(strategy_name)
        live = self.settings.live
        coins = [c.upper() for c in coins]
        logger.info(f"=== AUTO-TRADE START === strategy={strategy.name}, coins={','.join(coins)}")

        ledger = Ledger(
            self.store.load(initial_capital),
            reserve=live.reserve(),
            min_trade_amount=self.settings.ledger.min_trade_amount,
            clock=self.clock,
        )
        new_trades: list[CycleTrade] = []
        errors: list[str] = []

        # ─── 보유 포지션 현재가 갱신 ─────────────────────────────────────
        if ledger.positions:
            held = list(ledger.positions)
            try:
                prices = self.market_data.get_latest_prices(held)
                for coin in held:
                    ledger.update_price(coin, prices.get(coin) or ledger.positions[coin].entry_price)
            except Exception as e:
                logger.warning(f"포지션 현재가 갱신 실패: {e}")
                errors.append(f"Price update failed: {e}")

        # ─── 손절/익절 먼저 ──────────────────────────────────────────────
        new_trades.extend(CycleTrade.from_trade(t) for t in ledger.check_stop_targets(strategy))

        # ─── 코인별 시그널 ───────────────────────────────────────────────
        for coin in coins:
            try:
                candles = self.market_data.get_historical_series(coin, live.lookback_days)
                if len(candles) < RELIABLE_CANDLES:
                    logger.warning(f"{coin} 데이터 부족 ({len(candles)}개 캔들)")
                    errors.append(f"{coin}: insufficient data")
                    continue

                signal = score_coin(coin, candles, strategy, window=self.settings.simulation.signal_window)
                signal = replace(signal, timestamp=self.clock.now_ms())
                ledger.update_price(coin, signal.price)
                logger.info(f"{coin}: {signal.signal.value} (score={signal.score}) @ {signal.price:.2f}")

                new_trades.extend(CycleTrade.from_trade(t) for t in ledger.check_stop_targets(strategy))

                trade = None
                if signal.signal is SignalType.BUY:
                    trade = ledger.apply_buy(signal, strategy)
                elif signal.signal is SignalType.SELL:
                    trade = ledger.apply_sell(signal)
                if trade is not None:
                    new_trades.append(CycleTrade.from_trade(trade, rationale=" + ".join(signal.reasons)))
            except Exception as e:
                logger.error(f"{coin} 분석 오류: {e}")
                errors.append(f"{coin}: {e}")

        # ─── 저장 ────────────────────────────────────────────────────────
        ledger.recompute_totals()
        portfolio = ledger.portfolio
        self.store.save(portfolio)

        logger.info(
            f"=== AUTO-TRADE END === trades={len(new_trades)}, "
            f"capital={portfolio.capital:.2f}, pnl={portfolio.total_pnl:.2f}",
            extra={"data": {"errors": errors}},
        )
        return CycleReport(
            new_trades=new_trades,
            portfolio=portfolio.get_summary(),
            errors=errors,
            timestamp=self.clock.isoformat(),
        )
