"""
포트폴리오 원장(Ledger) 모듈.

[ 역할 ]
    Portfolio 상태를 바꾸는 유일한 경로. 시그널(TradeSignal) 또는 손절/익절 조건을
    받아 매수/매도를 반영하고, 전이 직후 항상 총계(total_pnl 등)를 다시 계산한다.

[ 상태 전이 ]
    apply_buy()          - 포지션 없음 + 예비금 제외 가용 자금 충분 → 신규 포지션
    apply_sell()         - 포지션 있음 → 전량 청산, 실현 손익 기록
    check_stop_targets() - 현재가 기준 수익률이 손절/익절 조건 충족 → 강제 청산
    apply_signal()       - 손절/익절 체크 먼저, 그 다음 시그널 반영
    update_price()       - 보유 포지션의 현재가 갱신

[ 조건 미충족 처리 ]
    중복 매수, 포지션 없는 매도, 예비금 부족은 예외가 아니다.
    로그만 남기고 None(또는 빈 목록)을 반환한다.

[ 예비금 정책 ]
    FractionalReserve(0.05) - 백테스트: 현금의 5%는 항상 남김
    AbsoluteReserve(10.0)   - auto-trade: 최소 10(EUR) 남김

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine (FractionalReserve)
    - live/auto_trader.py::AutoTrader (AbsoluteReserve)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from crypto_sim.core.trading_strategy import SignalType, StrategyConfig, TradeSignal
from crypto_sim.data.portfolio import Portfolio, Position, Trade
from crypto_sim.utils.clock import Clock, SystemClock

logger = logging.getLogger("crypto_sim.trade")


# ─── 예비금 정책 ─────────────────────────────────────────────────────────────

class CapitalReserve(ABC):
    """매수 시 남겨둘 최소 현금 계산."""

    @abstractmethod
    def reserve_for(self, capital: float) -> float:
        ...


@dataclass(frozen=True)
class FractionalReserve(CapitalReserve):
    """현금의 일정 비율을 예비금으로 유지."""
    fraction: float = 0.05

    def __post_init__(self):
        if not 0 <= self.fraction < 1:
            raise ValueError(f"fraction은 [0, 1) 범위 ({self.fraction})")

    def reserve_for(self, capital: float) -> float:
        return capital * self.fraction


@dataclass(frozen=True)
class AbsoluteReserve(CapitalReserve):
    """고정 금액을 예비금으로 유지."""
    amount: float = 10.0

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError(f"amount는 0 이상 ({self.amount})")

    def reserve_for(self, capital: float) -> float:
        return self.amount


BACKTEST_RESERVE = FractionalReserve(0.05)


# ─── 원장 ────────────────────────────────────────────────────────────────────

class Ledger:
    """Portfolio 상태 머신.

    포지션/거래 목록은 읽기 전용 뷰로만 노출한다.
    """

    def __init__(
        self,
        portfolio: Portfolio,
        reserve: CapitalReserve = BACKTEST_RESERVE,
        min_trade_amount: float = 1.0,
        clock: Clock | None = None,
    ):
        self._portfolio = portfolio
        self.reserve = reserve
        self.min_trade_amount = min_trade_amount
        self.clock = clock or SystemClock()
        self._sequence = len(portfolio.trades)

    @property
    def portfolio(self) -> Portfolio:
        return self._portfolio

    @property
    def positions(self) -> Mapping[str, Position]:
        return MappingProxyType(self._portfolio.positions)

    @property
    def trades(self) -> tuple[Trade, ...]:
        return tuple(self._portfolio.trades)

    @property
    def capital(self) -> float:
        return self._portfolio.capital

    @property
    def total_value(self) -> float:
        return self._portfolio.total_value

    def has_position(self, coin: str) -> bool:
        return coin in self._portfolio.positions

    # ─── 전이 ────────────────────────────────────────────────────────────

    def update_price(self, coin: str, price: float) -> None:
        """보유 중인 코인의 현재가 갱신. 미보유 코인은 무시."""
        position = self._portfolio.positions.get(coin)
        if position is None:
            return
        position.mark(price)
        self.recompute_totals()

    def apply_signal(self, signal: TradeSignal, strategy: StrategyConfig) -> list[Trade]:
        """손절/익절 체크 후 시그널 반영. 이번 호출에서 체결된 거래 목록 반환."""
        executed = self.check_stop_targets(strategy)

        trade = None
        if signal.signal is SignalType.BUY:
            trade = self.apply_buy(signal, strategy)
        elif signal.signal is SignalType.SELL:
            trade = self.apply_sell(signal)

        if trade is not None:
            executed.append(trade)
        return executed

    def apply_buy(self, signal: TradeSignal, strategy: StrategyConfig) -> Trade | None:
        """매수. 사용 금액 = (현금 - 예비금) × max_position_pct%."""
        coin = signal.coin
        if coin in self._portfolio.positions:
            logger.info(f"이미 {coin} 보유 중, BUY 건너뜀")
            return None

        capital = self._portfolio.capital
        reserve = self.reserve.reserve_for(capital)
        available = capital - reserve
        if available < self.min_trade_amount:
            logger.info(
                f"가용 자금 부족 (현금: {capital:.2f}, 예비금: {reserve:.2f}), {coin} BUY 건너뜀",
                extra={"data": {"coin": coin, "capital": capital, "reserve": reserve}},
            )
            return None

        amount = min(available * strategy.max_position_pct / 100, available)
        if amount < self.min_trade_amount:
            logger.info(f"매수 금액 {amount:.2f} < 최소 {self.min_trade_amount:.2f}, {coin} BUY 건너뜀")
            return None
        if signal.price <= 0:
            logger.warning(f"{coin} 가격 오류 ({signal.price}), BUY 건너뜀")
            return None

        quantity = amount / signal.price
        self._portfolio.capital -= amount
        position = Position(
            coin=coin,
            entry_price=signal.price,
            quantity=quantity,
            entry_time=signal.timestamp,
        )
        position.mark(signal.price)
        self._portfolio.positions[coin] = position

        trade = self._record(
            coin=coin,
            side=SignalType.BUY,
            price=signal.price,
            quantity=quantity,
            total=amount,
            timestamp=signal.timestamp,
            reason="; ".join(signal.reasons),
            indicators=tuple(signal.indicator_names),
        )
        logger.info(
            f"BUY {quantity:.6f} {coin} @ {signal.price:.2f} = {amount:.2f}",
            extra={"data": {"trade_id": trade.id, "score": signal.score}},
        )
        self.recompute_totals()
        return trade

    def apply_sell(self, signal: TradeSignal) -> Trade | None:
        """전량 매도. 포지션이 없으면 건너뜀."""
        position = self._portfolio.positions.get(signal.coin)
        if position is None:
            logger.info(f"{signal.coin} 포지션 없음, SELL 건너뜀")
            return None
        return self._close(
            position,
            price=signal.price,
            timestamp=signal.timestamp,
            reason="; ".join(signal.reasons),
            indicators=tuple(signal.indicator_names),
        )

    def check_stop_targets(self, strategy: StrategyConfig) -> list[Trade]:
        """현재가를 아는 모든 포지션에 대해 손절/익절 조건 확인 후 강제 청산."""
        executed: list[Trade] = []
        for position in list(self._portfolio.positions.values()):
            if not position.current_price:
                continue
            pnl_pct = (position.current_price - position.entry_price) / position.entry_price * 100

            if pnl_pct <= -strategy.stop_loss_pct:
                reason = f"Stop-loss triggered at {pnl_pct:.1f}%"
            elif pnl_pct >= strategy.take_profit_pct:
                reason = f"Take-profit triggered at {pnl_pct:.1f}%"
            else:
                continue

            logger.info(f"{position.coin}: {reason}")
            executed.append(self._close(
                position,
                price=position.current_price,
                timestamp=self.clock.now_ms(),
                reason=reason,
                indicators=(),
            ))
        return executed

    def recompute_totals(self) -> None:
        """총 자산 기준 누적 손익 재계산. 모든 전이 직후 호출된다."""
        p = self._portfolio
        p.total_pnl = p.total_value - p.initial_capital
        p.total_pnl_percent = p.total_pnl / p.initial_capital * 100 if p.initial_capital else 0.0
        p.last_updated = self.clock.now_ms()

    # ─── 내부 ────────────────────────────────────────────────────────────

    def _close(
        self,
        position: Position,
        price: float,
        timestamp: int,
        reason: str,
        indicators: tuple[str, ...],
    ) -> Trade:
        proceeds = position.quantity * price
        pnl = proceeds - position.quantity * position.entry_price
        self._portfolio.capital += proceeds
        del self._portfolio.positions[position.coin]

        trade = self._record(
            coin=position.coin,
            side=SignalType.SELL,
            price=price,
            quantity=position.quantity,
            total=proceeds,
            timestamp=timestamp,
            reason=reason,
            indicators=indicators,
            pnl=pnl,
        )
        logger.info(
            f"SELL {position.quantity:.6f} {position.coin} @ {price:.2f} = {proceeds:.2f} (PnL: {pnl:.2f})",
            extra={"data": {"trade_id": trade.id, "pnl": pnl}},
        )
        self.recompute_totals()
        return trade

    def _record(self, **fields) -> Trade:
        self._sequence += 1
        trade = Trade(id=f"T{fields['timestamp']}-{self._sequence:04d}", **fields)
        self._portfolio.trades.append(trade)
        return trade
