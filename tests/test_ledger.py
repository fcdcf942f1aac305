import numpy as np
import pytest

from crypto_sim.core.trading_strategy import SignalType, TradeSignal
from crypto_sim.data.ledger import AbsoluteReserve, FractionalReserve, Ledger
from crypto_sim.data.portfolio import Portfolio
from crypto_sim.strategies import get_strategy


def make_signal(coin, side, price, timestamp=1_000, reasons=("RSI=24.3 — Oversold",)):
    return TradeSignal(
        coin=coin,
        signal=side,
        score=50 if side is SignalType.BUY else -50,
        price=price,
        timestamp=timestamp,
        reasons=reasons,
    )


@pytest.fixture
def conservative():
    return get_strategy("conservative")


@pytest.fixture
def ledger(clock):
    return Ledger(Portfolio.fresh(100.0), reserve=FractionalReserve(0.05), clock=clock)


def assert_balanced(ledger):
    p = ledger.portfolio
    held = sum(pos.quantity * (pos.current_price or pos.entry_price) for pos in p.positions.values())
    assert p.capital + held == pytest.approx(p.initial_capital + p.total_pnl)


# ─── 매수 ────────────────────────────────────────────────────────────────

def test_buy_spends_position_pct_of_capital_after_reserve(ledger, conservative):
    trade = ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)

    assert ledger.capital == pytest.approx(81.0)
    position = ledger.positions["BTC"]
    assert position.entry_price == 100.0
    assert position.quantity == pytest.approx(0.19)
    assert trade.side is SignalType.BUY
    assert trade.total == pytest.approx(19.0)
    assert trade.reason == "RSI=24.3 — Oversold"
    assert_balanced(ledger)


def test_second_buy_for_same_coin_is_noop(ledger, conservative):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    capital = ledger.capital

    assert ledger.apply_buy(make_signal("BTC", SignalType.BUY, 50.0), conservative) is None
    assert ledger.capital == capital
    assert len(ledger.positions) == 1
    assert len(ledger.trades) == 1


def test_absolute_reserve_blocks_small_capital(clock):
    strategy = get_strategy("balanced")
    ledger = Ledger(Portfolio(capital=10.5, initial_capital=100.0), reserve=AbsoluteReserve(10.0), clock=clock)
    assert ledger.apply_buy(make_signal("ETH", SignalType.BUY, 10.0), strategy) is None
    assert ledger.trades == ()


def test_absolute_reserve_sizes_from_capital_above_reserve(clock):
    strategy = get_strategy("balanced")
    ledger = Ledger(Portfolio.fresh(100.0), reserve=AbsoluteReserve(10.0), clock=clock)
    trade = ledger.apply_buy(make_signal("ETH", SignalType.BUY, 10.0), strategy)
    # (100 - 10) × 33%
    assert trade.total == pytest.approx(29.7)
    assert ledger.capital == pytest.approx(70.3)


def test_buy_below_min_trade_amount_is_noop(clock, conservative):
    ledger = Ledger(Portfolio.fresh(4.0), reserve=FractionalReserve(0.05), clock=clock)
    # 3.8 × 20% = 0.76 < 1.0
    assert ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative) is None


@pytest.mark.parametrize("reserve", [
    lambda: FractionalReserve(1.0),
    lambda: FractionalReserve(-0.1),
    lambda: AbsoluteReserve(-1.0),
])
def test_reserve_validation(reserve):
    with pytest.raises(ValueError):
        reserve()


# ─── 매도 ────────────────────────────────────────────────────────────────

def test_sell_without_position_is_noop(ledger):
    assert ledger.apply_sell(make_signal("BTC", SignalType.SELL, 100.0)) is None
    assert ledger.trades == ()
    assert ledger.capital == 100.0


def test_sell_realizes_pnl(ledger, conservative):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    trade = ledger.apply_sell(make_signal("BTC", SignalType.SELL, 110.0, timestamp=2_000))

    assert trade.pnl == pytest.approx(0.19 * 10)
    assert trade.total == pytest.approx(0.19 * 110)
    assert not ledger.has_position("BTC")
    assert ledger.capital == pytest.approx(81.0 + 20.9)
    assert ledger.portfolio.total_pnl == pytest.approx(1.9)
    assert_balanced(ledger)


# ─── 손절 / 익절 ─────────────────────────────────────────────────────────

def test_stop_loss_forces_sell(ledger, conservative):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    ledger.update_price("BTC", 90.0)
    trades = ledger.check_stop_targets(conservative)

    assert len(trades) == 1
    trade = trades[0]
    assert trade.side is SignalType.SELL
    assert trade.reason == "Stop-loss triggered at -10.0%"
    assert trade.pnl == pytest.approx(0.19 * (90 - 100))
    assert trade.indicators == ()
    assert ledger.positions == {}
    assert_balanced(ledger)


def test_take_profit_forces_sell(ledger, conservative):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    ledger.update_price("BTC", 111.0)
    trades = ledger.check_stop_targets(conservative)
    assert trades[0].reason == "Take-profit triggered at 11.0%"


def test_within_bounds_keeps_position(ledger, conservative):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    ledger.update_price("BTC", 97.0)
    assert ledger.check_stop_targets(conservative) == []
    assert ledger.has_position("BTC")


def test_stop_check_runs_before_signal_and_allows_reentry(ledger, conservative, clock):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    ledger.update_price("BTC", 90.0)
    clock.advance(60_000)

    executed = ledger.apply_signal(make_signal("BTC", SignalType.BUY, 90.0, timestamp=clock.now_ms()), conservative)

    assert [t.side for t in executed] == [SignalType.SELL, SignalType.BUY]
    assert executed[0].reason.startswith("Stop-loss")
    assert executed[0].timestamp == clock.now_ms()
    assert ledger.positions["BTC"].entry_price == 90.0
    assert_balanced(ledger)


# ─── 원장 공통 ───────────────────────────────────────────────────────────

def test_views_are_read_only(ledger, conservative):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    with pytest.raises(TypeError):
        ledger.positions["ETH"] = ledger.positions["BTC"]
    assert isinstance(ledger.trades, tuple)


def test_update_price_ignores_unknown_coin(ledger):
    ledger.update_price("DOGE", 1.0)
    assert ledger.positions == {}


def test_trade_ids_are_unique_and_sequenced(ledger, conservative):
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0, timestamp=5), conservative)
    ledger.apply_sell(make_signal("BTC", SignalType.SELL, 101.0, timestamp=6))
    ids = [t.id for t in ledger.trades]
    assert ids == ["T5-0001", "T6-0002"]


def test_recompute_stamps_clock_time(ledger, conservative, clock):
    clock.set(123_456)
    ledger.apply_buy(make_signal("BTC", SignalType.BUY, 100.0), conservative)
    assert ledger.portfolio.last_updated == 123_456


def test_invariants_hold_for_random_signal_sequences(clock):
    rng = np.random.default_rng(11)
    coins = ["BTC", "ETH", "SOL"]
    prices = {"BTC": 100.0, "ETH": 50.0, "SOL": 10.0}
    strategy = get_strategy("aggressive")
    ledger = Ledger(Portfolio.fresh(1000.0), reserve=FractionalReserve(0.05), clock=clock)

    for step in range(300):
        coin = coins[rng.integers(len(coins))]
        prices[coin] *= 1 + rng.normal(0, 0.05)
        side = [SignalType.BUY, SignalType.SELL, SignalType.HOLD][rng.integers(3)]
        clock.advance(1_000)

        ledger.update_price(coin, prices[coin])
        ledger.apply_signal(make_signal(coin, side, prices[coin], timestamp=clock.now_ms()), strategy)

        assert_balanced(ledger)
        assert ledger.capital >= 0

    # 코인당 포지션은 최대 1개: 거래 기록에서 BUY가 연속으로 나오지 않는다
    for coin in coins:
        sides = [t.side for t in ledger.trades if t.coin == coin]
        for prev, cur in zip(sides, sides[1:]):
            assert not (prev is SignalType.BUY and cur is SignalType.BUY)
    assert len({t.id for t in ledger.trades}) == len(ledger.trades)
