import json

import pytest

from crypto_sim.backtest.engine import BacktestEngine
from crypto_sim.backtest.metrics import DrawdownTracker, calculate_win_rate
from crypto_sim.core.exceptions import InsufficientDataError, UnknownStrategyError
from crypto_sim.core.trading_strategy import SignalType
from crypto_sim.data.market_data import MarketDataManager
from crypto_sim.data.mock_provider import MockDataProvider
from crypto_sim.data.portfolio import Trade

START_MS = 1_700_000_000_000


def trade(coin, side, price, idx):
    return Trade(id=f"T{idx}", coin=coin, side=side, price=price, quantity=1.0, total=price, timestamp=idx)


@pytest.fixture
def sample_engine(clock):
    provider = MockDataProvider.from_samples(["BTC", "ETH"], days=40, end_ms=START_MS)
    engine = BacktestEngine(MarketDataManager(provider, request_delay=0), clock=clock)
    return engine, provider


# ─── 지표 ────────────────────────────────────────────────────────────────

def test_drawdown_from_peak():
    tracker = DrawdownTracker(100.0)
    for value in (120.0, 90.0, 110.0):
        tracker.update(value)
    assert tracker.max_value == 120.0
    assert tracker.max_drawdown == pytest.approx(25.0)


def test_drawdown_peak_starts_at_initial_value():
    tracker = DrawdownTracker(100.0)
    tracker.update(80.0)
    assert tracker.max_drawdown == pytest.approx(20.0)


def test_win_rate_compares_with_latest_buy_of_same_coin():
    trades = [
        trade("BTC", SignalType.BUY, 100.0, 1),
        trade("ETH", SignalType.BUY, 10.0, 2),
        trade("BTC", SignalType.SELL, 110.0, 3),   # 수익
        trade("ETH", SignalType.SELL, 10.0, 4),    # 동일가 → 손실
        trade("BTC", SignalType.BUY, 120.0, 5),
        trade("BTC", SignalType.SELL, 115.0, 6),   # 120 대비 손실
    ]
    assert calculate_win_rate(trades) == pytest.approx(100 / 3)


def test_win_rate_without_sells_is_zero():
    assert calculate_win_rate([trade("BTC", SignalType.BUY, 1.0, 1)]) == 0.0
    assert calculate_win_rate([]) == 0.0


# ─── 엔진 ────────────────────────────────────────────────────────────────

def test_unknown_strategy_fails_before_fetching(sample_engine):
    engine, provider = sample_engine
    with pytest.raises(UnknownStrategyError):
        engine.run_backtest("yolo", 1000.0, ["BTC"], 10)
    assert provider.calls == []


def test_insufficient_data_creates_no_portfolio(provider, market_data, make_candles):
    provider.load_data("BTC", make_candles([100.0 + i for i in range(20)]))
    engine = BacktestEngine(market_data)

    with pytest.raises(InsufficientDataError) as exc:
        engine.run_backtest("balanced", 1000.0, ["BTC"], 10)

    assert exc.value.min_candles == 20
    assert engine.portfolio is None
    assert engine.report is None


def test_no_loadable_coin_is_insufficient(market_data):
    engine = BacktestEngine(market_data)
    with pytest.raises(InsufficientDataError):
        engine.run_backtest("balanced", 1000.0, ["BTC"], 10)


@pytest.mark.parametrize("capital, days", [(0, 10), (-5, 10), (100, -1), (100, 0)])
def test_invalid_parameters(sample_engine, capital, days):
    engine, _ = sample_engine
    with pytest.raises(ValueError):
        engine.run_backtest("balanced", capital, ["BTC"], days)


def test_failed_coin_is_reported_and_excluded(sample_engine):
    engine, provider = sample_engine
    provider.set_failure("SOL", "rate limited")

    report = engine.run_backtest("balanced", 1000.0, ["BTC", "ETH", "SOL"], 10)

    assert report.coins == ["BTC", "ETH"]
    assert report.errors == ["SOL: rate limited"]
    assert "SOL" not in {s.coin for s in report.signals}


def test_backtest_run_keeps_accounting_consistent(sample_engine):
    engine, _ = sample_engine
    report = engine.run_backtest("aggressive", 1000.0, ["btc", "eth"], 10)
    portfolio = engine.portfolio

    # (960 - 30) // (10 × 6) = 15 → range(30, 960, 15)
    assert len(engine.round_values) == 62
    assert report.coins == ["BTC", "ETH"]
    assert report.initial_capital == 1000.0
    assert report.total_trades == len(portfolio.trades)
    assert 0 <= report.win_rate <= 100
    assert 0 <= report.max_drawdown <= 100
    assert len(report.signals) <= 20
    assert report.start_date <= report.end_date

    held = sum(p.quantity * (p.current_price or p.entry_price) for p in portfolio.positions.values())
    assert portfolio.capital + held == pytest.approx(portfolio.initial_capital + portfolio.total_pnl)
    assert report.total_return == pytest.approx(portfolio.total_pnl)
    assert portfolio.capital >= 0

    for t in portfolio.trades:
        assert t.timestamp <= START_MS


def test_backtest_is_reproducible(sample_engine):
    engine, _ = sample_engine
    first = engine.run_backtest("balanced", 1000.0, ["BTC", "ETH"], 10).to_dict()

    provider = MockDataProvider.from_samples(["BTC", "ETH"], days=40, end_ms=START_MS)
    second = BacktestEngine(MarketDataManager(provider, request_delay=0)).run_backtest(
        "balanced", 1000.0, ["BTC", "ETH"], 10,
    ).to_dict()

    assert first == second


def test_report_serializes_and_summarizes(sample_engine):
    engine, _ = sample_engine
    report = engine.run_backtest("conservative", 500.0, ["BTC"], 10)

    data = json.loads(json.dumps(report.to_dict()))
    assert data["strategy"] == "conservative"
    assert data["portfolio"]["initialCapital"] == 500.0
    assert {"win_rate", "max_drawdown", "total_return_pct", "signals"} <= set(data)

    summary = report.summary()
    assert "conservative" in summary
    assert "투자 조언 아님" in summary
