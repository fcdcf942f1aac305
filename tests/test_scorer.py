import logging

import pytest

from crypto_sim.core.exceptions import UnknownStrategyError
from crypto_sim.core.trading_strategy import IndicatorName, IndicatorOutput, SignalType, StrategyConfig
from crypto_sim.strategies import STRATEGY_REGISTRY, get_strategy, list_strategies, register
from crypto_sim.strategies.scorer import analyze_indicators, compute_signal, score_coin
from crypto_sim.utils.clock import FixedClock


def output(name, signal, strength, reason=None):
    return IndicatorOutput(
        name=name,
        value=0.0,
        signal=signal,
        strength=strength,
        reason=reason or f"{name.value} {signal.value}",
    )


def geometric(n, step):
    return [100.0 * (1 + step) ** i for i in range(n)]


# ─── 전략 레지스트리 ─────────────────────────────────────────────────────

def test_three_presets_registered():
    assert list_strategies() == ["aggressive", "balanced", "conservative"]


@pytest.mark.parametrize("name, count, threshold, max_pos, sl, tp", [
    ("conservative", 5, 60, 20, 5, 10),
    ("balanced", 4, 40, 33, 8, 15),
    ("aggressive", 3, 25, 50, 12, 25),
])
def test_preset_values(name, count, threshold, max_pos, sl, tp):
    s = get_strategy(name)
    assert len(s.indicators) == count
    assert s.buy_threshold == threshold
    assert s.sell_threshold == -threshold
    assert (s.max_position_pct, s.stop_loss_pct, s.take_profit_pct) == (max_pos, sl, tp)


def test_unknown_strategy_fails_fast():
    with pytest.raises(UnknownStrategyError) as exc:
        get_strategy("yolo")
    assert "conservative" in str(exc.value)
    assert isinstance(exc.value, ValueError)


def test_register_rejects_duplicate_name():
    with pytest.raises(ValueError):
        register(get_strategy("balanced"))
    assert len(STRATEGY_REGISTRY) == 3


def test_strategy_config_validation():
    with pytest.raises(ValueError):
        StrategyConfig("bad", "", (IndicatorName.RSI,), 0, -10, 20, 5, 10)
    with pytest.raises(ValueError):
        StrategyConfig("bad", "", (IndicatorName.RSI,), 10, -10, 120, 5, 10)
    with pytest.raises(ValueError):
        StrategyConfig("bad", "", ("Stochastic",), 10, -10, 20, 5, 10)


def test_strategy_config_is_frozen():
    with pytest.raises(AttributeError):
        get_strategy("balanced").buy_threshold = 1


# ─── compute_signal ──────────────────────────────────────────────────────

def test_compute_signal_without_indicators_is_hold():
    signal = compute_signal("BTC", 100.0, [], get_strategy("aggressive"), timestamp=1)
    assert signal.score == 0
    assert signal.signal is SignalType.HOLD
    assert signal.reasons == ()


def test_compute_signal_averages_and_keeps_reasons_in_order():
    outputs = [
        output(IndicatorName.RSI, SignalType.BUY, 80, "RSI=24.3 — Oversold"),
        output(IndicatorName.MACD, SignalType.SELL, 60, "MACD histogram=-0.1000 — Bearish momentum"),
        output(IndicatorName.BOLLINGER_BANDS, SignalType.HOLD, 50, "BB %B=50.0% — Within bands"),
    ]
    signal = compute_signal("ETH", 2000.0, outputs, get_strategy("aggressive"), timestamp=5)
    # (80 - 60 + 0) / 3 = 6.67
    assert signal.score == 7
    assert signal.signal is SignalType.HOLD
    assert signal.reasons == tuple(o.reason for o in outputs)
    assert signal.indicator_names == ["RSI", "MACD", "BollingerBands"]
    assert signal.timestamp == 5
    assert signal.price == 2000.0


def test_compute_signal_rounds_half_up():
    strategy = get_strategy("balanced")
    up = compute_signal("BTC", 1.0, [
        output(IndicatorName.MACD, SignalType.BUY, 85),
        output(IndicatorName.RSI, SignalType.HOLD, 50),
    ], strategy, timestamp=0)
    assert up.score == 43
    assert up.signal is SignalType.BUY

    down = compute_signal("BTC", 1.0, [
        output(IndicatorName.MACD, SignalType.SELL, 85),
        output(IndicatorName.RSI, SignalType.HOLD, 50),
    ], strategy, timestamp=0)
    assert down.score == -42
    assert down.signal is SignalType.SELL


def test_compute_signal_uses_clock_when_no_timestamp():
    signal = compute_signal("BTC", 1.0, [], get_strategy("balanced"), clock=FixedClock(42))
    assert signal.timestamp == 42


def test_threshold_and_indicator_count_jointly_encode_risk():
    agreeing = [
        output(IndicatorName.RSI, SignalType.BUY, 80),
        output(IndicatorName.BOLLINGER_BANDS, SignalType.BUY, 65),
        output(IndicatorName.MACD, SignalType.HOLD, 50),
    ]
    dissenting = [
        output(IndicatorName.MOVING_AVERAGES, SignalType.SELL, 55),
        output(IndicatorName.VOLUME, SignalType.HOLD, 50),
    ]
    aggressive = compute_signal("SOL", 1.0, agreeing, get_strategy("aggressive"), timestamp=0)
    conservative = compute_signal("SOL", 1.0, agreeing + dissenting, get_strategy("conservative"), timestamp=0)

    assert aggressive.score == 48
    assert aggressive.signal is SignalType.BUY
    assert conservative.score == 18
    assert conservative.signal is SignalType.HOLD


# ─── analyze_indicators ──────────────────────────────────────────────────

def test_analyze_runs_only_strategy_indicators(make_candles):
    outputs = analyze_indicators(make_candles(geometric(40, 0.01)), get_strategy("aggressive"))
    assert [o.name for o in outputs] == [
        IndicatorName.RSI, IndicatorName.MACD, IndicatorName.BOLLINGER_BANDS,
    ]


def test_analyze_skips_indicators_without_enough_samples(make_candles, caplog):
    with caplog.at_level(logging.WARNING, logger="crypto_sim.signal"):
        outputs = analyze_indicators(make_candles(geometric(25, 0.01)), get_strategy("conservative"))

    assert [o.name for o in outputs] == [
        IndicatorName.RSI,
        IndicatorName.BOLLINGER_BANDS,
        IndicatorName.VOLUME,
        IndicatorName.MOVING_AVERAGES,
    ]
    assert any("25" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)


def test_analyze_with_too_few_candles_is_empty(make_candles):
    outputs = analyze_indicators(make_candles([100.0] * 14), get_strategy("conservative"))
    assert outputs == []


# ─── score_coin 시나리오 ─────────────────────────────────────────────────

def test_score_coin_uses_last_candle(make_candles):
    candles = make_candles(geometric(40, 0.01))
    signal = score_coin("BTC", candles, get_strategy("balanced"))
    assert signal.price == pytest.approx(candles["close"].iloc[-1])
    assert signal.timestamp == int(candles["timestamp"].iloc[-1])
    assert -100 <= signal.score <= 100


def test_conservative_holds_on_oscillating_market(make_candles):
    candles = make_candles([100.0 if i % 2 == 0 else 101.0 for i in range(60)])
    strategy = get_strategy("conservative")
    for end in range(30, 60):
        signal = score_coin("BTC", candles.iloc[: end + 1], strategy)
        assert signal.signal is SignalType.HOLD, (end, signal.reasons)


def test_rising_series_trend_and_momentum(make_candles):
    candles = make_candles(geometric(40, 0.01))
    signal = score_coin("BTC", candles, get_strategy("conservative"))
    by_name = {i.name: i for i in signal.indicators}

    assert by_name[IndicatorName.MOVING_AVERAGES].signal is SignalType.BUY
    assert by_name[IndicatorName.RSI].value > 70


def test_aggressive_buys_before_conservative(make_candles):
    candles = make_candles(geometric(40, -0.01))
    aggressive = get_strategy("aggressive")
    conservative = get_strategy("conservative")

    first_buy = {}
    for end in range(29, 40):
        window = candles.iloc[: end + 1]
        for strategy in (aggressive, conservative):
            if score_coin("BTC", window, strategy).signal is SignalType.BUY:
                first_buy.setdefault(strategy.name, end)

    assert "aggressive" in first_buy
    assert "conservative" not in first_buy
