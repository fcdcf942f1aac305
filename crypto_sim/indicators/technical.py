"""
기술적 지표 모듈.

[ 역할 ]
    가격(및 거래량) 시계열로부터 지표 값을 계산하고 BUY/SELL/HOLD 판단과 강도를 붙인다.
    순수 함수만 존재: I/O 없음, 내부 상태 없음, 같은 입력이면 같은 출력.

[ 지표 목록 ]
    rsi()              RSI(14), Wilder 평활
    macd()             MACD(12, 26, 9), 히스토그램 교차/모멘텀
    bollinger_bands()  볼린저 밴드(20, 2σ), %B
    volume_signal()    최근 거래량 / 20봉 평균 거래량 + 가격 변화
    moving_averages()  현재가 vs SMA20 vs SMA50 추세

[ 호출하는 곳 ]
    - strategies/scorer.py::analyze_indicators()가 전략에 포함된 지표만 호출

[ 최소 데이터 ]
    각 함수는 계산 자체가 불가능한 길이가 들어오면 ValueError를 발생시킨다.
    전략 평가 시 적용되는 최소 캔들 수는 scorer.py의 INDICATOR_TABLE이 관리한다.
    reason 문자열에는 항상 판단 근거가 된 수치가 들어간다.
"""

from typing import Sequence

import numpy as np
import pandas as pd

from crypto_sim.core.trading_strategy import IndicatorName, IndicatorOutput, SignalType

PriceSeries = Sequence[float] | pd.Series


def _as_series(prices: PriceSeries) -> pd.Series:
    return pd.Series(prices, dtype=float).reset_index(drop=True)


def _require(prices: pd.Series, minimum: int, name: str) -> None:
    if len(prices) < minimum:
        raise ValueError(f"{name}: 최소 {minimum}개 데이터 필요 (현재 {len(prices)}개)")


# ─── 이동평균 ───────────────────────────────────────────────────────────────

def sma(prices: PriceSeries, period: int) -> pd.Series:
    """단순 이동평균. 결과 길이 = len(prices) - period + 1."""
    series = _as_series(prices)
    _require(series, period, f"SMA{period}")
    return series.rolling(period).mean().dropna().reset_index(drop=True)


def ema(prices: PriceSeries, period: int) -> pd.Series:
    """지수 이동평균. 첫 가격으로 시작, k = 2 / (period + 1)."""
    series = _as_series(prices)
    _require(series, 1, f"EMA{period}")
    return series.ewm(span=period, adjust=False).mean()


# ─── RSI ─────────────────────────────────────────────────────────────────

def rsi(prices: PriceSeries, period: int = 14) -> IndicatorOutput:
    """RSI. 첫 period개 변화량의 단순평균 후 Wilder 방식 평활.

    평균 손실이 0이면 RS=100으로 두어 RSI가 100 근처에 머문다.
    """
    series = _as_series(prices)
    _require(series, period + 1, "RSI")

    changes = np.diff(series.to_numpy())
    first = changes[:period]
    avg_gain = first[first > 0].sum() / period
    avg_loss = -first[first < 0].sum() / period

    for change in changes[period:]:
        avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period

    rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
    value = 100.0 - 100.0 / (1.0 + rs)

    if value < 30:
        signal, strength, label = SignalType.BUY, 80, "Oversold"
    elif value < 40:
        signal, strength, label = SignalType.BUY, 60, "Approaching oversold"
    elif value > 70:
        signal, strength, label = SignalType.SELL, 80, "Overbought"
    elif value > 60:
        signal, strength, label = SignalType.SELL, 60, "Approaching overbought"
    else:
        signal, strength, label = SignalType.HOLD, 50, "Neutral"

    return IndicatorOutput(
        name=IndicatorName.RSI,
        value=float(value),
        signal=signal,
        strength=strength,
        reason=f"RSI={value:.1f} — {label}",
    )


# ─── MACD ────────────────────────────────────────────────────────────────

def macd(prices: PriceSeries, fast: int = 12, slow: int = 26, signal_period: int = 9) -> IndicatorOutput:
    """MACD. 히스토그램이 0을 교차하면 강한 시그널, 0에서 멀어지면 약한 시그널."""
    series = _as_series(prices)
    _require(series, slow + 1, "MACD")

    macd_line = ema(series, fast) - ema(series, slow)
    signal_line = ema(macd_line, signal_period)
    histogram = macd_line - signal_line

    current = float(histogram.iloc[-1])
    prev = float(histogram.iloc[-2])

    if current > 0 and prev <= 0:
        signal, strength, label = SignalType.BUY, 85, "Bullish crossover"
    elif current < 0 and prev >= 0:
        signal, strength, label = SignalType.SELL, 85, "Bearish crossover"
    elif current > 0 and current > prev:
        signal, strength, label = SignalType.BUY, 60, "Bullish momentum"
    elif current < 0 and current < prev:
        signal, strength, label = SignalType.SELL, 60, "Bearish momentum"
    else:
        signal, strength, label = SignalType.HOLD, 50, "Neutral"

    return IndicatorOutput(
        name=IndicatorName.MACD,
        value={
            "macd": float(macd_line.iloc[-1]),
            "signal": float(signal_line.iloc[-1]),
            "histogram": current,
        },
        signal=signal,
        strength=strength,
        reason=f"MACD histogram={current:.4f} — {label}",
    )


# ─── 볼린저 밴드 ─────────────────────────────────────────────────────────

def bollinger_bands(prices: PriceSeries, period: int = 20, std_dev: float = 2.0) -> IndicatorOutput:
    """볼린저 밴드. 최근 period개 종가의 모표준편차 사용.

    밴드 폭이 0이면(가격 변동 없음) %B = 0.5.
    """
    series = _as_series(prices)
    _require(series, period, "BollingerBands")

    recent = series.tail(period).to_numpy()
    middle = float(recent.mean())
    sd = float(np.std(recent, ddof=0))
    upper = middle + std_dev * sd
    lower = middle - std_dev * sd
    current = float(series.iloc[-1])
    pct_b = 0.5 if upper == lower else (current - lower) / (upper - lower)

    if pct_b < 0:
        signal, strength, label = SignalType.BUY, 85, "Below lower band"
    elif pct_b < 0.2:
        signal, strength, label = SignalType.BUY, 65, "Near lower band"
    elif pct_b > 1:
        signal, strength, label = SignalType.SELL, 85, "Above upper band"
    elif pct_b > 0.8:
        signal, strength, label = SignalType.SELL, 65, "Near upper band"
    else:
        signal, strength, label = SignalType.HOLD, 50, "Within bands"

    return IndicatorOutput(
        name=IndicatorName.BOLLINGER_BANDS,
        value={"upper": upper, "middle": middle, "lower": lower, "pctB": pct_b},
        signal=signal,
        strength=strength,
        reason=f"BB %B={pct_b * 100:.1f}% — {label}",
    )


# ─── 거래량 ──────────────────────────────────────────────────────────────

def volume_signal(candles: pd.DataFrame, period: int = 20) -> IndicatorOutput:
    """거래량 급증 + 가격 방향.

    Args:
        candles: OHLCV DataFrame (close, volume 컬럼 필요)
    """
    if len(candles) < 2:
        raise ValueError(f"Volume: 최소 2개 캔들 필요 (현재 {len(candles)}개)")

    volumes = candles["volume"].astype(float)
    closes = candles["close"].astype(float)
    avg_volume = float(volumes.tail(period).sum()) / period
    current_volume = float(volumes.iloc[-1])
    ratio = current_volume / avg_volume if avg_volume > 0 else 0.0

    prior_close = float(closes.iloc[-2])
    price_change = (float(closes.iloc[-1]) - prior_close) / prior_close if prior_close else 0.0

    if ratio > 2 and price_change > 0.02:
        signal, strength, label = SignalType.BUY, 75, "High volume + price up"
    elif ratio > 2 and price_change < -0.02:
        signal, strength, label = SignalType.SELL, 75, "High volume + price down"
    elif ratio > 1.5 and price_change > 0:
        signal, strength, label = SignalType.BUY, 55, "Above avg volume + up"
    elif ratio > 1.5 and price_change < 0:
        signal, strength, label = SignalType.SELL, 55, "Above avg volume + down"
    else:
        signal, strength, label = SignalType.HOLD, 50, "Normal volume"

    return IndicatorOutput(
        name=IndicatorName.VOLUME,
        value={"ratio": ratio, "avgVolume": avg_volume, "currentVolume": current_volume},
        signal=signal,
        strength=strength,
        reason=f"Volume ratio={ratio:.2f}x avg — {label}",
    )


# ─── 이동평균 추세 ───────────────────────────────────────────────────────

def moving_averages(prices: PriceSeries) -> IndicatorOutput:
    """현재가 / SMA20 / SMA50 정배열·역배열 판단.

    데이터가 50개보다 적으면 SMA50은 가용 길이 전체의 평균으로 대체한다.
    """
    series = _as_series(prices)
    _require(series, 20, "MovingAverages")

    current = float(series.iloc[-1])
    sma20 = float(sma(series, 20).iloc[-1])
    sma50 = float(sma(series, min(50, len(series))).iloc[-1])
    diff_pct = (current / sma20 - 1) * 100

    if current > sma20 > sma50:
        signal, strength, label = SignalType.BUY, 70, "Price > SMA20 > SMA50 (uptrend)"
    elif current < sma20 < sma50:
        signal, strength, label = SignalType.SELL, 70, "Price < SMA20 < SMA50 (downtrend)"
    elif current > sma20:
        signal, strength, label = SignalType.BUY, 55, "Above SMA20"
    elif current < sma20:
        signal, strength, label = SignalType.SELL, 55, "Below SMA20"
    else:
        signal, strength, label = SignalType.HOLD, 50, "At SMA20"

    return IndicatorOutput(
        name=IndicatorName.MOVING_AVERAGES,
        value={"sma20": sma20, "sma50": sma50, "price": current},
        signal=signal,
        strength=strength,
        reason=f"Price vs SMA20: {diff_pct:.1f}% — {label}",
    )
