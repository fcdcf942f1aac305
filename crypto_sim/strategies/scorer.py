"""
전략 점수 계산 모듈.

[ 역할 ]
    OHLCV 시계열 + 전략 설정 → 지표 계산 → 합의 점수 → BUY/SELL/HOLD 시그널.
    백테스트, auto-trade, 분석 명령이 모두 이 모듈을 통해 시그널을 만든다.

[ 흐름 ]
    analyze_indicators(candles, strategy)
        ├── INDICATOR_TABLE 순서대로 순회
        ├── 전략에 포함되지 않은 지표 → 건너뜀
        └── 최소 캔들 수 미달 → 조용히 제외 (에러 아님)

    compute_signal(coin, price, outputs, strategy)
        ├── 지표별 점수 = 방향(+1/-1/0) × 강도
        ├── 평균 점수 (계산된 지표가 없으면 0)
        └── score >= buy_threshold → BUY, score <= sell_threshold → SELL, 그 외 HOLD

[ 호출하는 곳 ]
    - backtest/engine.py, live/auto_trader.py, live/discover.py
    - run_simulator.py (--analyze, --signals)
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable

import pandas as pd

from crypto_sim.core.data_provider import last_candle
from crypto_sim.core.trading_strategy import (
    IndicatorName,
    IndicatorOutput,
    SignalType,
    StrategyConfig,
    TradeSignal,
)
from crypto_sim.indicators import technical
from crypto_sim.utils.clock import Clock, SystemClock

logger = logging.getLogger("crypto_sim.signal")

# 지표가 의미 있는 값을 내기 위해 권장되는 최소 캔들 수 (미달 시 경고만)
RELIABLE_CANDLES = 30
# 시그널 계산에 사용하는 최근 캔들 수
SIGNAL_WINDOW = 60


@dataclass(frozen=True)
class IndicatorSpec:
    """지표 디스패치 테이블 항목."""
    min_samples: int
    compute: Callable[[pd.DataFrame], IndicatorOutput]


# 지표 이름 → (최소 캔들 수, 계산 함수). 순서가 곧 출력 순서.
INDICATOR_TABLE: dict[IndicatorName, IndicatorSpec] = {
    IndicatorName.RSI: IndicatorSpec(15, lambda c: technical.rsi(c["close"])),
    IndicatorName.MACD: IndicatorSpec(27, lambda c: technical.macd(c["close"])),
    IndicatorName.BOLLINGER_BANDS: IndicatorSpec(21, lambda c: technical.bollinger_bands(c["close"])),
    IndicatorName.VOLUME: IndicatorSpec(21, technical.volume_signal),
    IndicatorName.MOVING_AVERAGES: IndicatorSpec(21, lambda c: technical.moving_averages(c["close"])),
}


def analyze_indicators(candles: pd.DataFrame, strategy: StrategyConfig) -> list[IndicatorOutput]:
    """전략에 포함된 지표 중 데이터가 충분한 것만 계산.

    Args:
        candles: OHLCV DataFrame (오름차순)
        strategy: 전략 설정

    Returns:
        계산된 IndicatorOutput 목록 (INDICATOR_TABLE 순서)
    """
    count = len(candles)
    if count < RELIABLE_CANDLES:
        logger.warning(
            f"캔들 {count}개만 사용 가능, 신뢰할 수 있는 지표 계산에는 최소 {RELIABLE_CANDLES}개 필요",
            extra={"data": {"candles": count, "strategy": strategy.name}},
        )

    outputs: list[IndicatorOutput] = []
    for name, spec in INDICATOR_TABLE.items():
        if not strategy.uses(name):
            continue
        if count < spec.min_samples:
            logger.debug(f"  {name.value}: 데이터 부족으로 제외 ({count} < {spec.min_samples})")
            continue
        outputs.append(spec.compute(candles))
    return outputs


def compute_signal(
    coin: str,
    price: float,
    indicators: list[IndicatorOutput],
    strategy: StrategyConfig,
    timestamp: int | None = None,
    clock: Clock | None = None,
) -> TradeSignal:
    """지표 출력들의 단순 평균 점수로 최종 시그널 결정.

    Args:
        coin: 코인 심볼
        price: 시그널 기준 가격
        indicators: analyze_indicators()의 결과
        strategy: 전략 설정 (임계값)
        timestamp: 시그널 시각 (epoch ms). 없으면 clock의 현재 시각
    """
    total = 0.0
    reasons: list[str] = []
    for ind in indicators:
        score = ind.signal.direction * ind.strength
        total += score
        reasons.append(ind.reason)
        logger.debug(f"  {ind.name.value}: {ind.signal.value} (strength={ind.strength}, score={score})")

    avg_score = total / len(indicators) if indicators else 0.0

    if avg_score >= strategy.buy_threshold:
        final = SignalType.BUY
    elif avg_score <= strategy.sell_threshold:
        final = SignalType.SELL
    else:
        final = SignalType.HOLD

    logger.info(
        f"{coin} final: {final.value} (score={avg_score:.1f}, "
        f"thresholds: buy>{strategy.buy_threshold}, sell<{strategy.sell_threshold})",
        extra={"data": {"coin": coin, "score": round(avg_score, 1), "indicators": len(indicators)}},
    )

    if timestamp is None:
        timestamp = (clock or SystemClock()).now_ms()

    return TradeSignal(
        coin=coin,
        signal=final,
        score=math.floor(avg_score + 0.5),
        price=price,
        timestamp=timestamp,
        reasons=tuple(reasons),
        indicators=tuple(indicators),
    )


def score_coin(
    coin: str,
    candles: pd.DataFrame,
    strategy: StrategyConfig,
    window: int = SIGNAL_WINDOW,
) -> TradeSignal:
    """단일 코인 시그널 계산. 최근 window개 캔들로 지표를 계산하고
    마지막 캔들의 종가/시각을 시그널 가격/시각으로 사용한다."""
    recent = candles.tail(window).reset_index(drop=True)
    latest = last_candle(recent)
    indicators = analyze_indicators(recent, strategy)
    return compute_signal(coin, latest.close, indicators, strategy, timestamp=latest.timestamp)
