"""
매매 전략 / 시그널 타입 정의.

[ 역할 ]
    지표 출력(IndicatorOutput), 전략 설정(StrategyConfig), 최종 시그널(TradeSignal)을 정의.
    전략은 "어떤 지표를 쓰고 어떤 임계값으로 합의를 판단하는가"만 담은 불변 설정이다.

[ 구현체 ]
    - strategies/presets.py  (conservative / balanced / aggressive 프리셋)

[ 호출하는 곳 ]
    - strategies/scorer.py: 지표 계산 → IndicatorOutput 목록 → TradeSignal
    - data/ledger.py: TradeSignal + StrategyConfig로 포트폴리오 상태 전이
    - backtest/engine.py, live/auto_trader.py: 위 두 단계를 반복

[ 데이터 흐름 ]
    OHLCV DataFrame → analyze_indicators() → [IndicatorOutput...]
    → compute_signal() → TradeSignal (score -100..+100, BUY/SELL/HOLD)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SignalType(Enum):
    """지표/전략이 반환하는 시그널 종류."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def direction(self) -> int:
        """점수 계산용 부호. BUY=+1, SELL=-1, HOLD=0."""
        return _DIRECTIONS[self]


_DIRECTIONS = {SignalType.BUY: 1, SignalType.SELL: -1, SignalType.HOLD: 0}


class IndicatorName(Enum):
    """지원하는 지표의 닫힌 집합. 전략의 indicators는 이 값만 가질 수 있다."""
    RSI = "RSI"
    MACD = "MACD"
    BOLLINGER_BANDS = "BollingerBands"
    VOLUME = "Volume"
    MOVING_AVERAGES = "MovingAverages"


@dataclass(frozen=True)
class IndicatorOutput:
    """지표 1개의 계산 결과. 평가 시마다 새로 생성되고 수정되지 않는다."""
    name: IndicatorName
    value: float | dict[str, float]
    signal: SignalType
    strength: float        # 0~100, 지표 자체의 확신도
    reason: str            # 수치 근거 포함 (예: "RSI=24.3 — Oversold")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name.value,
            "value": self.value,
            "signal": self.signal.value,
            "strength": self.strength,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class TradeSignal:
    """compute_signal()의 반환값. 원장(Ledger)에 전달되어 매수/매도로 변환됨."""
    coin: str
    signal: SignalType
    score: int                          # -100(강한 매도) ~ +100(강한 매수)
    price: float                        # 시그널 발생 시점 가격
    timestamp: int                      # epoch ms
    reasons: tuple[str, ...] = ()
    indicators: tuple[IndicatorOutput, ...] = ()

    @property
    def indicator_names(self) -> list[str]:
        return [i.name.value for i in self.indicators]

    def to_dict(self) -> dict[str, Any]:
        return {
            "coin": self.coin,
            "signal": self.signal.value,
            "score": self.score,
            "reasons": list(self.reasons),
            "indicators": [i.to_dict() for i in self.indicators],
            "timestamp": self.timestamp,
            "price": self.price,
        }


@dataclass(frozen=True)
class StrategyConfig:
    """전략 설정. 생성 후 변경 불가.

    지표 개수와 임계값이 함께 위험 성향을 표현한다:
    지표가 많고 임계값이 높을수록 합의에 도달하기 어렵다.
    """
    name: str
    description: str
    indicators: tuple[IndicatorName, ...]
    buy_threshold: float     # score >= buy_threshold → BUY
    sell_threshold: float    # score <= sell_threshold → SELL (음수)
    max_position_pct: float  # 1회 매수 시 사용 가능 자금 대비 최대 비율 (%)
    stop_loss_pct: float     # 손절 비율 (%)
    take_profit_pct: float   # 익절 비율 (%)

    def __post_init__(self):
        if not (self.buy_threshold > 0 > self.sell_threshold):
            raise ValueError(
                f"{self.name}: buy_threshold > 0 > sell_threshold 이어야 함 "
                f"({self.buy_threshold}, {self.sell_threshold})"
            )
        if not (0 < self.max_position_pct <= 100):
            raise ValueError(f"{self.name}: max_position_pct는 (0, 100] 범위 ({self.max_position_pct})")
        if self.stop_loss_pct <= 0 or self.take_profit_pct <= 0:
            raise ValueError(f"{self.name}: stop_loss_pct / take_profit_pct는 양수여야 함")
        object.__setattr__(self, "indicators", tuple(IndicatorName(i) for i in self.indicators))

    def uses(self, indicator: IndicatorName) -> bool:
        return indicator in self.indicators
