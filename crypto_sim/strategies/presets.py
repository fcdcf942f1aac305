"""
기본 전략 프리셋.

[ 프리셋 비교 ]
                  지표 수  매수/매도 임계값  1회 매수 비율  손절  익절
    conservative     5         ±60             20%          5%   10%
    balanced         4         ±40             33%          8%   15%
    aggressive       3         ±25             50%         12%   25%

    점수는 선택된 지표들의 단순 평균이므로, 지표가 많고 임계값이 높은
    conservative는 거의 만장일치가 있어야 매매하고, aggressive는 적은
    지표와 낮은 임계값으로 더 자주 매매한다.
"""

from crypto_sim.core.trading_strategy import IndicatorName, StrategyConfig
from crypto_sim.strategies import register

CONSERVATIVE = register(StrategyConfig(
    name="conservative",
    description="Low risk: requires strong consensus from multiple indicators",
    indicators=(
        IndicatorName.RSI,
        IndicatorName.MACD,
        IndicatorName.BOLLINGER_BANDS,
        IndicatorName.MOVING_AVERAGES,
        IndicatorName.VOLUME,
    ),
    buy_threshold=60,
    sell_threshold=-60,
    max_position_pct=20,
    stop_loss_pct=5,
    take_profit_pct=10,
))

BALANCED = register(StrategyConfig(
    name="balanced",
    description="Medium risk: balanced between indicators",
    indicators=(
        IndicatorName.RSI,
        IndicatorName.MACD,
        IndicatorName.BOLLINGER_BANDS,
        IndicatorName.MOVING_AVERAGES,
    ),
    buy_threshold=40,
    sell_threshold=-40,
    max_position_pct=33,
    stop_loss_pct=8,
    take_profit_pct=15,
))

AGGRESSIVE = register(StrategyConfig(
    name="aggressive",
    description="High risk: acts on fewer confirmations",
    indicators=(
        IndicatorName.RSI,
        IndicatorName.MACD,
        IndicatorName.BOLLINGER_BANDS,
    ),
    buy_threshold=25,
    sell_threshold=-25,
    max_position_pct=50,
    stop_loss_pct=12,
    take_profit_pct=25,
))
