"""
시가총액 상위 코인 스캔 (auto-discover).

[ 역할 ]
    시가총액 상위 top_n개 코인을 조회해 스테이블코인을 제외하고
    각각 14일치 시계열로 시그널을 계산, BUY 시그널만 점수 내림차순으로 반환.
    매매는 하지 않는다.

[ 호출하는 곳 ]
    - run_simulator.py --discover
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from crypto_sim.core.trading_strategy import SignalType
from crypto_sim.data.market_data import MarketDataManager
from crypto_sim.strategies import get_strategy
from crypto_sim.strategies.scorer import RELIABLE_CANDLES, score_coin
from crypto_sim.utils.clock import Clock, SystemClock

logger = logging.getLogger("crypto_sim.live")

DISCOVER_LOOKBACK_DAYS = 14

STABLECOINS = frozenset({
    "USDT", "USDC", "DAI", "BUSD", "TUSD", "USDP", "FDUSD", "USDD", "PYUSD", "FRAX",
})


@dataclass(frozen=True)
class Opportunity:
    coin: str
    name: str
    price: float
    market_cap: float
    signal: SignalType
    score: int
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "coin": self.coin,
            "name": self.name,
            "price": self.price,
            "market_cap": self.market_cap,
            "signal": self.signal.value,
            "score": self.score,
            "reasons": list(self.reasons),
        }


@dataclass
class DiscoverReport:
    scanned: int = 0
    opportunities: list[Opportunity] = field(default_factory=list)
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned": self.scanned,
            "opportunities": [o.to_dict() for o in self.opportunities],
            "timestamp": self.timestamp,
        }


def run_discover(
    market_data: MarketDataManager,
    strategy_name: str,
    top_n: int = 50,
    clock: Clock | None = None,
) -> DiscoverReport:
    """상위 코인 스캔.

    Args:
        market_data: 시세 매니저
        strategy_name: 전략 이름
        top_n: 스캔할 시가총액 상위 코인 수

    Returns:
        DiscoverReport (scanned = 조회된 상위 코인 수, 스테이블코인 포함)
    """
    strategy = get_strategy(strategy_name)
    clock = clock or SystemClock()
    logger.info(f"=== AUTO-DISCOVER START === top {top_n} coins, strategy={strategy.name}")

    listings = market_data.get_top_coins(top_n)
    opportunities: list[Opportunity] = []

    for listing in listings:
        if listing.symbol in STABLECOINS:
            continue
        try:
            candles = market_data.get_historical_series(listing.symbol, DISCOVER_LOOKBACK_DAYS)
            if len(candles) < RELIABLE_CANDLES:
                continue

            signal = score_coin(listing.symbol, candles, strategy)
            if signal.signal is SignalType.BUY:
                opportunities.append(Opportunity(
                    coin=listing.symbol,
                    name=listing.name,
                    price=signal.price,
                    market_cap=listing.market_cap,
                    signal=signal.signal,
                    score=signal.score,
                    reasons=signal.reasons,
                ))
                logger.info(f"{listing.symbol} ({listing.name}): BUY score={signal.score}")
        except Exception as e:
            logger.warning(f"{listing.symbol} 건너뜀: {e}")

    opportunities.sort(key=lambda o: o.score, reverse=True)
    logger.info(f"=== AUTO-DISCOVER END === {len(opportunities)} opportunities from {len(listings)} coins")

    return DiscoverReport(
        scanned=len(listings),
        opportunities=opportunities,
        timestamp=clock.isoformat(),
    )
