"""
시장 데이터 관리 모듈.

[ 역할 ]
    DataProvider를 감싸서 호출 간 지연(rate limit) + 캐싱 제공.
    동일 데이터 반복 조회 시 캐시에서 즉시 반환 (제공자 호출 없음, 지연 없음).

[ 의존성 ]
    - core/data_provider.py::DataProvider (데이터 소스 추상화)

[ 호출하는 곳 ]
    - backtest/engine.py, live/auto_trader.py, live/discover.py
    - run_simulator.py (--analyze, --signals, --portfolio)

[ 호출 간 지연 ]
    외부 API(CoinGecko 무료 등급: 분당 10~30회) 제한을 지키기 위한 정책.
    직전 제공자 호출 이후 request_delay초가 지나지 않았으면 남은 시간만큼 대기.
"""

import logging
import time
from typing import Callable

import pandas as pd

from crypto_sim.core.data_provider import CoinListing, DataProvider

logger = logging.getLogger("crypto_sim.api")


class MarketDataManager:
    """DataProvider 위에 호출 간격 조절 + 캐싱 레이어를 추가한 매니저.

    사용 예:
        provider = MockDataProvider()
        manager = MarketDataManager(provider, request_delay=0)
        df = manager.get_historical_series("BTC", 60)
    """

    def __init__(
        self,
        data_provider: DataProvider,
        request_delay: float = 1.5,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.provider = data_provider
        self.request_delay = request_delay
        self._sleep = sleep
        self._monotonic = monotonic
        self._last_call: float | None = None
        self._cache: dict[str, pd.DataFrame] = {}  # "coin_days" → DataFrame

    def _pace(self) -> None:
        """직전 호출로부터 request_delay초 간격 유지."""
        if self._last_call is not None and self.request_delay > 0:
            wait = self.request_delay - (self._monotonic() - self._last_call)
            if wait > 0:
                self._sleep(wait)
        self._last_call = self._monotonic()

    def get_historical_series(
        self,
        coin: str,
        lookback_days: int,
        use_cache: bool = True,
    ) -> pd.DataFrame:
        """OHLCV 시계열 조회 (캐싱 지원).

        Returns:
            DataFrame with columns: [timestamp, open, high, low, close, volume]
        """
        cache_key = f"{coin}_{lookback_days}"

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key]

        self._pace()
        df = self.provider.get_historical_series(coin, lookback_days)
        logger.debug(f"{coin}: {len(df)}개 캔들 로드 ({lookback_days}일)")
        if use_cache:
            self._cache[cache_key] = df
        return df

    def get_latest_prices(self, coins: list[str]) -> dict[str, float]:
        """현재가 조회 (캐싱 없음)."""
        if not coins:
            return {}
        self._pace()
        return self.provider.get_latest_prices(coins)

    def get_top_coins(self, limit: int) -> list[CoinListing]:
        self._pace()
        return self.provider.get_top_coins(limit)

    def clear_cache(self) -> None:
        """캐시 초기화."""
        self._cache.clear()
