"""
테스트/오프라인 실행용 Mock 데이터 제공자 구현.

[ 역할 ]
    네트워크 없이 백테스트/auto-trade를 실행하기 위한 DataProvider.
    미리 로드한 DataFrame(또는 generate_sample_data()가 만든 랜덤워크)에서 데이터 제공.

[ 포함 ]
    generate_sample_data() - 재현 가능한 시간봉 OHLCV 생성 (코인 심볼 기반 시드)
    MockDataProvider       - core/data_provider.py::DataProvider 구현체

[ 호출하는 곳 ]
    - run_simulator.py (--source sample)
    - tests/ 전반
"""

import zlib

import numpy as np
import pandas as pd

from crypto_sim.core.data_provider import CANDLE_COLUMNS, CoinListing, DataProvider
from crypto_sim.core.exceptions import DataUnavailableError

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

# 심볼별 샘플 시작 가격
SAMPLE_PRICES = {"BTC": 60_000.0, "ETH": 3_000.0, "SOL": 150.0}


def generate_sample_data(
    coin: str,
    days: int,
    end_ms: int,
    interval_ms: int = HOUR_MS,
    initial_price: float | None = None,
    volatility: float = 0.01,
    seed: int | None = None,
) -> pd.DataFrame:
    """샘플 시세 데이터 생성 (기하 랜덤워크).

    Args:
        coin: 코인 심볼 (시드/시작 가격 결정)
        days: 생성 기간 (일)
        end_ms: 마지막 캔들 시각 (epoch ms)
        interval_ms: 캔들 간격
        volatility: 캔들당 수익률 표준편차
        seed: 난수 시드 (없으면 심볼 crc32)
    """
    rng = np.random.default_rng(zlib.crc32(coin.encode()) if seed is None else seed)
    n = int(days * DAY_MS // interval_ms)
    price0 = initial_price or SAMPLE_PRICES.get(coin.upper(), 100.0)

    returns = rng.normal(0.0002, volatility, n)
    closes = price0 * np.cumprod(1 + returns)
    opens = np.concatenate([[price0], closes[:-1]])
    highs = np.maximum(opens, closes) * (1 + np.abs(rng.normal(0, volatility / 2, n)))
    lows = np.minimum(opens, closes) * (1 - np.abs(rng.normal(0, volatility / 2, n)))
    volumes = rng.lognormal(12, 0.5, n)
    timestamps = end_ms - interval_ms * np.arange(n - 1, -1, -1)

    return pd.DataFrame({
        "timestamp": timestamps.astype("int64"),
        "open": opens,
        "high": highs,
        "low": lows,
        "close": closes,
        "volume": volumes,
    }, columns=CANDLE_COLUMNS)


class MockDataProvider(DataProvider):
    """DataFrame 기반 Mock 데이터 제공자.

    사용법:
        provider = MockDataProvider()
        provider.load_data("BTC", btc_df)        # DataFrame 로드
        provider.set_price("BTC", 61_000)        # 현재가 지정 (없으면 마지막 종가)
        provider.set_failure("ETH", "timeout")   # 조회 실패 시뮬레이션
    """

    def __init__(self):
        self._data: dict[str, pd.DataFrame] = {}   # coin → OHLCV DataFrame
        self._prices: dict[str, float] = {}        # coin → 현재가
        self._failures: dict[str, str] = {}        # coin → 에러 메시지
        self._listings: list[CoinListing] = []
        self.calls: list[tuple[str, str]] = []     # (메서드, 인자) 호출 기록

    @classmethod
    def from_samples(cls, coins: list[str], days: int, end_ms: int) -> "MockDataProvider":
        """코인별 샘플 데이터를 로드한 제공자 생성."""
        provider = cls()
        for coin in coins:
            provider.load_data(coin, generate_sample_data(coin, days, end_ms))
        return provider

    def load_data(self, coin: str, df: pd.DataFrame) -> None:
        """데이터 로드.

        Args:
            coin: 코인 심볼
            df: OHLCV DataFrame (columns: timestamp, open, high, low, close, volume)
        """
        df = df[CANDLE_COLUMNS].copy()
        self._data[coin] = df.sort_values("timestamp").reset_index(drop=True)

    def set_price(self, coin: str, price: float) -> None:
        self._prices[coin] = price

    def set_failure(self, coin: str, message: str) -> None:
        self._failures[coin] = message

    def set_listings(self, listings: list[CoinListing]) -> None:
        self._listings = list(listings)

    def get_historical_series(self, coin: str, lookback_days: int) -> pd.DataFrame:
        """마지막 캔들 기준 lookback_days일 이내의 데이터."""
        self.calls.append(("get_historical_series", coin))
        if coin in self._failures:
            raise DataUnavailableError(self._failures[coin])
        if coin not in self._data:
            raise DataUnavailableError(f"{coin}: 데이터 없음")

        df = self._data[coin]
        if df.empty:
            return df.copy()
        start = int(df["timestamp"].iloc[-1]) - lookback_days * DAY_MS
        return df[df["timestamp"] > start].copy().reset_index(drop=True)

    def get_latest_prices(self, coins: list[str]) -> dict[str, float]:
        self.calls.append(("get_latest_prices", ",".join(coins)))
        failed = [c for c in coins if c in self._failures]
        if failed:
            raise DataUnavailableError(f"현재가 조회 실패: {','.join(failed)}")

        prices: dict[str, float] = {}
        for coin in coins:
            if coin in self._prices:
                prices[coin] = self._prices[coin]
            elif coin in self._data and not self._data[coin].empty:
                prices[coin] = float(self._data[coin]["close"].iloc[-1])
        return prices

    def get_top_coins(self, limit: int) -> list[CoinListing]:
        self.calls.append(("get_top_coins", str(limit)))
        return self._listings[:limit]
