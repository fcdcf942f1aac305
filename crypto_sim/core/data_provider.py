"""
시세 데이터 제공 추상 클래스 정의.

[ 역할 ]
    OHLCV(시가/고가/저가/종가/거래량) 시계열과 현재가를 제공하는 인터페이스.
    데이터 소스(CoinGecko, 샘플 데이터 등)에 독립적으로 전략/백테스트에 데이터 공급.

[ 구현체 ]
    - data/coingecko_provider.py::CoinGeckoDataProvider  (HTTP API)
    - data/mock_provider.py::MockDataProvider             (DataFrame 기반, 오프라인/테스트용)

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager가 이 인터페이스를 통해 데이터 조회
      (호출 간 지연 + 캐싱)

[ 시계열 형식 ]
    DataFrame with columns: [timestamp, open, high, low, close, volume]
    timestamp는 epoch 밀리초, 오름차순 정렬, 중복 없음.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

import pandas as pd

CANDLE_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


@dataclass(frozen=True)
class Candle:
    """단일 봉(캔들) 데이터."""
    timestamp: int   # epoch ms
    open: float      # 시가
    high: float      # 고가
    low: float       # 저가
    close: float     # 종가
    volume: float    # 거래량 (제공자에 따라 거래대금)


@dataclass(frozen=True)
class CoinListing:
    """get_top_coins()의 반환 항목. 시가총액 순위 조회용."""
    symbol: str
    name: str
    market_cap: float


def candles_to_frame(candles: list[Candle]) -> pd.DataFrame:
    """Candle 목록을 표준 OHLCV DataFrame으로 변환 (timestamp 오름차순, 중복 제거)."""
    if not candles:
        return pd.DataFrame(columns=CANDLE_COLUMNS)
    df = pd.DataFrame([asdict(c) for c in candles], columns=CANDLE_COLUMNS)
    df = df.drop_duplicates(subset="timestamp", keep="last")
    return df.sort_values("timestamp").reset_index(drop=True)


def last_candle(df: pd.DataFrame) -> Candle:
    """시계열의 마지막 캔들."""
    if df.empty:
        raise ValueError("빈 시계열")
    r = df.iloc[-1]
    return Candle(
        timestamp=int(r["timestamp"]),
        open=float(r["open"]),
        high=float(r["high"]),
        low=float(r["low"]),
        close=float(r["close"]),
        volume=float(r["volume"]),
    )


class DataProvider(ABC):
    """시세 데이터 제공 추상 클래스.

    조회 실패 시 core/exceptions.py::DataUnavailableError를 발생시킨다.
    """

    @abstractmethod
    def get_historical_series(self, coin: str, lookback_days: int) -> pd.DataFrame:
        """최근 lookback_days일간 OHLCV 시계열 조회.

        Args:
            coin: 코인 심볼 (예: "BTC")
            lookback_days: 조회 기간 (일)

        Returns:
            DataFrame with columns: [timestamp, open, high, low, close, volume]
        """
        ...

    @abstractmethod
    def get_latest_prices(self, coins: list[str]) -> dict[str, float]:
        """코인별 현재가 조회. 가격을 모르는 코인은 결과에서 빠질 수 있다."""
        ...

    @abstractmethod
    def get_top_coins(self, limit: int) -> list[CoinListing]:
        """시가총액 상위 코인 목록."""
        ...
