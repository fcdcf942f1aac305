"""
CoinGecko 기반 DataProvider 구현.

[ 역할 ]
    CoinGecko 공개 API에서 가격/거래량 시계열, 현재가, 시가총액 순위를 조회.
    DataProvider 인터페이스를 구현하여 백테스트/auto-trade에 데이터 공급.

[ 사용 엔드포인트 ]
    /coins/{id}/market_chart  → 가격 + 거래대금 시계열 (open=high=low=close=가격)
    /simple/price             → 현재가
    /coins/markets            → 시가총액 상위 코인

[ 무료 등급 제한 ]
    분당 10~30회. 호출 간 지연은 data/market_data.py::MarketDataManager가 담당하고,
    이 모듈은 실패 시 재시도(max_retries, retry_delay)만 담당한다.

[ 호출하는 곳 ]
    - run_simulator.py (--source coingecko, 기본값)
"""

import logging
import time
from typing import Any

import pandas as pd
import requests

from crypto_sim.core.data_provider import Candle, CoinListing, DataProvider, candles_to_frame
from crypto_sim.core.exceptions import DataUnavailableError

logger = logging.getLogger("crypto_sim.api")

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"

# 심볼 → CoinGecko id. 목록에 없으면 소문자 심볼을 id로 사용.
COIN_MAP: dict[str, str] = {
    "BTC": "bitcoin", "ETH": "ethereum", "SOL": "solana",
    "ADA": "cardano", "DOT": "polkadot", "AVAX": "avalanche-2",
    "MATIC": "matic-network", "LINK": "chainlink", "ATOM": "cosmos",
    "UNI": "uniswap", "DOGE": "dogecoin", "XRP": "ripple",
    "BNB": "binancecoin", "LTC": "litecoin",
}


def get_coin_id(symbol: str) -> str:
    return COIN_MAP.get(symbol.upper(), symbol.lower())


class CoinGeckoDataProvider(DataProvider):
    """CoinGecko HTTP API 데이터 제공자.

    사용 예:
        provider = CoinGeckoDataProvider(vs_currency="eur")
        df = provider.get_historical_series("BTC", 30)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        vs_currency: str = "eur",
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        session: requests.Session | None = None,
    ):
        """
        Args:
            base_url: API 기본 URL
            api_key: demo API 키 (없으면 키 없이 호출)
            vs_currency: 가격 기준 통화
            timeout: 요청 타임아웃 (초)
            max_retries: 최대 시도 횟수
            retry_delay: 재시도 간 대기 시간 (초)
        """
        self.base_url = base_url.rstrip("/")
        self.vs_currency = vs_currency
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if api_key:
            self.session.headers.update({"x-cg-demo-api-key": api_key})
        self._ids: dict[str, str] = {}  # /coins/markets에서 알게 된 심볼 → id

    def _coin_id(self, symbol: str) -> str:
        return self._ids.get(symbol.upper()) or get_coin_id(symbol)

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        """GET 요청. 실패 시 재시도, 모두 실패하면 DataUnavailableError."""
        url = f"{self.base_url}{path}"
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"GET {path} {params} (attempt {attempt + 1}/{self.max_retries})")
                response = self.session.get(url, params=params, timeout=self.timeout)
                if response.status_code != 200:
                    raise DataUnavailableError(f"CoinGecko {response.status_code}: {response.text[:200]}")
                return response.json()
            except (requests.RequestException, ValueError, DataUnavailableError) as e:
                last_error = e
                logger.warning(f"CoinGecko 요청 실패 ({path}, attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay)

        raise DataUnavailableError(f"CoinGecko 요청 실패: {path} ({last_error})")

    def get_historical_series(self, coin: str, lookback_days: int) -> pd.DataFrame:
        coin_id = self._coin_id(coin)
        logger.info(f"{coin}: {lookback_days}일 market chart 조회 ({coin_id})")
        data = self._get(
            f"/coins/{coin_id}/market_chart",
            {"vs_currency": self.vs_currency, "days": lookback_days},
        )

        prices = data.get("prices") or []
        volumes = data.get("total_volumes") or []
        if not prices:
            raise DataUnavailableError(f"{coin}: 가격 데이터 없음")

        candles = []
        for i, (timestamp, price) in enumerate(prices):
            volume = volumes[i][1] if i < len(volumes) else 0.0
            candles.append(Candle(
                timestamp=int(timestamp),
                open=float(price),
                high=float(price),
                low=float(price),
                close=float(price),
                volume=float(volume or 0.0),
            ))
        return candles_to_frame(candles)

    def get_latest_prices(self, coins: list[str]) -> dict[str, float]:
        ids = {coin: self._coin_id(coin) for coin in coins}
        logger.info(f"현재가 조회: {','.join(coins)}")
        data = self._get(
            "/simple/price",
            {"ids": ",".join(ids.values()), "vs_currencies": self.vs_currency},
        )
        prices: dict[str, float] = {}
        for coin, coin_id in ids.items():
            price = (data.get(coin_id) or {}).get(self.vs_currency)
            if price:
                prices[coin] = float(price)
        return prices

    def get_top_coins(self, limit: int) -> list[CoinListing]:
        logger.info(f"시가총액 상위 {limit}개 코인 조회")
        data = self._get(
            "/coins/markets",
            {
                "vs_currency": self.vs_currency,
                "order": "market_cap_desc",
                "per_page": limit,
                "page": 1,
            },
        )
        listings = []
        for item in data:
            symbol = str(item["symbol"]).upper()
            self._ids.setdefault(symbol, item["id"])
            listings.append(CoinListing(
                symbol=symbol,
                name=item.get("name", ""),
                market_cap=float(item.get("market_cap") or 0.0),
            ))
        return listings
