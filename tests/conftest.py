import logging

import pandas as pd
import pytest

from crypto_sim.data.market_data import MarketDataManager
from crypto_sim.data.mock_provider import HOUR_MS, MockDataProvider
from crypto_sim.utils.clock import FixedClock

START_MS = 1_700_000_000_000


def _make_candles(closes, volumes=None, start_ms=START_MS, interval_ms=HOUR_MS) -> pd.DataFrame:
    closes = [float(c) for c in closes]
    volumes = [1000.0] * len(closes) if volumes is None else [float(v) for v in volumes]
    return pd.DataFrame({
        "timestamp": [start_ms + i * interval_ms for i in range(len(closes))],
        "open": closes,
        "high": closes,
        "low": closes,
        "close": closes,
        "volume": volumes,
    })


@pytest.fixture
def make_candles():
    """종가(와 거래량) 목록 → OHLCV DataFrame 팩토리."""
    return _make_candles


@pytest.fixture
def clock():
    return FixedClock(START_MS)


@pytest.fixture
def provider():
    return MockDataProvider()


@pytest.fixture
def market_data(provider):
    return MarketDataManager(provider, request_delay=0)


@pytest.fixture
def reset_logger():
    """setup_logger()가 붙인 핸들러를 테스트 후 제거."""
    yield
    for name in ("crypto_sim", "crypto_sim_test"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
