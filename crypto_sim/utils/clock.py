"""
시계 추상화.

[ 역할 ]
    진입 시각, 거래 시각, 리포트 타임스탬프를 만드는 "현재 시각"을 주입 가능하게 한다.
    실전(auto-trade)은 SystemClock, 백테스트와 테스트는 FixedClock을 사용.

[ 단위 ]
    now_ms()는 epoch 밀리초 (캔들 timestamp와 같은 단위).
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """현재 시각 제공자."""

    @abstractmethod
    def now_ms(self) -> int:
        ...

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.now_ms() / 1000, tz=timezone.utc)

    def isoformat(self) -> str:
        """리포트용 ISO 8601 문자열 (UTC, 밀리초)."""
        return self.now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SystemClock(Clock):
    def now_ms(self) -> int:
        return int(time.time() * 1000)


class FixedClock(Clock):
    """수동으로 움직이는 시계. 백테스트에서는 캔들 시각을 따라간다."""

    def __init__(self, now_ms: int = 0):
        self._now_ms = int(now_ms)

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = int(now_ms)

    def advance(self, ms: int) -> None:
        self._now_ms += int(ms)
