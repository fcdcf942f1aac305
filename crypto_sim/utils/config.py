"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    시뮬레이션/auto-trade 파라미터, 데이터 제공자, 로깅 설정 등을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    simulation:       → SimulationConfig (백테스트 파라미터)
    live:             → LiveConfig (auto-trade / discover 파라미터)
    provider:         → ProviderConfig (CoinGecko 접속 설정)
    ledger:           → LedgerConfig (원장 공통 설정)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

    알 수 없는 키는 무시한다.

[ 호출하는 곳 ]
    - run_simulator.py에서 Config.from_yaml()로 로드
    - backtest/engine.py, live/auto_trader.py에 settings로 전달
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from crypto_sim.data.ledger import AbsoluteReserve, FractionalReserve

API_KEY_ENV = "COINGECKO_API_KEY"


@dataclass
class SimulationConfig:
    """백테스트 설정. config.yaml의 simulation 섹션에 대응."""
    strategy: str = "balanced"
    initial_capital: float = 100.0
    coins: list[str] = field(default_factory=lambda: ["BTC", "ETH", "SOL"])
    duration_days: int = 30
    warmup_candles: int = 30          # 지표 워밍업 (최소 캔들 수)
    evaluations_per_day: int = 6      # 하루당 평가 횟수 (step 계산)
    signal_window: int = 60           # 지표 계산에 쓰는 최근 캔들 수
    signal_history: int = 20          # 리포트에 남길 최근 시그널 수
    reserve_fraction: float = 0.05    # 현금의 5%는 매수에 쓰지 않음

    def reserve(self) -> FractionalReserve:
        return FractionalReserve(self.reserve_fraction)


@dataclass
class LiveConfig:
    """auto-trade 설정. config.yaml의 live 섹션에 대응."""
    reserve_amount: float = 10.0      # 최소 예비금 (EUR)
    lookback_days: int = 30
    discover_top_n: int = 50
    state_dir: str = "state"

    def reserve(self) -> AbsoluteReserve:
        return AbsoluteReserve(self.reserve_amount)


@dataclass
class ProviderConfig:
    """데이터 제공자 설정. config.yaml의 provider 섹션에 대응.

    api_key가 비어 있으면 환경변수 COINGECKO_API_KEY를 사용한다.
    """
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: str | None = None
    vs_currency: str = "eur"
    request_delay: float = 1.5        # 호출 간 최소 간격 (초)
    max_retries: int = 3
    retry_delay: float = 5.0
    timeout: float = 15.0


@dataclass
class LedgerConfig:
    """원장 설정. config.yaml의 ledger 섹션에 대응."""
    min_trade_amount: float = 1.0


def _section(cls, data: dict[str, Any] | None):
    """섹션 dict에서 dataclass 필드에 해당하는 키만 골라 생성."""
    data = data or {}
    return cls(**{
        k: v for k, v in data.items()
        if k in cls.__dataclass_fields__
    })


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    live: LiveConfig = field(default_factory=LiveConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        simulation = _section(SimulationConfig, data.get("simulation"))
        simulation.coins = [str(c).upper() for c in simulation.coins]

        provider = _section(ProviderConfig, data.get("provider"))
        if not provider.api_key:
            provider.api_key = os.environ.get(API_KEY_ENV) or None

        return cls(
            simulation=simulation,
            live=_section(LiveConfig, data.get("live")),
            provider=provider,
            ledger=_section(LedgerConfig, data.get("ledger")),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
