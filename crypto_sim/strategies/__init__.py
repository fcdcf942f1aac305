"""
전략 모듈.

[ 전략 등록 방식 ]
    register(StrategyConfig(...))로 등록하면 STRATEGY_REGISTRY에 추가된다.
    run_simulator.py / 백테스트 엔진 / auto-trader는 이름만으로 전략 설정을 찾는다.

[ 등록된 프리셋 ]
    conservative / balanced / aggressive  (presets.py)

[ 조회 ]
    get_strategy(name)  → StrategyConfig (없으면 UnknownStrategyError, 상태 변경 전에 실패)
    list_strategies()   → 등록된 이름 목록
"""

from importlib import import_module
from pathlib import Path

from crypto_sim.core.exceptions import UnknownStrategyError
from crypto_sim.core.trading_strategy import StrategyConfig

# 전략 이름 → 전략 설정 매핑
STRATEGY_REGISTRY: dict[str, StrategyConfig] = {}


def register(config: StrategyConfig) -> StrategyConfig:
    """전략 설정을 STRATEGY_REGISTRY에 등록."""
    if config.name in STRATEGY_REGISTRY:
        raise ValueError(f"이미 등록된 전략: '{config.name}'")
    STRATEGY_REGISTRY[config.name] = config
    return config


def get_strategy(name: str) -> StrategyConfig:
    """이름으로 전략 설정 조회.

    Raises:
        UnknownStrategyError: 등록되지 않은 전략 이름
    """
    if name not in STRATEGY_REGISTRY:
        available = ", ".join(list_strategies())
        raise UnknownStrategyError(f"알 수 없는 전략: '{name}'. 사용 가능: {available}")
    return STRATEGY_REGISTRY[name]


def list_strategies() -> list[str]:
    """등록된 전략 이름 목록 반환."""
    return sorted(STRATEGY_REGISTRY.keys())


def _auto_discover():
    """이 디렉토리의 모든 모듈을 자동 임포트하여 register()가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in strategies_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        import_module(f"crypto_sim.strategies.{py_file.stem}")


# 모듈 로드 시 자동 탐색
_auto_discover()
