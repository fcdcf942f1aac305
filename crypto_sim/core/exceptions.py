"""
시뮬레이터 예외 정의.

[ 분류 ]
    DataUnavailableError  - 시세 조회 실패 / 데이터 없음 (코인 단위로 건너뜀)
    InsufficientDataError - 백테스트 전체 최소 캔들 수 미달 (해당 실행 중단)
    UnknownStrategyError  - 등록되지 않은 전략 이름 (상태 변경 전에 즉시 실패)

[ 예외가 아닌 것 ]
    중복 매수, 포지션 없는 매도, 예비금 부족 등은 data/ledger.py에서
    로그만 남기고 아무 것도 하지 않는다 (정상적인 "조건 미충족" 상태).
"""


class TradingSimError(Exception):
    """시뮬레이터 예외의 기본 클래스."""


class DataUnavailableError(TradingSimError):
    """시세 제공자 조회 실패 또는 빈 데이터."""


class InsufficientDataError(DataUnavailableError):
    """백테스트에 필요한 최소 캔들 수 미달."""

    def __init__(self, min_candles: int, required: int):
        self.min_candles = min_candles
        self.required = required
        super().__init__(
            f"시뮬레이션 데이터 부족 (최소 {min_candles}개 캔들, 필요 {required}개)"
        )


class UnknownStrategyError(TradingSimError, ValueError):
    """등록되지 않은 전략 이름."""
