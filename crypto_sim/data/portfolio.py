"""
포트폴리오 상태 모듈.

[ 역할 ]
    가상 자금(capital), 보유 포지션(Position), 거래 기록(Trade)을 담는 상태 타입.
    상태 전이(매수/매도/손절/익절)는 data/ledger.py::Ledger만 수행한다.

[ 주요 클래스 ]
    Position  - 코인별 진입가/수량/현재가 (코인당 최대 1개)
    Trade     - 개별 거래 내역 (추가만 가능, 수정 불가)
    Portfolio - 전체 상태 (현금 + 포지션들 + 거래내역 + 누적 손익)

[ 불변 조건 ]
    capital + Σ(quantity × (current_price 또는 entry_price)) == initial_capital + total_pnl

[ 직렬화 ]
    to_dict()/from_dict()는 state/portfolio.json 형식 (camelCase 필드명) 사용.
    data/portfolio_store.py가 로드/저장 시 호출.
"""

from dataclasses import dataclass, field
from typing import Any

from crypto_sim.core.trading_strategy import SignalType


@dataclass
class Position:
    """개별 코인 포지션. Ledger가 생성/갱신/제거한다."""
    coin: str
    entry_price: float
    quantity: float
    entry_time: int                       # epoch ms
    current_price: float | None = None    # 최근 시세 (모르면 None)
    pnl: float | None = None              # 평가 손익
    pnl_percent: float | None = None      # 평가 수익률 (%)

    @property
    def mark_price(self) -> float:
        """평가 기준가. 현재가를 모르면 진입가."""
        return self.current_price if self.current_price else self.entry_price

    @property
    def market_value(self) -> float:
        return self.quantity * self.mark_price

    def mark(self, price: float) -> None:
        """현재가 갱신 + 평가 손익 재계산."""
        self.current_price = price
        self.pnl = (price - self.entry_price) * self.quantity
        self.pnl_percent = (price - self.entry_price) / self.entry_price * 100 if self.entry_price else 0.0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "coin": self.coin,
            "entryPrice": self.entry_price,
            "quantity": self.quantity,
            "entryTime": self.entry_time,
        }
        if self.current_price is not None:
            data["currentPrice"] = self.current_price
        if self.pnl is not None:
            data["pnl"] = self.pnl
        if self.pnl_percent is not None:
            data["pnlPercent"] = self.pnl_percent
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Position":
        return cls(
            coin=data["coin"],
            entry_price=float(data["entryPrice"]),
            quantity=float(data["quantity"]),
            entry_time=int(data.get("entryTime", 0)),
            current_price=data.get("currentPrice"),
            pnl=data.get("pnl"),
            pnl_percent=data.get("pnlPercent"),
        )


@dataclass(frozen=True)
class Trade:
    """개별 거래 기록. 기록 후 변경 불가 (감사 추적용)."""
    id: str
    coin: str
    side: SignalType          # BUY or SELL
    price: float
    quantity: float
    total: float              # 체결 금액 (price × quantity)
    timestamp: int            # epoch ms
    reason: str = ""          # 시그널 사유 또는 손절/익절 사유
    indicators: tuple[str, ...] = ()
    pnl: float | None = None  # 실현 손익 (매도 시에만)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "coin": self.coin,
            "side": self.side.value,
            "price": self.price,
            "quantity": self.quantity,
            "total": self.total,
            "timestamp": self.timestamp,
            "reason": self.reason,
            "indicators": list(self.indicators),
        }
        if self.pnl is not None:
            data["pnl"] = self.pnl
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trade":
        return cls(
            id=str(data["id"]),
            coin=data["coin"],
            side=SignalType(data["side"]),
            price=float(data["price"]),
            quantity=float(data["quantity"]),
            total=float(data["total"]),
            timestamp=int(data.get("timestamp", 0)),
            reason=data.get("reason", ""),
            indicators=tuple(data.get("indicators", [])),
            pnl=data.get("pnl"),
        )


@dataclass
class Portfolio:
    """포트폴리오 상태.

    백테스트는 실행마다 새로 생성하고, auto-trade는 저장된 상태를 로드한다.
    """
    capital: float                       # 가용 현금
    initial_capital: float
    positions: dict[str, Position] = field(default_factory=dict)  # coin → Position
    trades: list[Trade] = field(default_factory=list)             # 전체 거래 내역
    total_pnl: float = 0.0
    total_pnl_percent: float = 0.0
    last_updated: int = 0                # epoch ms

    @classmethod
    def fresh(cls, initial_capital: float, now_ms: int = 0) -> "Portfolio":
        return cls(capital=initial_capital, initial_capital=initial_capital, last_updated=now_ms)

    @property
    def positions_value(self) -> float:
        """보유 포지션 평가액 (현재가, 없으면 진입가 기준)."""
        return sum(p.market_value for p in self.positions.values())

    @property
    def total_value(self) -> float:
        """총 자산 (현금 + 포지션 평가액)."""
        return self.capital + self.positions_value

    def get_summary(self) -> dict[str, Any]:
        """포트폴리오 요약."""
        return {
            "capital": self.capital,
            "positions": len(self.positions),
            "pnl": self.total_pnl,
            "pnl_pct": self.total_pnl_percent,
            "total_value": self.total_value,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "capital": self.capital,
            "initialCapital": self.initial_capital,
            "positions": [p.to_dict() for p in self.positions.values()],
            "trades": [t.to_dict() for t in self.trades],
            "totalPnl": self.total_pnl,
            "totalPnlPercent": self.total_pnl_percent,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Portfolio":
        positions: dict[str, Position] = {}
        for item in data.get("positions", []):
            position = Position.from_dict(item)
            if position.coin in positions:
                raise ValueError(f"중복 포지션: {position.coin}")
            positions[position.coin] = position
        return cls(
            capital=float(data["capital"]),
            initial_capital=float(data["initialCapital"]),
            positions=positions,
            trades=[Trade.from_dict(t) for t in data.get("trades", [])],
            total_pnl=float(data.get("totalPnl", 0.0)),
            total_pnl_percent=float(data.get("totalPnlPercent", 0.0)),
            last_updated=int(data.get("lastUpdated", 0)),
        )
