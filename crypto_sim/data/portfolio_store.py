"""
포트폴리오 저장소 모듈.

[ 역할 ]
    auto-trade 사이클 사이에 포트폴리오 상태를 JSON 파일로 보존.
    사이클 시작 시 load(), 종료 시 save()만 호출한다 (사이클 중간 저장 없음).

[ 파일 위치 ]
    {state_dir}/portfolio.json
    {state_dir}/last-simulation.json   (백테스트 결과, save_report())
"""

import json
import logging
from pathlib import Path
from typing import Any

from crypto_sim.data.portfolio import Portfolio
from crypto_sim.utils.clock import Clock, SystemClock

logger = logging.getLogger("crypto_sim.store")


class PortfolioStore:
    """JSON 파일 기반 포트폴리오 저장소."""

    def __init__(self, state_dir: str | Path = "state", clock: Clock | None = None):
        self.state_dir = Path(state_dir)
        self.clock = clock or SystemClock()

    @property
    def portfolio_path(self) -> Path:
        return self.state_dir / "portfolio.json"

    def load(self, initial_capital: float) -> Portfolio:
        """저장된 포트폴리오 로드. 파일이 없으면 initial_capital로 새로 생성."""
        if not self.portfolio_path.exists():
            return Portfolio.fresh(initial_capital, now_ms=self.clock.now_ms())

        with open(self.portfolio_path, "r", encoding="utf-8") as f:
            portfolio = Portfolio.from_dict(json.load(f))
        logger.info(
            f"포트폴리오 로드: 현금 {portfolio.capital:.2f}, 포지션 {len(portfolio.positions)}개",
        )
        return portfolio

    def save(self, portfolio: Portfolio) -> Path:
        """포트폴리오 저장. 임시 파일에 쓴 뒤 교체한다."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.portfolio_path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(portfolio.to_dict(), f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.portfolio_path)
        logger.info("포트폴리오 저장 완료")
        return self.portfolio_path

    def save_report(self, report: dict[str, Any], filename: str = "last-simulation.json") -> Path:
        """백테스트 결과 저장."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        path = self.state_dir / filename
        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, ensure_ascii=False, indent=2)
        logger.info(f"결과 저장: {path}")
        return path
