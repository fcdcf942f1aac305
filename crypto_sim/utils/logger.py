"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 시그널 판단, 매매 실행 내역, API 에러 등을 기록.
    logger.info(..., extra={"data": {...}})로 넘긴 구조화 데이터는 메시지 뒤에 JSON으로 붙는다.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/crypto_sim_20240601.log)

[ 하위 로거 ]
    crypto_sim.signal, crypto_sim.trade, crypto_sim.api,
    crypto_sim.store, crypto_sim.backtest, crypto_sim.live

[ 호출하는 곳 ]
    - run_simulator.py에서 setup_logger() 호출
    - 각 모듈은 logging.getLogger("crypto_sim.xxx") 사용
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class DataFormatter(logging.Formatter):
    """record.data가 있으면 메시지 뒤에 JSON으로 덧붙이는 포매터."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        data = getattr(record, "data", None)
        if data:
            message = f"{message} {json.dumps(data, ensure_ascii=False, default=str)}"
        return message


def setup_logger(
    name: str = "crypto_sim",
    level: str = "INFO",
    log_dir: str | Path | None = "logs",
    console: bool = True,
    stream: TextIO | None = None,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록.

    Args:
        name: 로거 이름 (하위 로거는 이 로거로 전파됨)
        level: 로그 레벨
        log_dir: 로그 디렉토리. None이면 파일 핸들러 생략
        console: 콘솔 출력 여부
        stream: 콘솔 스트림 (기본 stdout, auto-trade는 stderr)
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if logger.handlers:
        return logger

    formatter = DataFormatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    # 파일 핸들러
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        file_handler = logging.FileHandler(
            log_path / f"{name}_{today}.log",
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # 콘솔 핸들러
    if console:
        console_handler = logging.StreamHandler(stream or sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
