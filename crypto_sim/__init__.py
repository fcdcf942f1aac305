"""
=============================================================================
암호화폐 매매 시뮬레이터 (crypto_sim)
=============================================================================

가상 자금으로만 동작하는 교육용 시뮬레이터. 실제 주문/거래소 연동은 없다.

[ 시스템 전체 구조 ]

    run_simulator.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         ├── utils/clock.py         ← 주입 가능한 시계 (테스트는 FixedClock)
         │
         ├── indicators/technical.py ← RSI, MACD, 볼린저밴드, 거래량, 이동평균
         ├── strategies/            ← 전략 프리셋 + 점수 계산 (scorer.py)
         │
         ├── backtest/engine.py     ← 백테스트 실행 엔진
         │     ├── data/ledger.py       ← 포지션/거래기록 상태 전이
         │     └── backtest/metrics.py  ← MDD, 승률, SimulationReport
         │
         └── live/
               ├── auto_trader.py   ← auto-trade 한 사이클 (포트폴리오 로드 → 매매 → 저장)
               └── discover.py      ← 시가총액 상위 코인 스캔


[ 핵심 추상 클래스 (core/) ]

    core/data_provider.py    → data/coingecko_provider.py (CoinGecko HTTP)
                             → data/mock_provider.py      (샘플/테스트용)

    core/trading_strategy.py → StrategyConfig, TradeSignal, IndicatorOutput


[ 데이터 흐름 ]

    1. DataProvider가 OHLCV 시계열 제공 (MarketDataManager가 호출 간격 + 캐싱)
    2. scorer가 전략에 포함된 지표를 계산하고 합의 점수로 BUY/SELL/HOLD 결정
    3. Ledger가 시그널을 포트폴리오에 반영 (손절/익절 먼저, 예비금 정책 적용)
    4. 백테스트는 metrics.py로 성과 집계, auto-trade는 PortfolioStore로 상태 저장
"""
