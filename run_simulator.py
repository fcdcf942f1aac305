"""
암호화폐 매매 시뮬레이터 실행 스크립트 (시스템 진입점).

가상 자금만 사용하는 교육용 시뮬레이터. 투자 조언이 아니다.

[ 사용법 ]
    # 백테스트 (30일, 보수적 전략, 자본 100)
    python run_simulator.py --simulate 30d --strategy conservative --capital 100 --coins BTC,ETH,SOL

    # 샘플 데이터로 오프라인 실행
    python run_simulator.py --simulate 30d --source sample

    # 현재 시장 분석 (지표별 근거 출력)
    python run_simulator.py --analyze --coins BTC,ETH --strategy balanced

    # 현재 시그널만 출력
    python run_simulator.py --signals --coins BTC,SOL

    # auto-trade 한 사이클 (stdout에는 JSON 결과만, 로그는 stderr)
    python run_simulator.py --auto-trade --coins BTC,ETH,SOL --strategy balanced

    # 시가총액 상위 코인 스캔
    python run_simulator.py --discover --top 50

    # 저장된 가상 포트폴리오 확인
    python run_simulator.py --portfolio

    # 등록된 전략 목록 확인
    python run_simulator.py --list
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from crypto_sim.backtest.engine import BacktestEngine
from crypto_sim.core.data_provider import CoinListing
from crypto_sim.core.exceptions import TradingSimError
from crypto_sim.data.coingecko_provider import CoinGeckoDataProvider
from crypto_sim.data.market_data import MarketDataManager
from crypto_sim.data.mock_provider import MockDataProvider
from crypto_sim.data.portfolio import Portfolio
from crypto_sim.data.portfolio_store import PortfolioStore
from crypto_sim.live.auto_trader import AutoTrader
from crypto_sim.live.discover import run_discover
from crypto_sim.strategies import STRATEGY_REGISTRY, get_strategy, list_strategies
from crypto_sim.strategies.scorer import score_coin
from crypto_sim.utils.clock import SystemClock
from crypto_sim.utils.config import Config
from crypto_sim.utils.logger import setup_logger

logger = logging.getLogger("crypto_sim")

DISCLAIMER = "주의: 가상 자금을 사용하는 교육용 시뮬레이션입니다. 투자 조언이 아닙니다."

ANALYZE_LOOKBACK_DAYS = 30
SIGNALS_LOOKBACK_DAYS = 14


def parse_duration(value: str) -> int:
    """'30d' 또는 '30' 형식의 기간을 일 수로 변환."""
    text = value.strip().lower().removesuffix("d")
    try:
        days = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"잘못된 기간: '{value}' (예: 30d)") from None
    if days < 1:
        raise argparse.ArgumentTypeError(f"기간은 1일 이상이어야 함: '{value}'")
    return days


def parse_coins(value: str) -> list[str]:
    """'btc, eth' → ['BTC', 'ETH']"""
    return [c.strip().upper() for c in value.split(",") if c.strip()]


def build_market_data(config: Config, source: str, coins: list[str], days: int) -> MarketDataManager:
    """데이터 소스에 맞는 MarketDataManager 생성. days는 샘플 데이터 생성 기간."""
    if source == "sample":
        provider = MockDataProvider.from_samples(coins, days, end_ms=SystemClock().now_ms())
        provider.set_listings([CoinListing(symbol=c, name=c, market_cap=0.0) for c in coins])
        return MarketDataManager(provider, request_delay=0)

    if source == "coingecko":
        p = config.provider
        provider = CoinGeckoDataProvider(
            base_url=p.base_url,
            api_key=p.api_key,
            vs_currency=p.vs_currency,
            timeout=p.timeout,
            max_retries=p.max_retries,
            retry_delay=p.retry_delay,
        )
        return MarketDataManager(provider, request_delay=p.request_delay)

    raise ValueError(f"알 수 없는 데이터 소스: {source}")


def format_portfolio(portfolio: Portfolio) -> str:
    """포트폴리오 출력 문자열."""
    lines = [
        "=" * 50,
        "가상 포트폴리오",
        "=" * 50,
        f"가용 현금:       {portfolio.capital:>12,.2f}",
        f"포지션 평가액:   {portfolio.positions_value:>12,.2f}",
        f"총 자산:         {portfolio.total_value:>12,.2f}",
        f"초기 자본:       {portfolio.initial_capital:>12,.2f}",
        f"손익:            {portfolio.total_pnl:>12,.2f} ({portfolio.total_pnl_percent:+.1f}%)",
        f"총 거래 횟수:    {len(portfolio.trades):>12d}",
    ]

    if portfolio.positions:
        lines.append("-" * 50)
        lines.append("보유 포지션:")
        for pos in portfolio.positions.values():
            line = f"  {pos.coin}: {pos.quantity:.6f} @ {pos.entry_price:,.2f}"
            if pos.current_price:
                pnl_pct = (pos.current_price - pos.entry_price) / pos.entry_price * 100
                line += f" → {pos.current_price:,.2f} ({pnl_pct:+.1f}%)"
            lines.append(line)

    if portfolio.trades:
        lines.append("-" * 50)
        lines.append(f"최근 거래 ({min(5, len(portfolio.trades))}건):")
        for t in portfolio.trades[-5:]:
            day = datetime.fromtimestamp(t.timestamp / 1000, tz=timezone.utc).date()
            lines.append(
                f"  [{day}] {t.side.value} {t.quantity:.6f} {t.coin} @ {t.price:,.2f} ({t.total:,.2f})"
            )

    lines.append("=" * 50)
    return "\n".join(lines)


# ─── 명령 ────────────────────────────────────────────────────────────────────

def cmd_list() -> None:
    print("등록된 전략:")
    for name in list_strategies():
        s = STRATEGY_REGISTRY[name]
        indicators = ", ".join(i.value for i in s.indicators)
        print(f"  - {name:<13} {s.description}")
        print(f"      지표: {indicators} | 임계값 ±{s.buy_threshold} | "
              f"포지션 {s.max_position_pct}% | 손절 {s.stop_loss_pct}% | 익절 {s.take_profit_pct}%")


def cmd_simulate(config: Config, market_data: MarketDataManager, args) -> None:
    engine = BacktestEngine(market_data, config)
    report = engine.run_backtest(args.strategy, args.capital, args.coins, args.simulate)
    print(DISCLAIMER)
    print(report.summary())
    print(format_portfolio(report.portfolio))

    store = PortfolioStore(config.live.state_dir)
    store.save_report(report.to_dict())


def cmd_analyze(market_data: MarketDataManager, args) -> None:
    strategy = get_strategy(args.strategy)
    print(f"\n{', '.join(args.coins)} 분석 ({strategy.name} 전략)\n")

    for coin in args.coins:
        try:
            candles = market_data.get_historical_series(coin, ANALYZE_LOOKBACK_DAYS)
            signal = score_coin(coin, candles, strategy)
            print(f"{coin} @ {signal.price:,.2f} → {signal.signal.value} (score: {signal.score})")
            for ind in signal.indicators:
                print(f"    {ind.name.value:<15} {ind.signal.value:<4} ({ind.strength:>3})  {ind.reason}")
            print()
        except Exception as e:
            logger.error(f"{coin} 분석 오류: {e}")
    print(DISCLAIMER)


def cmd_signals(market_data: MarketDataManager, args) -> None:
    strategy = get_strategy(args.strategy)
    print(f"\n현재 시그널 ({strategy.name}):\n")

    for coin in args.coins:
        try:
            candles = market_data.get_historical_series(coin, SIGNALS_LOOKBACK_DAYS)
            signal = score_coin(coin, candles, strategy)
            print(f"  {signal.signal.value:<4}  {coin:<5} {signal.price:>12,.2f}  score: {signal.score:>4}")
        except Exception as e:
            logger.error(f"{coin}: {e}")
    print(f"\n{DISCLAIMER}")


def cmd_auto_trade(config: Config, market_data: MarketDataManager, args) -> None:
    trader = AutoTrader(market_data, PortfolioStore(config.live.state_dir), config)
    report = trader.run_cycle(args.coins, args.strategy, args.capital)
    print(report.to_json())


def cmd_discover(config: Config, market_data: MarketDataManager, args) -> None:
    report = run_discover(market_data, args.strategy, top_n=args.top or config.live.discover_top_n)
    print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))


def cmd_portfolio(config: Config, market_data: MarketDataManager, args) -> None:
    portfolio = PortfolioStore(config.live.state_dir).load(args.capital)
    if portfolio.positions:
        try:
            prices = market_data.get_latest_prices(list(portfolio.positions))
            for coin, pos in portfolio.positions.items():
                pos.mark(prices.get(coin) or pos.entry_price)
        except TradingSimError as e:
            logger.warning(f"현재가 갱신 실패: {e}")
    print(format_portfolio(portfolio))
    print(DISCLAIMER)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="암호화폐 매매 시뮬레이터 (교육용, 가상 자금)")
    commands = parser.add_mutually_exclusive_group()
    commands.add_argument("--simulate", type=parse_duration, metavar="DAYS", help="백테스트 기간 (예: 30d)")
    commands.add_argument("--auto-trade", action="store_true", help="auto-trade 한 사이클 실행 (JSON 출력)")
    commands.add_argument("--analyze", action="store_true", help="현재 시장 분석")
    commands.add_argument("--signals", action="store_true", help="현재 BUY/SELL/HOLD 시그널")
    commands.add_argument("--discover", action="store_true", help="시가총액 상위 코인 스캔")
    commands.add_argument("--portfolio", action="store_true", help="가상 포트폴리오 출력")
    commands.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--strategy", type=str, default=None, help="전략 이름 (config.yaml 대신 지정)")
    parser.add_argument("--capital", type=float, default=None, help="초기 가상 자본 (EUR)")
    parser.add_argument("--coins", type=parse_coins, default=None, help="코인 목록 (예: BTC,ETH,SOL)")
    parser.add_argument("--top", type=int, default=None, help="--discover 스캔 코인 수")
    parser.add_argument("--source", type=str, default="coingecko", choices=["coingecko", "sample"], help="데이터 소스")
    parser.add_argument("--verbose", action="store_true", help="DEBUG 로그 출력")
    args = parser.parse_args(argv)

    if args.list:
        cmd_list()
        return 0

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        config = Config()

    # 로거: auto-trade/discover는 stdout을 JSON 전용으로 남겨둔다
    json_output = args.auto_trade or args.discover
    setup_logger(
        level="DEBUG" if args.verbose else config.log_level,
        log_dir=config.log_dir,
        stream=sys.stderr if json_output else sys.stdout,
    )
    if not json_output:
        print(f"설정 파일: {config_path}" if config_path.exists() else f"설정 파일 없음: {config_path}, 기본값 사용")

    args.strategy = args.strategy or config.simulation.strategy
    args.capital = config.simulation.initial_capital if args.capital is None else args.capital
    args.coins = args.coins or config.simulation.coins

    try:
        days = max((args.simulate or config.simulation.duration_days) + config.simulation.warmup_candles,
                   config.live.lookback_days)
        market_data = build_market_data(config, args.source, args.coins, days)
        if args.simulate:
            cmd_simulate(config, market_data, args)
        elif args.auto_trade:
            cmd_auto_trade(config, market_data, args)
        elif args.analyze:
            cmd_analyze(market_data, args)
        elif args.signals:
            cmd_signals(market_data, args)
        elif args.discover:
            cmd_discover(config, market_data, args)
        elif args.portfolio:
            cmd_portfolio(config, market_data, args)
        else:
            parser.print_help()
    except TradingSimError as e:
        logger.error(f"실행 실패: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
