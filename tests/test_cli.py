import argparse
import json

import pytest

import run_simulator
from run_simulator import main, parse_coins, parse_duration


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch, reset_logger):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.mark.parametrize("text, days", [("30d", 30), ("7", 7), (" 14D ", 14)])
def test_parse_duration(text, days):
    assert parse_duration(text) == days


@pytest.mark.parametrize("text", ["0d", "abc", "-3d"])
def test_parse_duration_rejects(text):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_duration(text)


def test_parse_coins():
    assert parse_coins("btc, eth,,sol ") == ["BTC", "ETH", "SOL"]


def test_list(capsys):
    assert main(["--list"]) == 0
    out = capsys.readouterr().out
    for name in ("conservative", "balanced", "aggressive"):
        assert name in out


def test_unknown_strategy_exits_with_error(capsys):
    assert main(["--signals", "--strategy", "yolo", "--source", "sample"]) == 1


def test_simulate_with_sample_data(workdir, capsys):
    code = main(["--simulate", "5d", "--strategy", "aggressive", "--capital", "100",
                 "--coins", "btc,eth", "--source", "sample"])

    assert code == 0
    out = capsys.readouterr().out
    assert run_simulator.DISCLAIMER in out
    assert "aggressive" in out

    saved = json.loads((workdir / "state" / "last-simulation.json").read_text(encoding="utf-8"))
    assert saved["coins"] == ["BTC", "ETH"]
    assert saved["initial_capital"] == 100.0
    assert not (workdir / "state" / "portfolio.json").exists()


def test_auto_trade_prints_only_json(workdir, capsys):
    code = main(["--auto-trade", "--coins", "BTC", "--capital", "100", "--source", "sample"])

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert set(data) == {"new_trades", "portfolio", "errors", "timestamp"}
    assert (workdir / "state" / "portfolio.json").exists()


def test_discover_prints_json(capsys):
    assert main(["--discover", "--coins", "BTC,ETH", "--source", "sample"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["scanned"] == 2


def test_portfolio_and_analyze(capsys):
    assert main(["--portfolio", "--source", "sample", "--capital", "50"]) == 0
    assert "가상 포트폴리오" in capsys.readouterr().out

    assert main(["--analyze", "--coins", "BTC", "--source", "sample"]) == 0
    out = capsys.readouterr().out
    assert "BTC @" in out
    assert "score:" in out
