from __future__ import annotations

from datetime import datetime, timezone

import pytest

from papertrader.engine import TradingEngine
from papertrader.models import Position
from papertrader.persistence import MemoryLedgerStore


def _position(side: str, qty: float = 10, avg: float = 100.0) -> Position:
    return Position(
        id="p1",
        symbol="AAPL",
        quantity=qty,
        average_price=avg,
        side=side,  # type: ignore[arg-type]
        opened_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )


def test_unrealized_pl_sign_convention() -> None:
    engine = TradingEngine(MemoryLedgerStore())
    assert engine.unrealized_pl(_position("long"), 110.0) == 100.0
    assert engine.unrealized_pl(_position("long"), 90.0) == -100.0
    assert engine.unrealized_pl(_position("short"), 90.0) == 100.0
    assert engine.unrealized_pl(_position("short"), 110.0) == -100.0


def test_unrealized_pl_percent() -> None:
    engine = TradingEngine(MemoryLedgerStore())
    assert engine.unrealized_pl_percent(_position("long"), 125.0) == pytest.approx(25.0)
    assert engine.unrealized_pl_percent(_position("short"), 125.0) == pytest.approx(-25.0)
    assert engine.unrealized_pl_percent(_position("long", avg=0.0), 125.0) == 0.0


def test_total_value_marks_to_market() -> None:
    engine = TradingEngine(MemoryLedgerStore())
    engine.execute_trade("AAPL", "long", 10, 100.0)
    engine.execute_trade("MSFT", "long", 5, 200.0)
    prices = {"AAPL": 120.0, "MSFT": 180.0}

    assert engine.positions_value(prices) == 10 * 120.0 + 5 * 180.0
    assert engine.total_portfolio_value(prices) == 23000.0 + 2100.0
    assert engine.total_unrealized_pl(prices) == pytest.approx(200.0 - 100.0)


def test_missing_or_bad_quote_falls_back_to_average_price() -> None:
    engine = TradingEngine(MemoryLedgerStore())
    engine.execute_trade("AAPL", "long", 10, 100.0)
    engine.execute_trade("MSFT", "long", 5, 200.0)

    only_aapl = engine.total_portfolio_value({"AAPL": 120.0})
    assert only_aapl == 23000.0 + 10 * 120.0 + 5 * 200.0
    assert engine.total_portfolio_value({"AAPL": 120.0, "MSFT": float("nan")}) == only_aapl
    assert engine.total_portfolio_value({"AAPL": 120.0, "MSFT": 0}) == only_aapl
    assert engine.total_portfolio_value({}) == 25000.0
    assert engine.total_portfolio_value(None) == 25000.0
    assert engine.total_unrealized_pl({}) == 0.0


def test_lowercase_quote_keys_are_matched() -> None:
    engine = TradingEngine(MemoryLedgerStore())
    engine.execute_trade("AAPL", "long", 10, 100.0)
    assert engine.positions_value({"aapl": 110.0}) == 1100.0


def test_short_positions_are_valued_at_quantity_times_price() -> None:
    engine = TradingEngine(MemoryLedgerStore())
    engine.execute_trade("TSLA", "short", 10, 200.0)
    assert engine.cash == 23000.0
    assert engine.positions_value({"TSLA": 180.0}) == 1800.0
    assert engine.total_unrealized_pl({"TSLA": 180.0}) == 200.0


def test_total_return() -> None:
    engine = TradingEngine(MemoryLedgerStore(), initial_cash=10000.0)
    engine.execute_trade("AAPL", "long", 10, 100.0)
    prices = {"AAPL": 150.0}
    assert engine.total_return(prices) == 500.0
    assert engine.total_return_percent(prices) == pytest.approx(5.0)


def test_day_change_against_previous_snapshot() -> None:
    engine = TradingEngine(MemoryLedgerStore(), initial_cash=10000.0)
    assert engine.day_change({}) == (0.0, 0.0)

    engine.execute_trade("AAPL", "long", 10, 100.0)
    engine.update_portfolio_snapshot({"AAPL": 100.0})
    change, pct = engine.day_change({"AAPL": 110.0})
    assert change == pytest.approx(100.0)
    assert pct == pytest.approx(1.0)
