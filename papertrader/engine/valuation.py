from __future__ import annotations

from typing import Iterable, Mapping

from papertrader.models import Position


def mark_price(position: Position, prices: Mapping[str, float]) -> float:
    """Live price for the position, or its average price when no quote is known."""
    return prices.get(position.symbol, position.average_price)


def unrealized_pl(position: Position, current_price: float) -> float:
    # long: (last-avg)*qty ; short: (avg-last)*qty
    if position.side == "long":
        return (current_price - position.average_price) * position.quantity
    return (position.average_price - current_price) * position.quantity


def unrealized_pl_percent(position: Position, current_price: float) -> float:
    cost_basis = position.cost_basis
    if cost_basis <= 0:
        return 0.0
    return unrealized_pl(position, current_price) / cost_basis * 100


def positions_value(positions: Iterable[Position], prices: Mapping[str, float]) -> float:
    return sum((p.quantity * mark_price(p, prices) for p in positions), 0.0)


def total_unrealized_pl(positions: Iterable[Position], prices: Mapping[str, float]) -> float:
    return sum((unrealized_pl(p, mark_price(p, prices)) for p in positions), 0.0)
