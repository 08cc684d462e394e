from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Tuple

Side = Literal["long", "short"]

SIDES: Tuple[Side, ...] = ("long", "short")


def opposite_side(side: Side) -> Side:
    return "short" if side == "long" else "long"


@dataclass(frozen=True)
class Position:
    id: str
    symbol: str
    quantity: float
    average_price: float
    side: Side
    opened_at: datetime

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_price


@dataclass(frozen=True)
class Trade:
    id: str
    symbol: str
    side: Side
    quantity: float
    price: float
    executed_at: datetime
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    notes: str = ""

    @property
    def total_value(self) -> float:
        return self.quantity * self.price


@dataclass(frozen=True)
class PortfolioSnapshot:
    id: str
    timestamp: datetime
    total_value: float
    cash: float
    positions_value: float


@dataclass(frozen=True)
class EngineState:
    """Everything the engine persists. Trade history is most-recent-first."""

    cash: float
    positions: Tuple[Position, ...] = field(default_factory=tuple)
    trade_history: Tuple[Trade, ...] = field(default_factory=tuple)
    portfolio_history: Tuple[PortfolioSnapshot, ...] = field(default_factory=tuple)
