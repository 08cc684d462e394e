from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from papertrader.models import PortfolioSnapshot, Position, Trade


@dataclass(frozen=True)
class TradeExecuted:
    trade: Trade
    position: Position
    cash: float


@dataclass(frozen=True)
class PositionClosed:
    position: Position
    closing_trade: Trade
    realized_pl: float
    cash: float


@dataclass(frozen=True)
class SnapshotRecorded:
    snapshot: PortfolioSnapshot


@dataclass(frozen=True)
class PortfolioReset:
    ts: datetime
    cash: float
