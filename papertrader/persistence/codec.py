"""JSON wire format for the persisted ledger.

The blob is one JSON object with camelCase keys::

    {"cash": 23000.0,
     "positions": [{"id", "symbol", "quantity", "averagePrice", "side", "openedAt"}],
     "tradeHistory": [{"id", "symbol", "side", "quantity", "price", "executedAt",
                       "stopLoss", "takeProfit", "notes"}],
     "portfolioHistory": [{"id", "timestamp", "totalValue", "cash", "positionsValue"}]}

Timestamps are ISO-8601 instants. Decoding re-checks the ledger invariants so a
hand-edited or truncated blob is rejected as a whole instead of half-loaded.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from papertrader.models import EngineState, PortfolioSnapshot, Position, Trade

# Side labels written by earlier app builds.
_LEGACY_SIDES = {"buy": "long", "sell": "short"}


class StateDecodeError(ValueError):
    pass


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="ignore",
    )


def _clean_symbol(value: str) -> str:
    symbol = value.strip().upper()
    if not symbol:
        raise ValueError("symbol must not be blank")
    return symbol


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _SideMixin(_Record):
    side: Literal["long", "short"]

    @field_validator("side", mode="before")
    @classmethod
    def _side(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return _LEGACY_SIDES.get(v, v)
        return v


class _PositionRecord(_SideMixin):
    id: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    quantity: float = Field(gt=0)
    average_price: float = Field(gt=0)
    opened_at: datetime

    @field_validator("symbol")
    @classmethod
    def _upper(cls, v: str) -> str:
        return _clean_symbol(v)


class _TradeRecord(_SideMixin):
    id: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    quantity: float = Field(gt=0)
    price: float = Field(gt=0)
    executed_at: datetime
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    notes: str = ""

    @field_validator("symbol")
    @classmethod
    def _upper(cls, v: str) -> str:
        return _clean_symbol(v)


class _SnapshotRecord(_Record):
    id: str = Field(min_length=1)
    timestamp: datetime
    total_value: float
    cash: float = Field(ge=0)
    positions_value: float


class _StateRecord(_Record):
    cash: float = Field(ge=0)
    positions: List[_PositionRecord] = Field(default_factory=list)
    trade_history: List[_TradeRecord] = Field(default_factory=list)
    portfolio_history: List[_SnapshotRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_ledger(self) -> "_StateRecord":
        seen: set[tuple[str, str]] = set()
        for p in self.positions:
            key = (p.symbol, p.side)
            if key in seen:
                raise ValueError(f"duplicate position for {p.symbol}/{p.side}")
            seen.add(key)
        for label, records in (
            ("position", self.positions),
            ("trade", self.trade_history),
            ("snapshot", self.portfolio_history),
        ):
            ids = [r.id for r in records]
            if len(ids) != len(set(ids)):
                raise ValueError(f"duplicate {label} id")
        return self


def encode_state(state: EngineState) -> bytes:
    record = _StateRecord(
        cash=state.cash,
        positions=[
            _PositionRecord(
                id=p.id,
                symbol=p.symbol,
                quantity=p.quantity,
                average_price=p.average_price,
                side=p.side,
                opened_at=p.opened_at,
            )
            for p in state.positions
        ],
        trade_history=[
            _TradeRecord(
                id=t.id,
                symbol=t.symbol,
                side=t.side,
                quantity=t.quantity,
                price=t.price,
                executed_at=t.executed_at,
                stop_loss=t.stop_loss,
                take_profit=t.take_profit,
                notes=t.notes,
            )
            for t in state.trade_history
        ],
        portfolio_history=[
            _SnapshotRecord(
                id=s.id,
                timestamp=s.timestamp,
                total_value=s.total_value,
                cash=s.cash,
                positions_value=s.positions_value,
            )
            for s in state.portfolio_history
        ],
    )
    return record.model_dump_json(by_alias=True).encode("utf-8")


def decode_state(data: bytes) -> EngineState:
    try:
        record = _StateRecord.model_validate_json(data)
    except (ValidationError, ValueError) as exc:
        raise StateDecodeError(str(exc)) from exc

    return EngineState(
        cash=record.cash,
        positions=tuple(
            Position(
                id=p.id,
                symbol=p.symbol,
                quantity=p.quantity,
                average_price=p.average_price,
                side=p.side,
                opened_at=_as_utc(p.opened_at),
            )
            for p in record.positions
        ),
        trade_history=tuple(
            Trade(
                id=t.id,
                symbol=t.symbol,
                side=t.side,
                quantity=t.quantity,
                price=t.price,
                executed_at=_as_utc(t.executed_at),
                stop_loss=t.stop_loss,
                take_profit=t.take_profit,
                notes=t.notes,
            )
            for t in record.trade_history
        ),
        portfolio_history=tuple(
            PortfolioSnapshot(
                id=s.id,
                timestamp=_as_utc(s.timestamp),
                total_value=s.total_value,
                cash=s.cash,
                positions_value=s.positions_value,
            )
            for s in record.portfolio_history
        ),
    )
