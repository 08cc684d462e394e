from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Optional, Tuple, Union

from papertrader.bus import EventBus
from papertrader.engine import valuation
from papertrader.errors import InsufficientFunds, InvalidOrder, InvalidQuantity, PositionNotFound
from papertrader.events import PortfolioReset, PositionClosed, SnapshotRecorded, TradeExecuted
from papertrader.models import SIDES, EngineState, PortfolioSnapshot, Position, Side, Trade, opposite_side
from papertrader.persistence.codec import StateDecodeError, decode_state, encode_state
from papertrader.persistence.store import LedgerStore, LedgerStoreError
from papertrader.prices import is_valid_price, normalize_prices, normalize_symbol

DEFAULT_INITIAL_CASH = 25000.0
DEFAULT_SNAPSHOT_LIMIT = 365
DEFAULT_STATE_KEY = "TradingEngineState"

Prices = Optional[Mapping[str, float]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class TradingEngine:
    """Simulated brokerage account: cash, open positions, trades and value history.

    The engine is the only writer of its state. Callers must serialize mutating
    calls; there is no internal locking. Every mutation is validated before
    anything changes, applied in memory, then mirrored to the store as one blob.

    Prices are always supplied by the caller as a ``{symbol: last}`` mapping.
    A position whose symbol has no usable quote is valued at its average price.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        initial_cash: float = DEFAULT_INITIAL_CASH,
        snapshot_limit: int = DEFAULT_SNAPSHOT_LIMIT,
        state_key: str = DEFAULT_STATE_KEY,
        bus: Optional[EventBus] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if not is_valid_price(initial_cash):
            raise ValueError(f"initial_cash must be positive, got {initial_cash!r}")
        if snapshot_limit < 1:
            raise ValueError(f"snapshot_limit must be >= 1, got {snapshot_limit!r}")

        self._log = logging.getLogger("engine")
        self._store = store
        self._state_key = state_key
        self._bus = bus
        self._clock = clock or _utcnow
        self._initial_cash = float(initial_cash)
        self.snapshot_limit = int(snapshot_limit)

        self._cash = self._initial_cash
        self._positions: List[Position] = []
        self._trades: List[Trade] = []
        self._history: List[PortfolioSnapshot] = []

        self.load()
        if not self._history:
            self._append_snapshot({})

    # ------------------------------------------------------------------ state

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def initial_cash(self) -> float:
        return self._initial_cash

    @property
    def positions(self) -> Tuple[Position, ...]:
        return tuple(self._positions)

    @property
    def trade_history(self) -> Tuple[Trade, ...]:
        """Most recent trade first."""
        return tuple(self._trades)

    @property
    def portfolio_history(self) -> Tuple[PortfolioSnapshot, ...]:
        """Oldest snapshot first."""
        return tuple(self._history)

    def state(self) -> EngineState:
        return EngineState(
            cash=self._cash,
            positions=tuple(self._positions),
            trade_history=tuple(self._trades),
            portfolio_history=tuple(self._history),
        )

    def find_position(self, symbol: str, side: Side) -> Optional[Position]:
        sym = normalize_symbol(symbol)
        for p in self._positions:
            if p.symbol == sym and p.side == side:
                return p
        return None

    def get_position(self, position_id: str) -> Optional[Position]:
        for p in self._positions:
            if p.id == position_id:
                return p
        return None

    def can_afford(self, quantity: float, price: float) -> bool:
        return quantity * price <= self._cash

    # -------------------------------------------------------------- mutations

    def execute_trade(
        self,
        symbol: str,
        side: Side,
        quantity: float,
        price: float,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
        notes: str = "",
    ) -> Trade:
        """Fill immediately at ``price`` and book the cost against cash.

        Buying more of an open (symbol, side) averages into the existing
        position, keeping its id and opening time.
        """
        sym = normalize_symbol(symbol)
        if not sym:
            raise InvalidOrder("Symbol is required")
        if side not in SIDES:
            raise InvalidOrder(f"Unknown side: {side!r}")
        if not is_valid_price(quantity):
            raise InvalidQuantity(f"Quantity must be positive, got {quantity!r}")
        if not is_valid_price(price):
            raise InvalidQuantity(f"Price must be positive, got {price!r}")
        for label, level in (("stop loss", stop_loss), ("take profit", take_profit)):
            if level is not None and not is_valid_price(level):
                raise InvalidOrder(f"Invalid {label}: {level!r}")

        quantity = float(quantity)
        price = float(price)
        total_cost = quantity * price
        if total_cost > self._cash:
            self._log.info(
                "trade_rejected_insufficient_funds",
                extra={"symbol": sym, "side": side, "required": total_cost, "cash": self._cash},
            )
            raise InsufficientFunds(total_cost, self._cash)

        now = self._clock()
        trade = Trade(
            id=_new_id(),
            symbol=sym,
            side=side,
            quantity=quantity,
            price=price,
            executed_at=now,
            stop_loss=None if stop_loss is None else float(stop_loss),
            take_profit=None if take_profit is None else float(take_profit),
            notes=notes or "",
        )

        positions = list(self._positions)
        existing = self.find_position(sym, side)
        if existing is not None:
            new_qty = existing.quantity + quantity
            new_avg = (existing.average_price * existing.quantity + price * quantity) / new_qty
            position = replace(existing, quantity=new_qty, average_price=new_avg)
            positions[positions.index(existing)] = position
        else:
            position = Position(
                id=_new_id(),
                symbol=sym,
                quantity=quantity,
                average_price=price,
                side=side,
                opened_at=now,
            )
            positions.append(position)

        self._cash -= total_cost
        self._trades.insert(0, trade)
        self._positions = positions

        self._log.info(
            "trade_executed",
            extra={
                "trade_id": trade.id,
                "symbol": sym,
                "side": side,
                "qty": quantity,
                "price": price,
                "pos_id": position.id,
                "pos_qty": position.quantity,
                "pos_avg": position.average_price,
                "cash": self._cash,
            },
        )
        self.save()
        self._publish(TradeExecuted(trade=trade, position=position, cash=self._cash))
        return trade

    def close_position(self, position: Union[Position, str], current_price: float) -> Trade:
        """Close the full position at ``current_price`` and credit the proceeds.

        The closing trade is booked on the opposite side. Raises
        ``PositionNotFound`` when the position is no longer held.
        """
        position_id = position.id if isinstance(position, Position) else str(position)
        held = self.get_position(position_id)
        if held is None:
            raise PositionNotFound(position_id)
        if not is_valid_price(current_price):
            raise InvalidQuantity(f"Close price must be positive, got {current_price!r}")

        current_price = float(current_price)
        proceeds = held.quantity * current_price
        realized = valuation.unrealized_pl(held, current_price)
        closing = Trade(
            id=_new_id(),
            symbol=held.symbol,
            side=opposite_side(held.side),
            quantity=held.quantity,
            price=current_price,
            executed_at=self._clock(),
            notes="Position closed",
        )

        self._cash += proceeds
        self._trades.insert(0, closing)
        self._positions = [p for p in self._positions if p.id != held.id]

        self._log.info(
            "position_closed",
            extra={
                "pos_id": held.id,
                "symbol": held.symbol,
                "side": held.side,
                "qty": held.quantity,
                "avg_price": held.average_price,
                "price": current_price,
                "realized_pl": realized,
                "cash": self._cash,
            },
        )
        self.save()
        self._publish(PositionClosed(position=held, closing_trade=closing, realized_pl=realized, cash=self._cash))
        return closing

    def update_portfolio_snapshot(self, prices: Prices = None) -> PortfolioSnapshot:
        """Record the current value. No throttling: every call appends."""
        snapshot = self._append_snapshot(normalize_prices(prices))
        self.save()
        self._publish(SnapshotRecorded(snapshot=snapshot))
        return snapshot

    def reset_portfolio(self) -> None:
        """Back to starting cash with empty books and a single fresh snapshot."""
        self._set_default_state()
        self._log.warning("portfolio_reset", extra={"cash": self._cash})
        self.save()
        self._publish(PortfolioReset(ts=self._history[-1].timestamp, cash=self._cash))

    def _append_snapshot(self, prices: Mapping[str, float]) -> PortfolioSnapshot:
        pos_value = valuation.positions_value(self._positions, prices)
        snapshot = PortfolioSnapshot(
            id=_new_id(),
            timestamp=self._clock(),
            total_value=self._cash + pos_value,
            cash=self._cash,
            positions_value=pos_value,
        )
        self._history.append(snapshot)
        if len(self._history) > self.snapshot_limit:
            self._history = self._history[-self.snapshot_limit :]
        return snapshot

    # -------------------------------------------------------------- valuation

    def positions_value(self, prices: Prices = None) -> float:
        return valuation.positions_value(self._positions, normalize_prices(prices))

    def total_portfolio_value(self, prices: Prices = None) -> float:
        return self._cash + self.positions_value(prices)

    def unrealized_pl(self, position: Position, current_price: float) -> float:
        return valuation.unrealized_pl(position, current_price)

    def unrealized_pl_percent(self, position: Position, current_price: float) -> float:
        return valuation.unrealized_pl_percent(position, current_price)

    def total_unrealized_pl(self, prices: Prices = None) -> float:
        return valuation.total_unrealized_pl(self._positions, normalize_prices(prices))

    def total_return(self, prices: Prices = None) -> float:
        return self.total_portfolio_value(prices) - self._initial_cash

    def total_return_percent(self, prices: Prices = None) -> float:
        return self.total_return(prices) / self._initial_cash * 100

    def day_change(self, prices: Prices = None) -> Tuple[float, float]:
        """Change of the current value against the snapshot before the latest one."""
        if len(self._history) < 2:
            return 0.0, 0.0
        previous = self._history[-2].total_value
        change = self.total_portfolio_value(prices) - previous
        if previous == 0:
            return change, 0.0
        return change, change / previous * 100

    # ------------------------------------------------------------ persistence

    def save(self) -> bool:
        """Write the whole ledger under the state key. Failures are logged, not raised."""
        try:
            data = encode_state(self.state())
            self._store.put(self._state_key, data)
        except (LedgerStoreError, OSError, TypeError, ValueError) as exc:
            self._log.error("state_save_failed", extra={"key": self._state_key, "error": str(exc)})
            return False
        return True

    def load(self) -> bool:
        """Restore the ledger from the store.

        A missing or unreadable blob leaves the engine on starting cash with
        empty books; the error is logged and never propagated.
        """
        try:
            data = self._store.get(self._state_key)
        except (LedgerStoreError, OSError) as exc:
            self._log.warning("state_load_failed", extra={"key": self._state_key, "error": str(exc)})
            self._set_default_state()
            return False
        if data is None:
            self._log.info("state_missing", extra={"key": self._state_key})
            self._set_default_state()
            return False
        try:
            state = decode_state(data)
        except StateDecodeError as exc:
            self._log.warning("state_corrupt", extra={"key": self._state_key, "error": str(exc)})
            self._set_default_state()
            return False

        self._cash = state.cash
        self._positions = list(state.positions)
        self._trades = list(state.trade_history)
        self._history = list(state.portfolio_history)[-self.snapshot_limit :]
        self._log.info(
            "state_loaded",
            extra={
                "key": self._state_key,
                "cash": self._cash,
                "positions": len(self._positions),
                "trades": len(self._trades),
                "snapshots": len(self._history),
            },
        )
        return True

    def _set_default_state(self) -> None:
        self._cash = self._initial_cash
        self._positions = []
        self._trades = []
        self._history = []
        self._append_snapshot({})

    def _publish(self, event: object) -> None:
        if self._bus is not None:
            self._bus.publish(event)
