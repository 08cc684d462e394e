from __future__ import annotations


class TradingError(Exception):
    """Base class for failures surfaced to callers of the engine."""


class InsufficientFunds(TradingError):
    def __init__(self, required: float, available: float) -> None:
        super().__init__(f"Insufficient funds to execute this trade: need {required:.2f}, have {available:.2f}")
        self.required = required
        self.available = available


class InvalidOrder(TradingError):
    """Order parameters the engine refuses to book (unknown side, blank symbol...)."""


class InvalidQuantity(InvalidOrder):
    pass


class PositionNotFound(TradingError):
    def __init__(self, position_id: str) -> None:
        super().__init__(f"Position not found: {position_id}")
        self.position_id = position_id
