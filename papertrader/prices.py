from __future__ import annotations

import math
from typing import Any, Dict, Iterable, Mapping, Optional


def normalize_symbol(symbol: str) -> str:
    return (symbol or "").strip().upper()


def normalize_price(value: Any) -> Optional[float]:
    """Convert a quoted value to float, mapping NaN or invalid inputs to None."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def is_valid_price(value: Any) -> bool:
    """Return True when price is a finite number above zero."""
    number = normalize_price(value)
    if number is None:
        return False
    return math.isfinite(number) and number > 0


def normalize_prices(prices: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Uppercase symbols and drop unusable quotes.

    A dropped quote is treated by the engine exactly like a missing one, so the
    position falls back to its average price.
    """
    result: Dict[str, float] = {}
    for symbol, value in (prices or {}).items():
        key = normalize_symbol(str(symbol))
        if not key or not is_valid_price(value):
            continue
        result[key] = float(value)
    return result


def parse_price_args(items: Iterable[str]) -> Dict[str, float]:
    """Parse CLI style ``SYM=PRICE`` pairs."""
    result: Dict[str, float] = {}
    for item in items:
        symbol, sep, raw = item.partition("=")
        symbol = normalize_symbol(symbol)
        if not sep or not symbol:
            raise ValueError(f"Expected SYMBOL=PRICE, got {item!r}")
        price = normalize_price(raw)
        if not is_valid_price(price):
            raise ValueError(f"Invalid price for {symbol}: {raw!r}")
        result[symbol] = float(price)  # type: ignore[arg-type]
    return result
