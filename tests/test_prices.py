import pytest

from papertrader.prices import is_valid_price, normalize_price, normalize_prices, parse_price_args


def test_normalize_price_maps_nan_to_none() -> None:
    assert normalize_price(float("nan")) is None
    assert normalize_price(None) is None
    assert normalize_price("abc") is None
    assert normalize_price(101.5) == 101.5
    assert normalize_price("99.25") == 99.25


def test_is_valid_price_requires_positive_finite() -> None:
    assert not is_valid_price(float("nan"))
    assert not is_valid_price(float("inf"))
    assert not is_valid_price(None)
    assert not is_valid_price(0.0)
    assert not is_valid_price(-1)
    assert is_valid_price(0.01)


def test_normalize_prices_uppercases_and_drops_bad_quotes() -> None:
    raw = {" aapl ": 190.5, "MSFT": None, "tsla": float("nan"), "NVDA": 0, "": 5.0, "amd": "160"}
    assert normalize_prices(raw) == {"AAPL": 190.5, "AMD": 160.0}
    assert normalize_prices(None) == {}


def test_parse_price_args() -> None:
    assert parse_price_args(["aapl=190.5", "TSLA=220"]) == {"AAPL": 190.5, "TSLA": 220.0}
    assert parse_price_args([]) == {}


@pytest.mark.parametrize("item", ["AAPL", "=10", "AAPL=", "AAPL=abc", "AAPL=-3"])
def test_parse_price_args_rejects_malformed(item: str) -> None:
    with pytest.raises(ValueError):
        parse_price_args([item])
