import pytest

from papertrader.config import RiskConfig
from papertrader.risk import preview_trade


def test_preview_without_stop_has_only_sizing() -> None:
    pv = preview_trade(cash=25000.0, quantity=10, entry_price=190.0)
    assert pv.position_cost == 1900.0
    assert pv.position_pct == pytest.approx(7.6)
    assert pv.affordable is True
    assert pv.risk_usd is None
    assert pv.reward_risk is None
    assert pv.within_risk_budget is None


def test_preview_risk_and_reward_ratio() -> None:
    pv = preview_trade(cash=25000.0, quantity=100, entry_price=190.0, stop_loss=185.0, take_profit=200.0)
    assert pv.risk_usd == pytest.approx(500.0)
    assert pv.risk_pct == pytest.approx(2.0)
    assert pv.within_risk_budget is True
    assert pv.reward_risk == pytest.approx(2.0)
    assert pv.meets_reward_risk is True


def test_preview_flags_follow_config() -> None:
    cfg = RiskConfig(max_risk_pct=1.0, min_reward_risk=3.0)
    pv = preview_trade(25000.0, 100, 190.0, stop_loss=185.0, take_profit=200.0, cfg=cfg)
    assert pv.within_risk_budget is False
    assert pv.meets_reward_risk is False


def test_preview_short_side_uses_absolute_distances() -> None:
    pv = preview_trade(10000.0, 10, 50.0, stop_loss=55.0, take_profit=35.0)
    assert pv.risk_usd == pytest.approx(50.0)
    assert pv.reward_risk == pytest.approx(3.0)


def test_preview_edge_cases() -> None:
    pv = preview_trade(0.0, 1, 10.0, stop_loss=10.0, take_profit=12.0)
    assert pv.affordable is False
    assert pv.position_pct == 0.0
    assert pv.risk_pct == 0.0
    assert pv.within_risk_budget is False
    assert pv.reward_risk == 0.0


@pytest.mark.parametrize("cash", [0.0, -50.0])
def test_preview_without_cash_is_never_within_budget(cash: float) -> None:
    pv = preview_trade(cash, 1, 10.0, stop_loss=9.99)
    assert pv.risk_usd == pytest.approx(0.01)
    assert pv.within_risk_budget is False
