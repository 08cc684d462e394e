from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from papertrader.config import RiskConfig


@dataclass(frozen=True)
class TradePreview:
    position_cost: float
    cash_available: float
    position_pct: float
    affordable: bool
    risk_usd: Optional[float]
    risk_pct: Optional[float]
    reward_risk: Optional[float]
    within_risk_budget: Optional[bool]
    meets_reward_risk: Optional[bool]


def _pct_of_cash(amount: float, cash: float) -> float:
    if cash <= 0:
        return 0.0
    return amount / cash * 100


def preview_trade(
    cash: float,
    quantity: float,
    entry_price: float,
    stop_loss: Optional[float] = None,
    take_profit: Optional[float] = None,
    cfg: Optional[RiskConfig] = None,
) -> TradePreview:
    """Size and risk numbers shown before a trade is submitted.

    Risk figures need a stop; the reward/risk ratio needs both stop and target.
    Missing inputs leave the matching fields as None.
    """
    cfg = cfg or RiskConfig()
    cost = quantity * entry_price

    risk_usd = risk_pct = reward_risk = None
    within_budget = meets_rr = None
    if stop_loss is not None:
        risk_per_unit = abs(entry_price - stop_loss)
        risk_usd = risk_per_unit * quantity
        risk_pct = _pct_of_cash(risk_usd, cash)
        within_budget = cash > 0 and risk_pct <= cfg.max_risk_pct
        if take_profit is not None:
            reward_per_unit = abs(take_profit - entry_price)
            reward_risk = reward_per_unit / risk_per_unit if risk_per_unit > 0 else 0.0
            meets_rr = reward_risk >= cfg.min_reward_risk

    return TradePreview(
        position_cost=cost,
        cash_available=cash,
        position_pct=_pct_of_cash(cost, cash),
        affordable=cost <= cash,
        risk_usd=risk_usd,
        risk_pct=risk_pct,
        reward_risk=reward_risk,
        within_risk_budget=within_budget,
        meets_reward_risk=meets_rr,
    )
