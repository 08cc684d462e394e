from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field


class LogConfig(BaseModel):
    level: str = "INFO"
    json_logs: bool = Field(default=True, alias="json")
    file: str = "run/papertrader.log"
    console: bool = True

    model_config = ConfigDict(populate_by_name=True)


class StorageConfig(BaseModel):
    sqlite_path: str = "run/papertrader.sqlite"
    state_key: str = "TradingEngineState"


class AccountConfig(BaseModel):
    initial_cash: float = Field(default=25000.0, gt=0)
    snapshot_limit: int = Field(default=365, ge=1)


class RiskConfig(BaseModel):
    max_risk_pct: float = Field(default=2.0, ge=0)  # percent of cash at risk per trade
    min_reward_risk: float = Field(default=2.0, ge=0)


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    account: AccountConfig = Field(default_factory=AccountConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    return AppConfig.model_validate(data or {})
