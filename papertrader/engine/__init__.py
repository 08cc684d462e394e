from papertrader.engine.engine import DEFAULT_INITIAL_CASH, DEFAULT_SNAPSHOT_LIMIT, DEFAULT_STATE_KEY, TradingEngine

__all__ = ["DEFAULT_INITIAL_CASH", "DEFAULT_SNAPSHOT_LIMIT", "DEFAULT_STATE_KEY", "TradingEngine"]
