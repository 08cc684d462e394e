from papertrader.risk.preview import TradePreview, preview_trade

__all__ = ["TradePreview", "preview_trade"]
