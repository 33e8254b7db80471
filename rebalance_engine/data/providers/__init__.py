"""Market data provider implementations."""

from rebalance_engine.data.providers.alpaca_provider import AlpacaMarketData
from rebalance_engine.data.providers.static_provider import StaticMarketData

__all__ = ["AlpacaMarketData", "StaticMarketData"]
