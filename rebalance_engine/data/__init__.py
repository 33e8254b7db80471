"""Data Layer.

Market data feeds (data.providers) and portfolio persistence
(data.storage).

Components:
- MarketDataPort: Abstract market data interface
- Quote: Price, volatility and momentum for one symbol
"""

from rebalance_engine.data.base import MarketDataPort, Quote

__all__ = ["MarketDataPort", "Quote"]
