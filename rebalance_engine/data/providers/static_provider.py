"""In-memory market data provider.

Serves quotes from a fixed table. Used for dry runs, demos driven by a
YAML portfolio file, and tests.
"""

import threading
from typing import Dict, Iterable, Optional, Set

from rebalance_engine.data.base import MarketDataPort, Quote
from rebalance_engine.utils.exceptions import DataUnavailableError, SymbolNotFoundError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


class StaticMarketData(MarketDataPort):
    """Market data feed backed by a dict of quotes.

    Symbols can be marked unavailable to simulate feed gaps.

    Example:
        >>> feed = StaticMarketData.from_dict({
        ...     "SPY": {"price": 445.30, "volatility": 0.15, "momentum": 0.02},
        ...     "BND": {"price": 75.20, "volatility": 0.05, "momentum": -0.01},
        ... })
        >>> feed.get_quote("SPY").price
        445.3
    """

    def __init__(
        self,
        quotes: Optional[Dict[str, Quote]] = None,
        unavailable: Optional[Iterable[str]] = None,
    ):
        self._quotes: Dict[str, Quote] = dict(quotes or {})
        self._unavailable: Set[str] = set(unavailable or ())
        self._lock = threading.Lock()

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, float]]) -> "StaticMarketData":
        """Build from ``{symbol: {price, volatility, momentum}}``."""
        quotes = {
            symbol: Quote(
                symbol=symbol,
                price=float(values["price"]),
                volatility=float(values.get("volatility", 0.0)),
                momentum=float(values.get("momentum", 0.0)),
            )
            for symbol, values in data.items()
        }
        return cls(quotes)

    def set_quote(self, quote: Quote) -> None:
        with self._lock:
            self._quotes[quote.symbol] = quote
            self._unavailable.discard(quote.symbol)

    def mark_unavailable(self, symbol: str) -> None:
        """Make get_quote raise DataUnavailableError for ``symbol``."""
        with self._lock:
            self._unavailable.add(symbol)

    def get_quote(
        self,
        symbol: str,
        volatility_window: Optional[int] = None,
        momentum_window: Optional[int] = None,
    ) -> Quote:
        """Return the stored quote; requested windows are ignored."""
        with self._lock:
            if symbol in self._unavailable:
                raise DataUnavailableError(f"Market data unavailable for {symbol}")
            quote = self._quotes.get(symbol)

        if quote is None:
            raise SymbolNotFoundError(f"Unknown symbol: {symbol}")

        logger.debug("Quote for %s: price=%.2f", symbol, quote.price)
        return quote
