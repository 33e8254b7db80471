"""Abstract base class for market data providers.

This module defines the MarketDataPort interface that every concrete
market data adapter must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Optional


@dataclass(frozen=True)
class Quote:
    """Market snapshot for one symbol.

    Attributes:
        symbol: Ticker symbol
        price: Current price
        volatility: Trailing annualized volatility (decimal, 0.15 = 15%)
        momentum: Trailing return over the momentum window (decimal)
        timestamp: When the quote was taken
        volatility_window: Trading days behind ``volatility``, None when not computed here
        momentum_window: Trading days behind ``momentum``, None when not computed here
    """

    symbol: str
    price: float
    volatility: float = 0.0
    momentum: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    volatility_window: Optional[int] = None
    momentum_window: Optional[int] = None

    def __post_init__(self):
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")
        if self.volatility < 0:
            raise ValueError(f"volatility must be non-negative, got {self.volatility}")


class MarketDataPort(ABC):
    """Abstract interface for market data feeds.

    Example:
        >>> class MyFeed(MarketDataPort):
        ...     def get_quote(self, symbol, volatility_window=None, momentum_window=None):
        ...         return Quote(symbol=symbol, price=100.0, volatility=0.15)
    """

    @abstractmethod
    def get_quote(
        self,
        symbol: str,
        volatility_window: Optional[int] = None,
        momentum_window: Optional[int] = None,
    ) -> Quote:
        """Fetch price, volatility and momentum for a symbol.

        Feeds that compute volatility and momentum use the requested
        windows (their own defaults when None). Feeds serving precomputed
        figures ignore them.

        Args:
            symbol: Ticker symbol (e.g., "SPY")
            volatility_window: Trading days of returns behind the volatility
            momentum_window: Trading days behind the momentum

        Returns:
            Quote for the symbol

        Raises:
            SymbolNotFoundError: If the feed does not know the symbol
            DataUnavailableError: If data cannot be fetched right now
        """
        pass

    def get_quotes(
        self,
        symbols: Iterable[str],
        volatility_window: Optional[int] = None,
        momentum_window: Optional[int] = None,
    ) -> Dict[str, Quote]:
        """Fetch quotes for several symbols.

        Default implementation calls get_quote per symbol and lets errors
        propagate; adapters with batch endpoints may override.
        """
        return {
            symbol: self.get_quote(
                symbol, volatility_window=volatility_window, momentum_window=momentum_window
            )
            for symbol in symbols
        }
