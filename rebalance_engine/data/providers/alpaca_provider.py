"""Alpaca market data provider.

Implements MarketDataPort with the Alpaca market data API: the latest
quote supplies the price, daily bars supply trailing volatility and
momentum.
"""

from datetime import datetime, timedelta
from typing import Optional

import pandas as pd
from alpaca.data.requests import StockBarsRequest, StockLatestQuoteRequest
from alpaca.data.timeframe import TimeFrame

from rebalance_engine.data.base import MarketDataPort, Quote
from rebalance_engine.utils.alpaca_client import AlpacaClient
from rebalance_engine.utils.exceptions import (
    DataUnavailableError,
    SymbolNotFoundError,
)
from rebalance_engine.utils.logging import get_logger
from rebalance_engine.utils.risk_metrics import (
    calculate_annualized_volatility,
    calculate_momentum,
)

logger = get_logger(__name__)

# Calendar days fetched per trading day needed (weekends and holidays)
CALENDAR_DAYS_PER_TRADING_DAY = 1.6


class AlpacaMarketData(MarketDataPort):
    """Alpaca-backed market data feed.

    Example:
        >>> client = AlpacaClient.from_env()
        >>> feed = AlpacaMarketData(client, volatility_window=30, momentum_window=20)
        >>> quote = feed.get_quote("SPY")
        >>> print(f"{quote.symbol}: {quote.price:.2f} vol={quote.volatility:.1%}")
    """

    def __init__(
        self,
        alpaca_client: AlpacaClient,
        volatility_window: int = 30,
        momentum_window: int = 20,
    ):
        """Initialize Alpaca market data feed.

        Args:
            alpaca_client: AlpacaClient instance for API access
            volatility_window: Trading days of returns used for volatility
            momentum_window: Trading days used for trailing momentum
        """
        self._check_windows(volatility_window, momentum_window)

        self.client = alpaca_client
        self.data_client = alpaca_client.get_data_client()
        self.volatility_window = volatility_window
        self.momentum_window = momentum_window

    def get_quote(
        self,
        symbol: str,
        volatility_window: Optional[int] = None,
        momentum_window: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Quote:
        """Fetch price, volatility and momentum for ``symbol``.

        Args:
            symbol: Ticker symbol
            volatility_window: Overrides the feed's volatility window
            momentum_window: Overrides the feed's momentum window
            now: End of the bar history (datetime.now when None)

        Raises:
            ValueError: If a requested window is too short
            SymbolNotFoundError: If Alpaca returns no quote for the symbol
            DataUnavailableError: If any API call fails
        """
        if volatility_window is None:
            volatility_window = self.volatility_window
        if momentum_window is None:
            momentum_window = self.momentum_window
        self._check_windows(volatility_window, momentum_window)

        try:
            price = self._fetch_price(symbol)
            closes = self._fetch_closes(
                symbol, now or datetime.now(), max(volatility_window, momentum_window)
            )
        except (SymbolNotFoundError, DataUnavailableError):
            raise
        except Exception as e:
            error_msg = f"Failed to fetch market data for {symbol}: {e}"
            logger.error(error_msg)
            raise DataUnavailableError(error_msg) from e

        volatility = calculate_annualized_volatility(closes, window=volatility_window)
        momentum = calculate_momentum(closes, window=momentum_window)

        logger.info(
            "Quote for %s: price=%.2f, volatility(%dd)=%.4f, momentum(%dd)=%.4f",
            symbol,
            price,
            volatility_window,
            volatility,
            momentum_window,
            momentum,
        )

        return Quote(
            symbol=symbol,
            price=price,
            volatility=volatility,
            momentum=momentum,
            volatility_window=volatility_window,
            momentum_window=momentum_window,
        )

    @staticmethod
    def _check_windows(volatility_window: int, momentum_window: int) -> None:
        if volatility_window < 2:
            raise ValueError(f"volatility_window must be >= 2, got {volatility_window}")
        if momentum_window < 1:
            raise ValueError(f"momentum_window must be >= 1, got {momentum_window}")

    def _fetch_price(self, symbol: str) -> float:
        request = StockLatestQuoteRequest(symbol_or_symbols=symbol)
        quotes = self.client.with_retry(self.data_client.get_stock_latest_quote, request)

        if symbol not in quotes:
            raise SymbolNotFoundError(f"No quote returned for {symbol}")

        quote = quotes[symbol]
        bid = float(quote.bid_price or 0.0)
        ask = float(quote.ask_price or 0.0)

        if bid > 0 and ask > 0:
            return (bid + ask) / 2.0
        if ask > 0 or bid > 0:
            return max(bid, ask)

        raise DataUnavailableError(f"Quote for {symbol} has no bid or ask")

    def _fetch_closes(self, symbol: str, now: datetime, window: int) -> pd.Series:
        needed = window + 1
        start = now - timedelta(days=int(needed * CALENDAR_DAYS_PER_TRADING_DAY) + 5)

        request = StockBarsRequest(
            symbol_or_symbols=symbol,
            timeframe=TimeFrame.Day,
            start=start,
            end=now,
        )
        bars = self.client.with_retry(self.data_client.get_stock_bars, request)

        # BarSet keeps its per-symbol lists in ``data``
        bars_by_symbol = getattr(bars, "data", bars)
        symbol_bars = bars_by_symbol.get(symbol)
        if not symbol_bars:
            raise DataUnavailableError(f"Empty bar history for {symbol}")

        closes = pd.Series(
            [float(bar.close) for bar in symbol_bars],
            index=pd.to_datetime([bar.timestamp for bar in symbol_bars]),
            name="close",
        )
        return closes.sort_index()
