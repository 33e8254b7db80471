"""Unit tests for StaticMarketData."""

import pytest

from rebalance_engine.data.base import Quote
from rebalance_engine.data.providers.static_provider import StaticMarketData
from rebalance_engine.utils.exceptions import DataUnavailableError, SymbolNotFoundError


class TestStaticMarketData:
    """Test cases for StaticMarketData."""

    def test_from_dict(self, market_data) -> None:
        """Test quotes built from plain mappings."""
        quote = market_data.get_quote("BND")

        assert quote.price == 50.0
        assert quote.volatility == 0.05
        assert quote.momentum == -0.01

    def test_unknown_symbol(self, market_data) -> None:
        """Test unknown symbols raise SymbolNotFoundError."""
        with pytest.raises(SymbolNotFoundError, match="Unknown symbol: QQQ"):
            market_data.get_quote("QQQ")

    def test_mark_unavailable_and_restore(self, market_data) -> None:
        """Test feed gaps and recovery via set_quote."""
        market_data.mark_unavailable("SPY")
        with pytest.raises(DataUnavailableError):
            market_data.get_quote("SPY")

        market_data.set_quote(Quote(symbol="SPY", price=510.0, volatility=0.15))
        assert market_data.get_quote("SPY").price == 510.0

    def test_get_quotes(self, market_data) -> None:
        """Test batch lookup through the default implementation."""
        quotes = market_data.get_quotes(["SPY", "VTI"])
        assert {s: q.price for s, q in quotes.items()} == {"SPY": 500.0, "VTI": 200.0}

    def test_missing_price_defaults(self) -> None:
        """Test volatility and momentum default to zero."""
        feed = StaticMarketData.from_dict({"CASH": {"price": 1.0}})
        quote = feed.get_quote("CASH")

        assert quote.volatility == 0.0
        assert quote.momentum == 0.0


class TestQuote:
    """Test cases for Quote validation."""

    def test_non_positive_price(self) -> None:
        """Test price must be positive."""
        with pytest.raises(ValueError, match="price must be positive"):
            Quote(symbol="SPY", price=0.0)

    def test_negative_volatility(self) -> None:
        """Test volatility must be non-negative."""
        with pytest.raises(ValueError, match="volatility"):
            Quote(symbol="SPY", price=1.0, volatility=-0.1)
