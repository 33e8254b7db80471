"""Unit tests for risk metrics utilities."""

import numpy as np
import pandas as pd
import pytest

from rebalance_engine.utils.risk_metrics import (
    calculate_annualized_volatility,
    calculate_daily_returns,
    calculate_momentum,
)


class TestDailyReturns:
    """Test cases for calculate_daily_returns."""

    def test_returns(self) -> None:
        """Test simple returns with leading NaN dropped."""
        returns = calculate_daily_returns(pd.Series([100.0, 110.0, 99.0]))

        assert len(returns) == 2
        assert returns.iloc[0] == pytest.approx(0.10)
        assert returns.iloc[1] == pytest.approx(-0.10)


class TestAnnualizedVolatility:
    """Test cases for calculate_annualized_volatility."""

    def test_constant_prices_zero_volatility(self) -> None:
        """Test flat prices have zero volatility."""
        assert calculate_annualized_volatility(pd.Series([100.0] * 10)) == 0.0

    def test_too_short_series(self) -> None:
        """Test fewer than two returns yields 0.0."""
        assert calculate_annualized_volatility(pd.Series([100.0, 101.0])) == 0.0

    def test_annualization(self) -> None:
        """Test std of returns scaled by sqrt(252)."""
        prices = pd.Series([100.0, 102.0, 101.0, 103.0, 102.5])
        expected = prices.pct_change().dropna().std() * np.sqrt(252)

        assert calculate_annualized_volatility(prices) == pytest.approx(expected)

    def test_window_uses_trailing_returns(self) -> None:
        """Test window restricts to the most recent returns."""
        prices = pd.Series([100.0, 150.0, 100.0, 101.0, 102.0, 103.0])
        windowed = calculate_annualized_volatility(prices, window=3)
        full = calculate_annualized_volatility(prices)

        assert windowed < full


class TestMomentum:
    """Test cases for calculate_momentum."""

    def test_trailing_return(self) -> None:
        """Test return over the window."""
        prices = pd.Series([90.0, 100.0, 105.0, 110.0])
        assert calculate_momentum(prices, window=2) == pytest.approx(0.10)

    def test_window_longer_than_series(self) -> None:
        """Test lookback shrinks to the available history."""
        prices = pd.Series([100.0, 120.0])
        assert calculate_momentum(prices, window=20) == pytest.approx(0.20)

    def test_single_price(self) -> None:
        """Test single observation yields 0.0."""
        assert calculate_momentum(pd.Series([100.0]), window=5) == 0.0

    def test_invalid_window(self) -> None:
        """Test window must be positive."""
        with pytest.raises(ValueError, match="window must be >= 1"):
            calculate_momentum(pd.Series([1.0, 2.0]), window=0)
