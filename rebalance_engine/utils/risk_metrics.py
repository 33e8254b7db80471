"""Risk Metrics Utilities.

Volatility and momentum estimates derived from a daily close series.
Used by the market data adapters to populate quotes.
"""

from typing import Optional

import numpy as np
import pandas as pd

TRADING_DAYS_PER_YEAR = 252


def calculate_daily_returns(prices: pd.Series) -> pd.Series:
    """Simple daily returns with the leading NaN dropped."""
    return prices.astype(float).pct_change().dropna()


def calculate_annualized_volatility(
    prices: pd.Series,
    window: Optional[int] = None,
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """Calculate annualized volatility of daily returns.

    Args:
        prices: Series of daily closing prices (oldest first)
        window: Number of trailing returns to use (all when None)
        periods_per_year: Number of periods per year (default: 252)

    Returns:
        Annualized standard deviation as a decimal (0.15 = 15%),
        0.0 when fewer than two returns are available
    """
    returns = calculate_daily_returns(prices)
    if window is not None:
        returns = returns.tail(window)

    if len(returns) < 2:
        return 0.0

    return float(returns.std() * np.sqrt(periods_per_year))


def calculate_momentum(prices: pd.Series, window: int) -> float:
    """Calculate trailing return over ``window`` periods.

    Args:
        prices: Series of daily closing prices (oldest first)
        window: Lookback in periods

    Returns:
        Trailing return as a decimal (0.02 = +2%), 0.0 when the series
        is too short or the base price is zero
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    clean = prices.astype(float).dropna()
    if len(clean) < 2:
        return 0.0

    lookback = min(window, len(clean) - 1)
    base = clean.iloc[-(lookback + 1)]
    if base == 0:
        return 0.0

    return float(clean.iloc[-1] / base - 1.0)
