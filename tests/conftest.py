"""Shared fixtures for rebalance engine tests."""

import pytest

from rebalance_engine.data.providers.static_provider import StaticMarketData
from rebalance_engine.data.storage.memory import InMemoryPortfolioStore
from rebalance_engine.portfolio.base import AssetAllocation, AssetCategory, Portfolio
from rebalance_engine.strategy.base import (
    RebalancingStrategy,
    StrategyParameters,
    StrategyType,
)


@pytest.fixture
def market_data():
    """Static quotes: SPY 500, BND 50, VTI 200."""
    return StaticMarketData.from_dict(
        {
            "SPY": {"price": 500.0, "volatility": 0.15, "momentum": 0.02},
            "BND": {"price": 50.0, "volatility": 0.05, "momentum": -0.01},
            "VTI": {"price": 200.0, "volatility": 0.16, "momentum": 0.03},
        }
    )


@pytest.fixture
def portfolio():
    """SPY 65/60, BND 25/30, VTI 10/10 at the static prices."""
    return Portfolio(
        id="portfolio_123",
        owner_id="user_1",
        name="Balanced",
        total_value=100000.0,
        cash_balance=5000.0,
        target_risk=0.12,
        allocations=[
            AssetAllocation(
                symbol="SPY",
                target_percent=60.0,
                category=AssetCategory.EQUITY,
                shares=130,
                cost_basis=420.0,
            ),
            AssetAllocation(
                symbol="BND",
                target_percent=30.0,
                category=AssetCategory.FIXED_INCOME,
                shares=500,
            ),
            AssetAllocation(
                symbol="VTI",
                target_percent=10.0,
                category=AssetCategory.EQUITY,
                shares=50,
            ),
        ],
    )


@pytest.fixture
def threshold_strategy():
    """Threshold strategy at 5%."""
    return RebalancingStrategy(
        id="threshold_5",
        name="Threshold 5%",
        type=StrategyType.THRESHOLD,
        parameters=StrategyParameters(threshold_percent=5.0),
    )


@pytest.fixture
def store(portfolio, threshold_strategy):
    """In-memory store holding the sample portfolio and threshold strategy."""
    store = InMemoryPortfolioStore()
    store.add_portfolio(portfolio)
    store.add_strategy(portfolio.id, threshold_strategy)
    return store
