"""Portfolio, strategy and execution persistence."""

from rebalance_engine.data.storage.base import PortfolioStore
from rebalance_engine.data.storage.memory import InMemoryPortfolioStore
from rebalance_engine.data.storage.yaml_loader import (
    load_portfolio_file,
    portfolio_from_dict,
    strategy_from_dict,
)

__all__ = [
    "PortfolioStore",
    "InMemoryPortfolioStore",
    "load_portfolio_file",
    "portfolio_from_dict",
    "strategy_from_dict",
]
