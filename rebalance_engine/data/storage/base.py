"""Persistence collaborator interface.

The engine reads portfolios and strategies from a store and writes
execution records back. The store owns strategies; the engine never
modifies them.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from rebalance_engine.execution.base import RebalanceExecution
from rebalance_engine.portfolio.base import Portfolio
from rebalance_engine.strategy.base import RebalancingStrategy


class PortfolioStore(ABC):
    """Abstract portfolio/strategy/execution store."""

    @abstractmethod
    def load_portfolio(self, portfolio_id: str) -> Portfolio:
        """Load a portfolio snapshot.

        Raises:
            PortfolioNotFoundError: If no portfolio has this id
        """
        pass

    @abstractmethod
    def load_strategies(self, portfolio_id: str) -> List[RebalancingStrategy]:
        """Load every strategy configured for a portfolio, enabled or not."""
        pass

    @abstractmethod
    def save_execution(self, execution: RebalanceExecution) -> None:
        """Persist an execution record (insert or replace by id)."""
        pass

    @abstractmethod
    def get_execution(self, execution_id: str) -> Optional[RebalanceExecution]:
        pass

    @abstractmethod
    def list_executions(self, portfolio_id: Optional[str] = None) -> List[RebalanceExecution]:
        pass

    def load_strategy(self, portfolio_id: str, strategy_id: str) -> Optional[RebalancingStrategy]:
        """Find one strategy of a portfolio by id, None when missing."""
        for strategy in self.load_strategies(portfolio_id):
            if strategy.id == strategy_id:
                return strategy
        return None
