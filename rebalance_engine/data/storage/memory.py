"""In-memory portfolio store.

Dict-backed PortfolioStore for tests, the CLI and single-process use.
Portfolios and strategies are copied on the way in and out so callers
cannot mutate stored state.
"""

import copy
import threading
from typing import Dict, List, Optional

from rebalance_engine.data.storage.base import PortfolioStore
from rebalance_engine.execution.base import RebalanceExecution
from rebalance_engine.portfolio.base import Portfolio
from rebalance_engine.strategy.base import RebalancingStrategy
from rebalance_engine.utils.exceptions import PortfolioNotFoundError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


class InMemoryPortfolioStore(PortfolioStore):
    """Thread-safe in-memory store.

    Example:
        >>> store = InMemoryPortfolioStore()
        >>> store.add_portfolio(portfolio)
        >>> store.add_strategy(portfolio.id, strategy)
        >>> store.load_strategies(portfolio.id)[0].name
        'Threshold 5%'
    """

    def __init__(self):
        self._portfolios: Dict[str, Portfolio] = {}
        self._strategies: Dict[str, List[RebalancingStrategy]] = {}
        self._executions: Dict[str, RebalanceExecution] = {}
        self._lock = threading.Lock()

    def add_portfolio(self, portfolio: Portfolio) -> None:
        """Insert or replace a portfolio."""
        with self._lock:
            self._portfolios[portfolio.id] = copy.deepcopy(portfolio)
            self._strategies.setdefault(portfolio.id, [])

    def add_strategy(self, portfolio_id: str, strategy: RebalancingStrategy) -> None:
        """Attach a strategy to a portfolio, replacing one with the same id.

        Raises:
            PortfolioNotFoundError: If the portfolio is unknown
        """
        with self._lock:
            if portfolio_id not in self._portfolios:
                raise PortfolioNotFoundError(f"Portfolio not found: {portfolio_id}")
            strategies = [s for s in self._strategies[portfolio_id] if s.id != strategy.id]
            strategies.append(copy.deepcopy(strategy))
            self._strategies[portfolio_id] = strategies

    def load_portfolio(self, portfolio_id: str) -> Portfolio:
        with self._lock:
            portfolio = self._portfolios.get(portfolio_id)
            if portfolio is None:
                raise PortfolioNotFoundError(f"Portfolio not found: {portfolio_id}")
            return copy.deepcopy(portfolio)

    def load_strategies(self, portfolio_id: str) -> List[RebalancingStrategy]:
        with self._lock:
            return copy.deepcopy(self._strategies.get(portfolio_id, []))

    def save_execution(self, execution: RebalanceExecution) -> None:
        with self._lock:
            self._executions[execution.id] = copy.deepcopy(execution)
        logger.debug("Saved execution %s (%s)", execution.id, execution.status.value)

    def get_execution(self, execution_id: str) -> Optional[RebalanceExecution]:
        with self._lock:
            execution = self._executions.get(execution_id)
            return copy.deepcopy(execution) if execution else None

    def list_executions(self, portfolio_id: Optional[str] = None) -> List[RebalanceExecution]:
        """Executions in insertion order, optionally for one portfolio."""
        with self._lock:
            executions = [
                e
                for e in self._executions.values()
                if portfolio_id is None or e.portfolio_id == portfolio_id
            ]
            return copy.deepcopy(executions)
