"""Rebalance orchestrator.

Top-level API of the engine. Coordinates the layers:

    analyze: Store -> AllocationAnalyzer -> StrategyEvaluator
             -> TradeOptimizer -> ImpactEstimator -> recommendations
    execute: recommendation -> ExecutionEngine -> BrokerPort
             -> RebalanceExecution -> Store

Per-portfolio state machine:

    idle -> analyzing -> idle
    idle -> executing -> completed | failed -> idle

Only one execute may run per portfolio at a time. Analyze calls are
read-only and may run alongside each other and alongside an execute.
"""

import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from rebalance_engine.data.base import MarketDataPort
from rebalance_engine.data.storage.base import PortfolioStore
from rebalance_engine.execution.base import (
    BrokerPort,
    ExecutionResults,
    ExecutionStatus,
    RebalanceExecution,
    TradeExecution,
    TradeStatus,
)
from rebalance_engine.execution.engine import ExecutionEngine, new_execution_id
from rebalance_engine.orchestration.market_hours import is_market_open
from rebalance_engine.portfolio.analyzer import AllocationAnalyzer, AllocationSnapshot
from rebalance_engine.portfolio.base import RebalanceRecommendation
from rebalance_engine.portfolio.impact import ImpactEstimator
from rebalance_engine.portfolio.optimizer import TradeOptimizer
from rebalance_engine.strategy.base import RebalancingStrategy, StrategyEvaluator
from rebalance_engine.strategy.registry import get_evaluator
from rebalance_engine.utils.config import EngineSettings
from rebalance_engine.utils.exceptions import (
    ConcurrentExecutionError,
    RebalanceEngineError,
    StrategyNotFoundError,
    SystemicError,
    ValidationError,
)
from rebalance_engine.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class PortfolioStatus(Enum):
    """Orchestrator-level state of one portfolio."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


_EXECUTION_STATES = (
    PortfolioStatus.EXECUTING,
    PortfolioStatus.COMPLETED,
    PortfolioStatus.FAILED,
)


class RebalanceOrchestrator:
    """Analyzes portfolios and executes recommendations.

    All collaborators are injected; the orchestrator holds no global state.

    Example:
        >>> orchestrator = RebalanceOrchestrator(market_data, broker, store)
        >>> recommendations = orchestrator.analyze("portfolio_123")
        >>> execution = orchestrator.execute(recommendations[0], dry_run=True)
        >>> print(execution.status.value, execution.results.improvement_score)
    """

    def __init__(
        self,
        market_data: MarketDataPort,
        broker: BrokerPort,
        store: PortfolioStore,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize orchestrator.

        Args:
            market_data: Market data feed
            broker: Brokerage order API
            store: Portfolio/strategy/execution store
            settings: Engine tunables (defaults when None)
            clock: Returns the current time (datetime.now when None)
        """
        self.market_data = market_data
        self.broker = broker
        self.store = store
        self.settings = settings or EngineSettings()
        self._clock = clock or datetime.now

        self.analyzer = AllocationAnalyzer(market_data)
        self.optimizer = TradeOptimizer()
        self.impact_estimator = ImpactEstimator()
        self.engine = ExecutionEngine(
            broker,
            self.analyzer,
            poll_interval=self.settings.order_poll_interval,
        )

        self._locks: Dict[str, threading.Lock] = {}
        self._states: Dict[str, PortfolioStatus] = {}
        # Recommendation ids already sent to the broker, per portfolio
        self._consumed: Dict[str, Set[str]] = {}
        self._registry_lock = threading.Lock()

    def get_status(self, portfolio_id: str) -> PortfolioStatus:
        """Current orchestrator state of a portfolio."""
        with self._registry_lock:
            return self._states.get(portfolio_id, PortfolioStatus.IDLE)

    def _transition(self, portfolio_id: str, status: PortfolioStatus) -> None:
        with self._registry_lock:
            previous = self._states.get(portfolio_id, PortfolioStatus.IDLE)
            self._states[portfolio_id] = status
        logger.debug(
            "Portfolio %s: %s -> %s", portfolio_id, previous.value, status.value
        )

    def _begin_analysis(self, portfolio_id: str) -> bool:
        """Enter ANALYZING unless an execution owns the state."""
        with self._registry_lock:
            if self._states.get(portfolio_id) in _EXECUTION_STATES:
                return False
            self._states[portfolio_id] = PortfolioStatus.ANALYZING
            return True

    def _end_analysis(self, portfolio_id: str) -> None:
        with self._registry_lock:
            if self._states.get(portfolio_id) == PortfolioStatus.ANALYZING:
                self._states[portfolio_id] = PortfolioStatus.IDLE

    def _lock_for(self, portfolio_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(portfolio_id, threading.Lock())

    def analyze(
        self,
        portfolio_id: str,
        strategy_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[RebalanceRecommendation]:
        """Evaluate one strategy, or every enabled strategy, of a portfolio.

        An explicit ``strategy_id`` is evaluated even when the strategy is
        disabled.

        Args:
            portfolio_id: Portfolio to analyze
            strategy_id: Strategy to run (all enabled strategies when None)
            now: Evaluation time (clock when None)

        Returns:
            Recommendations with at least one trade, critical first

        Raises:
            PortfolioNotFoundError: If the portfolio is unknown
            StrategyNotFoundError: If ``strategy_id`` is unknown
            ValidationError: If a strategy's parameters are malformed
        """
        portfolio = self.store.load_portfolio(portfolio_id)

        if strategy_id is not None:
            strategy = self.store.load_strategy(portfolio_id, strategy_id)
            if strategy is None:
                raise StrategyNotFoundError(
                    f"Strategy {strategy_id} not found for portfolio {portfolio_id}"
                )
            strategies = [strategy]
        else:
            strategies = [s for s in self.store.load_strategies(portfolio_id) if s.enabled]

        now = now or self._clock()
        entered = self._begin_analysis(portfolio_id)
        try:
            # One repricing per distinct pair of data windows
            snapshots: Dict[Tuple[int, int], AllocationSnapshot] = {}
            recommendations = []
            for strategy in strategies:
                evaluator = get_evaluator(
                    strategy.type, cost_rate=self.settings.trading_cost_rate
                )
                evaluator.validate_params(strategy)

                params = strategy.parameters
                windows = (params.volatility_window, params.momentum_window)
                if windows not in snapshots:
                    snapshots[windows] = self.analyzer.analyze(
                        portfolio,
                        volatility_window=params.volatility_window,
                        momentum_window=params.momentum_window,
                    )
                recommendation = self._recommend(evaluator, snapshots[windows], strategy, now)
                if recommendation.has_trades:
                    recommendations.append(recommendation)
        finally:
            if entered:
                self._end_analysis(portfolio_id)

        recommendations.sort(key=lambda r: -r.urgency.rank)

        log_with_context(
            logger,
            "info",
            "Analysis complete",
            portfolio_id=portfolio_id,
            strategies=len(strategies),
            recommendations=len(recommendations),
        )
        return recommendations

    def _recommend(
        self,
        evaluator: StrategyEvaluator,
        snapshot: AllocationSnapshot,
        strategy: RebalancingStrategy,
        now: datetime,
    ) -> RebalanceRecommendation:
        result = evaluator.evaluate(snapshot, strategy, now)
        trades = self.optimizer.optimize(result.trades, snapshot.portfolio, strategy)
        impact = self.impact_estimator.estimate(trades, snapshot.portfolio, strategy)

        return RebalanceRecommendation(
            portfolio_id=snapshot.portfolio.id,
            strategy_id=strategy.id,
            strategy_name=strategy.name,
            reason=result.reason,
            urgency=result.urgency,
            estimated_impact=impact,
            trades=tuple(trades),
            created_at=now,
        )

    def execute(
        self,
        recommendation: RebalanceRecommendation,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> RebalanceExecution:
        """Execute a recommendation.

        A recommendation is consumed by its first live run that reaches the
        broker. Dry runs do not consume it.

        Args:
            recommendation: Recommendation from ``analyze``
            dry_run: Simulate without calling the broker
            cancel_event: Set to stop submitting further trades

        Returns:
            RebalanceExecution, returned even when saving it fails

        Raises:
            ConcurrentExecutionError: If the portfolio is already executing
            ValidationError: If the recommendation was already executed live
        """
        portfolio_id = recommendation.portfolio_id
        lock = self._lock_for(portfolio_id)
        if not lock.acquire(blocking=False):
            raise ConcurrentExecutionError(
                f"Execution already in progress for portfolio {portfolio_id}"
            )

        try:
            consumed = self._consumed.setdefault(portfolio_id, set())
            if not dry_run and recommendation.id in consumed:
                raise ValidationError(
                    f"Recommendation {recommendation.id} was already executed "
                    f"for portfolio {portfolio_id}"
                )

            self._transition(portfolio_id, PortfolioStatus.EXECUTING)
            if dry_run:
                execution = self._dry_run(recommendation)
            else:
                execution = self._live_run(recommendation, cancel_event, consumed)

            self._save(execution)
            self._transition(
                portfolio_id,
                PortfolioStatus.COMPLETED
                if execution.status == ExecutionStatus.COMPLETED
                else PortfolioStatus.FAILED,
            )
            return execution
        finally:
            self._transition(portfolio_id, PortfolioStatus.IDLE)
            lock.release()

    def _dry_run(self, recommendation: RebalanceRecommendation) -> RebalanceExecution:
        """Simulate a full fill at reference prices. Never calls the broker."""
        execution = RebalanceExecution(
            id=new_execution_id(),
            portfolio_id=recommendation.portfolio_id,
            strategy_id=recommendation.strategy_id,
            status=ExecutionStatus.EXECUTING,
            total_value=recommendation.total_trade_value,
            dry_run=True,
        )

        target_deviation = 0.0
        try:
            portfolio = self.store.load_portfolio(recommendation.portfolio_id)
        except RebalanceEngineError as e:
            logger.warning(
                "Dry run %s: portfolio unavailable, skipping deviation estimate: %s",
                execution.id,
                e,
            )
        else:
            simulated = [
                TradeExecution(
                    symbol=trade.symbol,
                    order_id=None,
                    status=TradeStatus.FILLED,
                    requested_shares=trade.shares,
                    filled_shares=trade.shares,
                    average_price=trade.price,
                )
                for trade in recommendation.trades
            ]
            projected = ExecutionEngine.project_fills(
                portfolio, list(recommendation.trades), simulated
            )
            target_deviation = self.analyzer.analyze(projected).mean_absolute_drift

        execution.results = ExecutionResults(
            trades_executed=len(recommendation.trades),
            total_cost=recommendation.estimated_impact.trading_costs,
            target_deviation=target_deviation,
            improvement_score=self.settings.dry_run_improvement_score,
        )
        execution.finish(ExecutionStatus.COMPLETED)

        log_with_context(
            logger,
            "info",
            "Dry run completed",
            execution_id=execution.id,
            portfolio_id=execution.portfolio_id,
            trades=len(recommendation.trades),
        )
        return execution

    def _live_run(
        self,
        recommendation: RebalanceRecommendation,
        cancel_event: Optional[threading.Event],
        consumed: Set[str],
    ) -> RebalanceExecution:
        portfolio_id = recommendation.portfolio_id
        try:
            portfolio = self.store.load_portfolio(portfolio_id)
            strategy = self.store.load_strategy(portfolio_id, recommendation.strategy_id)
        except Exception as e:
            error = SystemicError(f"Cannot load portfolio {portfolio_id}: {e}")
            return self._failed_execution(recommendation, error)

        if (
            strategy is not None
            and strategy.constraints.market_hours_only
            and self.settings.enforce_market_hours
            and not is_market_open(self._clock())
        ):
            error = SystemicError(
                f"Strategy {strategy.id} trades during market hours only; market is closed"
            )
            return self._failed_execution(recommendation, error)

        consumed.add(recommendation.id)
        return self.engine.run(recommendation, portfolio, cancel_event=cancel_event)

    def _save(self, execution: RebalanceExecution) -> None:
        """Persist an execution, keeping it when the store fails."""
        try:
            self.store.save_execution(execution)
        except Exception as e:
            log_with_context(
                logger,
                "error",
                "Failed to save execution",
                execution_id=execution.id,
                portfolio_id=execution.portfolio_id,
                error=e,
            )
            execution.errors.append(f"Failed to save execution {execution.id}: {e}")

    def _failed_execution(
        self, recommendation: RebalanceRecommendation, error: SystemicError
    ) -> RebalanceExecution:
        """Execution that failed before any trade was attempted."""
        execution = RebalanceExecution(
            id=new_execution_id(),
            portfolio_id=recommendation.portfolio_id,
            strategy_id=recommendation.strategy_id,
            total_value=recommendation.total_trade_value,
            errors=[str(error)],
        )
        execution.finish(ExecutionStatus.FAILED)

        log_with_context(
            logger,
            "error",
            "Execution failed before trading",
            execution_id=execution.id,
            portfolio_id=execution.portfolio_id,
            error=error,
        )
        return execution
