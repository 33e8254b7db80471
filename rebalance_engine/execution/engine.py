"""Execution engine.

Submits a recommendation's trades to a BrokerPort one at a time and
aggregates the outcomes into a RebalanceExecution.

Algorithm:
1. Order trades by descending priority
2. For each trade: submit, then poll until the order is terminal
3. Record failures on the trade and in ``errors``; continue with the next
4. Stop submitting when cancelled; the in-flight order still resolves
5. Project fills onto the portfolio and re-analyze for target deviation
"""

import threading
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional

from rebalance_engine.execution.base import (
    BrokerPort,
    ExecutionResults,
    ExecutionStatus,
    OrderResult,
    OrderSide,
    OrderType,
    RebalanceExecution,
    TimeInForce,
    TradeExecution,
    TradeStatus,
)
from rebalance_engine.portfolio.analyzer import AllocationAnalyzer
from rebalance_engine.portfolio.base import (
    Portfolio,
    RebalanceRecommendation,
    TradeAction,
    TradeRecommendation,
)
from rebalance_engine.utils.exceptions import ExecutionCancelledError
from rebalance_engine.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


def new_execution_id() -> str:
    """Generate a unique execution id."""
    return f"exec_{uuid.uuid4().hex[:12]}"


class ExecutionEngine:
    """Runs a recommendation's trades against a broker.

    Trades run strictly sequentially so each fill is settled before the
    next order draws on the same cash. No timeout is imposed on broker
    calls; a broker that needs one must surface it as a failed order.

    Example:
        >>> engine = ExecutionEngine(broker, AllocationAnalyzer(market_data))
        >>> execution = engine.run(recommendation, portfolio)
        >>> print(execution.status, execution.results.trades_executed)
    """

    def __init__(
        self,
        broker: BrokerPort,
        analyzer: AllocationAnalyzer,
        order_type: OrderType = OrderType.MARKET,
        time_in_force: TimeInForce = TimeInForce.DAY,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize execution engine.

        Args:
            broker: Brokerage order API
            analyzer: Analyzer used to measure post-trade deviation
            order_type: Order type for every submission
            time_in_force: Order validity for every submission
            poll_interval: Seconds between order status polls
            sleep: Sleep function (injectable for tests)
        """
        if poll_interval < 0:
            raise ValueError(f"poll_interval must be non-negative, got {poll_interval}")

        self.broker = broker
        self.analyzer = analyzer
        self.order_type = order_type
        self.time_in_force = time_in_force
        self.poll_interval = poll_interval
        self._sleep = sleep

    def run(
        self,
        recommendation: RebalanceRecommendation,
        portfolio: Portfolio,
        cancel_event: Optional[threading.Event] = None,
        execution_id: Optional[str] = None,
    ) -> RebalanceExecution:
        """Execute every trade of ``recommendation``.

        Args:
            recommendation: Recommendation to execute
            portfolio: Portfolio snapshot the trades apply to
            cancel_event: Set to stop submitting further trades
            execution_id: Id to use (generated when None)

        Returns:
            RebalanceExecution, COMPLETED unless cancelled
        """
        execution = RebalanceExecution(
            id=execution_id or new_execution_id(),
            portfolio_id=recommendation.portfolio_id,
            strategy_id=recommendation.strategy_id,
            status=ExecutionStatus.EXECUTING,
            total_value=recommendation.total_trade_value,
        )
        trades = sorted(recommendation.trades, key=lambda t: -t.priority)

        log_with_context(
            logger,
            "info",
            "Execution started",
            execution_id=execution.id,
            portfolio_id=execution.portfolio_id,
            strategy_id=execution.strategy_id,
            trades=len(trades),
        )

        cancelled = False
        for index, trade in enumerate(trades):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                error = ExecutionCancelledError(
                    f"Execution cancelled after {index} of {len(trades)} trades"
                )
                execution.errors.append(str(error))
                logger.warning("%s (execution_id=%s)", error, execution.id)
                break

            trade_execution = self._execute_trade(trade, f"{execution.id}-{index}")
            execution.trades.append(trade_execution)
            if trade_execution.error:
                execution.errors.append(trade_execution.error)

        executed = [t for t in execution.trades if t.status.is_success]
        execution.results = ExecutionResults(
            trades_executed=len(executed),
            total_cost=sum(t.total_cost for t in execution.trades),
            target_deviation=self._target_deviation(portfolio, trades, execution.trades),
            improvement_score=len(executed) / len(trades) * 100 if trades else 0.0,
        )
        execution.finish(ExecutionStatus.FAILED if cancelled else ExecutionStatus.COMPLETED)

        log_with_context(
            logger,
            "info",
            "Execution finished",
            execution_id=execution.id,
            status=execution.status.value,
            executed=len(executed),
            failed=len(execution.trades) - len(executed),
        )

        return execution

    def _execute_trade(self, trade: TradeRecommendation, client_order_id: str) -> TradeExecution:
        """Submit one trade and wait for its terminal status."""
        side = OrderSide.BUY if trade.action == TradeAction.BUY else OrderSide.SELL
        order_id = None

        try:
            result = self.broker.place_order(
                symbol=trade.symbol,
                side=side,
                quantity=trade.shares,
                order_type=self.order_type,
                time_in_force=self.time_in_force,
                client_order_id=client_order_id,
            )
            order_id = result.order_id
            logger.info(
                "Order submitted: %s %d shares of %s (order_id: %s)",
                side.value,
                trade.shares,
                trade.symbol,
                order_id,
            )
            result = self._wait_for_terminal(result)

        except Exception as e:
            error_msg = f"Trade failed for {trade.symbol}: {e}"
            logger.error(error_msg)
            return TradeExecution(
                symbol=trade.symbol,
                order_id=order_id,
                status=TradeStatus.FAILED,
                requested_shares=trade.shares,
                error=error_msg,
            )

        trade_execution = TradeExecution(
            symbol=trade.symbol,
            order_id=result.order_id,
            status=result.status,
            requested_shares=trade.shares,
            filled_shares=result.filled_qty,
            average_price=result.avg_fill_price,
        )
        trade_execution.total_cost = (
            result.filled_qty * result.avg_fill_price
            + trade.estimated_cost * trade_execution.fill_ratio
        )

        if not result.status.is_success:
            trade_execution.error = (
                f"Trade {result.status.value} for {trade.symbol}: "
                f"{result.error or 'no fill'}"
            )
            logger.error(trade_execution.error)
        else:
            logger.info(
                "Order %s: %s %.0f/%d shares at %.2f",
                result.status.value,
                trade.symbol,
                result.filled_qty,
                trade.shares,
                result.avg_fill_price,
            )

        return trade_execution

    def _wait_for_terminal(self, result: OrderResult) -> OrderResult:
        while result.status == TradeStatus.PENDING:
            self._sleep(self.poll_interval)
            result = self.broker.get_order(result.order_id)
        return result

    def _target_deviation(
        self,
        portfolio: Portfolio,
        trades: List[TradeRecommendation],
        executions: List[TradeExecution],
    ) -> float:
        """Mean |drift| after applying fills to the portfolio."""
        projected = self.project_fills(portfolio, trades, executions)
        return self.analyzer.analyze(projected).mean_absolute_drift

    @staticmethod
    def project_fills(
        portfolio: Portfolio,
        trades: List[TradeRecommendation],
        executions: List[TradeExecution],
    ) -> Portfolio:
        """Portfolio as it would look with the executed fills applied.

        Positions with known shares move by the filled quantity; the rest
        move by the filled value. Cash moves the opposite way.

        Args:
            portfolio: Pre-trade snapshot
            trades: Trades in submission order
            executions: Outcomes aligned with ``trades``

        Returns:
            New Portfolio; the input is not modified
        """
        allocations = {a.symbol: a for a in portfolio.allocations}
        cash = portfolio.cash_balance

        for trade, execution in zip(trades, executions):
            if not execution.status.is_success or execution.filled_shares <= 0:
                continue
            allocation = allocations.get(trade.symbol)
            if allocation is None:
                continue

            sign = 1 if trade.action == TradeAction.BUY else -1
            filled_value = execution.filled_shares * execution.average_price
            cash -= sign * filled_value

            if allocation.shares is not None:
                allocations[trade.symbol] = replace(
                    allocation,
                    shares=max(allocation.shares + sign * execution.filled_shares, 0.0),
                )
            else:
                allocations[trade.symbol] = replace(
                    allocation,
                    current_value=max(allocation.current_value + sign * filled_value, 0.0),
                )

        return replace(
            portfolio,
            cash_balance=max(cash, 0.0),
            allocations=[allocations[a.symbol] for a in portfolio.allocations],
        )
