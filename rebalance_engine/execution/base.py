"""Execution records and the broker contract.

This module defines:
- BrokerPort: the brokerage order API the engine submits trades to
- OrderResult: a broker's view of one order
- TradeExecution: the engine's record of one attempted trade
- RebalanceExecution: the aggregate record of one recommendation run

Key Principle: one trade's failure never aborts the batch. Failures are
recorded on the TradeExecution and in RebalanceExecution.errors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class OrderSide(Enum):
    """Order direction sent to the broker."""

    BUY = "buy"
    SELL = "sell"


class OrderType(Enum):
    """Order types supported by the engine."""

    MARKET = "market"  # Execute at current market price
    LIMIT = "limit"  # Execute only at specified price or better


class TimeInForce(Enum):
    """Order duration/validity."""

    DAY = "day"  # Valid for current trading day only
    GTC = "gtc"  # Good-til-cancelled


class TradeStatus(Enum):
    """Order lifecycle states as seen by the engine."""

    PENDING = "pending"  # Submitted, not yet terminal
    FILLED = "filled"  # Fully executed
    PARTIAL = "partial"  # Terminal with some shares filled
    CANCELLED = "cancelled"  # Terminal with nothing filled
    FAILED = "failed"  # Rejected or errored

    @property
    def is_terminal(self) -> bool:
        return self != TradeStatus.PENDING

    @property
    def is_success(self) -> bool:
        """Whether any shares were executed."""
        return self in (TradeStatus.FILLED, TradeStatus.PARTIAL)


class ExecutionStatus(Enum):
    """Lifecycle of a RebalanceExecution."""

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class OrderResult:
    """Broker response for one order.

    Attributes:
        order_id: Broker-assigned order id
        status: Current order status
        filled_qty: Shares filled so far
        avg_fill_price: Average fill price (0 when nothing filled)
        error: Broker-supplied reason for failures
    """

    order_id: str
    status: TradeStatus
    filled_qty: float = 0.0
    avg_fill_price: float = 0.0
    error: Optional[str] = None


@dataclass
class TradeExecution:
    """Outcome of one attempted trade.

    Attributes:
        symbol: Ticker symbol
        order_id: Broker order id, None when submission failed
        status: Terminal status
        requested_shares: Shares the recommendation asked for
        filled_shares: Shares actually executed
        average_price: Average fill price
        total_cost: Filled value plus estimated trading costs
        timestamp: When the trade reached its terminal status
        error: Failure description, None on success
    """

    symbol: str
    order_id: Optional[str]
    status: TradeStatus
    requested_shares: float
    filled_shares: float = 0.0
    average_price: float = 0.0
    total_cost: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None

    @property
    def fill_ratio(self) -> float:
        """Calculate fill percentage."""
        if self.requested_shares == 0:
            return 0.0
        return self.filled_shares / self.requested_shares


@dataclass
class ExecutionResults:
    """Summary figures of a finished execution.

    Attributes:
        trades_executed: Trades that filled fully or partially
        total_cost: Sum of per-trade total cost
        target_deviation: Mean |drift| after applying the fills
        improvement_score: executed / total x 100
    """

    trades_executed: int = 0
    total_cost: float = 0.0
    target_deviation: float = 0.0
    improvement_score: float = 0.0


@dataclass
class RebalanceExecution:
    """Aggregate record of executing one recommendation.

    Attributes:
        id: Execution identifier
        portfolio_id: Portfolio traded
        strategy_id: Strategy whose recommendation was executed
        status: PENDING -> EXECUTING -> COMPLETED | FAILED
        trades: Per-trade outcomes in submission order
        total_value: Notional value of the recommendation
        started_at: When execution began
        completed_at: When execution reached a terminal status
        errors: Human-readable error messages
        results: Summary figures
        dry_run: Whether trades were simulated without a broker
    """

    id: str
    portfolio_id: str
    strategy_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    trades: List[TradeExecution] = field(default_factory=list)
    total_value: float = 0.0
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    errors: List[str] = field(default_factory=list)
    results: ExecutionResults = field(default_factory=ExecutionResults)
    dry_run: bool = False

    def finish(self, status: ExecutionStatus) -> None:
        """Move to a terminal status and stamp the completion time."""
        self.status = status
        self.completed_at = datetime.now()

    @property
    def is_complete(self) -> bool:
        """Check if execution is in a terminal state."""
        return self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)

    def to_dict(self) -> Dict:
        """Plain-dict view for logging and CLI output."""
        return {
            "id": self.id,
            "portfolio_id": self.portfolio_id,
            "strategy_id": self.strategy_id,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "total_value": self.total_value,
            "trades_executed": self.results.trades_executed,
            "total_cost": self.results.total_cost,
            "target_deviation": self.results.target_deviation,
            "improvement_score": self.results.improvement_score,
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class BrokerPort(ABC):
    """Abstract brokerage order API.

    Implementations must treat ``client_order_id`` as an idempotency key:
    submitting the same id twice returns the original order. The engine
    never retries a submission.

    Example:
        >>> broker = PaperBroker(market_data)
        >>> result = broker.place_order(
        ...     "SPY", OrderSide.BUY, 10, OrderType.MARKET, TimeInForce.DAY,
        ...     client_order_id="exec_abc-0",
        ... )
        >>> result.status
        <TradeStatus.FILLED: 'filled'>
    """

    @abstractmethod
    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        order_type: OrderType,
        time_in_force: TimeInForce,
        client_order_id: str,
    ) -> OrderResult:
        """Submit an order.

        Args:
            symbol: Ticker symbol
            side: BUY or SELL
            quantity: Shares to trade
            order_type: Order type
            time_in_force: Order validity
            client_order_id: Caller-supplied idempotency key

        Returns:
            OrderResult, possibly still PENDING

        Raises:
            TradeExecutionError: If the broker rejects the request outright
            BrokerConnectionError: If the broker cannot be reached
        """
        pass

    @abstractmethod
    def get_order(self, order_id: str) -> OrderResult:
        """Fetch the current state of a submitted order."""
        pass
