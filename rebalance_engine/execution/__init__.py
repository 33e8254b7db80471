"""Execution Layer - Trade submission and execution records.

This module drives a recommendation's trades through a broker and
records per-trade and aggregate outcomes.
"""

from rebalance_engine.execution.alpaca_broker import AlpacaBroker
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
from rebalance_engine.execution.engine import ExecutionEngine, new_execution_id
from rebalance_engine.execution.paper_broker import PaperBroker

__all__ = [
    # Abstract interface
    "BrokerPort",
    # Concrete implementations
    "AlpacaBroker",
    "PaperBroker",
    "ExecutionEngine",
    "new_execution_id",
    # Data classes
    "OrderResult",
    "TradeExecution",
    "ExecutionResults",
    "RebalanceExecution",
    # Enums
    "OrderSide",
    "OrderType",
    "TimeInForce",
    "TradeStatus",
    "ExecutionStatus",
]
