"""Custom exceptions for the rebalancing engine.

This module defines the exception hierarchy for the application.
"""


class RebalanceEngineError(Exception):
    """Base exception for all rebalancing engine errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(RebalanceEngineError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Missing required configuration keys
        - Missing broker credentials
        - Configuration file not found
    """

    pass


class ValidationError(RebalanceEngineError):
    """Raised when an input record is rejected before any trade attempt.

    Nothing has been executed when this is raised, so the caller can fix
    the input and try again.

    Examples:
        - Malformed strategy parameters
        - Unknown strategy type
        - Unknown portfolio or strategy identifier
    """

    pass


class PortfolioNotFoundError(ValidationError):
    """Raised when the store has no portfolio with the requested id."""

    pass


class StrategyNotFoundError(ValidationError):
    """Raised when a strategy id is not configured for the portfolio."""

    pass


class DataError(RebalanceEngineError):
    """Base exception for market data errors.

    Parent class for all data-related exceptions.
    """

    pass


class DataUnavailableError(DataError):
    """Raised when market data cannot be fetched for a symbol.

    The analyzer skips the symbol for drift and trigger purposes;
    this is never fatal to an analysis.

    Examples:
        - Data feed timeout
        - Empty price history
        - Rate limit exceeded
    """

    pass


class SymbolNotFoundError(DataError):
    """Raised when the market data feed does not know a symbol."""

    pass


class ExecutionError(RebalanceEngineError):
    """Base exception for execution layer errors.

    Parent class for all execution-related exceptions.
    """

    pass


class ConcurrentExecutionError(ExecutionError):
    """Raised when a portfolio already has an execution in flight.

    Concurrent executions are rejected, not queued. Retry later.
    """

    pass


class TradeExecutionError(ExecutionError):
    """Raised when the brokerage rejects or fails a single order.

    Captured per trade by the execution engine and recorded in the
    execution's error list; it never aborts the remaining trades.

    Examples:
        - Order rejected by broker
        - Order cancelled before any fill
        - Broker timeout on submission
    """

    pass


class SystemicError(ExecutionError):
    """Raised when an execution cannot start at all.

    The only error class that marks an execution ``failed`` with zero
    trades attempted.

    Examples:
        - Portfolio could not be loaded from the store
        - Market closed for a market-hours-only strategy
    """

    pass


class ExecutionCancelledError(ExecutionError):
    """Raised (and recorded) when an execution is cancelled mid-batch."""

    pass


class BrokerConnectionError(ExecutionError):
    """Raised when the broker API cannot be reached.

    Examples:
        - Invalid API credentials
        - Network connection failed
        - All retry attempts exhausted
    """

    pass
