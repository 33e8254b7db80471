"""Alpaca API client utility.

Shared connection holder for the Alpaca market data and brokerage
adapters. Read-only calls may be retried; order submission never is,
so a transient failure can't turn into a duplicate order.
"""

import time
from typing import Optional

from alpaca.data.historical import StockHistoricalDataClient
from alpaca.trading.client import TradingClient

from rebalance_engine.utils.config import load_alpaca_credentials
from rebalance_engine.utils.exceptions import BrokerConnectionError, ConfigurationError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


class AlpacaClient:
    """Centralized Alpaca API client with connection management.

    Handles:
    - Lazy creation of the trading and market data clients
    - Client-side rate limiting
    - Retries for idempotent (read-only) requests

    Example:
        >>> client = AlpacaClient.from_env()
        >>> trading_client = client.get_trading_client()
        >>> account = client.with_retry(trading_client.get_account)
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        paper: bool = True,
        rate_limit_per_minute: int = 200,
        retry_attempts: int = 3,
        retry_delay: float = 2.0,
    ):
        """Initialize Alpaca client.

        Args:
            api_key: Alpaca API key
            secret_key: Alpaca secret key
            paper: Use paper trading (True) or live trading (False)
            rate_limit_per_minute: Max API requests per minute
            retry_attempts: Attempts for read-only requests
            retry_delay: Base delay in seconds between retries

        Raises:
            ConfigurationError: If credentials are missing
        """
        if not api_key or not secret_key:
            raise ConfigurationError("Alpaca API key and secret key are required")

        self.api_key = api_key
        self.secret_key = secret_key
        self.paper = paper
        self.rate_limit_per_minute = rate_limit_per_minute
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

        self._request_times: list[float] = []
        self._trading_client: Optional[TradingClient] = None
        self._data_client: Optional[StockHistoricalDataClient] = None

        logger.info(
            "AlpacaClient initialized (mode: %s, rate_limit: %d/min)",
            "paper" if paper else "live",
            rate_limit_per_minute,
        )

    @classmethod
    def from_env(cls, env_file: str = None, **kwargs) -> "AlpacaClient":
        """Create AlpacaClient from ALPACA_* environment variables.

        Args:
            env_file: Optional .env file to load first
            **kwargs: Rate limit and retry settings passed to __init__
        """
        credentials = load_alpaca_credentials(env_file)
        return cls(
            api_key=credentials["api_key"],
            secret_key=credentials["secret_key"],
            paper=credentials["paper"],
            **kwargs,
        )

    def get_trading_client(self) -> TradingClient:
        """Get or create TradingClient instance.

        Raises:
            BrokerConnectionError: If client initialization fails
        """
        if self._trading_client is None:
            try:
                self._trading_client = TradingClient(
                    api_key=self.api_key,
                    secret_key=self.secret_key,
                    paper=self.paper,
                )
            except Exception as e:
                error_msg = f"Failed to initialize TradingClient: {e}"
                logger.error(error_msg)
                raise BrokerConnectionError(error_msg) from e

        return self._trading_client

    def get_data_client(self) -> StockHistoricalDataClient:
        """Get or create StockHistoricalDataClient instance.

        Raises:
            BrokerConnectionError: If client initialization fails
        """
        if self._data_client is None:
            try:
                self._data_client = StockHistoricalDataClient(
                    api_key=self.api_key,
                    secret_key=self.secret_key,
                )
            except Exception as e:
                error_msg = f"Failed to initialize StockHistoricalDataClient: {e}"
                logger.error(error_msg)
                raise BrokerConnectionError(error_msg) from e

        return self._data_client

    def check_rate_limit(self) -> None:
        """Sleep if the next request would exceed the per-minute budget."""
        current_time = time.time()
        one_minute_ago = current_time - 60
        self._request_times = [t for t in self._request_times if t > one_minute_ago]

        if len(self._request_times) >= self.rate_limit_per_minute:
            sleep_time = self._request_times[0] + 60 - current_time
            if sleep_time > 0:
                logger.warning(
                    "Rate limit reached (%d requests/min). Sleeping for %.2f seconds.",
                    self.rate_limit_per_minute,
                    sleep_time,
                )
                time.sleep(sleep_time)
                current_time = time.time()
                self._request_times = [
                    t for t in self._request_times if t > current_time - 60
                ]

        self._request_times.append(current_time)

    def with_retry(self, func, *args, **kwargs):
        """Execute a read-only request with retry logic.

        Raises:
            BrokerConnectionError: If all retry attempts fail
        """
        last_exception = None

        for attempt in range(self.retry_attempts):
            try:
                self.check_rate_limit()
                return func(*args, **kwargs)
            except Exception as e:
                last_exception = e
                logger.warning(
                    "API request failed (attempt %d/%d): %s",
                    attempt + 1,
                    self.retry_attempts,
                    e,
                )
                if attempt < self.retry_attempts - 1:
                    time.sleep(self.retry_delay * (attempt + 1))

        error_msg = (
            f"API request failed after {self.retry_attempts} attempts: "
            f"{last_exception}"
        )
        logger.error(error_msg)
        raise BrokerConnectionError(error_msg) from last_exception

    def submit_once(self, func, *args, **kwargs):
        """Execute a non-idempotent request exactly once.

        Used for order submission. Errors propagate unchanged so the
        caller can record them against the trade.
        """
        self.check_rate_limit()
        return func(*args, **kwargs)
