"""Unit tests for AlpacaClient.

Tests the Alpaca API client utility with mocked API responses.
"""

import time
from unittest.mock import Mock, patch

import pytest

from rebalance_engine.utils.alpaca_client import AlpacaClient
from rebalance_engine.utils.exceptions import BrokerConnectionError, ConfigurationError


def make_client(**kwargs) -> AlpacaClient:
    return AlpacaClient(api_key="test_key", secret_key="test_secret", **kwargs)


class TestAlpacaClient:
    """Test AlpacaClient initialization and configuration."""

    def test_init_with_credentials(self) -> None:
        """Test initialization with valid credentials."""
        client = make_client(paper=True)

        assert client.api_key == "test_key"
        assert client.paper is True
        assert client.rate_limit_per_minute == 200
        assert client.retry_attempts == 3

    def test_init_missing_credentials(self) -> None:
        """Test initialization with missing credentials raises error."""
        with pytest.raises(ConfigurationError, match="API key and secret key are required"):
            AlpacaClient(api_key="", secret_key="test_secret")

    @patch("rebalance_engine.utils.alpaca_client.load_alpaca_credentials")
    def test_from_env(self, mock_credentials) -> None:
        """Test creation from environment credentials."""
        mock_credentials.return_value = {
            "api_key": "env_key",
            "secret_key": "env_secret",
            "paper": False,
        }

        client = AlpacaClient.from_env()

        assert client.api_key == "env_key"
        assert client.paper is False

    @patch("rebalance_engine.utils.alpaca_client.load_alpaca_credentials")
    def test_from_env_settings(self, mock_credentials) -> None:
        """Test rate limit and retry settings pass through from_env."""
        mock_credentials.return_value = {
            "api_key": "env_key",
            "secret_key": "env_secret",
            "paper": True,
        }

        client = AlpacaClient.from_env(
            rate_limit_per_minute=50, retry_attempts=5, retry_delay=0.5
        )

        assert client.rate_limit_per_minute == 50
        assert client.retry_attempts == 5
        assert client.retry_delay == 0.5


class TestAlpacaClientConnection:
    """Test AlpacaClient connection management."""

    @patch("rebalance_engine.utils.alpaca_client.TradingClient")
    def test_get_trading_client(self, mock_trading_client_class) -> None:
        """Test TradingClient is created once and reused."""
        client = make_client()
        trading_client = client.get_trading_client()

        mock_trading_client_class.assert_called_once_with(
            api_key="test_key",
            secret_key="test_secret",
            paper=True,
        )
        assert client.get_trading_client() is trading_client

    @patch("rebalance_engine.utils.alpaca_client.StockHistoricalDataClient")
    def test_get_data_client(self, mock_data_client_class) -> None:
        """Test StockHistoricalDataClient is created once and reused."""
        client = make_client()
        data_client = client.get_data_client()

        mock_data_client_class.assert_called_once_with(
            api_key="test_key",
            secret_key="test_secret",
        )
        assert client.get_data_client() is data_client

    @patch("rebalance_engine.utils.alpaca_client.TradingClient")
    def test_get_trading_client_failure(self, mock_trading_client_class) -> None:
        """Test initialization failure surfaces as BrokerConnectionError."""
        mock_trading_client_class.side_effect = Exception("Connection failed")

        with pytest.raises(BrokerConnectionError, match="Failed to initialize TradingClient"):
            make_client().get_trading_client()


class TestAlpacaClientRateLimiting:
    """Test AlpacaClient rate limiting."""

    def test_under_limit_records_requests(self) -> None:
        """Test requests under the limit are tracked without sleeping."""
        client = make_client(rate_limit_per_minute=10)

        for _ in range(9):
            client.check_rate_limit()

        assert len(client._request_times) == 9

    def test_clears_old_requests(self) -> None:
        """Test requests older than a minute are forgotten."""
        client = make_client(rate_limit_per_minute=10)
        now = time.time()
        client._request_times = [now - 70, now - 65]

        client.check_rate_limit()

        assert len(client._request_times) == 1

    @patch("rebalance_engine.utils.alpaca_client.time.sleep")
    def test_sleeps_at_limit(self, mock_sleep) -> None:
        """Test the client waits once the budget is spent."""
        client = make_client(rate_limit_per_minute=2)
        now = time.time()
        client._request_times = [now - 1, now - 0.5]

        client.check_rate_limit()

        mock_sleep.assert_called_once()
        assert mock_sleep.call_args[0][0] > 0


class TestAlpacaClientRetry:
    """Test AlpacaClient retry and submit-once logic."""

    def test_with_retry_success_first_attempt(self) -> None:
        """Test successful execution on first attempt."""
        mock_func = Mock(return_value="success")
        result = make_client().with_retry(mock_func, "arg1", kwarg1="value1")

        assert result == "success"
        mock_func.assert_called_once_with("arg1", kwarg1="value1")

    def test_with_retry_success_after_failures(self) -> None:
        """Test successful execution after retries."""
        client = make_client(retry_attempts=3, retry_delay=0.01)
        mock_func = Mock(side_effect=[Exception("1"), Exception("2"), "success"])

        assert client.with_retry(mock_func) == "success"
        assert mock_func.call_count == 3

    def test_with_retry_all_attempts_fail(self) -> None:
        """Test failure after all retry attempts."""
        client = make_client(retry_attempts=3, retry_delay=0.01)
        mock_func = Mock(side_effect=Exception("Always fails"))

        with pytest.raises(BrokerConnectionError, match="failed after 3 attempts"):
            client.with_retry(mock_func)

        assert mock_func.call_count == 3

    def test_submit_once_never_retries(self) -> None:
        """Test non-idempotent requests run once and propagate errors."""
        mock_func = Mock(side_effect=TimeoutError("read timeout"))

        with pytest.raises(TimeoutError, match="read timeout"):
            make_client(retry_attempts=5).submit_once(mock_func, "order")

        mock_func.assert_called_once_with("order")
