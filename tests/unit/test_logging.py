"""Unit tests for logging configuration."""

import logging

from rebalance_engine.utils.logging import get_logger, log_with_context, setup_logging


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_sets_root_level(self) -> None:
        """Test root logger level follows the argument."""
        setup_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

        setup_logging(level="WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_level_falls_back_to_info(self) -> None:
        """Test unknown level names default to INFO."""
        setup_logging(level="NOT_A_LEVEL")
        assert logging.getLogger().level == logging.INFO

    def test_quiets_third_party_loggers(self) -> None:
        """Test noisy loggers are capped at WARNING."""
        setup_logging(level="DEBUG", quiet_loggers=("urllib3",))
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestLogWithContext:
    """Test cases for log_with_context."""

    def test_appends_context(self, caplog) -> None:
        """Test context rendered as key=value pairs."""
        logger = get_logger("rebalance_engine.test")

        with caplog.at_level(logging.INFO, logger="rebalance_engine.test"):
            log_with_context(logger, "info", "Order filled", symbol="SPY", shares=10)

        assert "Order filled | symbol=SPY shares=10" in caplog.text

    def test_without_context(self, caplog) -> None:
        """Test message logged unchanged without context."""
        logger = get_logger("rebalance_engine.test")

        with caplog.at_level(logging.WARNING, logger="rebalance_engine.test"):
            log_with_context(logger, "warning", "Data gap")

        assert caplog.records[-1].getMessage() == "Data gap"
        assert caplog.records[-1].levelno == logging.WARNING
