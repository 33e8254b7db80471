"""Configuration management for the rebalancing engine.

This module provides YAML configuration loading, dot-notation access, and
the typed engine settings derived from it.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from rebalance_engine.utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = ROOT_DIR / "config" / "default.yaml"


class Config:
    """Configuration loader and accessor.

    Loads YAML configuration files and provides dict-like access to settings.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> log_level = config.get("logging.level", "INFO")
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            Config instance with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If the file is not a YAML mapping
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping, got {type(config_dict).__name__}"
            )

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g. "engine.trading_cost_rate")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._config

        for k in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default

        return value

    def section(self, key: str) -> dict[str, Any]:
        """Get a nested mapping, empty when missing."""
        value = self.get(key, {})
        return value if isinstance(value, dict) else {}

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def to_dict(self) -> dict[str, Any]:
        """Get the full configuration as dictionary."""
        return self._config.copy()


@dataclass
class EngineSettings:
    """Tunables for the orchestrator and execution engine.

    Attributes:
        trading_cost_rate: Estimated cost per traded dollar (0.001 = 10 bps)
        dry_run_improvement_score: Improvement score reported by dry runs
        order_poll_interval: Seconds between broker status polls
        enforce_market_hours: Honour the market-hours-only strategy constraint
        log_level: Root logging level
    """

    trading_cost_rate: float = 0.001
    dry_run_improvement_score: float = 85.0
    order_poll_interval: float = 1.0
    enforce_market_hours: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        if self.trading_cost_rate < 0:
            raise ConfigurationError(
                f"trading_cost_rate must be non-negative, got {self.trading_cost_rate}"
            )
        if not 0 <= self.dry_run_improvement_score <= 100:
            raise ConfigurationError(
                "dry_run_improvement_score must be in [0, 100], "
                f"got {self.dry_run_improvement_score}"
            )
        if self.order_poll_interval < 0:
            raise ConfigurationError(
                f"order_poll_interval must be non-negative, got {self.order_poll_interval}"
            )

    @classmethod
    def from_config(cls, config: Config) -> "EngineSettings":
        """Build settings from the ``engine`` and ``logging`` sections."""
        engine = config.section("engine")
        defaults = cls()
        return cls(
            trading_cost_rate=float(
                engine.get("trading_cost_rate", defaults.trading_cost_rate)
            ),
            dry_run_improvement_score=float(
                engine.get("dry_run_improvement_score", defaults.dry_run_improvement_score)
            ),
            order_poll_interval=float(
                engine.get("order_poll_interval", defaults.order_poll_interval)
            ),
            enforce_market_hours=bool(
                engine.get("enforce_market_hours", defaults.enforce_market_hours)
            ),
            log_level=str(config.get("logging.level", defaults.log_level)),
        )


def load_config(filepath: str | Path = None) -> Config:
    """Load configuration, defaulting to ``config/default.yaml``."""
    if filepath is None:
        filepath = DEFAULT_CONFIG_PATH
    return Config.from_file(filepath)


def load_alpaca_credentials(env_file: str | Path = None) -> dict[str, Any]:
    """Load Alpaca credentials from the environment.

    Values already present in the process environment win over the
    ``.env`` file, which is optional.

    Args:
        env_file: Path to .env file. If None, uses ``.env`` at project root.

    Returns:
        Dict with ``api_key``, ``secret_key`` and ``paper``

    Raises:
        ConfigurationError: If required environment variables are missing
    """
    if env_file is None:
        env_file = ROOT_DIR / ".env"
    if Path(env_file).exists():
        load_dotenv(env_file)

    required_vars = ["ALPACA_API_KEY", "ALPACA_SECRET_KEY"]
    missing_vars = [var for var in required_vars if not os.getenv(var)]

    if missing_vars:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing_vars)}. "
            "Please check your .env file."
        )

    return {
        "api_key": os.getenv("ALPACA_API_KEY"),
        "secret_key": os.getenv("ALPACA_SECRET_KEY"),
        "paper": os.getenv("ALPACA_PAPER", "true").lower() == "true",
    }
