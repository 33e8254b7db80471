"""YAML portfolio files.

Loads a portfolio, its strategies and (optionally) a static quote table
from one YAML document. Used by the CLI.

File layout:

    portfolio:
      id: portfolio_123
      owner_id: user_1
      total_value: 100000
      cash_balance: 5000
      allocations:
        - {symbol: SPY, target_percent: 60, shares: 130, category: equity}
    strategies:
      - id: threshold_5
        name: Threshold 5%
        type: threshold
        parameters: {threshold_percent: 5}
        constraints: {max_daily_trades: 10}
    quotes:
      SPY: {price: 500.0, volatility: 0.15, momentum: 0.02}
"""

from dataclasses import fields
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from rebalance_engine.data.base import Quote
from rebalance_engine.portfolio.base import AssetAllocation, AssetCategory, Portfolio
from rebalance_engine.strategy.base import (
    RebalanceFrequency,
    RebalancingStrategy,
    StrategyConstraints,
    StrategyParameters,
    StrategyType,
)
from rebalance_engine.utils.exceptions import ValidationError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


def _to_datetime(value: Any) -> Optional[datetime]:
    """YAML gives date/datetime for ISO timestamps, str otherwise."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def _check_keys(data: Dict, cls, context: str) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationError(f"Unknown {context} fields: {unknown}")


def allocation_from_dict(data: Dict[str, Any]) -> AssetAllocation:
    """Build an AssetAllocation from a mapping."""
    data = dict(data)
    _check_keys(data, AssetAllocation, "allocation")
    if "category" in data:
        data["category"] = AssetCategory(data["category"])
    return AssetAllocation(**data)


def portfolio_from_dict(data: Dict[str, Any]) -> Portfolio:
    """Build a Portfolio from a mapping.

    Raises:
        ValidationError: If fields are unknown or values invalid
    """
    data = dict(data)
    _check_keys(data, Portfolio, "portfolio")
    try:
        data["allocations"] = [allocation_from_dict(a) for a in data.get("allocations", [])]
        return Portfolio(**data)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid portfolio: {e}") from e


def strategy_from_dict(data: Dict[str, Any]) -> RebalancingStrategy:
    """Build a RebalancingStrategy from a mapping.

    Raises:
        ValidationError: If fields are unknown or values invalid
    """
    data = dict(data)
    _check_keys(data, RebalancingStrategy, "strategy")

    try:
        params = dict(data.get("parameters") or {})
        _check_keys(params, StrategyParameters, "strategy parameter")
        if "frequency" in params:
            params["frequency"] = RebalanceFrequency(params["frequency"])
        if "last_rebalance" in params:
            params["last_rebalance"] = _to_datetime(params["last_rebalance"])

        constraints = dict(data.get("constraints") or {})
        _check_keys(constraints, StrategyConstraints, "strategy constraint")

        data["type"] = StrategyType(data["type"])
        data["parameters"] = StrategyParameters(**params)
        data["constraints"] = StrategyConstraints(**constraints)
        data["last_run"] = _to_datetime(data.get("last_run"))
        return RebalancingStrategy(**data)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid strategy {data.get('id')!r}: {e}") from e


def load_portfolio_file(
    filepath: str,
) -> Tuple[Portfolio, List[RebalancingStrategy], Dict[str, Quote]]:
    """Load a portfolio file.

    Args:
        filepath: Path to the YAML file

    Returns:
        (portfolio, strategies, quotes); quotes is empty when the file has
        no ``quotes`` section

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the content is malformed
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Portfolio file not found: {path}")

    with open(path) as f:
        document = yaml.safe_load(f) or {}

    if "portfolio" not in document:
        raise ValidationError(f"{path} has no 'portfolio' section")

    portfolio = portfolio_from_dict(document["portfolio"])
    strategies = [strategy_from_dict(s) for s in document.get("strategies") or []]

    quotes = {}
    for symbol, values in (document.get("quotes") or {}).items():
        try:
            quotes[symbol] = Quote(
                symbol=symbol,
                price=float(values["price"]),
                volatility=float(values.get("volatility", 0.0)),
                momentum=float(values.get("momentum", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid quote for {symbol}: {e}") from e

    logger.info(
        "Loaded portfolio %s from %s: %d allocations, %d strategies, %d quotes",
        portfolio.id,
        path,
        len(portfolio.allocations),
        len(strategies),
        len(quotes),
    )
    return portfolio, strategies, quotes
