"""Evaluator registry.

Maps each StrategyType to its evaluator class. The set is closed: new
variants are added here, not discovered at runtime.
"""

from typing import Dict, Type, Union

from rebalance_engine.strategy.base import (
    DEFAULT_TRADING_COST_RATE,
    StrategyEvaluator,
    StrategyType,
)
from rebalance_engine.strategy.calendar_strategy import CalendarEvaluator
from rebalance_engine.strategy.risk_parity import RiskParityEvaluator
from rebalance_engine.strategy.tactical import TacticalEvaluator
from rebalance_engine.strategy.threshold import ThresholdEvaluator
from rebalance_engine.strategy.volatility_target import VolatilityTargetEvaluator
from rebalance_engine.utils.exceptions import ValidationError

EVALUATORS: Dict[StrategyType, Type[StrategyEvaluator]] = {
    StrategyType.THRESHOLD: ThresholdEvaluator,
    StrategyType.CALENDAR: CalendarEvaluator,
    StrategyType.VOLATILITY_TARGET: VolatilityTargetEvaluator,
    StrategyType.RISK_PARITY: RiskParityEvaluator,
    StrategyType.TACTICAL: TacticalEvaluator,
}


def get_evaluator(
    strategy_type: Union[StrategyType, str],
    cost_rate: float = DEFAULT_TRADING_COST_RATE,
) -> StrategyEvaluator:
    """Build the evaluator for a strategy type.

    Args:
        strategy_type: StrategyType or its string value (e.g., "threshold")
        cost_rate: Estimated trading cost per dollar traded

    Returns:
        StrategyEvaluator instance

    Raises:
        ValidationError: If the type is not registered

    Example:
        >>> evaluator = get_evaluator("threshold")
        >>> type(evaluator).__name__
        'ThresholdEvaluator'
    """
    if not isinstance(strategy_type, StrategyType):
        try:
            strategy_type = StrategyType(strategy_type)
        except ValueError as e:
            raise ValidationError(f"Unknown strategy type: {strategy_type!r}") from e

    evaluator_cls = EVALUATORS.get(strategy_type)
    if evaluator_cls is None:
        raise ValidationError(f"No evaluator registered for {strategy_type.value}")

    return evaluator_cls(cost_rate=cost_rate)
