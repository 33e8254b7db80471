"""Strategy Layer.

Strategy configuration records and the evaluators that turn an analyzed
portfolio into provisional trades.

Components:
- RebalancingStrategy: Strategy configuration (parameters + constraints)
- StrategyEvaluator: Abstract evaluator contract
- ThresholdEvaluator, CalendarEvaluator, VolatilityTargetEvaluator,
  RiskParityEvaluator, TacticalEvaluator: the five variants
- get_evaluator: Closed registry keyed by StrategyType
"""

from rebalance_engine.strategy.base import (
    EvaluationResult,
    RebalanceFrequency,
    RebalancingStrategy,
    StrategyConstraints,
    StrategyEvaluator,
    StrategyParameters,
    StrategyType,
)
from rebalance_engine.strategy.calendar_strategy import CalendarEvaluator
from rebalance_engine.strategy.registry import get_evaluator
from rebalance_engine.strategy.risk_parity import RiskParityEvaluator
from rebalance_engine.strategy.tactical import TacticalEvaluator
from rebalance_engine.strategy.threshold import ThresholdEvaluator
from rebalance_engine.strategy.volatility_target import VolatilityTargetEvaluator

__all__ = [
    "RebalancingStrategy",
    "StrategyParameters",
    "StrategyConstraints",
    "StrategyType",
    "RebalanceFrequency",
    "EvaluationResult",
    "StrategyEvaluator",
    "ThresholdEvaluator",
    "CalendarEvaluator",
    "VolatilityTargetEvaluator",
    "RiskParityEvaluator",
    "TacticalEvaluator",
    "get_evaluator",
]
