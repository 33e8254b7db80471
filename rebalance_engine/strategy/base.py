"""Rebalancing strategy records and the evaluator contract.

A RebalancingStrategy is configuration owned by the persistence store and
read-only to the engine. A StrategyEvaluator turns an analyzed portfolio
plus one strategy into provisional trades, a reason and an urgency.

Evaluators generate PROPOSALS only. The TradeOptimizer applies the
strategy's constraints afterwards, so evaluators do not filter by
excluded symbols, position limits or daily trade caps.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from rebalance_engine.portfolio.analyzer import AllocationSnapshot
from rebalance_engine.portfolio.base import (
    AssetAllocation,
    TaxImplication,
    TradeAction,
    TradeRecommendation,
    Urgency,
)
from rebalance_engine.utils.exceptions import ValidationError

# Absolute tolerance for float comparisons on percentages
PERCENT_EPSILON = 1e-9

DEFAULT_TRADING_COST_RATE = 0.001


class StrategyType(Enum):
    """Closed set of strategy variants."""

    THRESHOLD = "threshold"
    CALENDAR = "calendar"
    VOLATILITY_TARGET = "volatility_target"
    RISK_PARITY = "risk_parity"
    TACTICAL = "tactical"


class RebalanceFrequency(Enum):
    """Calendar rebalancing cadence."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


@dataclass
class StrategyParameters:
    """Tunable parameters of a strategy.

    Not every field is used by every variant; unused fields are ignored.

    Attributes:
        threshold_percent: Drift (in percentage points) that triggers a trade
        frequency: Calendar cadence
        last_rebalance: When the portfolio was last rebalanced
        volatility_window: Trading days used for volatility
        momentum_window: Trading days used for momentum
        risk_target: Target aggregate volatility (decimal)
        volatility_tolerance: Allowed |aggregate - target| before trading
        max_trade_percent: Largest single trade as percent of portfolio value
        min_trade_amount: Smallest trade notional kept by the optimizer
        tactical_min_trade_amount: Smallest trade notional for tactical tilts
        tax_optimized: Prefer loss-harvesting sells over gain-realizing sells
        liquidity_buffer: Percent of portfolio value kept in cash
        expected_return_coefficient: Heuristic return estimate per recommendation
        risk_reduction_coefficient: Heuristic risk estimate per recommendation
        momentum_coefficient: Scale from momentum to tactical tilt
        volatility_penalty: Equity tilt removed in volatile markets (pp)
        volatility_penalty_level: Market volatility above which the penalty applies
    """

    threshold_percent: float = 5.0
    frequency: RebalanceFrequency = RebalanceFrequency.QUARTERLY
    last_rebalance: Optional[datetime] = None
    volatility_window: int = 30
    momentum_window: int = 20
    risk_target: Optional[float] = None
    volatility_tolerance: float = 0.02
    max_trade_percent: float = 100.0
    min_trade_amount: float = 100.0
    tactical_min_trade_amount: float = 500.0
    tax_optimized: bool = False
    liquidity_buffer: float = 0.0
    expected_return_coefficient: float = 0.02
    risk_reduction_coefficient: float = 0.01
    momentum_coefficient: float = 0.5
    volatility_penalty: float = 2.0
    volatility_penalty_level: float = 0.20


@dataclass
class StrategyConstraints:
    """Hard limits the optimizer enforces on a strategy's trades.

    Attributes:
        market_hours_only: Execute only while the market is open
        max_daily_trades: Cap on the number of trades, None for no cap
        exclude_symbols: Symbols never traded
        min_position_size: Smallest position weight in percent
        max_position_size: Largest position weight in percent (caps buys)
    """

    market_hours_only: bool = False
    max_daily_trades: Optional[int] = None
    exclude_symbols: List[str] = field(default_factory=list)
    min_position_size: Optional[float] = None
    max_position_size: Optional[float] = None


@dataclass
class RebalancingStrategy:
    """Strategy configuration for one portfolio.

    Attributes:
        id: Strategy identifier
        name: Display name
        type: Variant tag used to pick the evaluator
        parameters: Tunable parameters
        constraints: Optimizer constraints
        enabled: Whether analyze-all includes this strategy
        last_run: Last time the strategy ran, maintained by the store
    """

    id: str
    name: str
    type: StrategyType
    parameters: StrategyParameters = field(default_factory=StrategyParameters)
    constraints: StrategyConstraints = field(default_factory=StrategyConstraints)
    enabled: bool = True
    last_run: Optional[datetime] = None


@dataclass
class EvaluationResult:
    """Output of one evaluator call.

    Attributes:
        trades: Provisional trades, unfiltered
        reason: Human-readable explanation of the decision
        urgency: How pressing the rebalance is
    """

    trades: List[TradeRecommendation] = field(default_factory=list)
    reason: str = ""
    urgency: Urgency = Urgency.LOW


class StrategyEvaluator(ABC):
    """Abstract base class for strategy evaluators.

    Subclasses implement ``evaluate`` and may extend ``validate_params``.
    Evaluators are pure: the same snapshot, strategy and clock produce the
    same result.

    Example:
        >>> evaluator = ThresholdEvaluator(cost_rate=0.001)
        >>> result = evaluator.evaluate(snapshot, strategy)
        >>> print(result.urgency, len(result.trades))
    """

    strategy_type: StrategyType

    def __init__(self, cost_rate: float = DEFAULT_TRADING_COST_RATE):
        """Initialize evaluator.

        Args:
            cost_rate: Estimated trading cost per dollar traded
        """
        if cost_rate < 0:
            raise ValueError(f"cost_rate must be non-negative, got {cost_rate}")
        self.cost_rate = cost_rate

    @abstractmethod
    def evaluate(
        self,
        snapshot: AllocationSnapshot,
        strategy: RebalancingStrategy,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        """Decide whether and how to trade.

        Args:
            snapshot: Analyzer output for the portfolio
            strategy: Strategy configuration
            now: Evaluation time (defaults to datetime.now())

        Returns:
            EvaluationResult with provisional trades

        Raises:
            ValidationError: If strategy parameters are malformed
        """
        pass

    def validate_params(self, strategy: RebalancingStrategy) -> None:
        """Validate parameters shared by every variant.

        Raises:
            ValidationError: If a parameter is out of range
        """
        params = strategy.parameters
        if params.min_trade_amount < 0:
            raise ValidationError(
                f"min_trade_amount must be non-negative, got {params.min_trade_amount}"
            )
        if not 0 < params.max_trade_percent <= 100:
            raise ValidationError(
                f"max_trade_percent must be in (0, 100], got {params.max_trade_percent}"
            )
        if not 0 <= params.liquidity_buffer < 100:
            raise ValidationError(
                f"liquidity_buffer must be in [0, 100), got {params.liquidity_buffer}"
            )
        if params.volatility_window < 2:
            raise ValidationError(
                f"volatility_window must be >= 2, got {params.volatility_window}"
            )
        if params.momentum_window < 1:
            raise ValidationError(f"momentum_window must be >= 1, got {params.momentum_window}")

    @staticmethod
    def investable_value(snapshot: AllocationSnapshot, strategy: RebalancingStrategy) -> float:
        """Portfolio value available to allocations after the liquidity buffer."""
        buffer = strategy.parameters.liquidity_buffer
        return snapshot.portfolio.total_value * (1 - buffer / 100)

    def build_trade(
        self,
        allocation: AssetAllocation,
        price: float,
        total_value: float,
        target_percent: float,
        reason: str,
        priority: float,
        strategy: RebalancingStrategy,
    ) -> Optional[TradeRecommendation]:
        """Size a trade that moves ``allocation`` to ``target_percent``.

        The target is clamped to the allocation's bounds first. Returns None
        when the clamped target leaves nothing to trade.

        Args:
            allocation: Repriced allocation
            price: Reference price per share
            total_value: Portfolio value used as the percent denominator
            target_percent: Desired weight in percent
            reason: Trade explanation
            priority: Execution ordering key
            strategy: Strategy (for tax preferences)

        Returns:
            TradeRecommendation or None
        """
        target_percent = allocation.clamp_percent(target_percent)
        target_value = total_value * target_percent / 100
        diff = target_value - allocation.current_value

        if abs(diff) < PERCENT_EPSILON:
            return None

        action = TradeAction.BUY if diff > 0 else TradeAction.SELL
        notional = abs(diff)
        shares = int(round(notional / price))

        tax_implication = None
        if action == TradeAction.SELL and allocation.cost_basis is not None:
            gain_loss = (price - allocation.cost_basis) * shares
            tax_implication = TaxImplication(gain_loss=gain_loss)
            if strategy.parameters.tax_optimized and gain_loss > 0:
                # Loss-harvesting sells run before gain-realizing ones
                priority = max(priority - 1, 0.0)

        return TradeRecommendation(
            symbol=allocation.symbol,
            action=action,
            shares=shares,
            notional_amount=notional,
            price=price,
            target_percent=target_percent,
            current_percent=allocation.current_percent,
            reason=reason,
            priority=priority,
            estimated_cost=notional * self.cost_rate,
            tax_implication=tax_implication,
        )

    @staticmethod
    def urgency_from_levels(value: float, levels: List[tuple]) -> Urgency:
        """Map ``value`` to the first urgency whose level it exceeds.

        Args:
            value: Measured quantity
            levels: (level, urgency) pairs, highest level first

        Returns:
            Matching urgency, LOW when no level is exceeded
        """
        for level, urgency in levels:
            if value > level:
                return urgency
        return Urgency.LOW
