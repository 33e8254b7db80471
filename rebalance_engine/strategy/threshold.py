"""Threshold rebalancing.

Trades every allocation whose drift reaches the threshold back to its
target weight.

Urgency is driven by the largest triggering drift:
- > 3x threshold: critical
- > 2x threshold: high
- > 1.5x threshold: medium
- otherwise: low
"""

import math
from datetime import datetime
from typing import List, Optional

from rebalance_engine.portfolio.analyzer import AllocationSnapshot
from rebalance_engine.portfolio.base import TradeRecommendation, Urgency
from rebalance_engine.strategy.base import (
    PERCENT_EPSILON,
    EvaluationResult,
    RebalancingStrategy,
    StrategyEvaluator,
    StrategyType,
)
from rebalance_engine.utils.exceptions import ValidationError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


class ThresholdEvaluator(StrategyEvaluator):
    """Drift-threshold strategy.

    A drift exactly equal to the threshold triggers.

    Example:
        >>> evaluator = ThresholdEvaluator()
        >>> result = evaluator.evaluate(snapshot, strategy)
        >>> [t.symbol for t in result.trades]
        ['SPY', 'BND']
    """

    strategy_type = StrategyType.THRESHOLD

    def validate_params(self, strategy: RebalancingStrategy) -> None:
        super().validate_params(strategy)
        threshold = strategy.parameters.threshold_percent
        if threshold <= 0:
            raise ValidationError(f"threshold_percent must be positive, got {threshold}")

    def evaluate(
        self,
        snapshot: AllocationSnapshot,
        strategy: RebalancingStrategy,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        self.validate_params(strategy)
        params = strategy.parameters
        threshold = params.threshold_percent
        total_value = self.investable_value(snapshot, strategy)

        trades: List[TradeRecommendation] = []
        triggered: List[str] = []
        max_drift = 0.0

        for allocation in snapshot.known_allocations:
            abs_drift = abs(allocation.drift)
            if abs_drift < threshold - PERCENT_EPSILON:
                continue

            triggered.append(allocation.symbol)
            max_drift = max(max_drift, abs_drift)

            trade = self.build_trade(
                allocation,
                price=snapshot.price_of(allocation.symbol),
                total_value=total_value,
                target_percent=allocation.target_percent,
                reason=f"Drift of {allocation.drift:+.2f}% exceeds {threshold}% threshold",
                priority=float(math.floor(abs_drift / threshold + PERCENT_EPSILON)),
                strategy=strategy,
            )
            if trade is None or trade.notional_amount < params.min_trade_amount:
                logger.debug(
                    "Skipping %s: trade below minimum of %.2f",
                    allocation.symbol,
                    params.min_trade_amount,
                )
                continue
            trades.append(trade)

        if not triggered:
            return EvaluationResult(
                trades=[],
                reason=f"All allocations within {threshold}% threshold",
                urgency=Urgency.LOW,
            )

        urgency = self.urgency_from_levels(
            max_drift,
            [
                (threshold * 3, Urgency.CRITICAL),
                (threshold * 2, Urgency.HIGH),
                (threshold * 1.5, Urgency.MEDIUM),
            ],
        )
        reason = (
            f"Drift exceeds {threshold}% threshold for {', '.join(triggered)} "
            f"(max {max_drift:.2f}%)"
        )

        logger.info(
            "Threshold strategy %s: %d allocations triggered, %d trades, urgency %s",
            strategy.id,
            len(triggered),
            len(trades),
            urgency.value,
        )

        return EvaluationResult(trades=trades, reason=reason, urgency=urgency)
