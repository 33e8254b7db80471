"""Tactical rebalancing.

Tilts target weights by recent momentum and trims equity exposure when
the market is volatile.

Per allocation:
    adjustment (pp) = momentum x 100 x momentum_coefficient
                      - volatility_penalty   (equities, volatile market only)

A tilt is traded only when |adjustment| > 1 pp and the resulting trade is
at least ``tactical_min_trade_amount``.
"""

from datetime import datetime
from typing import List, Optional

from rebalance_engine.portfolio.analyzer import AllocationSnapshot
from rebalance_engine.portfolio.base import AssetCategory, TradeRecommendation, Urgency
from rebalance_engine.strategy.base import (
    EvaluationResult,
    RebalancingStrategy,
    StrategyEvaluator,
    StrategyType,
)
from rebalance_engine.utils.exceptions import ValidationError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)

MIN_ADJUSTMENT_PP = 1.0
HIGH_MARKET_VOLATILITY = 0.25


class TacticalEvaluator(StrategyEvaluator):
    """Momentum and volatility driven tilts.

    Market volatility is the portfolio's aggregate volatility.
    """

    strategy_type = StrategyType.TACTICAL

    def validate_params(self, strategy: RebalancingStrategy) -> None:
        super().validate_params(strategy)
        params = strategy.parameters
        if params.tactical_min_trade_amount < 0:
            raise ValidationError(
                "tactical_min_trade_amount must be non-negative, "
                f"got {params.tactical_min_trade_amount}"
            )
        if params.volatility_penalty < 0:
            raise ValidationError(
                f"volatility_penalty must be non-negative, got {params.volatility_penalty}"
            )

    def evaluate(
        self,
        snapshot: AllocationSnapshot,
        strategy: RebalancingStrategy,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        self.validate_params(strategy)
        params = strategy.parameters
        market_volatility = snapshot.aggregate_volatility
        volatile_market = market_volatility > params.volatility_penalty_level
        total_value = self.investable_value(snapshot, strategy)

        trades: List[TradeRecommendation] = []
        for allocation in snapshot.known_allocations:
            adjustment = self.adjustment(
                momentum=snapshot.momentum_of(allocation.symbol) or 0.0,
                is_equity=allocation.category == AssetCategory.EQUITY,
                volatile_market=volatile_market,
                strategy=strategy,
            )
            if abs(adjustment) <= MIN_ADJUSTMENT_PP:
                continue

            trade = self.build_trade(
                allocation,
                price=snapshot.price_of(allocation.symbol),
                total_value=total_value,
                target_percent=allocation.target_percent + adjustment,
                reason=f"Tactical tilt of {adjustment:+.2f}pp",
                priority=abs(adjustment),
                strategy=strategy,
            )
            if trade is None or trade.notional_amount < params.tactical_min_trade_amount:
                continue
            trades.append(trade)

        urgency = (
            Urgency.HIGH if market_volatility > HIGH_MARKET_VOLATILITY else Urgency.MEDIUM
        )

        if trades:
            reason = (
                f"Tactical adjustments for {', '.join(t.symbol for t in trades)} "
                f"(market volatility {market_volatility:.2%})"
            )
        else:
            reason = "No tactical adjustment above threshold"

        logger.info(
            "Tactical strategy %s: market volatility %.4f, %d trades",
            strategy.id,
            market_volatility,
            len(trades),
        )

        return EvaluationResult(trades=trades, reason=reason, urgency=urgency)

    @staticmethod
    def adjustment(
        momentum: float,
        is_equity: bool,
        volatile_market: bool,
        strategy: RebalancingStrategy,
    ) -> float:
        """Target weight tilt in percentage points."""
        params = strategy.parameters
        adjustment = momentum * 100 * params.momentum_coefficient
        if is_equity and volatile_market:
            adjustment -= params.volatility_penalty
        return adjustment
