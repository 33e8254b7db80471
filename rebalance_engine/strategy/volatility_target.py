"""Volatility-target rebalancing.

Scales risky positions so that the portfolio's aggregate volatility moves
back to the risk target.

Algorithm:
1. gap = aggregate_volatility - risk_target
2. If |gap| <= tolerance, do nothing
3. Each position with volatility > 0 takes a share of the correction equal
   to its share of aggregate volatility. Working this through, every such
   weight is scaled by k = risk_target / aggregate_volatility
4. Zero-volatility positions (cash-like) absorb the difference
5. When k > 1 the buys are capped by available cash
"""

from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from rebalance_engine.portfolio.analyzer import AllocationSnapshot
from rebalance_engine.portfolio.base import TradeAction, TradeRecommendation, Urgency
from rebalance_engine.strategy.base import (
    EvaluationResult,
    RebalancingStrategy,
    StrategyEvaluator,
    StrategyType,
)
from rebalance_engine.utils.exceptions import ValidationError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RISK_TARGET = 0.15


class VolatilityTargetEvaluator(StrategyEvaluator):
    """Targets a fixed aggregate portfolio volatility.

    The risk target comes from ``parameters.risk_target``, then the
    portfolio's ``target_risk``, then 15%.
    """

    strategy_type = StrategyType.VOLATILITY_TARGET

    def validate_params(self, strategy: RebalancingStrategy) -> None:
        super().validate_params(strategy)
        params = strategy.parameters
        if params.risk_target is not None and params.risk_target <= 0:
            raise ValidationError(f"risk_target must be positive, got {params.risk_target}")
        if params.volatility_tolerance < 0:
            raise ValidationError(
                f"volatility_tolerance must be non-negative, got {params.volatility_tolerance}"
            )

    def evaluate(
        self,
        snapshot: AllocationSnapshot,
        strategy: RebalancingStrategy,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        self.validate_params(strategy)
        params = strategy.parameters
        portfolio = snapshot.portfolio

        risk_target = params.risk_target or portfolio.target_risk or DEFAULT_RISK_TARGET
        current = snapshot.aggregate_volatility
        gap = current - risk_target

        if abs(gap) <= params.volatility_tolerance:
            return EvaluationResult(
                trades=[],
                reason=(
                    f"Volatility {current:.2%} within {params.volatility_tolerance:.2%} "
                    f"of {risk_target:.2%} target"
                ),
                urgency=Urgency.LOW,
            )

        if current <= 0:
            return EvaluationResult(
                trades=[],
                reason="No volatile positions to scale toward the risk target",
                urgency=Urgency.LOW,
            )

        scale = risk_target / current
        direction = "above" if gap > 0 else "below"
        total_value = self.investable_value(snapshot, strategy)

        trades: List[TradeRecommendation] = []
        for allocation in snapshot.known_allocations:
            volatility = snapshot.volatility_of(allocation.symbol)
            if not volatility:
                continue

            # Weight within the investable value, the same base build_trade sizes against
            current_percent = allocation.current_value / total_value * 100
            new_percent = current_percent * scale
            trade = self.build_trade(
                allocation,
                price=snapshot.price_of(allocation.symbol),
                total_value=total_value,
                target_percent=new_percent,
                reason=(
                    f"Portfolio volatility {current:.2%} {direction} "
                    f"{risk_target:.2%} target"
                ),
                priority=abs(new_percent - current_percent),
                strategy=strategy,
            )
            if trade is not None:
                trades.append(trade)

        trades = self._cap_buys_to_cash(trades, portfolio.cash_balance)

        urgency = self.urgency_from_levels(
            abs(gap),
            [(0.05, Urgency.HIGH), (0.03, Urgency.MEDIUM)],
        )
        reason = (
            f"Portfolio volatility {current:.2%} is {abs(gap):.2%} {direction} "
            f"the {risk_target:.2%} target"
        )

        logger.info(
            "Volatility target strategy %s: gap %.4f, scale %.4f, %d trades",
            strategy.id,
            gap,
            scale,
            len(trades),
        )

        return EvaluationResult(trades=trades, reason=reason, urgency=urgency)

    def _cap_buys_to_cash(
        self, trades: List[TradeRecommendation], cash_balance: float
    ) -> List[TradeRecommendation]:
        """Scale buy trades down so their total fits the cash balance."""
        total_buys = sum(t.notional_amount for t in trades if t.action == TradeAction.BUY)
        if total_buys <= cash_balance:
            return trades

        ratio = cash_balance / total_buys
        logger.info(
            "Scaling buys by %.4f to fit cash balance %.2f (requested %.2f)",
            ratio,
            cash_balance,
            total_buys,
        )

        capped = []
        for trade in trades:
            if trade.action != TradeAction.BUY:
                capped.append(trade)
                continue
            shares = int(trade.notional_amount * ratio // trade.price)
            notional = shares * trade.price
            capped.append(
                replace(
                    trade,
                    shares=shares,
                    notional_amount=notional,
                    estimated_cost=notional * self.cost_rate,
                )
            )
        return capped
