"""Risk-parity rebalancing.

Each position should contribute an equal share (1/N) of portfolio risk.
Risk contribution is approximated as weight x volatility, normalized so
contributions sum to 1.

A position is rebalanced when its contribution deviates from 1/N by more
than 20% of 1/N. Its new weight is the inverse-volatility weight, which
equalizes contributions, scaled to the combined target weight of the
positions taking part.
"""

from datetime import datetime
from typing import Dict, List, Optional

from rebalance_engine.portfolio.analyzer import AllocationSnapshot
from rebalance_engine.portfolio.base import AssetAllocation, TradeRecommendation, Urgency
from rebalance_engine.strategy.base import (
    EvaluationResult,
    RebalancingStrategy,
    StrategyEvaluator,
    StrategyType,
)
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)

# Deviation from the equal contribution, as a fraction of it
TRIGGER_DEVIATION = 0.20
HIGH_DEVIATION = 0.50
MEDIUM_DEVIATION = 0.30


class RiskParityEvaluator(StrategyEvaluator):
    """Equal-risk-contribution strategy.

    Allocations without volatility data (or with zero volatility) do not
    take part and are logged.
    """

    strategy_type = StrategyType.RISK_PARITY

    def evaluate(
        self,
        snapshot: AllocationSnapshot,
        strategy: RebalancingStrategy,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        self.validate_params(strategy)

        included: List[AssetAllocation] = []
        volatilities: Dict[str, float] = {}
        for allocation in snapshot.known_allocations:
            volatility = snapshot.volatility_of(allocation.symbol)
            if not volatility or volatility <= 0:
                logger.info(
                    "Risk parity: excluding %s (no positive volatility)", allocation.symbol
                )
                continue
            included.append(allocation)
            volatilities[allocation.symbol] = volatility

        contributions = self.risk_contributions(included, volatilities)
        if len(included) < 2 or not contributions:
            return EvaluationResult(
                trades=[],
                reason="Not enough volatile positions for risk parity",
                urgency=Urgency.LOW,
            )

        target_contribution = 1.0 / len(included)
        deviations = {
            symbol: abs(contribution - target_contribution)
            for symbol, contribution in contributions.items()
        }
        max_deviation = max(deviations.values())

        if max_deviation <= TRIGGER_DEVIATION * target_contribution:
            return EvaluationResult(
                trades=[],
                reason="Risk contributions balanced",
                urgency=Urgency.LOW,
            )

        inverse_total = sum(1.0 / v for v in volatilities.values())
        budget = sum(a.target_percent for a in included)
        total_value = self.investable_value(snapshot, strategy)

        trades: List[TradeRecommendation] = []
        for allocation in included:
            symbol = allocation.symbol
            deviation = deviations[symbol]
            if deviation <= TRIGGER_DEVIATION * target_contribution:
                continue

            new_percent = (1.0 / volatilities[symbol]) / inverse_total * budget
            trade = self.build_trade(
                allocation,
                price=snapshot.price_of(symbol),
                total_value=total_value,
                target_percent=new_percent,
                reason=(
                    f"Risk contribution {contributions[symbol]:.1%} vs "
                    f"{target_contribution:.1%} target"
                ),
                priority=deviation / target_contribution,
                strategy=strategy,
            )
            if trade is not None:
                trades.append(trade)

        urgency = self.urgency_from_levels(
            max_deviation,
            [
                (HIGH_DEVIATION * target_contribution, Urgency.HIGH),
                (MEDIUM_DEVIATION * target_contribution, Urgency.MEDIUM),
            ],
        )

        logger.info(
            "Risk parity strategy %s: max deviation %.4f (target %.4f), %d trades",
            strategy.id,
            max_deviation,
            target_contribution,
            len(trades),
        )

        return EvaluationResult(
            trades=trades,
            reason=(
                f"Risk contributions deviate up to {max_deviation / target_contribution:.0%} "
                f"from equal weighting"
            ),
            urgency=urgency,
        )

    @staticmethod
    def risk_contributions(
        allocations: List[AssetAllocation], volatilities: Dict[str, float]
    ) -> Dict[str, float]:
        """Normalized weight x volatility per symbol.

        Returns:
            Dict of symbol -> contribution summing to 1, empty when the
            total risk is zero
        """
        raw = {a.symbol: a.current_percent * volatilities[a.symbol] for a in allocations}
        total = sum(raw.values())
        if total <= 0:
            return {}
        return {symbol: value / total for symbol, value in raw.items()}
