"""Impact estimator.

Summarizes a finalized trade list as an EstimatedImpact.

The figures are ESTIMATES, not forecasts. Trading costs and tax effects
are sums over the trades; expected return and risk reduction are the
strategy's heuristic coefficients, not the output of a model.
"""

from typing import List, Optional

from rebalance_engine.portfolio.base import EstimatedImpact, Portfolio, TradeRecommendation
from rebalance_engine.strategy.base import RebalancingStrategy, StrategyParameters
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


class ImpactEstimator:
    """Builds the estimated-impact summary of a recommendation."""

    def estimate(
        self,
        trades: List[TradeRecommendation],
        portfolio: Portfolio,
        strategy: Optional[RebalancingStrategy] = None,
    ) -> EstimatedImpact:
        """Estimate the impact of executing ``trades``.

        Args:
            trades: Final trades
            portfolio: Portfolio the trades apply to
            strategy: Source of the heuristic coefficients (defaults when None)

        Returns:
            EstimatedImpact, all zeros when there are no trades
        """
        if not trades:
            return EstimatedImpact()

        params = strategy.parameters if strategy else StrategyParameters()

        tax = sum(
            trade.tax_implication.gain_loss
            for trade in trades
            if trade.tax_implication is not None
        )
        costs = sum(trade.estimated_cost for trade in trades)

        impact = EstimatedImpact(
            expected_return=params.expected_return_coefficient,
            risk_reduction=params.risk_reduction_coefficient,
            tax_implication=tax,
            trading_costs=costs,
        )

        logger.debug(
            "Estimated impact for %s: costs=%.2f, tax=%.2f",
            portfolio.id,
            costs,
            tax,
        )
        return impact
