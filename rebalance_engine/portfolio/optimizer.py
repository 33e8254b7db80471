"""Trade optimizer.

Applies a strategy's constraints to provisional trades and produces the
final, ordered trade list.

Algorithm:
1. Drop trades on excluded symbols
2. Clamp each trade to max_trade_percent of portfolio value, in whole
   shares, with the notional re-priced from the shares kept
3. Trim buys so the position stays within max_position_size
   (and sells so it stays above min_position_size)
4. Drop zero-share trades and trades below min_trade_amount
5. Sort by descending priority (stable)
6. Keep at most max_daily_trades

Every step is a bound or a filter, so optimizing an already optimized
list returns it unchanged.
"""

from dataclasses import replace
from typing import List

from rebalance_engine.portfolio.base import Portfolio, TradeAction, TradeRecommendation
from rebalance_engine.strategy.base import PERCENT_EPSILON, RebalancingStrategy
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


class TradeOptimizer:
    """Filters and orders provisional trades for one strategy.

    Example:
        >>> optimizer = TradeOptimizer()
        >>> final = optimizer.optimize(result.trades, snapshot.portfolio, strategy)
        >>> assert optimizer.optimize(final, snapshot.portfolio, strategy) == final
    """

    def optimize(
        self,
        trades: List[TradeRecommendation],
        portfolio: Portfolio,
        strategy: RebalancingStrategy,
    ) -> List[TradeRecommendation]:
        """Apply constraints and order trades.

        Args:
            trades: Provisional trades from an evaluator
            portfolio: Repriced portfolio the trades apply to
            strategy: Strategy whose parameters and constraints apply

        Returns:
            Final trades, highest priority first
        """
        params = strategy.parameters
        constraints = strategy.constraints
        excluded = set(constraints.exclude_symbols)

        kept: List[TradeRecommendation] = []
        for trade in trades:
            if trade.symbol in excluded:
                logger.debug("Dropping %s: symbol excluded", trade.symbol)
                continue

            limit = self._notional_limit(trade, portfolio, strategy)
            if trade.notional_amount > limit + PERCENT_EPSILON:
                trade = self._resize(trade, max(limit, 0.0))

            if trade.shares <= 0:
                logger.debug("Dropping %s: zero shares", trade.symbol)
                continue
            if trade.notional_amount < params.min_trade_amount:
                logger.debug(
                    "Dropping %s: notional %.2f below minimum %.2f",
                    trade.symbol,
                    trade.notional_amount,
                    params.min_trade_amount,
                )
                continue

            kept.append(trade)

        kept.sort(key=lambda t: -t.priority)

        if constraints.max_daily_trades is not None and len(kept) > constraints.max_daily_trades:
            logger.info(
                "Capping %d trades at max_daily_trades=%d",
                len(kept),
                constraints.max_daily_trades,
            )
            kept = kept[: constraints.max_daily_trades]

        logger.info(
            "Optimized trades for strategy %s: %d in, %d out",
            strategy.id,
            len(trades),
            len(kept),
        )
        return kept

    def _notional_limit(
        self,
        trade: TradeRecommendation,
        portfolio: Portfolio,
        strategy: RebalancingStrategy,
    ) -> float:
        """Largest notional the constraints allow for ``trade``."""
        total_value = portfolio.total_value
        constraints = strategy.constraints
        limits = [total_value * strategy.parameters.max_trade_percent / 100]

        allocation = portfolio.get_allocation(trade.symbol)
        current_value = allocation.current_value if allocation else 0.0

        if trade.action == TradeAction.BUY and constraints.max_position_size is not None:
            limits.append(total_value * constraints.max_position_size / 100 - current_value)
        if trade.action == TradeAction.SELL and constraints.min_position_size is not None:
            limits.append(current_value - total_value * constraints.min_position_size / 100)

        return min(limits)

    @staticmethod
    def _resize(trade: TradeRecommendation, notional: float) -> TradeRecommendation:
        """Shrink a trade to fit ``notional``, rounding shares down.

        The resized notional is the whole-share value actually ordered, and
        cost and tax estimates shrink with it.
        """
        shares = int(notional // trade.price)
        resized = shares * trade.price
        ratio = resized / trade.notional_amount if trade.notional_amount else 0.0
        logger.debug(
            "Clamping %s %s from %.2f to %.2f (%d shares)",
            trade.action.value,
            trade.symbol,
            trade.notional_amount,
            resized,
            shares,
        )

        tax_implication = trade.tax_implication
        if tax_implication is not None:
            share_ratio = shares / trade.shares if trade.shares else 0.0
            tax_implication = replace(
                tax_implication, gain_loss=tax_implication.gain_loss * share_ratio
            )

        return replace(
            trade,
            shares=shares,
            notional_amount=resized,
            estimated_cost=trade.estimated_cost * ratio,
            tax_implication=tax_implication,
        )
