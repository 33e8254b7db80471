"""Calendar rebalancing.

Fully rebalances the portfolio once per period. The schedule is evaluated
on demand against the supplied clock; there is no background scheduler.
"""

from datetime import datetime
from typing import List, Optional

import pandas as pd

from rebalance_engine.portfolio.analyzer import AllocationSnapshot
from rebalance_engine.portfolio.base import TradeRecommendation, Urgency
from rebalance_engine.strategy.base import (
    PERCENT_EPSILON,
    EvaluationResult,
    RebalanceFrequency,
    RebalancingStrategy,
    StrategyEvaluator,
    StrategyType,
)
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)

# Days past the scheduled date after which a rebalance is high urgency
OVERDUE_DAYS = 7

_FREQUENCY_OFFSETS = {
    RebalanceFrequency.DAILY: pd.DateOffset(days=1),
    RebalanceFrequency.WEEKLY: pd.DateOffset(weeks=1),
    RebalanceFrequency.MONTHLY: pd.DateOffset(months=1),
    RebalanceFrequency.QUARTERLY: pd.DateOffset(months=3),
    RebalanceFrequency.ANNUALLY: pd.DateOffset(years=1),
}


def next_rebalance_date(last_rebalance: datetime, frequency: RebalanceFrequency) -> datetime:
    """Scheduled date of the next rebalance.

    Month arithmetic clips to the end of month (Jan 31 + 1 month = Feb 28/29).

    Args:
        last_rebalance: Previous rebalance time
        frequency: Cadence

    Returns:
        Next scheduled datetime
    """
    return (pd.Timestamp(last_rebalance) + _FREQUENCY_OFFSETS[frequency]).to_pydatetime()


class CalendarEvaluator(StrategyEvaluator):
    """Periodic full-rebalance strategy.

    ``parameters.last_rebalance`` wins over ``strategy.last_run``. With
    neither set the portfolio has never been rebalanced and is due now.
    """

    strategy_type = StrategyType.CALENDAR

    def evaluate(
        self,
        snapshot: AllocationSnapshot,
        strategy: RebalancingStrategy,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        self.validate_params(strategy)
        params = strategy.parameters
        now = now or datetime.now()

        last_rebalance = params.last_rebalance or strategy.last_run
        if last_rebalance is None:
            urgency = Urgency.MEDIUM
            reason = "No previous rebalance recorded, full rebalance due"
        else:
            scheduled = next_rebalance_date(last_rebalance, params.frequency)
            if now < scheduled:
                return EvaluationResult(
                    trades=[],
                    reason=(
                        f"Next {params.frequency.value} rebalance scheduled for "
                        f"{scheduled:%Y-%m-%d}"
                    ),
                    urgency=Urgency.LOW,
                )

            overdue_days = (now - scheduled).total_seconds() / 86400
            urgency = Urgency.HIGH if overdue_days > OVERDUE_DAYS else Urgency.MEDIUM
            reason = (
                f"Scheduled {params.frequency.value} rebalance due since "
                f"{scheduled:%Y-%m-%d} ({overdue_days:.0f} days overdue)"
            )

        total_value = self.investable_value(snapshot, strategy)
        trades: List[TradeRecommendation] = []
        for allocation in snapshot.known_allocations:
            if abs(allocation.drift) <= PERCENT_EPSILON:
                continue
            trade = self.build_trade(
                allocation,
                price=snapshot.price_of(allocation.symbol),
                total_value=total_value,
                target_percent=allocation.target_percent,
                reason=f"Calendar rebalance, drift {allocation.drift:+.2f}%",
                priority=abs(allocation.drift),
                strategy=strategy,
            )
            if trade is not None:
                trades.append(trade)

        logger.info(
            "Calendar strategy %s due: %d trades, urgency %s",
            strategy.id,
            len(trades),
            urgency.value,
        )

        return EvaluationResult(trades=trades, reason=reason, urgency=urgency)
