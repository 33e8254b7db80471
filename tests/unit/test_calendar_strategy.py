"""Unit tests for CalendarEvaluator."""

from datetime import datetime

import pytest

from rebalance_engine.portfolio.analyzer import AllocationAnalyzer
from rebalance_engine.portfolio.base import TradeAction, Urgency
from rebalance_engine.strategy.base import (
    RebalanceFrequency,
    RebalancingStrategy,
    StrategyParameters,
    StrategyType,
)
from rebalance_engine.strategy.calendar_strategy import (
    CalendarEvaluator,
    next_rebalance_date,
)


def make_strategy(last_rebalance=None, last_run=None, frequency=RebalanceFrequency.QUARTERLY):
    return RebalancingStrategy(
        id="quarterly",
        name="Quarterly",
        type=StrategyType.CALENDAR,
        parameters=StrategyParameters(frequency=frequency, last_rebalance=last_rebalance),
        last_run=last_run,
    )


@pytest.fixture
def snapshot(market_data, portfolio):
    return AllocationAnalyzer(market_data).analyze(portfolio)


class TestNextRebalanceDate:
    """Test cases for next_rebalance_date."""

    @pytest.mark.parametrize(
        "frequency, expected",
        [
            (RebalanceFrequency.DAILY, datetime(2024, 1, 16)),
            (RebalanceFrequency.WEEKLY, datetime(2024, 1, 22)),
            (RebalanceFrequency.MONTHLY, datetime(2024, 2, 15)),
            (RebalanceFrequency.QUARTERLY, datetime(2024, 4, 15)),
            (RebalanceFrequency.ANNUALLY, datetime(2025, 1, 15)),
        ],
    )
    def test_offsets(self, frequency, expected) -> None:
        """Test each cadence advances by its period."""
        assert next_rebalance_date(datetime(2024, 1, 15), frequency) == expected

    def test_month_end_clipping(self) -> None:
        """Test month arithmetic clips to the last day of the month."""
        result = next_rebalance_date(datetime(2024, 1, 31), RebalanceFrequency.MONTHLY)
        assert result == datetime(2024, 2, 29)


class TestCalendarEvaluator:
    """Test cases for CalendarEvaluator."""

    def test_not_due(self, snapshot) -> None:
        """Test no trades before the scheduled date."""
        strategy = make_strategy(last_rebalance=datetime(2024, 1, 1))
        result = CalendarEvaluator().evaluate(snapshot, strategy, now=datetime(2024, 3, 15))

        assert result.trades == []
        assert result.urgency == Urgency.LOW
        assert result.reason == "Next quarterly rebalance scheduled for 2024-04-01"

    def test_due_medium(self, snapshot) -> None:
        """Test a just-due rebalance trades every drifted allocation."""
        strategy = make_strategy(last_rebalance=datetime(2024, 1, 1))
        result = CalendarEvaluator().evaluate(snapshot, strategy, now=datetime(2024, 4, 3))

        assert result.urgency == Urgency.MEDIUM
        assert [(t.symbol, t.action) for t in result.trades] == [
            ("SPY", TradeAction.SELL),
            ("BND", TradeAction.BUY),
        ]
        assert result.trades[0].priority == pytest.approx(5.0)

    def test_due_on_scheduled_date(self, snapshot) -> None:
        """Test the scheduled instant itself is due."""
        strategy = make_strategy(last_rebalance=datetime(2024, 1, 1))
        result = CalendarEvaluator().evaluate(snapshot, strategy, now=datetime(2024, 4, 1))

        assert result.trades
        assert result.urgency == Urgency.MEDIUM

    def test_overdue_high(self, snapshot) -> None:
        """Test more than a week overdue is HIGH urgency."""
        strategy = make_strategy(last_rebalance=datetime(2024, 1, 1))
        result = CalendarEvaluator().evaluate(snapshot, strategy, now=datetime(2024, 4, 20))

        assert result.urgency == Urgency.HIGH
        assert "overdue" in result.reason

    def test_never_rebalanced_is_due(self, snapshot) -> None:
        """Test a strategy with no history is due now."""
        result = CalendarEvaluator().evaluate(snapshot, make_strategy(), now=datetime(2024, 1, 1))

        assert result.urgency == Urgency.MEDIUM
        assert len(result.trades) == 2

    def test_last_run_fallback(self, snapshot) -> None:
        """Test strategy.last_run is used when the parameter is unset."""
        strategy = make_strategy(last_run=datetime(2024, 3, 1))
        result = CalendarEvaluator().evaluate(snapshot, strategy, now=datetime(2024, 4, 3))

        assert result.trades == []
        assert "2024-06-01" in result.reason

    def test_parameter_wins_over_last_run(self, snapshot) -> None:
        """Test parameters.last_rebalance takes precedence."""
        strategy = make_strategy(
            last_rebalance=datetime(2024, 1, 1), last_run=datetime(2024, 3, 1)
        )
        result = CalendarEvaluator().evaluate(snapshot, strategy, now=datetime(2024, 4, 3))

        assert len(result.trades) == 2
