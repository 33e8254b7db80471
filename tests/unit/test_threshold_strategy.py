"""Unit tests for ThresholdEvaluator."""

import pytest

from rebalance_engine.portfolio.analyzer import AllocationAnalyzer
from rebalance_engine.portfolio.base import (
    AssetAllocation,
    Portfolio,
    TradeAction,
    Urgency,
)
from rebalance_engine.strategy.base import (
    RebalancingStrategy,
    StrategyParameters,
    StrategyType,
)
from rebalance_engine.strategy.threshold import ThresholdEvaluator
from rebalance_engine.utils.exceptions import ValidationError


def make_strategy(**params) -> RebalancingStrategy:
    return RebalancingStrategy(
        id="threshold",
        name="Threshold",
        type=StrategyType.THRESHOLD,
        parameters=StrategyParameters(**params),
    )


@pytest.fixture
def snapshot(market_data, portfolio):
    return AllocationAnalyzer(market_data).analyze(portfolio)


class TestThresholdEvaluator:
    """Test cases for ThresholdEvaluator."""

    def test_trades_drifted_allocations(self, snapshot, threshold_strategy) -> None:
        """Test SPY sold and BND bought back to target, VTI untouched."""
        result = ThresholdEvaluator().evaluate(snapshot, threshold_strategy)

        assert [t.symbol for t in result.trades] == ["SPY", "BND"]
        spy, bnd = result.trades

        assert spy.action == TradeAction.SELL
        assert spy.notional_amount == pytest.approx(5000.0)
        assert spy.shares == 10
        assert spy.priority == 1.0
        assert spy.estimated_cost == pytest.approx(5.0)

        assert bnd.action == TradeAction.BUY
        assert bnd.notional_amount == pytest.approx(5000.0)
        assert bnd.shares == 100

    def test_drift_equal_to_threshold_triggers(self, snapshot, threshold_strategy) -> None:
        """Test a drift of exactly the threshold triggers with LOW urgency."""
        result = ThresholdEvaluator().evaluate(snapshot, threshold_strategy)

        assert result.urgency == Urgency.LOW
        assert "SPY, BND" in result.reason

    def test_within_threshold(self, snapshot) -> None:
        """Test no trades when every drift is below the threshold."""
        result = ThresholdEvaluator().evaluate(snapshot, make_strategy(threshold_percent=6.0))

        assert result.trades == []
        assert result.urgency == Urgency.LOW
        assert result.reason == "All allocations within 6.0% threshold"

    def test_tax_implication_on_sell(self, snapshot, threshold_strategy) -> None:
        """Test realized gain computed from cost basis."""
        result = ThresholdEvaluator().evaluate(snapshot, threshold_strategy)
        spy = result.trades[0]

        assert spy.tax_implication.gain_loss == pytest.approx((500.0 - 420.0) * 10)
        assert result.trades[1].tax_implication is None

    def test_tax_optimized_demotes_gain_sells(self, snapshot) -> None:
        """Test gain-realizing sells lose one priority level."""
        strategy = make_strategy(threshold_percent=5.0, tax_optimized=True)
        result = ThresholdEvaluator().evaluate(snapshot, strategy)

        priorities = {t.symbol: t.priority for t in result.trades}
        assert priorities["SPY"] == 0.0
        assert priorities["BND"] == 1.0

    def test_min_trade_amount_skips_small_trades(self, snapshot) -> None:
        """Test trades below min_trade_amount are not proposed."""
        strategy = make_strategy(threshold_percent=5.0, min_trade_amount=6000.0)
        result = ThresholdEvaluator().evaluate(snapshot, strategy)

        assert result.trades == []
        assert "SPY" in result.reason

    def test_liquidity_buffer_shrinks_targets(self, snapshot) -> None:
        """Test targets are taken from value net of the cash buffer."""
        strategy = make_strategy(threshold_percent=5.0, liquidity_buffer=10.0)
        result = ThresholdEvaluator().evaluate(snapshot, strategy)

        spy = result.trades[0]
        # target 60% of 90,000 = 54,000 vs 65,000 held
        assert spy.notional_amount == pytest.approx(11000.0)

    def test_unavailable_symbol_not_traded(self, market_data, portfolio, threshold_strategy) -> None:
        """Test symbols without market data never trigger."""
        market_data.mark_unavailable("SPY")
        snapshot = AllocationAnalyzer(market_data).analyze(portfolio)

        result = ThresholdEvaluator().evaluate(snapshot, threshold_strategy)
        assert [t.symbol for t in result.trades] == ["BND"]

    @pytest.mark.parametrize(
        "spy_shares, expected",
        [
            (140, Urgency.MEDIUM),  # drift 10 > 7.5
            (150, Urgency.HIGH),  # drift 15 > 10
            (170, Urgency.CRITICAL),  # drift 25 > 15
        ],
    )
    def test_urgency_levels(self, market_data, spy_shares, expected, threshold_strategy) -> None:
        """Test urgency scales with the largest drift."""
        portfolio = Portfolio(
            id="p",
            owner_id="u",
            total_value=100000.0,
            allocations=[
                AssetAllocation(symbol="SPY", target_percent=60.0, shares=spy_shares),
            ],
        )
        snapshot = AllocationAnalyzer(market_data).analyze(portfolio)

        result = ThresholdEvaluator().evaluate(snapshot, threshold_strategy)
        assert result.urgency == expected

    @pytest.mark.parametrize(
        "current_value, expected_trades",
        [
            (65000.001, 1),  # drift 5 + 1e-6
            (64999.999, 0),  # drift 5 - 1e-6
            (54999.999, 1),  # drift -(5 + 1e-6)
            (55000.001, 0),  # drift -(5 - 1e-6)
        ],
    )
    def test_threshold_boundary(
        self, market_data, threshold_strategy, current_value, expected_trades
    ) -> None:
        """Test a single allocation just past the threshold trades, just inside does not."""
        portfolio = Portfolio(
            id="p",
            owner_id="u",
            total_value=100000.0,
            allocations=[
                AssetAllocation(symbol="SPY", target_percent=60.0, current_value=current_value)
            ],
        )
        snapshot = AllocationAnalyzer(market_data).analyze(portfolio)

        result = ThresholdEvaluator().evaluate(snapshot, threshold_strategy)
        assert len(result.trades) == expected_trades

    def test_priority_counts_threshold_multiples(self, market_data, threshold_strategy) -> None:
        """Test priority is the number of whole thresholds drifted."""
        portfolio = Portfolio(
            id="p",
            owner_id="u",
            total_value=100000.0,
            allocations=[AssetAllocation(symbol="SPY", target_percent=60.0, shares=150)],
        )
        snapshot = AllocationAnalyzer(market_data).analyze(portfolio)

        result = ThresholdEvaluator().evaluate(snapshot, threshold_strategy)
        assert result.trades[0].priority == 3.0

    def test_invalid_threshold(self, snapshot) -> None:
        """Test non-positive threshold raises ValidationError."""
        with pytest.raises(ValidationError, match="threshold_percent"):
            ThresholdEvaluator().evaluate(snapshot, make_strategy(threshold_percent=0))

    def test_invalid_shared_params(self, snapshot) -> None:
        """Test shared parameter validation."""
        with pytest.raises(ValidationError, match="max_trade_percent"):
            ThresholdEvaluator().evaluate(snapshot, make_strategy(max_trade_percent=0))
        with pytest.raises(ValidationError, match="liquidity_buffer"):
            ThresholdEvaluator().evaluate(snapshot, make_strategy(liquidity_buffer=100))
        with pytest.raises(ValidationError, match="volatility_window"):
            ThresholdEvaluator().evaluate(snapshot, make_strategy(volatility_window=1))
        with pytest.raises(ValidationError, match="momentum_window"):
            ThresholdEvaluator().evaluate(snapshot, make_strategy(momentum_window=0))

    def test_negative_cost_rate(self) -> None:
        """Test negative cost rate is rejected."""
        with pytest.raises(ValueError, match="cost_rate"):
            ThresholdEvaluator(cost_rate=-0.01)

    def test_deterministic(self, snapshot, threshold_strategy) -> None:
        """Test identical inputs produce identical results."""
        evaluator = ThresholdEvaluator()
        assert evaluator.evaluate(snapshot, threshold_strategy) == evaluator.evaluate(
            snapshot, threshold_strategy
        )
