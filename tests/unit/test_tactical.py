"""Unit tests for TacticalEvaluator."""

import pytest

from rebalance_engine.data.providers.static_provider import StaticMarketData
from rebalance_engine.portfolio.analyzer import AllocationAnalyzer
from rebalance_engine.portfolio.base import TradeAction, Urgency
from rebalance_engine.strategy.base import (
    RebalancingStrategy,
    StrategyParameters,
    StrategyType,
)
from rebalance_engine.strategy.tactical import TacticalEvaluator
from rebalance_engine.utils.exceptions import ValidationError


def make_strategy(**params) -> RebalancingStrategy:
    return RebalancingStrategy(
        id="tactical",
        name="Tactical",
        type=StrategyType.TACTICAL,
        parameters=StrategyParameters(**params),
    )


class TestAdjustment:
    """Test cases for the tilt formula."""

    def test_momentum_scaling(self) -> None:
        """Test 4% momentum tilts by 2pp at the default coefficient."""
        assert TacticalEvaluator.adjustment(0.04, True, False, make_strategy()) == pytest.approx(2.0)

    def test_equity_penalty_in_volatile_market(self) -> None:
        """Test equities lose the penalty when the market is volatile."""
        strategy = make_strategy()

        assert TacticalEvaluator.adjustment(0.04, True, True, strategy) == pytest.approx(0.0)
        assert TacticalEvaluator.adjustment(0.04, False, True, strategy) == pytest.approx(2.0)


class TestTacticalEvaluator:
    """Test cases for TacticalEvaluator.evaluate."""

    def test_calm_market_tilts(self, market_data, portfolio) -> None:
        """Test only VTI's 1.5pp tilt clears the 1pp minimum."""
        snapshot = AllocationAnalyzer(market_data).analyze(portfolio)
        result = TacticalEvaluator().evaluate(snapshot, make_strategy())

        assert [t.symbol for t in result.trades] == ["VTI"]
        vti = result.trades[0]
        assert vti.action == TradeAction.BUY
        assert vti.target_percent == pytest.approx(11.5)
        assert vti.notional_amount == pytest.approx(1500.0)
        assert vti.priority == pytest.approx(1.5)
        assert result.urgency == Urgency.MEDIUM

    def test_min_trade_amount(self, market_data, portfolio) -> None:
        """Test tilts below the tactical minimum are dropped."""
        snapshot = AllocationAnalyzer(market_data).analyze(portfolio)
        result = TacticalEvaluator().evaluate(
            snapshot, make_strategy(tactical_min_trade_amount=2000.0)
        )

        assert result.trades == []
        assert result.reason == "No tactical adjustment above threshold"

    def test_volatile_market(self, portfolio) -> None:
        """Test the equity penalty and HIGH urgency above 25% volatility."""
        feed = StaticMarketData.from_dict(
            {
                "SPY": {"price": 500.0, "volatility": 0.30, "momentum": 0.02},
                "BND": {"price": 50.0, "volatility": 0.30, "momentum": 0.04},
                "VTI": {"price": 200.0, "volatility": 0.30, "momentum": 0.03},
            }
        )
        snapshot = AllocationAnalyzer(feed).analyze(portfolio)
        result = TacticalEvaluator().evaluate(snapshot, make_strategy())

        # SPY 1.0 - 2.0 and VTI 1.5 - 2.0 stay within 1pp; BND keeps +2pp
        assert [t.symbol for t in result.trades] == ["BND"]
        assert result.urgency == Urgency.HIGH

    def test_invalid_penalty(self, market_data, portfolio) -> None:
        """Test negative volatility penalty is rejected."""
        snapshot = AllocationAnalyzer(market_data).analyze(portfolio)
        with pytest.raises(ValidationError, match="volatility_penalty"):
            TacticalEvaluator().evaluate(snapshot, make_strategy(volatility_penalty=-1.0))
