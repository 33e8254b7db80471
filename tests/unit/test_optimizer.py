"""Unit tests for TradeOptimizer."""

import pytest

from rebalance_engine.portfolio.analyzer import AllocationAnalyzer
from rebalance_engine.portfolio.base import TaxImplication, TradeAction, TradeRecommendation
from rebalance_engine.portfolio.optimizer import TradeOptimizer
from rebalance_engine.strategy.base import (
    RebalancingStrategy,
    StrategyConstraints,
    StrategyParameters,
    StrategyType,
)


def make_trade(symbol, action, notional, price, priority=1.0):
    return TradeRecommendation(
        symbol=symbol,
        action=action,
        shares=int(round(notional / price)),
        notional_amount=notional,
        price=price,
        target_percent=50.0,
        current_percent=50.0,
        priority=priority,
        estimated_cost=notional * 0.001,
    )


def make_strategy(parameters=None, **constraints) -> RebalancingStrategy:
    return RebalancingStrategy(
        id="s",
        name="S",
        type=StrategyType.THRESHOLD,
        parameters=parameters or StrategyParameters(),
        constraints=StrategyConstraints(**constraints),
    )


@pytest.fixture
def repriced(market_data, portfolio):
    # SPY 65,000, BND 25,000, VTI 10,000
    return AllocationAnalyzer(market_data).analyze(portfolio).portfolio


@pytest.fixture
def trades():
    return [
        make_trade("SPY", TradeAction.SELL, 5000.0, 500.0, priority=1.0),
        make_trade("BND", TradeAction.BUY, 5000.0, 50.0, priority=2.0),
        make_trade("VTI", TradeAction.BUY, 1000.0, 200.0, priority=1.0),
    ]


class TestTradeOptimizer:
    """Test cases for TradeOptimizer.optimize."""

    def test_sorted_by_priority(self, trades, repriced) -> None:
        """Test highest priority first, ties keep evaluator order."""
        result = TradeOptimizer().optimize(trades, repriced, make_strategy())
        assert [t.symbol for t in result] == ["BND", "SPY", "VTI"]

    def test_excluded_symbols_dropped(self, trades, repriced) -> None:
        """Test excluded symbols are never traded."""
        strategy = make_strategy(exclude_symbols=["VTI"])
        result = TradeOptimizer().optimize(trades, repriced, strategy)

        assert "VTI" not in [t.symbol for t in result]

    def test_max_trade_percent_clamps(self, trades, repriced) -> None:
        """Test trades larger than max_trade_percent are resized."""
        strategy = make_strategy(StrategyParameters(max_trade_percent=3.0))
        result = {t.symbol: t for t in TradeOptimizer().optimize(trades, repriced, strategy)}

        assert result["SPY"].notional_amount == pytest.approx(3000.0)
        assert result["SPY"].shares == 6
        assert result["SPY"].estimated_cost == pytest.approx(3.0)
        assert result["BND"].shares == 60
        assert result["VTI"].notional_amount == pytest.approx(1000.0)

    def test_clamped_trade_repriced_from_shares(self, repriced) -> None:
        """Test a clamped trade carries the notional, cost and tax of the shares kept."""
        sell = TradeRecommendation(
            symbol="SPY",
            action=TradeAction.SELL,
            shares=10,
            notional_amount=5000.0,
            price=500.0,
            target_percent=60.0,
            current_percent=65.0,
            estimated_cost=5.0,
            tax_implication=TaxImplication(gain_loss=800.0),
        )
        strategy = make_strategy(StrategyParameters(max_trade_percent=2.15))

        (result,) = TradeOptimizer().optimize([sell], repriced, strategy)

        assert result.shares == 4
        assert result.notional_amount == pytest.approx(result.shares * result.price)
        assert result.estimated_cost == pytest.approx(2.0)
        assert result.tax_implication.gain_loss == pytest.approx(320.0)

    def test_min_trade_amount_checked_after_clamp(self, repriced) -> None:
        """Test the minimum applies to the whole-share value actually ordered."""
        trade = make_trade("VTI", TradeAction.BUY, 1000.0, 100.0)
        strategy = make_strategy(
            StrategyParameters(max_trade_percent=0.15, min_trade_amount=120.0)
        )

        # limit 150 buys one share worth 100
        assert TradeOptimizer().optimize([trade], repriced, strategy) == []

    def test_max_position_size_caps_buys(self, trades, repriced) -> None:
        """Test buys stop at the position ceiling."""
        strategy = make_strategy(max_position_size=28.0)
        result = {t.symbol: t for t in TradeOptimizer().optimize(trades, repriced, strategy)}

        assert result["BND"].notional_amount == pytest.approx(3000.0)
        assert result["SPY"].notional_amount == pytest.approx(5000.0)

    def test_min_position_size_caps_sells(self, trades, repriced) -> None:
        """Test sells stop at the position floor."""
        strategy = make_strategy(min_position_size=63.0)
        result = {t.symbol: t for t in TradeOptimizer().optimize(trades, repriced, strategy)}

        assert result["SPY"].notional_amount == pytest.approx(2000.0)
        assert result["SPY"].shares == 4

    def test_position_already_at_limit(self, trades, repriced) -> None:
        """Test a buy with no headroom is dropped."""
        strategy = make_strategy(max_position_size=10.0)
        result = TradeOptimizer().optimize(trades, repriced, strategy)

        assert "VTI" not in [t.symbol for t in result]

    def test_zero_share_trades_dropped(self, trades, repriced) -> None:
        """Test clamping below one share removes the trade."""
        strategy = make_strategy(StrategyParameters(max_trade_percent=0.4))
        result = TradeOptimizer().optimize(trades, repriced, strategy)

        symbols = {t.symbol: t for t in result}
        assert "SPY" not in symbols
        assert symbols["BND"].shares == 8
        assert symbols["VTI"].shares == 2

    def test_min_trade_amount(self, trades, repriced) -> None:
        """Test trades below the minimum notional are dropped."""
        strategy = make_strategy(StrategyParameters(min_trade_amount=2000.0))
        result = TradeOptimizer().optimize(trades, repriced, strategy)

        assert [t.symbol for t in result] == ["BND", "SPY"]

    def test_max_daily_trades(self, trades, repriced) -> None:
        """Test only the highest-priority trades are kept."""
        strategy = make_strategy(max_daily_trades=2)
        result = TradeOptimizer().optimize(trades, repriced, strategy)

        assert [t.symbol for t in result] == ["BND", "SPY"]

    def test_idempotent(self, trades, repriced) -> None:
        """Test optimizing an optimized list changes nothing."""
        optimizer = TradeOptimizer()
        strategy = make_strategy(
            StrategyParameters(max_trade_percent=3.0, min_trade_amount=500.0),
            max_daily_trades=2,
            max_position_size=28.0,
        )

        once = optimizer.optimize(trades, repriced, strategy)
        twice = optimizer.optimize(once, repriced, strategy)

        assert twice == once

    def test_empty(self, repriced) -> None:
        """Test no trades in, no trades out."""
        assert TradeOptimizer().optimize([], repriced, make_strategy()) == []
