"""Portfolio and recommendation data structures.

This module defines the records the engine reasons about:
- Portfolio and AssetAllocation: the holdings snapshot being analyzed
- TradeRecommendation: one proposed buy or sell
- RebalanceRecommendation: a strategy's complete, immutable proposal

Allocation ``current_*`` fields and ``drift`` are a snapshot. The
AllocationAnalyzer recomputes them from live prices on every analysis.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

# Allowed slack when checking that target percents sum to at most 100
TARGET_SUM_TOLERANCE = 1e-6


def new_recommendation_id() -> str:
    """Generate a unique recommendation id."""
    return f"rec_{uuid.uuid4().hex[:12]}"


class AssetCategory(Enum):
    """Asset class of an allocation."""

    EQUITY = "equity"
    FIXED_INCOME = "fixed_income"
    ALTERNATIVES = "alternatives"
    CASH = "cash"
    CRYPTO = "crypto"


class TradeAction(Enum):
    """Trade direction."""

    BUY = "buy"
    SELL = "sell"


class Urgency(Enum):
    """Coarse priority attached to a recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordering key: critical (4) > high > medium > low (1)."""
        return _URGENCY_RANK[self]


_URGENCY_RANK = {
    Urgency.LOW: 1,
    Urgency.MEDIUM: 2,
    Urgency.HIGH: 3,
    Urgency.CRITICAL: 4,
}


@dataclass
class AssetAllocation:
    """One position of a portfolio and its target weight.

    Attributes:
        symbol: Ticker symbol (unique within a portfolio)
        target_percent: Target weight in percent of portfolio value
        category: Asset class
        current_value: Market value of the position (snapshot)
        current_percent: Current weight in percent (snapshot)
        drift: current_percent - target_percent, None when unknown
        shares: Quantity held; when set, current_value is repriced from quotes
        cost_basis: Average cost per share, used for tax implications
        min_percent: Lower bound for any strategy-adjusted target
        max_percent: Upper bound for any strategy-adjusted target
        sub_category: Free-form refinement of the category
    """

    symbol: str
    target_percent: float
    category: AssetCategory = AssetCategory.EQUITY
    current_value: float = 0.0
    current_percent: float = 0.0
    drift: Optional[float] = 0.0
    shares: Optional[float] = None
    cost_basis: Optional[float] = None
    min_percent: Optional[float] = None
    max_percent: Optional[float] = None
    sub_category: Optional[str] = None

    def __post_init__(self):
        """Validate allocation fields."""
        if not self.symbol:
            raise ValueError("symbol must be non-empty")
        if not 0 <= self.target_percent <= 100:
            raise ValueError(
                f"target_percent must be in [0, 100], got {self.target_percent}"
            )
        if self.current_value < 0:
            raise ValueError(
                f"current_value must be non-negative, got {self.current_value}"
            )
        if self.shares is not None and self.shares < 0:
            raise ValueError(f"shares must be non-negative, got {self.shares}")
        if (
            self.min_percent is not None
            and self.max_percent is not None
            and self.min_percent > self.max_percent
        ):
            raise ValueError(
                f"min_percent ({self.min_percent}) exceeds max_percent ({self.max_percent})"
            )

    @property
    def has_known_drift(self) -> bool:
        """Whether drift was computed from available market data."""
        return self.drift is not None

    def clamp_percent(self, percent: float) -> float:
        """Clamp a proposed target percent into this allocation's bounds."""
        lower = self.min_percent if self.min_percent is not None else 0.0
        upper = self.max_percent if self.max_percent is not None else 100.0
        return min(max(percent, lower), upper)


@dataclass
class Portfolio:
    """Portfolio snapshot.

    Attributes:
        id: Portfolio identifier
        owner_id: Owning user identifier
        total_value: Total portfolio value used as the percent denominator
        cash_balance: Uninvested cash
        allocations: Ordered allocations, unique by symbol
        target_risk: Target aggregate volatility (decimal, 0.12 = 12%)
        name: Display name
    """

    id: str
    owner_id: str
    total_value: float
    cash_balance: float = 0.0
    allocations: List[AssetAllocation] = field(default_factory=list)
    target_risk: Optional[float] = None
    name: str = ""

    def __post_init__(self):
        """Validate portfolio invariants."""
        if self.total_value < 0:
            raise ValueError(
                f"total_value must be non-negative, got {self.total_value}"
            )
        if self.cash_balance < 0:
            raise ValueError(f"cash_balance must be non-negative, got {self.cash_balance}")

        symbols = [a.symbol for a in self.allocations]
        duplicates = sorted({s for s in symbols if symbols.count(s) > 1})
        if duplicates:
            raise ValueError(f"duplicate allocation symbols: {duplicates}")

        total_target = self.total_target_percent
        if total_target > 100 + TARGET_SUM_TOLERANCE:
            raise ValueError(
                f"sum of target_percent must be <= 100, got {total_target:.4f}"
            )

    @property
    def total_target_percent(self) -> float:
        """Sum of target weights across allocations."""
        return sum(a.target_percent for a in self.allocations)

    @property
    def symbols(self) -> List[str]:
        return [a.symbol for a in self.allocations]

    def get_allocation(self, symbol: str) -> Optional[AssetAllocation]:
        """Get allocation for a specific symbol, None when not held."""
        for allocation in self.allocations:
            if allocation.symbol == symbol:
                return allocation
        return None


@dataclass(frozen=True)
class TaxImplication:
    """Estimated tax effect of a single trade.

    Attributes:
        gain_loss: Realized gain (positive) or loss (negative) in dollars
        holding_period_days: Days the position has been held, when known
        wash_sale_risk: Whether the trade may trigger a wash sale
    """

    gain_loss: float = 0.0
    holding_period_days: Optional[int] = None
    wash_sale_risk: bool = False


@dataclass(frozen=True)
class TradeRecommendation:
    """A single proposed trade.

    Attributes:
        symbol: Ticker symbol
        action: BUY or SELL
        shares: Whole shares to trade
        notional_amount: Dollar value of the trade (always positive)
        price: Reference price used to size the trade
        target_percent: Target weight the trade moves toward
        current_percent: Weight before the trade
        reason: Why the trade was proposed
        priority: Execution ordering key, higher first
        estimated_cost: Estimated trading cost in dollars
        tax_implication: Estimated tax effect, when cost basis is known
    """

    symbol: str
    action: TradeAction
    shares: int
    notional_amount: float
    price: float
    target_percent: float
    current_percent: float
    reason: str = ""
    priority: float = 0.0
    estimated_cost: float = 0.0
    tax_implication: Optional[TaxImplication] = None

    def __post_init__(self):
        """Validate trade fields."""
        if self.shares < 0:
            raise ValueError(f"shares must be non-negative, got {self.shares}")
        if self.notional_amount < 0:
            raise ValueError(
                f"notional_amount must be non-negative, got {self.notional_amount}"
            )
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")

    @property
    def signed_notional(self) -> float:
        """Notional with sign: positive for buys, negative for sells."""
        if self.action == TradeAction.BUY:
            return self.notional_amount
        return -self.notional_amount


@dataclass(frozen=True)
class EstimatedImpact:
    """Heuristic impact summary of a recommendation.

    These are estimates, not forecasts: ``expected_return`` and
    ``risk_reduction`` are strategy-supplied coefficients, not modelled
    outcomes.

    Attributes:
        expected_return: Estimated return delta (decimal)
        risk_reduction: Estimated risk delta (decimal)
        tax_implication: Sum of per-trade realized gain/loss in dollars
        trading_costs: Sum of per-trade estimated costs in dollars
    """

    expected_return: float = 0.0
    risk_reduction: float = 0.0
    tax_implication: float = 0.0
    trading_costs: float = 0.0


@dataclass(frozen=True)
class RebalanceRecommendation:
    """A strategy's proposal for one portfolio.

    Immutable once produced; consumed by at most one execution.

    Attributes:
        portfolio_id: Portfolio the trades apply to
        strategy_id: Strategy that produced the recommendation
        strategy_name: Display name of that strategy
        reason: Human-readable trigger explanation
        urgency: LOW, MEDIUM, HIGH or CRITICAL
        estimated_impact: Heuristic impact summary
        trades: Ordered trades, highest priority first
        created_at: When the recommendation was produced
        id: Unique id; a live execute accepts each id once
    """

    portfolio_id: str
    strategy_id: str
    strategy_name: str
    reason: str
    urgency: Urgency
    estimated_impact: EstimatedImpact
    trades: Tuple[TradeRecommendation, ...] = ()
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_recommendation_id)

    @property
    def total_trade_value(self) -> float:
        """Sum of trade notionals."""
        return sum(trade.notional_amount for trade in self.trades)

    @property
    def has_trades(self) -> bool:
        return len(self.trades) > 0

    def to_dict(self) -> Dict:
        """Plain-dict view for logging and CLI output."""
        return {
            "id": self.id,
            "portfolio_id": self.portfolio_id,
            "strategy_id": self.strategy_id,
            "strategy": self.strategy_name,
            "reason": self.reason,
            "urgency": self.urgency.value,
            "total_trade_value": self.total_trade_value,
            "trades": [
                {
                    "symbol": t.symbol,
                    "action": t.action.value,
                    "shares": t.shares,
                    "notional_amount": t.notional_amount,
                    "priority": t.priority,
                }
                for t in self.trades
            ],
            "created_at": self.created_at.isoformat(),
        }
