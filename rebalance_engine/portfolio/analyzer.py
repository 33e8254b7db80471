"""Allocation analyzer.

Reprices a portfolio snapshot from market data and computes per-asset
drift and the portfolio's aggregate volatility.

Algorithm:
1. Fetch a quote per allocation (failures mark the symbol unavailable)
2. Reprice: current_value = shares x price when shares are known
3. current_percent = current_value / total_value x 100
4. drift = current_percent - target_percent (None when unavailable)
5. Aggregate volatility = value-weighted sum of per-symbol volatility
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from rebalance_engine.data.base import MarketDataPort, Quote
from rebalance_engine.portfolio.base import AssetAllocation, Portfolio
from rebalance_engine.utils.exceptions import DataError
from rebalance_engine.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


@dataclass
class AllocationSnapshot:
    """Result of one analysis pass.

    Attributes:
        portfolio: Repriced copy of the input portfolio
        aggregate_volatility: Value-weighted volatility of priced allocations
        quotes: Quotes fetched during the pass, by symbol
        unavailable: Symbols whose market data could not be fetched
    """

    portfolio: Portfolio
    aggregate_volatility: float
    quotes: Dict[str, Quote] = field(default_factory=dict)
    unavailable: List[str] = field(default_factory=list)

    @property
    def allocations(self) -> List[AssetAllocation]:
        return self.portfolio.allocations

    @property
    def known_allocations(self) -> List[AssetAllocation]:
        """Allocations with a computed drift, in portfolio order."""
        return [a for a in self.portfolio.allocations if a.has_known_drift]

    def price_of(self, symbol: str) -> Optional[float]:
        quote = self.quotes.get(symbol)
        return quote.price if quote else None

    def volatility_of(self, symbol: str) -> Optional[float]:
        quote = self.quotes.get(symbol)
        return quote.volatility if quote else None

    def momentum_of(self, symbol: str) -> Optional[float]:
        quote = self.quotes.get(symbol)
        return quote.momentum if quote else None

    @property
    def mean_absolute_drift(self) -> float:
        """Average |drift| over allocations with known drift."""
        known = self.known_allocations
        if not known:
            return 0.0
        return sum(abs(a.drift) for a in known) / len(known)


class AllocationAnalyzer:
    """Computes drift and aggregate volatility for a portfolio.

    The input portfolio is never mutated; a fresh snapshot is returned.

    Example:
        >>> analyzer = AllocationAnalyzer(market_data)
        >>> snapshot = analyzer.analyze(portfolio)
        >>> for allocation in snapshot.allocations:
        ...     print(allocation.symbol, allocation.drift)
    """

    def __init__(self, market_data: MarketDataPort):
        self.market_data = market_data

    def analyze(
        self,
        portfolio: Portfolio,
        volatility_window: Optional[int] = None,
        momentum_window: Optional[int] = None,
    ) -> AllocationSnapshot:
        """Reprice ``portfolio`` and compute drift per allocation.

        Args:
            portfolio: Portfolio snapshot to analyze
            volatility_window: Volatility window requested from the feed
            momentum_window: Momentum window requested from the feed

        Returns:
            AllocationSnapshot with repriced allocations
        """
        quotes: Dict[str, Quote] = {}
        unavailable: List[str] = []

        windows = {}
        if volatility_window is not None:
            windows["volatility_window"] = volatility_window
        if momentum_window is not None:
            windows["momentum_window"] = momentum_window

        for allocation in portfolio.allocations:
            try:
                quotes[allocation.symbol] = self.market_data.get_quote(
                    allocation.symbol, **windows
                )
            except DataError as e:
                unavailable.append(allocation.symbol)
                log_with_context(
                    logger,
                    "warning",
                    "Market data unavailable, excluding symbol from triggers",
                    portfolio_id=portfolio.id,
                    symbol=allocation.symbol,
                    error=e,
                )

        total_value = portfolio.total_value
        updated = [
            self._reprice(allocation, quotes.get(allocation.symbol), total_value)
            for allocation in portfolio.allocations
        ]

        aggregate_volatility = 0.0
        if total_value > 0:
            for allocation in updated:
                quote = quotes.get(allocation.symbol)
                if quote is not None:
                    aggregate_volatility += (
                        allocation.current_value / total_value
                    ) * quote.volatility

        snapshot = AllocationSnapshot(
            portfolio=replace(portfolio, allocations=updated),
            aggregate_volatility=aggregate_volatility,
            quotes=quotes,
            unavailable=unavailable,
        )

        logger.info(
            "Analyzed portfolio %s: %d allocations, %d unavailable, "
            "aggregate volatility %.4f",
            portfolio.id,
            len(updated),
            len(unavailable),
            aggregate_volatility,
        )

        return snapshot

    def _reprice(
        self,
        allocation: AssetAllocation,
        quote: Optional[Quote],
        total_value: float,
    ) -> AssetAllocation:
        if quote is None:
            # Keep the last known value so the portfolio still adds up
            return replace(allocation, drift=None)

        if allocation.shares is not None:
            current_value = allocation.shares * quote.price
        else:
            current_value = allocation.current_value

        current_percent = current_value / total_value * 100 if total_value > 0 else 0.0

        return replace(
            allocation,
            current_value=current_value,
            current_percent=current_percent,
            drift=current_percent - allocation.target_percent,
        )
