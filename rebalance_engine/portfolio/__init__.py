"""Portfolio Management Layer.

Holdings snapshot, allocation analysis and the records a recommendation
is made of.

Components:
- Portfolio, AssetAllocation: Holdings snapshot and target weights
- TradeRecommendation, RebalanceRecommendation: Proposed trades
- AllocationAnalyzer: Drift and aggregate volatility from live quotes

TradeOptimizer (portfolio.optimizer) and ImpactEstimator
(portfolio.impact) depend on the strategy layer and are imported from
their modules.
"""

from rebalance_engine.portfolio.base import (
    AssetAllocation,
    AssetCategory,
    EstimatedImpact,
    Portfolio,
    RebalanceRecommendation,
    TaxImplication,
    TradeAction,
    TradeRecommendation,
    Urgency,
)
from rebalance_engine.portfolio.analyzer import AllocationAnalyzer, AllocationSnapshot

__all__ = [
    "Portfolio",
    "AssetAllocation",
    "AssetCategory",
    "TradeAction",
    "Urgency",
    "TaxImplication",
    "TradeRecommendation",
    "EstimatedImpact",
    "RebalanceRecommendation",
    "AllocationAnalyzer",
    "AllocationSnapshot",
]
