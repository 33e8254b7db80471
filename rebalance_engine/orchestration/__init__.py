"""Orchestration Layer - Coordinates analysis and execution.

Components:
- RebalanceOrchestrator: analyze/execute API with per-portfolio locking
- PortfolioStatus: Orchestrator-level portfolio state
- is_market_open: NYSE regular-session check
"""

from rebalance_engine.orchestration.market_hours import is_market_open
from rebalance_engine.orchestration.orchestrator import (
    PortfolioStatus,
    RebalanceOrchestrator,
)

__all__ = [
    "RebalanceOrchestrator",
    "PortfolioStatus",
    "is_market_open",
]
