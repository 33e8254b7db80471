"""Portfolio rebalancing decision engine.

Compares a portfolio's live allocation with its targets, turns pluggable
strategies into bounded trade lists and executes them against a broker.

Entry point: rebalance_engine.orchestration.RebalanceOrchestrator
"""

__version__ = "0.1.0"
