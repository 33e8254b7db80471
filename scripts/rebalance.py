#!/usr/bin/env python3
"""Portfolio rebalancing CLI.

Analyzes a portfolio described in a YAML file and executes the most
urgent recommendation, either as a dry run, against the in-process paper
broker, or against Alpaca.

Usage:
    python scripts/rebalance.py analyze config/example_portfolio.yaml
    python scripts/rebalance.py analyze config/example_portfolio.yaml --strategy quarterly
    python scripts/rebalance.py execute config/example_portfolio.yaml --dry-run
    python scripts/rebalance.py execute config/example_portfolio.yaml --live --fail BND
    python scripts/rebalance.py execute config/example_portfolio.yaml --live --alpaca
"""

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rebalance_engine.data.providers.alpaca_provider import AlpacaMarketData
from rebalance_engine.data.providers.static_provider import StaticMarketData
from rebalance_engine.data.storage.memory import InMemoryPortfolioStore
from rebalance_engine.data.storage.yaml_loader import load_portfolio_file
from rebalance_engine.execution.alpaca_broker import AlpacaBroker
from rebalance_engine.execution.base import ExecutionStatus, RebalanceExecution
from rebalance_engine.execution.paper_broker import PaperBroker
from rebalance_engine.orchestration.orchestrator import RebalanceOrchestrator
from rebalance_engine.portfolio.base import RebalanceRecommendation, Urgency
from rebalance_engine.utils.alpaca_client import AlpacaClient
from rebalance_engine.utils.config import EngineSettings, load_config
from rebalance_engine.utils.exceptions import RebalanceEngineError
from rebalance_engine.utils.logging import setup_logging

console = Console()

URGENCY_STYLES = {
    Urgency.LOW: "dim",
    Urgency.MEDIUM: "yellow",
    Urgency.HIGH: "bold red",
    Urgency.CRITICAL: "bold white on red",
}


def build_orchestrator(
    portfolio_file: str,
    config_file: Optional[str],
    use_alpaca: bool,
    fail_symbols: Tuple[str, ...] = (),
) -> Tuple[RebalanceOrchestrator, str]:
    """Wire the orchestrator for a portfolio file.

    Returns:
        (orchestrator, portfolio_id)
    """
    config = load_config(config_file)
    settings = EngineSettings.from_config(config)
    setup_logging(level=settings.log_level)

    portfolio, strategies, quotes = load_portfolio_file(portfolio_file)

    store = InMemoryPortfolioStore()
    store.add_portfolio(portfolio)
    for strategy in strategies:
        store.add_strategy(portfolio.id, strategy)

    if use_alpaca:
        client = AlpacaClient.from_env(
            rate_limit_per_minute=config.get("alpaca.rate_limit_per_minute", 200),
            retry_attempts=config.get("alpaca.retry_attempts", 3),
            retry_delay=config.get("alpaca.retry_delay", 2.0),
        )
        market_data = AlpacaMarketData(
            client,
            volatility_window=config.get("alpaca.volatility_window", 30),
            momentum_window=config.get("alpaca.momentum_window", 20),
        )
        broker = AlpacaBroker(client)
    else:
        market_data = StaticMarketData(quotes)
        broker = PaperBroker(market_data, fail_symbols=fail_symbols)

    return RebalanceOrchestrator(market_data, broker, store, settings=settings), portfolio.id


def print_recommendations(recommendations: List[RebalanceRecommendation]) -> None:
    if not recommendations:
        console.print("[green]✅ Portfolio is balanced, no trades recommended[/green]")
        return

    for rec in recommendations:
        style = URGENCY_STYLES[rec.urgency]
        table = Table(
            title=f"{rec.strategy_name} [{style}]{rec.urgency.value.upper()}[/{style}]",
            caption=rec.reason,
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Symbol", style="cyan", no_wrap=True)
        table.add_column("Action")
        table.add_column("Shares", justify="right")
        table.add_column("Notional", justify="right")
        table.add_column("Current %", justify="right")
        table.add_column("Target %", justify="right")
        table.add_column("Priority", justify="right")
        table.add_column("Est. Cost", justify="right")

        for trade in rec.trades:
            action_style = "green" if trade.action.value == "buy" else "red"
            table.add_row(
                trade.symbol,
                f"[{action_style}]{trade.action.value.upper()}[/{action_style}]",
                str(trade.shares),
                f"${trade.notional_amount:,.2f}",
                f"{trade.current_percent:.2f}%",
                f"{trade.target_percent:.2f}%",
                f"{trade.priority:.2f}",
                f"${trade.estimated_cost:,.2f}",
            )

        console.print(table)
        impact = rec.estimated_impact
        console.print(
            f"  Total ${rec.total_trade_value:,.2f} | costs ${impact.trading_costs:,.2f} | "
            f"tax ${impact.tax_implication:+,.2f} | "
            f"est. return {impact.expected_return:+.2%} | "
            f"est. risk reduction {impact.risk_reduction:.2%}\n"
        )


def print_execution(execution: RebalanceExecution) -> None:
    ok = execution.status == ExecutionStatus.COMPLETED
    color = "green" if ok else "red"
    mode = "DRY RUN" if execution.dry_run else "LIVE"

    table = Table(
        title=f"Execution {execution.id} ({mode})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("Status", f"[{color}]{execution.status.value}[/{color}]")
    table.add_row("Trades executed", str(execution.results.trades_executed))
    table.add_row("Total cost", f"${execution.results.total_cost:,.2f}")
    table.add_row("Target deviation", f"{execution.results.target_deviation:.2f}%")
    table.add_row("Improvement score", f"{execution.results.improvement_score:.1f}")
    console.print(table)

    if execution.trades:
        trades = Table(title="Trades", show_header=True, header_style="bold magenta")
        trades.add_column("Symbol", style="cyan")
        trades.add_column("Order ID")
        trades.add_column("Status")
        trades.add_column("Filled", justify="right")
        trades.add_column("Avg Price", justify="right")
        for trade in execution.trades:
            trades.add_row(
                trade.symbol,
                trade.order_id or "-",
                trade.status.value,
                f"{trade.filled_shares:g}/{trade.requested_shares:g}",
                f"${trade.average_price:,.2f}",
            )
        console.print(trades)

    for error in execution.errors:
        console.print(f"[red]❌ {error}[/red]")


@click.group()
def cli():
    """Portfolio rebalancing engine."""
    pass


@cli.command()
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--strategy", "strategy_id", default=None, help="Run one strategy by id")
@click.option("--config", "config_file", default=None, help="Engine config YAML")
@click.option("--alpaca", is_flag=True, help="Use Alpaca market data")
def analyze(portfolio_file, strategy_id, config_file, alpaca):
    """Show rebalance recommendations for PORTFOLIO_FILE."""
    try:
        orchestrator, portfolio_id = build_orchestrator(portfolio_file, config_file, alpaca)
        recommendations = orchestrator.analyze(portfolio_id, strategy_id=strategy_id)
    except (RebalanceEngineError, FileNotFoundError) as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    print_recommendations(recommendations)


@cli.command()
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--strategy", "strategy_id", default=None, help="Run one strategy by id")
@click.option("--dry-run/--live", default=True, help="Simulate (default) or trade")
@click.option("--config", "config_file", default=None, help="Engine config YAML")
@click.option("--alpaca", is_flag=True, help="Use Alpaca market data and broker")
@click.option("--fail", "fail_symbols", multiple=True, help="Paper broker rejects SYMBOL")
@click.option("--yes", is_flag=True, help="Skip confirmation for live runs")
def execute(portfolio_file, strategy_id, dry_run, config_file, alpaca, fail_symbols, yes):
    """Execute the most urgent recommendation for PORTFOLIO_FILE."""
    try:
        orchestrator, portfolio_id = build_orchestrator(
            portfolio_file, config_file, alpaca, tuple(fail_symbols)
        )
        recommendations = orchestrator.analyze(portfolio_id, strategy_id=strategy_id)
    except (RebalanceEngineError, FileNotFoundError) as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    if not recommendations:
        console.print("[green]✅ Nothing to execute[/green]")
        return

    recommendation = recommendations[0]
    print_recommendations([recommendation])

    if not dry_run and alpaca and not yes:
        click.confirm("Submit these orders to Alpaca?", abort=True)

    try:
        execution = orchestrator.execute(recommendation, dry_run=dry_run)
    except RebalanceEngineError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    print_execution(execution)
    if execution.status != ExecutionStatus.COMPLETED:
        sys.exit(1)


if __name__ == "__main__":
    cli()
