"""
CLI interface for FactCheck billing.

Quotes charges, estimates pre-flight costs, and inspects the catalog
and the points ledger.
"""

import logging
import os
import sqlite3
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from factcheck_billing.config.loader import PricingConfig, get_pricing_config, load_pricing_config
from factcheck_billing.core.catalog import PricingCatalog
from factcheck_billing.core.errors import BillingError
from factcheck_billing.core.estimator import CostQuote, TokenEstimator
from factcheck_billing.core.pricing import CostCalculator, CostComputation
from factcheck_billing.storage.db import DEFAULT_DB_PATH
from factcheck_billing.storage.repository import PointsLedger, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_CONFIG_ERRORS = (BillingError, ValueError, FileNotFoundError, yaml.YAMLError)


def _setup_logging(verbose: bool) -> None:
    """Route log records through rich; LOG_LEVEL applies unless --verbose."""
    level_name = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True
    )


def _load_config(path: Optional[str]) -> PricingConfig:
    return load_pricing_config(path) if path else get_pricing_config()


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/] {error}")
    sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """FactCheck points billing CLI."""
    _setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        console.print("FactCheck Billing - Use --help to see available commands")


@app.command()
def init(
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Ledger database path")
):
    """Initialize the points ledger database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Ledger initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except sqlite3.Error as e:
        console.print(f"[red]Error initializing ledger:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def quote(
    prompt_units: int = typer.Option(..., "--prompt-units", "-p", help="Input units reported by the model"),
    candidate_units: int = typer.Option(..., "--candidate-units", "-c", help="Output units reported by the model"),
    mode: str = typer.Option("standard", "--mode", "-m", help="Analysis mode: standard or deep"),
    batch: bool = typer.Option(False, "--batch", "-b", help="Apply the batch discount"),
    model: Optional[str] = typer.Option(None, "--model", help="Model identifier"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Pricing YAML file")
):
    """Compute the points charge for actual usage."""
    try:
        config = _load_config(config_path)
        computation = CostCalculator(config).compute_breakdown(
            prompt_units, candidate_units, mode, batch, model
        )
    except _CONFIG_ERRORS as e:
        _fail(e)

    _display_computation(computation, config)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def estimate(
    duration: Optional[float] = typer.Option(None, "--duration", "-d", help="Video duration in seconds"),
    chars: Optional[int] = typer.Option(None, "--chars", help="Article length in characters"),
    transcript: bool = typer.Option(False, "--transcript", help="Transcript-only analysis of the video"),
    mode: str = typer.Option("standard", "--mode", "-m", help="Analysis mode: standard or deep"),
    batch: bool = typer.Option(False, "--batch", "-b", help="Apply the batch discount"),
    model: Optional[str] = typer.Option(None, "--model", help="Model identifier"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Pricing YAML file")
):
    """Estimate usage and points before running an analysis."""
    if (duration is None) == (chars is None):
        _fail(ValueError("provide exactly one of --duration or --chars"))
    if transcript and chars is not None:
        _fail(ValueError("--transcript applies to --duration only"))

    try:
        config = _load_config(config_path)
        estimator = TokenEstimator(CostCalculator(config))
        if chars is not None:
            usage_estimate = estimator.estimate_text(chars, mode)
        elif transcript:
            usage_estimate = estimator.estimate_transcript(duration, mode)
        else:
            usage_estimate = estimator.estimate_video(duration, mode)
        cost_quote = estimator.quote(usage_estimate, mode, batch, model)
    except _CONFIG_ERRORS as e:
        _fail(e)

    _display_quote(cost_quote)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def prices(
    config_path: Optional[str] = typer.Option(None, "--config", help="Pricing YAML file")
):
    """Show fixed-price services."""
    try:
        catalog = PricingCatalog(_load_config(config_path))
    except _CONFIG_ERRORS as e:
        _fail(e)

    table = Table(title="Fixed prices")
    table.add_column("Service")
    table.add_column("Points", justify="right")
    for kind, points in catalog.fixed_prices().items():
        table.add_row(kind.value, f"{points:,}")
    console.print(table)


@app.command()
def tiers(
    config_path: Optional[str] = typer.Option(None, "--config", help="Pricing YAML file")
):
    """Show purchasable point tiers."""
    try:
        catalog = PricingCatalog(_load_config(config_path))
    except _CONFIG_ERRORS as e:
        _fail(e)

    table = Table(title="Point tiers")
    table.add_column("Tier")
    table.add_column("Price", justify="right")
    table.add_column("Points", justify="right")
    table.add_column("Bonus", justify="right")
    table.add_column("Total", justify="right")
    for tier in catalog.tiers():
        name = f"[bold]{tier.name} ★[/bold]" if tier.featured else tier.name
        table.add_row(
            name,
            _format_currency(tier.price),
            f"{tier.base_points:,}",
            f"{tier.bonus_points:,}",
            f"{tier.total_points:,}"
        )
    console.print(table)


@app.command()
def balance(
    user_id: str = typer.Argument(..., help="Account identifier"),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Ledger database path"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of transactions to show")
):
    """Show an account's balance and recent transactions."""
    ledger = PointsLedger(db)
    try:
        points = ledger.get_balance(user_id)
        transactions = ledger.list_transactions(user_id, limit=limit)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            console.print("\n[bold yellow]Ledger not initialized[/]")
            console.print("Run `factcheck-billing init` to create it.\n")
            sys.exit(EXIT_CODE_FAIL)
        raise

    console.print(f"\n[bold]Balance for {user_id}:[/bold] {_format_points(points)}")
    if not transactions:
        console.print("[dim]No transactions recorded.[/]")
        return

    table = Table()
    table.add_column("When")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Balance", justify="right")
    table.add_column("Description")
    for transaction in transactions:
        sign = "-" if transaction.type.value == "deduction" else "+"
        table.add_row(
            transaction.timestamp.strftime("%Y-%m-%d %H:%M"),
            transaction.type.value,
            f"{sign}{transaction.amount:,}",
            f"{transaction.balance_after:,}",
            transaction.description
        )
    console.print(table)


def _format_currency(amount) -> str:
    """Format a local-currency amount."""
    return f"€{amount:,.2f}"


def _format_points(points: int) -> str:
    return f"{points:,} points"


def _display_computation(computation: CostComputation, config: PricingConfig) -> None:
    """Display a cost breakdown step by step."""
    console.print("\n[bold]Cost Quote[/bold]")
    console.print("-" * 40)
    console.print(f"Model: {computation.model_id}")
    console.print(f"Mode: {computation.mode.value}{' (batch)' if computation.is_batch else ''}")
    console.print(f"Vendor cost: ${computation.raw_currency_cost:,.4f}")
    console.print(f"Local cost: €{computation.local_currency_cost:,.4f}")
    console.print(f"Base points: {computation.base_points:,.2f}")
    console.print(f"Profit multiplier: x{config.profit_multiplier(computation.mode)}")
    console.print(f"Floor: {_format_points(config.point_floor(computation.mode))}")
    console.print(f"\n[bold]Charge:[/bold] {_format_points(computation.final_points)}")


def _display_quote(cost_quote: CostQuote) -> None:
    """Display a pre-flight estimate."""
    estimate = cost_quote.estimate
    console.print("\n[bold]Cost Estimate[/bold]")
    console.print("-" * 40)
    console.print(f"Mode: {cost_quote.mode.value}")
    console.print(f"Estimated input units: {estimate.estimated_input_units:,}")
    console.print(f"Estimated output units: {estimate.estimated_output_units:,}")
    console.print(f"Estimated total units: {estimate.total_units:,}")
    console.print(f"\n[bold]Estimated charge:[/bold] {_format_points(cost_quote.points)}")


if __name__ == "__main__":
    app()
