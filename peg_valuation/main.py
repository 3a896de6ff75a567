#!/usr/bin/env python3
"""
Command-line entry point for the PEG valuation engine.

Values one ticker (or several, comma-separated) with the keys from the
environment / .env and prints a table or raw JSON.
"""

import argparse
import asyncio
import json
import logging
import sys

import structlog
from rich import box
from rich.console import Console
from rich.table import Table

from peg_valuation.config import config, validate_environment_variables
from peg_valuation.models import (
    Market,
    PlaceholderValuationResult,
    ValuationFailure,
    ValuationMethod,
    ValuationRequest,
    ValuationResult,
)
from peg_valuation.valuation.engine import calculate_batch_valuations, calculate_valuation

logger = structlog.get_logger(__name__)
console = Console()


def suppress_all_logging():
    """Suppress all logging output for quiet mode."""
    logging.getLogger().setLevel(logging.CRITICAL)
    for name in logging.root.manager.loggerDict:
        logging.getLogger(name).setLevel(logging.CRITICAL)
    logging.getLogger("aiohttp").setLevel(logging.CRITICAL)

    structlog.configure(
        processors=[],
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="PEG-based fair value estimate for listed equities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single ticker
  python -m peg_valuation.main --ticker AAPL

  # Hong Kong market, custom market growth assumption
  python -m peg_valuation.main --ticker 0700.HK --market HK --growth-rate 8

  # Several tickers at once, JSON output
  python -m peg_valuation.main --ticker AAPL,MSFT,NVDA --json
        """,
    )

    parser.add_argument(
        "--ticker",
        type=str,
        required=True,
        help="Ticker symbol, or a comma-separated list for a batch",
    )
    parser.add_argument(
        "--market",
        type=str,
        choices=[m.value for m in Market],
        default=Market.US.value,
        help="Market benchmark to compare against (default: US)",
    )
    parser.add_argument(
        "--growth-rate",
        type=float,
        default=None,
        help=f"Assumed market growth rate in percent (default: {config.market_growth_rate_percent:g})",
    )
    parser.add_argument(
        "--method",
        type=str,
        choices=[m.value for m in ValuationMethod],
        default=ValuationMethod.PEG.value,
        help="Valuation method (single ticker only)",
    )
    parser.add_argument("--json", action="store_true", help="Print raw JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--quiet", action="store_true", help="Suppress all logging output"
    )

    args = parser.parse_args(argv)
    if args.growth_rate is not None and args.growth_rate <= 0:
        parser.error("--growth-rate must be a positive number")
    return args


def _fmt(value: float | None, digits: int = 2) -> str:
    return "-" if value is None else f"{value:,.{digits}f}"


def render_result(result: ValuationResult) -> None:
    table = Table(
        title=f"{result.symbol} ({result.market.value})",
        box=box.ROUNDED,
        show_header=False,
    )
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Current price", _fmt(result.current_price))
    table.add_row("Fair value", _fmt(result.fair_value))
    table.add_row("Actual EPS", _fmt(result.actual_eps))
    table.add_row("Estimated EPS", _fmt(result.estimated_eps))
    table.add_row(
        "Growth rate",
        "-" if result.growth_rate is None else f"{result.growth_rate:.2%}",
    )
    table.add_row("Stock PE / PEG", f"{_fmt(result.stock_pe)} / {_fmt(result.stock_peg, 4)}")
    table.add_row("Market PE / PEG", f"{_fmt(result.market_pe)} / {_fmt(result.market_peg, 4)}")
    beta = _fmt(result.beta)
    table.add_row("Beta", f"{beta} (default)" if result.beta_fallback_used else beta)
    table.add_row(
        "Valuation possible",
        "[green]yes[/green]" if result.valuation_possible else "[red]no[/red]",
    )
    console.print(table)

    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")
    console.print()


def render(item: ValuationResult | PlaceholderValuationResult | ValuationFailure) -> None:
    if isinstance(item, ValuationResult):
        render_result(item)
    elif isinstance(item, ValuationFailure):
        console.print(f"[bold red]{item.symbol}:[/bold red] {item.error}\n")
    else:
        console.print(f"[bold]{item.symbol}[/bold] ({item.method.value}): {item.message}\n")


async def run(args: argparse.Namespace) -> list:
    symbols = [s.strip().upper() for s in args.ticker.split(",") if s.strip()]
    growth_rate = args.growth_rate or config.market_growth_rate_percent
    alpha_vantage_key = config.get_alpha_vantage_api_key() or None

    if len(symbols) == 1:
        request = ValuationRequest(
            symbol=symbols[0],
            market=Market(args.market),
            market_growth_rate_percent=growth_rate,
            finnhub_api_key=config.get_finnhub_api_key(),
            alpha_vantage_api_key=alpha_vantage_key,
        )
        return [await calculate_valuation(request, ValuationMethod(args.method))]

    return await calculate_batch_valuations(
        symbols,
        [args.market] * len(symbols),
        market_growth_rate_percent=growth_rate,
        finnhub_api_key=config.get_finnhub_api_key(),
        alpha_vantage_api_key=alpha_vantage_key,
    )


async def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    if args.quiet:
        suppress_all_logging()
    elif args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        validate_environment_variables()
    except ValueError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return 1

    results = await run(args)

    if args.json:
        payload = [item.to_json_dict() for item in results]
        print(json.dumps(payload[0] if len(payload) == 1 else payload, indent=2))
    else:
        for item in results:
            render(item)
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user.[/yellow]\n")
        sys.exit(1)


if __name__ == "__main__":
    cli()
