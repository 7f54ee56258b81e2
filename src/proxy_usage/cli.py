"""CLI entry point for proxy-usage."""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console

from .client import ManagementAPIError, ManagementClient, load_usage_file
from .config import (
    config_exists,
    get_base_url,
    get_chart_lines,
    get_cost_decimals,
    get_management_key,
    get_max_chart_lines,
    get_storage_path,
    load_config,
)
from .dashboard import render_chart, render_cost, render_dashboard, render_prices, render_status_line
from .engine import UsageAnalyticsEngine
from .onboarding import run_onboarding
from .price_store import PriceStore
from .selection import ChartLineSelection
from .storage import open_storage

console = Console()

PERIOD_OPTION = click.option("--period", type=click.Choice(["hour", "day"]), default="day",
                             show_default=True, help="Bucket by hour (last 24h) or by day")
FILE_OPTION = click.option("--file", "usage_file", type=click.Path(exists=True, dir_okay=False),
                           help="Read a saved /usage response instead of calling the API")


def _open_price_store(config: dict) -> PriceStore:
    return PriceStore(open_storage(get_storage_path(config)))


def _build_engine(config: dict) -> UsageAnalyticsEngine:
    selection = ChartLineSelection(max_count=get_max_chart_lines(config),
                                   visible_count=get_chart_lines(config))
    return UsageAnalyticsEngine(_open_price_store(config), selection)


def _load_engine(usage_file: str | None) -> tuple[UsageAnalyticsEngine, dict] | None:
    """Fetch usage (or read it from a file) into a fresh engine."""
    config = load_config()
    if not usage_file and not config_exists():
        console.print("[red]No config found. Run 'proxy-usage setup' first or pass --file.[/red]")
        return None

    try:
        if usage_file:
            payload = load_usage_file(usage_file)
        else:
            client = ManagementClient(get_base_url(config), get_management_key(config))
            with console.status("[cyan]Fetching usage statistics...[/cyan]"):
                payload = client.get_usage()
    except ManagementAPIError as exc:
        console.print(f"[red]{exc}[/red]")
        return None

    engine = _build_engine(config)
    engine.update_usage(payload)
    return engine, config


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, verbose: bool):
    """Proxy Usage — request, token and cost analytics for your proxy's management API."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        ctx.invoke(dashboard)


@main.command()
def setup():
    """Configure the management API endpoint and chart preferences."""
    run_onboarding()
    console.print("[dim]Run [bold]proxy-usage[/bold] to see the dashboard.[/dim]")


@main.command()
@FILE_OPTION
@PERIOD_OPTION
def dashboard(usage_file: str | None = None, period: str = "day"):
    """Show the usage dashboard (default command)."""
    loaded = _load_engine(usage_file)
    if loaded is None:
        sys.exit(1)
    engine, config = loaded
    if not engine.details:
        console.print("[yellow]No usage details reported yet. "
                      "Is usage statistics enabled on the proxy?[/yellow]")
    render_dashboard(engine, config, period)


@main.command()
@FILE_OPTION
def status(usage_file: str | None):
    """Show a quick one-line usage status."""
    loaded = _load_engine(usage_file)
    if loaded is None:
        sys.exit(1)
    engine, config = loaded
    render_status_line(engine, config)


@main.command()
@FILE_OPTION
@PERIOD_OPTION
@click.option("--metric", type=click.Choice(["requests", "tokens"]), default="requests",
              show_default=True)
@click.option("--lines", type=int, help="Number of chart lines to plot")
@click.option("--model", "models", multiple=True,
              help="Model to plot; repeat for more lines. Use 'all' for every model summed.")
def chart(usage_file: str | None, period: str, metric: str, lines: int | None,
          models: tuple[str, ...]):
    """Show requests or tokens per model over time."""
    loaded = _load_engine(usage_file)
    if loaded is None:
        sys.exit(1)
    engine, _ = loaded

    if models:
        engine.selection.resize(len(models))
        for i, model in enumerate(models[:engine.selection.visible_count]):
            engine.selection.set_selection(i, model)
        engine.selection.sync(engine.model_names)
    elif lines:
        engine.selection.resize(lines)
        engine.selection.sync(engine.model_names)

    render_chart(engine.build_chart_data_for_metric(period, metric), metric.capitalize(), period)


@main.command()
@FILE_OPTION
@PERIOD_OPTION
def cost(usage_file: str | None, period: str):
    """Show estimated cost from the configured model prices."""
    loaded = _load_engine(usage_file)
    if loaded is None:
        sys.exit(1)
    engine, config = loaded
    render_cost(engine.calculate_cost_data(period), period, get_cost_decimals(config))


@main.group()
def prices():
    """Manage model prices (per 1M tokens)."""


@prices.command("list")
def prices_list():
    """List configured model prices."""
    render_prices(_open_price_store(load_config()).get_prices())


@prices.command("set")
@click.argument("model")
@click.argument("prompt", type=float)
@click.argument("completion", type=float)
def prices_set(model: str, prompt: float, completion: float):
    """Set PROMPT and COMPLETION price per 1M tokens for MODEL."""
    store = _open_price_store(load_config())
    try:
        store.set_price(model, prompt, completion)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)
    if not store.persistent:
        console.print("[yellow]Storage unavailable; price kept for this run only.[/yellow]")
    console.print(f"[green]✓ {model}: ${prompt:g} prompt / ${completion:g} completion per 1M tokens[/green]")


@prices.command("remove")
@click.argument("model")
def prices_remove(model: str):
    """Remove the price entry for MODEL."""
    store = _open_price_store(load_config())
    if store.remove(model):
        console.print(f"[green]✓ Removed price for {model}[/green]")
    else:
        console.print(f"[yellow]No price configured for {model}[/yellow]")


@prices.command("clear")
@click.confirmation_option(prompt="Remove all model prices?")
def prices_clear():
    """Remove every price entry."""
    _open_price_store(load_config()).clear()
    console.print("[green]✓ Cleared all model prices[/green]")


if __name__ == "__main__":
    main()
