"""Rich terminal dashboard for proxy usage, rates and cost."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import get_cost_decimals, get_rate_window_minutes
from .engine import UsageAnalyticsEngine
from .models import ChartData, CostData, KeyStats, ModelPrice, RateStats, UsageOverview
from .pricing import format_compact_number, format_cost

console = Console()

SPARK_CHARS = "▁▂▃▄▅▆▇█"


def render_dashboard(engine: UsageAnalyticsEngine, config: dict,
                     period: str = "day") -> None:
    """Render the full dashboard."""
    window = get_rate_window_minutes(config)
    decimals = get_cost_decimals(config)
    cost = engine.calculate_cost_data(period)

    console.print()
    _render_overview_panel(engine.overview(), engine.calculate_recent_per_minute_rates(window),
                           cost, decimals)
    console.print()
    _render_recent_window(engine, window, decimals)
    console.print()
    render_chart(engine.build_chart_data_for_metric(period, "requests"), "Requests", period)
    console.print()
    render_chart(engine.build_chart_data_for_metric(period, "tokens"), "Tokens", period)
    console.print()
    _render_endpoint_table(engine, decimals)
    console.print()
    _render_key_stats(engine.key_stats())
    console.print()


def render_status_line(engine: UsageAnalyticsEngine, config: dict) -> None:
    """Render a single-line status summary."""
    window = get_rate_window_minutes(config)
    overview = engine.overview()
    rates = engine.calculate_recent_per_minute_rates(window)
    cost = engine.calculate_cost_data("day")

    console.print(
        f"[bold]{format_compact_number(overview.total_requests)}[/bold] reqs "
        f"([green]{overview.success_count}[/green]/[red]{overview.failure_count}[/red]) │ "
        f"{format_compact_number(overview.total_tokens)} tokens │ "
        f"RPM {rates.rpm:.2f} · TPM {format_compact_number(rates.tpm)} ({rates.window_minutes}m) │ "
        f"Cost: [bold]{format_cost(cost.total_cost, cost.has_prices, get_cost_decimals(config))}[/bold]"
    )


def _sparkline(values: list[float]) -> str:
    top = max(values, default=0)
    if top <= 0:
        return SPARK_CHARS[0] * len(values)
    last = len(SPARK_CHARS) - 1
    return "".join(SPARK_CHARS[round(v / top * last)] for v in values)


def _render_overview_panel(overview: UsageOverview, rates: RateStats,
                           cost: CostData, decimals: int) -> None:
    success_rate = (overview.success_count / overview.total_requests * 100
                    if overview.total_requests else 0)
    rate_color = "green" if success_rate >= 95 else "yellow" if success_rate >= 80 else "red"

    lines = []
    lines.append(f"[bold]Total Requests:[/bold] {overview.total_requests} "
                 f"([green]{overview.success_count} ok[/green], "
                 f"[red]{overview.failure_count} failed[/red], "
                 f"[{rate_color}]{success_rate:.1f}%[/{rate_color}])")
    lines.append(f"[bold]Total Tokens:[/bold]   {format_compact_number(overview.total_tokens)}")
    lines.append(f"[bold]Models Used:[/bold]    {overview.models_used}")
    lines.append("")
    lines.append(f"[bold]RPM:[/bold] {rates.rpm:.2f}   [bold]TPM:[/bold] {rates.tpm:.1f}   "
                 f"[dim](last {rates.window_minutes} min, {rates.request_count} reqs)[/dim]")
    lines.append(f"[bold]Estimated Cost:[/bold] {format_cost(cost.total_cost, cost.has_prices, decimals)}")

    panel = Panel(
        "\n".join(lines),
        title="[bold cyan]📊 Usage Overview[/bold cyan]",
        border_style="cyan",
    )
    console.print(panel)


def _render_recent_window(engine: UsageAnalyticsEngine, window: int, decimals: int) -> None:
    recent = engine.build_recent_window_series(window)
    if not recent.labels:
        return

    table = Table(title=f"⏱ Last {len(recent.labels)} Minutes", show_lines=True)
    table.add_column("Metric", style="cyan")
    table.add_column(f"{recent.labels[0]} → {recent.labels[-1]}")
    table.add_column("Total", justify="right", style="yellow")

    table.add_row("Requests", _sparkline(recent.requests),
                  format_compact_number(sum(recent.requests)))
    table.add_row("Tokens", _sparkline(recent.tokens),
                  format_compact_number(sum(recent.tokens)))
    table.add_row("Cost", _sparkline(recent.cost) if recent.has_prices else "-",
                  format_cost(sum(recent.cost), recent.has_prices, decimals))
    console.print(table)


def render_chart(chart: ChartData, title: str, period: str = "day") -> None:
    """Render chart datasets as a bucket-by-line table."""
    heading = f"📈 {title} by {'Hour' if period == 'hour' else 'Day'}"
    if not chart.labels or not chart.datasets:
        console.print(f"[dim]{heading}: no data[/dim]")
        return

    table = Table(title=heading, show_lines=False)
    table.add_column("Bucket", style="cyan")
    for dataset in chart.datasets:
        table.add_column(f"[{dataset.border_color}]{escape(dataset.label)}[/]",
                         justify="right")

    for i, label in enumerate(chart.labels):
        table.add_row(label, *(format_compact_number(d.data[i]) for d in chart.datasets))

    table.add_row("[bold]Trend[/bold]", *(_sparkline(d.data) for d in chart.datasets))
    console.print(table)


def render_cost(cost: CostData, period: str = "day", decimals: int = 4) -> None:
    """Render the cost series and headline total."""
    if not cost.has_prices:
        console.print("[yellow]No model prices configured. "
                      "Add one with 'proxy-usage prices set MODEL PROMPT COMPLETION'.[/yellow]")
        return

    table = Table(title=f"💰 Cost by {'Hour' if period == 'hour' else 'Day'}", show_lines=False)
    table.add_column("Bucket", style="cyan")
    table.add_column("Cost", justify="right", style="green")

    series = cost.datasets[0].data if cost.datasets else []
    for label, value in zip(cost.labels, series):
        table.add_row(label, format_cost(value, True, decimals))
    table.add_row("[bold]Total[/bold]", f"[bold]{format_cost(cost.total_cost, True, decimals)}[/bold]")
    console.print(table)


def _render_endpoint_table(engine: UsageAnalyticsEngine, decimals: int) -> None:
    summaries = engine.endpoint_summaries()
    if not summaries:
        console.print("[dim]No endpoint data[/dim]")
        return

    has_prices = bool(engine.price_store.get_prices())
    costs = engine.cost_by_endpoint()

    table = Table(title="🔌 Usage by Endpoint", show_lines=True)
    table.add_column("Endpoint", style="cyan")
    table.add_column("Requests", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Cost", justify="right", style="green")
    table.add_column("Models", style="dim")

    for s in sorted(summaries, key=lambda s: s.total_requests, reverse=True):
        rate = s.success_rate
        models = "\n".join(
            f"{name}: {m.total_requests} reqs / {format_compact_number(m.total_tokens)} tokens"
            for name, m in sorted(s.models.items())
        )
        table.add_row(
            escape(s.endpoint),
            str(s.total_requests),
            format_compact_number(s.total_tokens),
            f"{rate:.0f}%" if rate is not None else "-",
            format_cost(costs.get(s.endpoint, 0.0), has_prices, decimals),
            models or "-",
        )

    console.print(table)


def _render_key_stats(stats: KeyStats) -> None:
    if not stats.by_source:
        return

    table = Table(title="🔑 Requests by Credential", show_lines=True)
    table.add_column("Source", style="cyan")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Failure", justify="right", style="red")
    table.add_column("Total", justify="right")

    for source, bucket in sorted(stats.by_source.items(), key=lambda x: x[1].total, reverse=True):
        table.add_row(escape(source), str(bucket.success), str(bucket.failure),
                      format_compact_number(bucket.total))

    console.print(table)


def render_prices(prices: dict[str, ModelPrice]) -> None:
    """Render the configured price table."""
    if not prices:
        console.print("[yellow]No model prices configured.[/yellow]")
        return

    table = Table(title="💲 Model Prices (per 1M tokens)", show_lines=True)
    table.add_column("Model", style="cyan")
    table.add_column("Prompt", justify="right", style="yellow")
    table.add_column("Completion", justify="right", style="yellow")

    for model, price in sorted(prices.items()):
        table.add_row(model, f"${price.prompt:g}", f"${price.completion:g}")

    console.print(table)
