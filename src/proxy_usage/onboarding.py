"""Interactive onboarding flow for first-run setup."""

from __future__ import annotations

from rich.console import Console
from rich.prompt import IntPrompt, Prompt

from .config import (
    DEFAULT_BASE_URL,
    DEFAULT_CHART_LINES,
    DEFAULT_MAX_CHART_LINES,
    build_default_config,
    load_config,
    save_config,
)
from .normalizer import mask_api_key

console = Console()


def run_onboarding() -> dict:
    """Run interactive setup and return the saved config dict."""
    console.print("\n[bold cyan]🚀 Proxy Usage — Setup[/bold cyan]\n")
    existing = load_config()

    base_url = Prompt.ask("Proxy base URL", default=existing.get("base_url", DEFAULT_BASE_URL))
    management_key = _ask_management_key(existing.get("management_key", ""))
    chart_lines = _ask_chart_lines(existing.get("chart_lines", DEFAULT_CHART_LINES))

    config = build_default_config(base_url.rstrip("/"), management_key, chart_lines)
    save_config(config)

    console.print(f"\n[bold green]✓ Config saved![/bold green]")
    console.print(f"  Base URL: [cyan]{config['base_url']}[/cyan]")
    console.print(f"  Management key: [cyan]{mask_api_key(management_key) or '(none)'}[/cyan]")
    console.print(f"  Chart lines: [cyan]{chart_lines}[/cyan]\n")

    return config


def _ask_management_key(current: str) -> str:
    """Ask for the management key, keeping the current one on empty input."""
    console.print()
    hint = f" (enter to keep {mask_api_key(current)})" if current else ""
    key = Prompt.ask(f"Management key{hint}", password=True, default="", show_default=False)
    return key.strip() or current


def _ask_chart_lines(current: int) -> int:
    console.print()
    while True:
        value = IntPrompt.ask(f"Chart lines to plot (1-{DEFAULT_MAX_CHART_LINES})", default=current)
        if 1 <= value <= DEFAULT_MAX_CHART_LINES:
            return value
        console.print(f"[yellow]Pick a number between 1 and {DEFAULT_MAX_CHART_LINES}[/yellow]")
