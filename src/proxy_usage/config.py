"""Load, save, and validate user configuration."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

CONFIG_DIR = Path.home() / ".proxy-usage"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
STORAGE_FILE = CONFIG_DIR / "storage.db"

MANAGEMENT_KEY_ENV = "PROXY_USAGE_MANAGEMENT_KEY"

DEFAULT_BASE_URL = "http://localhost:8317"
DEFAULT_RATE_WINDOW_MINUTES = 30
DEFAULT_CHART_LINES = 3
DEFAULT_MAX_CHART_LINES = 9
DEFAULT_COST_DECIMALS = 4


def config_exists() -> bool:
    return CONFIG_FILE.exists()


def load_config() -> dict:
    """Load config from YAML file. Returns empty dict if not found."""
    if not CONFIG_FILE.exists():
        return {}
    with open(CONFIG_FILE, "r") as f:
        return yaml.safe_load(f) or {}


def save_config(config: dict) -> None:
    """Save config to YAML file, creating directory if needed."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def _positive_int(config: dict, key: str, default: int) -> int:
    value = config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return default
    return value


def get_base_url(config: dict) -> str:
    return str(config.get("base_url") or DEFAULT_BASE_URL).rstrip("/")


def get_management_key(config: dict) -> str:
    """Management key from the environment, falling back to the config file."""
    return os.environ.get(MANAGEMENT_KEY_ENV) or config.get("management_key") or ""


def get_rate_window_minutes(config: dict) -> int:
    return _positive_int(config, "rate_window_minutes", DEFAULT_RATE_WINDOW_MINUTES)


def get_max_chart_lines(config: dict) -> int:
    return _positive_int(config, "max_chart_lines", DEFAULT_MAX_CHART_LINES)


def get_chart_lines(config: dict) -> int:
    """Initial number of chart lines, never above the configured maximum."""
    return min(_positive_int(config, "chart_lines", DEFAULT_CHART_LINES),
               get_max_chart_lines(config))


def get_cost_decimals(config: dict) -> int:
    value = config.get("cost_decimals", DEFAULT_COST_DECIMALS)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 10:
        return DEFAULT_COST_DECIMALS
    return value


def get_storage_path(config: dict) -> Path:
    path = config.get("storage_path")
    return Path(path).expanduser() if path else STORAGE_FILE


def build_default_config(base_url: str = DEFAULT_BASE_URL, management_key: str = "",
                         chart_lines: int = DEFAULT_CHART_LINES) -> dict:
    """Build a default config dict."""
    return {
        "base_url": base_url,
        "management_key": management_key,
        "rate_window_minutes": DEFAULT_RATE_WINDOW_MINUTES,
        "chart_lines": chart_lines,
        "max_chart_lines": DEFAULT_MAX_CHART_LINES,
        "cost_decimals": DEFAULT_COST_DECIMALS,
    }
