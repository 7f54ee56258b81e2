"""Analytics engine: the price table, chart lines and the latest usage snapshot."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from .calculator import (
    build_recent_window_series,
    build_series_by_model,
    calculate_recent_per_minute_rates,
    series_for_model,
)
from .models import (
    ALL_MODELS,
    ChartData,
    ChartDataset,
    CostData,
    EndpointSummary,
    KeyStats,
    RateStats,
    RecentWindowSeries,
    UsageDetail,
    UsageOverview,
)
from .normalizer import (
    build_usage_overview,
    collect_usage_details,
    compute_key_stats,
    get_model_names,
    summarize_endpoints,
    unwrap_usage,
)
from .price_store import PriceStore
from .pricing import calculate_cost_by_endpoint, calculate_cost_data
from .selection import ChartLineSelection

logger = logging.getLogger(__name__)

# (border, background) per chart line slot
CHART_LINE_STYLES = [
    ("#3b82f6", "rgba(59, 130, 246, 0.15)"),
    ("#a855f7", "rgba(168, 85, 247, 0.15)"),
    ("#10b981", "rgba(16, 185, 129, 0.15)"),
    ("#f97316", "rgba(249, 115, 22, 0.15)"),
    ("#ec4899", "rgba(236, 72, 153, 0.15)"),
    ("#14b8a6", "rgba(20, 184, 166, 0.15)"),
    ("#eab308", "rgba(234, 179, 8, 0.15)"),
    ("#6366f1", "rgba(99, 102, 241, 0.15)"),
    ("#ef4444", "rgba(239, 68, 68, 0.15)"),
]

ALL_MODELS_LABEL = "All models"


class UsageAnalyticsEngine:
    """Computes chart, rate and cost views from the most recent usage payload.

    Every call recomputes from the stored snapshot; nothing is cached between
    calls, so results only change when ``update_usage`` is given new data or
    the prices/selection change.
    """

    def __init__(self, price_store: PriceStore | None = None,
                 selection: ChartLineSelection | None = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.price_store = price_store or PriceStore()
        self.selection = selection or ChartLineSelection()
        self.clock = clock or (lambda: datetime.now().astimezone())
        self.usage: dict = {}
        self.details: list[UsageDetail] = []
        self.model_names: list[str] = []

    def update_usage(self, payload) -> list[UsageDetail]:
        """Replace the snapshot and re-validate the chart line selection."""
        self.usage = unwrap_usage(payload)
        self.details = collect_usage_details(self.usage)
        self.model_names = get_model_names(self.usage)
        self.selection.sync(self.model_names)
        logger.debug("Loaded %d usage details across %d models",
                     len(self.details), len(self.model_names))
        return self.details

    def build_chart_data_for_metric(self, period: str = "day",
                                    metric: str = "requests") -> ChartData:
        """Datasets for the active chart lines, in slot order."""
        series = build_series_by_model(self.details, period, metric, self.clock())
        datasets = []
        for index, model in self.selection.active_selections():
            values = series_for_model(series, model)
            border, background = CHART_LINE_STYLES[index % len(CHART_LINE_STYLES)]
            datasets.append(ChartDataset(
                label=ALL_MODELS_LABEL if model == ALL_MODELS else model,
                data=values,
                border_color=border,
                background_color=background,
                point_radius=4 if any(v > 0 for v in values) else 3,
            ))
        return ChartData(labels=list(series.labels), datasets=datasets)

    def calculate_cost_data(self, period: str = "day") -> CostData:
        return calculate_cost_data(self.price_store.get_prices(), self.usage, period, self.clock())

    def calculate_recent_per_minute_rates(self, window_minutes: int = 30) -> RateStats:
        return calculate_recent_per_minute_rates(window_minutes, self.usage, self.clock())

    def build_recent_window_series(self, window_minutes: int = 30) -> RecentWindowSeries:
        return build_recent_window_series(window_minutes, self.usage,
                                          self.price_store.get_prices(), self.clock())

    def cost_by_endpoint(self) -> dict[str, float]:
        return calculate_cost_by_endpoint(self.price_store.get_prices(), self.usage)

    def overview(self) -> UsageOverview:
        return build_usage_overview(self.usage)

    def endpoint_summaries(self) -> list[EndpointSummary]:
        return summarize_endpoints(self.usage)

    def key_stats(self) -> KeyStats:
        return compute_key_stats(self.usage)
