"""Cost accounting: join usage details with the per-model price table."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from .buckets import collect_day_labels, create_hourly_bucket_meta, format_day_label
from .models import ChartDataset, CostData, ModelPrice, UsageDetail
from .normalizer import collect_usage_details, parse_timestamp

# Prices are quoted per 1M tokens
TOKENS_PER_PRICE_UNIT = 1_000_000

COST_DECIMALS = 4
COST_LINE_COLOR = "#f59e0b"
COST_FILL_COLOR = "rgba(245, 158, 11, 0.15)"


def calculate_detail_cost(detail: UsageDetail, price: ModelPrice) -> float:
    """Cost of one request: prompt price on input tokens, completion on output."""
    prompt_cost = detail.tokens.input / TOKENS_PER_PRICE_UNIT * price.prompt
    completion_cost = detail.tokens.output / TOKENS_PER_PRICE_UNIT * price.completion
    return prompt_cost + completion_cost


def _priced(details: list[UsageDetail], prices: dict[str, ModelPrice]):
    for detail in details:
        price = prices.get(detail.model_name)
        if price is not None:
            yield detail, calculate_detail_cost(detail, price)


def calculate_total_cost(prices: dict[str, ModelPrice],
                         details: list[UsageDetail]) -> float:
    """Cost over every priced detail, timestamped or not."""
    return sum(cost for _, cost in _priced(details, prices))


def calculate_cost_data(prices: dict[str, ModelPrice] | None, usage,
                        period: str = "day",
                        now: datetime | None = None) -> CostData:
    """Headline total plus a per-bucket cost series.

    Details whose model has no price entry are left out entirely. The
    ``has_prices`` flag tells "free" apart from "nothing priced".
    """
    prices = prices or {}
    details = collect_usage_details(usage)
    priced = list(_priced(details, prices))
    total_cost = sum(cost for _, cost in priced)

    if period == "hour":
        meta = create_hourly_bucket_meta(now)
        labels = list(meta.labels)
        series = [0.0] * meta.count
        for detail, cost in priced:
            ts = parse_timestamp(detail.timestamp)
            index = meta.index_for(ts) if ts is not None else None
            if index is not None:
                series[index] += cost
    elif period == "day":
        labels = collect_day_labels([detail for detail, _ in priced])
        position = {label: i for i, label in enumerate(labels)}
        series = [0.0] * len(labels)
        for detail, cost in priced:
            ts = parse_timestamp(detail.timestamp)
            if ts is not None:
                series[position[format_day_label(ts)]] += cost
    else:
        raise ValueError(f"Unknown period {period!r}; expected 'hour' or 'day'")

    dataset = ChartDataset(
        label="Cost",
        data=series,
        border_color=COST_LINE_COLOR,
        background_color=COST_FILL_COLOR,
        fill=True,
        point_radius=4 if any(v > 0 for v in series) else 3,
    )
    return CostData(total_cost=total_cost, labels=labels, datasets=[dataset],
                    has_prices=bool(prices))


def calculate_cost_by_endpoint(prices: dict[str, ModelPrice], usage) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for detail, cost in _priced(collect_usage_details(usage), prices or {}):
        totals[detail.endpoint] += cost
    return dict(totals)


def calculate_cost_by_model(prices: dict[str, ModelPrice], usage) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for detail, cost in _priced(collect_usage_details(usage), prices or {}):
        totals[detail.model_name] += cost
    return dict(totals)


def format_cost(value: float, has_prices: bool = True,
                decimals: int = COST_DECIMALS) -> str:
    """Render a cost for display; "--" when nothing is priced."""
    if not has_prices:
        return "--"
    return f"${value:.{decimals}f}"


def format_compact_number(n) -> str:
    """Format counts with K/M/B suffixes."""
    if isinstance(n, bool) or not isinstance(n, (int, float)):
        return "0"
    magnitude = abs(n)
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if magnitude >= threshold:
            return f"{n / threshold:.1f}{suffix}"
    if isinstance(n, float) and not n.is_integer():
        return f"{n:.1f}"
    return str(int(n))
