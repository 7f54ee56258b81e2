"""Series aggregation and live rate calculation over usage details."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from .buckets import (
    clamp_window_minutes,
    collect_day_labels,
    create_hourly_bucket_meta,
    create_minute_bucket_meta,
    format_day_label,
    local_now,
)
from .models import (
    ALL_MODELS,
    BucketMeta,
    ModelPrice,
    RateStats,
    RecentWindowSeries,
    SeriesByModel,
    UsageDetail,
)
from .normalizer import collect_usage_details, extract_total_tokens, parse_timestamp
from .pricing import calculate_detail_cost

METRICS = ("requests", "tokens")
PERIODS = ("hour", "day")

DEFAULT_RATE_WINDOW_MINUTES = 30


def _check_metric(metric: str) -> None:
    if metric not in METRICS:
        raise ValueError(f"Unknown metric {metric!r}; expected one of {METRICS}")


def _increment(detail: UsageDetail, metric: str) -> float:
    if metric == "tokens":
        return extract_total_tokens(detail)
    return 1


def bucket_series_by_model(details: list[UsageDetail], meta: BucketMeta,
                           metric: str = "requests") -> SeriesByModel:
    """Route each detail into its fixed-width bucket, one series per model.

    Details with unparsable or out-of-range timestamps are dropped.
    """
    _check_metric(metric)
    result = SeriesByModel(labels=list(meta.labels))

    for detail in details:
        ts = parse_timestamp(detail.timestamp)
        if ts is None:
            continue
        index = meta.index_for(ts)
        if index is None:
            continue
        values = result.data_by_model.setdefault(detail.model_name, [0] * meta.count)
        values[index] += _increment(detail, metric)
        result.has_data = True

    return result


def build_hourly_series_by_model(details: list[UsageDetail], metric: str = "requests",
                                 now: datetime | None = None) -> SeriesByModel:
    """Per-model series over the last 24 hours, zero-filled."""
    return bucket_series_by_model(details, create_hourly_bucket_meta(now), metric)


def build_minute_series_by_model(details: list[UsageDetail], window_minutes: int,
                                 metric: str = "requests",
                                 now: datetime | None = None) -> SeriesByModel:
    return bucket_series_by_model(details, create_minute_bucket_meta(window_minutes, now), metric)


def build_daily_series_by_model(details: list[UsageDetail],
                                metric: str = "requests") -> SeriesByModel:
    """Per-model series with one entry per calendar day that saw traffic."""
    _check_metric(metric)
    labels = collect_day_labels(details)
    position = {label: i for i, label in enumerate(labels)}
    result = SeriesByModel(labels=labels)

    for detail in details:
        ts = parse_timestamp(detail.timestamp)
        if ts is None:
            continue
        values = result.data_by_model.setdefault(detail.model_name, [0] * len(labels))
        values[position[format_day_label(ts)]] += _increment(detail, metric)
        result.has_data = True

    return result


def build_series_by_model(details: list[UsageDetail], period: str = "day",
                          metric: str = "requests",
                          now: datetime | None = None) -> SeriesByModel:
    if period == "hour":
        return build_hourly_series_by_model(details, metric, now)
    if period == "day":
        return build_daily_series_by_model(details, metric)
    raise ValueError(f"Unknown period {period!r}; expected one of {PERIODS}")


def sum_series(series_list: list[list[float]], length: int) -> list[float]:
    """Elementwise sum of equally long series."""
    totals = [0] * length
    for values in series_list:
        for i, v in enumerate(values[:length]):
            totals[i] += v
    return totals


def series_for_model(series: SeriesByModel, model: str) -> list[float]:
    """The series a chart line shows: one model, or every model summed."""
    length = len(series.labels)
    if model == ALL_MODELS:
        return sum_series(list(series.data_by_model.values()), length)
    return list(series.data_by_model.get(model, [0] * length))


def calculate_recent_per_minute_rates(window_minutes: int = DEFAULT_RATE_WINDOW_MINUTES,
                                      usage=None,
                                      now: datetime | None = None) -> RateStats:
    """Requests and tokens per minute over the trailing window.

    Counts are divided by the nominal window length, so a session with less
    history than the window under-reports.
    """
    if isinstance(window_minutes, bool) or not isinstance(window_minutes, (int, float)) \
            or not math.isfinite(window_minutes) or window_minutes <= 0:
        window_minutes = DEFAULT_RATE_WINDOW_MINUTES

    try:
        cutoff = local_now(now) - timedelta(minutes=window_minutes)
    except OverflowError:
        # Window reaches past datetime.min: every timestamped detail counts
        cutoff = None
    request_count = 0
    token_count = 0

    for detail in collect_usage_details(usage):
        ts = parse_timestamp(detail.timestamp)
        if ts is None or (cutoff is not None and ts < cutoff):
            continue
        request_count += 1
        token_count += extract_total_tokens(detail)

    return RateStats(
        rpm=request_count / window_minutes,
        tpm=token_count / window_minutes,
        window_minutes=window_minutes,
        request_count=request_count,
        token_count=token_count,
    )


def build_recent_window_series(window_minutes: int, usage,
                               prices: dict[str, ModelPrice] | None = None,
                               now: datetime | None = None) -> RecentWindowSeries:
    """Per-minute requests, tokens and cost over the trailing window (sparklines)."""
    prices = prices or {}
    meta = create_minute_bucket_meta(clamp_window_minutes(window_minutes), now)
    requests = [0] * meta.count
    tokens = [0] * meta.count
    cost = [0.0] * meta.count

    for detail in collect_usage_details(usage):
        ts = parse_timestamp(detail.timestamp)
        if ts is None:
            continue
        index = meta.index_for(ts)
        if index is None:
            continue
        requests[index] += 1
        tokens[index] += extract_total_tokens(detail)
        price = prices.get(detail.model_name)
        if price is not None:
            cost[index] += calculate_detail_cost(detail, price)

    return RecentWindowSeries(
        labels=list(meta.labels),
        requests=requests,
        tokens=tokens,
        cost=cost,
        has_prices=bool(prices),
    )
