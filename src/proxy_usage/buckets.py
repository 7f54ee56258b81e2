"""Time bucket construction for hourly, daily and rolling-minute views."""

from __future__ import annotations

from datetime import datetime, timedelta

from .models import BucketMeta, UsageDetail
from .normalizer import parse_timestamp

HOUR = timedelta(hours=1)
MINUTE = timedelta(minutes=1)

HOURLY_BUCKET_COUNT = 24
MAX_WINDOW_MINUTES = 720


def local_now(now: datetime | None = None) -> datetime:
    """Aware local "now". Naive datetimes are taken as local time."""
    if now is None:
        return datetime.now().astimezone()
    return now.astimezone()


def format_hour_label(dt: datetime) -> str:
    return dt.astimezone().strftime("%m-%d %H:00")


def format_minute_label(dt: datetime) -> str:
    return dt.astimezone().strftime("%H:%M")


def format_day_label(dt: datetime) -> str:
    return dt.astimezone().strftime("%Y-%m-%d")


def _build_meta(latest_start: datetime, count: int, size: timedelta,
                formatter) -> BucketMeta:
    earliest = latest_start - size * (count - 1)
    starts = [earliest + size * i for i in range(count)]
    return BucketMeta(
        labels=[formatter(s) for s in starts],
        starts=starts,
        earliest=earliest,
        size=size,
    )


def create_hourly_bucket_meta(now: datetime | None = None) -> BucketMeta:
    """24 one-hour buckets; the last one holds the current hour."""
    current_hour = local_now(now).replace(minute=0, second=0, microsecond=0)
    return _build_meta(current_hour, HOURLY_BUCKET_COUNT, HOUR, format_hour_label)


def clamp_window_minutes(window_minutes) -> int:
    try:
        minutes = int(window_minutes)
    except (TypeError, ValueError, OverflowError):
        minutes = 1
    return min(max(minutes, 1), MAX_WINDOW_MINUTES)


def create_minute_bucket_meta(window_minutes: int,
                              now: datetime | None = None) -> BucketMeta:
    """One-minute buckets ending with the current minute, capped at 720."""
    count = clamp_window_minutes(window_minutes)
    current_minute = local_now(now).replace(second=0, microsecond=0)
    return _build_meta(current_minute, count, MINUTE, format_minute_label)


def collect_day_labels(details: list[UsageDetail]) -> list[str]:
    """Sorted local calendar days (YYYY-MM-DD) that have at least one detail.

    Days without activity are left out rather than zero-filled.
    """
    labels = set()
    for detail in details:
        ts = parse_timestamp(detail.timestamp)
        if ts is not None:
            labels.add(format_day_label(ts))
    return sorted(labels)
