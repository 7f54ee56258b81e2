"""Data models for proxy usage analytics."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

UNKNOWN_MODEL = "Unknown"

# Chart line sentinels: the summed series and an unassigned slot
ALL_MODELS = "all"
NO_MODEL = "none"

TOKEN_FIELDS = ("input_tokens", "output_tokens", "reasoning_tokens", "cached_tokens")


def _number_or_none(value) -> float | int | None:
    # bool is an int subclass; true/false are not token counts
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class TokenBreakdown:
    """Token counts reported for a single request. Any field may be missing."""

    input_tokens: Optional[float] = None
    output_tokens: Optional[float] = None
    reasoning_tokens: Optional[float] = None
    cached_tokens: Optional[float] = None
    total_tokens: Optional[float] = None

    @classmethod
    def from_dict(cls, raw) -> TokenBreakdown:
        if not isinstance(raw, dict):
            return cls()
        return cls(
            input_tokens=_number_or_none(raw.get("input_tokens")),
            output_tokens=_number_or_none(raw.get("output_tokens")),
            reasoning_tokens=_number_or_none(raw.get("reasoning_tokens")),
            cached_tokens=_number_or_none(raw.get("cached_tokens")),
            total_tokens=_number_or_none(raw.get("total_tokens")),
        )

    @property
    def input(self) -> float:
        return self.input_tokens or 0

    @property
    def output(self) -> float:
        return self.output_tokens or 0


@dataclass(frozen=True)
class UsageDetail:
    """One proxied request, tagged with the model and endpoint it belongs to."""

    timestamp: str
    model_name: str = UNKNOWN_MODEL
    tokens: TokenBreakdown = field(default_factory=TokenBreakdown)
    source: str = ""
    auth_index: Optional[str] = None
    failed: bool = False
    endpoint: str = ""


@dataclass
class BucketMeta:
    """A contiguous run of equally sized time buckets."""

    labels: list[str]
    starts: list[datetime]
    earliest: datetime
    size: timedelta

    @property
    def count(self) -> int:
        return len(self.labels)

    @property
    def end(self) -> datetime:
        return self.earliest + self.size * self.count

    def index_for(self, ts: datetime) -> int | None:
        """Bucket index for an aware timestamp, or None if it falls outside."""
        if ts < self.earliest or ts >= self.end:
            return None
        index = int((ts - self.earliest) / self.size)
        return min(max(index, 0), self.count - 1)


@dataclass
class SeriesByModel:
    """Per-model series aligned with a label sequence."""

    labels: list[str]
    data_by_model: dict[str, list[float]] = field(default_factory=dict)
    has_data: bool = False


@dataclass(frozen=True)
class ModelPrice:
    """Prompt and completion price per 1,000,000 tokens."""

    prompt: float = 0.0
    completion: float = 0.0

    def to_dict(self) -> dict:
        return {"prompt": self.prompt, "completion": self.completion}


@dataclass
class RateStats:
    rpm: float
    tpm: float
    window_minutes: int
    request_count: int
    token_count: float


@dataclass
class ChartDataset:
    label: str
    data: list[float]
    border_color: str = ""
    background_color: str = ""
    fill: bool = False
    tension: float = 0.35
    point_radius: int = 3


@dataclass
class ChartData:
    labels: list[str]
    datasets: list[ChartDataset] = field(default_factory=list)


@dataclass
class CostData:
    total_cost: float
    labels: list[str]
    datasets: list[ChartDataset]
    has_prices: bool = False


@dataclass
class RecentWindowSeries:
    labels: list[str]
    requests: list[float]
    tokens: list[float]
    cost: list[float]
    has_prices: bool = False


@dataclass
class ModelSummary:
    total_requests: int = 0
    total_tokens: float = 0


@dataclass
class EndpointSummary:
    """Aggregate figures reported for one API endpoint."""

    endpoint: str
    total_requests: int = 0
    total_tokens: float = 0
    success_count: Optional[int] = None
    models: dict[str, ModelSummary] = field(default_factory=dict)

    @property
    def success_rate(self) -> float | None:
        if self.success_count is None or self.total_requests <= 0:
            return None
        return self.success_count / self.total_requests * 100


@dataclass
class UsageOverview:
    total_requests: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_tokens: float = 0
    models_used: int = 0


@dataclass
class KeyStatBucket:
    success: int = 0
    failure: int = 0

    @property
    def total(self) -> int:
        return self.success + self.failure


@dataclass
class KeyStats:
    by_source: dict[str, KeyStatBucket] = field(default_factory=dict)
    by_auth_index: dict[str, KeyStatBucket] = field(default_factory=dict)
