"""Tests for data models."""

from datetime import datetime, timedelta, timezone

from proxy_usage.models import (
    BucketMeta,
    EndpointSummary,
    KeyStatBucket,
    ModelPrice,
    TokenBreakdown,
)


class TestTokenBreakdown:
    def test_from_dict(self):
        t = TokenBreakdown.from_dict({"input_tokens": 10, "output_tokens": 2.5})
        assert t.input == 10
        assert t.output == 2.5
        assert t.total_tokens is None

    def test_rejects_non_numbers(self):
        t = TokenBreakdown.from_dict({"input_tokens": "10", "output_tokens": False,
                                      "cached_tokens": float("inf")})
        assert t.input_tokens is None
        assert t.output_tokens is None
        assert t.cached_tokens is None

    def test_not_a_mapping(self):
        assert TokenBreakdown.from_dict(None) == TokenBreakdown()
        assert TokenBreakdown.from_dict([1, 2]).input == 0


class TestBucketMeta:
    def _meta(self):
        start = datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc)
        size = timedelta(minutes=1)
        return BucketMeta(labels=["a", "b", "c"], starts=[start + size * i for i in range(3)],
                          earliest=start, size=size)

    def test_end(self):
        meta = self._meta()
        assert meta.count == 3
        assert meta.end == datetime(2026, 1, 1, 0, 3, tzinfo=timezone.utc)

    def test_index_for(self):
        meta = self._meta()
        assert meta.index_for(datetime(2026, 1, 1, 0, 1, 59, tzinfo=timezone.utc)) == 1
        assert meta.index_for(datetime(2026, 1, 1, 0, 3, tzinfo=timezone.utc)) is None
        assert meta.index_for(datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc)) is None


class TestSummaries:
    def test_success_rate(self):
        assert EndpointSummary("/x", total_requests=4, success_count=3).success_rate == 75
        assert EndpointSummary("/x", total_requests=0, success_count=0).success_rate is None
        assert EndpointSummary("/x", total_requests=4).success_rate is None

    def test_key_stat_total(self):
        assert KeyStatBucket(success=2, failure=3).total == 5

    def test_model_price_dict(self):
        assert ModelPrice(2, 6).to_dict() == {"prompt": 2, "completion": 6}
