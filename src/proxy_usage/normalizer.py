"""Flatten the management API usage payload into typed usage details."""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Callable

from .models import (
    TOKEN_FIELDS,
    UNKNOWN_MODEL,
    EndpointSummary,
    KeyStatBucket,
    KeyStats,
    ModelSummary,
    TokenBreakdown,
    UsageDetail,
    UsageOverview,
)

# Go-style timestamps carry nanoseconds; datetime only parses microseconds
RE_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")

RE_QUERY_SECRET = re.compile(
    r"([?&])(api[-_]?key|key|token|access_token|authorization)=([^&#\s]+)", re.IGNORECASE
)
RE_HEADER_SECRET = re.compile(
    r"(api[-_]?key|key|token|access[-_]?token|authorization)\s*([:=])\s*([A-Za-z0-9._-]+)",
    re.IGNORECASE,
)
RE_KEY_LIKE = re.compile(
    r"(sk-[A-Za-z0-9]{6,}|AI[a-zA-Z0-9_-]{6,}|AIza[0-9A-Za-z_-]{8,}"
    r"|hf_[A-Za-z0-9]{6,}|pk_[A-Za-z0-9]{6,}|rk_[A-Za-z0-9]{6,})"
)
RE_KEY_PREFIX = re.compile(r"^(sk-|AI|AIza|hf_|pk_|rk_)", re.IGNORECASE)


def unwrap_usage(response) -> dict:
    """Return the usage object from a `GET /usage` response.

    The endpoint answers with ``{"usage": {...}}``; a bare usage object is
    accepted as well. Anything that is not a mapping yields ``{}``.
    """
    if not isinstance(response, dict):
        return {}
    inner = response.get("usage")
    if isinstance(inner, dict):
        return inner
    return response


def _mapping(value) -> dict:
    return value if isinstance(value, dict) else {}


def _iter_model_entries(usage):
    """Yield (endpoint, model_name, model_entry) for every model in the payload."""
    apis = _mapping(_mapping(usage).get("apis"))
    for endpoint, api_entry in apis.items():
        models = _mapping(_mapping(api_entry).get("models"))
        for model_name, model_entry in models.items():
            yield str(endpoint), model_name, _mapping(model_entry)


def normalize_auth_index(value) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def collect_usage_details(usage) -> list[UsageDetail]:
    """Flatten ``apis -> models -> details`` into a list of UsageDetail.

    Details without a usable timestamp are kept; time-bucketed views filter
    them out on their own.
    """
    details: list[UsageDetail] = []
    for endpoint, model_name, model_entry in _iter_model_entries(usage):
        raw_details = model_entry.get("details")
        if not isinstance(raw_details, list):
            continue
        for raw in raw_details:
            if not isinstance(raw, dict):
                continue
            timestamp = raw.get("timestamp")
            source = raw.get("source")
            details.append(UsageDetail(
                timestamp=timestamp if isinstance(timestamp, str) else "",
                model_name=model_name or UNKNOWN_MODEL,
                tokens=TokenBreakdown.from_dict(raw.get("tokens")),
                source="" if source is None else str(source),
                auth_index=normalize_auth_index(raw.get("auth_index")),
                failed=raw.get("failed") is True,
                endpoint=endpoint,
            ))
    return details


def get_model_names(usage) -> list[str]:
    """Sorted distinct model names present in the payload."""
    names = {name for _, name, _ in _iter_model_entries(usage) if name}
    return sorted(names)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware local datetime.

    Naive values are taken as local time. Returns None when unparsable.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    text = RE_LONG_FRACTION.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    try:
        return parsed.astimezone()
    except (OverflowError, OSError, ValueError):
        return None


def extract_total_tokens(detail: UsageDetail) -> float:
    """Explicit total_tokens if reported, else the sum of the breakdown."""
    tokens = detail.tokens
    if tokens.total_tokens is not None:
        return tokens.total_tokens
    return sum(getattr(tokens, name) or 0 for name in TOKEN_FIELDS)


def mask_api_key(key: str, visible_chars: int = 4) -> str:
    """Keep the first and last few characters of a key and star out the rest."""
    if not key or len(key) <= visible_chars * 2:
        return key
    masked_length = min(len(key) - visible_chars * 2, 20)
    return f"{key[:visible_chars]}{'*' * masked_length}{key[-visible_chars:]}"


def _looks_like_key(text: str) -> bool:
    if RE_KEY_PREFIX.match(text):
        return True
    if "/" not in text and "\\" not in text:
        if any(ch.isdigit() for ch in text) or len(text) >= 10:
            return True
    return len(text) >= 24


def mask_usage_sensitive_value(value,
                               masker: Callable[[str], str] = mask_api_key) -> str:
    """Mask anything credential-like inside a usage ``source`` string."""
    if value is None:
        return ""
    raw = value if isinstance(value, str) else str(value)
    if not raw:
        return ""

    masked = RE_QUERY_SECRET.sub(lambda m: f"{m.group(1)}{m.group(2)}={masker(m.group(3))}", raw)
    masked = RE_HEADER_SECRET.sub(lambda m: f"{m.group(1)}{m.group(2)}{masker(m.group(3))}", masked)
    masked = RE_KEY_LIKE.sub(lambda m: masker(m.group(0)), masked)

    if masked == raw:
        trimmed = raw.strip()
        if trimmed and not any(ch.isspace() for ch in trimmed) and _looks_like_key(trimmed):
            return masker(trimmed)
    return masked


def compute_key_stats(usage, masker: Callable[[str], str] = mask_api_key) -> KeyStats:
    """Success/failure counts per masked source and per auth index."""
    stats = KeyStats()
    for detail in collect_usage_details(usage):
        source = mask_usage_sensitive_value(detail.source, masker)
        targets = []
        if source:
            targets.append(stats.by_source.setdefault(source, KeyStatBucket()))
        if detail.auth_index:
            targets.append(stats.by_auth_index.setdefault(detail.auth_index, KeyStatBucket()))
        for bucket in targets:
            if detail.failed:
                bucket.failure += 1
            else:
                bucket.success += 1
    return stats


def _int_or(value, default):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return int(value)


def _num_or(value, default):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return value


def summarize_endpoints(usage) -> list[EndpointSummary]:
    """Per-endpoint totals from the aggregate fields of the payload."""
    apis = _mapping(_mapping(usage).get("apis"))
    summaries = []
    for endpoint, api_entry in apis.items():
        api_entry = _mapping(api_entry)
        summary = EndpointSummary(
            endpoint=str(endpoint),
            total_requests=_int_or(api_entry.get("total_requests"), 0),
            total_tokens=_num_or(api_entry.get("total_tokens"), 0),
            success_count=_int_or(api_entry.get("success_count"), None),
        )
        for model_name, model_entry in _mapping(api_entry.get("models")).items():
            model_entry = _mapping(model_entry)
            summary.models[model_name] = ModelSummary(
                total_requests=_int_or(model_entry.get("total_requests"), 0),
                total_tokens=_num_or(model_entry.get("total_tokens"), 0),
            )
        summaries.append(summary)
    return summaries


def build_usage_overview(usage) -> UsageOverview:
    """Headline request/token totals.

    Uses the payload's aggregate counters where present and falls back to
    counting the details.
    """
    usage = _mapping(usage)
    details = collect_usage_details(usage)
    failures = sum(1 for d in details if d.failed)

    total_requests = _int_or(usage.get("total_requests"), len(details))
    failure_count = _int_or(usage.get("failure_count"), failures)
    success_count = _int_or(usage.get("success_count"), total_requests - failure_count)
    total_tokens = _num_or(usage.get("total_tokens"),
                           sum(extract_total_tokens(d) for d in details))

    return UsageOverview(
        total_requests=total_requests,
        success_count=max(success_count, 0),
        failure_count=failure_count,
        total_tokens=total_tokens,
        models_used=len({d.model_name for d in details}),
    )
