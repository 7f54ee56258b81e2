"""Persistent per-model price table with legacy unit migration."""

from __future__ import annotations

import json
import logging
import math

from .models import ModelPrice
from .storage import StorageError

logger = logging.getLogger(__name__)

PRICES_KEY = "model-prices"
# Older releases stored prices per 1,000 tokens under this key
LEGACY_PRICES_KEY = "model-prices-per-1k"
LEGACY_SCALE = 1000


def _valid_amount(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def parse_model_price(entry) -> ModelPrice | None:
    """Validate one stored entry. Missing fields count as 0."""
    if not isinstance(entry, dict):
        return None
    prompt = entry.get("prompt", 0)
    completion = entry.get("completion", 0)
    if not (_valid_amount(prompt) and _valid_amount(completion)):
        return None
    return ModelPrice(prompt=float(prompt), completion=float(completion))


def parse_price_table(raw: str | None) -> dict[str, ModelPrice]:
    """Decode a JSON price table, dropping malformed entries."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring unreadable price table")
        return {}
    if not isinstance(data, dict):
        return {}

    prices = {}
    for model, entry in data.items():
        price = parse_model_price(entry)
        if price is None:
            logger.warning("Dropping invalid price entry for %r: %r", model, entry)
            continue
        prices[model] = price
    return prices


def dump_price_table(prices: dict[str, ModelPrice]) -> str:
    return json.dumps({model: price.to_dict() for model, price in prices.items()})


class PriceStore:
    """Model prices per 1M tokens, kept in client-local storage.

    Without a usable storage backend every operation still works against an
    in-memory copy; nothing here raises on storage failure.
    """

    def __init__(self, storage=None):
        self.storage = storage
        self._prices: dict[str, ModelPrice] = {}
        self._migrated = False

    @property
    def persistent(self) -> bool:
        return self.storage is not None

    def _read(self, key: str) -> str | None:
        if self.storage is None:
            return None
        try:
            return self.storage.get_item(key)
        except StorageError as exc:
            logger.warning("Could not read %s from storage: %s", key, exc)
            self.storage = None
            return None

    def _write(self, key: str, value: str) -> None:
        if self.storage is None:
            return
        try:
            self.storage.set_item(key, value)
        except StorageError as exc:
            logger.warning("Could not save %s, keeping prices in memory: %s", key, exc)
            self.storage = None

    def _remove(self, key: str) -> None:
        if self.storage is None:
            return
        try:
            self.storage.remove_item(key)
        except StorageError as exc:
            logger.warning("Could not remove %s from storage: %s", key, exc)
            self.storage = None

    def _migrate_legacy(self) -> None:
        legacy_raw = self._read(LEGACY_PRICES_KEY)
        if legacy_raw is None or self.storage is None:
            return
        if self._read(PRICES_KEY) is None:
            legacy = parse_price_table(legacy_raw)
            migrated = {
                model: ModelPrice(prompt=price.prompt * LEGACY_SCALE,
                                  completion=price.completion * LEGACY_SCALE)
                for model, price in legacy.items()
            }
            self._write(PRICES_KEY, dump_price_table(migrated))
            logger.debug("Migrated %d legacy per-1K prices to per-1M", len(migrated))
        self._remove(LEGACY_PRICES_KEY)

    def load(self) -> dict[str, ModelPrice]:
        """Read and validate the stored table, migrating legacy data once."""
        if self.storage is not None and not self._migrated:
            self._migrate_legacy()
            self._migrated = True
        if self.storage is not None:
            raw = self._read(PRICES_KEY)
            if self.storage is not None:
                self._prices = parse_price_table(raw)
        return dict(self._prices)

    def get_prices(self) -> dict[str, ModelPrice]:
        return self.load()

    def get(self, model: str) -> ModelPrice | None:
        return self.load().get(model)

    def _save(self) -> None:
        self._write(PRICES_KEY, dump_price_table(self._prices))

    def set_price(self, model: str, prompt: float, completion: float) -> ModelPrice:
        """Add or replace a model's price. Invalid input raises ValueError."""
        model = (model or "").strip()
        if not model:
            raise ValueError("Model name is required")
        if not (_valid_amount(prompt) and _valid_amount(completion)):
            raise ValueError("Prices must be finite, non-negative numbers")
        self.load()
        price = ModelPrice(prompt=float(prompt), completion=float(completion))
        self._prices[model] = price
        self._save()
        return price

    def remove(self, model: str) -> bool:
        self.load()
        if model not in self._prices:
            return False
        del self._prices[model]
        self._save()
        return True

    def replace(self, prices: dict[str, ModelPrice]) -> None:
        """Swap in a whole table. Raises ValueError if any entry is invalid."""
        for model, price in prices.items():
            if not (model and _valid_amount(price.prompt) and _valid_amount(price.completion)):
                raise ValueError(f"Invalid price for {model!r}: {price!r}")
        self._prices = dict(prices)
        self._save()

    def clear(self) -> None:
        self._prices = {}
        self._remove(PRICES_KEY)
