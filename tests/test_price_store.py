"""Tests for the persistent price table."""

import json

import pytest

from proxy_usage.models import ModelPrice
from proxy_usage.price_store import (
    LEGACY_PRICES_KEY,
    PRICES_KEY,
    PriceStore,
    parse_price_table,
)
from proxy_usage.storage import MemoryStorage, SQLiteStorage, StorageError


class BrokenStorage:
    """Storage whose every operation fails."""

    def get_item(self, key):
        raise StorageError("disk gone")

    def set_item(self, key, value):
        raise StorageError("disk gone")

    def remove_item(self, key):
        raise StorageError("disk gone")


class ReadOnlyStorage(MemoryStorage):
    def set_item(self, key, value):
        raise StorageError("read only")


class TestLegacyMigration:
    def test_rescales_and_removes_legacy_key(self):
        storage = MemoryStorage({
            LEGACY_PRICES_KEY: json.dumps({"gpt-5": {"prompt": 0.002, "completion": 0.006}}),
        })
        prices = PriceStore(storage).load()
        assert prices["gpt-5"].prompt == pytest.approx(2)
        assert prices["gpt-5"].completion == pytest.approx(6)
        assert storage.get_item(LEGACY_PRICES_KEY) is None
        assert json.loads(storage.get_item(PRICES_KEY))["gpt-5"]["prompt"] == pytest.approx(2)

    def test_current_key_wins(self):
        storage = MemoryStorage({
            PRICES_KEY: json.dumps({"gpt-5": {"prompt": 3, "completion": 9}}),
            LEGACY_PRICES_KEY: json.dumps({"gpt-5": {"prompt": 0.002, "completion": 0.006}}),
        })
        prices = PriceStore(storage).load()
        assert prices["gpt-5"] == ModelPrice(3, 9)
        assert storage.get_item(LEGACY_PRICES_KEY) is None

    def test_migrates_only_once(self):
        storage = MemoryStorage({
            LEGACY_PRICES_KEY: json.dumps({"m": {"prompt": 0.001, "completion": 0.001}}),
        })
        store = PriceStore(storage)
        store.load()
        store.load()
        assert store.get("m").prompt == pytest.approx(1)

    def test_sqlite_backed_migration(self, tmp_path):
        storage = SQLiteStorage(tmp_path / "storage.db")
        storage.set_item(LEGACY_PRICES_KEY, json.dumps({"m": {"prompt": 0.5, "completion": 1}}))
        PriceStore(storage).load()
        assert LEGACY_PRICES_KEY not in storage.keys()
        storage.close()

        reopened = SQLiteStorage(tmp_path / "storage.db")
        assert PriceStore(reopened).get("m") == ModelPrice(500, 1000)
        reopened.close()


class TestValidation:
    def test_drops_malformed_entries(self):
        raw = json.dumps({
            "ok": {"prompt": 1, "completion": 2},
            "negative": {"prompt": -1, "completion": 2},
            "text": {"prompt": "1", "completion": 2},
            "not-a-dict": 5,
            "partial": {"prompt": 4},
        })
        prices = parse_price_table(raw)
        assert set(prices) == {"ok", "partial"}
        assert prices["partial"] == ModelPrice(4, 0)

    def test_non_finite_dropped(self):
        assert parse_price_table('{"m": {"prompt": Infinity, "completion": 1}}') == {}
        assert parse_price_table('{"m": {"prompt": NaN, "completion": 1}}') == {}

    def test_unreadable_json(self):
        assert parse_price_table("{not json") == {}
        assert parse_price_table('["list"]') == {}
        assert parse_price_table(None) == {}

    def test_zero_prices_are_valid(self):
        assert parse_price_table('{"free": {"prompt": 0, "completion": 0}}') == {
            "free": ModelPrice(0, 0)
        }


class TestEditing:
    def test_set_and_persist(self):
        storage = MemoryStorage()
        PriceStore(storage).set_price("gpt-5", 2, 6)
        assert PriceStore(storage).get("gpt-5") == ModelPrice(2, 6)

    def test_set_rejects_invalid(self):
        store = PriceStore(MemoryStorage())
        with pytest.raises(ValueError):
            store.set_price("gpt-5", -1, 6)
        with pytest.raises(ValueError):
            store.set_price("", 1, 1)
        with pytest.raises(ValueError):
            store.set_price("gpt-5", float("nan"), 1)

    def test_remove(self):
        store = PriceStore(MemoryStorage())
        store.set_price("gpt-5", 2, 6)
        assert store.remove("gpt-5") is True
        assert store.remove("gpt-5") is False
        assert store.get_prices() == {}

    def test_clear(self):
        storage = MemoryStorage()
        store = PriceStore(storage)
        store.set_price("a", 1, 1)
        store.clear()
        assert store.get_prices() == {}
        assert storage.get_item(PRICES_KEY) is None

    def test_replace(self):
        store = PriceStore(MemoryStorage())
        store.replace({"x": ModelPrice(1, 2)})
        assert store.get_prices() == {"x": ModelPrice(1, 2)}

    def test_replace_rejects_invalid(self):
        storage = MemoryStorage()
        store = PriceStore(storage)
        store.set_price("gpt-5", 2, 6)
        for bad in (ModelPrice(-1, 2), ModelPrice(1, float("nan")), ModelPrice(float("inf"), 0)):
            with pytest.raises(ValueError):
                store.replace({"x": bad})
        assert store.get_prices() == {"gpt-5": ModelPrice(2, 6)}
        assert "x" not in json.loads(storage.get_item(PRICES_KEY))


class TestStorageUnavailable:
    def test_no_storage_keeps_prices_in_memory(self):
        store = PriceStore(None)
        assert store.persistent is False
        store.set_price("gpt-5", 2, 6)
        assert store.get("gpt-5") == ModelPrice(2, 6)

    def test_broken_storage_never_raises(self):
        store = PriceStore(BrokenStorage())
        assert store.load() == {}
        store.set_price("gpt-5", 2, 6)
        assert store.get("gpt-5") == ModelPrice(2, 6)
        assert store.persistent is False
        store.clear()
        assert store.get_prices() == {}

    def test_failed_write_falls_back_to_memory(self):
        store = PriceStore(ReadOnlyStorage())
        store.set_price("gpt-5", 2, 6)
        assert store.persistent is False
        assert store.get("gpt-5") == ModelPrice(2, 6)
