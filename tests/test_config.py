"""Tests for config module."""

from pathlib import Path
from unittest.mock import patch

from proxy_usage.config import (
    DEFAULT_BASE_URL,
    MANAGEMENT_KEY_ENV,
    STORAGE_FILE,
    build_default_config,
    config_exists,
    get_base_url,
    get_chart_lines,
    get_cost_decimals,
    get_management_key,
    get_max_chart_lines,
    get_rate_window_minutes,
    get_storage_path,
    load_config,
    save_config,
)


class TestConfigExists:
    def test_exists_false(self, tmp_path):
        with patch("proxy_usage.config.CONFIG_FILE", tmp_path / "nope.yaml"):
            assert config_exists() is False

    def test_exists_true(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("base_url: http://proxy\n")
        with patch("proxy_usage.config.CONFIG_FILE", cfg):
            assert config_exists() is True


class TestLoadSaveConfig:
    def test_load_missing(self, tmp_path):
        with patch("proxy_usage.config.CONFIG_FILE", tmp_path / "missing.yaml"):
            assert load_config() == {}

    def test_load_empty_file(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("")
        with patch("proxy_usage.config.CONFIG_FILE", cfg):
            assert load_config() == {}

    def test_save_and_load(self, tmp_path):
        cfg_file = tmp_path / "config.yaml"
        with patch("proxy_usage.config.CONFIG_FILE", cfg_file):
            save_config({"base_url": "http://proxy:8317", "chart_lines": 4})
            loaded = load_config()
            assert loaded["base_url"] == "http://proxy:8317"
            assert loaded["chart_lines"] == 4

    def test_save_creates_directory(self, tmp_path):
        cfg_file = tmp_path / "subdir" / "config.yaml"
        with patch("proxy_usage.config.CONFIG_FILE", cfg_file):
            save_config({"base_url": "http://proxy"})
            assert cfg_file.exists()


class TestBaseUrl:
    def test_default(self):
        assert get_base_url({}) == DEFAULT_BASE_URL

    def test_strips_trailing_slash(self):
        assert get_base_url({"base_url": "http://proxy/"}) == "http://proxy"


class TestManagementKey:
    def test_from_config(self, monkeypatch):
        monkeypatch.delenv(MANAGEMENT_KEY_ENV, raising=False)
        assert get_management_key({"management_key": "abc"}) == "abc"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv(MANAGEMENT_KEY_ENV, "from-env")
        assert get_management_key({"management_key": "abc"}) == "from-env"

    def test_missing(self, monkeypatch):
        monkeypatch.delenv(MANAGEMENT_KEY_ENV, raising=False)
        assert get_management_key({}) == ""


class TestNumericSettings:
    def test_defaults(self):
        assert get_rate_window_minutes({}) == 30
        assert get_chart_lines({}) == 3
        assert get_max_chart_lines({}) == 9
        assert get_cost_decimals({}) == 4

    def test_invalid_values_fall_back(self):
        config = {"rate_window_minutes": -5, "chart_lines": "many",
                  "max_chart_lines": True, "cost_decimals": 42}
        assert get_rate_window_minutes(config) == 30
        assert get_chart_lines(config) == 3
        assert get_max_chart_lines(config) == 9
        assert get_cost_decimals(config) == 4

    def test_chart_lines_capped_by_max(self):
        assert get_chart_lines({"chart_lines": 8, "max_chart_lines": 5}) == 5

    def test_zero_decimals_allowed(self):
        assert get_cost_decimals({"cost_decimals": 0}) == 0


class TestStoragePath:
    def test_default(self):
        assert get_storage_path({}) == STORAGE_FILE

    def test_custom(self, tmp_path):
        assert get_storage_path({"storage_path": str(tmp_path / "s.db")}) == tmp_path / "s.db"

    def test_expands_user(self):
        assert get_storage_path({"storage_path": "~/s.db"}) == Path.home() / "s.db"


class TestBuildDefaultConfig:
    def test_builds_config(self):
        c = build_default_config("http://proxy", "key", 4)
        assert c["base_url"] == "http://proxy"
        assert c["management_key"] == "key"
        assert c["chart_lines"] == 4
        assert c["rate_window_minutes"] == 30
        assert c["max_chart_lines"] == 9
