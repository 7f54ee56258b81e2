"""Tests for the click command line."""

import json
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from proxy_usage.cli import main


@pytest.fixture
def home(tmp_path):
    """Point config and storage at a temp dir."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"base_url: http://proxy\nstorage_path: {tmp_path / 'storage.db'}\n")
    with patch("proxy_usage.config.CONFIG_FILE", config_file):
        yield tmp_path


@pytest.fixture
def usage_file(tmp_path):
    stamp = (datetime.now() - timedelta(minutes=2)).isoformat()
    path = tmp_path / "usage.json"
    path.write_text(json.dumps({"usage": {"apis": {"/v1/chat/completions": {"models": {
        "gpt-5": {"details": [{"timestamp": stamp, "source": "team-a",
                               "tokens": {"input_tokens": 1000, "output_tokens": 1000}}]},
        "claude": {"details": [{"timestamp": stamp, "source": "team-b",
                                "tokens": {"total_tokens": 50}}]},
    }}}}}))
    return str(path)


def _invoke(*args):
    return CliRunner().invoke(main, list(args), catch_exceptions=False)


class TestPrices:
    def test_set_list_remove(self, home):
        result = _invoke("prices", "set", "gpt-5", "2", "6")
        assert result.exit_code == 0
        assert "gpt-5" in result.output

        result = _invoke("prices", "list")
        assert "gpt-5" in result.output

        result = _invoke("prices", "remove", "gpt-5")
        assert "Removed" in result.output
        assert "No model prices" in _invoke("prices", "list").output

    def test_set_rejects_negative(self, home):
        result = _invoke("prices", "set", "gpt-5", "--", "-1", "6")
        assert result.exit_code == 1

    def test_remove_missing(self, home):
        assert "No price configured" in _invoke("prices", "remove", "nope").output

    def test_clear(self, home):
        _invoke("prices", "set", "a", "1", "1")
        result = _invoke("prices", "clear", "--yes")
        assert result.exit_code == 0
        assert "No model prices" in _invoke("prices", "list").output


class TestViews:
    def test_dashboard_from_file(self, home, usage_file):
        result = _invoke("dashboard", "--file", usage_file)
        assert result.exit_code == 0
        assert "Usage Overview" in result.output

    def test_status_from_file(self, home, usage_file):
        result = _invoke("status", "--file", usage_file)
        assert result.exit_code == 0
        assert "reqs" in result.output

    def test_chart_with_models(self, home, usage_file):
        result = _invoke("chart", "--file", usage_file, "--metric", "tokens",
                         "--model", "claude", "--model", "all")
        assert result.exit_code == 0
        assert "claude" in result.output
        assert "All models" in result.output

    def test_cost_uses_saved_prices(self, home, usage_file):
        _invoke("prices", "set", "gpt-5", "1000", "1000")
        result = _invoke("cost", "--file", usage_file)
        assert result.exit_code == 0
        assert "$2.0000" in result.output

    def test_no_config_without_file(self, tmp_path):
        with patch("proxy_usage.config.CONFIG_FILE", tmp_path / "missing.yaml"):
            result = _invoke("status")
        assert result.exit_code == 1
        assert "No config found" in result.output

    def test_api_error(self, home):
        from proxy_usage.client import ManagementAPIError
        with patch("proxy_usage.cli.ManagementClient.get_usage",
                   side_effect=ManagementAPIError("Cannot reach http://proxy")):
            result = _invoke("status")
        assert result.exit_code == 1
        assert "Cannot reach" in result.output
