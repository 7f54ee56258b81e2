"""Fetch usage data from the proxy's management API."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from pathlib import Path

MANAGEMENT_API_PREFIX = "/v0/management"
USAGE_TIMEOUT_SECONDS = 60


class ManagementAPIError(Exception):
    """The management API could not be reached or returned bad data."""


class ManagementClient:
    def __init__(self, base_url: str, management_key: str = "",
                 timeout: float = USAGE_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.management_key = management_key
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{MANAGEMENT_API_PREFIX}{path}"

    def get_json(self, path: str):
        headers = {"User-Agent": "proxy-usage/0.1", "Accept": "application/json"}
        if self.management_key:
            headers["Authorization"] = f"Bearer {self.management_key}"
        req = urllib.request.Request(self._url(path), headers=headers)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as exc:
            raise ManagementAPIError(f"{path} returned HTTP {exc.code}") from exc
        except (urllib.error.URLError, OSError) as exc:
            raise ManagementAPIError(f"Cannot reach {self.base_url}: {exc}") from exc
        except ValueError as exc:
            raise ManagementAPIError(f"{path} returned invalid JSON") from exc

    def get_usage(self):
        """Raw ``GET /usage`` response."""
        return self.get_json("/usage")


def load_usage_file(path: str | Path):
    """Read a saved ``/usage`` response from disk."""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ManagementAPIError(f"Cannot read usage file {path}: {exc}") from exc
