"""
Shared test fixtures for bridge tests.

Provides environment isolation for BridgeSettings, a realistic Neurio
current-sample payload, and factories for settings and HTTP responses.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from bridge.src.config import BridgeSettings, SettingsHolder


@pytest.fixture(autouse=True)
def _clean_bridge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all BRIDGE_* env vars and work from an empty directory.

    Runs automatically for every test so no developer environment or
    config file leaks into BridgeSettings.
    """
    for var in list(os.environ):
        if var.startswith("BRIDGE_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def sample_payload() -> dict[str, Any]:
    """A current-sample body with two channels, as a Neurio sensor sends it."""
    return {
        "sensorId": "0x0000C47F51019B7D",
        "timestamp": "2026-10-19T10:00:00Z",
        "channels": [
            {
                "type": "PHASE_A_CONSUMPTION",
                "ch": 1,
                "eImp_Ws": 7200,
                "eExp_Ws": 3600,
                "p_W": 500,
                "q_VAR": 12,
                "v_V": 121.5,
            },
            {
                "type": "NET",
                "ch": 2,
                "eImp_Ws": 10800,
                "eExp_Ws": 0,
                "p_W": 250,
                "q_VAR": 4,
                "v_V": 120.9,
            },
        ],
        "cts": [{"ct": 1, "p_W": 500, "q_VAR": 12, "v_V": 121.5}],
    }


@pytest.fixture()
def make_settings() -> Callable[..., BridgeSettings]:
    """Factory building BridgeSettings from sensor host mappings.

    Usage: ``make_settings({"garage": "10.0.0.5"}, query_interval=5000)``.
    """

    def _make(
        sensors: dict[str, str] | None = None,
        *,
        query_interval: int | None = None,
        **sections: Any,
    ) -> BridgeSettings:
        table: dict[str, Any] = {
            name: {"host": host, "device_model": "Neurio W1"}
            for name, host in (sensors or {}).items()
        }
        if query_interval is not None:
            table["query_interval"] = query_interval
        sections.setdefault("mqtt", {"host": "broker.test", "topic": "neurio"})
        return BridgeSettings(sensors=table, **sections)

    return _make


@pytest.fixture()
def holder(make_settings: Callable[..., BridgeSettings]) -> SettingsHolder:
    """Settings holder with a single sensor named ``garage``."""
    return SettingsHolder(make_settings({"garage": "10.0.0.5"}))


@pytest.fixture()
def make_response() -> Callable[..., httpx.Response]:
    """Factory building real httpx responses bound to a GET request."""

    def _make(
        url: str,
        status_code: int = 200,
        *,
        json: Any = None,
        text: str | None = None,
    ) -> httpx.Response:
        request = httpx.Request("GET", url)
        if json is not None:
            return httpx.Response(status_code, json=json, request=request)
        return httpx.Response(status_code, text=text or "", request=request)

    return _make
