"""
Integration tests for the bridge status endpoints.

Uses FastAPI's TestClient against an app built around an in-memory
BridgeContext; the metadata fetcher is mocked.

Tests verify:
- GET /readings returns the snapshot verbatim, with wire field names.
- GET /discovery returns descriptors for successful sensors only.
- GET /healthcheck returns the health summary.
- Endpoints observe settings swapped in after app creation.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest
from bridge.src.api import BridgeContext, create_app
from bridge.src.config import BridgeSettings, SettingsHolder
from bridge.src.discovery import DiscoveryBuilder
from bridge.src.models import DeviceMetadata, ErrorReading, SensorSample, SuccessReading
from bridge.src.snapshot import SnapshotStore
from fastapi.testclient import TestClient


@pytest.fixture()
def context(
    make_settings: Callable[..., BridgeSettings],
    sample_payload: dict[str, Any],
) -> BridgeContext:
    """Context with garage answering and shed failing."""
    holder = SettingsHolder(
        make_settings({"garage": "10.0.0.5", "shed": "10.0.0.6"}, query_interval=5000)
    )
    store = SnapshotStore()
    store.publish(
        {
            "garage": SuccessReading(
                name="garage",
                model="Neurio W1",
                content=SensorSample.model_validate(sample_payload),
            ),
            "shed": ErrorReading(name="shed", content="connection refused"),
        }
    )
    fetcher = AsyncMock()
    fetcher.fetch = AsyncMock(return_value=DeviceMetadata(hw_version="2.0"))
    return BridgeContext(
        settings=holder,
        store=store,
        discovery=DiscoveryBuilder(holder, fetcher),
    )


@pytest.fixture()
def client(context: BridgeContext) -> TestClient:
    """TestClient for an app bound to *context*."""
    return TestClient(create_app(context))


class TestReadingsEndpoint:
    """GET /readings."""

    def test_returns_snapshot(
        self, client: TestClient, sample_payload: dict[str, Any]
    ) -> None:
        response = client.get("/readings")

        assert response.status_code == 200
        body = response.json()
        assert body["garage"]["status"] == 200
        assert body["garage"]["content"] == sample_payload
        assert body["shed"]["status"] == 500
        assert body["shed"]["content"] == "connection refused"
        assert "outcome" not in body["garage"]
        assert "outcome" not in body["shed"]

    def test_empty_before_first_cycle(
        self, make_settings: Callable[..., BridgeSettings]
    ) -> None:
        holder = SettingsHolder(make_settings({"garage": "10.0.0.5"}))
        ctx = BridgeContext(
            settings=holder,
            store=SnapshotStore(),
            discovery=DiscoveryBuilder(holder, AsyncMock()),
        )

        response = TestClient(create_app(ctx)).get("/readings")

        assert response.json() == {}


class TestDiscoveryEndpoint:
    """GET /discovery."""

    def test_descriptors_for_successful_sensor(
        self, client: TestClient, sample_payload: dict[str, Any]
    ) -> None:
        response = client.get("/discovery")

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 5 * len(sample_payload["channels"])
        topic = f"homeassistant/sensor/neurio-{sample_payload['sensorId']}/NET_p_W"
        assert body[topic]["dev"]["hw_version"] == "2.0"


class TestHealthcheckEndpoint:
    """GET /healthcheck."""

    def test_summary(self, client: TestClient) -> None:
        response = client.get("/healthcheck")

        assert response.status_code == 200
        body = response.json()
        assert body["toleratedAge"] == 5500
        assert isinstance(body["readingAge"], int)
        assert body["sensors"] == {
            "garage": {"status": "OK"},
            "shed": {"status": "N/A"},
        }
        assert "uptime" in body

    def test_follows_reloaded_settings(
        self,
        client: TestClient,
        context: BridgeContext,
        make_settings: Callable[..., BridgeSettings],
    ) -> None:
        context.settings.replace(make_settings({"garage": "10.0.0.5"}))

        body = client.get("/healthcheck").json()

        assert body["sensors"] == {"garage": {"status": "OK"}}
        assert body["toleratedAge"] == 500
