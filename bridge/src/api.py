"""
Read-only HTTP status endpoints for the bridge.

- ``GET /readings``: the current readings snapshot, verbatim.
- ``GET /discovery``: the discovery descriptors the bridge would publish.
- ``GET /healthcheck``: reading age, tolerated age, uptime, per-sensor status.

The application holds no state of its own; handlers read the shared
:class:`BridgeContext` stored on ``app.state.bridge``.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from fastapi import APIRouter, FastAPI, Request

from bridge.src.config import SettingsHolder
from bridge.src.discovery import DiscoveryBuilder
from bridge.src.health import build_health_summary
from bridge.src.snapshot import SnapshotStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["status"])


@dataclass
class BridgeContext:
    """Shared handles the endpoints observe.

    Attributes:
        settings: Holder of the active settings.
        store: Readings snapshot cell.
        discovery: Discovery descriptor builder.
        started_at: Monotonic process start time, for uptime.
    """

    settings: SettingsHolder
    store: SnapshotStore
    discovery: DiscoveryBuilder
    started_at: float = field(default_factory=time.monotonic)


def _context(request: Request) -> BridgeContext:
    return request.app.state.bridge


@router.get("/readings")
async def readings(request: Request) -> dict[str, Any]:
    """Return the latest reading of every sensor polled in the last cycle."""
    return _context(request).store.snapshot.to_json()


@router.get("/discovery")
async def discovery(request: Request) -> dict[str, Any]:
    """Return discovery topic -> descriptor for the current snapshot."""
    ctx = _context(request)
    return await ctx.discovery.build(ctx.store.snapshot)


@router.get("/healthcheck")
async def healthcheck(request: Request) -> dict[str, Any]:
    """Return the bridge health summary."""
    ctx = _context(request)
    return build_health_summary(
        ctx.store,
        ctx.settings.current,
        started_at=ctx.started_at,
    )


def create_app(context: BridgeContext) -> FastAPI:
    """Build the FastAPI application around a bridge context.

    Args:
        context: Shared state the endpoints read.

    Returns:
        The configured application.
    """
    app = FastAPI(
        title="Neurio-to-MQTT Bridge",
        description="Status endpoints for the Neurio MQTT bridge.",
        version="0.1.0",
    )
    app.state.bridge = context
    app.include_router(router)
    return app
