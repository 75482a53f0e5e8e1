"""
Health summary for the bridge ``/healthcheck`` endpoint.

Reports how long ago a sensor last answered successfully, how old that
reading may get before the bridge should be considered stale (one poll
interval plus one sensor query budget), the process uptime, and a per-sensor
OK / N/A status taken from the latest snapshot.

Ages are in milliseconds.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from bridge.src.models import SuccessReading
from bridge.src.sensor_client import SENSOR_QUERY_TIMEOUT_S

if TYPE_CHECKING:
    from bridge.src.config import BridgeSettings
    from bridge.src.snapshot import SnapshotStore

_UNITS = (("day", 86400), ("hour", 3600), ("minute", 60), ("second", 1))


def format_uptime(seconds: float) -> str:
    """Render a duration as e.g. ``1 day, 2 hours, 5 seconds``."""
    remaining = int(seconds)
    parts = []
    for unit, size in _UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count} {unit}{'s' if count != 1 else ''}")
    return ", ".join(parts) or "0 seconds"


def build_health_summary(
    store: SnapshotStore,
    settings: BridgeSettings,
    *,
    started_at: float,
    now: float | None = None,
) -> dict[str, Any]:
    """Build the health payload.

    Args:
        store: Snapshot cell holding readings and last-success time.
        settings: Active settings (sensor registry and poll interval).
        started_at: Monotonic time the process started.
        now: Monotonic "now"; defaults to ``time.monotonic()``.

    Returns:
        dict with ``readingAge``, ``toleratedAge``, ``uptime`` and ``sensors``.
    """
    if now is None:
        now = time.monotonic()

    last = store.last_success_at
    reading_age = None if last is None else int((now - last) * 1000)
    tolerated_age = int((settings.query_interval_ms or 0) + SENSOR_QUERY_TIMEOUT_S * 1000)

    snapshot = store.snapshot
    sensors = {}
    for sensor in settings.registry():
        reading = snapshot.get(sensor.name)
        ok = isinstance(reading, SuccessReading)
        sensors[sensor.name] = {"status": "OK" if ok else "N/A"}

    return {
        "readingAge": reading_age,
        "toleratedAge": tolerated_age,
        "uptime": format_uptime(now - started_at),
        "sensors": sensors,
    }
