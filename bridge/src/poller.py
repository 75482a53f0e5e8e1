"""
Poll cycle: concurrent fan-out to every configured sensor, once per interval.

Each cycle moves through ``IDLE -> FETCHING -> AGGREGATING -> PUBLISHING ->
SCHEDULED -> IDLE``:

- FETCHING: one bounded fetch per sensor in the current registry, all
  launched at once and all awaited before moving on.
- AGGREGATING: the previous snapshot is discarded and a new one built from
  this cycle's outcomes only.
- PUBLISHING: successful readings are handed to the publisher as background
  tasks; failures are logged and otherwise ignored.
- SCHEDULED: the next cycle starts ``query_interval`` ms after this one
  completed. Without an interval the loop runs a single cycle.

A sensor's failure never aborts the cycle or delays other sensors.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from typing import TYPE_CHECKING

from bridge.src.models import ErrorReading, SuccessReading
from bridge.src.sensor_client import SENSOR_QUERY_TIMEOUT_S, fetch_reading

if TYPE_CHECKING:
    import httpx

    from bridge.src.config import SettingsHolder
    from bridge.src.models import Reading
    from bridge.src.publisher import Publisher
    from bridge.src.snapshot import Snapshot, SnapshotStore

logger = logging.getLogger(__name__)


class CycleState(enum.Enum):
    """Phase of the poll cycle, exposed for diagnostics."""

    IDLE = "idle"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    PUBLISHING = "publishing"
    SCHEDULED = "scheduled"


class PollCycle:
    """Drives the fetch-aggregate-publish loop.

    Args:
        settings: Holder of the active settings; read afresh every cycle.
        client: Shared async HTTP client for sensor queries.
        store: Snapshot cell; this cycle is its only writer.
        publisher: Publisher for successful readings.
        timeout_s: Per-sensor query budget in seconds.
    """

    def __init__(
        self,
        *,
        settings: SettingsHolder,
        client: httpx.AsyncClient,
        store: SnapshotStore,
        publisher: Publisher,
        timeout_s: float = SENSOR_QUERY_TIMEOUT_S,
    ) -> None:
        self._settings = settings
        self._client = client
        self._store = store
        self._publisher = publisher
        self._timeout_s = timeout_s
        self._publish_tasks: set[asyncio.Task] = set()
        self.state = CycleState.IDLE

    def _enter(self, state: CycleState) -> None:
        logger.debug("Poll cycle %s -> %s", self.state.value, state.value)
        self.state = state

    async def run_cycle(self) -> Snapshot:
        """Execute one complete poll cycle.

        Returns:
            The snapshot published by this cycle.
        """
        self._enter(CycleState.FETCHING)
        sensors = self._settings.current.registry()
        outcomes = await asyncio.gather(
            *(
                fetch_reading(self._client, sensor, timeout_s=self._timeout_s)
                for sensor in sensors
            ),
            return_exceptions=True,
        )

        self._enter(CycleState.AGGREGATING)
        # Sensors removed by a reload while their fetch was in flight are dropped.
        still_configured = {s.name for s in self._settings.current.registry()}
        readings: dict[str, Reading] = {}
        for sensor, outcome in zip(sensors, outcomes):
            if sensor.name not in still_configured:
                logger.info("Dropping reading for removed sensor=%s", sensor.name)
                continue
            if isinstance(outcome, BaseException):
                logger.error(
                    "Unexpected error fetching sensor=%s",
                    sensor.name,
                    exc_info=outcome,
                )
                outcome = ErrorReading(
                    name=sensor.name,
                    model=sensor.device_model,
                    content=str(outcome) or type(outcome).__name__,
                )
            readings[sensor.name] = outcome
        snapshot = self._store.publish(readings)

        self._enter(CycleState.PUBLISHING)
        for reading in snapshot.values():
            if isinstance(reading, SuccessReading):
                self._schedule_publish(reading)
            else:
                logger.warning(
                    "Sensor %s unavailable (status=%d): %s",
                    reading.name,
                    reading.status,
                    reading.content,
                )

        logger.info(
            "Poll cycle complete: %d/%d sensor(s) OK",
            len(snapshot.successes()),
            len(snapshot),
        )
        return snapshot

    def _schedule_publish(self, reading: SuccessReading) -> None:
        """Publish in the background so a slow broker never delays the loop."""
        task = asyncio.create_task(
            self._publish_safely(reading),
            name=f"publish-{reading.name}",
        )
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_tasks.discard)

    async def _publish_safely(self, reading: SuccessReading) -> None:
        try:
            await self._publisher.publish_reading(reading)
        except Exception:
            logger.error("Publish error for sensor=%s", reading.name, exc_info=True)

    async def drain(self) -> None:
        """Wait for in-flight publish tasks to finish."""
        if self._publish_tasks:
            await asyncio.gather(*self._publish_tasks, return_exceptions=True)

    async def run_forever(self, shutdown_event: asyncio.Event) -> None:
        """Run cycles until shutdown, or once when no interval is configured.

        The wait before the next cycle starts when the previous one has
        completed, so a slow cycle pushes the next one back rather than
        overlapping it.

        Args:
            shutdown_event: Event to signal graceful shutdown.
        """
        logger.info("Poll loop started")
        while not shutdown_event.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.error("Poll cycle error", exc_info=True)

            interval_ms = self._settings.current.query_interval_ms
            if not interval_ms:
                logger.info("No query_interval configured, not rescheduling")
                break

            self._enter(CycleState.SCHEDULED)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=interval_ms / 1000.0,
                )
            self._enter(CycleState.IDLE)

        self._enter(CycleState.IDLE)
        await self.drain()
        logger.info("Poll loop stopped")
