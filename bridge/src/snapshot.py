"""
Process-wide readings state shared by the poll loop and its observers.

A :class:`Snapshot` is an immutable mapping of sensor name to the reading
obtained in one poll cycle. The :class:`SnapshotStore` holds the current
snapshot and the time of the last successful reading. The poll cycle is the
only writer; the HTTP endpoints and the discovery builder only read.

Publishing a snapshot is a single reference assignment on the event loop
thread, so an observer sees either the previous or the new snapshot in full,
never a mix of both.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from bridge.src.models import SuccessReading

if TYPE_CHECKING:
    from bridge.src.models import Reading


class Snapshot(Mapping[str, "Reading"]):
    """Read-only outcome of one complete poll cycle.

    Args:
        readings: Sensor name to reading. Copied on construction.
    """

    def __init__(
        self,
        readings: Mapping[str, Reading] | None = None,
    ) -> None:
        self._readings = MappingProxyType(dict(readings or {}))

    def __getitem__(self, name: str) -> Reading:
        return self._readings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._readings)

    def __len__(self) -> int:
        return len(self._readings)

    def successes(self) -> list[SuccessReading]:
        """Return the readings that carry sample data, in insertion order."""
        return [r for r in self._readings.values() if isinstance(r, SuccessReading)]

    def to_json(self) -> dict[str, dict]:
        """Serialise every reading as ``{status, name, model, content}``."""
        return {
            name: reading.model_dump(mode="json", by_alias=True, exclude={"outcome"})
            for name, reading in self._readings.items()
        }


class SnapshotStore:
    """Owned cell holding the latest snapshot and last-success timestamp.

    ``last_success_at`` is a monotonic-clock value (``time.monotonic()``)
    so that reading age is immune to wall-clock adjustments.
    """

    def __init__(self) -> None:
        self._snapshot = Snapshot()
        self._last_success_at: float | None = None

    @property
    def snapshot(self) -> Snapshot:
        """The most recently published snapshot."""
        return self._snapshot

    @property
    def last_success_at(self) -> float | None:
        """Monotonic time of the last cycle with at least one success."""
        return self._last_success_at

    def publish(self, readings: Mapping[str, Reading]) -> Snapshot:
        """Replace the current snapshot with one built from *readings*.

        Records a successful-reading timestamp when any reading succeeded.

        Args:
            readings: The complete set of outcomes of one cycle.

        Returns:
            The newly published snapshot.
        """
        snapshot = Snapshot(readings)
        if snapshot.successes():
            self._last_success_at = time.monotonic()
        self._snapshot = snapshot
        return snapshot
