"""
Single bounded-time fetch against one Neurio sensor.

Issues one GET to ``http://{host}/current-sample`` and classifies the
outcome into a :class:`~bridge.src.models.SuccessReading`,
:class:`~bridge.src.models.TimeoutReading` or
:class:`~bridge.src.models.ErrorReading`. Designed to be robust:

- Exactly one attempt per call; no retries or backoff.
- Total wall time is capped at the query budget, so a poll cycle always
  finishes well before the next one is due.
- Never raises for per-sensor failures; the cause is recorded in the reading.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from bridge.src.models import ErrorReading, SensorSample, SuccessReading, TimeoutReading

if TYPE_CHECKING:
    from bridge.src.config import SensorConfig
    from bridge.src.models import Reading

logger = logging.getLogger(__name__)

SENSOR_QUERY_TIMEOUT_S: float = 0.5
"""Budget for one sensor query; must stay well below the poll interval."""

SAMPLE_PATH = "/current-sample"


def sample_url(host: str) -> str:
    """Return the current-sample endpoint URL for a sensor host."""
    return f"http://{host}{SAMPLE_PATH}"


async def fetch_reading(
    client: httpx.AsyncClient,
    sensor: SensorConfig,
    *,
    timeout_s: float = SENSOR_QUERY_TIMEOUT_S,
) -> Reading:
    """Fetch and classify the current sample of one sensor.

    Args:
        client: Shared async HTTP client.
        sensor: The sensor to query.
        timeout_s: Total time budget for the request in seconds.

    Returns:
        A success reading with the parsed sample, a timeout reading naming
        the endpoint, or an error reading carrying the underlying cause.
    """
    url = sample_url(sensor.host)
    try:
        async with asyncio.timeout(timeout_s):
            response = await client.get(url, timeout=timeout_s)
        if response.status_code != 200:
            raise httpx.HTTPStatusError(
                f"unexpected HTTP {response.status_code} from {url}",
                request=response.request,
                response=response,
            )
        sample = SensorSample.model_validate(response.json())
    except (httpx.TimeoutException, TimeoutError):
        logger.debug("Sensor %s timed out after %.1fs", sensor.name, timeout_s)
        return TimeoutReading(
            name=sensor.name,
            model=sensor.device_model,
            content=f"sensor API not reachable at {url}",
        )
    except (httpx.HTTPError, ValueError, ValidationError) as exc:
        logger.debug("Sensor %s fetch failed: %s", sensor.name, exc)
        return ErrorReading(
            name=sensor.name,
            model=sensor.device_model,
            status=500,
            content=str(exc) or type(exc).__name__,
        )

    return SuccessReading(name=sensor.name, model=sensor.device_model, content=sample)
