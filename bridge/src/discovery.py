"""
Home Assistant MQTT discovery descriptors derived from the readings snapshot.

For every sensor with a successful reading, each channel yields exactly five
descriptors, one per :data:`MEASUREMENT_KINDS` entry (imported energy,
exported energy, power, voltage, reactive power). Descriptors are keyed by
``{discovery_topic}/sensor/neurio-{sensorId}/{type}_{suffix}``; the publisher
appends ``/config``.

Device metadata (hardware/firmware version) is fetched concurrently for all
sensors through a :class:`~bridge.src.metadata.DeviceMetadataFetcher` and
merged into the ``dev`` block when present. Its absence never blocks
descriptor generation.

Sensors without a reading, or whose last reading failed, contribute nothing.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bridge.src.models import DeviceMetadata

if TYPE_CHECKING:
    from bridge.src.config import BridgeSettings, SettingsHolder
    from bridge.src.metadata import DeviceMetadataFetcher
    from bridge.src.models import Channel, SuccessReading
    from bridge.src.snapshot import Snapshot

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VENDOR_PREFIX = "neurio"
MANUFACTURER = "Generac"
VIA_DEVICE = "neurio-2-mqtt"

EXPIRE_AFTER_S = 95
"""Seconds after which Home Assistant marks a value as unavailable."""

WS_PER_WH = 3600

AVAILABILITY_TEMPLATE = "{{ 'online' if value_json.status == 200 else 'offline' }}"


@dataclass(frozen=True)
class MeasurementKind:
    """One metric advertised per channel.

    Attributes:
        suffix: Topic and unique_id suffix, e.g. ``p_W``.
        label: Human-readable name appended to the entity name.
        field: Channel JSON field holding the raw value.
        unit: Unit of measurement shown in Home Assistant.
        device_class: Home Assistant device class.
        state_class: Home Assistant state class.
        icon: Optional MDI icon.
        watt_seconds: Whether the raw value is in Ws and must become Wh.
    """

    suffix: str
    label: str
    field: str
    unit: str
    device_class: str
    state_class: str
    icon: str | None = None
    watt_seconds: bool = False

    @property
    def value_template(self) -> str:
        if self.watt_seconds:
            return f"{{{{ value_json.{self.field} // {WS_PER_WH} }}}}"
        return f"{{{{ value_json.{self.field} }}}}"


MEASUREMENT_KINDS: tuple[MeasurementKind, ...] = (
    MeasurementKind(
        suffix="eImp_Wh",
        label="Energy In",
        field="eImp_Ws",
        unit="Wh",
        device_class="energy",
        state_class="total_increasing",
        icon="mdi:transmission-tower-export",
        watt_seconds=True,
    ),
    MeasurementKind(
        suffix="eExp_Wh",
        label="Energy Out",
        field="eExp_Ws",
        unit="Wh",
        device_class="energy",
        state_class="total_increasing",
        icon="mdi:transmission-tower-import",
        watt_seconds=True,
    ),
    MeasurementKind(
        suffix="p_W",
        label="Power",
        field="p_W",
        unit="W",
        device_class="power",
        state_class="measurement",
    ),
    MeasurementKind(
        suffix="v_V",
        label="Voltage",
        field="v_V",
        unit="V",
        device_class="voltage",
        state_class="measurement",
    ),
    MeasurementKind(
        suffix="q_VAR",
        label="Reactive Power",
        field="q_VAR",
        unit="var",
        device_class="reactive_power",
        state_class="measurement",
        icon="mdi:flash-outline",
    ),
)


def humanize_type(topic_type: str) -> str:
    """Render a channel type for display, e.g. ``PHASE_A`` -> ``PHASE A``."""
    return topic_type.replace("_", " ")


# ---------------------------------------------------------------------------
# Descriptor construction (pure)
# ---------------------------------------------------------------------------


def _device_block(
    reading: SuccessReading,
    host: str,
    metadata: DeviceMetadata,
) -> dict:
    dev = {
        "name": reading.name,
        "ids": reading.sensor_id,
        "model": reading.model,
        "configuration_url": f"http://{host}",
        "manufacturer": MANUFACTURER,
        "via_device": VIA_DEVICE,
    }
    if metadata.hw_version:
        dev["hw_version"] = metadata.hw_version
    if metadata.sw_version:
        dev["sw_version"] = metadata.sw_version
    return dev


def _descriptor(
    reading: SuccessReading,
    channel: Channel,
    kind: MeasurementKind,
    *,
    state_topic: str,
    dev: dict,
    availability: dict,
) -> dict:
    payload = {
        "name": f"{reading.name} {humanize_type(channel.topic_type)} {kind.label}",
        "unique_id": f"{reading.sensor_id}_{channel.ch}_{kind.suffix}",
        "state_topic": state_topic,
        "value_template": kind.value_template,
        "unit_of_measurement": kind.unit,
        "dev": dev,
        "availability": availability,
        "device_class": kind.device_class,
        "state_class": kind.state_class,
        "expire_after": EXPIRE_AFTER_S,
    }
    if kind.icon:
        payload["icon"] = kind.icon
    return payload


def build_sensor_descriptors(
    reading: SuccessReading,
    *,
    host: str,
    topic_root: str,
    discovery_root: str,
    metadata: DeviceMetadata,
) -> dict[str, dict]:
    """Build every discovery descriptor for one sensor.

    Args:
        reading: The sensor's successful reading.
        host: Sensor host, used for the configuration URL.
        topic_root: MQTT root topic the readings are published under.
        discovery_root: Home Assistant discovery prefix.
        metadata: Optional hardware/firmware versions.

    Returns:
        Discovery topic (without ``/config``) to descriptor payload.
    """
    sensor_id = reading.sensor_id
    dev = _device_block(reading, host, metadata)
    availability = {
        "topic": f"{topic_root}/{sensor_id}/state",
        "value_template": AVAILABILITY_TEMPLATE,
    }
    node = f"{discovery_root}/sensor/{VENDOR_PREFIX}-{sensor_id}"

    descriptors: dict[str, dict] = {}
    for channel in reading.content.channels:
        ctype = channel.topic_type
        state_topic = f"{topic_root}/{sensor_id}/{ctype}/state"
        for kind in MEASUREMENT_KINDS:
            descriptors[f"{node}/{ctype}_{kind.suffix}"] = _descriptor(
                reading,
                channel,
                kind,
                state_topic=state_topic,
                dev=dev,
                availability=availability,
            )
    return descriptors


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class DiscoveryBuilder:
    """Derives discovery descriptors from the current snapshot.

    Args:
        settings: Holder of the active settings (topic roots, sensor hosts).
        fetcher: Device metadata capability used for enrichment.
    """

    def __init__(
        self,
        settings: SettingsHolder,
        fetcher: DeviceMetadataFetcher,
    ) -> None:
        self._settings = settings
        self._fetcher = fetcher

    async def build(self, snapshot: Snapshot) -> dict[str, dict]:
        """Build the descriptor mapping for every successful sensor.

        Args:
            snapshot: The readings snapshot to describe.

        Returns:
            Discovery topic (without ``/config``) to descriptor payload.
        """
        settings: BridgeSettings = self._settings.current
        hosts = {sensor.name: sensor.host for sensor in settings.registry()}
        readings = [r for r in snapshot.successes() if r.name in hosts]

        metadata = await asyncio.gather(
            *(self._fetcher.fetch(hosts[r.name]) for r in readings),
            return_exceptions=True,
        )

        topics: dict[str, dict] = {}
        for reading, meta in zip(readings, metadata):
            if isinstance(meta, BaseException):
                logger.debug("Metadata lookup for %s failed: %s", reading.name, meta)
                meta = DeviceMetadata()
            topics.update(
                build_sensor_descriptors(
                    reading,
                    host=hosts[reading.name],
                    topic_root=settings.mqtt.topic,
                    discovery_root=settings.homeassistant.discovery_topic,
                    metadata=meta,
                )
            )
        logger.debug(
            "Built %d discovery descriptor(s) for %d sensor(s)",
            len(topics),
            len(readings),
        )
        return topics
