"""
MQTT publisher for sensor readings and Home Assistant discovery topics.

Converts a successful reading into per-channel state messages followed by
one aggregate status message, and pushes them to the broker over an aiomqtt
connection opened per publish action. Discovery descriptors are published
retained so that Home Assistant picks them up after a restart.

Wire shape per sensor:
- ``{root}/{sensorId}/{type}/state``: channel payload (sensor field names)
- ``{root}/{sensorId}/state``: ``{"status": 200, "last_update": <timestamp>}``

Operations:
- build_reading_messages(reading, topic_root): ordered (topic, payload) pairs.
- Publisher.publish_reading(reading): publish one sensor's messages.
- Publisher.publish_discovery(descriptors): publish retained config topics.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import ssl
from typing import TYPE_CHECKING, Any

import aiomqtt

if TYPE_CHECKING:
    from bridge.src.config import MqttSettings, SettingsHolder
    from bridge.src.models import SuccessReading

logger = logging.getLogger(__name__)

DISCOVERY_CONFIG_SUFFIX = "/config"


def build_reading_messages(
    reading: SuccessReading,
    topic_root: str,
) -> list[tuple[str, str]]:
    """Translate one successful reading into ordered MQTT messages.

    Channel messages come first; the aggregate status message is last so
    that a subscriber seeing a fresh status also has fresh channel data.

    Args:
        reading: A successful reading.
        topic_root: Root topic from the ``[mqtt]`` table.

    Returns:
        A list of ``(topic, json_payload)`` tuples.
    """
    sample = reading.content
    base = f"{topic_root}/{sample.sensor_id}"
    messages = [
        (f"{base}/{channel.topic_type}/state", json.dumps(channel.wire_payload()))
        for channel in sample.channels
    ]
    messages.append(
        (
            f"{base}/state",
            json.dumps({"status": reading.status, "last_update": sample.timestamp}),
        )
    )
    return messages


class Publisher:
    """Publishes readings and discovery descriptors to the MQTT broker.

    A new broker connection is opened for each publish action and closed
    once its messages are sent, using the connection parameters active at
    that moment. Broker errors are logged and reported via
    the return value; they never propagate to the poll loop.

    Args:
        settings: Holder of the active settings; the ``[mqtt]`` table is read
            on every publish so reloads apply without a restart.
    """

    def __init__(self, settings: SettingsHolder) -> None:
        self._holder = settings

    @property
    def _settings(self) -> MqttSettings:
        return self._holder.current.mqtt

    def _client(self) -> aiomqtt.Client:
        """Build an unconnected aiomqtt client from the settings."""
        s = self._settings
        kwargs: dict[str, Any] = {
            "port": s.port,
            "username": s.user or None,
            "password": s.password or None,
        }
        if s.proto in ("mqtts", "wss"):
            kwargs["tls_context"] = ssl.create_default_context()
        if s.proto in ("ws", "wss"):
            kwargs["transport"] = "websockets"
        return aiomqtt.Client(s.host, **kwargs)

    async def publish_reading(self, reading: SuccessReading) -> bool:
        """Publish the channel and status messages of one sensor.

        Args:
            reading: A successful reading.

        Returns:
            ``True`` if every message was handed to the broker.
        """
        messages = build_reading_messages(reading, self._settings.topic)
        try:
            async with self._client() as client:
                for topic, payload in messages:
                    await client.publish(topic, payload)
        except aiomqtt.MqttError as exc:
            logger.warning(
                "Publish failed for sensor=%s (%s:%d): %s",
                reading.name,
                self._settings.host,
                self._settings.port,
                exc,
            )
            return False
        logger.debug("Published %d message(s) for sensor=%s", len(messages), reading.name)
        return True

    async def publish_discovery(self, descriptors: dict[str, dict]) -> bool:
        """Publish discovery descriptors as retained config messages.

        Args:
            descriptors: Discovery topic (without ``/config``) to payload.

        Returns:
            ``True`` if every descriptor was handed to the broker.
        """
        if not descriptors:
            logger.info("No discovery topics to publish")
            return False

        logger.info("Publishing %d Home Assistant discovery topic(s)", len(descriptors))
        try:
            async with self._client() as client:
                for topic, payload in descriptors.items():
                    config_topic = f"{topic}{DISCOVERY_CONFIG_SUFFIX}"
                    logger.debug("Publishing discovery topic %s", config_topic)
                    await client.publish(
                        config_topic,
                        json.dumps(payload),
                        qos=0,
                        retain=True,
                    )
        except aiomqtt.MqttError as exc:
            logger.warning("Discovery publish failed: %s", exc)
            return False
        return True
