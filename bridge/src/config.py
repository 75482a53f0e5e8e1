"""
Bridge configuration loaded from a TOML file with environment overrides.

Uses Pydantic BaseSettings for validation. Values are read from the TOML
config file (``config/config.toml`` unless ``BRIDGE_CONFIG_FILE`` says
otherwise); environment variables prefixed with ``BRIDGE_`` override file
values, with ``__`` separating nested sections
(e.g. ``BRIDGE_MQTT__HOST=broker.lan``).

The ``[sensors]`` table mixes scalar options (``query_interval``) with one
sub-table per sensor. :meth:`BridgeSettings.registry` extracts only the
sub-tables, which form the sensor registry for a poll cycle.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config/config.toml"
"""Config file path used when ``BRIDGE_CONFIG_FILE`` is not set."""

_MQTT_PROTOCOLS = ("mqtt", "mqtts", "ws", "wss")


class SensorConfig(BaseModel):
    """Static configuration of one sensor endpoint.

    Attributes:
        name: Unique sensor name (the key under ``[sensors]``).
        host: Sensor IP address or hostname on the local LAN.
        device_model: Model string reported in discovery metadata.
    """

    model_config = {"frozen": True}

    name: str
    host: str
    device_model: str = ""


class BridgeSection(BaseModel):
    """``[bridge]`` table: the HTTP status server."""

    host: str = "0.0.0.0"
    port: int = 8080

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate HTTP port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("bridge.port must be between 1 and 65535")
        return v


class MqttSettings(BaseModel):
    """``[mqtt]`` table: broker connection and topic root.

    Attributes:
        proto: One of ``mqtt``, ``mqtts``, ``ws``, ``wss``.
        host: Broker hostname.
        port: Broker port.
        user: Username, empty for anonymous access.
        password: Password, empty for anonymous access.
        topic: Root topic under which readings are published.
    """

    proto: str = "mqtt"
    host: str = "localhost"
    port: int = 1883
    user: str = ""
    password: str = ""
    topic: str = "neurio"

    @field_validator("proto")
    @classmethod
    def proto_must_be_supported(cls, v: str) -> str:
        """Validate the broker protocol is one aiomqtt can speak."""
        v = v.lower()
        if v not in _MQTT_PROTOCOLS:
            raise ValueError(f"mqtt.proto must be one of {', '.join(_MQTT_PROTOCOLS)}")
        return v

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate broker port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("mqtt.port must be between 1 and 65535")
        return v

    @field_validator("topic")
    @classmethod
    def topic_without_trailing_slash(cls, v: str) -> str:
        """Strip trailing slashes so topics join cleanly."""
        return v.rstrip("/")


class HomeAssistantSettings(BaseModel):
    """``[homeassistant]`` table."""

    discovery_topic: str = "homeassistant"

    @field_validator("discovery_topic")
    @classmethod
    def topic_without_trailing_slash(cls, v: str) -> str:
        """Strip trailing slashes so topics join cleanly."""
        return v.rstrip("/")


class BridgeSettings(BaseSettings):
    """Complete bridge configuration.

    Attributes:
        bridge: HTTP status server options.
        sensors: Raw ``[sensors]`` table. Sub-tables are sensors; scalar
            entries are options such as ``query_interval``.
        mqtt: Broker connection parameters.
        homeassistant: Discovery options.
    """

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    bridge: BridgeSection = BridgeSection()
    sensors: dict[str, Any] = {}
    mqtt: MqttSettings = MqttSettings()
    homeassistant: HomeAssistantSettings = HomeAssistantSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # File values arrive as init kwargs; environment wins over them.
        return (env_settings, init_settings, file_secret_settings)

    @field_validator("sensors", mode="before")
    @classmethod
    def query_interval_from_text(cls, v: Any) -> Any:
        """Parse a ``query_interval`` given as text (environment overrides)."""
        if not isinstance(v, dict) or not isinstance(v.get("query_interval"), str):
            return v
        try:
            interval = float(v["query_interval"].strip())
        except ValueError:
            return v
        if not math.isfinite(interval):
            return v
        if interval.is_integer():
            interval = int(interval)
        return {**v, "query_interval": interval}

    @field_validator("sensors")
    @classmethod
    def sensor_entries_must_have_host(cls, v: dict[str, Any]) -> dict[str, Any]:
        """Validate every sensor sub-table names a host."""
        for name, entry in v.items():
            if isinstance(entry, dict) and not entry.get("host"):
                raise ValueError(f"sensors.{name}.host is required")
        return v

    @field_validator("sensors")
    @classmethod
    def query_interval_must_be_positive(cls, v: dict[str, Any]) -> dict[str, Any]:
        """Validate ``query_interval`` (milliseconds) when present."""
        interval = v.get("query_interval")
        if interval is not None and (
            isinstance(interval, bool)
            or not isinstance(interval, (int, float))
            or interval <= 0
        ):
            raise ValueError("sensors.query_interval must be a positive number of ms")
        return v

    @property
    def query_interval_ms(self) -> float | None:
        """Delay between poll cycles in milliseconds, or None for single-shot."""
        return self.sensors.get("query_interval")

    def registry(self) -> list[SensorConfig]:
        """Return the configured sensors, skipping scalar ``[sensors]`` options."""
        return [
            SensorConfig(
                name=name,
                host=str(entry["host"]),
                device_model=str(entry.get("device_model", "")),
            )
            for name, entry in self.sensors.items()
            if isinstance(entry, dict)
        ]


def config_file_path() -> Path:
    """Resolve the config file path from ``BRIDGE_CONFIG_FILE``."""
    return Path(os.environ.get("BRIDGE_CONFIG_FILE", DEFAULT_CONFIG_FILE))


def load_settings(path: str | Path | None = None) -> BridgeSettings:
    """Parse the TOML config file and build validated settings.

    Args:
        path: Config file to read. Defaults to :func:`config_file_path`.

    Returns:
        The validated settings.

    Raises:
        FileNotFoundError: If the config file does not exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
        pydantic.ValidationError: If a value fails validation.
    """
    path = Path(path) if path is not None else config_file_path()
    with path.open("rb") as fh:
        data = tomllib.load(fh)
    return BridgeSettings(**data)


class SettingsHolder:
    """Mutable handle on the active settings.

    The config watcher is the only writer; the poll loop and HTTP handlers
    read :attr:`current` each time they need configuration, so a reload
    takes effect on the next cycle.
    """

    def __init__(self, settings: BridgeSettings) -> None:
        self.current = settings

    def replace(self, settings: BridgeSettings) -> None:
        """Swap in freshly loaded settings."""
        self.current = settings
        logger.info(
            "Settings replaced: %d sensor(s), query_interval=%s",
            len(settings.registry()),
            settings.query_interval_ms,
        )
