"""
Pydantic models for sensor samples and per-cycle reading outcomes.

Defines the shape of a Neurio ``/current-sample`` response (SensorSample
with its Channels) and the three outcomes of polling one sensor in one
cycle. The outcomes form a tagged union on the ``outcome`` field so that
consumers (publisher, discovery, health) dispatch on the reading's type
rather than on its numeric status code.

Field aliases keep the sensor's wire names (``eImp_Ws``, ``p_W``, ...) so
that samples round-trip unchanged to MQTT and to the ``/readings`` endpoint.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

CONSUMPTION_SUFFIX = "_CONSUMPTION"


class Channel(BaseModel):
    """One measured circuit within a sensor sample.

    Attributes:
        type: Channel category, e.g. ``PHASE_A_CONSUMPTION``.
        ch: Channel index as reported by the sensor.
        energy_imported_ws: Cumulative imported energy in watt-seconds.
        energy_exported_ws: Cumulative exported energy in watt-seconds.
        power_w: Instantaneous real power in watts.
        voltage_v: RMS voltage in volts.
        reactive_power_var: Reactive power in volt-amperes reactive.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    ch: int
    energy_imported_ws: int | float | None = Field(default=None, alias="eImp_Ws")
    energy_exported_ws: int | float | None = Field(default=None, alias="eExp_Ws")
    power_w: int | float | None = Field(default=None, alias="p_W")
    voltage_v: int | float | None = Field(default=None, alias="v_V")
    reactive_power_var: int | float | None = Field(default=None, alias="q_VAR")

    @property
    def topic_type(self) -> str:
        """Channel type with the ``_CONSUMPTION`` suffix stripped."""
        return self.type.removesuffix(CONSUMPTION_SUFFIX)

    def wire_payload(self) -> dict:
        """Return the channel as the sensor sent it (wire names, no unset fields)."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class SensorSample(BaseModel):
    """Parsed body of a sensor's ``/current-sample`` endpoint.

    Unknown top-level fields (e.g. raw CT data) are kept verbatim.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sensor_id: str = Field(alias="sensorId")
    timestamp: str
    channels: list[Channel] = []


class _ReadingBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    model: str = ""


class SuccessReading(_ReadingBase):
    """The sensor answered with a well-formed sample."""

    outcome: Literal["success"] = "success"
    status: Literal[200] = 200
    content: SensorSample

    @field_serializer("content")
    def _serialize_content(self, content: SensorSample) -> dict:
        # Echo the sample as received rather than padding absent fields with nulls.
        return content.model_dump(mode="json", by_alias=True, exclude_unset=True)

    @property
    def sensor_id(self) -> str:
        return self.content.sensor_id


class TimeoutReading(_ReadingBase):
    """The sensor did not answer within the query budget."""

    outcome: Literal["timeout"] = "timeout"
    status: Literal[504] = 504
    content: str


class ErrorReading(_ReadingBase):
    """Any other fetch failure; ``content`` holds the underlying cause."""

    outcome: Literal["error"] = "error"
    status: int = 500
    content: str


Reading = Annotated[
    Union[SuccessReading, TimeoutReading, ErrorReading],
    Field(discriminator="outcome"),
]


class DeviceMetadata(BaseModel):
    """Optional hardware/firmware versions scraped from a sensor's status page."""

    hw_version: str | None = None
    sw_version: str | None = None
