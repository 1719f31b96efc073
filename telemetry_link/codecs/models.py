"""Pydantic models for telemetry link payloads."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..const import COMMAND_FRAME_TYPE
from ..util import sanitize_number


class CommandFrame(BaseModel):
    """Outbound command frame sent to the instrument."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["command"] = COMMAND_FRAME_TYPE
    command: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


class StartConfig(BaseModel):
    """Start configuration understood by the synthetic generator.

    Unknown keys are kept so the same payload can be forwarded verbatim to a
    real instrument.
    """

    model_config = ConfigDict(extra="allow")

    freq: float | None = None
    giallo: float | None = None
    rosso: float | None = None

    @field_validator("freq", "giallo", "rosso", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> float | None:
        """Accept padded numeric text and drop non-positive values."""

        number = sanitize_number(value)
        if number is None or number <= 0:
            return None
        return number


class SyntheticSample(BaseModel):
    """One generated telemetry sample keyed by instrument column names."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    datetime: str = Field(alias="DateTime")
    packet_idx: int = Field(alias="PacketIdx")
    accel_x: float = Field(alias="AccelX")
    accel_y: float = Field(alias="AccelY")
    accel_z: float = Field(alias="AccelZ")
    accel_sum: float = Field(alias="AccelSum")
    pitch: float = Field(alias="Pitch")
    roll: float = Field(alias="Roll")
    yaw: float = Field(alias="Yaw")
    speed: float = Field(alias="Speed")
    latitude: float = Field(alias="Latitude")
    longitude: float = Field(alias="Longitude")
    event_class: int = Field(alias="EventClass")
    event_class_text: str = Field(alias="EventClassText")
    type: Literal["data"] = "data"

    def as_record(self) -> dict[str, Any]:
        """Return the sample keyed by the instrument column names."""

        return self.model_dump(by_alias=True)


__all__ = ["CommandFrame", "StartConfig", "SyntheticSample"]
