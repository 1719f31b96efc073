"""Map producer-specific field spellings onto the canonical columns."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Final

from ..const import (
    FIELD_ACCEL_SUM,
    FIELD_ACCEL_X,
    FIELD_ACCEL_Y,
    FIELD_ACCEL_Z,
    FIELD_DATETIME,
    FIELD_EVENT_CLASS_TEXT,
    FIELD_LATITUDE,
    FIELD_LONGITUDE,
    FIELD_PITCH,
    FIELD_ROLL,
    FIELD_SPEED,
    FIELD_YAW,
)
from ..util import sanitize_number


def _keep(value: Any) -> Any:
    return value


# Alias -> (canonical column, converter). Earlier aliases win when two
# producers' spellings map to the same column.
FIELD_ALIASES: Final[tuple[tuple[str, str, Callable[[Any], Any]], ...]] = (
    ("timestamp", FIELD_DATETIME, _keep),
    ("Lat", FIELD_LATITUDE, sanitize_number),
    ("Lon", FIELD_LONGITUDE, sanitize_number),
    ("posizioneLat", FIELD_LATITUDE, sanitize_number),
    ("posizioneLon", FIELD_LONGITUDE, sanitize_number),
    ("classificazione", FIELD_EVENT_CLASS_TEXT, _keep),
    ("accelX", FIELD_ACCEL_X, sanitize_number),
    ("accelY", FIELD_ACCEL_Y, sanitize_number),
    ("accelZ", FIELD_ACCEL_Z, sanitize_number),
    ("accelSum", FIELD_ACCEL_SUM, sanitize_number),
    ("accelMagnitude", FIELD_ACCEL_SUM, sanitize_number),
    ("pitch", FIELD_PITCH, sanitize_number),
    ("roll", FIELD_ROLL, sanitize_number),
    ("yaw", FIELD_YAW, sanitize_number),
    ("speed", FIELD_SPEED, sanitize_number),
    ("velocita", FIELD_SPEED, sanitize_number),
)


def normalize_message(payload: Any) -> Any:
    """Return a copy of ``payload`` with canonical columns added.

    Original keys are preserved and canonical columns already present are
    never overwritten. Non-mapping payloads are returned unchanged.
    """

    if not isinstance(payload, Mapping):
        return payload

    msg = dict(payload)
    for alias, canonical, convert in FIELD_ALIASES:
        if canonical in msg:
            continue
        value = payload.get(alias)
        if value is None or value == "":
            continue
        msg[canonical] = convert(value)
    return msg


__all__ = ["FIELD_ALIASES", "normalize_message"]
