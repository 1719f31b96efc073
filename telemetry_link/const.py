"""Constants for the telemetry link."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

# Package logger root
DOMAIN: Final = "telemetry_link"

# Delimiters tried, in order, on non-JSON frames
DELIMS: Final[tuple[str, ...]] = (";", "\t", ",")
DEFAULT_DELIM: Final = ","

# Canonical instrument columns
FIELD_DATETIME: Final = "DateTime"
FIELD_PACKET_IDX: Final = "PacketIdx"
FIELD_ACCEL_X: Final = "AccelX"
FIELD_ACCEL_Y: Final = "AccelY"
FIELD_ACCEL_Z: Final = "AccelZ"
FIELD_ACCEL_SUM: Final = "AccelSum"
FIELD_PITCH: Final = "Pitch"
FIELD_ROLL: Final = "Roll"
FIELD_YAW: Final = "Yaw"
FIELD_SPEED: Final = "Speed"
FIELD_LATITUDE: Final = "Latitude"
FIELD_LONGITUDE: Final = "Longitude"
FIELD_EVENT_CLASS: Final = "EventClass"
FIELD_EVENT_CLASS_TEXT: Final = "EventClassText"

CSV_FIELDS: Final[tuple[str, ...]] = (
    FIELD_DATETIME,
    FIELD_PACKET_IDX,
    FIELD_ACCEL_X,
    FIELD_ACCEL_Y,
    FIELD_ACCEL_Z,
    FIELD_ACCEL_SUM,
    FIELD_PITCH,
    FIELD_ROLL,
    FIELD_YAW,
    FIELD_SPEED,
    FIELD_LATITUDE,
    FIELD_LONGITUDE,
    FIELD_EVENT_CLASS,
    FIELD_EVENT_CLASS_TEXT,
)

# Severity classes
CLASS_VERDE: Final = "verde"
CLASS_GIALLO: Final = "giallo"
CLASS_ROSSO: Final = "rosso"
CLASSIFICATIONS: Final[tuple[str, ...]] = (CLASS_VERDE, CLASS_GIALLO, CLASS_ROSSO)
CLASSIFICATION_CODES: Final[Mapping[str, int]] = {
    CLASS_VERDE: 0,
    CLASS_GIALLO: 1,
    CLASS_ROSSO: 2,
}

# Acceleration magnitude thresholds (g) used by the synthetic generator
GIALLO_THRESHOLD: Final = 1.25
ROSSO_THRESHOLD: Final = 1.6

# Commands
COMMAND_FRAME_TYPE: Final = "command"
START_COMMAND: Final = "setConfig"

# Reconnect backoff (seconds)
RECONNECT_BASE_S: Final = 3.0
RECONNECT_MAX_S: Final = 30.0
RECONNECT_MAX_EXP: Final = 4  # 2**4 = 16x
RECONNECT_JITTER_S: Final = 0.5

WS_CONNECT_TIMEOUT_S: Final = 15.0
WS_CLOSE_TIMEOUT_S: Final = 5.0

# Synthetic generator cadence
MOCK_DEFAULT_FREQUENCY_HZ: Final = 1.0
MOCK_MIN_PERIOD_S: Final = 0.05

# Configuration keys
CONF_USE_MOCK: Final = "use_mock"
CONF_WS_URL: Final = "ws_url"
CONF_WS_NORMALIZE: Final = "ws_normalize"
CONF_DEBUG_WS: Final = "debug_ws"

DEFAULT_WS_URL: Final = "ws://192.168.4.1/ws"

ENV_PREFIX: Final = "TELEMETRY_"
ENV_KEYS: Final[Mapping[str, str]] = {
    CONF_USE_MOCK: f"{ENV_PREFIX}USE_MOCK",
    CONF_WS_URL: f"{ENV_PREFIX}WS_URL",
    CONF_WS_NORMALIZE: f"{ENV_PREFIX}WS_NORMALIZE",
    CONF_DEBUG_WS: f"{ENV_PREFIX}DEBUG_WS",
}


def classification_code(label: str | None) -> int | None:
    """Return the numeric event class for a severity label."""

    if not isinstance(label, str):
        return None
    return CLASSIFICATION_CODES.get(label.strip().lower())
