"""Frame codecs for the telemetry link."""

from __future__ import annotations

from .frame_codec import (
    INSTRUMENT_SCHEMA_V1,
    ColumnSchema,
    DecodedFrame,
    DecodeFailure,
    decode_frame,
)
from .models import CommandFrame, StartConfig, SyntheticSample
from .normalize import normalize_message

__all__ = [
    "INSTRUMENT_SCHEMA_V1",
    "ColumnSchema",
    "CommandFrame",
    "DecodeFailure",
    "DecodedFrame",
    "StartConfig",
    "SyntheticSample",
    "decode_frame",
    "normalize_message",
]
