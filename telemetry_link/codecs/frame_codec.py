"""Decode inbound instrument frames into telemetry records."""

from __future__ import annotations

from dataclasses import dataclass
import json
import re
from typing import Any

from ..const import CSV_FIELDS, DEFAULT_DELIM, DELIMS
from ..util import number_or_text

_PLUS_AFTER_COLON_RE = re.compile(r":\s*\+(\d)")
_ZEROS_AFTER_COLON_RE = re.compile(r":\s*0+(?=\d)")


class DecodeFailure(ValueError):
    """Raised when a frame matches none of the decode strategies."""


@dataclass(frozen=True, slots=True)
class ColumnSchema:
    """Positional column layout of delimited instrument records."""

    version: int
    fields: tuple[str, ...]


INSTRUMENT_SCHEMA_V1 = ColumnSchema(version=1, fields=CSV_FIELDS)


@dataclass(frozen=True, slots=True)
class DecodedFrame:
    """Result of decoding one frame."""

    record: dict[str, Any]
    structured: bool


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def try_parse_json(raw: str) -> dict[str, Any] | None:
    """Return the JSON object in ``raw`` or ``None`` when ``raw`` is not JSON.

    Raises :class:`DecodeFailure` when ``raw`` is JSON but not an object, or
    nests too deeply to decode.
    """

    try:
        value = json.loads(raw, parse_constant=_reject_constant)
    except RecursionError as err:
        raise DecodeFailure("structured frame nested too deeply") from err
    except (TypeError, ValueError):
        return None
    if not isinstance(value, dict):
        raise DecodeFailure(f"structured frame is a JSON {type(value).__name__}")
    return value


def repair_numeric_json(raw: str) -> str:
    """Drop ``+`` signs and redundant leading zeros after ``:`` separators."""

    fixed = _PLUS_AFTER_COLON_RE.sub(r": \1", raw)
    return _ZEROS_AFTER_COLON_RE.sub(": ", fixed)


def pick_delimiter(line: str) -> str:
    """Return the first known delimiter present in ``line``."""

    for delim in DELIMS:
        if delim in line:
            return delim
    return DEFAULT_DELIM


def parse_delimited_line(
    line: str, schema: ColumnSchema = INSTRUMENT_SCHEMA_V1
) -> dict[str, Any]:
    """Zip a delimited line against the schema columns.

    Extra cells are dropped; missing trailing cells leave their columns
    absent.
    """

    cells = line.split(pick_delimiter(line))
    return {
        field: number_or_text(cell)
        for field, cell in zip(schema.fields, cells, strict=False)
    }


def decode_frame(
    raw: str, *, schema: ColumnSchema = INSTRUMENT_SCHEMA_V1
) -> DecodedFrame:
    """Decode a raw text frame, trying JSON, repaired JSON, then delimited."""

    payload = try_parse_json(raw)
    if payload is not None:
        return DecodedFrame(record=payload, structured=True)

    fixed = repair_numeric_json(raw)
    if fixed != raw:
        payload = try_parse_json(fixed)
        if payload is not None:
            return DecodedFrame(record=payload, structured=True)

    line = raw.strip()
    if not line:
        raise DecodeFailure("empty frame")
    return DecodedFrame(record=parse_delimited_line(line, schema), structured=False)


__all__ = [
    "INSTRUMENT_SCHEMA_V1",
    "ColumnSchema",
    "DecodeFailure",
    "DecodedFrame",
    "decode_frame",
    "parse_delimited_line",
    "pick_delimiter",
    "repair_numeric_json",
    "try_parse_json",
]
