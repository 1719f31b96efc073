"""Numeric helpers for telemetry payloads."""

from __future__ import annotations

import math
import re
from typing import Any

_REDUNDANT_ZEROS_RE = re.compile(r"^0+(?=\d)")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def float_or_none(value: Any) -> float | None:
    """Return value as ``float`` if possible, else ``None``.

    Converts integers, floats, and numeric strings to ``float`` while safely
    handling ``None`` and non-numeric inputs.
    """
    try:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            num = float(value)
        else:
            string_val = str(value).strip()
            if not string_val or not _DECIMAL_RE.match(string_val):
                return None
            num = float(string_val)
        return num if math.isfinite(num) else None
    except (TypeError, ValueError, OverflowError):
        return None


def sanitize_number(raw: Any) -> float | None:
    """Coerce loosely formatted instrument numbers to ``float``.

    The instrument pads values inconsistently, so ``"+043.21"`` and
    ``"013.50"`` are accepted. A single leading ``+`` is dropped and
    redundant leading zeros before a digit are stripped (``"0.5"`` is left
    alone). Anything that does not parse to a finite number yields ``None``.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float_or_none(raw)
    text = str(raw).strip()
    if text.startswith("+"):
        text = text[1:]
    text = _REDUNDANT_ZEROS_RE.sub("", text, count=1)
    return float_or_none(text)


def number_or_text(cell: str) -> int | float | str | None:
    """Return a delimited cell as a number when it is one, else as text."""

    text = cell.strip()
    if not text:
        return None
    if _INTEGER_RE.match(text):
        return int(text)
    num = float_or_none(text)
    return num if num is not None else text
