"""Resilient telemetry link: websocket transport, frame codecs and sessions."""

from __future__ import annotations

from .backend import (
    DataServiceProto,
    EventKind,
    SessionState,
    StatusPayload,
    create_data_service,
)
from .config import ConfigError, TelemetryConfig

__all__ = [
    "ConfigError",
    "DataServiceProto",
    "EventKind",
    "SessionState",
    "StatusPayload",
    "TelemetryConfig",
    "create_data_service",
]
