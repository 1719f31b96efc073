"""Backend package exports."""
from __future__ import annotations

from typing import Any

from .base import (
    DataServiceProto,
    EventKind,
    ListenerTable,
    SessionState,
    StatusPayload,
)
from .factory import create_data_service

__all__ = [
    "DataServiceProto",
    "EventKind",
    "ListenerTable",
    "MockDataService",
    "ReconnectPolicy",
    "SessionState",
    "StatusPayload",
    "TelemetryWSClient",
    "TransportError",
    "create_data_service",
]


def __getattr__(name: str) -> Any:
    """Lazily import session implementations."""

    if name in {"ReconnectPolicy", "TelemetryWSClient", "TransportError"}:
        from . import ws_client

        value = getattr(ws_client, name)
        globals()[name] = value
        return value
    if name == "MockDataService":
        from .mock import MockDataService

        globals()[name] = MockDataService
        return MockDataService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
