"""Session abstractions shared by the live and synthetic data services."""

from __future__ import annotations

from asyncio import Task
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Literal, Protocol, get_args

_LOGGER = logging.getLogger(__name__)

TelemetryRecord = Mapping[str, Any]
Listener = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class EventKind(str, Enum):
    """Events published by a data service."""

    DATA = "data"
    STATUS = "status"
    HISTORICAL_DATA = "historicalData"
    ERROR = "error"
    OPEN = "open"
    CLOSE = "close"


# Kinds whose payload is a telemetry record; a frame's ``type`` may route to these.
RECORD_KINDS: frozenset[EventKind] = frozenset(
    {EventKind.DATA, EventKind.HISTORICAL_DATA}
)


class SessionState(str, Enum):
    """Lifecycle of a data service session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


StatusState = Literal["connected", "closed", "error"]
STATUS_STATES: frozenset[str] = frozenset(get_args(StatusState))


@dataclass(frozen=True, slots=True)
class StatusPayload:
    """Payload of ``status`` events."""

    state: StatusState
    detail: str | None = None


def parse_event_kind(kind: EventKind | str) -> EventKind | None:
    """Return the :class:`EventKind` for ``kind`` or ``None`` if unknown."""

    try:
        return EventKind(kind)
    except ValueError:
        return None


class DataServiceProto(Protocol):
    """Capability set shared by every data service implementation."""

    @property
    def state(self) -> SessionState:
        """Return the current session state."""

    def on(self, kind: EventKind | str, callback: Listener) -> Unsubscribe | None:
        """Register ``callback`` for ``kind`` and return an unsubscribe hook."""

    def off(self, kind: EventKind | str, callback: Listener | None = None) -> None:
        """Remove ``callback`` (or every callback) registered for ``kind``."""

    def connect(self) -> Task[Any] | None:
        """Start the session; no-op when already connecting or open."""

    async def send_command(
        self, command: str, params: Mapping[str, Any] | None = None
    ) -> bool:
        """Send a command frame; return False when it was dropped."""

    async def send_start_once(self, params: Mapping[str, Any] | None = None) -> None:
        """Send the start configuration once for the current connection."""

    async def close(self) -> None:
        """Close the session without scheduling reconnection."""

    async def destroy(self) -> None:
        """Close the session and drop every subscription."""


class ListenerTable:
    """Per-session table from event kind to ordered callbacks."""

    def __init__(
        self, logger: logging.Logger | logging.LoggerAdapter | None = None
    ) -> None:
        """Create empty callback lists for every event kind."""

        self._logger = logger or _LOGGER
        self._listeners: dict[EventKind, list[Listener]] = {
            kind: [] for kind in EventKind
        }

    def add(self, kind: EventKind | str, callback: Listener) -> Unsubscribe | None:
        """Register ``callback`` and return a function removing it."""

        event_kind = parse_event_kind(kind)
        if event_kind is None:
            self._logger.warning("Unsupported event kind: %s", kind)
            return None
        if not callable(callback):
            self._logger.warning(
                "Invalid callback for %s: %r", event_kind.value, callback
            )
            return None
        callbacks = self._listeners[event_kind]
        if callback not in callbacks:
            callbacks.append(callback)
        return lambda: self.remove(event_kind, callback)

    def remove(self, kind: EventKind | str, callback: Listener | None = None) -> None:
        """Remove one callback, or all callbacks of ``kind`` when omitted."""

        event_kind = parse_event_kind(kind)
        if event_kind is None:
            return
        if callback is None:
            self._listeners[event_kind] = []
            return
        self._listeners[event_kind] = [
            cb for cb in self._listeners[event_kind] if cb != callback
        ]

    def has_listeners(self, kind: EventKind) -> bool:
        """Return True when ``kind`` has at least one subscriber."""

        return bool(self._listeners[kind])

    def clear(self) -> None:
        """Drop every subscription."""

        for kind in self._listeners:
            self._listeners[kind] = []

    def emit(self, kind: EventKind, payload: Any = None) -> None:
        """Invoke the callbacks for ``kind`` in subscription order.

        A raising callback is logged and does not stop later callbacks.
        """

        for callback in tuple(self._listeners[kind]):
            try:
                callback(payload)
            except Exception:
                self._logger.exception('Listener error on "%s"', kind.value)


__all__ = [
    "RECORD_KINDS",
    "STATUS_STATES",
    "DataServiceProto",
    "EventKind",
    "Listener",
    "ListenerTable",
    "SessionState",
    "StatusPayload",
    "TelemetryRecord",
    "Unsubscribe",
    "parse_event_kind",
]
