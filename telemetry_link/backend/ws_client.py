"""Websocket data service for the telemetry instrument."""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import AsyncIterator, Mapping
from contextlib import suppress
from dataclasses import dataclass
import logging
import random
import time
from types import MappingProxyType
from typing import Any
from urllib.parse import urlsplit

import aiohttp
from pydantic import ValidationError

from ..codecs.frame_codec import (
    INSTRUMENT_SCHEMA_V1,
    ColumnSchema,
    DecodeFailure,
    decode_frame,
)
from ..codecs.models import CommandFrame
from ..codecs.normalize import normalize_message
from ..const import (
    RECONNECT_BASE_S,
    RECONNECT_JITTER_S,
    RECONNECT_MAX_EXP,
    RECONNECT_MAX_S,
    START_COMMAND,
    WS_CLOSE_TIMEOUT_S,
    WS_CONNECT_TIMEOUT_S,
)
from .base import (
    RECORD_KINDS,
    STATUS_STATES,
    EventKind,
    Listener,
    ListenerTable,
    SessionState,
    StatusPayload,
    Unsubscribe,
    parse_event_kind,
)

_LOGGER = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Error reported by the underlying websocket link."""

    def __init__(self, detail: str, *, cause: BaseException | None = None) -> None:
        """Store the human readable detail and the originating error."""

        super().__init__(detail)
        self.detail = detail
        self.cause = cause


def _transport_error(err: BaseException) -> TransportError:
    return TransportError(f"{type(err).__name__}: {err}", cause=err)


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Exponential backoff with additive jitter."""

    base: float = RECONNECT_BASE_S
    max_delay: float = RECONNECT_MAX_S
    max_exp: int = RECONNECT_MAX_EXP
    jitter: float = RECONNECT_JITTER_S

    def delay(self, retries: int, *, rng: random.Random | None = None) -> float:
        """Return the delay in seconds before reconnect attempt ``retries``."""

        backoff = self.base * 2 ** min(max(retries, 0), self.max_exp)
        jitter = (rng or random).uniform(0, self.jitter) if self.jitter > 0 else 0.0
        return min(backoff + jitter, self.max_delay)


class _SessionLogger(logging.LoggerAdapter):
    """Logger adapter applying a per-session minimum level."""

    def __init__(self, logger: logging.Logger, min_level: int) -> None:
        super().__init__(logger, {})
        self.min_level = min_level

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.min_level and self.logger.isEnabledFor(level)


@dataclass
class WSStats:
    """Track websocket frame and event stats."""

    frames_total: int = 0
    events_total: int = 0
    decode_failures: int = 0
    last_event_ts: float = 0.0


class TelemetryWSClient:
    """Websocket session publishing decoded telemetry as typed events.

    ``connect()`` is idempotent and returns the task owning the current link.
    Unsolicited link closes schedule a single reconnection timer; ``close()``
    and ``destroy()`` stop reconnection.
    """

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        normalize: bool = True,
        debug: bool = True,
        reconnect: ReconnectPolicy | None = None,
        schema: ColumnSchema = INSTRUMENT_SCHEMA_V1,
        connect_timeout: float = WS_CONNECT_TIMEOUT_S,
        rng: random.Random | None = None,
    ) -> None:
        """Initialise the websocket session container."""

        self.url = url
        self._session = session
        self._owns_session = session is None
        self._normalize = normalize
        self._reconnect_policy = reconnect or ReconnectPolicy()
        self._schema = schema
        self._connect_timeout = connect_timeout
        self._rng = rng

        host = urlsplit(url).netloc or "ws"
        self._logger = _SessionLogger(
            _LOGGER.getChild(host.replace(".", "_")),
            logging.NOTSET if debug else logging.WARNING,
        )
        self._listeners = ListenerTable(self._logger)

        self._state = SessionState.IDLE
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._retry_count = 0
        self._manually_closed = False
        self._destroyed = False

        self._start_sent_for_link = False
        self._pending_start: dict[str, Any] | None = None

        self._stats = WSStats()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        """Return the current session state."""

        return self._state

    @property
    def retry_count(self) -> int:
        """Return the number of reconnect attempts since the last open."""

        return self._retry_count

    @property
    def stats(self) -> WSStats:
        """Return frame counters for diagnostics."""

        return self._stats

    def on(self, kind: EventKind | str, callback: Listener) -> Unsubscribe | None:
        """Register ``callback`` for ``kind``; return an unsubscribe hook."""

        return self._listeners.add(kind, callback)

    def off(self, kind: EventKind | str, callback: Listener | None = None) -> None:
        """Remove ``callback`` or every callback registered for ``kind``."""

        self._listeners.remove(kind, callback)

    def connect(self) -> asyncio.Task | None:
        """Open the link unless it is already connecting or open."""

        if self._destroyed:
            self._logger.warning("WS: connect ignored on destroyed session")
            return None
        if self._state in (SessionState.CONNECTING, SessionState.OPEN):
            self._logger.debug("WS: already %s: %s", self._state.value, self.url)
            return self._task
        if self._state is SessionState.CLOSING:
            self._logger.debug("WS: connect ignored while closing")
            return None

        self._cancel_reconnect()
        self._manually_closed = False
        self._start_sent_for_link = False
        self._state = SessionState.CONNECTING
        self._logger.info("WS: connecting to %s", self.url)
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_link(), name=f"ws-link-{self.url}")
        return self._task

    async def send_command(
        self, command: str, params: Mapping[str, Any] | None = None
    ) -> bool:
        """Send a command frame when the link is open."""

        ws = self._ws
        if self._state is not SessionState.OPEN or ws is None:
            self._logger.warning(
                "WS: cannot send command %s, link not connected", command
            )
            return False
        try:
            frame = CommandFrame(command=command, params=dict(params or {}))
        except ValidationError as err:
            self._logger.warning("WS: invalid command %r: %s", command, err)
            return False
        try:
            await ws.send_str(frame.model_dump_json())
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as err:
            self._logger.error("WS: sending command %s failed: %s", command, err)
            self._listeners.emit(
                EventKind.ERROR,
                TransportError(f"send failed: {err}", cause=err),
            )
            return False
        self._logger.info("WS: command sent: %s", command)
        return True

    async def send_start_once(self, params: Mapping[str, Any] | None = None) -> None:
        """Send ``setConfig`` once per opened link, buffering until open."""

        if self._start_sent_for_link or self._pending_start is not None:
            return
        payload = dict(params or {})
        if self._state is not SessionState.OPEN:
            self._pending_start = payload
            self._logger.debug("WS: start configuration queued until open")
            return
        self._start_sent_for_link = True
        await self.send_command(START_COMMAND, payload)

    async def close(self) -> None:
        """Close the link and disable reconnection."""

        self._manually_closed = True
        self._cancel_reconnect()
        self._pending_start = None
        self._retry_count = 0

        task = self._task
        if task is None or task.done():
            if self._state is not SessionState.IDLE:
                self._state = SessionState.CLOSED
            return
        if task is asyncio.current_task():
            return

        self._logger.debug("WS: close requested")
        self._state = SessionState.CLOSING
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def destroy(self) -> None:
        """Close the link, drop subscriptions and release the HTTP session."""

        await self.close()
        self._destroyed = True
        self._listeners.clear()
        session = self._session
        if self._owns_session and session is not None:
            self._session = None
            await session.close()

    # ------------------------------------------------------------------
    # Link lifecycle
    # ------------------------------------------------------------------
    async def _run_link(self) -> None:
        """Own one physical link from connection attempt to close."""

        ws: aiohttp.ClientWebSocketResponse | None = None
        try:
            ws = await self._open_link()
            self._ws = ws
            await self._handle_open()
            async for data in self._ws_payload_stream(ws):
                self.handle_frame(data)
        except asyncio.CancelledError:
            # Only close() and loop shutdown cancel this task.
            self._manually_closed = True
            self._logger.debug("WS: link task cancelled")
        except (aiohttp.ClientError, OSError, TimeoutError) as err:
            self._handle_error(_transport_error(err))
        except Exception as err:
            self._logger.debug("WS: unexpected link failure", exc_info=True)
            self._handle_error(_transport_error(err))
        finally:
            self._ws = None
            if ws is not None and not ws.closed:
                with suppress(aiohttp.ClientError, OSError, RuntimeError):
                    await ws.close(
                        code=aiohttp.WSCloseCode.GOING_AWAY, message=b"client close"
                    )
            self._handle_closed()

    async def _open_link(self) -> aiohttp.ClientWebSocketResponse:
        """Connect a fresh websocket for this attempt."""

        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        async with asyncio.timeout(self._connect_timeout):
            return await self._session.ws_connect(
                self.url,
                heartbeat=None,
                timeout=aiohttp.ClientWSTimeout(ws_close=WS_CLOSE_TIMEOUT_S),
            )

    async def _handle_open(self) -> None:
        """Publish the open transition and flush the queued start command."""

        self._state = SessionState.OPEN
        self._retry_count = 0
        self._logger.info("WS: connected")
        self._listeners.emit(EventKind.OPEN)
        self._listeners.emit(EventKind.STATUS, StatusPayload("connected"))

        if self._pending_start is not None:
            params = self._pending_start
            self._pending_start = None
            self._start_sent_for_link = True
            await self.send_command(START_COMMAND, params)

    def _handle_error(self, err: TransportError) -> None:
        """Publish a link error without changing the session state."""

        self._logger.error("WS: link error: %s", err.detail)
        self._listeners.emit(EventKind.ERROR, err)
        self._listeners.emit(EventKind.STATUS, StatusPayload("error", err.detail))

    def _handle_closed(self) -> None:
        """Publish the close transition and schedule reconnection if needed."""

        self._state = SessionState.CLOSED
        self._start_sent_for_link = False
        self._logger.warning("WS: link closed")
        self._listeners.emit(EventKind.CLOSE)
        self._listeners.emit(EventKind.STATUS, StatusPayload("closed"))

        if self._manually_closed:
            self._retry_count = 0
            return
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """Arm the single reconnection timer."""

        delay = self._reconnect_policy.delay(self._retry_count, rng=self._rng)
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self._fire_reconnect)
        self._retry_count += 1
        self._logger.info(
            "WS: reconnecting in %.1f s (attempt %d)", delay, self._retry_count
        )

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    async def _ws_payload_stream(
        self, ws: aiohttp.ClientWebSocketResponse
    ) -> AsyncIterator[str]:
        """Yield text payloads until the link closes."""

        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._stats.frames_total += 1
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                try:
                    decoded = codecs.decode(msg.data, "utf-8")
                except UnicodeDecodeError:
                    self._logger.debug("WS: dropping undecodable binary frame")
                    continue
                self._stats.frames_total += 1
                yield decoded
            elif msg.type == aiohttp.WSMsgType.ERROR:
                exc = ws.exception()
                self._handle_error(TransportError(f"websocket error: {exc}", cause=exc))
            elif msg.type in {
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            }:
                break

    # ------------------------------------------------------------------
    # Frame dispatch
    # ------------------------------------------------------------------
    def handle_frame(self, raw: str) -> None:
        """Decode one inbound frame and dispatch it to subscribers."""

        try:
            decoded = decode_frame(raw, schema=self._schema)
            msg = (
                normalize_message(decoded.record)
                if decoded.structured and self._normalize
                else decoded.record
            )
        except DecodeFailure as err:
            self._stats.decode_failures += 1
            self._logger.debug(
                "WS: dropping undecodable frame (%s): %r", err, raw[:120]
            )
            return
        except Exception:
            self._stats.decode_failures += 1
            self._logger.debug(
                "WS: decoder failed on frame: %r", raw[:120], exc_info=True
            )
            return

        if not decoded.structured:
            self._dispatch(EventKind.DATA, MappingProxyType(dict(msg)))
            return

        type_value = msg.get("type")
        kind = parse_event_kind(type_value) if isinstance(type_value, str) else None
        if (
            kind is None
            or kind is EventKind.DATA
            or not self._listeners.has_listeners(kind)
        ):
            self._dispatch(EventKind.DATA, MappingProxyType(dict(msg)))
            return
        try:
            payload = _typed_payload(kind, msg)
        except ValueError as err:
            self._logger.debug("WS: %s frame dispatched as data: %s", kind.value, err)
            self._dispatch(EventKind.DATA, MappingProxyType(dict(msg)))
            return
        self._dispatch(kind, payload)

    def _dispatch(self, kind: EventKind, payload: Any) -> None:
        now = time.time()
        self._stats.events_total += 1
        self._stats.last_event_ts = now
        self._listeners.emit(kind, payload)


def _typed_payload(kind: EventKind, msg: Mapping[str, Any]) -> Any:
    """Convert a ``type``-tagged frame into the payload shape of ``kind``.

    Record kinds carry the frame itself, ``status`` a :class:`StatusPayload`,
    ``error`` a :class:`TransportError` and the lifecycle kinds nothing.
    Raises ``ValueError`` when the frame does not fit the payload.
    """

    if kind in RECORD_KINDS:
        return MappingProxyType(dict(msg))
    if kind is EventKind.STATUS:
        state = msg.get("state")
        if state not in STATUS_STATES:
            raise ValueError(f"unknown status state {state!r}")
        detail = msg.get("detail")
        return StatusPayload(state, None if detail is None else str(detail))
    if kind is EventKind.ERROR:
        detail = msg.get("detail") or msg.get("message") or "instrument error"
        return TransportError(str(detail))
    return None


__all__ = [
    "ReconnectPolicy",
    "TelemetryWSClient",
    "TransportError",
    "WSStats",
]
