"""Shared fakes for telemetry link tests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from types import SimpleNamespace
from typing import Any

import aiohttp
import pytest

from telemetry_link.backend.ws_client import ReconnectPolicy

_CLOSE_TYPES = {
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
}


def ws_message(msg_type: aiohttp.WSMsgType, data: Any = None) -> SimpleNamespace:
    """Return an object shaped like :class:`aiohttp.WSMessage`."""

    return SimpleNamespace(type=msg_type, data=data, extra=None)


class FakeWebSocket:
    """In-memory websocket whose inbound frames are fed by the test."""

    def __init__(self, messages: Iterable[Any] | None = None) -> None:
        self._queue: asyncio.Queue[SimpleNamespace] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        self.close_code: int | None = None
        self._exception: BaseException | None = None
        self.fail_send: BaseException | None = None
        for message in messages or ():
            self.feed_text(message)

    def feed_text(self, data: str) -> None:
        self._queue.put_nowait(ws_message(aiohttp.WSMsgType.TEXT, data))

    def feed_binary(self, data: bytes) -> None:
        self._queue.put_nowait(ws_message(aiohttp.WSMsgType.BINARY, data))

    def feed_error(self, exc: BaseException) -> None:
        self._exception = exc
        self._queue.put_nowait(ws_message(aiohttp.WSMsgType.ERROR, exc))

    def drop(self) -> None:
        """Simulate the peer closing the link."""

        self._queue.put_nowait(ws_message(aiohttp.WSMsgType.CLOSE))

    async def send_str(self, data: str) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(data)

    async def close(self, *, code: int = 1000, message: bytes = b"") -> bool:
        self.closed = True
        self.close_code = code
        self._queue.put_nowait(ws_message(aiohttp.WSMsgType.CLOSED))
        return True

    def exception(self) -> BaseException | None:
        return self._exception

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> SimpleNamespace:
        msg = await self._queue.get()
        if msg.type in _CLOSE_TYPES:
            raise StopAsyncIteration
        return msg


class FakeSession:
    """Client session returning scripted websocket connection results."""

    def __init__(self, ws_connect_results: Iterable[Any] | None = None) -> None:
        self._ws_script = list(ws_connect_results or [])
        self.ws_connect_calls: list[dict[str, Any]] = []
        self.closed = False

    def queue_ws(self, result: Any) -> None:
        self._ws_script.append(result)

    async def ws_connect(self, url: str, **kwargs: Any) -> Any:
        self.ws_connect_calls.append({"url": url, "kwargs": kwargs})
        if not self._ws_script:
            raise aiohttp.ClientConnectionError("no scripted link available")
        entry = self._ws_script.pop(0)
        if isinstance(entry, BaseException):
            raise entry
        return entry

    async def close(self) -> None:
        self.closed = True


async def drain(cycles: int = 10) -> None:
    """Let pending tasks and callbacks run."""

    for _ in range(cycles):
        await asyncio.sleep(0)


@pytest.fixture
def fast_reconnect() -> ReconnectPolicy:
    """Reconnect policy with millisecond delays and no jitter."""

    return ReconnectPolicy(base=0.001, max_delay=0.01, max_exp=4, jitter=0.0)
