"""Text-frame transports to the device.

The session only needs a bidirectional text channel with open/close
notifications. `Transport` is that contract; `WebSocketTransport` implements
it over the device's websocket endpoint (`ws://<ws_address>:<ws_port>`),
reconnecting with a growing delay until `close()` is called.

Sends are fire-and-forget: frames are queued and written by a sender task,
and frames queued while the socket is down are discarded on reconnect.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Callable, Optional, Protocol, runtime_checkable

import websockets
from loguru import logger

from daqlink.types import CommsError
from daqlink.util.defaults import RECONNECT_DELAY, RECONNECT_MAX_DELAY

OpenHandler = Callable[[], None]
MessageHandler = Callable[[str], None]
CloseHandler = Callable[[Optional[str]], None]


@runtime_checkable
class Transport(Protocol):
    def set_handlers(
        self,
        on_open: OpenHandler,
        on_message: MessageHandler,
        on_close: CloseHandler,
    ) -> None: ...

    def is_open(self) -> bool: ...

    def send(self, frame: str) -> None: ...

    def open(self) -> None: ...

    def close(self) -> None: ...


def device_url(address: str, port: int) -> str:
    if address.startswith(("ws://", "wss://")):
        return f"{address}:{port}"
    return f"ws://{address}:{port}"


class WebSocketTransport:
    """Websocket client with automatic reconnection.

    Must be opened from within a running asyncio event loop.
    """

    def __init__(
        self,
        url: str,
        reconnect_delay: float = RECONNECT_DELAY,
        max_reconnect_delay: float = RECONNECT_MAX_DELAY,
    ):
        self.url = url
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._ws = None
        self._outbox: Optional[asyncio.Queue[str]] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_requested = False
        self._on_open: OpenHandler = lambda: None
        self._on_message: MessageHandler = lambda frame: None
        self._on_close: CloseHandler = lambda reason: None

    def set_handlers(
        self,
        on_open: OpenHandler,
        on_message: MessageHandler,
        on_close: CloseHandler,
    ) -> None:
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close

    def is_open(self) -> bool:
        return self._ws is not None

    def send(self, frame: str) -> None:
        if self._outbox is None or self._ws is None:
            raise CommsError(f"Websocket to {self.url} is not open")
        self._outbox.put_nowait(frame)

    def open(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_requested = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        self._stop_requested = True
        if self._task is not None:
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def _sender(self, ws, outbox: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbox.get()
            await ws.send(frame)
            logger.trace("-> {}", frame)

    async def _receiver(self, ws) -> None:
        async for frame in ws:
            if isinstance(frame, bytes):
                frame = frame.decode("utf-8", errors="replace")
            self._on_message(frame)

    async def _serve(self, ws) -> None:
        self._ws = ws
        self._outbox = asyncio.Queue()
        logger.info("Connected to device at {}", self.url)
        self._on_open()
        sender = asyncio.create_task(self._sender(ws, self._outbox))
        try:
            await self._receiver(ws)
        finally:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
            self._ws = None
            self._outbox = None

    async def _run(self) -> None:
        retry_delay = self._reconnect_delay
        while not self._stop_requested:
            reason: Optional[str] = None
            try:
                async with websockets.connect(self.url) as ws:
                    retry_delay = self._reconnect_delay
                    await self._serve(ws)
                reason = "closed by device"
            except asyncio.CancelledError:
                self._on_close("closed by client")
                raise
            except (OSError, websockets.exceptions.WebSocketException) as e:
                reason = str(e) or type(e).__name__
                logger.info(
                    "Device link unavailable ({}); retrying in {:.0f}s",
                    reason,
                    retry_delay,
                )
            self._on_close(reason)
            if self._stop_requested:
                break
            await asyncio.sleep(retry_delay)
            retry_delay = min(self._max_reconnect_delay, retry_delay * 1.5)
