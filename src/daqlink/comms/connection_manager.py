"""Connection ownership and liveness tracking.

The `ConnectionManager` sits between a `Transport` and the rest of the
session. It keeps the connection state, watches the device keepalive, and
forwards inbound frames to the dispatcher.

Liveness
--------
The device sends a `watchdog` message periodically. A watchdog timer is
armed on construction and on transport open, and re-armed by each keepalive
(the dispatcher calls `refresh_liveness`). Other traffic does not count. If
it expires the connection is declared lost: state becomes DISCONNECTED and the
`on_liveness_lost` handlers run. Transport closure has the same effect. The
next keepalive on an open transport restores CONNECTED and runs the
`on_reconnected` handlers.

Examples
--------
```python
sched = ManualScheduler()
conn = ConnectionManager(transport, sched, watchdog_timeout=5.0)
conn.on_liveness_lost(lambda: print("lost"))
transport.fire_open()
sched.advance(5.1)   # prints "lost"
```
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from daqlink.types import Command, CommsError
from daqlink.util.defaults import (
    DEFAULT_CONNECT_RECHECK_DELAY,
    DEFAULT_WATCHDOG_TIMEOUT,
)
from daqlink.util.scheduling import Scheduler, TimerHandle

from .transport import Transport

CONNECTION_ERROR = "Connection error! The device is not connected"

Notifier = Callable[[str, str], None]


class LinkState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ConnectionManager:
    """Owns the transport, the liveness watchdog and the first-connection recheck.

    Parameters
    ----------
    transport : Transport
        Text-frame channel to the device.
    scheduler : Scheduler
        Timer source for the watchdog and the recheck.
    watchdog_timeout : float
        Seconds without a keepalive before the link is declared lost.
    connect_recheck_delay : float
        Seconds to wait on `start_session` when the transport is not open yet.
    notifier : Callable[[str, str], None], optional
        Called as `notifier(level, message)` for connection notices.
    encoder : Callable[[Command], str], optional
        Outbound frame encoder, by default `Command.encode`.
    """

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        watchdog_timeout: float = DEFAULT_WATCHDOG_TIMEOUT,
        connect_recheck_delay: float = DEFAULT_CONNECT_RECHECK_DELAY,
        notifier: Optional[Notifier] = None,
        encoder: Optional[Callable[[Command], str]] = None,
    ):
        self._transport = transport
        self._scheduler = scheduler
        self.watchdog_timeout = watchdog_timeout
        self.connect_recheck_delay = connect_recheck_delay
        self._notifier = notifier
        self._encoder = encoder or Command.encode

        self._state = LinkState.DISCONNECTED
        self._was_connected = False
        self._last_liveness: Optional[datetime] = None
        self._watchdog: Optional[TimerHandle] = None
        self._recheck: Optional[TimerHandle] = None
        self._lost_handlers: list[Callable[[], None]] = []
        self._reconnected_handlers: list[Callable[[], None]] = []
        self._message_handler: Optional[Callable[[str], None]] = None

        self._transport.set_handlers(
            on_open=self._on_transport_open,
            on_message=self._on_transport_message,
            on_close=self._on_transport_close,
        )
        self._arm_watchdog()

    # ------------------------------------------------------------------------
    # State

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def last_liveness(self) -> Optional[datetime]:
        return self._last_liveness

    @property
    def watchdog_armed(self) -> bool:
        return self._watchdog is not None and not self._watchdog.cancelled()

    def is_connected(self) -> bool:
        return self._state is LinkState.CONNECTED and self._transport.is_open()

    def set_notifier(self, notifier: Notifier) -> None:
        self._notifier = notifier

    def _notify(self, level: str, message: str) -> None:
        if self._notifier is not None:
            self._notifier(level, message)

    def notify_connection_error(self) -> None:
        self._notify("error", CONNECTION_ERROR)

    # ------------------------------------------------------------------------
    # Handlers

    def on_liveness_lost(self, handler: Callable[[], None]) -> None:
        self._lost_handlers.append(handler)

    def on_reconnected(self, handler: Callable[[], None]) -> None:
        self._reconnected_handlers.append(handler)

    def on_message(self, handler: Callable[[str], None]) -> None:
        """Set the consumer of inbound frames (the dispatcher)."""
        self._message_handler = handler

    # ------------------------------------------------------------------------
    # Watchdog

    def _arm_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
        self._watchdog = self._scheduler.call_later(
            self.watchdog_timeout, self._on_watchdog_expired
        )

    def _on_watchdog_expired(self) -> None:
        self._watchdog = None
        if self._state is LinkState.CONNECTED:
            logger.warning(
                "No keepalive from device for {:.1f}s", self.watchdog_timeout
            )
        self._declare_lost("keepalive timeout")

    def refresh_liveness(self) -> None:
        """Record a sign of life and re-arm the watchdog."""
        self._last_liveness = self._scheduler.now()
        self._arm_watchdog()
        if self._state is LinkState.DISCONNECTED and self._transport.is_open():
            self._mark_connected()

    # ------------------------------------------------------------------------
    # Transport callbacks

    def _mark_connected(self) -> None:
        self._state = LinkState.CONNECTED
        if self._was_connected:
            logger.info("Device link restored")
            for handler in list(self._reconnected_handlers):
                handler()
        else:
            logger.info("Device link up")
        self._was_connected = True

    def _declare_lost(self, reason: str) -> None:
        if self._state is not LinkState.CONNECTED:
            return
        self._state = LinkState.DISCONNECTED
        logger.warning("Device link lost ({})", reason)
        for handler in list(self._lost_handlers):
            handler()

    def _on_transport_open(self) -> None:
        self.refresh_liveness()
        if self._state is LinkState.DISCONNECTED:
            self._mark_connected()

    def _on_transport_message(self, frame: str) -> None:
        # only the keepalive handler refreshes liveness
        if self._message_handler is not None:
            self._message_handler(frame)

    def _on_transport_close(self, reason: Optional[str] = None) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        self._declare_lost(reason or "transport closed")

    # ------------------------------------------------------------------------
    # Outbound

    def send(self, command: Command) -> bool:
        """Encode and send; dropped with a notice when not connected."""
        if not self.is_connected():
            logger.warning("Not connected, dropping command '{}'", command.name)
            self.notify_connection_error()
            return False
        frame = self._encoder(command)
        try:
            self._transport.send(frame)
        except CommsError as e:
            logger.warning("Send of '{}' failed: {}", command.name, e)
            self.notify_connection_error()
            return False
        logger.debug("Sent '{}' on {} channel", command.name, command.channel)
        return True

    # ------------------------------------------------------------------------
    # Lifecycle

    def start_session(
        self,
        on_ready: Callable[[], None],
        on_unavailable: Optional[Callable[[], None]] = None,
    ) -> None:
        """Run `on_ready` once connected, allowing one delayed recheck."""
        if self.is_connected():
            on_ready()
            return

        def _recheck() -> None:
            self._recheck = None
            if self.is_connected():
                on_ready()
                return
            logger.error(
                "Device not reachable {:.1f}s after start", self.connect_recheck_delay
            )
            self.notify_connection_error()
            if on_unavailable is not None:
                on_unavailable()

        logger.debug(
            "Transport not open yet, rechecking in {:.1f}s", self.connect_recheck_delay
        )
        self._recheck = self._scheduler.call_later(self.connect_recheck_delay, _recheck)

    def open(self) -> None:
        self._transport.open()

    def close(self) -> None:
        for handle in (self._watchdog, self._recheck):
            if handle is not None:
                handle.cancel()
        self._watchdog = None
        self._recheck = None
        # closing on purpose is not a lost link
        self._state = LinkState.DISCONNECTED
        self._transport.close()
