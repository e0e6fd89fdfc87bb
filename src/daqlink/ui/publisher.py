"""ZeroMQ notification socket mirroring everything a session renders.

`UiPublisher` is a `RenderSink`: attach it as an observer of a
`SessionController` and every render request is published, msgpack encoded,
as a `UiNotification` on a PUB socket. Any number of front-ends can
subscribe with `start_bg_ui_listener`.

Examples
--------
Server side:
```python
publisher = UiPublisher(port=8870)
session = SessionController.build(config, transport, scheduler, ui, [publisher])
```

Front-end side (inside a running event loop):
```python
task, queue = start_bg_ui_listener("127.0.0.1", 8870)
notif = await queue.get()   # e.g. NoticeUpdate(level='warning', ...)
```
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import numpy as np
import zmq
import zmq.asyncio
from loguru import logger

from daqlink.types import (
    CalibrationUpdate,
    ConfirmationPrompt,
    ControlsUpdate,
    DialogRequest,
    ErrorLogUpdate,
    FileListUpdate,
    IndicatorUpdate,
    MemoryUpdate,
    NoticeUpdate,
    OptionsUpdate,
    PlotUpdate,
    RunButtonUpdate,
    UiNotification,
)
from daqlink.util.defaults import DEFAULT_HOST_ADDR, DEFAULT_UI_PORT


class UiPublisher:
    """Publish render requests on a ZeroMQ PUB socket.

    Parameters
    ----------
    host : str
        Interface to bind.
    port : int
        Port to bind.
    context : zmq.Context, optional
        Shared context; a new one is created (and owned) otherwise.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST_ADDR,
        port: int = DEFAULT_UI_PORT,
        context: Optional[zmq.Context] = None,
    ):
        self._owns_context = context is None
        self.context = context if context is not None else zmq.Context()
        self.socket = self.context.socket(zmq.PUB)
        self.socket.bind(f"tcp://{host}:{port}")
        self.host = host
        self.port = port
        self.n_published = 0
        logger.info("Publishing UI notifications on tcp://{}:{}", host, port)

    def publish(self, notif: UiNotification) -> None:
        try:
            self.socket.send(notif.to_msgpack(), flags=zmq.NOBLOCK)
        except zmq.ZMQError:
            logger.exception("ERROR SENDING UI NOTIF {}.", notif)
            return
        self.n_published += 1
        logger.trace("*UI NOTIF* (->): {}", notif)

    def close(self) -> None:
        self.socket.close(linger=0)
        if self._owns_context:
            self.context.term()

    # NoticeRenderer

    def notify(self, level: str, message: str) -> None:
        self.publish(NoticeUpdate(level=level, message=message))

    def show_confirmation(self, title: str, message: str) -> None:
        self.publish(ConfirmationPrompt(title=title, message=message))

    # StatusRenderer

    def set_indicator(self, name: str, code: Optional[int]) -> None:
        self.publish(IndicatorUpdate(name=name, code=code))

    def update_memory(self, data: np.ndarray) -> None:
        self.publish(MemoryUpdate(data=np.asarray(data)))

    def update_options(self, name: str, options: Sequence[str]) -> None:
        self.publish(OptionsUpdate(name=name, options=list(options)))

    def show_error_log(self, entries: Sequence[dict]) -> None:
        self.publish(ErrorLogUpdate(entries=list(entries)))

    # ControlsRenderer

    def set_controls_enabled(self, enabled: bool) -> None:
        self.publish(ControlsUpdate(controls_enabled=enabled))

    def set_sampling_rate_enabled(self, enabled: bool) -> None:
        self.publish(ControlsUpdate(sampling_rate_enabled=enabled))

    def set_tooltips_enabled(self, enabled: bool) -> None:
        self.publish(ControlsUpdate(tooltips_enabled=enabled))

    def reset_plots(self) -> None:
        self.publish(ControlsUpdate(plots_reset=True))

    def set_loading(self, active: bool) -> None:
        self.publish(ControlsUpdate(loading=active))

    def set_run_button(self, mode: str, running: bool) -> None:
        self.publish(RunButtonUpdate(mode=mode, running=running))

    # PlotRenderer

    def update_plot(
        self, section: str, channel: str, kind: str, data: np.ndarray, loaded: bool
    ) -> None:
        self.publish(
            PlotUpdate(
                section=section,
                channel=channel,
                kind=kind,
                loaded=loaded,
                data=np.asarray(data),
            )
        )

    # CatalogRenderer

    def show_file_list(self, catalog: str, entries: Sequence[dict]) -> None:
        self.publish(FileListUpdate(catalog=catalog, entries=list(entries)))

    def show_calibration(self, mode: str, factors: dict[str, list[float]]) -> None:
        self.publish(CalibrationUpdate(mode=mode, factors=dict(factors)))

    def open_dialog(self, dialog: str, argument: str = "") -> None:
        self.publish(DialogRequest(dialog=dialog, argument=argument))


def start_bg_ui_listener(
    host: str = DEFAULT_HOST_ADDR,
    port: int = DEFAULT_UI_PORT,
    context: Optional[zmq.asyncio.Context] = None,
) -> tuple[asyncio.Task, asyncio.Queue]:
    """Subscribe to a `UiPublisher` in the background.

    Must be called from a running event loop. Cancel the returned task to
    stop listening (the socket is closed on cancellation).

    Returns
    -------
    tuple[asyncio.Task, asyncio.Queue]
        Listener task and the queue decoded `UiNotification`s are put on.
    """
    qu = asyncio.Queue()
    ctx = context if context is not None else zmq.asyncio.Context.instance()
    socket = ctx.socket(zmq.SUB)
    socket.setsockopt(zmq.SUBSCRIBE, b"")  # subscribe to all
    socket.connect(f"tcp://{host}:{port}")

    async def listen(queue):
        logger.info("Starting UI notification listener")
        try:
            while True:
                msg = await socket.recv()
                try:
                    notif = UiNotification.from_msgpack(msg)
                except Exception:
                    logger.exception("Undecodable UI notification, skipping.")
                    continue
                queue.put_nowait(notif)
                logger.trace("*UI NOTIF* (<-): {}", notif)
        finally:
            socket.close(linger=0)

    task = asyncio.create_task(listen(qu))
    return task, qu
