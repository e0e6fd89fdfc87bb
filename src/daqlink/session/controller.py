"""Session controller: executes transitions against the UI and the connection.

The `SessionController` is the only object that performs side effects. It
owns one of each session component and exposes the operator operations
(toggle acquisition, reset alarms, logbook actions, ...). Every operation
checks the connection first, applies the matching intent and executes the
resulting `Transition`:

- `SendCommand` effects go to `ConnectionManager.send`.
- `Confirm` effects are asked on the primary `SessionUI`; the answer's
  follow-up transition is executed in turn.
- Every other effect is rendered on the primary UI and on each observer
  (e.g. the ZeroMQ publisher).

Examples
--------
```python
session = SessionController.build(config, transport, AsyncioScheduler(), ui)
session.start()                # opens the link, sends the init request
session.toggle_acquisition()   # start (or stop) a run
```
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from loguru import logger

from daqlink.comms.connection_manager import ConnectionManager
from daqlink.comms.dispatcher import ProtocolDispatcher
from daqlink.comms.transport import Transport
from daqlink.types import (
    CONSTS,
    Command,
    DeviceAlarm,
    RenderSink,
    SessionUI,
    ValidationError,
)
from daqlink.util.defaults import ERROR_DEDUP_WINDOW
from daqlink.util.scheduling import Scheduler

from .calibration import (
    UNRECOGNIZED_FORMAT,
    CalibMode,
    CalibrationFactors,
    ChannelGeometry,
    parse_calibration_upload,
)
from .effects import (
    Confirm,
    Effect,
    Notify,
    RenderCalibration,
    SendCommand,
    Transition,
    error,
)
from .errors import ErrorAggregator, compile_log
from .logbook import Logbook, RunKind
from .state_machine import (
    ResetAlarms,
    ResetCounters,
    SessionStateMachine,
    StatusUnavailable,
)

UserOp = Callable[[], Transition]


class SessionController:
    """Runs one device session.

    Parameters
    ----------
    connection : ConnectionManager
        Link to the device.
    ui : SessionUI
        Primary front-end (answers confirmations).
    machine : SessionStateMachine
    aggregator : ErrorAggregator
    logbook : Logbook
    geometry : ChannelGeometry
        Channel counts for calibration uploads.
    observers : Iterable[RenderSink]
        Extra front-ends mirroring everything the primary UI renders.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        ui: SessionUI,
        machine: SessionStateMachine,
        aggregator: ErrorAggregator,
        logbook: Logbook,
        geometry: ChannelGeometry,
        observers: Iterable[RenderSink] = (),
    ):
        self.connection = connection
        self.ui = ui
        self.machine = machine
        self.aggregator = aggregator
        self.logbook = logbook
        self.calibration = logbook.calibration
        self.geometry = geometry
        self.observers = list(observers)
        self.dispatcher = ProtocolDispatcher(self)

        self.connection.set_notifier(self.notice)
        self.connection.on_message(self.dispatcher.dispatch)
        self.connection.on_liveness_lost(self._on_liveness_lost)
        self.connection.on_reconnected(self._on_reconnected)

    @classmethod
    def build(
        cls,
        config,
        transport: Transport,
        scheduler: Scheduler,
        ui: SessionUI,
        observers: Iterable[RenderSink] = (),
    ) -> "SessionController":
        """Assemble a session for a `DetectorConfig`."""
        connection = ConnectionManager(
            transport,
            scheduler,
            watchdog_timeout=config.watchdog_timeout,
            connect_recheck_delay=config.connect_recheck_delay,
        )
        geometry = config.geometry
        machine = SessionStateMachine(
            settings=config.default_settings(),
            has_hv=config.has_hv,
            has_camera=config.is_camera_variant,
            clock=scheduler.now,
        )
        aggregator = ErrorAggregator(
            machine, clock=scheduler.now, dedup_window=ERROR_DEDUP_WINDOW
        )
        logbook = Logbook(
            mode=lambda: machine.mode,
            calibration=CalibrationFactors(geometry),
            device_address=config.ws_address,
        )
        return cls(connection, ui, machine, aggregator, logbook, geometry, observers)

    # ------------------------------------------------------------------------
    # Effect execution

    def _sinks(self) -> list[RenderSink]:
        return [self.ui, *self.observers]

    def execute(self, transition: Transition) -> None:
        for effect in transition.effects:
            self._execute_effect(effect)

    def _execute_effect(self, effect: Effect) -> None:
        if isinstance(effect, SendCommand):
            self.connection.send(effect.command)
            return
        for observer in self.observers:
            effect.render(observer)
        if isinstance(effect, Confirm):
            logger.debug("Asking confirmation: {}", effect.title)
            self.ui.confirm(
                effect.title,
                effect.message,
                on_accept=lambda: self.execute(effect.on_accept()),
                on_decline=lambda: self.execute(effect.on_decline()),
            )
            return
        effect.render(self.ui)

    def notice(self, level: str, message: str) -> None:
        self._execute_effect(Notify(level, message))

    def _when_connected(self, op: UserOp) -> bool:
        if not self.connection.is_connected():
            self.connection.notify_connection_error()
            return False
        self.execute(op())
        return True

    # ------------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        """Open the link and request the initial configuration."""
        self.connection.open()
        self.connection.start_session(
            on_ready=self._request_init, on_unavailable=self._status_unavailable
        )

    def stop(self) -> None:
        self.connection.close()

    def raise_for_alarm(self) -> None:
        """Raise `DeviceAlarm` if the control unit is in an alarm state."""
        state = self.machine.state
        if state.alarm:
            log = compile_log(self.aggregator.entries())
            raise DeviceAlarm(log.strip() or "Control unit alarm", state.cu_status)

    def _request_init(self) -> None:
        logger.info("Requesting initial configuration")
        self.connection.send(Command(CONSTS.DEVICE.UPDATE_CONFIG, CONSTS.DEVICE.INIT))

    def _status_unavailable(self) -> None:
        self.execute(self.machine.apply(StatusUnavailable()))

    def _on_liveness_lost(self) -> None:
        self.execute(self.machine.on_abnormal_disconnection())

    def _on_reconnected(self) -> None:
        self.notice("success", "Connection restored")
        self._request_init()

    # ------------------------------------------------------------------------
    # Acquisition

    def toggle_acquisition(self) -> bool:
        return self._when_connected(self.machine.request_toggle_acquisition)

    def toggle_streaming(self) -> bool:
        return self._when_connected(self.machine.request_toggle_streaming)

    def record_background(self) -> bool:
        return self._when_connected(self.machine.request_background_acquisition)

    def reset_alarms(self) -> bool:
        if not self._when_connected(lambda: self.machine.apply(ResetAlarms())):
            return False
        self.aggregator.reset()
        return True

    def reset_counters(self) -> bool:
        return self._when_connected(lambda: self.machine.apply(ResetCounters()))

    def save_run(self, notes: str) -> bool:
        """Answer of the run save dialog: keep the run with notes and error log."""
        errors = compile_log(self.aggregator.entries())
        return self._when_connected(lambda: self.logbook.save_run_notes(notes, errors))

    def discard_run(self) -> bool:
        return self._when_connected(self.logbook.discard_run)

    # ------------------------------------------------------------------------
    # Logbook

    def scan_runs(self, kind: RunKind) -> bool:
        return self._when_connected(lambda: self.logbook.scan_runs(kind))

    def scan_backgrounds(self) -> bool:
        return self._when_connected(self.logbook.scan_backgrounds)

    def scan_calibrations(self, mode: CalibMode, hidden: bool = False) -> bool:
        return self._when_connected(lambda: self.logbook.scan_calibrations(mode, hidden))

    def edit_notes(self, kind: RunKind, name: str, notes: str) -> bool:
        return self._when_connected(lambda: self.logbook.edit_notes(kind, name, notes))

    def load_run(self, name: str, use_calib: bool = False, calib_file: str = "") -> bool:
        return self._when_connected(
            lambda: self.logbook.load_run(name, use_calib, calib_file)
        )

    def delete_runs(self, kind: RunKind, names: Iterable[str]) -> bool:
        return self._when_connected(lambda: self.logbook.delete_runs(kind, names))

    def download_runs(self, kind: RunKind, names: Iterable[str]) -> bool:
        return self._when_connected(lambda: self.logbook.download_runs(kind, names))

    def save_calibration(self, mode: CalibMode, name: str) -> bool:
        return self._when_connected(lambda: self.logbook.save_calibration(mode, name))

    def load_calibration(self, mode: CalibMode, filename: Optional[str]) -> bool:
        return self._when_connected(
            lambda: self.logbook.load_calibration(mode, filename)
        )

    def delete_calibration(self, mode: CalibMode, filename: Optional[str]) -> bool:
        return self._when_connected(
            lambda: self.logbook.delete_calibration(mode, filename)
        )

    def save_background(self, old_name: str, new_name: str) -> bool:
        return self._when_connected(
            lambda: self.logbook.save_background(old_name, new_name)
        )

    def discard_background(self, filename: str) -> bool:
        return self._when_connected(lambda: self.logbook.discard_background(filename))

    def delete_background(self, filename: Optional[str]) -> bool:
        return self._when_connected(lambda: self.logbook.delete_background(filename))

    def download_background(self, filename: Optional[str]) -> bool:
        return self._when_connected(lambda: self.logbook.download_background(filename))

    # ------------------------------------------------------------------------
    # Calibration (local, no connection needed)

    def upload_calibration(self, content: str, mode: CalibMode) -> bool:
        """Apply an uploaded calibration file; nothing is applied if it is invalid."""
        try:
            upload = parse_calibration_upload(content, mode, self.geometry)
        except ValidationError as e:
            logger.warning("Rejected calibration upload: {}", e)
            self.notice("warning", UNRECOGNIZED_FORMAT)
            return False
        self.calibration.apply_upload(upload)
        self._execute_effect(
            RenderCalibration(mode.value, self.calibration.factors(mode))
        )
        return True

    def reset_calibration(self, mode: CalibMode) -> None:
        """Ask, then set every factor of `mode` back to 1."""

        def _reset() -> Transition:
            self.calibration.reset(mode)
            return Transition.unchanged(
                self.machine.mode,
                RenderCalibration(mode.value, self.calibration.factors(mode)),
            )

        self._execute_effect(
            Confirm(
                "Reset?",
                "Are you sure to reset all the calibration factors to 1?",
                on_accept=_reset,
                on_decline=lambda: Transition.unchanged(
                    self.machine.mode, error("Aborted")
                ),
            )
        )
