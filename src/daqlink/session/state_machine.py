"""Acquisition-mode state machine.

States and transitions::

    IDLE <-> ACQUIRING              (toggle acquisition)
    IDLE <-> STREAMING              (toggle streaming)
    IDLE  -> BACKGROUND_ACQUIRING   (request background)
             BACKGROUND_ACQUIRING -> IDLE on device completion

Any active mode falls back to IDLE when the device ends the run, when an
alarm is escalated or when the connection is lost.

All mutations go through `SessionStateMachine.apply(intent)`, which returns
a `Transition` describing what has to happen (commands to send, notices to
show, affordances to toggle) and appends the intent to an audit history.
Nothing here talks to the UI or the connection.

Start gating
------------
1. A control-unit alarm blocks every start ("CLEAR ALARMS").
2. Only one of ACQUIRING / STREAMING / BACKGROUND_ACQUIRING may be active.
3. With the high voltage OFF a start must be confirmed by the operator. The
   confirmation callbacks re-enter `apply`, and the gate is checked again at
   that point since the state may have moved while the question was open.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, NamedTuple, Optional

from loguru import logger

from daqlink.types import (
    CONSTS,
    CU_STATUS,
    AcqMode,
    Command,
    HvStatus,
    SettingsIntent,
)

from .effects import (
    Confirm,
    Effect,
    OpenDialog,
    SendCommand,
    Transition,
    UpdateIndicator,
    entry_effects,
    error,
    exit_effects,
    info,
    success,
    warning,
)
from .state import SessionState

ALARM_NOTICE = "Internal error! CLEAR ALARMS and try again"
HV_CONFIRM_TITLE = "HV off or out of range"
ABORTED_NOTICE = "Aborted"
DISCONNECT_AUTOSAVE_NOTE = "Run aborted by unexpected client disconnection. CHECK THE DATA"
DISCONNECT_DAQ_NOTICE = (
    "DAQ aborted by unexpected disconnection! The device will try to save the "
    f"acquired data with comment <<{DISCONNECT_AUTOSAVE_NOTE}>>."
)
DISCONNECT_STREAM_NOTICE = "Data streaming aborted by unexpected disconnection!"
BACKGROUND_DONE_NOTICE = "Background acquisition completed"
COUNTER_RESET_BLOCKED = (
    "DAQ ongoing. Stop data streaming before performing a counter reset!"
)


class _StartSpec(NamedTuple):
    command: str
    notice: Effect
    subject: str  # used in the HV confirmation question


_STARTS = {
    AcqMode.ACQUIRING: _StartSpec(
        CONSTS.DEVICE.MEASURE_START, info("DAQ starting..."), "DAQ"
    ),
    AcqMode.STREAMING: _StartSpec(
        CONSTS.DEVICE.START_DATA_STREAM,
        success("Data stream starting..."),
        "data streaming",
    ),
    AcqMode.BACKGROUND_ACQUIRING: _StartSpec(
        CONSTS.DEVICE.BKG_MEASURE_START,
        success("Background DAQ starting..."),
        "background DAQ",
    ),
}

# (requested mode, active mode) -> warning
_CONFLICTS = {
    (AcqMode.ACQUIRING, AcqMode.STREAMING): (
        "Data streaming ongoing. Stop data streaming before starting an acquisition!"
    ),
    (AcqMode.ACQUIRING, AcqMode.BACKGROUND_ACQUIRING): (
        "Background acquisition ongoing. Wait for it to complete before "
        "starting an acquisition!"
    ),
    (AcqMode.STREAMING, AcqMode.ACQUIRING): (
        "DAQ ongoing. Stop DAQ before starting data streaming!"
    ),
    (AcqMode.STREAMING, AcqMode.BACKGROUND_ACQUIRING): (
        "DAQ ongoing. Stop DAQ before starting data streaming!"
    ),
    (AcqMode.BACKGROUND_ACQUIRING, AcqMode.STREAMING): (
        "Data streaming ongoing. Stop data streaming before starting a "
        "background acquisition!"
    ),
    (AcqMode.BACKGROUND_ACQUIRING, AcqMode.ACQUIRING): (
        "DAQ ongoing. Stop DAQ before starting a background acquisition!"
    ),
    (AcqMode.BACKGROUND_ACQUIRING, AcqMode.BACKGROUND_ACQUIRING): (
        "Background acquisition ongoing. It will stop automatically!"
    ),
}
_DEVICE_SPECIFIC_CONFLICT = "Acquisition ongoing on the device. Wait for it to end!"


# ============================================================================
# Intents
# ============================================================================


class Intent:
    """Base class for everything applied to the state machine."""


@dataclass(frozen=True)
class ToggleAcquisition(Intent):
    pass


@dataclass(frozen=True)
class ToggleStreaming(Intent):
    pass


@dataclass(frozen=True)
class RequestBackground(Intent):
    pass


@dataclass(frozen=True)
class StartConfirmed(Intent):
    mode: AcqMode


@dataclass(frozen=True)
class StartDeclined(Intent):
    mode: AcqMode


@dataclass(frozen=True)
class DeviceAcquisitionEnded(Intent):
    pass


@dataclass(frozen=True)
class BackgroundCompleted(Intent):
    filename: str


@dataclass(frozen=True)
class AbnormalDisconnection(Intent):
    pass


@dataclass(frozen=True)
class StatusUnavailable(Intent):
    """No connection could be made; indicators fall back to UNKNOWN."""


@dataclass(frozen=True)
class ControlUnitReported(Intent):
    code: int


@dataclass(frozen=True)
class HvReported(Intent):
    code: int


@dataclass(frozen=True)
class AlarmRaised(Intent):
    code: int


@dataclass(frozen=True)
class ResetAlarms(Intent):
    pass


@dataclass(frozen=True)
class ResetCounters(Intent):
    pass


@dataclass(frozen=True)
class HistoryEntry:
    intent: Intent
    before: AcqMode
    after: AcqMode
    at: datetime


# ============================================================================
# State machine
# ============================================================================


class SessionStateMachine:
    """Single writer of the `SessionState`.

    Parameters
    ----------
    settings : SettingsIntent
        Current user selection; snapshotted on every foreground start.
    has_hv : bool
        Whether the detector has a high-voltage module.
    has_camera : bool
        Whether the detector is a camera variant (extra status indicator).
    clock : Callable[[], datetime]
        Time source for run timestamps and the audit history.
    """

    def __init__(
        self,
        settings: Optional[SettingsIntent] = None,
        has_hv: bool = True,
        has_camera: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings if settings is not None else SettingsIntent()
        self._state = SessionState.initial(has_hv=has_hv, has_camera=has_camera)
        self._clock = clock
        self._history: list[HistoryEntry] = []
        self._router: dict[type, Callable[[Intent], list[Effect]]] = {
            ToggleAcquisition: self._toggle_acquisition,
            ToggleStreaming: self._toggle_streaming,
            RequestBackground: self._request_background,
            StartConfirmed: self._start_confirmed,
            StartDeclined: self._start_declined,
            DeviceAcquisitionEnded: self._device_acquisition_ended,
            BackgroundCompleted: self._background_completed,
            AbnormalDisconnection: self._abnormal_disconnection,
            StatusUnavailable: self._status_unavailable,
            ControlUnitReported: self._control_unit_reported,
            HvReported: self._hv_reported,
            AlarmRaised: self._alarm_raised,
            ResetAlarms: self._reset_alarms,
            ResetCounters: self._reset_counters,
        }

    # ------------------------------------------------------------------------
    # Read access

    @property
    def state(self) -> SessionState:
        """Copy of the current state."""
        return self._state.copy()

    @property
    def mode(self) -> AcqMode:
        return self._state.acq_mode

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._history)

    # ------------------------------------------------------------------------
    # Mutation entry point

    def apply(self, intent: Intent) -> Transition:
        try:
            handler = self._router[type(intent)]
        except KeyError:
            raise TypeError(f"Unknown intent: {intent!r}") from None
        before = self._state.acq_mode
        effects = handler(intent)
        after = self._state.acq_mode
        self._history.append(HistoryEntry(intent, before, after, self._clock()))
        if before is not after:
            logger.info(
                "Session mode {} -> {} ({})",
                before.value,
                after.value,
                type(intent).__name__,
            )
        else:
            logger.debug("Applied {} in mode {}", type(intent).__name__, after.value)
        return Transition(before, after, effects)

    # convenience wrappers
    def request_toggle_acquisition(self) -> Transition:
        return self.apply(ToggleAcquisition())

    def request_toggle_streaming(self) -> Transition:
        return self.apply(ToggleStreaming())

    def request_background_acquisition(self) -> Transition:
        return self.apply(RequestBackground())

    def on_device_acquisition_ended(self) -> Transition:
        return self.apply(DeviceAcquisitionEnded())

    def on_background_completed(self, filename: str) -> Transition:
        return self.apply(BackgroundCompleted(filename))

    def on_abnormal_disconnection(self) -> Transition:
        return self.apply(AbnormalDisconnection())

    # ------------------------------------------------------------------------
    # Helpers

    def _blocked(self, requested: AcqMode) -> Optional[Effect]:
        if self._state.alarm:
            return error(ALARM_NOTICE)
        active = self._state.acq_mode
        if active is AcqMode.IDLE:
            return None
        return warning(_CONFLICTS.get((requested, active), _DEVICE_SPECIFIC_CONFLICT))

    def _gated_start(self, mode: AcqMode) -> list[Effect]:
        if self._state.hv_off:
            spec = _STARTS[mode]
            return [
                Confirm(
                    HV_CONFIRM_TITLE,
                    f"HV is off or out of range. Are you sure to start {spec.subject}?",
                    on_accept=lambda: self.apply(StartConfirmed(mode)),
                    on_decline=lambda: self.apply(StartDeclined(mode)),
                )
            ]
        return self._enter(mode)

    def _enter(self, mode: AcqMode) -> list[Effect]:
        now = self._clock()
        if mode is AcqMode.BACKGROUND_ACQUIRING:
            snapshot = self.settings.background_snapshot(now)
        else:
            snapshot = self.settings.snapshot(now)
        spec = _STARTS[mode]
        self._state.acq_mode = mode
        return [
            spec.notice,
            SendCommand(Command(spec.command, snapshot.to_payload())),
            *entry_effects(mode),
        ]

    def _to_idle(self) -> list[Effect]:
        prior = self._state.acq_mode
        self._state.acq_mode = AcqMode.IDLE
        if prior is AcqMode.IDLE:
            return []
        return list(exit_effects(prior, self.settings.sampling_rate_selectable))

    def _stop(self) -> list[Effect]:
        return [SendCommand(Command(CONSTS.DEVICE.MEASURE_STOP)), *self._to_idle()]

    # ------------------------------------------------------------------------
    # User intents

    def _toggle_acquisition(self, intent: ToggleAcquisition) -> list[Effect]:
        if self._state.alarm:
            return [error(ALARM_NOTICE)]
        if self._state.acq_mode is AcqMode.ACQUIRING:
            return [*self._stop(), OpenDialog("run_save")]
        blocked = self._blocked(AcqMode.ACQUIRING)
        if blocked is not None:
            return [blocked]
        return self._gated_start(AcqMode.ACQUIRING)

    def _toggle_streaming(self, intent: ToggleStreaming) -> list[Effect]:
        if self._state.alarm:
            return [error(ALARM_NOTICE)]
        if self._state.acq_mode is AcqMode.STREAMING:
            return self._stop()
        blocked = self._blocked(AcqMode.STREAMING)
        if blocked is not None:
            return [blocked]
        return self._gated_start(AcqMode.STREAMING)

    def _request_background(self, intent: RequestBackground) -> list[Effect]:
        blocked = self._blocked(AcqMode.BACKGROUND_ACQUIRING)
        if blocked is not None:
            return [blocked]
        return self._gated_start(AcqMode.BACKGROUND_ACQUIRING)

    def _start_confirmed(self, intent: StartConfirmed) -> list[Effect]:
        blocked = self._blocked(intent.mode)
        if blocked is not None:
            logger.warning(
                "Confirmed start of {} no longer possible in mode {}",
                intent.mode.value,
                self._state.acq_mode.value,
            )
            return [blocked]
        return self._enter(intent.mode)

    def _start_declined(self, intent: StartDeclined) -> list[Effect]:
        return [error(ABORTED_NOTICE)]

    def _reset_alarms(self, intent: ResetAlarms) -> list[Effect]:
        self._state.cu_status = CU_STATUS.OK
        return [
            SendCommand(Command(CONSTS.DEVICE.RESET_ALARMS)),
            UpdateIndicator("cu", CU_STATUS.OK),
        ]

    def _reset_counters(self, intent: ResetCounters) -> list[Effect]:
        mode = self._state.acq_mode
        if mode is AcqMode.ACQUIRING:
            return [warning(COUNTER_RESET_BLOCKED)]
        if mode is AcqMode.STREAMING:
            return [
                SendCommand(
                    Command(CONSTS.DEVICE.RESET_COUNTERS, CONSTS.DEVICE.RESTART)
                )
            ]
        return [SendCommand(Command(CONSTS.DEVICE.RESET_COUNTERS))]

    # ------------------------------------------------------------------------
    # Device events

    def _device_acquisition_ended(self, intent: DeviceAcquisitionEnded) -> list[Effect]:
        prior = self._state.acq_mode
        effects = self._to_idle()
        if prior is AcqMode.ACQUIRING:
            effects.append(OpenDialog("run_save"))
        return effects

    def _background_completed(self, intent: BackgroundCompleted) -> list[Effect]:
        return [
            *self._to_idle(),
            success(BACKGROUND_DONE_NOTICE),
            OpenDialog("background_save", intent.filename),
        ]

    def _abnormal_disconnection(self, intent: AbnormalDisconnection) -> list[Effect]:
        effects: list[Effect] = []
        prior = self._state.acq_mode
        if prior is AcqMode.ACQUIRING:
            effects.append(error(DISCONNECT_DAQ_NOTICE))
        elif prior is AcqMode.STREAMING:
            effects.append(error(DISCONNECT_STREAM_NOTICE))
        effects.extend(self._to_idle())
        effects.extend(self._status_unavailable(intent))
        return effects

    def _status_unavailable(self, intent: Intent) -> list[Effect]:
        self._state.cu_status = CU_STATUS.UNKNOWN
        effects: list[Effect] = [UpdateIndicator("cu", CU_STATUS.UNKNOWN)]
        if self._state.hv_status is not None:
            self._state.hv_status = HvStatus.UNKNOWN
            effects.append(UpdateIndicator("hv", int(HvStatus.UNKNOWN)))
        if self._state.camera_status is not None:
            self._state.camera_status = CU_STATUS.UNKNOWN
            effects.append(UpdateIndicator("camera", CU_STATUS.UNKNOWN))
        return effects

    def _control_unit_reported(self, intent: ControlUnitReported) -> list[Effect]:
        self._state.cu_status = intent.code
        return [UpdateIndicator("cu", intent.code)]

    def _hv_reported(self, intent: HvReported) -> list[Effect]:
        if self._state.hv_status is None:
            logger.debug("HV status {} ignored, detector has no HV module", intent.code)
            return []
        self._state.hv_status = HvStatus.from_code(intent.code)
        return [UpdateIndicator("hv", int(self._state.hv_status))]

    def _alarm_raised(self, intent: AlarmRaised) -> list[Effect]:
        self._state.cu_status = intent.code
        effects: list[Effect] = [UpdateIndicator("cu", intent.code)]
        if self._state.acq_mode.is_active:
            logger.warning(
                "Alarm {} stops {}", intent.code, self._state.acq_mode.value
            )
            effects.extend(self._stop())
        return effects
