"""Inbound message dispatch.

Each inbound `Action` has exactly one handler, registered at import time with
the `@handler` decorator. Handlers are called as `handler(session, envelope)`
and return a `Transition` (or None); the dispatcher hands the transition to
`session.execute`. Handlers never touch the UI or the connection directly.

The registry is copied into the read-only `ROUTER` once this module has been
imported, and `ProtocolDispatcher` refuses to start unless `ROUTER` covers
every `Action` (see `daqlink.types.validation`).

Families and their collaborators:
    - connection / liveness -> `ConnectionManager`
    - acquisition lifecycle -> `SessionStateMachine`
    - live-plot data        -> plot renderer
    - status telemetry      -> `SessionStateMachine`, `ErrorAggregator`, indicators
    - logbook / catalog     -> `Logbook`, `CalibrationFactors`
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Mapping, Optional

from loguru import logger

from daqlink.session.calibration import CalibMode
from daqlink.session.effects import (
    OpenDialog,
    RenderCalibration,
    RenderErrorLog,
    RenderMemory,
    RenderOptions,
    RenderPlot,
    ResetPlots,
    Transition,
    error,
    info,
    success,
)
from daqlink.session.errors import ErrorKind
from daqlink.session.logbook import Presentation, RunKind
from daqlink.session.state_machine import (
    ControlUnitReported,
    HvReported,
)
from daqlink.types import (
    DEFAULT_ALARM_CODE,
    HANDLER_REGISTRY,
    Action,
    Command,
    Envelope,
    HandlerInfo,
    ProtocolDecodeError,
    assert_valid_router,
    decode_json_value,
    decode_option_list,
    decode_series,
    parse_status_code,
    register_handler,
)

if TYPE_CHECKING:
    from daqlink.session.controller import SessionController

Handler = Callable[["SessionController", Envelope], Optional[Transition]]


def handler(action: Action) -> Callable[[Handler], Handler]:
    """Decorator that registers the handler of an inbound action.

    Example:
        @handler(Action.FPGA_HV)
        def handle_fpga_hv(session, envelope):
            ...
    """

    def decorator(func: Handler) -> Handler:
        register_handler(action, func)
        return func

    return decorator


def _status_code(envelope: Envelope) -> int:
    try:
        return parse_status_code(envelope.json_value())
    except (TypeError, ValueError) as e:
        raise ProtocolDecodeError(
            f"'{envelope.action}' carries no status code: {envelope.value!r}"
        ) from e


def _unchanged(session: SessionController, *effects) -> Transition:
    return Transition.unchanged(session.machine.mode, *effects)


# ============================================================================
# Connection / liveness
# ============================================================================


@handler(Action.WATCHDOG)
def handle_watchdog(session: SessionController, envelope: Envelope) -> None:
    session.connection.refresh_liveness()


@handler(Action.CONNECTED)
def handle_connected(session: SessionController, envelope: Envelope) -> Transition:
    code = _status_code(envelope)
    logger.info("Device reports connected, control unit status {}", code)
    return session.machine.apply(ControlUnitReported(code))


# ============================================================================
# Acquisition lifecycle
# ============================================================================


@handler(Action.DAQ_END)
def handle_daq_end(session: SessionController, envelope: Envelope) -> Transition:
    return session.machine.on_device_acquisition_ended()


@handler(Action.SAVE_BACKGROUND)
def handle_save_background(
    session: SessionController, envelope: Envelope
) -> Transition:
    return session.machine.on_background_completed(envelope.text())


@handler(Action.BACKGROUND_FILES_SAVED)
def handle_background_files_saved(
    session: SessionController, envelope: Envelope
) -> Transition:
    return _unchanged(session, success("Background acquisition successfully saved"))


@handler(Action.COUNTERS_RESET_DONE)
def handle_counters_reset_done(
    session: SessionController, envelope: Envelope
) -> Transition:
    return _unchanged(session, ResetPlots())


# ============================================================================
# Live-plot data
# ============================================================================

# action -> (section, channel, kind, loaded from logbook)
_PLOTS = {
    Action.GRAPH_PROFILE_X_INT: ("profile", "x", "int", False),
    Action.GRAPH_PROFILE_X_DIFF: ("profile", "x", "diff", False),
    Action.GRAPH_PROFILE_Y_INT: ("profile", "y", "int", False),
    Action.GRAPH_PROFILE_Y_DIFF: ("profile", "y", "diff", False),
    Action.GRAPH_INT_1: ("integral", "1", "int", False),
    Action.GRAPH_INT_1_DIFF: ("integral", "1", "diff", False),
    Action.GRAPH_INT_2: ("integral", "2", "int", False),
    Action.GRAPH_INT_2_DIFF: ("integral", "2", "diff", False),
    Action.LOAD_INT_1: ("integral", "1", "int", True),
    Action.LOAD_INT_2: ("integral", "2", "int", True),
    Action.LOAD_INT_1_DIFF: ("integral", "1", "diff", True),
    Action.LOAD_INT_2_DIFF: ("integral", "2", "diff", True),
}


def _plot_handler(
    section: str, channel: str, kind: str, loaded: bool
) -> Callable[[SessionController, Envelope], Transition]:
    def handle_plot(session: SessionController, envelope: Envelope) -> Transition:
        data = decode_series(envelope.value)
        return _unchanged(session, RenderPlot(section, channel, kind, data, loaded))

    handle_plot.__name__ = f"handle_{section}_{channel}_{kind}" + ("_loaded" if loaded else "")
    return handle_plot


for _action, _target in _PLOTS.items():
    handler(_action)(_plot_handler(*_target))


# ============================================================================
# Status telemetry
# ============================================================================


@handler(Action.FPGA_HV)
def handle_fpga_hv(session: SessionController, envelope: Envelope) -> Transition:
    return session.machine.apply(HvReported(_status_code(envelope)))


@handler(Action.DEVICE_STATUS)
def handle_device_status(session: SessionController, envelope: Envelope) -> Transition:
    return session.machine.apply(ControlUnitReported(_status_code(envelope)))


@handler(Action.MEMORY_UPDATE)
def handle_memory_update(session: SessionController, envelope: Envelope) -> Transition:
    return _unchanged(session, RenderMemory(decode_series(envelope.value)))


@handler(Action.FPGA_SAMPLING_MODE)
def handle_fpga_sampling_mode(
    session: SessionController, envelope: Envelope
) -> Transition:
    options = decode_option_list(envelope.value)
    if options and not session.machine.settings.sampling_mode:
        session.machine.settings.sampling_mode = options[0]
    return _unchanged(session, RenderOptions("sampling_mode", tuple(options)))


@handler(Action.FPGA_SAMPLING_RATE)
def handle_fpga_sampling_rate(
    session: SessionController, envelope: Envelope
) -> Transition:
    options = decode_option_list(envelope.value)
    if options and not session.machine.settings.sampling_rate:
        session.machine.settings.sampling_rate = options[0]
    return _unchanged(session, RenderOptions("sampling_rate", tuple(options)))


@handler(Action.ERROR_LIST)
def handle_error_list(session: SessionController, envelope: Envelope) -> Transition:
    entries = tuple(r.to_dict() for r in session.aggregator.entries())
    return _unchanged(session, RenderErrorLog(entries))


@handler(Action.MESSAGE)
def handle_message(session: SessionController, envelope: Envelope) -> Transition:
    return _unchanged(session, info(envelope.text()))


@handler(Action.UPDATE_ERROR_LIST)
def handle_update_error_list(
    session: SessionController, envelope: Envelope
) -> Transition:
    code = envelope.type
    message = envelope.value
    if code is None:
        # type may also travel inside the value: {"type": ..., "value": ...}
        obj = decode_json_value(envelope.value)
        if not isinstance(obj, dict) or "type" not in obj:
            raise ProtocolDecodeError("'update_error_list' has no 'type'")
        code, message = obj["type"], obj.get("value", "")
    try:
        code = int(str(code).strip())
    except ValueError as e:
        raise ProtocolDecodeError(f"Error type is not a code: {code!r}") from e
    return session.aggregator.record_report(code, str(message))


@handler(Action.TRIGGER_WARNING)
def handle_trigger_warning(
    session: SessionController, envelope: Envelope
) -> Transition:
    return session.aggregator.record(ErrorKind.WARNING, envelope.text())


@handler(Action.TRIGGER_ERROR)
def handle_trigger_error(session: SessionController, envelope: Envelope) -> Transition:
    return session.aggregator.record(ErrorKind.ERROR, envelope.text(), DEFAULT_ALARM_CODE)


# ============================================================================
# Logbook / file catalog
# ============================================================================


def _calib_list_handler(mode: CalibMode, presentation: Presentation) -> Handler:
    def handle_calib_list(session: SessionController, envelope: Envelope) -> Transition:
        return session.logbook.on_calibration_list(mode, envelope.value, presentation)

    handle_calib_list.__name__ = f"handle_{mode.value}_calib_list_{presentation.value}"
    return handle_calib_list


def _background_list_handler(presentation: Presentation) -> Handler:
    def handle_background_list(
        session: SessionController, envelope: Envelope
    ) -> Transition:
        return session.logbook.on_background_list(envelope.value, presentation)

    handle_background_list.__name__ = f"handle_background_list_{presentation.value}"
    return handle_background_list


def _run_list_handler(kind: RunKind) -> Handler:
    def handle_run_list(session: SessionController, envelope: Envelope) -> Transition:
        return session.logbook.on_run_list(kind, envelope.value)

    handle_run_list.__name__ = f"handle_{kind.value}_run_list"
    return handle_run_list


for _action, _mode, _presentation in (
    (Action.UPDATE_PROFILE_CALIB_LIST, CalibMode.PROFILE, Presentation.MODAL),
    (Action.UPDATE_PROFILE_CALIB_LIST_HIDDEN, CalibMode.PROFILE, Presentation.HIDDEN),
    (Action.UPDATE_PROFILE_CALIB_LIST_INIT, CalibMode.PROFILE, Presentation.INIT),
    (Action.UPDATE_RANGE_CALIB_LIST, CalibMode.RANGE, Presentation.MODAL),
    (Action.UPDATE_RANGE_CALIB_LIST_HIDDEN, CalibMode.RANGE, Presentation.HIDDEN),
    (Action.UPDATE_RANGE_CALIB_LIST_INIT, CalibMode.RANGE, Presentation.INIT),
):
    handler(_action)(_calib_list_handler(_mode, _presentation))

for _action, _presentation in (
    (Action.UPDATE_BACKGROUND_LIST, Presentation.MODAL),
    (Action.UPDATE_BACKGROUND_LIST_HIDDEN, Presentation.HIDDEN),
    (Action.UPDATE_BACKGROUND_LIST_INIT, Presentation.INIT),
):
    handler(_action)(_background_list_handler(_presentation))

for _action, _kind in (
    (Action.PROFILE_RUN_LIST, RunKind.PROFILE),
    (Action.INT_RUN_LIST, RunKind.INTEGRAL),
    (Action.RANGE_RUN_LIST, RunKind.RANGE),
):
    handler(_action)(_run_list_handler(_kind))


def _load_calibration(
    session: SessionController, envelope: Envelope, mode: CalibMode
) -> Transition:
    session.calibration.from_device(envelope.json_object(), mode)
    return _unchanged(
        session, RenderCalibration(mode.value, session.calibration.factors(mode))
    )


@handler(Action.LOAD_PROFILE_CALIB)
def handle_load_profile_calib(
    session: SessionController, envelope: Envelope
) -> Transition:
    return _load_calibration(session, envelope, CalibMode.PROFILE)


@handler(Action.LOAD_RANGE_CALIB)
def handle_load_range_calib(
    session: SessionController, envelope: Envelope
) -> Transition:
    return _load_calibration(session, envelope, CalibMode.RANGE)


@handler(Action.DOWNLOAD_FILES)
def handle_download_files(session: SessionController, envelope: Envelope) -> Transition:
    return _unchanged(session, OpenDialog("download", envelope.text()))


@handler(Action.RUN_SAVED)
def handle_run_saved(session: SessionController, envelope: Envelope) -> Transition:
    return _unchanged(session, success("Run successfully saved"))


@handler(Action.NOTES_FILE_EDITED)
def handle_notes_file_edited(
    session: SessionController, envelope: Envelope
) -> Transition:
    return _unchanged(session, success("Notes file successfully edited"))


@handler(Action.FILE_DELETED)
def handle_file_deleted(session: SessionController, envelope: Envelope) -> Transition:
    return _unchanged(session, error("Data deleted from memory"))


@handler(Action.CALIBRATION_SAVED)
def handle_calibration_saved(
    session: SessionController, envelope: Envelope
) -> Transition:
    return _unchanged(session, success("Calibration successfully saved"))


# ============================================================================

ROUTER: Mapping[Action, HandlerInfo] = MappingProxyType(dict(HANDLER_REGISTRY))


def get_router_map() -> Mapping[Action, HandlerInfo]:
    return ROUTER


class ProtocolDispatcher:
    """Decodes inbound frames and routes them to their handler.

    `dispatch` never raises: malformed frames, unknown actions and handler
    failures are logged and dropped.
    """

    def __init__(
        self,
        session: SessionController,
        router: Optional[Mapping[Action, HandlerInfo]] = None,
    ):
        self._router = ROUTER if router is None else router
        assert_valid_router(self._router)
        self._session = session
        self.discarded = 0

    def _discard(self, reason: str, *args) -> None:
        self.discarded += 1
        logger.warning("Discarded inbound message: " + reason, *args)

    def dispatch(self, raw: str) -> None:
        logger.trace("<- {}", raw)
        try:
            envelope = Envelope.decode(raw)
        except ProtocolDecodeError as e:
            self._discard("{}", e)
            return

        action = Action.lookup(envelope.action)
        if action is None:
            self._discard("unknown action '{}'", envelope.action)
            return

        handler_func = self._router[action].handler_func
        try:
            transition = handler_func(self._session, envelope)
            if transition is not None:
                self._session.execute(transition)
        except ProtocolDecodeError as e:
            self._discard("malformed '{}' payload: {}", action.value, e)
        except Exception:
            logger.exception("Handler for '{}' failed", action.value)

    def encode(self, command: Command) -> str:
        return command.encode()
