"""
Session logic: acquisition state machine, error aggregation, logbook, calibration.

Everything in this package is free of I/O. Operations return `Transition`
objects (ordered effect lists) which `daqlink.session.controller.SessionController`
executes against the UI and the connection.

The controller is deliberately not imported here; import it from
`daqlink.session.controller`.
"""

from .calibration import (
    CalibMode,
    CalibrationFactors,
    CalibrationUpload,
    ChannelGeometry,
    parse_calibration_upload,
)
from .effects import Confirm, Effect, Notify, SendCommand, Transition
from .errors import ErrorAggregator, ErrorKind, ErrorRecord, compile_log
from .logbook import Logbook, Presentation, RunEntry, RunKind
from .state import SessionState
from .state_machine import (
    HistoryEntry,
    Intent,
    SessionStateMachine,
)

__all__ = [
    "CalibMode",
    "CalibrationFactors",
    "CalibrationUpload",
    "ChannelGeometry",
    "parse_calibration_upload",
    "Confirm",
    "Effect",
    "Notify",
    "SendCommand",
    "Transition",
    "ErrorAggregator",
    "ErrorKind",
    "ErrorRecord",
    "compile_log",
    "Logbook",
    "Presentation",
    "RunEntry",
    "RunKind",
    "SessionState",
    "HistoryEntry",
    "Intent",
    "SessionStateMachine",
]
