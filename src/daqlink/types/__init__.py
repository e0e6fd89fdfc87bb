"""
Message types, status codes, settings and collaborator protocols.

The daqlink.types package forms the vocabulary shared by the rest of daqlink:

1. Device link
    - `Action`: closed catalog of inbound message kinds
    - `CONSTS`: outbound command names, per channel
    - `Envelope` / `Command`: decoded inbound and encoded outbound frames

2. Session vocabulary
    - `AcqMode`, `HvStatus`, `CU_STATUS`: acquisition mode and status codes
    - `AcquisitionSettings` / `SettingsIntent`: start-command payloads

3. Presentation
    - `SessionUI` / `RenderSink`: protocols the front-ends implement
    - `UiNotification` subclasses: render requests published over ZeroMQ

4. Validation
    - `HANDLER_REGISTRY` and the dispatch-table checks

Examples
--------
Decoding an inbound frame:
```python
from daqlink.types import Action, Envelope
env = Envelope.decode('{"action": "fpga_hv", "value": "1"}')
assert Action.lookup(env.action) is Action.FPGA_HV
```

Building an outbound command:
```python
from daqlink.types import CONSTS, Command
Command(CONSTS.DEVICE.MEASURE_STOP).encode()  # '{"action": "measure_stop"}'
```

See Also
--------
daqlink.comms : Connection and dispatch
daqlink.session : State machine and error aggregation
"""

from __future__ import annotations

from .commands import CONSTS, Action, ActionFamily, action_family
from .messages import (
    CalibrationUpdate,
    Command,
    ConfirmationPrompt,
    ControlsUpdate,
    DialogRequest,
    Envelope,
    ErrorLogUpdate,
    FileListUpdate,
    IndicatorUpdate,
    MemoryUpdate,
    Message,
    NoticeUpdate,
    OptionsUpdate,
    PlotUpdate,
    ProtocolDecodeError,
    RunButtonUpdate,
    UiNotification,
    decode_json_value,
    decode_option_list,
    decode_series,
)
from .protocols import (
    CatalogRenderer,
    ControlsRenderer,
    NoticeRenderer,
    PlotRenderer,
    RenderSink,
    SessionUI,
    StatusRenderer,
)
from .settings import AcquisitionSettings, SettingsIntent
from .status import (
    CU_STATUS,
    DEFAULT_ALARM_CODE,
    SAMPLING_MODE_MANUAL,
    WARNING_CODE,
    AcqMode,
    HvStatus,
    is_alarm,
    parse_status_code,
)
from .validation import (
    HANDLER_REGISTRY,
    HandlerInfo,
    ValidationError,
    assert_valid_router,
    register_handler,
    validate_router_exhaustive,
)


# Exceptions
class CommsError(Exception):
    """Base exception for communication errors."""

    pass


class DeviceAlarm(Exception):
    """The device reported an error condition on the control unit.

    Carries the reported alarm code. The session loop escalates alarms itself
    (`daqlink.session.errors`); `SessionController.raise_for_alarm` turns the
    alarm state into this exception for scripts and the CLI.
    """

    def __init__(self, message, code=DEFAULT_ALARM_CODE):
        super().__init__(message)
        self.code = code


__all__ = [
    "CONSTS",
    "Action",
    "ActionFamily",
    "action_family",
    "Command",
    "Envelope",
    "Message",
    "UiNotification",
    "NoticeUpdate",
    "ConfirmationPrompt",
    "IndicatorUpdate",
    "ControlsUpdate",
    "RunButtonUpdate",
    "PlotUpdate",
    "MemoryUpdate",
    "OptionsUpdate",
    "FileListUpdate",
    "ErrorLogUpdate",
    "CalibrationUpdate",
    "DialogRequest",
    "decode_json_value",
    "decode_option_list",
    "decode_series",
    "NoticeRenderer",
    "StatusRenderer",
    "ControlsRenderer",
    "PlotRenderer",
    "CatalogRenderer",
    "RenderSink",
    "SessionUI",
    "AcquisitionSettings",
    "SettingsIntent",
    "AcqMode",
    "HvStatus",
    "CU_STATUS",
    "DEFAULT_ALARM_CODE",
    "SAMPLING_MODE_MANUAL",
    "WARNING_CODE",
    "is_alarm",
    "parse_status_code",
    "HANDLER_REGISTRY",
    "HandlerInfo",
    "assert_valid_router",
    "register_handler",
    "validate_router_exhaustive",
    "CommsError",
    "DeviceAlarm",
    "ProtocolDecodeError",
    "ValidationError",
]
