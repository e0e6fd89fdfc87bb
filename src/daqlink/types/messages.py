"""Message types for the device link and for UI render requests.

Two kinds of messages live here:

- `Envelope` / `Command`: the JSON text frames exchanged with the device over
  the websocket (`{"action": str, "value": ...}` in both directions).
- `UiNotification` subclasses: render requests published to out-of-process UI
  front-ends over ZeroMQ, serialized with MessagePack (see
  `daqlink.ui.publisher`).
"""

from __future__ import annotations

import pickle
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import simplejson as json
from mashumaro import DataClassDictMixin
from mashumaro.mixins.msgpack import DataClassMessagePackMixin
from mashumaro.types import Discriminator

from .commands import CONSTS

# ============================================================================
# Device link
# ============================================================================


class ProtocolDecodeError(Exception):
    """Inbound frame could not be decoded into something a handler accepts."""

    pass


@dataclass(frozen=True)
class Envelope(DataClassDictMixin):
    """Decoded inbound frame.

    `value` is kept as received: a plain string, a JSON-encoded object in a
    string, a number, a list, a dict or None. Use `json_value()` to get at the
    structured form. `type` is only set by messages that carry it at the top
    level (error-list updates).
    """

    action: str
    value: Any = None
    type: Optional[str] = None

    @classmethod
    def decode(cls, raw: str | bytes) -> "Envelope":
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
            raise ProtocolDecodeError(f"Frame is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ProtocolDecodeError(
                f"Frame must be a JSON object, got {type(data).__name__}"
            )
        action = data.get("action")
        if action is None:
            raise ProtocolDecodeError("Frame has no 'action'")
        if not isinstance(action, str):
            raise ProtocolDecodeError(
                f"'action' must be a string, got {type(action).__name__}"
            )
        msg_type = data.get("type")
        return cls(
            action=action,
            value=data.get("value"),
            type=str(msg_type) if msg_type is not None else None,
        )

    def json_value(self) -> Any:
        """Value with one level of JSON-in-a-string unwrapped."""
        return decode_json_value(self.value)

    def json_object(self) -> dict:
        """Value as a JSON object; raises ProtocolDecodeError otherwise."""
        obj = self.json_value()
        if not isinstance(obj, dict):
            raise ProtocolDecodeError(
                f"'{self.action}' expects an object value, got {type(obj).__name__}"
            )
        return obj

    def text(self) -> str:
        if self.value is None:
            raise ProtocolDecodeError(f"'{self.action}' expects a value")
        return str(self.value)


def decode_json_value(value: Any) -> Any:
    if isinstance(value, (bytes, str)):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def decode_series(value: Any) -> np.ndarray:
    """Numeric series payload -> 1D float array.

    Accepts a JSON list (possibly inside a string), a bare number or a
    comma/whitespace separated string of numbers.
    """
    obj = decode_json_value(value)
    if isinstance(obj, dict):
        obj = obj.get("value", obj.get("data"))
    if isinstance(obj, str):
        tokens = obj.replace(",", " ").split()
        obj = tokens
    if obj is None:
        raise ProtocolDecodeError("Series payload is empty")
    try:
        return np.atleast_1d(np.asarray(obj, dtype=float))
    except (TypeError, ValueError) as e:
        raise ProtocolDecodeError(f"Series payload is not numeric: {e}") from e


def decode_option_list(value: Any) -> list[str]:
    """Option list payload (sampling modes/rates) -> list of labels."""
    obj = decode_json_value(value)
    if isinstance(obj, dict):
        obj = obj.get("list", obj.get("value"))
    if isinstance(obj, (list, tuple)):
        return [str(v) for v in obj]
    if obj is None:
        raise ProtocolDecodeError("Option list payload is empty")
    return [str(obj)]


@dataclass(frozen=True)
class Command:
    """An outbound command, built fresh for every send.

    `payload` is either already a string (sent verbatim as the value) or any
    JSON-serializable object, which is encoded into a JSON string the way the
    device expects nested objects.
    """

    name: str
    payload: Any = None
    channel: str = CONSTS.CHANNEL.DEVICE

    @classmethod
    def logger(cls, name: str, payload: Any = None) -> "Command":
        return cls(name=name, payload=payload, channel=CONSTS.CHANNEL.LOGGER)

    @property
    def is_logger(self) -> bool:
        return self.channel == CONSTS.CHANNEL.LOGGER

    def encode(self) -> str:
        frame: dict[str, Any] = {"action": self.name}
        if self.payload is not None:
            if isinstance(self.payload, str):
                frame["value"] = self.payload
            else:
                frame["value"] = json.dumps(self.payload)
        if self.is_logger:
            frame["channel"] = self.channel
        return json.dumps(frame)


# ============================================================================
# UI render requests (ZeroMQ PUB)
# ============================================================================


@dataclass
class Message(DataClassMessagePackMixin):
    """Base class for published messages."""

    def __repr__(self):
        msg = self.__class__.__name__ + "("
        for i, (fld, val) in enumerate(self.__dict__.items()):
            if i:
                msg += ", "
            if isinstance(val, np.ndarray):
                msg += f"{fld}=<Array>"
            else:
                msg += f"{fld}={val!r}"
        return msg + ")"


@dataclass(kw_only=True, repr=False)
class UiNotification(Message):
    type: str

    class Config:
        discriminator = Discriminator(field="type", include_subtypes=True)


@dataclass(kw_only=True, repr=False)
class NoticeUpdate(UiNotification):
    type: str = "notice"
    level: str
    message: str


@dataclass(kw_only=True, repr=False)
class ConfirmationPrompt(UiNotification):
    """Published for information only; answers are taken by the primary UI."""

    type: str = "confirmation"
    title: str
    message: str


@dataclass(kw_only=True, repr=False)
class IndicatorUpdate(UiNotification):
    type: str = "indicator"
    name: str
    code: Optional[int]


@dataclass(kw_only=True, repr=False)
class ControlsUpdate(UiNotification):
    """Entry/exit affordances of a running acquisition."""

    type: str = "controls"
    controls_enabled: Optional[bool] = None
    sampling_rate_enabled: Optional[bool] = None
    tooltips_enabled: Optional[bool] = None
    loading: Optional[bool] = None
    plots_reset: bool = False


@dataclass(kw_only=True, repr=False)
class RunButtonUpdate(UiNotification):
    type: str = "run_button"
    mode: str
    running: bool


@dataclass(kw_only=True, repr=False)
class PlotUpdate(UiNotification):
    type: str = "plot"
    section: str
    channel: str
    kind: str
    loaded: bool = False
    data: np.ndarray = field(
        metadata={"serialize": pickle.dumps, "deserialize": pickle.loads}
    )


@dataclass(kw_only=True, repr=False)
class MemoryUpdate(UiNotification):
    type: str = "memory"
    data: np.ndarray = field(
        metadata={"serialize": pickle.dumps, "deserialize": pickle.loads}
    )


@dataclass(kw_only=True, repr=False)
class OptionsUpdate(UiNotification):
    type: str = "options"
    name: str
    options: list[str] = field(default_factory=list)


@dataclass(kw_only=True, repr=False)
class FileListUpdate(UiNotification):
    type: str = "file_list"
    catalog: str
    entries: list[dict] = field(default_factory=list)


@dataclass(kw_only=True, repr=False)
class ErrorLogUpdate(UiNotification):
    type: str = "error_log"
    entries: list[dict] = field(default_factory=list)


@dataclass(kw_only=True, repr=False)
class DialogRequest(UiNotification):
    type: str = "dialog"
    dialog: str
    argument: str = ""


@dataclass(kw_only=True, repr=False)
class CalibrationUpdate(UiNotification):
    type: str = "calibration"
    mode: str
    factors: dict[str, list[float]] = field(default_factory=dict)
