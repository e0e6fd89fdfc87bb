"""Acquisition modes and status codes reported by the device."""

from __future__ import annotations

import types
from enum import Enum, IntEnum
from typing import Optional


class AcqMode(str, Enum):
    """Acquisition mode of the session."""

    IDLE = "idle"
    ACQUIRING = "acquiring"
    STREAMING = "streaming"
    DEVICE_SPECIFIC = "device_specific"
    BACKGROUND_ACQUIRING = "background_acquiring"

    @property
    def is_active(self) -> bool:
        return self is not AcqMode.IDLE


class HvStatus(IntEnum):
    OFF = 0
    ON_IN_RANGE = 1
    OUT_OF_RANGE = 2
    UNKNOWN = 99

    @classmethod
    def from_code(cls, code: int) -> "HvStatus":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


# control unit / camera status: 0 ok, 99 unknown, anything else is an alarm code
CU_STATUS = types.SimpleNamespace()
CU_STATUS.OK = 0
CU_STATUS.UNKNOWN = 99

# `update_error_list` type code for warnings; anything else is an error
WARNING_CODE = 99
# alarm code used when the device raises an error without one
DEFAULT_ALARM_CODE = 1

# sampling mode in which the rate is user selectable
SAMPLING_MODE_MANUAL = "0"


def is_alarm(code: Optional[int]) -> bool:
    """Whether a control-unit status code blocks starting an acquisition."""
    return code is not None and code not in (CU_STATUS.OK, CU_STATUS.UNKNOWN)


def parse_status_code(value) -> int:
    """Status payloads arrive as ints, numeric strings or `{"type": ...}`."""
    if isinstance(value, dict):
        value = value.get("type", value.get("value"))
    if isinstance(value, bool):
        raise ValueError(f"Not a status code: {value!r}")
    return int(str(value).strip())
