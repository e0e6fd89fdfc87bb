"""Session state owned by the `SessionStateMachine`."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from daqlink.types import CU_STATUS, AcqMode, HvStatus, is_alarm


@dataclass
class SessionState:
    acq_mode: AcqMode = AcqMode.IDLE
    cu_status: int = CU_STATUS.UNKNOWN
    hv_status: Optional[HvStatus] = HvStatus.UNKNOWN  # None: no HV module
    camera_status: Optional[int] = None  # None: not a camera variant

    @classmethod
    def initial(cls, has_hv: bool = True, has_camera: bool = False) -> "SessionState":
        return cls(
            hv_status=HvStatus.UNKNOWN if has_hv else None,
            camera_status=CU_STATUS.UNKNOWN if has_camera else None,
        )

    @property
    def alarm(self) -> bool:
        return is_alarm(self.cu_status)

    @property
    def hv_off(self) -> bool:
        return self.hv_status is HvStatus.OFF

    def copy(self) -> "SessionState":
        return replace(self)
