"""Detector configuration loaded from INI files."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from daqlink.comms.transport import device_url
from daqlink.session.calibration import ChannelGeometry
from daqlink.types import SettingsIntent
from daqlink.util.defaults import (
    DEFAULT_CONNECT_RECHECK_DELAY,
    DEFAULT_HOST_ADDR,
    DEFAULT_WATCHDOG_TIMEOUT,
    DEFAULT_WS_PORT,
)


class ConfigVersion(str, Enum):
    """Configuration version enumeration.

    Versions:
    - CURRENT: Initial INI format (v1)
    """

    CURRENT = "v1"


CAMERA_VARIANT = "camera"


@dataclass
class DetectorConfig:
    """Detector profile loaded from an INI section.

    Attributes
    ----------
    detector_name : str
        Name of the section the profile was read from
    ws_address : str
        Host name or IP address of the detector control unit
    ws_port : int
        WebSocket port of the control unit
    has_pos, has_rng, has_int : bool
        Profile (X/Y), range (Z) and integral modules fitted
    has_hv : bool
        High voltage supply fitted; gates acquisition starts
    n_ch_x, n_ch_y, n_ch_z, n_ch_int : int
        Channel counts per module
    data_path, calib_path : str
        Device side storage locations, for display only
    variant : str
        Hardware variant, e.g. "camera" (adds a camera indicator)
    watchdog_timeout : float
        Seconds without keepalive before the link is declared lost
    connect_recheck_delay : float
        Seconds between opening the link and checking it once
    """

    detector_name: str
    ws_address: str = DEFAULT_HOST_ADDR
    ws_port: int = DEFAULT_WS_PORT
    has_pos: bool = True
    has_rng: bool = False
    has_int: bool = True
    has_hv: bool = True
    n_ch_x: int = 0
    n_ch_y: int = 0
    n_ch_z: int = 0
    n_ch_int: int = 0
    data_path: str = ""
    calib_path: str = ""
    variant: str = ""
    watchdog_timeout: float = DEFAULT_WATCHDOG_TIMEOUT
    connect_recheck_delay: float = DEFAULT_CONNECT_RECHECK_DELAY

    @property
    def geometry(self) -> ChannelGeometry:
        return ChannelGeometry(
            n_ch_x=self.n_ch_x if self.has_pos else 0,
            n_ch_y=self.n_ch_y if self.has_pos else 0,
            n_ch_z=self.n_ch_z if self.has_rng else 0,
            n_ch_int=self.n_ch_int if self.has_int else 0,
        )

    @property
    def is_camera_variant(self) -> bool:
        return self.variant.lower() == CAMERA_VARIANT

    @property
    def url(self) -> str:
        return device_url(self.ws_address, self.ws_port)

    def default_settings(self) -> SettingsIntent:
        """Initial operator selection; the device fills in the sampling options."""
        return SettingsIntent(enable_profiles=self.has_pos, enable_range=self.has_rng)

    def summary(self) -> dict[str, str]:
        """Flat, printable view (used by the CLI)."""
        modules = [
            name
            for name, fitted in (
                ("profile", self.has_pos),
                ("range", self.has_rng),
                ("integral", self.has_int),
                ("hv", self.has_hv),
            )
            if fitted
        ]
        return {
            "address": self.url,
            "modules": ", ".join(modules) or "-",
            "channels": f"x={self.n_ch_x} y={self.n_ch_y} z={self.n_ch_z} int={self.n_ch_int}",
            "variant": self.variant or "-",
        }
