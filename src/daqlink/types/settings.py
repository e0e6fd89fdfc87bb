"""Acquisition settings sent with every start command.

`SettingsIntent` is the mutable, user-editable selection (what the controls
currently show). It is never sent as is: every start builds a fresh, frozen
`AcquisitionSettings` snapshot with the run timestamp filled in.

The device expects every field as a string (booleans as "true"/"false"), so
the wire form is produced by `AcquisitionSettings.to_payload()`.

Examples
--------
```python
intent = SettingsIntent(enable_profiles=True, enable_range=False)
intent.sampling_rate = "1000"
snap = intent.snapshot(datetime.now())
payload = snap.to_payload()   # {"sampling_rate": "1000", ..., "use_bkg": "false"}
```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from mashumaro import DataClassDictMixin

from daqlink.util.helpers import format_run_datetime

from .status import SAMPLING_MODE_MANUAL

BKG_SAMPLING_RATE = "100"
BKG_SAMPLING_MODE = "0"
BKG_FIRST_CHANNEL = "1"


def _bool_to_wire(value: bool) -> str:
    return "true" if value else "false"


def _bool_from_wire(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


_WIRE_BOOL = {"serialize": _bool_to_wire, "deserialize": _bool_from_wire}


@dataclass(frozen=True)
class AcquisitionSettings(DataClassDictMixin):
    """Immutable per-send snapshot of the acquisition settings."""

    sampling_rate: str
    sampling_mode: str
    first_channel: str
    use_pos_calib: bool = field(default=False, metadata=_WIRE_BOOL)
    pos_calib_filename: str = ""
    use_rng_calib: bool = field(default=False, metadata=_WIRE_BOOL)
    rng_calib_filename: str = ""
    use_bkg: bool = field(default=False, metadata=_WIRE_BOOL)
    bkg_filename: str = ""
    enable_range: bool = field(default=False, metadata=_WIRE_BOOL)
    enable_profiles: bool = field(default=False, metadata=_WIRE_BOOL)
    datetime: str = ""

    def to_payload(self) -> dict[str, str]:
        return self.to_dict()

    @classmethod
    def background(
        cls, when: datetime, enable_profiles: bool, enable_range: bool
    ) -> "AcquisitionSettings":
        """Fixed settings of a background acquisition; no calibration applied."""
        return cls(
            sampling_rate=BKG_SAMPLING_RATE,
            sampling_mode=BKG_SAMPLING_MODE,
            first_channel=BKG_FIRST_CHANNEL,
            enable_profiles=enable_profiles,
            enable_range=enable_range,
            datetime=format_run_datetime(when),
        )


@dataclass
class SettingsIntent:
    """Current user selection for foreground runs."""

    sampling_rate: str = ""
    sampling_mode: str = ""
    first_channel: str = ""
    use_pos_calib: bool = False
    pos_calib_filename: str = ""
    use_rng_calib: bool = False
    rng_calib_filename: str = ""
    use_bkg: bool = False
    bkg_filename: str = ""
    enable_profiles: bool = False
    enable_range: bool = False

    @property
    def sampling_rate_selectable(self) -> bool:
        return self.sampling_mode == SAMPLING_MODE_MANUAL

    def select_pos_calibration(self, filename: str) -> None:
        self.pos_calib_filename = filename
        if not filename:
            self.use_pos_calib = False

    def select_rng_calibration(self, filename: str) -> None:
        self.rng_calib_filename = filename
        if not filename:
            self.use_rng_calib = False

    def select_background(self, filename: str) -> None:
        self.bkg_filename = filename
        if not filename:
            self.use_bkg = False

    def snapshot(self, when: datetime) -> AcquisitionSettings:
        return AcquisitionSettings(
            sampling_rate=self.sampling_rate,
            sampling_mode=self.sampling_mode,
            first_channel=self.first_channel,
            use_pos_calib=self.use_pos_calib and bool(self.pos_calib_filename),
            pos_calib_filename=self.pos_calib_filename,
            use_rng_calib=self.use_rng_calib and bool(self.rng_calib_filename),
            rng_calib_filename=self.rng_calib_filename,
            use_bkg=self.use_bkg and bool(self.bkg_filename),
            bkg_filename=self.bkg_filename,
            enable_range=self.enable_range,
            enable_profiles=self.enable_profiles,
            datetime=format_run_datetime(when),
        )

    def background_snapshot(self, when: datetime) -> AcquisitionSettings:
        return AcquisitionSettings.background(
            when, enable_profiles=self.enable_profiles, enable_range=self.enable_range
        )
