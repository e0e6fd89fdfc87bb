"""Calibration factors for the profile (X/Y/INT) and range (Z) modules.

Factors are edited on the client, loaded from the device logbook
(`load_profile_calib` / `load_range_calib`) or uploaded from a text file, and
saved back through the logger channel.

Upload file format
------------------
Tab separated, one header line, then one line per channel::

    ch   X     Y     INT
    1    1.02  0.98  1.00
    2    0.97  1.01  1.03
    3    1.00  1.00

Profile files must have `n_ch_x + 1` lines (and the same for Y); the INT
column is only read on the first two channel lines. Range files have two
columns (`ch`, `Z`) and `n_ch_z + 1` lines. Blank lines are ignored. Any
other shape is rejected before anything is applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from daqlink.types import ProtocolDecodeError, ValidationError

UNRECOGNIZED_FORMAT = "Unrecognized file format"
N_INT_UPLOAD_LINES = 2


class CalibMode(str, Enum):
    PROFILE = "profile"
    RANGE = "range"


@dataclass(frozen=True)
class ChannelGeometry:
    """Channel counts of the configured detector."""

    n_ch_x: int = 0
    n_ch_y: int = 0
    n_ch_z: int = 0
    n_ch_int: int = 0


@dataclass(frozen=True, eq=False)
class CalibrationUpload:
    """Parsed upload; only the arrays of the uploaded mode are filled."""

    mode: CalibMode
    x: np.ndarray = field(default_factory=lambda: np.array([]))
    y: np.ndarray = field(default_factory=lambda: np.array([]))
    integral: np.ndarray = field(default_factory=lambda: np.array([]))
    z: np.ndarray = field(default_factory=lambda: np.array([]))


def _to_float(token: str) -> float:
    try:
        return float(token)
    except ValueError as e:
        raise ValidationError(f"{UNRECOGNIZED_FORMAT}: {token!r} is not a number") from e


def parse_calibration_upload(
    content: str, mode: CalibMode, geometry: ChannelGeometry
) -> CalibrationUpload:
    """Validate and parse an uploaded calibration file.

    Parameters
    ----------
    content : str
        Whole file content.
    mode : CalibMode
        Which module the file is for.
    geometry : ChannelGeometry
        Channel counts the file must match.

    Returns
    -------
    CalibrationUpload

    Raises
    ------
    ValidationError
        Wrong number of lines for the geometry, missing columns or
        non-numeric values.
    """
    lines = [line.rstrip("\r") for line in content.split("\n")]
    lines = [line for line in lines if line.strip()]
    rows = [line.split("\t") for line in lines[1:]]

    if mode is CalibMode.RANGE:
        if len(lines) != geometry.n_ch_z + 1:
            raise ValidationError(
                f"{UNRECOGNIZED_FORMAT}: expected {geometry.n_ch_z + 1} lines, got {len(lines)}"
            )
        if any(len(row) < 2 for row in rows):
            raise ValidationError(f"{UNRECOGNIZED_FORMAT}: missing Z column")
        z = np.array([_to_float(row[1]) for row in rows])
        return CalibrationUpload(mode=mode, z=z)

    if len(lines) != geometry.n_ch_x + 1 or len(lines) != geometry.n_ch_y + 1:
        raise ValidationError(
            f"{UNRECOGNIZED_FORMAT}: expected {geometry.n_ch_x + 1} lines "
            f"(X) and {geometry.n_ch_y + 1} lines (Y), got {len(lines)}"
        )
    if any(len(row) < 3 for row in rows):
        raise ValidationError(f"{UNRECOGNIZED_FORMAT}: missing X/Y columns")
    x = np.array([_to_float(row[1]) for row in rows])
    y = np.array([_to_float(row[2]) for row in rows])
    integral = np.array(
        [
            _to_float(row[3])
            for row in rows[:N_INT_UPLOAD_LINES]
            if len(row) > 3 and row[3].strip()
        ]
    )
    return CalibrationUpload(mode=mode, x=x, y=y, integral=integral)


def _factor_array(values, limit: int) -> np.ndarray:
    arr = np.asarray(values if values is not None else [], dtype=float)
    arr = np.atleast_1d(arr)[:limit]
    # unset or unreadable factors fall back to 1
    return np.where(np.isfinite(arr), arr, 1.0)


class CalibrationFactors:
    """Calibration factors currently shown to the operator."""

    def __init__(self, geometry: ChannelGeometry):
        self.geometry = geometry
        self.x = np.ones(geometry.n_ch_x)
        self.y = np.ones(geometry.n_ch_y)
        self.integral = np.ones(geometry.n_ch_int)
        self.z = np.ones(geometry.n_ch_z)

    def reset(self, mode: CalibMode) -> None:
        """Set all factors of `mode` back to 1."""
        if mode is CalibMode.RANGE:
            self.z = np.ones(self.geometry.n_ch_z)
        else:
            self.x = np.ones(self.geometry.n_ch_x)
            self.y = np.ones(self.geometry.n_ch_y)
            self.integral = np.ones(self.geometry.n_ch_int)

    def _overlay(self, current: np.ndarray, values: np.ndarray) -> np.ndarray:
        out = current.copy()
        n = min(len(out), len(values))
        out[:n] = values[:n]
        return out

    def apply_upload(self, upload: CalibrationUpload) -> None:
        if upload.mode is CalibMode.RANGE:
            self.z = self._overlay(self.z, upload.z)
            return
        self.x = self._overlay(self.x, upload.x)
        self.y = self._overlay(self.y, upload.y)
        self.integral = self._overlay(self.integral, upload.integral)

    def from_device(self, payload: dict, mode: CalibMode) -> None:
        """Apply a `load_profile_calib` / `load_range_calib` payload."""
        if not isinstance(payload, dict):
            raise ProtocolDecodeError("Calibration payload must be an object")
        g = self.geometry
        try:
            if mode is CalibMode.RANGE:
                self.z = self._overlay(self.z, _factor_array(payload.get("Z_calib"), g.n_ch_z))
                return
            self.x = self._overlay(self.x, _factor_array(payload.get("X_calib"), g.n_ch_x))
            self.y = self._overlay(self.y, _factor_array(payload.get("Y_calib"), g.n_ch_y))
            self.integral = self._overlay(
                self.integral, _factor_array(payload.get("INT_calib"), g.n_ch_int)
            )
        except (TypeError, ValueError) as e:
            raise ProtocolDecodeError(f"Calibration payload is not numeric: {e}") from e

    def factors(self, mode: CalibMode) -> dict[str, list[float]]:
        if mode is CalibMode.RANGE:
            return {"Z": self.z.tolist()}
        return {"X": self.x.tolist(), "Y": self.y.tolist(), "INT": self.integral.tolist()}

    def to_save_payload(self, mode: CalibMode, filename: str) -> dict:
        """Body of `log_save_profile_calibration` / `log_save_range_calibration`."""
        if mode is CalibMode.RANGE:
            return {"filename_Z": filename, "Z_calib": self.z.tolist()}
        return {
            "filename": filename,
            "X_calib": self.x.tolist(),
            "Y_calib": self.y.tolist(),
            "INT_calib": self.integral.tolist(),
        }
