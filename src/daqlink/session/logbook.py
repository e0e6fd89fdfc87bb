"""Logbook: file catalogs kept by the device and the logger-channel requests.

The device stores runs (profile, integral and range), calibration files and
background files. The client asks for listings (`log_scan_*`), and the device
answers with catalog messages that the dispatcher hands to `Logbook.on_*`.
Every operation returns a `Transition` that leaves the acquisition mode
untouched; destructive operations go through a confirmation first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from loguru import logger

from daqlink.types import CONSTS, AcqMode, Command, ProtocolDecodeError, decode_json_value
from daqlink.util.helpers import sanitize_filename, treat_notes

from .calibration import CalibMode, CalibrationFactors
from .effects import (
    Confirm,
    Effect,
    RenderFileList,
    RenderOptions,
    SendCommand,
    Transition,
    error,
    info,
    warning,
)

SCAN_BLOCKED = "DAQ ongoing. Stop data streaming before!"
NO_FILES_SELECTED = "No files selected"
NO_FILE_SELECTED = "No file selected"
CANCELLED = "Cancelled"
CHANGE_NAME = "Change file name"
NOTES_UNCHANGED = "The notes have not been modified"


class RunKind(str, Enum):
    PROFILE = "profile"
    INTEGRAL = "int"
    RANGE = "range"


class Presentation(str, Enum):
    """How a catalog answer should be shown."""

    MODAL = "modal"  # open the file list
    HIDDEN = "hidden"  # only refresh the stored catalog
    INIT = "init"  # refresh the catalog and the selection controls


@dataclass(frozen=True)
class RunEntry:
    name: str
    notes: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "notes": self.notes}


_RUN_SCANS = {
    RunKind.PROFILE: CONSTS.LOGGER.SCAN_PROFILE_FILES,
    RunKind.INTEGRAL: CONSTS.LOGGER.SCAN_INT_FILES,
    RunKind.RANGE: CONSTS.LOGGER.SCAN_RANGE_FILES,
}
_RUN_DELETES = {
    RunKind.PROFILE: CONSTS.LOGGER.DELETE_PROFILE_FILES,
    RunKind.INTEGRAL: CONSTS.LOGGER.DELETE_INT_FILES,
}
_RUN_DOWNLOADS = {
    RunKind.PROFILE: CONSTS.LOGGER.DOWNLOAD_PROFILE_FILES,
    RunKind.INTEGRAL: CONSTS.LOGGER.DOWNLOAD_INT_FILES,
}
_CALIB_SCANS = {
    CalibMode.PROFILE: CONSTS.LOGGER.SCAN_PROFILE_CALIB_FILES,
    CalibMode.RANGE: CONSTS.LOGGER.SCAN_RANGE_CALIB_FILES,
}
_CALIB_LOADS = {
    CalibMode.PROFILE: CONSTS.LOGGER.LOAD_PROFILE_CALIB_FILE,
    CalibMode.RANGE: CONSTS.LOGGER.LOAD_RANGE_CALIB_FILE,
}
_CALIB_DELETES = {
    CalibMode.PROFILE: CONSTS.LOGGER.DELETE_PROFILE_CALIB_FILE,
    CalibMode.RANGE: CONSTS.LOGGER.DELETE_RANGE_CALIB_FILE,
}
_CALIB_SAVES = {
    CalibMode.PROFILE: CONSTS.LOGGER.SAVE_PROFILE_CALIBRATION,
    CalibMode.RANGE: CONSTS.LOGGER.SAVE_RANGE_CALIBRATION,
}


def parse_run_list(value) -> list[RunEntry]:
    """`{run_list, notes_list}` -> run entries, notes paired by position."""
    obj = decode_json_value(value)
    if not isinstance(obj, dict):
        raise ProtocolDecodeError("Run list payload must be an object")
    names = obj.get("run_list") or []
    notes = obj.get("notes_list") or []
    if not isinstance(names, list) or not isinstance(notes, list):
        raise ProtocolDecodeError("'run_list' and 'notes_list' must be lists")
    return [
        RunEntry(str(name), str(notes[i]) if i < len(notes) else "")
        for i, name in enumerate(names)
    ]


def parse_file_list(value) -> list[str]:
    """`{list: [...]}` -> file names."""
    obj = decode_json_value(value)
    if not isinstance(obj, dict) or not isinstance(obj.get("list"), list):
        raise ProtocolDecodeError("File list payload must be an object with a 'list'")
    return [str(name) for name in obj["list"]]


def _plural(verb: str, names: list[str]) -> str:
    if len(names) > 1:
        return f"Are you sure to {verb} {len(names)} runs?"
    return f"Are you sure to {verb} this run?"


class Logbook:
    """File catalogs and logger-channel requests.

    Parameters
    ----------
    mode : Callable[[], AcqMode]
        Current acquisition mode (scans are refused while running).
    calibration : CalibrationFactors
        Factors saved by `save_calibration`.
    device_address : str
        Host address the device needs to build download links.
    """

    def __init__(
        self,
        mode: Callable[[], AcqMode],
        calibration: CalibrationFactors,
        device_address: str = "",
    ):
        self._mode = mode
        self.calibration = calibration
        self.device_address = device_address
        self.runs: dict[RunKind, list[RunEntry]] = {kind: [] for kind in RunKind}
        self.calibrations: dict[CalibMode, list[str]] = {m: [] for m in CalibMode}
        self.backgrounds: list[str] = []

    def _result(self, *effects: Effect) -> Transition:
        return Transition.unchanged(self._mode(), *effects)

    def _send(self, name: str, payload=None) -> SendCommand:
        return SendCommand(Command.logger(name, payload))

    def _confirmed(
        self, title: str, message: str, on_accept: Callable[[], Transition]
    ) -> Transition:
        return self._result(
            Confirm(
                title,
                message,
                on_accept=on_accept,
                on_decline=lambda: self._result(error(CANCELLED)),
            )
        )

    # ------------------------------------------------------------------------
    # Scans

    def scan_runs(self, kind: RunKind) -> Transition:
        if self._mode() in (AcqMode.ACQUIRING, AcqMode.STREAMING):
            return self._result(warning(SCAN_BLOCKED))
        return self._result(self._send(_RUN_SCANS[kind]))

    def scan_backgrounds(self) -> Transition:
        if self._mode().is_active:
            return self._result(warning(SCAN_BLOCKED))
        return self._result(self._send(CONSTS.LOGGER.SCAN_BACKGROUND_FILES))

    def scan_calibrations(self, mode: CalibMode, hidden: bool = False) -> Transition:
        payload = CONSTS.LOGGER.HIDDEN if hidden else None
        return self._result(self._send(_CALIB_SCANS[mode], payload))

    # ------------------------------------------------------------------------
    # Catalog answers

    def on_run_list(self, kind: RunKind, value) -> Transition:
        entries = parse_run_list(value)
        self.runs[kind] = entries
        logger.debug("{} run catalog: {} entries", kind.value, len(entries))
        return self._result(
            RenderFileList(f"{kind.value}_runs", tuple(e.to_dict() for e in entries))
        )

    def _presented(
        self, catalog: str, names: list[str], presentation: Presentation
    ) -> Transition:
        if presentation is Presentation.MODAL:
            return self._result(
                RenderFileList(catalog, tuple({"name": n} for n in names))
            )
        if presentation is Presentation.INIT:
            return self._result(RenderOptions(catalog, tuple(names)))
        return self._result()

    def on_calibration_list(
        self, mode: CalibMode, value, presentation: Presentation
    ) -> Transition:
        names = parse_file_list(value)
        self.calibrations[mode] = names
        return self._presented(f"{mode.value}_calib", names, presentation)

    def on_background_list(self, value, presentation: Presentation) -> Transition:
        names = parse_file_list(value)
        self.backgrounds = names
        return self._presented("background", names, presentation)

    # ------------------------------------------------------------------------
    # Runs

    def save_run_notes(self, notes: str, errors: str = "") -> Transition:
        body = {"notes": treat_notes(notes), "errors": errors}
        return self._result(self._send(CONSTS.LOGGER.SAVE_NOTES, body))

    def discard_run(self) -> Transition:
        return self._result(
            SendCommand(Command(CONSTS.DEVICE.DELETE_FILE, {"file_list": []}))
        )

    def edit_notes(self, kind: RunKind, name: str, new_notes: str) -> Transition:
        entries = self.runs[kind]
        entry = next((e for e in entries if e.name == name), None)
        if entry is None:
            return self._result(warning(NO_FILE_SELECTED))
        modified = treat_notes(new_notes)
        if modified == entry.notes:
            return self._result(warning(NOTES_UNCHANGED))
        body = {"notes_filename": name, "old_notes": entry.notes, "new_notes": modified}
        self.runs[kind] = [
            RunEntry(e.name, modified) if e.name == name else e for e in entries
        ]
        return self._result(self._send(CONSTS.LOGGER.EDIT_NOTES, body))

    def load_run(
        self, name: str, use_calib: bool = False, calib_file: str = ""
    ) -> Transition:
        body = {
            "data_filename": name,
            "use_calib": "true" if use_calib else "false",
            "calib_file": calib_file,
        }
        return self._result(
            self._send(CONSTS.LOGGER.LOAD_INT_FILE, body),
            warning("Loading run data... Please wait"),
        )

    def delete_runs(self, kind: RunKind, names: Iterable[str]) -> Transition:
        names = list(names)
        if not names:
            return self._result(warning(NO_FILES_SELECTED))
        if kind not in _RUN_DELETES:
            return self._result(warning(f"Deleting {kind.value} runs is not supported"))
        return self._confirmed(
            "Delete?",
            _plural("delete", names),
            lambda: self._result(
                self._send(_RUN_DELETES[kind], {"file_list": names})
            ),
        )

    def download_runs(self, kind: RunKind, names: Iterable[str]) -> Transition:
        names = list(names)
        if not names:
            return self._result(warning(NO_FILES_SELECTED))
        if kind not in _RUN_DOWNLOADS:
            return self._result(
                warning(f"Downloading {kind.value} runs is not supported")
            )
        body = {"file_list": names, "include": "false", "IP_addr": self.device_address}
        return self._confirmed(
            "Download?",
            _plural("download", names),
            lambda: self._result(
                self._send(_RUN_DOWNLOADS[kind], body),
                warning("Preparing download, please wait..."),
            ),
        )

    # ------------------------------------------------------------------------
    # Calibrations

    def save_calibration(self, mode: CalibMode, name: str) -> Transition:
        filename = sanitize_filename(name)
        if not filename:
            return self._result(warning(CHANGE_NAME))

        def _save() -> Transition:
            body = self.calibration.to_save_payload(mode, filename)
            return self._result(self._send(_CALIB_SAVES[mode], body))

        if filename in self.calibrations[mode]:
            return self._result(
                Confirm(
                    "Overwrite?",
                    "A calibration file with the same name is already in memory. "
                    "Proceed saving and overwrite the current file?",
                    on_accept=_save,
                    on_decline=lambda: self._result(error(CHANGE_NAME)),
                )
            )
        return _save()

    def load_calibration(self, mode: CalibMode, filename: Optional[str]) -> Transition:
        if not filename:
            return self._result(warning("No calibration file selected"))
        return self._result(self._send(_CALIB_LOADS[mode], filename))

    def delete_calibration(self, mode: CalibMode, filename: Optional[str]) -> Transition:
        if not filename:
            return self._result(warning(NO_FILE_SELECTED))
        return self._confirmed(
            "Delete?",
            "Are you sure to delete this calibration file?",
            lambda: self._result(self._send(_CALIB_DELETES[mode], filename)),
        )

    # ------------------------------------------------------------------------
    # Backgrounds

    def save_background(self, old_name: str, new_name: str) -> Transition:
        body = {"old_name": old_name, "new_name": new_name}
        send = self._send(CONSTS.LOGGER.RENAME_BACKGROUND, body)
        if new_name in self.backgrounds:
            return self._result(
                Confirm(
                    "Overwrite?",
                    "A background file with the same name is already in memory. "
                    "Proceed saving and overwrite the current file?",
                    on_accept=lambda: self._result(send),
                    on_decline=lambda: self._result(info(CHANGE_NAME)),
                )
            )
        return self._result(send)

    def discard_background(self, filename: str) -> Transition:
        return self._result(
            self._send(CONSTS.LOGGER.DELETE_BACKGROUND, {"filename": filename})
        )

    def delete_background(self, filename: Optional[str]) -> Transition:
        if not filename:
            return self._result(warning(NO_FILE_SELECTED))
        return self._confirmed(
            "Delete?",
            "Are you sure to delete this background file?",
            lambda: self._result(self._send(CONSTS.LOGGER.DELETE_BACKGROUND, filename)),
        )

    def download_background(self, filename: Optional[str]) -> Transition:
        if not filename:
            return self._result(warning(NO_FILE_SELECTED))
        body = {"file_list": [filename], "include": "false", "IP_addr": self.device_address}
        return self._confirmed(
            "Download?",
            "Are you sure to download this background run?",
            lambda: self._result(self._send(CONSTS.LOGGER.DOWNLOAD_BACKGROUND, body)),
        )
