"""Inbound action catalog and outbound command names.

Inbound messages are identified by `Action`, a closed string enum. Every member
must have exactly one handler registered in `daqlink.comms.dispatcher`; the
dispatcher refuses to start otherwise (see `daqlink.types.validation`).

Outbound command names are grouped on `CONSTS` by channel, the way the device
firmware groups them: `CONSTS.DEVICE` for the acquisition channel and
`CONSTS.LOGGER` for the logbook/file-catalog sub-channel.
"""

from __future__ import annotations

import types
from enum import Enum


class ActionFamily(str, Enum):
    CONNECTION = "connection"
    LIFECYCLE = "lifecycle"
    PLOT = "plot"
    STATUS = "status"
    LOGBOOK = "logbook"


class Action(str, Enum):
    # ---- connection / liveness
    WATCHDOG = "watchdog"
    CONNECTED = "connected"
    # ---- acquisition lifecycle
    DAQ_END = "DAQ_end"
    SAVE_BACKGROUND = "save_background"
    BACKGROUND_FILES_SAVED = "background_files_saved"
    COUNTERS_RESET_DONE = "counters_reset_done"
    # ---- live-plot data
    GRAPH_PROFILE_X_INT = "graph_profile_x_int"
    GRAPH_PROFILE_X_DIFF = "graph_profile_x_diff"
    GRAPH_PROFILE_Y_INT = "graph_profile_y_int"
    GRAPH_PROFILE_Y_DIFF = "graph_profile_y_diff"
    GRAPH_INT_1 = "graph_int_1"
    GRAPH_INT_1_DIFF = "graph_int_1_diff"
    GRAPH_INT_2 = "graph_int_2"
    GRAPH_INT_2_DIFF = "graph_int_2_diff"
    LOAD_INT_1 = "load_int_1"
    LOAD_INT_2 = "load_int_2"
    LOAD_INT_1_DIFF = "load_int_1_diff"
    LOAD_INT_2_DIFF = "load_int_2_diff"
    # ---- status telemetry
    FPGA_HV = "fpga_hv"
    DEVICE_STATUS = "device_status"
    MEMORY_UPDATE = "memory_update"
    FPGA_SAMPLING_MODE = "fpga_sampling_mode"
    FPGA_SAMPLING_RATE = "fpga_sampling_rate"
    ERROR_LIST = "error_list"
    MESSAGE = "message"
    UPDATE_ERROR_LIST = "update_error_list"
    TRIGGER_WARNING = "trigger_warning"
    TRIGGER_ERROR = "trigger_error"
    # ---- logbook / file catalog
    UPDATE_PROFILE_CALIB_LIST = "update_profile_calib_list"
    UPDATE_PROFILE_CALIB_LIST_HIDDEN = "update_profile_calib_list_hidden"
    UPDATE_PROFILE_CALIB_LIST_INIT = "update_profile_calib_list_init"
    UPDATE_RANGE_CALIB_LIST = "update_range_calib_list"
    UPDATE_RANGE_CALIB_LIST_HIDDEN = "update_range_calib_list_hidden"
    UPDATE_RANGE_CALIB_LIST_INIT = "update_range_calib_list_init"
    LOAD_PROFILE_CALIB = "load_profile_calib"
    LOAD_RANGE_CALIB = "load_range_calib"
    UPDATE_BACKGROUND_LIST = "update_background_list"
    UPDATE_BACKGROUND_LIST_HIDDEN = "update_background_list_hidden"
    UPDATE_BACKGROUND_LIST_INIT = "update_background_list_init"
    PROFILE_RUN_LIST = "profile_run_list"
    INT_RUN_LIST = "int_run_list"
    RANGE_RUN_LIST = "range_run_list"
    DOWNLOAD_FILES = "download_files"
    RUN_SAVED = "run_saved"
    NOTES_FILE_EDITED = "notes_file_edited"
    FILE_DELETED = "file_deleted"
    CALIBRATION_SAVED = "calibration_saved"

    @classmethod
    def lookup(cls, action: str) -> "Action | None":
        try:
            return cls(action)
        except ValueError:
            return None


_FAMILY_PREFIXES: tuple[tuple[ActionFamily, tuple[Action, ...]], ...] = (
    (ActionFamily.CONNECTION, (Action.WATCHDOG, Action.CONNECTED)),
    (
        ActionFamily.LIFECYCLE,
        (
            Action.DAQ_END,
            Action.SAVE_BACKGROUND,
            Action.BACKGROUND_FILES_SAVED,
            Action.COUNTERS_RESET_DONE,
        ),
    ),
    (
        ActionFamily.STATUS,
        (
            Action.FPGA_HV,
            Action.DEVICE_STATUS,
            Action.MEMORY_UPDATE,
            Action.FPGA_SAMPLING_MODE,
            Action.FPGA_SAMPLING_RATE,
            Action.ERROR_LIST,
            Action.MESSAGE,
            Action.UPDATE_ERROR_LIST,
            Action.TRIGGER_WARNING,
            Action.TRIGGER_ERROR,
        ),
    ),
)


def action_family(action: Action) -> ActionFamily:
    for family, members in _FAMILY_PREFIXES:
        if action in members:
            return family
    if action.value.startswith(("graph_", "load_int_")):
        return ActionFamily.PLOT
    return ActionFamily.LOGBOOK


# ----------------------------------------------------------------------------
# Outbound
# ----------------------------------------------------------------------------

CONSTS = types.SimpleNamespace()

CONSTS.CHANNEL = types.SimpleNamespace()
CONSTS.CHANNEL.DEVICE = "device"
CONSTS.CHANNEL.LOGGER = "logger"

CONSTS.DEVICE = types.SimpleNamespace()
CONSTS.DEVICE.UPDATE_CONFIG = "updateConfig"
CONSTS.DEVICE.MEASURE_START = "measure_start"
CONSTS.DEVICE.MEASURE_STOP = "measure_stop"
CONSTS.DEVICE.BKG_MEASURE_START = "bkg_measure_start"
CONSTS.DEVICE.START_DATA_STREAM = "start_data_stream"
CONSTS.DEVICE.RESET_ALARMS = "reset_alarms"
CONSTS.DEVICE.RESET_COUNTERS = "reset_counters"
CONSTS.DEVICE.DELETE_FILE = "delete_file"
CONSTS.DEVICE.INIT = "init"
CONSTS.DEVICE.RESTART = "restart"

CONSTS.LOGGER = types.SimpleNamespace()
CONSTS.LOGGER.SCAN_PROFILE_FILES = "log_scan_profile_files"
CONSTS.LOGGER.SCAN_INT_FILES = "log_scan_int_files"
CONSTS.LOGGER.SCAN_RANGE_FILES = "log_scan_range_files"
CONSTS.LOGGER.SCAN_BACKGROUND_FILES = "log_scan_background_files"
CONSTS.LOGGER.SCAN_PROFILE_CALIB_FILES = "log_scan_profile_calib_files"
CONSTS.LOGGER.SCAN_RANGE_CALIB_FILES = "log_scan_range_calib_files"
CONSTS.LOGGER.SAVE_NOTES = "log_save_notes"
CONSTS.LOGGER.EDIT_NOTES = "log_edit_notes"
CONSTS.LOGGER.LOAD_INT_FILE = "log_load_int_file"
CONSTS.LOGGER.DELETE_BACKGROUND = "log_delete_background"
CONSTS.LOGGER.RENAME_BACKGROUND = "log_rename_background"
CONSTS.LOGGER.DOWNLOAD_BACKGROUND = "log_download_background"
CONSTS.LOGGER.DELETE_PROFILE_CALIB_FILE = "log_delete_profile_calib_file"
CONSTS.LOGGER.DELETE_RANGE_CALIB_FILE = "log_delete_range_calib_file"
CONSTS.LOGGER.LOAD_PROFILE_CALIB_FILE = "log_load_profile_calib_file"
CONSTS.LOGGER.LOAD_RANGE_CALIB_FILE = "log_load_range_calib_file"
CONSTS.LOGGER.SAVE_PROFILE_CALIBRATION = "log_save_profile_calibration"
CONSTS.LOGGER.SAVE_RANGE_CALIBRATION = "log_save_range_calibration"
CONSTS.LOGGER.DELETE_PROFILE_FILES = "delete_profile_files"
CONSTS.LOGGER.DELETE_INT_FILES = "delete_int_files"
CONSTS.LOGGER.DOWNLOAD_PROFILE_FILES = "download_profile_files"
CONSTS.LOGGER.DOWNLOAD_INT_FILES = "download_int_files"
CONSTS.LOGGER.HIDDEN = "hidden"
