"""Tests for the logbook (catalog scans, run notes, file management)."""

import pytest
import pytest_asyncio
from loguru import logger

import daqlink.util
from daqlink.session.calibration import CalibMode, CalibrationFactors, ChannelGeometry
from daqlink.session.effects import Confirm, SendCommand
from daqlink.session.logbook import (
    CANCELLED,
    CHANGE_NAME,
    NO_FILE_SELECTED,
    NO_FILES_SELECTED,
    NOTES_UNCHANGED,
    SCAN_BLOCKED,
    Logbook,
    Presentation,
    RunEntry,
    RunKind,
    parse_file_list,
    parse_run_list,
)
from daqlink.types import AcqMode, ProtocolDecodeError
from daqlink.util import TEST_LOGLEVEL


class ModeHolder:
    def __init__(self):
        self.mode = AcqMode.IDLE

    def __call__(self):
        return self.mode


@pytest.fixture
def mode():
    return ModeHolder()


@pytest.fixture
def logbook(mode):
    calibration = CalibrationFactors(ChannelGeometry(n_ch_x=2, n_ch_y=2, n_ch_z=2, n_ch_int=1))
    return Logbook(mode=mode, calibration=calibration, device_address="10.0.0.2")


def confirm_of(transition) -> Confirm:
    (confirm,) = transition.of_type(Confirm)
    return confirm


class TestLogbook:
    @pytest_asyncio.fixture(autouse=True, scope="class", loop_scope="class")
    def client_log(self):
        daqlink.util.start_client_log(
            log_level=TEST_LOGLEVEL, log_to_stdout=True, log_to_file=True
        )
        yield
        daqlink.util.shutdown_client_log()

    @pytest_asyncio.fixture(autouse=True, scope="function", loop_scope="class")
    def log(self, request):
        logger.warning("STARTED Test '{}'".format(request.node.originalname))

        def fin():
            logger.warning("COMPLETED Test '{}' \n".format(request.node.originalname))

        request.addfinalizer(fin)

    # ------------------------------------------------------------------------
    # Scans

    @pytest.mark.parametrize(
        "kind, name",
        [
            (RunKind.PROFILE, "log_scan_profile_files"),
            (RunKind.INTEGRAL, "log_scan_int_files"),
            (RunKind.RANGE, "log_scan_range_files"),
        ],
    )
    def test_scan_runs(self, logbook, kind, name):
        t = logbook.scan_runs(kind)
        (command,) = t.commands()
        assert command.name == name
        assert command.is_logger
        assert not t.changed

    @pytest.mark.parametrize("active", [AcqMode.ACQUIRING, AcqMode.STREAMING])
    def test_scans_blocked_while_running(self, logbook, mode, active):
        mode.mode = active
        t = logbook.scan_runs(RunKind.PROFILE)
        assert t.commands() == []
        assert t.notices("warning") == [SCAN_BLOCKED]
        assert logbook.scan_backgrounds().notices("warning") == [SCAN_BLOCKED]

    def test_background_scan_blocked_during_background(self, logbook, mode):
        mode.mode = AcqMode.BACKGROUND_ACQUIRING
        assert logbook.scan_runs(RunKind.PROFILE).command_names() == [
            "log_scan_profile_files"
        ]
        assert logbook.scan_backgrounds().notices("warning") == [SCAN_BLOCKED]

    def test_scan_calibrations(self, logbook):
        (command,) = logbook.scan_calibrations(CalibMode.RANGE).commands()
        assert command.name == "log_scan_range_calib_files"
        assert command.payload is None
        (hidden,) = logbook.scan_calibrations(CalibMode.PROFILE, hidden=True).commands()
        assert hidden.payload == "hidden"

    # ------------------------------------------------------------------------
    # Catalog parsing

    def test_parse_run_list_pairs_notes_by_position(self):
        entries = parse_run_list('{"run_list": ["a", "b", "c"], "notes_list": ["x", "y"]}')
        assert entries == [RunEntry("a", "x"), RunEntry("b", "y"), RunEntry("c", "")]

    def test_parse_run_list_empty(self):
        assert parse_run_list({"run_list": None, "notes_list": None}) == []

    @pytest.mark.parametrize("value", ['"text"', '{"run_list": "a"}', None])
    def test_parse_run_list_rejects(self, value):
        with pytest.raises(ProtocolDecodeError):
            parse_run_list(value)

    def test_parse_file_list(self):
        assert parse_file_list({"list": ["f1", 2]}) == ["f1", "2"]
        with pytest.raises(ProtocolDecodeError):
            parse_file_list('{"list": "f1"}')

    def test_hidden_catalog_renders_nothing(self, logbook):
        t = logbook.on_background_list('{"list": ["b1"]}', Presentation.HIDDEN)
        assert t.effects == []
        assert logbook.backgrounds == ["b1"]

    # ------------------------------------------------------------------------
    # Runs

    def test_save_run_notes(self, logbook):
        (command,) = logbook.save_run_notes("Beam  test é  \r\n", "log\n").commands()
        assert command.name == "log_save_notes"
        assert command.payload == {"notes": "Beam  test e", "errors": "log\n"}

    def test_discard_run(self, logbook):
        (command,) = logbook.discard_run().commands()
        assert command.name == "delete_file"
        assert not command.is_logger
        assert command.payload == {"file_list": []}

    def test_edit_notes(self, logbook):
        logbook.on_run_list(RunKind.PROFILE, {"run_list": ["r1"], "notes_list": ["old"]})
        t = logbook.edit_notes(RunKind.PROFILE, "r1", "new ")
        (command,) = t.commands()
        assert command.name == "log_edit_notes"
        assert command.payload == {
            "notes_filename": "r1",
            "old_notes": "old",
            "new_notes": "new",
        }
        assert logbook.runs[RunKind.PROFILE] == [RunEntry("r1", "new")]

    def test_edit_notes_unchanged(self, logbook):
        logbook.on_run_list(RunKind.INTEGRAL, {"run_list": ["r1"], "notes_list": ["same"]})
        t = logbook.edit_notes(RunKind.INTEGRAL, "r1", "same\n")
        assert t.commands() == []
        assert t.notices("warning") == [NOTES_UNCHANGED]

    def test_edit_notes_unknown_run(self, logbook):
        t = logbook.edit_notes(RunKind.PROFILE, "missing", "x")
        assert t.notices("warning") == [NO_FILE_SELECTED]

    def test_load_run(self, logbook):
        t = logbook.load_run("r1", use_calib=True, calib_file="cal")
        (command,) = t.commands()
        assert command.name == "log_load_int_file"
        assert command.payload == {
            "data_filename": "r1",
            "use_calib": "true",
            "calib_file": "cal",
        }
        assert t.notices("warning") == ["Loading run data... Please wait"]

    def test_delete_runs_confirmed(self, logbook):
        t = logbook.delete_runs(RunKind.PROFILE, ["r1", "r2"])
        assert t.commands() == []
        confirm = confirm_of(t)
        assert confirm.message == "Are you sure to delete 2 runs?"

        (command,) = confirm.on_accept().commands()
        assert command.name == "delete_profile_files"
        assert command.payload == {"file_list": ["r1", "r2"]}
        assert confirm.on_decline().notices("error") == [CANCELLED]

    def test_delete_single_run_wording(self, logbook):
        t = logbook.delete_runs(RunKind.INTEGRAL, ["r1"])
        assert confirm_of(t).message == "Are you sure to delete this run?"
        assert confirm_of(t).on_accept().command_names() == ["delete_int_files"]

    def test_empty_selection(self, logbook):
        assert logbook.delete_runs(RunKind.PROFILE, []).notices("warning") == [
            NO_FILES_SELECTED
        ]
        assert logbook.download_runs(RunKind.PROFILE, []).notices("warning") == [
            NO_FILES_SELECTED
        ]

    def test_range_runs_cannot_be_deleted_or_downloaded(self, logbook):
        t = logbook.delete_runs(RunKind.RANGE, ["r1"])
        assert t.of_type(Confirm) == []
        assert "not supported" in t.notices("warning")[0]
        t = logbook.download_runs(RunKind.RANGE, ["r1"])
        assert "not supported" in t.notices("warning")[0]

    def test_download_runs(self, logbook):
        t = logbook.download_runs(RunKind.INTEGRAL, ["r1"])
        accepted = confirm_of(t).on_accept()
        (command,) = accepted.commands()
        assert command.name == "download_int_files"
        assert command.payload == {
            "file_list": ["r1"],
            "include": "false",
            "IP_addr": "10.0.0.2",
        }
        assert accepted.notices("warning") == ["Preparing download, please wait..."]

    # ------------------------------------------------------------------------
    # Calibrations

    def test_save_calibration_sanitizes_name(self, logbook):
        (command,) = logbook.save_calibration(CalibMode.PROFILE, " my cal ").commands()
        assert command.name == "log_save_profile_calibration"
        assert command.payload["filename"] == "my_cal"
        assert command.payload["INT_calib"] == [1.0]

    def test_save_calibration_empty_name(self, logbook):
        t = logbook.save_calibration(CalibMode.RANGE, "   ")
        assert t.commands() == []
        assert t.notices("warning") == [CHANGE_NAME]

    def test_save_calibration_overwrite(self, logbook):
        logbook.on_calibration_list(CalibMode.RANGE, {"list": ["z_cal"]}, Presentation.MODAL)
        t = logbook.save_calibration(CalibMode.RANGE, "z cal")
        assert t.commands() == []
        confirm = confirm_of(t)
        assert confirm.title == "Overwrite?"
        (command,) = confirm.on_accept().commands()
        assert command.name == "log_save_range_calibration"
        assert command.payload == {"filename_Z": "z_cal", "Z_calib": [1.0, 1.0]}
        assert confirm.on_decline().notices("error") == [CHANGE_NAME]

    def test_load_and_delete_calibration(self, logbook):
        (command,) = logbook.load_calibration(CalibMode.RANGE, "z_cal").commands()
        assert (command.name, command.payload) == ("log_load_range_calib_file", "z_cal")
        assert logbook.load_calibration(CalibMode.RANGE, None).commands() == []

        confirm = confirm_of(logbook.delete_calibration(CalibMode.PROFILE, "cal"))
        (command,) = confirm.on_accept().commands()
        assert (command.name, command.payload) == ("log_delete_profile_calib_file", "cal")
        assert logbook.delete_calibration(CalibMode.PROFILE, "").notices("warning") == [
            NO_FILE_SELECTED
        ]

    # ------------------------------------------------------------------------
    # Backgrounds

    def test_save_background_rename(self, logbook):
        (command,) = logbook.save_background("bkg_tmp", "bkg_day1").commands()
        assert command.name == "log_rename_background"
        assert command.payload == {"old_name": "bkg_tmp", "new_name": "bkg_day1"}

    def test_save_background_overwrite(self, logbook):
        logbook.on_background_list({"list": ["bkg_day1"]}, Presentation.HIDDEN)
        confirm = confirm_of(logbook.save_background("bkg_tmp", "bkg_day1"))
        assert confirm.on_accept().command_names() == ["log_rename_background"]
        assert confirm.on_decline().notices("info") == [CHANGE_NAME]

    def test_discard_background(self, logbook):
        (command,) = logbook.discard_background("bkg_tmp").commands()
        assert command.name == "log_delete_background"
        assert command.payload == {"filename": "bkg_tmp"}

    def test_delete_and_download_background(self, logbook):
        confirm = confirm_of(logbook.delete_background("bkg_1"))
        assert confirm.on_accept().commands()[0].payload == "bkg_1"

        confirm = confirm_of(logbook.download_background("bkg_1"))
        (command,) = confirm.on_accept().commands()
        assert command.name == "log_download_background"
        assert command.payload["file_list"] == ["bkg_1"]

        assert logbook.download_background(None).notices("warning") == [NO_FILE_SELECTED]
        assert all(
            not isinstance(e, SendCommand)
            for e in logbook.delete_background(None).effects
        )
