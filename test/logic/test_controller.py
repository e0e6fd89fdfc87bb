"""Session integration tests: fake transport, virtual time, recording UI."""

import io

import pytest
import pytest_asyncio
from loguru import logger
from rich.console import Console

import daqlink.util
from daqlink.comms.connection_manager import CONNECTION_ERROR, LinkState
from daqlink.session.calibration import UNRECOGNIZED_FORMAT, CalibMode
from daqlink.session.logbook import SCAN_BLOCKED, RunKind
from daqlink.session.state_machine import (
    ALARM_NOTICE,
    DISCONNECT_DAQ_NOTICE,
    HV_CONFIRM_TITLE,
)
from daqlink.types import AcqMode, DeviceAlarm
from daqlink.ui import ConsoleUI
from daqlink.util import TEST_LOGLEVEL

PROFILE_UPLOAD = "ch\tX\tY\tINT\n1\t1.1\t0.9\t1.2\n2\t1\t1\t1.3\n3\t1\t1\n4\t1\t1\n"


class TestSessionController:
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
    # Lifecycle

    def test_start_when_connected_requests_init(self, make_rig):
        rig = make_rig(connected=False)
        rig.transport.fire_open()
        rig.session.start()
        assert rig.transport.open_calls == 1
        assert rig.transport.frames() == [{"action": "updateConfig", "value": "init"}]

    def test_start_waits_for_late_connection(self, make_rig):
        rig = make_rig(connected=False)
        rig.session.start()
        rig.scheduler.advance(0.5)
        rig.transport.fire_open()
        assert rig.transport.sent == []
        rig.scheduler.advance(1.0)
        assert rig.transport.actions() == ["updateConfig"]
        assert rig.ui.notices("error") == []

    def test_unreachable_device(self, make_rig):
        rig = make_rig(connected=False)
        rig.session.start()
        rig.scheduler.advance(1.2)
        assert rig.transport.sent == []
        assert rig.ui.notices("error") == [CONNECTION_ERROR]
        assert rig.ui.args_of("set_indicator") == [("cu", 99), ("hv", 99)]

    def test_stop_closes_transport(self, make_rig):
        rig = make_rig()
        rig.session.stop()
        assert rig.transport.closed
        assert not rig.session.connection.is_connected()

    def test_operations_refused_when_disconnected(self, make_rig):
        rig = make_rig()
        rig.transport.fire_close()
        rig.ui.clear()
        assert not rig.session.toggle_acquisition()
        assert not rig.session.scan_runs(RunKind.PROFILE)
        assert rig.ui.notices("error") == [CONNECTION_ERROR, CONNECTION_ERROR]
        assert rig.transport.sent == []
        assert rig.session.machine.mode is AcqMode.IDLE

    # ------------------------------------------------------------------------
    # Acquisition

    def test_acquisition_round_trip(self, make_rig):
        rig = make_rig()
        assert rig.session.toggle_acquisition()
        assert rig.session.machine.mode is AcqMode.ACQUIRING
        start = rig.transport.frame_for("measure_start")
        assert start["value"]["enable_profiles"] == "true"
        assert start["value"]["datetime"] == "2024-01-01_12-00-00"

        rig.session.toggle_acquisition()
        assert rig.transport.actions() == ["measure_start", "measure_stop"]
        assert rig.ui.args_of("open_dialog") == [("run_save", "")]

    def test_hv_off_start_confirmed(self, make_rig):
        rig = make_rig(answer=True)
        rig.transport.fire_message("fpga_hv", 0)
        rig.session.toggle_streaming()
        ((title, message),) = rig.ui.args_of("confirm")
        assert title == HV_CONFIRM_TITLE
        assert "data streaming" in message
        assert rig.transport.actions() == ["start_data_stream"]
        assert rig.session.machine.mode is AcqMode.STREAMING

    def test_hv_off_start_declined(self, make_rig):
        rig = make_rig(answer=False)
        rig.transport.fire_message("fpga_hv", 0)
        rig.session.record_background()
        assert rig.transport.sent == []
        assert rig.ui.notices("error") == ["Aborted"]
        assert rig.session.machine.mode is AcqMode.IDLE

    def test_confirmation_rechecks_gate(self, make_rig):
        rig = make_rig(answer=None)
        rig.transport.fire_message("fpga_hv", 0)
        rig.session.toggle_acquisition()
        assert len(rig.ui.pending) == 1

        rig.transport.fire_message("device_status", '{"type": 3}')
        rig.ui.answer_pending(True)
        assert rig.transport.sent == []
        assert rig.ui.notices("error") == [ALARM_NOTICE]
        assert rig.session.machine.mode is AcqMode.IDLE

    def test_observers_see_confirmations(self, make_rig, make_ui):
        observer = make_ui()
        rig = make_rig(observers=[observer])
        rig.transport.fire_message("fpga_hv", 0)
        rig.session.toggle_acquisition()
        assert observer.names()[:2] == ["set_indicator", "show_confirmation"]
        assert "confirm" not in observer.names()

    def test_device_error_stops_run_and_reset_alarms_clears_log(self, make_rig):
        rig = make_rig()
        rig.session.toggle_acquisition()
        rig.transport.fire_message("trigger_error", "Overcurrent")
        assert rig.session.machine.state.alarm
        rig.session.toggle_acquisition()
        assert rig.ui.notices("error")[-1] == ALARM_NOTICE
        assert rig.session.machine.mode is AcqMode.IDLE
        with pytest.raises(DeviceAlarm) as excinfo:
            rig.session.raise_for_alarm()
        assert excinfo.value.code == 1
        assert "Overcurrent" in str(excinfo.value)

        rig.transport.sent.clear()
        assert rig.session.reset_alarms()
        assert rig.transport.actions() == ["reset_alarms"]
        assert rig.session.aggregator.entries() == ()
        assert not rig.session.machine.state.alarm
        rig.session.raise_for_alarm()
        assert rig.session.toggle_acquisition()

    def test_reset_counters_while_streaming(self, make_rig):
        rig = make_rig()
        rig.session.toggle_streaming()
        rig.transport.sent.clear()
        rig.session.reset_counters()
        assert rig.transport.frames() == [{"action": "reset_counters", "value": "restart"}]

    def test_liveness_loss_and_recovery(self, make_rig):
        rig = make_rig()
        rig.session.toggle_acquisition()
        rig.ui.clear()
        rig.transport.sent.clear()

        rig.scheduler.advance(5.1)
        assert rig.session.machine.mode is AcqMode.IDLE
        assert rig.ui.notices("error") == [DISCONNECT_DAQ_NOTICE]
        assert ("cu", 99) in rig.ui.args_of("set_indicator")
        assert ("hv", 99) in rig.ui.args_of("set_indicator")
        assert rig.transport.sent == []

        rig.transport.fire_message("watchdog")
        assert rig.ui.notices("success") == ["Connection restored"]
        assert rig.transport.actions() == ["updateConfig"]

    def test_telemetry_without_keepalive_loses_link(self, make_rig):
        rig = make_rig()
        rig.session.toggle_acquisition()
        rig.ui.clear()

        for _ in range(10):
            rig.scheduler.advance(1.0)
            rig.transport.fire_message("memory_update", "[10, 20, 30]")
        assert rig.session.connection.state is LinkState.DISCONNECTED
        assert rig.session.machine.mode is AcqMode.IDLE
        assert rig.ui.notices("error") == [DISCONNECT_DAQ_NOTICE]
        assert ("cu", 99) in rig.ui.args_of("set_indicator")
        assert ("hv", 99) in rig.ui.args_of("set_indicator")

    # ------------------------------------------------------------------------
    # Logbook

    def test_save_run_includes_error_log(self, make_rig):
        rig = make_rig()
        rig.session.toggle_acquisition()
        rig.transport.fire_message("trigger_warning", "Fan speed low")
        rig.session.toggle_acquisition()
        rig.transport.sent.clear()

        rig.session.save_run("Beam test")
        notes = rig.transport.frame_for("log_save_notes")
        assert notes["value"] == {
            "notes": "Beam test",
            "errors": "2024-01-01 12:00:00 WARNING: Fan speed low\n",
        }

    def test_discard_run(self, make_rig):
        rig = make_rig()
        rig.session.discard_run()
        assert rig.transport.frame_for("delete_file")["value"] == {"file_list": []}

    def test_scan_blocked_while_streaming(self, make_rig):
        rig = make_rig()
        rig.session.toggle_streaming()
        rig.transport.sent.clear()
        rig.session.scan_runs(RunKind.INTEGRAL)
        assert rig.transport.sent == []
        assert rig.ui.notices("warning") == [SCAN_BLOCKED]

    def test_delete_runs_after_confirmation(self, make_rig):
        rig = make_rig()
        rig.session.delete_runs(RunKind.PROFILE, ["r1"])
        assert rig.ui.args_of("confirm") == [("Delete?", "Are you sure to delete this run?")]
        frame = rig.transport.frame_for("delete_profile_files")
        assert frame["channel"] == "logger"
        assert frame["value"] == {"file_list": ["r1"]}

    def test_save_calibration_uses_current_factors(self, make_rig):
        rig = make_rig()
        assert rig.session.upload_calibration(PROFILE_UPLOAD, CalibMode.PROFILE)
        rig.session.save_calibration(CalibMode.PROFILE, "cal 1")
        frame = rig.transport.frame_for("log_save_profile_calibration")
        assert frame["value"]["filename"] == "cal_1"
        assert frame["value"]["X_calib"] == [1.1, 1.0, 1.0, 1.0]
        assert frame["value"]["INT_calib"] == [1.2, 1.3]

    # ------------------------------------------------------------------------
    # Calibration

    def test_upload_calibration(self, make_rig):
        rig = make_rig(connected=False)
        assert rig.session.upload_calibration(PROFILE_UPLOAD, CalibMode.PROFILE)
        ((mode, factors),) = rig.ui.args_of("show_calibration")
        assert mode == "profile"
        assert factors["Y"] == [0.9, 1.0, 1.0, 1.0]

    def test_upload_calibration_rejected(self, make_rig):
        rig = make_rig()
        assert not rig.session.upload_calibration("ch\tZ\n1\t2\n", CalibMode.RANGE)
        assert rig.ui.notices("warning") == [UNRECOGNIZED_FORMAT]
        assert rig.session.calibration.factors(CalibMode.RANGE) == {"Z": [1.0, 1.0, 1.0]}

    def test_reset_calibration(self, make_rig):
        rig = make_rig(answer=True)
        rig.session.upload_calibration(PROFILE_UPLOAD, CalibMode.PROFILE)
        rig.ui.clear()
        rig.session.reset_calibration(CalibMode.PROFILE)
        assert rig.ui.names() == ["confirm", "show_calibration"]
        assert rig.session.calibration.factors(CalibMode.PROFILE)["X"] == [1.0] * 4

    def test_reset_calibration_declined(self, make_rig):
        rig = make_rig(answer=False)
        rig.session.upload_calibration(PROFILE_UPLOAD, CalibMode.PROFILE)
        rig.ui.clear()
        rig.session.reset_calibration(CalibMode.PROFILE)
        assert rig.ui.notices("error") == ["Aborted"]
        assert rig.session.calibration.factors(CalibMode.PROFILE)["X"][0] == 1.1


class TestConsoleUI:
    @pytest.fixture
    def console_ui(self):
        console = Console(file=io.StringIO(), width=120, color_system=None)
        return ConsoleUI(console=console, auto_confirm=True)

    def output(self, ui):
        return ui.console.file.getvalue()

    def test_session_on_console(self, make_rig, console_ui):
        rig = make_rig()
        rig.session.ui = console_ui
        rig.transport.fire_message("device_status", '{"type": 0}')
        rig.transport.fire_message("fpga_hv", 0)
        rig.session.toggle_acquisition()
        rig.transport.fire_message("trigger_warning", "Fan [speed] low")
        rig.transport.fire_message("error_list")

        assert console_ui.indicators == {"cu": 0, "hv": 0}
        assert console_ui.run_button == ("acquiring", True)
        assert console_ui.controls["loading"] is True
        assert len(console_ui.error_log) == 1
        out = self.output(console_ui)
        assert "WARNING: Fan [speed] low" in out
        assert "OFF" in out

    def test_indicator_printed_on_change_only(self, console_ui):
        console_ui.set_indicator("cu", 99)
        console_ui.set_indicator("cu", 99)
        console_ui.set_indicator("cu", 4)
        out = self.output(console_ui)
        assert out.count("UNKNOWN") == 1
        assert "ALARM (4)" in out

    def test_declining_confirmation(self):
        ui = ConsoleUI(console=Console(file=io.StringIO()), auto_confirm=False)
        answers = []
        ui.confirm("t", "m", lambda: answers.append(True), lambda: answers.append(False))
        assert answers == [False]

    def test_file_list_and_dialogs(self, console_ui):
        console_ui.show_file_list("profile_runs", [{"name": "r1", "notes": "n1"}])
        console_ui.open_dialog("download", "http://10.0.0.2/runs.zip")
        assert console_ui.file_lists["profile_runs"] == [{"name": "r1", "notes": "n1"}]
        assert console_ui.dialogs == [("download", "http://10.0.0.2/runs.zip")]
        out = self.output(console_ui)
        assert "r1" in out
        assert "http://10.0.0.2/runs.zip" in out

    def test_status_table(self, console_ui):
        console_ui.set_indicator("cu", 0)
        console_ui.set_run_button("streaming", True)
        console_ui.console.print(console_ui.status_table())
        out = self.output(console_ui)
        assert "streaming (running)" in out
        assert "errors" in out
