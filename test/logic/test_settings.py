from datetime import datetime

import pytest

from daqlink.types import AcquisitionSettings, SettingsIntent
from daqlink.util.helpers import sanitize_filename, treat_notes

WHEN = datetime(2024, 5, 6, 7, 8, 9)


@pytest.fixture
def intent():
    return SettingsIntent(
        sampling_rate="1000",
        sampling_mode="1",
        first_channel="3",
        enable_profiles=True,
    )


class TestSettings:
    def test_snapshot_payload_is_all_strings(self, intent):
        payload = intent.snapshot(WHEN).to_payload()
        assert payload == {
            "sampling_rate": "1000",
            "sampling_mode": "1",
            "first_channel": "3",
            "use_pos_calib": "false",
            "pos_calib_filename": "",
            "use_rng_calib": "false",
            "rng_calib_filename": "",
            "use_bkg": "false",
            "bkg_filename": "",
            "enable_range": "false",
            "enable_profiles": "true",
            "datetime": "2024-05-06_07-08-09",
        }

    def test_snapshot_is_independent_of_later_edits(self, intent):
        snap = intent.snapshot(WHEN)
        intent.sampling_rate = "10"
        assert snap.sampling_rate == "1000"
        with pytest.raises(AttributeError):
            snap.sampling_rate = "10"

    def test_calibration_needs_a_file(self, intent):
        intent.use_pos_calib = True
        assert not intent.snapshot(WHEN).use_pos_calib
        intent.select_pos_calibration("cal_1")
        snap = intent.snapshot(WHEN)
        assert snap.use_pos_calib
        assert snap.pos_calib_filename == "cal_1"

    def test_clearing_a_selection_disables_it(self, intent):
        intent.select_background("bkg_1")
        intent.use_bkg = True
        intent.select_background("")
        assert not intent.use_bkg
        intent.select_rng_calibration("")
        assert not intent.use_rng_calib

    def test_background_snapshot(self, intent):
        intent.select_pos_calibration("cal_1")
        intent.use_pos_calib = True
        payload = intent.background_snapshot(WHEN).to_payload()
        assert payload["sampling_rate"] == "100"
        assert payload["sampling_mode"] == "0"
        assert payload["first_channel"] == "1"
        assert payload["use_pos_calib"] == "false"
        assert payload["enable_profiles"] == "true"
        assert payload["datetime"] == "2024-05-06_07-08-09"

    def test_sampling_rate_selectable_in_manual_mode(self, intent):
        assert not intent.sampling_rate_selectable
        intent.sampling_mode = "0"
        assert intent.sampling_rate_selectable

    def test_wire_form_round_trip(self, intent):
        snap = intent.snapshot(WHEN)
        assert AcquisitionSettings.from_dict(snap.to_payload()) == snap


class TestHelpers:
    def test_sanitize_filename(self):
        assert sanitize_filename("  run of monday ") == "run_of_monday"

    def test_treat_notes(self):
        assert treat_notes("Réglage  \r\nfaisceau\rOK  ") == "Reglage\nfaisceau\nOK"
