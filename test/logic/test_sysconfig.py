"""Tests for detector profile handling."""

from configparser import ConfigParser
from pathlib import Path

import pytest

from daqlink.system.base_config import ConfigVersion, DetectorConfig
from daqlink.system.sysconfig import (
    create_default_detectors_file,
    list_available_detectors,
    load_detector_config,
    validate_detector_config,
)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create temporary .daqlink directory."""
    config_dir = tmp_path / ".daqlink"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_detectors_file(temp_config_dir):
    """Create a user detectors.ini file."""
    detectors_file = temp_config_dir / "detectors.ini"
    config = ConfigParser()

    config["Beamline"] = {
        "ws_address": "10.1.2.3",
        "ws_port": "9000",
        "has_pos": "true",
        "has_rng": "true",
        "has_int": "false",
        "has_hv": "true",
        "n_ch_x": "32",
        "n_ch_y": "16",
        "n_ch_z": "8",
        "data_path": "/srv/runs",
        "watchdog_timeout": "3.0",
    }
    # user override of a package profile
    config["Mock"] = {
        "ws_address": "192.168.0.50",
        "ws_port": "8001",
        "has_pos": "true",
        "n_ch_x": "4",
        "n_ch_y": "4",
        "n_ch_int": "1",
    }

    with detectors_file.open("w") as f:
        config.write(f)

    return detectors_file


@pytest.fixture
def home(temp_config_dir, monkeypatch):
    monkeypatch.setattr(Path, "home", lambda: temp_config_dir.parent)
    return temp_config_dir.parent


def test_validate_detector_config(mock_detectors_file):
    """Test detector configuration validation."""
    config = ConfigParser()
    config.read(mock_detectors_file)

    is_valid, error_msg = validate_detector_config(config, "Beamline")
    assert is_valid, f"Valid configuration was marked as invalid: {error_msg}"
    assert error_msg == ""

    del config["Beamline"]["ws_port"]
    is_valid, error_msg = validate_detector_config(config, "Beamline")
    assert not is_valid
    assert "Missing required fields: ws_port" in error_msg


@pytest.mark.parametrize(
    "key, value, message",
    [
        ("ws_port", "eighty", "Invalid ws_port"),
        ("ws_port", "70000", "Invalid ws_port"),
        ("has_rng", "maybe", "Invalid boolean for has_rng"),
        ("n_ch_z", "0", "must be positive"),
        ("n_ch_x", "many", "Invalid channel count for n_ch_x"),
        ("watchdog_timeout", "-1", "watchdog_timeout must be positive"),
        ("watchdog_timeout", "soon", "Invalid number for watchdog_timeout"),
    ],
)
def test_validate_detector_config_errors(mock_detectors_file, key, value, message):
    config = ConfigParser()
    config.read(mock_detectors_file)
    config["Beamline"][key] = value
    is_valid, error_msg = validate_detector_config(config, "Beamline")
    assert not is_valid
    assert message in error_msg


def test_fitted_module_needs_channel_counts(mock_detectors_file):
    config = ConfigParser()
    config.read(mock_detectors_file)
    del config["Beamline"]["n_ch_z"]
    is_valid, error_msg = validate_detector_config(config, "Beamline")
    assert not is_valid
    assert error_msg == "Missing n_ch_z (required by has_rng)"

    # no integral module fitted: n_ch_int is not required
    assert "n_ch_int" not in config["Beamline"]


def test_load_user_detector(mock_detectors_file, home):
    config = load_detector_config("beamline")
    assert isinstance(config, DetectorConfig)
    assert config.detector_name == "Beamline"
    assert config.url == "ws://10.1.2.3:9000"
    assert (config.has_pos, config.has_rng, config.has_int) == (True, True, False)
    assert config.watchdog_timeout == 3.0
    assert config.connect_recheck_delay == 1.1
    assert config.geometry.n_ch_int == 0
    assert config.data_path == "/srv/runs"


def test_user_file_takes_precedence(mock_detectors_file, home):
    config = load_detector_config("Mock")
    assert config.ws_address == "192.168.0.50"
    assert config.n_ch_x == 4


def test_load_package_detector(home):
    config = load_detector_config("mock")
    assert config.detector_name == "Mock"
    assert config.url == "ws://127.0.0.1:8000"
    assert config.geometry.n_ch_z == 16
    assert not config.is_camera_variant

    camera = load_detector_config("Camera")
    assert camera.is_camera_variant
    assert not camera.has_hv


def test_load_missing_detector(home):
    with pytest.raises(
        ValueError,
        match=r"Detector 'NonExistent' not found in:\n- User config:.*\n- Package config:.*",
    ):
        load_detector_config("NonExistent")


def test_load_invalid_detector(mock_detectors_file, home):
    config = ConfigParser()
    config.read(mock_detectors_file)
    config["Beamline"]["ws_port"] = "0"
    with mock_detectors_file.open("w") as f:
        config.write(f)

    with pytest.raises(ValueError, match="Invalid detector configuration 'Beamline'"):
        load_detector_config("Beamline")


def test_list_available_detectors(mock_detectors_file, home):
    detectors = list_available_detectors()
    assert detectors["Default"] == "package"
    assert detectors["Camera"] == "package"
    assert detectors["Beamline"] == "user"
    assert detectors["Mock"] == "user"


def test_create_default_detectors_file(mock_detectors_file):
    """Package profiles are added, user sections kept unchanged."""
    create_default_detectors_file(mock_detectors_file)

    config = ConfigParser()
    config.read(mock_detectors_file)
    assert config["DEFAULT"]["version"] == ConfigVersion.CURRENT.value
    assert {"Default", "Mock", "Camera", "Beamline"} <= set(config.sections())
    assert config["Beamline"]["ws_port"] == "9000"
    assert config["Mock"]["ws_address"] == "192.168.0.50"

    raw = mock_detectors_file.read_text()
    assert raw.count("version") == 1


def test_create_default_detectors_file_new_location(tmp_path):
    target = tmp_path / "nested" / "detectors.ini"
    create_default_detectors_file(target)

    config = ConfigParser()
    config.read(target)
    assert config["Default"]["ws_address"] == "192.168.1.10"
    assert config["Camera"]["variant"] == "camera"


def test_detector_summary():
    config = DetectorConfig(
        detector_name="Bench", ws_address="ws://bench", ws_port=81, has_hv=False
    )
    assert config.summary() == {
        "address": "ws://bench:81",
        "modules": "profile, integral",
        "channels": "x=0 y=0 z=0 int=0",
        "variant": "-",
    }
    assert config.default_settings().enable_profiles
    assert not config.default_settings().enable_range
