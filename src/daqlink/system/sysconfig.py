"""Detector profile handling for daqlink.

Detector profiles are kept in INI files, one section per detector:

[Default]
ws_address = 192.168.1.10
ws_port = 8000

# Fitted modules
has_pos = true
has_rng = false
has_int = true
has_hv = true

# Channel counts
n_ch_x = 64
n_ch_y = 64
n_ch_z = 0
n_ch_int = 2

# Device side storage (display only)
data_path = /data/runs
calib_path = /data/calib

# Optional
variant = camera
watchdog_timeout = 5.0

The user file (~/.daqlink/detectors.ini) takes precedence over the package
defaults (daqlink/sysconfig/detectors/<name>.ini).

See Also
--------
daqlink.system.base_config : `DetectorConfig`
daqlink.cli : `daqlink list` / `daqlink install`
"""

from __future__ import annotations

from configparser import ConfigParser, SectionProxy
from pathlib import Path

from loguru import logger

from daqlink.system.base_config import ConfigVersion, DetectorConfig

REQUIRED_FIELDS = ("ws_address", "ws_port")
# fallbacks match the DetectorConfig defaults
BOOL_FIELDS = {"has_pos": True, "has_rng": False, "has_int": True, "has_hv": True}
CHANNEL_FIELDS = {
    "has_pos": ("n_ch_x", "n_ch_y"),
    "has_rng": ("n_ch_z",),
    "has_int": ("n_ch_int",),
}
FLOAT_FIELDS = ("watchdog_timeout", "connect_recheck_delay")


def user_config_dir() -> Path:
    return Path.home() / ".daqlink"


def user_detectors_file() -> Path:
    return user_config_dir() / "detectors.ini"


def package_detectors_dir() -> Path:
    import daqlink

    return Path(daqlink.__file__).parent / "sysconfig" / "detectors"


def validate_detector_config(config: ConfigParser, section: str) -> tuple[bool, str]:
    """Validate detector configuration section.

    Parameters
    ----------
    config : ConfigParser
        ConfigParser instance containing the configuration
    section : str
        Name of the section to validate

    Returns
    -------
    tuple[bool, str]
        (is_valid, error_message)
    """
    sect = config[section]
    missing = [name for name in REQUIRED_FIELDS if name not in sect]
    if missing:
        return False, f"Missing required fields: {', '.join(missing)}"

    try:
        port = sect.getint("ws_port")
    except ValueError:
        return False, f"Invalid ws_port: {sect['ws_port']}"
    if not 0 < port < 65536:
        return False, f"Invalid ws_port: {port}"

    for name in BOOL_FIELDS:
        try:
            sect.getboolean(name, fallback=BOOL_FIELDS[name])
        except ValueError:
            return False, f"Invalid boolean for {name}: {sect[name]}"

    # every fitted module needs its channel counts
    for flag, channels in CHANNEL_FIELDS.items():
        if not sect.getboolean(flag, fallback=BOOL_FIELDS[flag]):
            continue
        for name in channels:
            if name not in sect:
                return False, f"Missing {name} (required by {flag})"
            try:
                count = sect.getint(name)
            except ValueError:
                return False, f"Invalid channel count for {name}: {sect[name]}"
            if count <= 0:
                return False, f"Channel count {name} must be positive"

    for name in FLOAT_FIELDS:
        if name not in sect:
            continue
        try:
            value = sect.getfloat(name)
        except ValueError:
            return False, f"Invalid number for {name}: {sect[name]}"
        if value <= 0:
            return False, f"{name} must be positive"

    return True, ""


def _create_detector_config(config: ConfigParser, section: str) -> DetectorConfig:
    is_valid, msg = validate_detector_config(config, section)
    if not is_valid:
        raise ValueError(f"Invalid detector configuration '{section}': {msg}")

    sect: SectionProxy = config[section]
    defaults = DetectorConfig(detector_name=section)
    return DetectorConfig(
        detector_name=section,
        ws_address=sect.get("ws_address"),
        ws_port=sect.getint("ws_port"),
        has_pos=sect.getboolean("has_pos", fallback=defaults.has_pos),
        has_rng=sect.getboolean("has_rng", fallback=defaults.has_rng),
        has_int=sect.getboolean("has_int", fallback=defaults.has_int),
        has_hv=sect.getboolean("has_hv", fallback=defaults.has_hv),
        n_ch_x=sect.getint("n_ch_x", fallback=0),
        n_ch_y=sect.getint("n_ch_y", fallback=0),
        n_ch_z=sect.getint("n_ch_z", fallback=0),
        n_ch_int=sect.getint("n_ch_int", fallback=0),
        data_path=sect.get("data_path", fallback=""),
        calib_path=sect.get("calib_path", fallback=""),
        variant=sect.get("variant", fallback=""),
        watchdog_timeout=sect.getfloat(
            "watchdog_timeout", fallback=defaults.watchdog_timeout
        ),
        connect_recheck_delay=sect.getfloat(
            "connect_recheck_delay", fallback=defaults.connect_recheck_delay
        ),
    )


def load_detector_config(detector_name: str) -> DetectorConfig:
    """Load detector configuration from INI file.

    Checks both the user file (~/.daqlink/detectors.ini) and the package
    defaults. User configurations take precedence.

    Parameters
    ----------
    detector_name : str
        Name of the detector section (case-insensitive)

    Returns
    -------
    DetectorConfig
        Loaded and validated detector configuration

    Raises
    ------
    ValueError
        If the detector is not found or its section is invalid
    """
    user_file = user_detectors_file()
    package_file = package_detectors_dir() / f"{detector_name.lower()}.ini"

    for path in (user_file, package_file):
        if not path.exists():
            continue
        config = ConfigParser()
        config.read(path)
        for section in config.sections():
            if section.lower() == detector_name.lower():
                logger.debug("Loading detector '{}' from {}", section, path)
                return _create_detector_config(config, section)

    raise ValueError(
        f"Detector '{detector_name}' not found in:\n"
        f"- User config: {user_file}\n"
        f"- Package config: {package_file}"
    )


def list_available_detectors() -> dict[str, str]:
    """List all available detector profiles.

    Returns
    -------
    dict[str, str]
        Mapping of detector names to their source ('user' or 'package')

    Examples
    --------
    >>> list_available_detectors()
    {'Default': 'package', 'Mock': 'package', 'Beamline': 'user'}
    """
    detectors = {}

    package_dir = package_detectors_dir()
    if package_dir.exists():
        for file in sorted(package_dir.glob("*.ini")):
            config = ConfigParser()
            config.read(file)
            for section in config.sections():
                detectors[section] = "package"

    user_file = user_detectors_file()
    if user_file.exists():
        config = ConfigParser()
        config.read(user_file)
        for section in config.sections():
            detectors[section] = "user"

    return detectors


def _own_items(config: ConfigParser, section: str) -> dict[str, str]:
    defaults = config.defaults()
    return {
        key: value
        for key, value in config.items(section, raw=True)
        if key not in defaults
    }


def create_default_detectors_file(file_path: Path) -> None:
    """Create (or complete) a detectors.ini with the package profiles.

    Sections already present in `file_path` are preserved unchanged.
    """
    file_path = Path(file_path)
    logger.debug("Creating default detectors file at {}", file_path)

    config = ConfigParser()
    config["DEFAULT"] = {"version": ConfigVersion.CURRENT.value}
    for ini_file in sorted(package_detectors_dir().glob("*.ini")):
        package_config = ConfigParser()
        package_config.read(ini_file)
        for section in package_config.sections():
            config[section] = _own_items(package_config, section)

    if file_path.exists():
        existing = ConfigParser()
        existing.read(file_path)
        logger.debug("Existing sections: {}", existing.sections())
        for section in existing.sections():
            if section in config.sections():
                logger.debug("Keeping user version of section {}", section)
            config[section] = _own_items(existing, section)

    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w") as f:
        config.write(f)
