# -*- coding: utf-8 -*-
"""
Detector profiles for daqlink.

A detector profile describes one control unit: where to reach it, which
modules are fitted (profile, range, integral, HV) and how many channels each
one has. Profiles are INI sections, see `daqlink.system.sysconfig`.

Examples
--------
```python
from daqlink.system import load_detector_config
config = load_detector_config("mock")
print(config.url, config.geometry)
```
"""

from .base_config import ConfigVersion, DetectorConfig
from .sysconfig import (
    create_default_detectors_file,
    list_available_detectors,
    load_detector_config,
    user_detectors_file,
    validate_detector_config,
)

__all__ = [
    "ConfigVersion",
    "DetectorConfig",
    "create_default_detectors_file",
    "list_available_detectors",
    "load_detector_config",
    "user_detectors_file",
    "validate_detector_config",
]
