# -*- coding: utf-8 -*-
"""
Utility functions and constants for daqlink.

- Logging configuration and management (loguru)
- Session timing defaults
- Scheduled callbacks with cancellation handles (real and virtual time)
- Small formatting helpers shared by the session and logbook

Examples
--------
Starting a client log:
```python
from daqlink.util import start_client_log
start_client_log(log_to_stdout=True, log_level="DEBUG")
```

See Also
--------
daqlink.util.logging : Logging configuration
daqlink.util.scheduling : Timers used by the connection watchdog
"""

from .defaults import (
    DEFAULT_CONNECT_RECHECK_DELAY,
    DEFAULT_HOST_ADDR,
    DEFAULT_LOGLEVEL,
    DEFAULT_UI_PORT,
    DEFAULT_WATCHDOG_TIMEOUT,
    DEFAULT_WS_PORT,
    ERROR_DEDUP_WINDOW,
    SINGLE_LINE_ERR_LOG,
    TEST_LOGLEVEL,
)
from .helpers import format_run_datetime, sanitize_filename, treat_notes
from .logging import (
    clear_log,
    format_error_response,
    get_log_filename,
    log_default_path_client,
    set_log_detector,
    shutdown_client_log,
    start_client_log,
)
from .scheduling import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle

__all__ = [
    "DEFAULT_CONNECT_RECHECK_DELAY",
    "DEFAULT_HOST_ADDR",
    "DEFAULT_LOGLEVEL",
    "DEFAULT_UI_PORT",
    "DEFAULT_WATCHDOG_TIMEOUT",
    "DEFAULT_WS_PORT",
    "ERROR_DEDUP_WINDOW",
    "SINGLE_LINE_ERR_LOG",
    "TEST_LOGLEVEL",
    "clear_log",
    "format_error_response",
    "get_log_filename",
    "log_default_path_client",
    "set_log_detector",
    "shutdown_client_log",
    "start_client_log",
    "format_run_datetime",
    "sanitize_filename",
    "treat_notes",
    "AsyncioScheduler",
    "ManualScheduler",
    "Scheduler",
    "TimerHandle",
]
