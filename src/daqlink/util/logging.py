# -*- coding: utf-8 -*-
"""
Loguru sink management for daqlink.

A process runs one client log. Every record carries the name of the detector
the session talks to (`extra["detector"]`), so logs of several CLI sessions
written to the same file can be told apart.

Examples
--------
```python
start_client_log(log_to_stdout=True, log_level="DEBUG", detector="Mock")
logger.info("hello")   # ... | Mock | daqlink.cli.base:42 - hello
shutdown_client_log()
```
"""

import os
import pathlib
import sys
import traceback
from typing import Optional

from loguru import logger

from .defaults import DEFAULT_LOGLEVEL, SINGLE_LINE_ERR_LOG

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[detector]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
NO_DETECTOR = "-"

_log_path: Optional[str] = None


def format_error_response():
    err_str = traceback.format_exc()
    if SINGLE_LINE_ERR_LOG:
        return "\t".join(line.strip() for line in err_str.splitlines())
    return err_str


def log_default_path_client() -> str:
    return str(pathlib.Path.home().joinpath(".daqlink", "client.log"))


def start_client_log(
    log_to_file=True,
    log_to_stdout=False,
    log_path=None,
    clear_prev=True,
    log_level=DEFAULT_LOGLEVEL,
    detector=NO_DETECTOR,
):
    """(Re)configure loguru for a daqlink process.

    Arguments
    ---------
    log_to_file : bool
        Write to `log_path`.
    log_to_stdout : bool
        Also write (colourised) to stderr.
    log_path : str, optional
        Log file; `~/.daqlink/client.log` when empty.
    clear_prev : bool
        Delete an existing log file first.
    log_level : str
        Minimum level of both sinks.
    detector : str
        Detector name stamped on every record.
    """
    global _log_path

    log_path = os.path.abspath(log_path) if log_path else log_default_path_client()
    if clear_prev:
        clear_log(log_path)

    logger.remove()
    logger.configure(extra={"detector": detector or NO_DETECTOR})

    _log_path = None
    if log_to_file:
        logger.add(
            log_path, level=log_level, format=LOG_FORMAT, enqueue=True, colorize=False
        )
        _log_path = log_path
    if log_to_stdout:
        logger.add(
            sys.stderr, level=log_level, format=LOG_FORMAT, enqueue=True, colorize=True
        )

    if _log_path is not None:
        logger.info("Client log started at {}", _log_path)
    else:
        logger.info("Client log started.")


def set_log_detector(detector: str) -> None:
    """Stamp records logged from now on with `detector`."""
    logger.configure(extra={"detector": detector or NO_DETECTOR})


def clear_log(log_path: str):
    """Delete the log file at `log_path`, if there is one."""
    if not os.path.exists(log_path):
        return
    try:
        os.remove(log_path)
    except PermissionError:
        logger.error("Could not clear log file {}. Permission denied. Continuing.", log_path)


def shutdown_client_log():
    global _log_path
    try:
        logger.info("Closing down client log.")
        # waits for the enqueued records to be written
        logger.remove()
    except ValueError:
        logger.exception("Error shutting down client log - skipping.")
    _log_path = None


def get_log_filename() -> str:
    """Path of the active log file, or "" when not logging to a file."""
    return _log_path or ""
