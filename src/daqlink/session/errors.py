"""Aggregation of device-reported errors and warnings.

The device reports problems as `update_error_list`, `trigger_warning` and
`trigger_error` messages. The `ErrorAggregator` keeps them in an append-only
`ErrorLog`, suppresses bursts of the same message and escalates errors.

Dedup policy
------------
A report whose text equals the most recently *appended* entry, and which
arrives at most `dedup_window` seconds (default 8 s) after it, is suppressed:
not appended, not notified. Suppressed reports do not move the reference
time, so a message repeated every second is appended again once more than
8 s have passed since it was last appended.

Escalation
----------
Every error report (suppressed or not) is an alarm: the control-unit status
takes the reported code and the session is forced back to IDLE. If a run was
being acquired, the whole log is first saved into the run notes so the stop
reason travels with the data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from daqlink.types import CONSTS, DEFAULT_ALARM_CODE, WARNING_CODE, AcqMode, Command
from daqlink.util.defaults import ERROR_DEDUP_WINDOW

from .effects import Notify, RenderErrorLog, SendCommand, Transition
from .state_machine import AlarmRaised, SessionStateMachine

RUN_STOPPED_PREFIX = "RUN STOPPED BY INTERNAL ERROR: "
LOG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class ErrorKind(str, Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ErrorRecord:
    kind: ErrorKind
    code: int
    message: str
    occurred_at: datetime

    def to_line(self) -> str:
        return (
            f"{self.occurred_at.strftime(LOG_TIME_FORMAT)} "
            f"{self.kind.value}: {self.message}\n"
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            "time": self.occurred_at.strftime(LOG_TIME_FORMAT),
        }


def kind_for_code(code: int) -> ErrorKind:
    return ErrorKind.WARNING if code == WARNING_CODE else ErrorKind.ERROR


def compile_log(entries: tuple[ErrorRecord, ...]) -> str:
    """Error log as the text block stored beside the run notes."""
    return "".join(record.to_line() for record in entries)


class ErrorAggregator:
    """Single writer of the error log.

    Parameters
    ----------
    machine : SessionStateMachine
        Escalation target for error reports.
    clock : Callable[[], datetime]
        Time source stamping the records.
    dedup_window : float
        Seconds during which an identical message is suppressed.
    """

    def __init__(
        self,
        machine: SessionStateMachine,
        clock: Callable[[], datetime] = datetime.now,
        dedup_window: float = ERROR_DEDUP_WINDOW,
    ):
        self._machine = machine
        self._clock = clock
        self._window = dedup_window
        self._log: list[ErrorRecord] = []

    def entries(self) -> tuple[ErrorRecord, ...]:
        return tuple(self._log)

    def reset(self) -> None:
        logger.info("Error log cleared ({} entries)", len(self._log))
        self._log.clear()

    def _is_duplicate(self, message: str, now: datetime) -> bool:
        if not self._log:
            return False
        last = self._log[-1]
        if last.message != message:
            return False
        return (now - last.occurred_at).total_seconds() <= self._window

    def record(
        self, kind: ErrorKind, message: str, code: Optional[int] = None
    ) -> Transition:
        """Record a report; returns the notifications and, for errors, the stop."""
        now = self._clock()
        if code is None:
            code = WARNING_CODE if kind is ErrorKind.WARNING else DEFAULT_ALARM_CODE
        mode = self._machine.mode
        transition = Transition.unchanged(mode)

        if self._is_duplicate(message, now):
            logger.debug("Suppressed repeated {}: {}", kind.value, message)
        else:
            record = ErrorRecord(kind=kind, code=code, message=message, occurred_at=now)
            self._log.append(record)
            log_fn = logger.warning if kind is ErrorKind.WARNING else logger.error
            log_fn("Device {} ({}): {}", kind.value.lower(), code, message)
            level = "warning" if kind is ErrorKind.WARNING else "error"
            transition.add(
                Notify(level, f"{kind.value}: {message}"),
                RenderErrorLog(tuple(r.to_dict() for r in self._log)),
            )

        if kind is ErrorKind.WARNING:
            return transition

        stop = self._machine.apply(AlarmRaised(code))
        if stop.old_mode is AcqMode.ACQUIRING:
            notes = {
                "notes": RUN_STOPPED_PREFIX + message,
                "errors": compile_log(self.entries()),
            }
            transition.add(SendCommand(Command.logger(CONSTS.LOGGER.SAVE_NOTES, notes)))
        transition.add(*stop.effects)
        transition.new_mode = stop.new_mode
        return transition

    def record_report(self, code: int, message: str) -> Transition:
        """Record an `update_error_list` report; code 99 marks a warning."""
        return self.record(kind_for_code(code), message, code)
