# -*- coding: utf-8 -*-

import unicodedata
from datetime import datetime

RUN_DATETIME_FORMAT = "%Y-%m-%d_%H-%M-%S"


def format_run_datetime(when: datetime) -> str:
    """Run timestamp as sent in the `datetime` field of the acquisition settings."""
    return when.strftime(RUN_DATETIME_FORMAT)


def sanitize_filename(name: str) -> str:
    # device side splits names on whitespace
    return "_".join(name.strip().split(" "))


def treat_notes(notes: str) -> str:
    """Normalise free-text run notes before they are sent to the device logger.

    Accented characters are reduced to their ASCII base letter (the device
    stores notes as plain ASCII text), line endings are unified and trailing
    whitespace is removed.
    """
    decomposed = unicodedata.normalize("NFKD", notes)
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    lines = ascii_only.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).strip()
