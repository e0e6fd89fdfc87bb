"""Terminal front-end for a session.

Notices, indicators and file lists are printed with rich; confirmations are
asked with click. The latest state of everything rendered is also kept on
the instance (`indicators`, `plots`, `file_lists`, ...) so a summary can be
printed at the end of a CLI run.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import click
import numpy as np
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from daqlink.types import CU_STATUS, HvStatus

LEVEL_STYLES = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def _code_markup(name: str, code: Optional[int]) -> str:
    if code is None:
        return "[dim]n/a[/dim]"
    if name == "hv":
        try:
            label = HvStatus(code).name
        except ValueError:
            label = str(code)
        style = "green" if code == HvStatus.ON_IN_RANGE else "yellow"
        return f"[{style}]{label}[/{style}]"
    if code == CU_STATUS.OK:
        return "[green]OK[/green]"
    if code == CU_STATUS.UNKNOWN:
        return "[yellow]UNKNOWN[/yellow]"
    return f"[red]ALARM ({code})[/red]"


class ConsoleUI:
    """`SessionUI` printing to a rich console.

    Parameters
    ----------
    console : rich.console.Console, optional
    auto_confirm : bool, optional
        Answer every confirmation with this value instead of prompting.
    """

    def __init__(
        self, console: Optional[Console] = None, auto_confirm: Optional[bool] = None
    ):
        self.console = console if console is not None else Console(color_system="standard")
        self.auto_confirm = auto_confirm
        self.indicators: dict[str, Optional[int]] = {}
        self.controls: dict[str, bool] = {}
        self.run_button: tuple[str, bool] = ("idle", False)
        self.options: dict[str, list[str]] = {}
        self.plots: dict[tuple[str, str, str], np.ndarray] = {}
        self.memory: Optional[np.ndarray] = None
        self.file_lists: dict[str, list[dict]] = {}
        self.error_log: list[dict] = []
        self.dialogs: list[tuple[str, str]] = []

    # NoticeRenderer

    def notify(self, level: str, message: str) -> None:
        style = LEVEL_STYLES.get(level, "white")
        self.console.print(f"[{style}]{level.upper():>7}[/{style}] {escape(message)}")

    def show_confirmation(self, title: str, message: str) -> None:
        self.console.print(f"[bold]{escape(title)}[/bold] {escape(message)}")

    def confirm(
        self,
        title: str,
        message: str,
        on_accept: Callable[[], None],
        on_decline: Callable[[], None],
    ) -> None:
        if self.auto_confirm is None:
            self.show_confirmation(title, "")
            answer = click.confirm(message, default=False)
        else:
            answer = self.auto_confirm
            logger.debug("Auto-answering '{}' with {}", title, answer)
        if answer:
            on_accept()
        else:
            on_decline()

    # StatusRenderer

    def set_indicator(self, name: str, code: Optional[int]) -> None:
        previous = self.indicators.get(name, object())
        self.indicators[name] = code
        if previous != code:
            self.console.print(f"[bold]{name.upper():>7}[/bold] {_code_markup(name, code)}")

    def update_memory(self, data: np.ndarray) -> None:
        self.memory = np.asarray(data)

    def update_options(self, name: str, options: Sequence[str]) -> None:
        self.options[name] = list(options)

    def show_error_log(self, entries: Sequence[dict]) -> None:
        self.error_log = list(entries)
        if not entries:
            return
        table = Table(title="Error log", show_header=True)
        table.add_column("Time")
        table.add_column("Kind")
        table.add_column("Message")
        for entry in entries:
            table.add_row(
                str(entry.get("time", "")),
                str(entry.get("kind", "")),
                escape(str(entry.get("message", ""))),
            )
        self.console.print(table)

    # ControlsRenderer

    def set_controls_enabled(self, enabled: bool) -> None:
        self.controls["controls"] = enabled

    def set_sampling_rate_enabled(self, enabled: bool) -> None:
        self.controls["sampling_rate"] = enabled

    def set_tooltips_enabled(self, enabled: bool) -> None:
        self.controls["tooltips"] = enabled

    def reset_plots(self) -> None:
        self.plots.clear()

    def set_loading(self, active: bool) -> None:
        self.controls["loading"] = active

    def set_run_button(self, mode: str, running: bool) -> None:
        self.run_button = (mode, running)
        state = "[green]running[/green]" if running else "[dim]stopped[/dim]"
        self.console.print(f"[bold]{'RUN':>7}[/bold] {mode} {state}")

    # PlotRenderer

    def update_plot(
        self, section: str, channel: str, kind: str, data: np.ndarray, loaded: bool
    ) -> None:
        self.plots[(section, channel, kind)] = np.asarray(data)
        logger.trace(
            "Plot {}/{}/{}: {} points{}",
            section,
            channel,
            kind,
            np.size(data),
            " (loaded)" if loaded else "",
        )

    # CatalogRenderer

    def show_file_list(self, catalog: str, entries: Sequence[dict]) -> None:
        self.file_lists[catalog] = list(entries)
        table = Table(title=catalog, show_header=True)
        table.add_column("Name")
        table.add_column("Notes")
        for entry in entries:
            table.add_row(
                escape(str(entry.get("name", ""))), escape(str(entry.get("notes", "")))
            )
        self.console.print(table)

    def show_calibration(self, mode: str, factors: dict[str, list[float]]) -> None:
        table = Table(title=f"{mode} calibration", show_header=True)
        table.add_column("Channel")
        for axis in factors:
            table.add_column(axis)
        n_rows = max((len(values) for values in factors.values()), default=0)
        for i in range(n_rows):
            row = [str(i + 1)]
            for values in factors.values():
                row.append(f"{values[i]:.3f}" if i < len(values) else "")
            table.add_row(*row)
        self.console.print(table)

    def open_dialog(self, dialog: str, argument: str = "") -> None:
        self.dialogs.append((dialog, argument))
        suffix = f": {escape(argument)}" if argument else ""
        self.console.print(f"[bold magenta]{'DIALOG':>7}[/bold magenta] {dialog}{suffix}")

    # Summary

    def status_table(self) -> Table:
        """Indicators and run state, for printing at the end of a session."""
        table = Table(show_header=False, box=None)
        table.add_column("Item")
        table.add_column("Value")
        mode, running = self.run_button
        table.add_row("acquisition", f"{mode} ({'running' if running else 'stopped'})")
        for name, code in sorted(self.indicators.items()):
            table.add_row(name, _code_markup(name, code))
        table.add_row("errors", str(len(self.error_log)))
        return table
