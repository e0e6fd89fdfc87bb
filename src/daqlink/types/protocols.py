"""Collaborator protocols for the presentation layer.

The session never draws anything itself. Every visible consequence of a
transition is an effect (see `daqlink.session.effects`) which the
`SessionController` renders by calling one of the narrow methods below.

Protocol-Based Design
---------------------
As for device roles elsewhere, protocols are used instead of base classes so
that any object with the right methods can act as a front-end:

1. `RenderSink` - everything that can be drawn: notices, indicators, control
   affordances, plots, file lists and dialogs.
2. `SessionUI` - a `RenderSink` that can also ask the operator a yes/no
   question. Exactly one `SessionUI` drives a session; any number of extra
   `RenderSink` observers may mirror it (e.g. `daqlink.ui.publisher`).

Both are `@runtime_checkable` so front-ends can be validated with
`isinstance()` when a session is assembled.

Indicator names
---------------
`"cu"` (control unit), `"hv"` (high voltage), `"camera"` (camera variant).
Codes follow `daqlink.types.status`.

Notice levels
-------------
`"info"`, `"success"`, `"warning"`, `"error"`.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

import numpy as np


@runtime_checkable
class NoticeRenderer(Protocol):
    def notify(self, level: str, message: str) -> None: ...

    def show_confirmation(self, title: str, message: str) -> None:
        """Mirror of a confirmation asked by the primary UI; no answer expected."""
        ...


@runtime_checkable
class StatusRenderer(Protocol):
    def set_indicator(self, name: str, code: Optional[int]) -> None: ...

    def update_memory(self, data: np.ndarray) -> None: ...

    def update_options(self, name: str, options: Sequence[str]) -> None: ...

    def show_error_log(self, entries: Sequence[dict]) -> None: ...


@runtime_checkable
class ControlsRenderer(Protocol):
    """Affordances toggled on entry/exit of a running acquisition."""

    def set_controls_enabled(self, enabled: bool) -> None: ...

    def set_sampling_rate_enabled(self, enabled: bool) -> None: ...

    def set_tooltips_enabled(self, enabled: bool) -> None: ...

    def reset_plots(self) -> None: ...

    def set_loading(self, active: bool) -> None: ...

    def set_run_button(self, mode: str, running: bool) -> None: ...


@runtime_checkable
class PlotRenderer(Protocol):
    def update_plot(
        self, section: str, channel: str, kind: str, data: np.ndarray, loaded: bool
    ) -> None: ...


@runtime_checkable
class CatalogRenderer(Protocol):
    def show_file_list(self, catalog: str, entries: Sequence[dict]) -> None: ...

    def show_calibration(self, mode: str, factors: dict[str, list[float]]) -> None:
        """Show the calibration factors of `"profile"` or `"range"` mode."""
        ...

    def open_dialog(self, dialog: str, argument: str = "") -> None:
        """Open one of the modal dialogs.

        `dialog` is one of `"run_save"`, `"background_save"` (argument: file
        name), `"download"` (argument: URL).
        """
        ...


@runtime_checkable
class RenderSink(
    NoticeRenderer,
    StatusRenderer,
    ControlsRenderer,
    PlotRenderer,
    CatalogRenderer,
    Protocol,
):
    """Everything that can be drawn."""


@runtime_checkable
class SessionUI(RenderSink, Protocol):
    """Primary front-end; the only one asked to answer confirmations."""

    def confirm(
        self,
        title: str,
        message: str,
        on_accept: Callable[[], None],
        on_decline: Callable[[], None],
    ) -> None:
        """Ask a yes/no question; exactly one of the callbacks is invoked later."""
        ...
