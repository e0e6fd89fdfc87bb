"""Effect descriptions returned by session transitions.

A transition never touches the UI or the connection directly. It returns a
`Transition`: an ordered list of effects that the `SessionController`
executes afterwards. Rendering effects know which `RenderSink` method draws
them; `SendCommand` and `Confirm` are executed by the controller itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence, Type, TypeVar

import numpy as np

from daqlink.types import AcqMode, Command, RenderSink

E = TypeVar("E", bound="Effect")


class Effect:
    """Base class for effects."""

    def render(self, sink: RenderSink) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class Notify(Effect):
    level: str
    message: str

    def render(self, sink: RenderSink) -> None:
        sink.notify(self.level, self.message)


def info(message: str) -> Notify:
    return Notify("info", message)


def success(message: str) -> Notify:
    return Notify("success", message)


def warning(message: str) -> Notify:
    return Notify("warning", message)


def error(message: str) -> Notify:
    return Notify("error", message)


@dataclass(frozen=True)
class SendCommand(Effect):
    command: Command

    def render(self, sink: RenderSink) -> None:
        pass


@dataclass(frozen=True)
class Confirm(Effect):
    """Ask the operator; the chosen callback yields the follow-up transition."""

    title: str
    message: str
    on_accept: Callable[[], "Transition"]
    on_decline: Callable[[], "Transition"]

    def render(self, sink: RenderSink) -> None:
        sink.show_confirmation(self.title, self.message)


@dataclass(frozen=True)
class UpdateIndicator(Effect):
    name: str
    code: Optional[int]

    def render(self, sink: RenderSink) -> None:
        sink.set_indicator(self.name, self.code)


@dataclass(frozen=True)
class SetControlsEnabled(Effect):
    enabled: bool

    def render(self, sink: RenderSink) -> None:
        sink.set_controls_enabled(self.enabled)


@dataclass(frozen=True)
class SetSamplingRateEnabled(Effect):
    enabled: bool

    def render(self, sink: RenderSink) -> None:
        sink.set_sampling_rate_enabled(self.enabled)


@dataclass(frozen=True)
class SetTooltipsEnabled(Effect):
    enabled: bool

    def render(self, sink: RenderSink) -> None:
        sink.set_tooltips_enabled(self.enabled)


@dataclass(frozen=True)
class ResetPlots(Effect):
    def render(self, sink: RenderSink) -> None:
        sink.reset_plots()


@dataclass(frozen=True)
class SetLoading(Effect):
    active: bool

    def render(self, sink: RenderSink) -> None:
        sink.set_loading(self.active)


@dataclass(frozen=True)
class SetRunButton(Effect):
    mode: AcqMode
    running: bool

    def render(self, sink: RenderSink) -> None:
        sink.set_run_button(self.mode.value, self.running)


@dataclass(frozen=True, eq=False)
class RenderPlot(Effect):
    section: str
    channel: str
    kind: str
    data: np.ndarray
    loaded: bool = False

    def render(self, sink: RenderSink) -> None:
        sink.update_plot(self.section, self.channel, self.kind, self.data, self.loaded)


@dataclass(frozen=True, eq=False)
class RenderMemory(Effect):
    data: np.ndarray

    def render(self, sink: RenderSink) -> None:
        sink.update_memory(self.data)


@dataclass(frozen=True)
class RenderOptions(Effect):
    name: str
    options: tuple[str, ...]

    def render(self, sink: RenderSink) -> None:
        sink.update_options(self.name, list(self.options))


@dataclass(frozen=True)
class RenderFileList(Effect):
    catalog: str
    entries: tuple[dict, ...]

    def render(self, sink: RenderSink) -> None:
        sink.show_file_list(self.catalog, list(self.entries))


@dataclass(frozen=True, eq=False)
class RenderCalibration(Effect):
    mode: str
    factors: dict

    def render(self, sink: RenderSink) -> None:
        sink.show_calibration(self.mode, self.factors)


@dataclass(frozen=True)
class RenderErrorLog(Effect):
    entries: tuple[dict, ...]

    def render(self, sink: RenderSink) -> None:
        sink.show_error_log(list(self.entries))


@dataclass(frozen=True)
class OpenDialog(Effect):
    dialog: str
    argument: str = ""

    def render(self, sink: RenderSink) -> None:
        sink.open_dialog(self.dialog, self.argument)


@dataclass
class Transition:
    """Ordered effects of one applied intent, with the mode before and after."""

    old_mode: AcqMode
    new_mode: AcqMode
    effects: list[Effect] = field(default_factory=list)

    @classmethod
    def unchanged(cls, mode: AcqMode, *effects: Effect) -> "Transition":
        return cls(mode, mode, list(effects))

    @property
    def changed(self) -> bool:
        return self.old_mode is not self.new_mode

    def add(self, *effects: Effect) -> "Transition":
        self.effects.extend(effects)
        return self

    def __iter__(self) -> Iterator[Effect]:
        return iter(self.effects)

    def of_type(self, kind: Type[E]) -> list[E]:
        return [e for e in self.effects if isinstance(e, kind)]

    def commands(self) -> list[Command]:
        return [e.command for e in self.of_type(SendCommand)]

    def command_names(self) -> list[str]:
        return [c.name for c in self.commands()]

    def notices(self, level: Optional[str] = None) -> list[str]:
        return [
            n.message
            for n in self.of_type(Notify)
            if level is None or n.level == level
        ]


def entry_effects(mode: AcqMode) -> Sequence[Effect]:
    """Affordances applied when an acquisition mode is entered."""
    return (
        SetControlsEnabled(False),
        SetTooltipsEnabled(False),
        ResetPlots(),
        SetLoading(True),
        SetRunButton(mode, True),
    )


def exit_effects(mode: AcqMode, sampling_rate_selectable: bool) -> Sequence[Effect]:
    """Affordances restored when returning to IDLE from `mode`."""
    return (
        SetControlsEnabled(True),
        SetSamplingRateEnabled(sampling_rate_selectable),
        SetTooltipsEnabled(True),
        SetLoading(False),
        SetRunButton(mode, False),
    )
