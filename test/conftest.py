from collections import namedtuple

import pytest
import simplejson as json

from daqlink.session.controller import SessionController
from daqlink.system.base_config import DetectorConfig
from daqlink.types import CommsError
from daqlink.util import ManualScheduler


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "slow: marks test as slow running test")


class RecordingUI:
    """SessionUI that records every call.

    `answer` decides confirmations: True accepts, False declines, None keeps
    them in `pending` until answered with `answer_pending`.
    """

    def __init__(self, answer=True):
        self.answer = answer
        self.calls = []
        self.pending = []

    def _rec(self, name, *args):
        self.calls.append((name, args))

    def names(self):
        return [name for name, _ in self.calls]

    def args_of(self, name):
        return [args for n, args in self.calls if n == name]

    def notices(self, level=None):
        return [
            message
            for lvl, message in self.args_of("notify")
            if level is None or lvl == level
        ]

    def clear(self):
        self.calls.clear()

    def answer_pending(self, accept: bool):
        on_accept, on_decline = self.pending.pop(0)
        (on_accept if accept else on_decline)()

    def notify(self, level, message):
        self._rec("notify", level, message)

    def show_confirmation(self, title, message):
        self._rec("show_confirmation", title, message)

    def confirm(self, title, message, on_accept, on_decline):
        self._rec("confirm", title, message)
        if self.answer is None:
            self.pending.append((on_accept, on_decline))
        elif self.answer:
            on_accept()
        else:
            on_decline()

    def set_indicator(self, name, code):
        self._rec("set_indicator", name, code)

    def update_memory(self, data):
        self._rec("update_memory", data)

    def update_options(self, name, options):
        self._rec("update_options", name, list(options))

    def show_error_log(self, entries):
        self._rec("show_error_log", list(entries))

    def set_controls_enabled(self, enabled):
        self._rec("set_controls_enabled", enabled)

    def set_sampling_rate_enabled(self, enabled):
        self._rec("set_sampling_rate_enabled", enabled)

    def set_tooltips_enabled(self, enabled):
        self._rec("set_tooltips_enabled", enabled)

    def reset_plots(self):
        self._rec("reset_plots")

    def set_loading(self, active):
        self._rec("set_loading", active)

    def set_run_button(self, mode, running):
        self._rec("set_run_button", mode, running)

    def update_plot(self, section, channel, kind, data, loaded):
        self._rec("update_plot", section, channel, kind, data, loaded)

    def show_file_list(self, catalog, entries):
        self._rec("show_file_list", catalog, list(entries))

    def show_calibration(self, mode, factors):
        self._rec("show_calibration", mode, factors)

    def open_dialog(self, dialog, argument=""):
        self._rec("open_dialog", dialog, argument)


class FakeTransport:
    """In-memory Transport; tests drive it with `fire_*`."""

    def __init__(self):
        self.sent = []
        self.open_calls = 0
        self.closed = False
        self._is_open = False
        self._on_open = lambda: None
        self._on_message = lambda frame: None
        self._on_close = lambda reason: None

    def set_handlers(self, on_open, on_message, on_close):
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close

    def is_open(self):
        return self._is_open

    def send(self, frame):
        if not self._is_open:
            raise CommsError("fake transport closed")
        self.sent.append(frame)

    def open(self):
        self.open_calls += 1

    def close(self):
        self.closed = True
        self._is_open = False

    # test side

    def fire_open(self):
        self._is_open = True
        self._on_open()

    def fire_message(self, action, value=None, **extra):
        frame = {"action": action, **extra}
        if value is not None:
            frame["value"] = value
        self._on_message(json.dumps(frame))

    def fire_raw(self, raw):
        self._on_message(raw)

    def fire_close(self, reason="closed by device"):
        self._is_open = False
        self._on_close(reason)

    def frames(self):
        return [json.loads(f) for f in self.sent]

    def actions(self):
        return [f["action"] for f in self.frames()]

    def frame_for(self, action):
        """Last frame sent for `action`, with a JSON value decoded."""
        for frame in reversed(self.frames()):
            if frame["action"] == action:
                value = frame.get("value")
                if isinstance(value, str):
                    try:
                        frame["value"] = json.loads(value)
                    except json.JSONDecodeError:
                        pass
                return frame
        raise AssertionError(f"No frame sent for {action}: {self.actions()}")


class OpeningTransport(FakeTransport):
    """Connects as soon as it is opened."""

    def open(self):
        super().open()
        self.fire_open()


Rig = namedtuple("Rig", ["session", "ui", "transport", "scheduler", "config"])


def make_detector_config(**overrides) -> DetectorConfig:
    params = dict(
        detector_name="Test",
        ws_address="10.0.0.2",
        ws_port=8000,
        has_pos=True,
        has_rng=True,
        has_int=True,
        has_hv=True,
        n_ch_x=4,
        n_ch_y=4,
        n_ch_z=3,
        n_ch_int=2,
    )
    params.update(overrides)
    return DetectorConfig(**params)


@pytest.fixture
def detector_config():
    return make_detector_config()


@pytest.fixture
def recording_ui():
    return RecordingUI()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def opening_transport():
    return OpeningTransport()


@pytest.fixture
def make_ui():
    return RecordingUI


@pytest.fixture
def make_rig():
    """Factory for a session on a fake transport and virtual time.

    With `connected=True` (default) the transport is opened and the init
    request sent before the rig is returned; `ui.calls` and
    `transport.sent` are cleared.
    """

    def _make(connected=True, answer=True, observers=(), **config_overrides):
        config = make_detector_config(**config_overrides)
        ui = RecordingUI(answer=answer)
        transport = FakeTransport()
        scheduler = ManualScheduler()
        session = SessionController.build(config, transport, scheduler, ui, observers)
        if connected:
            transport.fire_open()
            session.start()
            ui.clear()
            transport.sent.clear()
        return Rig(session, ui, transport, scheduler, config)

    return _make
