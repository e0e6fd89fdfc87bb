"""Tests for the ZeroMQ UI notification socket."""

import asyncio
import contextlib

import numpy as np
import pytest
import pytest_asyncio
import zmq
from loguru import logger

import daqlink.util
from daqlink.types import (
    CalibrationUpdate,
    ControlsUpdate,
    IndicatorUpdate,
    NoticeUpdate,
    PlotUpdate,
    UiNotification,
)
from daqlink.ui import UiPublisher, start_bg_ui_listener
from daqlink.util import TEST_LOGLEVEL


def bound_port(publisher: UiPublisher) -> int:
    endpoint = publisher.socket.getsockopt(zmq.LAST_ENDPOINT).decode()
    return int(endpoint.rsplit(":", 1)[1])


@pytest.fixture
def publisher():
    # "*" lets zmq pick a free port
    pub = UiPublisher("127.0.0.1", "*")
    yield pub
    pub.close()


@pytest.fixture
def published(publisher, monkeypatch):
    sent = []
    monkeypatch.setattr(publisher, "publish", sent.append)
    return sent


class TestUiPublisher:
    @pytest_asyncio.fixture(autouse=True, scope="class", loop_scope="class")
    def client_log(self):
        daqlink.util.start_client_log(
            log_level=TEST_LOGLEVEL, log_to_stdout=True, log_to_file=True
        )
        yield
        daqlink.util.shutdown_client_log()

    @pytest_asyncio.fixture(autouse=True, scope="function", loop_scope="class")
    def log(self, request):
        logger.warning("STARTED Test '{}'".format(request.node.originalname))

        def fin():
            logger.warning("COMPLETED Test '{}' \n".format(request.node.originalname))

        request.addfinalizer(fin)

    def test_render_requests_become_notifications(self, publisher, published):
        publisher.notify("warning", "Fan speed low")
        publisher.set_indicator("hv", 0)
        publisher.reset_plots()
        publisher.set_controls_enabled(False)
        publisher.open_dialog("run_save")

        assert [n.type for n in published] == [
            "notice",
            "indicator",
            "controls",
            "controls",
            "dialog",
        ]
        assert published[0].message == "Fan speed low"
        assert published[2].plots_reset
        assert published[3].controls_enabled is False
        assert published[3].loading is None

    def test_session_observer(self, make_rig, publisher, published):
        rig = make_rig(observers=[publisher])
        rig.session.toggle_acquisition()
        types = [n.type for n in published]
        assert types[0] == "notice"
        assert "run_button" in types
        assert len(published) == len(rig.ui.calls)

    def test_msgpack_round_trip(self):
        plot = PlotUpdate(
            section="profile",
            channel="x",
            kind="int",
            data=np.arange(4.0),
        )
        decoded = UiNotification.from_msgpack(plot.to_msgpack())
        assert isinstance(decoded, PlotUpdate)
        np.testing.assert_array_equal(decoded.data, plot.data)

        calib = CalibrationUpdate(mode="range", factors={"Z": [1.0, 0.5]})
        decoded = UiNotification.from_msgpack(calib.to_msgpack())
        assert decoded == calib

        controls = ControlsUpdate(loading=True)
        decoded = UiNotification.from_msgpack(controls.to_msgpack())
        assert isinstance(decoded, ControlsUpdate)
        assert decoded.loading is True
        assert decoded.controls_enabled is None

    def test_repr_hides_arrays(self):
        plot = PlotUpdate(section="integral", channel="1", kind="diff", data=np.ones(3))
        assert "data=<Array>" in repr(plot)
        assert repr(IndicatorUpdate(name="cu", code=99)) == (
            "IndicatorUpdate(type='indicator', name='cu', code=99)"
        )

    @pytest.mark.slow
    @pytest.mark.asyncio(loop_scope="class")
    async def test_listener_receives_notifications(self, publisher):
        task, queue = start_bg_ui_listener("127.0.0.1", bound_port(publisher))
        try:
            # PUB drops messages until the subscription has propagated
            for _ in range(50):
                publisher.notify("info", "hello")
                await asyncio.sleep(0.05)
                if not queue.empty():
                    break
            notif = await asyncio.wait_for(queue.get(), timeout=1.0)
            assert isinstance(notif, NoticeUpdate)
            assert (notif.level, notif.message) == ("info", "hello")
            assert publisher.n_published >= 1
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
