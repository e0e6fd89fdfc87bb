# -*- coding: utf-8 -*-
"""# daqlink

`Detector acquisition link`

A (python) client for the control unit of a beam profile / range detector:
it keeps the websocket link alive, decodes device messages, runs the
acquisition session state machine and renders everything to a front-end
(console, or any subscriber of the ZeroMQ notification socket).

- `daqlink.types`: message, command, settings and status types
- `daqlink.comms`: transport, connection manager, protocol dispatcher
- `daqlink.session`: state machine, error aggregation, logbook, calibration
- `daqlink.system`: detector profiles (INI)
- `daqlink.ui`: console front-end and notification publisher
- `daqlink.cli`: the `daqlink` command
"""

from ._version import __version__
