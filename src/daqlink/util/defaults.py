# -*- coding: utf-8 -*-

DEFAULT_HOST_ADDR = "127.0.0.1"
DEFAULT_WS_PORT = 8000
DEFAULT_UI_PORT = 8870  # zmq PUB socket for render requests
DEFAULT_LOGLEVEL = "INFO"
TEST_LOGLEVEL = "TRACE"
SINGLE_LINE_ERR_LOG = False  # reformat tracebacks into a single line for err comms

DEFAULT_WATCHDOG_TIMEOUT = 5.0  # seconds without a keepalive before link is lost
DEFAULT_CONNECT_RECHECK_DELAY = 1.1  # seconds, absorbs handshake latency on load
ERROR_DEDUP_WINDOW = 8.0  # seconds, identical device errors inside are suppressed
RECONNECT_DELAY = 2.0  # seconds, first transport reconnect attempt
RECONNECT_MAX_DELAY = 30.0
