"""
Front-ends for a session.

- `console.ConsoleUI`: rich/click terminal front-end (primary `SessionUI`)
- `publisher.UiPublisher`: ZeroMQ PUB observer publishing `UiNotification`s
- `publisher.start_bg_ui_listener`: subscriber side of the publisher
"""

from .console import ConsoleUI
from .publisher import UiPublisher, start_bg_ui_listener

__all__ = ["ConsoleUI", "UiPublisher", "start_bg_ui_listener"]
