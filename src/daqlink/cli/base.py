import asyncio
from typing import Iterable, Optional

import click

from daqlink.comms.transport import Transport, WebSocketTransport
from daqlink.session.controller import SessionController
from daqlink.session.logbook import RunKind
from daqlink.system.base_config import DetectorConfig
from daqlink.types import AcqMode, DeviceAlarm, RenderSink, SessionUI
from daqlink.util import (
    DEFAULT_HOST_ADDR,
    DEFAULT_LOGLEVEL,
    DEFAULT_UI_PORT,
    AsyncioScheduler,
    format_error_response,
    set_log_detector,
    shutdown_client_log,
    start_client_log,
)

# operator action performed once the link is up
ACTIONS = {
    "monitor": None,
    "acquire": lambda s: s.toggle_acquisition(),
    "stream": lambda s: s.toggle_streaming(),
    "background": lambda s: s.record_background(),
    "reset-alarms": lambda s: s.reset_alarms(),
    "reset-counters": lambda s: s.reset_counters(),
    "scan-runs": lambda s: s.scan_runs(RunKind.PROFILE),
    "scan-backgrounds": lambda s: s.scan_backgrounds(),
}

# actions stopped again by the client when the duration is over
_STOP_AFTER = {
    "acquire": (AcqMode.ACQUIRING, lambda s: s.toggle_acquisition()),
    "stream": (AcqMode.STREAMING, lambda s: s.toggle_streaming()),
}


def print_tree(cmd, prefix="", parent_ctx=None):
    """Print command tree starting from given command."""
    ctx = click.Context(cmd, info_name=cmd.name, parent=parent_ctx)

    # Only print root name if no parent
    if not parent_ctx:
        click.echo(cmd.name)

    for sub in sorted(cmd.list_commands(ctx)):
        sub_cmd = cmd.get_command(ctx, sub)
        click.echo(f"{prefix}└── {sub}")
        if isinstance(sub_cmd, click.Group):
            print_tree(sub_cmd, prefix + "    ", ctx)


def tree_option(f):
    """Add --tree option to command."""

    def callback(ctx, param, value):
        if not value or ctx.resilient_parsing:
            return
        print_tree(ctx.command)
        ctx.exit()

    return click.option(
        "--tree",
        is_flag=True,
        help="Show command tree from this point",
        expose_value=False,
        is_eager=True,
        callback=callback,
    )(f)


async def run_session(
    config: DetectorConfig,
    ui: SessionUI,
    observers: Iterable[RenderSink] = (),
    action: str = "monitor",
    duration: float = 10.0,
    transport: Optional[Transport] = None,
) -> SessionController:
    """Open a session, perform `action`, keep it running for `duration` seconds.

    Returns the (closed) controller so its final state can be inspected.
    """
    if transport is None:
        transport = WebSocketTransport(config.url)
    scheduler = AsyncioScheduler(asyncio.get_running_loop())
    session = SessionController.build(config, transport, scheduler, ui, observers)
    session.start()
    try:
        # the connection is checked once after the recheck delay
        await asyncio.sleep(config.connect_recheck_delay)
        op = ACTIONS[action]
        if op is not None:
            op(session)
        await asyncio.sleep(duration)
        if action in _STOP_AFTER:
            mode, stop = _STOP_AFTER[action]
            if session.machine.mode is mode:
                stop(session)
    finally:
        session.stop()
        if isinstance(transport, WebSocketTransport):
            await transport.wait_closed()
    return session


@click.group()
@tree_option
def cli():
    """daqlink - detector acquisition link.

    Client for the control unit of a beam profile / range detector:

    - Keeps the websocket link to the control unit alive

    - Runs acquisitions, data streaming and background acquisitions

    - Publishes everything it renders on a ZeroMQ socket for front-ends
    """
    pass


@cli.command(name="list")
def list_detectors():
    """List available detector profiles."""
    from daqlink.system.sysconfig import list_available_detectors

    detectors = list_available_detectors()

    click.echo("\nAvailable detector profiles:")
    click.echo("----------------------------")

    if not detectors:
        click.echo("No detector profiles found")
        click.echo("")
        return

    package_detectors = [name for name, src in detectors.items() if src == "package"]
    user_detectors = [name for name, src in detectors.items() if src == "user"]

    if package_detectors:
        click.echo("\nPackage defaults:")
        for name in sorted(package_detectors):
            click.echo(f"  - {name}")

    if user_detectors:
        click.echo("\nUser configurations:")
        for name in sorted(user_detectors):
            click.echo(f"  - {name}")
    click.echo("")


@cli.command()
@click.argument("name")
def show(name: str):
    """Show a detector profile.

    NAME: Name of the detector profile
    """
    from daqlink.system.sysconfig import load_detector_config

    try:
        config = load_detector_config(name)
    except ValueError:
        click.echo(f"Error: {format_error_response()}", err=True)
        raise SystemExit(1)

    click.echo(f"\n{config.detector_name}")
    click.echo("-" * len(config.detector_name))
    for key, value in config.summary().items():
        click.echo(f"{key}: {value}")
    click.echo("")


@cli.command()
@click.option(
    "--path",
    "-p",
    type=click.Path(dir_okay=False),
    default=None,
    help="Target file (default: ~/.daqlink/detectors.ini)",
)
def install(path: Optional[str]):
    """Write the package detector profiles to the user detectors file.

    Profiles already present in the user file are kept unchanged.
    """
    from pathlib import Path

    from daqlink.system.sysconfig import (
        create_default_detectors_file,
        user_detectors_file,
    )

    target = Path(path) if path else user_detectors_file()
    try:
        create_default_detectors_file(target)
        click.echo(f"Installed detector profiles to {target}")
    except OSError:
        click.echo(f"Error: {format_error_response()}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option(
    "--detector",
    "-n",
    default="default",
    help='Detector profile to use (e.g. "default", "mock")',
)
@click.option(
    "--address", "-a", default="", help="Override the control unit address"
)
@click.option(
    "--port", "-p", default=None, type=int, help="Override the control unit port"
)
@click.option(
    "--action",
    type=click.Choice(sorted(ACTIONS)),
    default="monitor",
    help="Operator action once connected (default: monitor)",
)
@click.option(
    "--duration",
    "-d",
    default=10.0,
    type=float,
    help="Seconds to keep the session open (default: 10)",
)
@click.option(
    "--yes/--ask",
    "-y/",
    default=False,
    help="Accept every confirmation without asking (default: ask)",
)
@click.option(
    "--publish/--no-publish",
    default=False,
    help="Publish UI notifications on a ZeroMQ socket (default: disabled)",
)
@click.option(
    "--publish-host",
    default=DEFAULT_HOST_ADDR,
    help="Interface for the notification socket (default: localhost)",
)
@click.option(
    "--publish-port",
    default=DEFAULT_UI_PORT,
    type=int,
    help=f"Port for the notification socket (default: {DEFAULT_UI_PORT})",
)
@click.option(
    "--log-to-file/--no-log-to-file",
    "-ltf/",
    default=True,
    help="Enable/disable logging to file (default: enabled)",
)
@click.option(
    "--log-to-stdout/--no-log-to-stdout",
    "-lts/",
    default=False,
    help="Enable/disable console logging (default: disabled)",
)
@click.option(
    "--log-path",
    "-lp",
    default="",
    help="Custom path for log file (default: ~/.daqlink/client.log)",
)
@click.option(
    "--clear-prev-log/--no-clear-prev-log",
    "-c/",
    default=True,
    help="Clear previous log file on startup (default: enabled)",
)
@click.option(
    "--log-level",
    "-ll",
    default=DEFAULT_LOGLEVEL,
    help="Logging level (DEBUG, INFO, WARNING, ERROR) (default: INFO)",
)
def run(**kwargs):
    """Open a session with a detector control unit.

    Connects to the control unit, requests its configuration and shows
    notices and status changes in the terminal. Optionally performs one
    operator action (start an acquisition, reset alarms, ...) and publishes
    every render request for other front-ends.
    """
    from setproctitle import setproctitle

    from daqlink.system.sysconfig import load_detector_config
    from daqlink.ui import ConsoleUI, UiPublisher

    start_client_log(
        log_to_file=kwargs["log_to_file"],
        log_to_stdout=kwargs["log_to_stdout"],
        log_path=kwargs["log_path"],
        clear_prev=kwargs["clear_prev_log"],
        log_level=kwargs["log_level"],
    )
    try:
        config = load_detector_config(kwargs["detector"])
    except ValueError:
        click.echo(f"Error: {format_error_response()}", err=True)
        raise SystemExit(1)
    if kwargs["address"]:
        config.ws_address = kwargs["address"]
    if kwargs["port"] is not None:
        config.ws_port = kwargs["port"]
    set_log_detector(config.detector_name)

    setproctitle(f"daqlink: {config.detector_name} ({config.url})")
    ui = ConsoleUI(auto_confirm=True if kwargs["yes"] else None)
    observers = []
    if kwargs["publish"]:
        observers.append(UiPublisher(kwargs["publish_host"], kwargs["publish_port"]))

    try:
        session = asyncio.run(
            run_session(
                config,
                ui,
                observers,
                action=kwargs["action"],
                duration=kwargs["duration"],
            )
        )
        session.raise_for_alarm()
    except KeyboardInterrupt:
        click.echo("Interrupted")
    except DeviceAlarm as e:
        click.echo(f"Error: control unit alarm (code {e.code})\n{e}", err=True)
        raise SystemExit(2)
    finally:
        for observer in observers:
            observer.close()
        ui.console.print(ui.status_table())
        shutdown_client_log()
