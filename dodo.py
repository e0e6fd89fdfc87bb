# -*- coding: utf-8 -*-
# pydoit task file
# see https://pydoit.org/
# run from this dir with `doit`, or `doit list`, `doit help` etc. (pip install doit 1st)

from doit.action import CmdAction

SOURCES = ["src/daqlink", "test", "dodo.py"]

SPEEDS = {
    "": [],
    "all": [],
    "slow": ["-m", "slow"],
    "fast": ["-m", '"not slow"'],
    "not slow": ["-m", '"not slow"'],
}

TEST_HELP = """echo '
daqlink test runner
===================

  -k, --keyword TEXT   pytest keyword expression, e.g. -k "logbook and not scan"
  -s, --speed TEXT     "fast" / "not slow" skips the socket tests, "slow" runs
                       only them, "all" (default) runs everything
  -r, --retry          rerun the tests that failed last time
  -p, --print-logs     do not capture output (loguru sinks print to stderr)
  -f, --full-trace     full tracebacks
  -t, --show-time      report the duration of every test

  doit test_logic -s fast -k dispatcher
  '"""


def _build_pytest_command(
    test_dir,
    keyword="",
    speed="",
    retry=False,
    print_logs=False,
    full_trace=False,
    show_time=False,
):
    """Assemble the pytest command line for `test_dir`."""
    if speed not in SPEEDS:
        raise ValueError(
            f"Invalid speed filter: {speed}. Use 'slow', 'not slow', 'fast', or 'all'"
        )
    cmd = ["pytest", "--color=yes", "-vv", "-x"]
    if print_logs:
        cmd.append("--capture=no")
    if full_trace:
        cmd.append("--full-trace")
    if show_time:
        cmd.append("--durations=0")
    if retry:
        cmd.append("--lf")
    if keyword:
        cmd.extend(["-k", f'"{keyword}"'])
    cmd.extend(SPEEDS[speed])
    cmd.append(test_dir)
    return " ".join(cmd)


def _flag(name, short):
    return {"name": name, "short": short, "default": False, "type": bool}


def task_make_env():
    """Create a conda environment"""
    return {
        "actions": ["conda create --prefix ./conda_env python=3.11"],
        "targets": ["./conda_env"],
        "uptodate": [True],  # Only run if target doesn't exist
        "verbosity": 2,
    }


def task_install():
    """Install daqlink (with test extras) in editable mode"""
    return {
        "actions": ["pip install -e .[tests]"],
        "task_dep": ["make_env"],
        "verbosity": 2,
    }


def task_test_logic():
    """Run the test suite in test/logic/ (`doit test_logic --help` for options)."""

    def router(keyword, speed, retry, print_logs, full_trace, show_time, help=False):
        if help:
            return TEST_HELP
        try:
            return _build_pytest_command(
                "test/logic/",
                keyword=keyword,
                speed=speed,
                retry=retry,
                print_logs=print_logs,
                full_trace=full_trace,
                show_time=show_time,
            )
        except ValueError as e:
            return f"echo 'Error: {str(e)}' && exit 1"

    return {
        "actions": [CmdAction(router)],
        "params": [
            {"name": "help", "long": "help", "default": False, "type": bool},
            {"name": "keyword", "short": "k", "default": ""},
            {"name": "speed", "short": "s", "default": ""},
            _flag("retry", "r"),
            _flag("print_logs", "p"),
            _flag("full_trace", "f"),
            _flag("show_time", "t"),
        ],
        "verbosity": 2,
    }


def task_format():
    """Sort imports and format the code with ruff."""
    actions = []
    for path in SOURCES:
        actions.append(f"ruff check --select I --fix {path}")
        actions.append(f"ruff format {path}")
    return {"actions": actions, "verbosity": 2}


def task_docs():
    """Generate HTML documentation for daqlink into docs/ with pdoc3."""
    return {
        "actions": [
            "pdoc3 --output-dir docs/ --html --force --skip-errors ./src/daqlink/"
        ],
        "verbosity": 2,
    }
