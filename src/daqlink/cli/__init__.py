"""
Command-line interface for daqlink.

This module provides command-line tools for working with a detector control
unit, including:

- Listing, showing and installing detector profiles
- Opening a session from the terminal (monitoring, starting runs,
  resetting alarms, ...)

The CLI is built using the Click framework.

Examples
--------
Monitoring the mock detector for a minute:
```bash
$ daqlink run -n mock -d 60
```

Starting and stopping a 30 s acquisition, accepting the HV prompt:
```bash
$ daqlink run -n default --action acquire -d 30 --yes
```

See Also
--------
daqlink.session.controller : What the `run` command drives
daqlink.system.sysconfig : Detector profiles


CLI Tree
--------

```
$ daqlink --tree
cli
└── install
└── list
└── run
└── show
```
"""

from .base import cli, run_session, tree_option

__all__ = ["cli", "run_session", "tree_option"]
