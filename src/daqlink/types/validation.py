"""Validation utilities for the inbound dispatch table.

This module provides validation functions to ensure:
1. Every inbound `Action` has exactly one registered handler
2. No handler is registered for something that is not an `Action`
3. Each handler is filed under the action family it belongs to

Handlers register themselves with `daqlink.comms.dispatcher.handler` at import
time; the dispatcher validates the resulting table before it accepts any
traffic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from .commands import Action, ActionFamily, action_family


@dataclass(frozen=True)
class HandlerInfo:
    """Stores the mapping between an inbound action and its handler.

    Attributes:
        handler_func: The handler function, called as `handler_func(session, envelope)`
        action: The inbound action it handles
        family: Collaborator family the action belongs to
    """

    handler_func: Callable
    action: Action
    family: ActionFamily


HANDLER_REGISTRY: dict[Action, HandlerInfo] = {}


class ValidationError(Exception):
    """Base exception for validation errors."""

    pass


def register_handler(action: Action, func: Callable) -> HandlerInfo:
    """Add `func` to the registry; registering an action twice is an error."""
    if not isinstance(action, Action):
        raise ValidationError(f"Not an inbound action: {action!r}")
    if action in HANDLER_REGISTRY:
        existing = HANDLER_REGISTRY[action].handler_func.__name__
        raise ValidationError(
            f"Action '{action.value}' already handled by {existing}, "
            f"cannot also register {func.__name__}"
        )
    info = HandlerInfo(handler_func=func, action=action, family=action_family(action))
    HANDLER_REGISTRY[action] = info
    return info


def validate_router_exhaustive(
    registry: Optional[Mapping[Action, HandlerInfo]] = None,
) -> list[str]:
    """Validate that every inbound action has a handler.

    Parameters
    ----------
    registry : Mapping[Action, HandlerInfo], optional
        Table to check, by default the global `HANDLER_REGISTRY`

    Returns
    -------
    list[str]
        List of validation error messages, empty if the table is complete
    """
    if registry is None:
        registry = HANDLER_REGISTRY
    errors = []
    for action in Action:
        if action not in registry:
            errors.append(f"No handler registered for action '{action.value}'")
    for key, info in registry.items():
        if not isinstance(key, Action):
            errors.append(f"Handler {info.handler_func.__name__} keyed by non-action {key!r}")
            continue
        if info.action is not key:
            errors.append(
                f"Handler {info.handler_func.__name__} filed under '{key.value}' "
                f"but declares '{info.action.value}'"
            )
        if info.family is not action_family(key):
            errors.append(
                f"Handler {info.handler_func.__name__} for '{key.value}' filed under "
                f"family '{info.family.value}', expected '{action_family(key).value}'"
            )
    return errors


def assert_valid_router(
    registry: Optional[Mapping[Action, HandlerInfo]] = None,
) -> None:
    """Raise ValidationError if the dispatch table is not exhaustive.

    Raises
    ------
    ValidationError
        Lists every problem found by `validate_router_exhaustive`
    """
    errors = validate_router_exhaustive(registry)
    if errors:
        raise ValidationError(
            "Dispatch table validation failed:\n" + "\n".join(errors)
        )
