"""
Helper utilities for building state machines.

Provides factory functions that reduce boilerplate when defining state
handlers and transitions. Everything here returns the same plain shapes a
caller could write by hand; the engine treats them no differently.
"""

import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple, Union

from asyncfsm.types import Condition, StateHandler, Transition

logger = logging.getLogger(__name__)


def create_state(
    execute: Callable[[Any], Any],
    transition: Transition,
    on_enter: Optional[Callable[[Any], Any]] = None,
    on_exit: Optional[Callable[[Any, Any], Any]] = None,
    on_error: Optional[Callable[[Exception, Any], Any]] = None,
) -> StateHandler:
    """
    Create a StateHandler.

    Args:
        execute: ``(context) -> StepResult``, sync or async.
        transition: ``(event, context) -> next state | None``.
        on_enter: Optional hook run before ``execute``.
        on_exit: Optional hook run after the context is committed.
        on_error: Optional hook run when the step fails.

    Returns:
        A configured StateHandler.

    Example:
        handler = create_state(
            fetch,
            transition_to(Steps.DONE),
            on_error=lambda exc, ctx: alert(exc),
        )
    """
    return StateHandler(
        execute=execute,
        transition=transition,
        on_enter=on_enter,
        on_exit=on_exit,
        on_error=on_error,
    )


def create_state_with_logging(
    state: Hashable,
    execute: Callable[[Any], Any],
    transition: Transition,
    on_enter: Optional[Callable[[Hashable, Any], Any]] = None,
    on_exit: Optional[Callable[[Hashable, Any, Any], Any]] = None,
    on_error: Optional[Callable[[Hashable, Exception, Any], Any]] = None,
) -> StateHandler:
    """
    Create a StateHandler whose lifecycle hooks know which state they belong to.

    Each callback receives ``state`` as its first argument. Callbacks that
    are not supplied fall back to logging through this module's logger:
    DEBUG on enter/exit, ERROR on failure.

    Usage:
        handler = create_state_with_logging(
            Steps.FETCH,
            fetch,
            transition_to(Steps.SAVE),
            on_error=lambda state, exc, ctx: metrics.incr(f"{state.name}.failed"),
        )
    """
    label = str(getattr(state, "name", state)).upper()

    def log_enter(_state, context):
        logger.debug(f"{label}: Starting...")

    def log_exit(_state, event, context):
        logger.debug(f"{label}: Complete ({event!r})")

    def log_error(_state, exc, context):
        logger.error(f"{label}: Failed ({exc})")

    enter = on_enter or log_enter
    exit_ = on_exit or log_exit
    error = on_error or log_error

    # Hooks are coroutine functions; awaitable callbacks are awaited inside them
    async def _on_enter(context):
        result = enter(state, context)
        if inspect.isawaitable(result):
            await result

    async def _on_exit(event, context):
        result = exit_(state, event, context)
        if inspect.isawaitable(result):
            await result

    async def _on_error(exc, context):
        result = error(state, exc, context)
        if inspect.isawaitable(result):
            await result

    return StateHandler(
        execute=execute,
        transition=transition,
        on_enter=_on_enter,
        on_exit=_on_exit,
        on_error=_on_error,
    )


def transition_to(next_state: Hashable) -> Transition:
    """Return a transition that always moves to ``next_state``."""

    def transition(event, context):
        return next_state

    return transition


def conditional_transition(
    conditions: Iterable[Union[Condition, Tuple[Callable[[Any, Any], bool], Hashable]]],
    default: Optional[Hashable] = None,
) -> Transition:
    """
    Build a transition from an ordered list of predicates.

    The first condition whose ``when(event, context)`` is truthy wins. If
    none match, ``default`` is returned (None terminates the machine).

    Args:
        conditions: Condition instances or ``(when, then)`` tuples.
        default: State to use when nothing matches.

    Raises:
        TypeError: If a condition's predicate is not callable.

    Example:
        transition = conditional_transition([
            Condition(lambda e, c: e["ok"], Steps.SAVE),
            (lambda e, c: c["attempts"] < 3, Steps.FETCH),
        ], default=Steps.ERROR)
    """
    resolved = []
    for condition in conditions:
        if not isinstance(condition, Condition):
            when, then = condition
            condition = Condition(when=when, then=then)
        if not callable(condition.when):
            raise TypeError(f"Condition predicate must be callable, got {condition.when!r}")
        resolved.append(condition)

    def transition(event, context):
        for condition in resolved:
            if condition.when(event, context):
                return condition.then
        return default

    return transition


def event_based_transition(event_map: Dict[Any, Hashable], key: str = "type") -> Transition:
    """
    Route on an event's tag.

    The tag is ``event[key]`` for mapping events and ``getattr(event, key)``
    otherwise. A missing or unhashable tag, or a tag with no entry in
    ``event_map``, terminates the machine.

    Example:
        transition = event_based_transition({
            "success": Steps.DONE,
            "retry": Steps.FETCH,
        })
    """
    routes = dict(event_map)

    def transition(event, context):
        if isinstance(event, Mapping):
            tag = event.get(key)
        else:
            tag = getattr(event, key, None)
        if not isinstance(tag, Hashable):
            return None
        return routes.get(tag)

    return transition


def final_transition() -> Transition:
    """Return a transition that always terminates the machine."""

    def transition(event, context):
        return None

    return transition
