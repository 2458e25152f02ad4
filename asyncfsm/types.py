"""
State machine data types and structures.

Defines the core types used by the engine:
- StepResult: What a state's ``execute`` returns (event + new context)
- StateHandler: The per-state behaviour bundle
- Transition / StateMap: The shapes the engine consumes
- Condition: One branch of an ordered-predicate transition
- StepRecord: Tracks step execution history
- ErrorHandlerError: Raised when an ``on_error`` hook itself fails
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Hashable, Mapping, Optional

# (event, context) -> next state, or None to terminate
Transition = Callable[[Any, Any], Optional[Hashable]]

StateMap = Mapping[Hashable, "StateHandler"]


@dataclass(frozen=True)
class StepResult:
    """
    Result of executing a state.

    Args:
        event: Event produced by the step. Surfaced to the consumer and
               passed to the state's transition.
        context: Replacement context. Committed by the engine as soon as
                 ``execute`` returns.
    """

    event: Any
    context: Any


@dataclass(frozen=True)
class StateHandler:
    """
    Behaviour bound to a single state.

    ``execute`` and the three hooks may be plain functions or coroutine
    functions. ``transition`` must be synchronous.

    Args:
        execute: ``(context) -> StepResult``.
        transition: ``(event, context) -> next state | None``.
        on_enter: ``(context) -> None``, called before ``execute``.
        on_exit: ``(event, context) -> None``, called with the committed context.
        on_error: ``(exc, context) -> None``, called once when any step fails.

    Raises:
        TypeError: If ``execute``, ``transition`` or a supplied hook is not callable.
    """

    execute: Callable[[Any], Any]
    transition: Transition
    on_enter: Optional[Callable[[Any], Any]] = None
    on_exit: Optional[Callable[[Any, Any], Any]] = None
    on_error: Optional[Callable[[Exception, Any], Any]] = None

    def __post_init__(self):
        if not callable(self.execute):
            raise TypeError(f"execute must be callable, got {self.execute!r}")
        if not callable(self.transition):
            raise TypeError(f"transition must be callable, got {self.transition!r}")
        for hook in ("on_enter", "on_exit", "on_error"):
            value = getattr(self, hook)
            if value is not None and not callable(value):
                raise TypeError(f"{hook} must be callable or None, got {value!r}")


@dataclass(frozen=True)
class Condition:
    """
    One branch of an ordered-predicate transition.

    Args:
        when: ``(event, context) -> bool``.
        then: State to move to when ``when`` returns True.
    """

    when: Callable[[Any, Any], bool]
    then: Hashable


@dataclass
class StepRecord:
    """
    Records the execution of a single step.

    ``event`` is None and ``error_message`` is set for failed steps.
    """

    state: Hashable
    event: Any = None
    duration: float = 0.0
    timestamp: float = field(default_factory=time.time)
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        """True if the step produced an event."""
        return self.error_message is None

    def to_dict(self) -> dict:
        """Serialise to a plain dictionary."""
        return {
            "state": self.state.name if isinstance(self.state, Enum) else str(self.state),
            "event": self.event,
            "duration": self.duration,
            "timestamp": self.timestamp,
            "error_message": self.error_message,
        }


class ErrorHandlerError(RuntimeError):
    """
    Raised when a state's ``on_error`` hook fails while handling a step failure.

    The hook's own exception is chained as ``__cause__``; the step failure
    that triggered the hook is kept in ``original``.
    """

    def __init__(self, state: Hashable, original: BaseException):
        super().__init__(f"on_error hook of state {state!r} failed while handling {original!r}")
        self.state = state
        self.original = original
