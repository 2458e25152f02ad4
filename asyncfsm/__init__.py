"""
asyncfsm
~~~~~~~~

A lightweight async finite state machine engine for Python.

Quick start:
    from asyncfsm import StateMachine, StepResult, create_state
    from asyncfsm import transition_to, conditional_transition, final_transition
"""

from asyncfsm.machine import StateMachine
from asyncfsm.types import (
    Condition,
    ErrorHandlerError,
    StateHandler,
    StateMap,
    StepRecord,
    StepResult,
    Transition,
)
from asyncfsm.helpers import (
    conditional_transition,
    create_state,
    create_state_with_logging,
    event_based_transition,
    final_transition,
    transition_to,
)

__all__ = [
    "StateMachine",
    "StateHandler",
    "StateMap",
    "StepResult",
    "StepRecord",
    "Transition",
    "Condition",
    "ErrorHandlerError",
    "create_state",
    "create_state_with_logging",
    "transition_to",
    "conditional_transition",
    "event_based_transition",
    "final_transition",
]
