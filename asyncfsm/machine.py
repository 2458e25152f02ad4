"""
StateMachine — an async, pull-based finite state machine engine.

Features:
- States declared as a plain mapping of state id → StateHandler
- Fixed per-step lifecycle: on_enter → execute → commit → on_exit → yield → transition
- Sync or async handlers and hooks; transitions are always synchronous
- Lazy event stream: the next step only starts when the consumer pulls again
- Failures are routed to the failing state's on_error, then re-raised
- Bounded step history (deque) for debugging and introspection

Usage:
    from enum import Enum
    from asyncfsm import StateMachine, StepResult, create_state, transition_to, final_transition

    class Steps(Enum):
        IDLE = "idle"
        LOADING = "loading"
        SUCCESS = "success"

    async def load(ctx):
        data = await fetch()
        return StepResult({"type": "done"}, {**ctx, "data": data})

    machine = StateMachine({}, Steps.IDLE, {
        Steps.IDLE:    create_state(lambda ctx: StepResult({"type": "go"}, ctx), transition_to(Steps.LOADING)),
        Steps.LOADING: create_state(load, transition_to(Steps.SUCCESS)),
        Steps.SUCCESS: create_state(lambda ctx: StepResult({"type": "end"}, ctx), final_transition()),
    })

    async for event in machine.run():
        print(event, machine.get_current_state())

Callers must not use the mutators (``set_state``, ``update_context``,
``reset``) while a step is suspended inside a handler. Between pulls,
``update_context`` takes effect on the next step, but ``set_state`` and a
``reset`` of the state are overwritten: the state that just yielded still
has its transition pending, and that transition runs on the next pull.
Force the state between runs, or after breaking out of ``run()``.
"""

import inspect
import logging
import time
from collections import deque
from enum import Enum
from types import MappingProxyType
from typing import Any, AsyncIterator, Callable, Hashable, List, Optional

from asyncfsm.types import ErrorHandlerError, StateHandler, StateMap, StepRecord, StepResult

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _label(state: Optional[Hashable]) -> str:
    if isinstance(state, Enum):
        return state.name
    return repr(state)


async def _resolve(value: Any) -> Any:
    """Await ``value`` if a hook or handler returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


class StateMachine:
    """
    Drives a single run over a fixed map of state handlers.

    Handlers must be StateHandler instances and ``execute`` must return a
    StepResult; other objects of the same shape are rejected with TypeError.
    Wrap a custom handler class with ``create_state`` to use it.

    Attributes:
        MAX_STEPS_PER_RUN: Optional cap on steps per ``run()`` call. When
                           reached, the run stops cleanly and can be resumed
                           by calling ``run()`` again (default: None = no cap).
        HISTORY_SIZE: Number of StepRecords kept (default: 100).
    """

    MAX_STEPS_PER_RUN: Optional[int] = None
    HISTORY_SIZE: int = 100

    def __init__(self, initial_context: Any, initial_state: Optional[Hashable], states: StateMap):
        for state, handler in states.items():
            if not isinstance(handler, StateHandler):
                raise TypeError(
                    f"Handler for state {_label(state)} must be a StateHandler, "
                    f"got {type(handler).__name__}"
                )

        self._context: Any = initial_context
        self._current_state: Optional[Hashable] = initial_state
        self._states: StateMap = MappingProxyType(dict(states))
        self._history: deque = deque(maxlen=self.HISTORY_SIZE)

        logger.info(
            f"{self.__class__.__name__} created with "
            f"{len(self._states)} states, starting at {_label(initial_state)}"
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> AsyncIterator[Any]:
        """
        Run the machine from its current state, yielding one event per step.

        The generator is lazy: each step (hooks, execute, transition) only
        runs when the consumer asks for the next event. Breaking out of the
        loop leaves the machine where it was; a later ``run()`` picks up
        from the current state and context.

        Raises:
            Exception: Whatever a hook, ``execute`` or ``transition`` raised,
                       after the failing state's ``on_error`` has run.
            ErrorHandlerError: If ``on_error`` itself raised.
        """
        steps = 0

        while not self.is_terminated():
            if self.MAX_STEPS_PER_RUN is not None and steps >= self.MAX_STEPS_PER_RUN:
                logger.error(
                    f"Safety limit reached ({self.MAX_STEPS_PER_RUN} steps) "
                    f"at {_label(self._current_state)}, stopping"
                )
                return

            state = self._current_state
            handler = self._states[state]
            start = time.time()
            stage = "entry"

            try:
                logger.debug(f"Entering {_label(state)}")
                if handler.on_enter is not None:
                    await _resolve(handler.on_enter(self._context))

                stage = "execution"
                result = await _resolve(handler.execute(self._context))
                if not isinstance(result, StepResult):
                    raise TypeError(
                        f"execute for {_label(state)} must return a StepResult, "
                        f"got {type(result).__name__}"
                    )

                self._context = result.context
                logger.debug(f"{_label(state)} committed new context")

                stage = "exit"
                if handler.on_exit is not None:
                    await _resolve(handler.on_exit(result.event, self._context))
            except Exception as exc:
                await self._fail(state, handler, exc, stage, start)
                raise

            self._history.append(
                StepRecord(state=state, event=result.event, duration=time.time() - start)
            )

            yield result.event

            try:
                next_state = handler.transition(result.event, self._context)
                if inspect.isawaitable(next_state):
                    if inspect.iscoroutine(next_state):
                        next_state.close()
                    raise TypeError(f"transition for {_label(state)} must be synchronous")
            except Exception as exc:
                await self._fail(state, handler, exc, "transition", start)
                raise

            self._current_state = next_state
            steps += 1

            if self.is_terminated():
                logger.info(f"No further transitions from {_label(state)}, run complete")
            else:
                logger.info(f"Transition: {_label(state)} → {_label(next_state)}")

    async def _fail(
        self,
        state: Hashable,
        handler: StateHandler,
        exc: Exception,
        stage: str,
        start: float,
    ) -> None:
        """
        Record a failed step and give the state's on_error a chance to react.

        The caller re-raises ``exc``. If on_error raises, ErrorHandlerError
        is raised instead, chained to the hook's exception.
        """
        logger.error(f"{_label(state)} failed during {stage}: {exc}", exc_info=True)
        self._history.append(
            StepRecord(
                state=state,
                duration=time.time() - start,
                error_message=f"{stage}: {exc}",
            )
        )

        if handler.on_error is None:
            return

        try:
            await _resolve(handler.on_error(exc, self._context))
        except Exception as hook_exc:
            logger.error(f"on_error for {_label(state)} raised: {hook_exc}", exc_info=True)
            raise ErrorHandlerError(state, exc) from hook_exc

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_current_state(self) -> Optional[Hashable]:
        """Return the current state, or None once the machine has terminated."""
        return self._current_state

    def get_context(self) -> Any:
        """Return the live context. It is not copied."""
        return self._context

    def is_in_state(self, state: Hashable) -> bool:
        return self._current_state == state

    def is_terminated(self) -> bool:
        """True if the current state is None or has no handler."""
        return self._current_state is None or self._current_state not in self._states

    def get_available_states(self) -> List[Hashable]:
        """Return every state with a handler, in map order."""
        return list(self._states)

    def get_history(self, last_n: Optional[int] = None) -> List[StepRecord]:
        """
        Return step history, oldest first.

        Args:
            last_n: If provided, return only the last N entries.
        """
        history = list(self._history)
        return history[-last_n:] if last_n is not None else history

    # ------------------------------------------------------------------
    # Mutators (no hooks run)
    # ------------------------------------------------------------------

    def set_state(self, state: Optional[Hashable]) -> None:
        """
        Force the current state, skipping on_exit/on_enter.

        Called while the consumer holds an event from ``run()``, the forced
        state is replaced by the pending transition of the state that
        yielded that event. It only takes effect between runs or after the
        consumer breaks out of the loop.
        """
        logger.info(f"State forced: {_label(self._current_state)} → {_label(state)}")
        self._current_state = state

    def update_context(self, updater: Callable[[Any], Any]) -> None:
        """Replace the context with ``updater(context)``."""
        self._context = updater(self._context)

    def reset(self, new_context: Any = _UNSET, new_state: Any = _UNSET) -> None:
        """
        Replace the context and/or current state.

        Arguments that are not passed leave the field unchanged; an explicit
        ``None`` is applied like any other value.
        """
        if new_context is not _UNSET:
            self._context = new_context
        if new_state is not _UNSET:
            self._current_state = new_state
        logger.info(f"Reset to {_label(self._current_state)}")
