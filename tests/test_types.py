"""Tests for asyncfsm.types."""

import dataclasses
from enum import Enum

import pytest

from asyncfsm.types import (
    Condition,
    ErrorHandlerError,
    StateHandler,
    StepRecord,
    StepResult,
)


class DummyStates(Enum):
    A = "a"
    B = "b"


def _noop_execute(ctx):
    return StepResult(None, ctx)


def _noop_transition(event, ctx):
    return None


# ── StepResult ─────────────────────────────────────────────────────────────────

class TestStepResult:
    def test_fields_stored(self):
        r = StepResult({"type": "go"}, {"n": 1})
        assert r.event == {"type": "go"}
        assert r.context == {"n": 1}

    def test_frozen(self):
        r = StepResult("e", "c")
        with pytest.raises(dataclasses.FrozenInstanceError):
            r.event = "other"


# ── StateHandler ───────────────────────────────────────────────────────────────

class TestStateHandler:
    def test_hooks_default_to_none(self):
        h = StateHandler(execute=_noop_execute, transition=_noop_transition)
        assert h.on_enter is None
        assert h.on_exit is None
        assert h.on_error is None

    def test_non_callable_execute_raises(self):
        with pytest.raises(TypeError, match="execute"):
            StateHandler(execute="nope", transition=_noop_transition)

    def test_non_callable_transition_raises(self):
        with pytest.raises(TypeError, match="transition"):
            StateHandler(execute=_noop_execute, transition=DummyStates.B)

    def test_non_callable_hook_raises(self):
        with pytest.raises(TypeError, match="on_exit"):
            StateHandler(execute=_noop_execute, transition=_noop_transition, on_exit=42)

    def test_async_callables_accepted(self):
        async def execute(ctx):
            return StepResult(None, ctx)

        async def on_enter(ctx):
            pass

        h = StateHandler(execute=execute, transition=_noop_transition, on_enter=on_enter)
        assert h.on_enter is on_enter

    def test_immutable(self):
        h = StateHandler(execute=_noop_execute, transition=_noop_transition)
        with pytest.raises(dataclasses.FrozenInstanceError):
            h.on_enter = lambda ctx: None


# ── Condition ──────────────────────────────────────────────────────────────────

class TestCondition:
    def test_fields_stored(self):
        pred = lambda e, c: True  # noqa: E731
        cond = Condition(when=pred, then=DummyStates.B)
        assert cond.when is pred
        assert cond.then == DummyStates.B


# ── StepRecord ─────────────────────────────────────────────────────────────────

class TestStepRecord:
    def test_succeeded_property(self):
        e = StepRecord(DummyStates.A, event="go", duration=0.1)
        assert e.succeeded is True

    def test_failed_when_error_message_set(self):
        e = StepRecord(DummyStates.A, duration=0.1, error_message="execution: boom")
        assert e.succeeded is False

    def test_to_dict_keys(self):
        e = StepRecord(DummyStates.A, event="go", duration=1.23)
        d = e.to_dict()
        assert d["state"] == "A"
        assert d["event"] == "go"
        assert d["duration"] == 1.23
        assert d["error_message"] is None

    def test_to_dict_non_enum_state(self):
        e = StepRecord("loading", event=None)
        assert e.to_dict()["state"] == "loading"


# ── ErrorHandlerError ──────────────────────────────────────────────────────────

class TestErrorHandlerError:
    def test_keeps_original(self):
        original = ValueError("boom")
        err = ErrorHandlerError(DummyStates.A, original)
        assert err.original is original
        assert err.state == DummyStates.A
        assert "boom" in str(err)

    def test_is_runtime_error(self):
        assert issubclass(ErrorHandlerError, RuntimeError)
