from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from itertools import count

import pytest

from step_pipeline.config.models import PipelineSettings
from step_pipeline.kernel.context import Context
from step_pipeline.kernel.errors import ConfigurationError, ExpectationFailedError
from step_pipeline.kernel.halt import halt
from step_pipeline.kernel.runner import continue_, execute
from step_pipeline.kernel.steps import (
    assoc_in_context,
    bind,
    cleanup,
    halt_on_failure,
    managed,
    reporting,
    split,
    update_in_context,
)
from step_pipeline.expectations.counters import ExpectationCounter
from step_pipeline.expectations.expect import expect

BOUND: ContextVar[str] = ContextVar("BOUND", default="default")


def test_split_replays_remainder_per_branch() -> None:
    # Steps after split run once per branch, in branch order.
    contexts: list[dict[str, object]] = []
    first = count(1)
    last = count(1)

    def set_tag(tag: str):
        return lambda context: continue_(context.assoc("tag", tag))

    execute(
        lambda context: continue_(context.assoc("first", next(first))),
        split([set_tag("a"), set_tag("b"), set_tag("c")]),
        lambda context: continue_(context.assoc("last", next(last))),
        lambda context: contexts.append({key: context[key] for key in ("first", "last", "tag")}),
    )
    assert contexts == [
        {"first": 1, "last": 1, "tag": "a"},
        {"first": 1, "last": 2, "tag": "b"},
        {"first": 1, "last": 3, "tag": "c"},
    ]


def test_split_branches_see_same_incoming_context() -> None:
    seen: list[object] = []

    def branch(tag: str):
        def step(context: Context) -> None:
            seen.append(context.get("tag"))
            continue_(context.assoc("tag", tag))

        return step

    execute(
        lambda context: continue_(context.assoc("tag", "root")),
        split([branch("a"), branch("b")]),
        lambda context: None,
    )
    assert seen == ["root", "root"]


def test_split_halt_in_one_branch_does_not_stop_others() -> None:
    # Each branch re-evaluates halt checks on its own continue_.
    tails: list[str] = []
    execute(
        split([halt, lambda context: continue_(context.assoc("tag", "b"))]),
        lambda context: tails.append(context["tag"]),
    )
    assert tails == ["b"]


def test_split_requires_non_empty_callables() -> None:
    with pytest.raises(ConfigurationError):
        split([])
    with pytest.raises(ConfigurationError):
        split([continue_, 42])  # type: ignore[list-item]


def test_assoc_and_update_in_context() -> None:
    captured: list[Context] = []
    execute(
        assoc_in_context(["foo"], 1),
        assoc_in_context(["bar", "baz"], 2),
        update_in_context(["bar", "baz"], lambda value: value + 1),
        update_in_context(["foo"], lambda value, delta: value + delta, 10),
        captured.append,
    )
    assert dict(captured[0]) == {"foo": 11, "bar": {"baz": 3}}


def test_context_builders_reject_bad_arguments() -> None:
    with pytest.raises(ConfigurationError):
        assoc_in_context([], 1)
    with pytest.raises(ConfigurationError):
        update_in_context(["a"], "not callable")  # type: ignore[arg-type]


def test_halt_on_failure_stops_after_new_failure() -> None:
    # The failure recorded in one step halts before the next step runs.
    counter = ExpectationCounter()

    def unreachable(context: Context) -> None:
        raise RuntimeError("should have halted")

    def passes(context: Context) -> None:
        expect(context, 1 == 1)
        continue_(context)

    def fails(context: Context) -> None:
        expect(context, 1 == 2, "induced failure")
        continue_(context)

    with pytest.raises(ExpectationFailedError, match="induced failure"):
        execute(passes, halt_on_failure, fails, unreachable, counter=counter)
    assert counter.snapshot().failed == 1


def test_halt_on_failure_ignores_earlier_failures_and_passes() -> None:
    # Only failures recorded after registration count; passes never halt.
    ran: list[str] = []
    counter = ExpectationCounter()
    counter.record_failure("before registration")

    def passes(context: Context) -> None:
        expect(context, True)
        continue_(context)

    execute(
        halt_on_failure,
        passes,
        lambda context: ran.append("tail"),
        counter=counter,
        settings=PipelineSettings(verify_expectations=False),
    )
    assert ran == ["tail"]


def test_reporting_annotates_assertion_errors() -> None:
    def tail(context: Context) -> None:
        assert context["some_data"] == 0, "forced failure"

    with pytest.raises(AssertionError) as excinfo:
        execute(
            lambda context: continue_(context.merge(some_data=42, other_data=99)),
            reporting("some_data", "other_data"),
            tail,
        )
    assert "some_data: 42" in excinfo.value.__notes__
    assert "other_data: 99" in excinfo.value.__notes__


def test_reporting_annotates_soft_failures() -> None:
    with pytest.raises(ExpectationFailedError) as excinfo:
        execute(
            lambda context: continue_(context.assoc("user", "alice")),
            reporting("user"),
            lambda context: expect(context, False, "bad login"),
        )
    assert excinfo.value.failures == ["bad login (user='alice')"]


def test_bind_sets_context_var_for_rest_of_pipeline() -> None:
    seen: list[str] = []
    execute(bind(BOUND, "override"), lambda context: seen.append(BOUND.get()))
    assert seen == ["override"]
    assert BOUND.get() == "default"


def test_cleanup_runs_on_exception() -> None:
    cleaned: list[str] = []

    def boom(context: Context) -> None:
        raise ValueError("boom")

    with pytest.raises(ValueError):
        execute(cleanup(cleaned.append, "done"), boom)
    assert cleaned == ["done"]


def test_managed_enters_and_exits_resource() -> None:
    events: list[str] = []

    @contextmanager
    def resource():
        events.append("enter")
        try:
            yield "handle"
        finally:
            events.append("exit")

    execute(managed("db", resource), lambda context: events.append(f"use {context['db']}"))
    assert events == ["enter", "use handle", "exit"]


def test_scoped_steps_unwind_after_halt() -> None:
    # Halting stops later steps but scopes already entered still unwind.
    events: list[str] = []

    def unreachable(context: Context) -> None:
        raise RuntimeError("should not run")

    execute(cleanup(events.append, "cleaned"), bind(BOUND, "x"), halt, unreachable)
    assert events == ["cleaned"]
    assert BOUND.get() == "default"


def test_halt_on_failure_keeps_running_while_expectations_pass() -> None:
    # Passing expectations after registration do not halt the pipeline.
    ran: list[str] = []

    def passes(context: Context) -> None:
        expect(context, True)
        continue_(context)

    execute(halt_on_failure, passes, passes, lambda context: ran.append("tail"))
    assert ran == ["tail"]


def test_halt_on_failure_counts_recorded_errors() -> None:
    # A recorded error halts just like a failed expectation.
    counter = ExpectationCounter()

    def unreachable(context: Context) -> None:
        raise RuntimeError("should have halted")

    def errors(context: Context) -> None:
        counter.record_error(KeyError("missing"))
        continue_(context)

    with pytest.raises(ExpectationFailedError, match="KeyError"):
        execute(halt_on_failure, errors, unreachable, counter=counter)
