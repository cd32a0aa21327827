from __future__ import annotations

from collections.abc import Callable, Hashable, Sequence
from contextlib import AbstractContextManager
from contextvars import ContextVar
from typing import Any

from step_pipeline.expectations.counters import ExpectationCounter
from step_pipeline.kernel.context import Context, Step, require_context
from step_pipeline.kernel.errors import ConfigurationError
from step_pipeline.kernel.halt import add_halt_check
from step_pipeline.kernel.runner import continue_


def split(steps: Sequence[Step]) -> Step:
    """Fork the pipeline: each step in ``steps`` receives the same incoming context.

    Every branch continues through the remainder of the pipeline on its own,
    so steps after the split run once per branch, in branch order. A branch
    that halts stops only its own remainder.
    """
    if isinstance(steps, (str, bytes)) or not isinstance(steps, Sequence):
        raise ConfigurationError("split() requires a sequence of step functions")
    branches = tuple(steps)
    if not branches:
        raise ConfigurationError("split() requires at least one step function")
    for branch in branches:
        if not callable(branch):
            raise ConfigurationError(f"split() branch must be callable, got {type(branch).__name__}")

    def split_step(context: Context) -> None:
        for branch in branches:
            branch(context)

    return split_step


def assoc_in_context(path: Sequence[Hashable], value: object) -> Step:
    # Step that sets a (possibly nested) context value, then continues.
    context_path = _require_path(path)

    def assoc_step(context: Context) -> None:
        continue_(context.assoc_in(context_path, value))

    return assoc_step


def update_in_context(path: Sequence[Hashable], fn: Callable[..., object], *args: object) -> Step:
    # Step that applies fn(current, *args) at a (possibly nested) path, then continues.
    context_path = _require_path(path)
    if not callable(fn):
        raise ConfigurationError(f"update_in_context() needs a callable, got {type(fn).__name__}")

    def update_step(context: Context) -> None:
        continue_(context.update_in(context_path, fn, *args))

    return update_step


def halt_on_failure(context: Context) -> None:
    """Step that halts the pipeline once any new failure or error is recorded.

    The failure counter is snapshotted now; every later continue_ compares
    the current snapshot against it.
    """
    require_context(context)
    counter = context.counter
    baseline = counter.snapshot()

    def failures_recorded(_: Context) -> bool:
        # Passing expectations never halt; only new failures or errors do.
        current = counter.snapshot()
        return (current.failed, current.errored) != (baseline.failed, baseline.errored)

    continue_(add_halt_check(context, failures_recorded))


def reporting(*keys: Hashable) -> Step:
    """Step that reports the named context values if the rest of the pipeline fails.

    Soft failures recorded through expect() are annotated with the values, and
    an AssertionError raised further down gets them attached as a note.
    """
    if not keys:
        raise ConfigurationError("reporting() requires at least one context key")

    def reporting_step(context: Context) -> None:
        values = {str(key): context.get(key) for key in keys}
        counter = context.counter
        try:
            if isinstance(counter, ExpectationCounter):
                with counter.reporting(values):
                    continue_(context)
            else:
                continue_(context)
        except AssertionError as exc:
            for key, value in values.items():
                exc.add_note(f"{key}: {value!r}")
            raise

    return reporting_step


def bind(var: ContextVar[Any], value: object) -> Step:
    # Step that binds a context variable for the rest of the pipeline.
    if not isinstance(var, ContextVar):
        raise ConfigurationError(f"bind() requires a ContextVar, got {type(var).__name__}")

    def bind_step(context: Context) -> None:
        token = var.set(value)
        try:
            continue_(context)
        finally:
            var.reset(token)

    return bind_step


def cleanup(fn: Callable[..., object], *args: object) -> Step:
    # Step that runs fn(*args) once the rest of the pipeline returns or raises.
    if not callable(fn):
        raise ConfigurationError(f"cleanup() needs a callable, got {type(fn).__name__}")

    def cleanup_step(context: Context) -> None:
        try:
            continue_(context)
        finally:
            fn(*args)

    return cleanup_step


def managed(key: Hashable, factory: Callable[[], AbstractContextManager[Any]]) -> Step:
    """Step that enters ``factory()`` and stores the entered value under ``key``.

    The context manager exits after the rest of the pipeline, on every exit path.
    """
    if not callable(factory):
        raise ConfigurationError(f"managed() needs a context manager factory, got {type(factory).__name__}")

    def managed_step(context: Context) -> None:
        with factory() as resource:
            continue_(context.assoc(key, resource))

    return managed_step


def _require_path(path: Sequence[Hashable]) -> tuple[Hashable, ...]:
    if isinstance(path, (str, bytes)) or not isinstance(path, Sequence) or not path:
        raise ConfigurationError(f"context path must be a non-empty sequence of keys, got {path!r}")
    return tuple(path)
