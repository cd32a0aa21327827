from __future__ import annotations

from collections.abc import Iterable

from step_pipeline.config.models import PipelineSettings
from step_pipeline.expectations.counters import ExpectationCounter, FailureCounter
from step_pipeline.kernel.cell import AtomicCell
from step_pipeline.kernel.context import Context, Step, require_context
from step_pipeline.kernel.errors import ConfigurationError, PipelineIncompleteError
from step_pipeline.kernel.halt import halt, should_halt


def continue_(context: Context) -> None:
    """Pass ``context`` on to the next step of the pipeline.

    Every halt check is evaluated first; if any returns a truthy value the
    pipeline is halted (as with halt()) and no further step runs. Does nothing
    once the steps are exhausted, which only happens after the tail step.
    """
    require_context(context)
    if should_halt(context):
        halt(context)
        return
    if not context.steps:
        return
    next_step, *more_steps = context.steps
    next_step(context.replace(steps=tuple(more_steps)))


def flatten_steps(steps: Iterable[object]) -> list[Step]:
    # Nested lists/tuples are flattened and None placeholders dropped, so steps can be included conditionally.
    flat: list[Step] = []
    for item in steps:
        if item is None:
            continue
        if isinstance(item, (list, tuple)):
            flat.extend(flatten_steps(item))
            continue
        if not callable(item):
            raise ConfigurationError(f"pipeline step must be callable, got {type(item).__name__}: {item!r}")
        flat.append(item)
    return flat


def execute(
    *steps: object,
    settings: PipelineSettings | None = None,
    counter: FailureCounter | None = None,
) -> None:
    """Run a sequence of step functions as a pipeline.

    Each step receives a context, usually derives a new one, and passes it to
    continue_; that call is often wrapped in ``try``/``with`` to clean up
    resources or override functions for the rest of the pipeline. The final
    step is typically the most specific to the test and makes most of the
    assertions; calling continue_ from it is optional.

    Every other step must call continue_ or halt. If the run ends without
    halting and without reaching the tail step, PipelineIncompleteError is
    raised. Exceptions from steps propagate unchanged.
    """
    flat = flatten_steps(steps)
    if not flat:
        raise ConfigurationError("execute() requires at least one step")
    if settings is None:
        settings = PipelineSettings()
    counter = counter if counter is not None else ExpectationCounter()

    executed = AtomicCell(False)
    halted = AtomicCell(False)

    # Marker inserted just before the tail step records that execution got that far.
    def mark_executed(context: Context) -> None:
        executed.reset(True)
        continue_(context)

    *head, tail = flat
    continue_(
        Context(
            halted=halted,
            counter=counter,
            settings=settings,
            steps=(*head, mark_executed, tail),
        )
    )
    if not halted.get() and not executed.get():
        raise PipelineIncompleteError(
            f"no exception was thrown, but not all steps executed: tail step {_step_name(tail)} was never invoked"
        )
    if settings.verify_expectations:
        counter.verify()


def _step_name(step: Step) -> str:
    return getattr(step, "__qualname__", None) or repr(step)
