from __future__ import annotations

from step_pipeline.expectations.counters import ExpectationCounter
from step_pipeline.kernel.context import Context, require_context


def expect(context: Context, condition: object, message: str = "expectation failed") -> bool:
    """Record a soft expectation against the pipeline's failure counter.

    Unlike ``assert`` this does not raise; execute() reports all failed
    expectations once the pipeline returns. Pair with halt_on_failure to
    skip the remaining steps after the first failure.
    """
    counter = _expectation_counter(context)
    if condition:
        counter.record_pass()
        return True
    counter.record_failure(message)
    return False


def expect_error(context: Context, exc: BaseException) -> None:
    # Unexpected exceptions caught by a step can be recorded instead of raised.
    _expectation_counter(context).record_error(exc)


def _expectation_counter(context: Context) -> ExpectationCounter:
    require_context(context)
    counter = context.counter
    if not isinstance(counter, ExpectationCounter):
        raise TypeError(f"expect() needs an ExpectationCounter, pipeline uses {type(counter).__name__}")
    return counter
