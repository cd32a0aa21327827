from __future__ import annotations

from step_pipeline.kernel.context import Context, HaltCheck, require_context
from step_pipeline.kernel.errors import ConfigurationError


def halt(context: Context) -> None:
    """Called instead of continue_ to stop the pipeline without running further steps.

    Use it when an earlier problem would invalidate the checks made by later
    steps. Scopes already entered (mocks, spies, log capture) still unwind
    normally as the call stack returns. Once halted, execute() skips the check
    that the tail step was reached. Idempotent.
    """
    require_context(context)
    context.halted.reset(True)


def add_halt_check(context: Context, check: HaltCheck) -> Context:
    """Return a context with ``check`` appended to its halt checks.

    The returned context must be the one passed to continue_. Checks are
    evaluated in registration order on every continue_ call and should be
    free of side effects.
    """
    require_context(context)
    if not callable(check):
        raise ConfigurationError(f"halt check must be callable, got {type(check).__name__}")
    return context.replace(halt_checks=(*context.halt_checks, check))


def should_halt(context: Context) -> bool:
    # Any truthy check wins; the flag only counts when settings opt into it.
    if context.settings.honor_halt_flag and context.halted.get():
        return True
    return any(check(context) for check in context.halt_checks)


def is_halted(context: Context) -> bool:
    return bool(context.halted.get())
