"""Per-test pipelines of composable steps, with scoped mocks, spies and log capture.

A test is written as a series of step functions. Each step receives a context,
does its part of the setup or checking, and passes a (possibly updated) context
to the next step with continue_(). Tests stay flat instead of nesting ``with``
blocks, and setup steps can be shared between tests.

    execute(
        capture_logging,
        spy("myapp.db.put_row", lambda *args: None),
        assoc_in_context(["user"], "alice"),
        check_signup,
    )
"""

from .kernel import (
    AtomicCell,
    ConfigurationError,
    Context,
    ExpectationFailedError,
    PipelineIncompleteError,
    UnknownSpyError,
    add_halt_check,
    append,
    assoc_in_context,
    bind,
    cleanup,
    continue_,
    execute,
    get_and_clear,
    halt,
    halt_on_failure,
    managed,
    reporting,
    split,
    update_in_context,
)
from .capture import LogEvent, SpyCall, calls, capture_logging, log_events, mock, spy
from .config import PipelineSettings, load_settings
from .expectations import CounterSnapshot, ExpectationCounter, FailureCounter, expect, expect_error

__all__ = [
    "AtomicCell",
    "ConfigurationError",
    "Context",
    "CounterSnapshot",
    "ExpectationCounter",
    "ExpectationFailedError",
    "FailureCounter",
    "LogEvent",
    "PipelineIncompleteError",
    "PipelineSettings",
    "SpyCall",
    "UnknownSpyError",
    "add_halt_check",
    "append",
    "assoc_in_context",
    "bind",
    "calls",
    "capture_logging",
    "cleanup",
    "continue_",
    "execute",
    "expect",
    "expect_error",
    "get_and_clear",
    "halt",
    "halt_on_failure",
    "load_settings",
    "log_events",
    "managed",
    "mock",
    "reporting",
    "spy",
    "split",
    "update_in_context",
]
