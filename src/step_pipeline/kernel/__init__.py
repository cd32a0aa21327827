from .errors import ConfigurationError, ExpectationFailedError, PipelineIncompleteError, UnknownSpyError
from .cell import AtomicCell, append, buffer, get_and_clear
from .context import Context, HaltCheck, Step, require_context
from .halt import add_halt_check, halt, is_halted, should_halt
from .runner import continue_, execute, flatten_steps
from .steps import (
    assoc_in_context,
    bind,
    cleanup,
    halt_on_failure,
    managed,
    reporting,
    split,
    update_in_context,
)

# Kernel exports cover the executor, halt coordination and step builders.
__all__ = [
    "AtomicCell",
    "ConfigurationError",
    "Context",
    "ExpectationFailedError",
    "HaltCheck",
    "PipelineIncompleteError",
    "Step",
    "UnknownSpyError",
    "add_halt_check",
    "append",
    "assoc_in_context",
    "bind",
    "buffer",
    "cleanup",
    "continue_",
    "execute",
    "flatten_steps",
    "get_and_clear",
    "halt",
    "halt_on_failure",
    "is_halted",
    "managed",
    "reporting",
    "require_context",
    "should_halt",
    "split",
    "update_in_context",
]
