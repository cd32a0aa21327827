from __future__ import annotations

from collections.abc import Sequence


class ConfigurationError(ValueError):
    # Raised for empty step lists, malformed builder arguments and invalid settings (fail fast).
    pass


class PipelineIncompleteError(AssertionError):
    # A step neither delegated via continue_ nor halted; this is a bug in the step, not a test failure.
    pass


class UnknownSpyError(KeyError):
    # Raised by calls() for an identifier that was never spied in this pipeline.
    def __init__(self, identifier: str, spies: Sequence[str]) -> None:
        super().__init__(identifier)
        self.identifier = identifier
        self.spies = sorted(spies)

    def __str__(self) -> str:
        return f"no spy for {self.identifier}"


class ExpectationFailedError(AssertionError):
    # Raised after a run when soft expectations recorded failures or errors.
    def __init__(self, failures: Sequence[str]) -> None:
        self.failures = list(failures)
        lines = "\n".join(f"  - {item}" for item in self.failures)
        super().__init__(f"{len(self.failures)} expectation(s) failed:\n{lines}")
