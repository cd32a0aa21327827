from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Protocol, runtime_checkable

from step_pipeline.kernel.errors import ExpectationFailedError


@dataclass(frozen=True, slots=True)
class CounterSnapshot:
    # Comparable tally used by halt_on_failure to detect new failures.
    passed: int = 0
    failed: int = 0
    errored: int = 0


@runtime_checkable
class FailureCounter(Protocol):
    # Failure-counter collaborator consulted by halt_on_failure and execute().
    def snapshot(self) -> CounterSnapshot:
        raise NotImplementedError("FailureCounter.snapshot must be implemented")

    def verify(self) -> None:
        raise NotImplementedError("FailureCounter.verify must be implemented")


@dataclass(slots=True)
class ExpectationCounter(FailureCounter):
    """Thread-safe tally of soft expectations recorded while a pipeline runs.

    Failures do not raise where they are recorded; verify() raises a single
    ExpectationFailedError listing them all. Code under test running on other
    threads may record into the same counter.
    """

    _passed: int = 0
    _failures: list[str] = field(default_factory=list)
    _errors: list[str] = field(default_factory=list)
    _reporting: list[Mapping[str, object]] = field(default_factory=list)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def record_pass(self) -> None:
        with self._lock:
            self._passed += 1

    def record_failure(self, message: str) -> None:
        with self._lock:
            self._failures.append(self._annotate(message))

    def record_error(self, exc: BaseException) -> None:
        with self._lock:
            self._errors.append(self._annotate(f"{type(exc).__name__}: {exc}"))

    @property
    def failures(self) -> list[str]:
        with self._lock:
            return [*self._failures, *self._errors]

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(passed=self._passed, failed=len(self._failures), errored=len(self._errors))

    def verify(self) -> None:
        failures = self.failures
        if failures:
            raise ExpectationFailedError(failures)

    @contextmanager
    def reporting(self, values: Mapping[str, object]) -> Iterator[None]:
        # Failures recorded inside the block are annotated with these values.
        with self._lock:
            self._reporting.append(dict(values))
        try:
            yield
        finally:
            with self._lock:
                self._reporting.pop()

    def _annotate(self, message: str) -> str:
        merged: dict[str, object] = {}
        for values in self._reporting:
            merged.update(values)
        if not merged:
            return message
        details = ", ".join(f"{key}={value!r}" for key, value in merged.items())
        return f"{message} ({details})"
