from .counters import CounterSnapshot, ExpectationCounter, FailureCounter
from .expect import expect, expect_error

__all__ = ["CounterSnapshot", "ExpectationCounter", "FailureCounter", "expect", "expect_error"]
