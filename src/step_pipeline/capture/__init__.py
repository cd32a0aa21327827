from .logging import CapturingHandler, LogEvent, capture_logging, log_events
from .spy import Identifier, SpyCall, calls, mock, spy, spy_key

__all__ = [
    "CapturingHandler",
    "Identifier",
    "LogEvent",
    "SpyCall",
    "calls",
    "capture_logging",
    "log_events",
    "mock",
    "spy",
    "spy_key",
]
