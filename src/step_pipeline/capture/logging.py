from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from step_pipeline.kernel.cell import AtomicCell, append, buffer, get_and_clear
from step_pipeline.kernel.context import Context, require_context
from step_pipeline.kernel.errors import ConfigurationError
from step_pipeline.kernel.runner import continue_


@dataclass(frozen=True, slots=True)
class LogEvent:
    # One captured logging record, flattened to plain values.
    thread_name: str
    logger: str
    level: str
    levelno: int
    message: str
    exception: BaseException | None = None
    task_name: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class CapturingHandler(logging.Handler):
    # Handler that appends every record it accepts to a shared capture buffer.
    def __init__(self, events: AtomicCell[tuple[object, ...]], level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._events = events

    def emit(self, record: logging.LogRecord) -> None:
        exc_info = record.exc_info
        append(
            self._events,
            LogEvent(
                thread_name=record.threadName or threading.current_thread().name,
                logger=record.name,
                level=record.levelname.lower(),
                levelno=record.levelno,
                message=record.getMessage(),
                exception=exc_info[1] if exc_info else None,
                task_name=getattr(record, "taskName", None),
                timestamp=datetime.fromtimestamp(record.created, tz=UTC),
            ),
        )


@contextmanager
def _capturing(handler: logging.Handler, level: int) -> Iterator[None]:
    # Replace the root backend and open every logger up; restore all of it on exit.
    root = logging.getLogger()
    manager = root.manager
    saved_handlers = root.handlers[:]
    saved_root_level = root.level
    saved_disable = manager.disable
    saved_loggers = [
        (logger, logger.level, logger.propagate, logger.disabled)
        for logger in list(manager.loggerDict.values())
        if isinstance(logger, logging.Logger)
    ]
    root.handlers = [handler]
    root.setLevel(level)
    logging.disable(logging.NOTSET)
    for logger, _level, _propagate, _disabled in saved_loggers:
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
        logger.disabled = False
    try:
        yield
    finally:
        for logger, saved_level, propagate, disabled in saved_loggers:
            logger.setLevel(saved_level)
            logger.propagate = propagate
            logger.disabled = disabled
        logging.disable(saved_disable)
        root.setLevel(saved_root_level)
        root.handlers = saved_handlers


def capture_logging(context: Context) -> None:
    """Step that captures events logged through the ``logging`` module.

    For the rest of the pipeline every logger and level (down to
    ``settings.log_capture_level``) is routed to a capture buffer instead of
    the configured handlers. The previous configuration is restored afterwards.
    Use log_events() to retrieve what was captured.
    """
    require_context(context)
    events = buffer()
    level = context.settings.log_capture_level
    with _capturing(CapturingHandler(events, level), level):
        continue_(context.replace(log_events=events))


def log_events(context: Context) -> list[LogEvent]:
    # Returns events captured so far (oldest first), clearing them as a side effect.
    require_context(context)
    if context.log_events is None:
        raise ConfigurationError("log_events() requires a capture_logging step earlier in the pipeline")
    return get_and_clear(context.log_events)
