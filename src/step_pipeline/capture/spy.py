from __future__ import annotations

import inspect
import pkgutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Union

import pytest

from step_pipeline.kernel.cell import append, buffer, get_and_clear
from step_pipeline.kernel.context import Context, Step, require_context
from step_pipeline.kernel.errors import ConfigurationError, UnknownSpyError
from step_pipeline.kernel.runner import continue_

# A dotted import path ("pkg.module.attr") or an explicit (owner, "attr") pair.
Identifier = Union[str, tuple[object, str]]


@dataclass(frozen=True, slots=True)
class SpyCall:
    # One recorded invocation of a spied callable.
    args: tuple[object, ...]
    kwargs: Mapping[str, object] = field(default_factory=dict)


def spy_key(identifier: Identifier) -> str:
    # Both identifier forms normalize to the dotted path used as the spy-registry key.
    if isinstance(identifier, str):
        if "." not in identifier:
            raise ConfigurationError(f"identifier must be a dotted import path, got {identifier!r}")
        return identifier
    if isinstance(identifier, tuple) and len(identifier) == 2 and isinstance(identifier[1], str):
        owner, name = identifier
        if isinstance(owner, ModuleType):
            return f"{owner.__name__}.{name}"
        owner_type = owner if isinstance(owner, type) else type(owner)
        return f"{owner_type.__module__}.{owner_type.__qualname__}.{name}"
    raise ConfigurationError(f"identifier must be a dotted path or (owner, name) pair, got {identifier!r}")


def _owner_and_name(identifier: Identifier) -> tuple[object, str]:
    if isinstance(identifier, str):
        owner_path, name = identifier.rsplit(".", 1)
        return pkgutil.resolve_name(owner_path), name
    owner, name = identifier
    return owner, name


def _raw_attribute(owner: object, name: str) -> object:
    # Class attributes are read without the descriptor protocol so static/class methods keep their kind.
    if isinstance(owner, type):
        return inspect.getattr_static(owner, name, None)
    return None


def _as_class_attribute(raw: object, fn: Callable[..., Any]) -> object:
    # Wrap fn in the same descriptor as the attribute it replaces; calls through instances then bind alike.
    if isinstance(raw, staticmethod):
        return staticmethod(fn)
    if isinstance(raw, classmethod):
        return classmethod(lambda cls, *args, **kwargs: fn(*args, **kwargs))
    return fn


def mock(identifier: Identifier, replacement: Callable[..., Any]) -> Step:
    """Step that overrides ``identifier`` with ``replacement`` for the rest of the pipeline.

    The original binding is restored when the rest of the pipeline returns or
    raises, including after a halt.
    """
    spy_key(identifier)
    if not callable(replacement):
        raise ConfigurationError(f"mock replacement must be callable, got {type(replacement).__name__}")

    def mock_step(context: Context) -> None:
        owner, name = _owner_and_name(identifier)
        with pytest.MonkeyPatch.context() as patcher:
            patcher.setattr(owner, name, _as_class_attribute(_raw_attribute(owner, name), replacement))
            continue_(context)

    return mock_step


def spy(identifier: Identifier, replacement: Callable[..., Any] | None = None) -> Step:
    """Step that wraps ``identifier`` so each call's arguments are recorded.

    Calls are forwarded to ``replacement`` when given (as with mock()),
    otherwise to the original callable, and its result is returned unchanged.
    Use calls() to retrieve what was recorded. Recording is safe from any thread.
    """
    key = spy_key(identifier)
    if replacement is not None and not callable(replacement):
        raise ConfigurationError(f"spy replacement must be callable, got {type(replacement).__name__}")

    def spy_step(context: Context) -> None:
        recorded = buffer()
        owner, name = _owner_and_name(identifier)
        raw = _raw_attribute(owner, name)

        if isinstance(raw, classmethod):
            # The owning class is bound on every call and is not recorded.
            original = raw.__func__

            def recording_classmethod(cls: type, *args: Any, **kwargs: Any) -> Any:
                append(recorded, SpyCall(args=args, kwargs=kwargs))
                if replacement is not None:
                    return replacement(*args, **kwargs)
                return original(cls, *args, **kwargs)

            installed: object = classmethod(recording_classmethod)
        else:
            target = replacement if replacement is not None else getattr(owner, name)

            def recording(*args: Any, **kwargs: Any) -> Any:
                append(recorded, SpyCall(args=args, kwargs=kwargs))
                return target(*args, **kwargs)

            installed = staticmethod(recording) if isinstance(raw, staticmethod) else recording

        with pytest.MonkeyPatch.context() as patcher:
            patcher.setattr(owner, name, installed)
            continue_(context.replace(spies={**context.spies, key: recorded}))

    return spy_step


def calls(context: Context, identifier: Identifier) -> list[SpyCall]:
    # Returns calls recorded so far (oldest first), clearing them as a side effect.
    require_context(context)
    key = spy_key(identifier)
    recorded = context.spies.get(key)
    if recorded is None:
        raise UnknownSpyError(key, list(context.spies))
    return get_and_clear(recorded)
