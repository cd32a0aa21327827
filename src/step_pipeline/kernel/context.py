from __future__ import annotations

import dataclasses
from collections.abc import Callable, Hashable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from step_pipeline.kernel.cell import AtomicCell
from step_pipeline.kernel.errors import ConfigurationError

if TYPE_CHECKING:
    from step_pipeline.config.models import PipelineSettings
    from step_pipeline.expectations.counters import FailureCounter

Step = Callable[["Context"], object]
HaltCheck = Callable[["Context"], object]


def _frozen(values: Mapping[Hashable, object] | None) -> MappingProxyType:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True, slots=True, eq=False)
class Context(Mapping[Hashable, object]):
    """Immutable value threaded through the pipeline, one per step.

    Reading the context as a mapping exposes only user data. The engine-owned
    entries (remaining steps, halt flag, halt checks, spy and log buffers) are
    separate fields so user steps cannot overwrite them. The mutable state they
    reference lives in shared cells; copies of a context observe the same cells.
    """

    halted: AtomicCell[bool]
    counter: FailureCounter
    settings: PipelineSettings
    steps: tuple[Step, ...] = ()
    halt_checks: tuple[HaltCheck, ...] = ()
    spies: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    log_events: AtomicCell[tuple[object, ...]] | None = None
    data: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        # Plain dicts are coerced so in-place mutation is a runtime error.
        if not isinstance(self.data, MappingProxyType):
            object.__setattr__(self, "data", _frozen(self.data))
        if not isinstance(self.spies, MappingProxyType):
            object.__setattr__(self, "spies", _frozen(self.spies))
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "halt_checks", tuple(self.halt_checks))

    def __getitem__(self, key: Hashable) -> object:
        return self.data[key]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def replace(self, **changes: Any) -> Context:
        # Engine-level structural update of the dataclass fields.
        return dataclasses.replace(self, **changes)

    def assoc(self, key: Hashable, value: object) -> Context:
        return self.replace(data={**self.data, key: value})

    def merge(self, values: Mapping[Hashable, object] | None = None, **kwargs: object) -> Context:
        return self.replace(data={**self.data, **(values or {}), **kwargs})

    def dissoc(self, *keys: Hashable) -> Context:
        return self.replace(data={k: v for k, v in self.data.items() if k not in keys})

    def update(self, key: Hashable, fn: Callable[..., object], *args: object) -> Context:
        return self.assoc(key, fn(self.data.get(key), *args))

    def assoc_in(self, path: Sequence[Hashable], value: object) -> Context:
        keys = _require_path(path)
        return self.replace(data=_assoc_in(self.data, keys, value))

    def update_in(self, path: Sequence[Hashable], fn: Callable[..., object], *args: object) -> Context:
        keys = _require_path(path)
        current = _get_in(self.data, keys)
        return self.replace(data=_assoc_in(self.data, keys, fn(current, *args)))

    def get_in(self, path: Sequence[Hashable], default: object = None) -> object:
        keys = _require_path(path)
        try:
            return _get_in(self.data, keys, strict=True)
        except KeyError:
            return default


def _require_path(path: Sequence[Hashable]) -> tuple[Hashable, ...]:
    if isinstance(path, (str, bytes)) or not isinstance(path, Sequence):
        raise ConfigurationError(f"context path must be a sequence of keys, got {path!r}")
    if not path:
        raise ConfigurationError("context path must not be empty")
    return tuple(path)


def _get_in(data: Mapping[Hashable, object], keys: tuple[Hashable, ...], *, strict: bool = False) -> object:
    node: object = data
    for key in keys:
        if not isinstance(node, Mapping) or key not in node:
            if strict:
                raise KeyError(key)
            return None
        node = node[key]
    return node


def _assoc_in(data: Mapping[Hashable, object], keys: tuple[Hashable, ...], value: object) -> dict[Hashable, object]:
    # Copy-on-write along the path; siblings are shared, never mutated.
    head, *rest = keys
    updated = dict(data)
    if not rest:
        updated[head] = value
        return updated
    child = data.get(head)
    if child is None:
        child = {}
    if not isinstance(child, Mapping):
        raise TypeError(f"cannot associate into {type(child).__name__} at key {head!r}")
    updated[head] = _assoc_in(child, tuple(rest), value)
    return updated


def require_context(context: object) -> None:
    # Steps and helpers fail fast when handed anything but a pipeline Context.
    if not isinstance(context, Context):
        raise TypeError(f"expected a pipeline Context, got {type(context).__name__}")
