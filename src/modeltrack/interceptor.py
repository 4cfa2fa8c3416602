"""Interception layer — kind dispatch, capture, wrapping, mutator instrumentation.

Every value reached through a store is classified once into a closed set of
kinds. The kind decides how it is observed:

- SEQUENCE: a list. Wrapped in a SequenceSurrogate.
- MODEL: exposes callable ``assign`` and ``set_value_at_path``. Its path
  mutator is instrumented once per store and it is wrapped in a
  ModelSurrogate.
- MAPPING: a dict. Wrapped in a MappingSurrogate.
- OBJECT: any other instance with a ``__dict__``. Wrapped in an
  ObjectSurrogate.
- SCALAR: everything else. Returned as-is.

Capture walks a freshly observed value and instruments every typed sub-model
it can reach, so mutations made directly on a raw model (not through a
surrogate) are still reported at the right path.
"""

from __future__ import annotations

import enum
import inspect
import logging
import weakref
from collections.abc import Mapping

from modeltrack import _anchor
from modeltrack._path import path_to_key, read_at_path, to_path_segment
from modeltrack.registry import Registry
from modeltrack.surrogate import (
    MappingSurrogate,
    ModelSurrogate,
    ObjectSurrogate,
    SequenceSurrogate,
    Surrogate,
    unwrap,
)

logger = logging.getLogger("modeltrack.interceptor")

MUTATOR = "set_value_at_path"

_SCALAR_TYPES = (str, bytes, bytearray, int, float, complex, bool, type(None))


class Kind(enum.Enum):
    SEQUENCE = "sequence"
    MODEL = "model"
    MAPPING = "mapping"
    OBJECT = "object"
    SCALAR = "scalar"


def is_model_like(value) -> bool:
    return callable(getattr(value, "assign", None)) and callable(getattr(value, MUTATOR, None))


def kind_of(value) -> Kind:
    """Classify value by probing its capabilities. Surrogates are unwrapped first."""
    value = unwrap(value)
    if isinstance(value, list):
        return Kind.SEQUENCE
    if isinstance(value, _SCALAR_TYPES):
        return Kind.SCALAR
    if inspect.isclass(value) or inspect.ismodule(value) or inspect.isroutine(value):
        return Kind.SCALAR
    if is_model_like(value):
        return Kind.MODEL
    if isinstance(value, dict):
        return Kind.MAPPING
    if hasattr(value, "__dict__"):
        return Kind.OBJECT
    return Kind.SCALAR


def has_changed(previous, value) -> bool:
    """Reference inequality: identity for containers, value for scalars.

    Tuples, frozensets and other immutable builtins are scalars, so an equal
    replacement of the same type is not a change.
    """
    if previous is value:
        return False
    if kind_of(previous) is Kind.SCALAR and kind_of(value) is Kind.SCALAR:
        return type(previous) is not type(value) or previous != value
    return True


_SURROGATE_TYPES = {
    Kind.SEQUENCE: SequenceSurrogate,
    Kind.MODEL: ModelSurrogate,
    Kind.MAPPING: MappingSurrogate,
    Kind.OBJECT: ObjectSurrogate,
}


class InstrumentedMutator:
    """Observing replacement for a model's ``set_value_at_path``.

    Built once per (store, model). Calls that write into a foreign ``target``
    run untouched and report nothing: that object is not reachable from the
    tracked root. Calls against the owning model read the value before and
    after, and report a "set" at ``base_path + segments`` when it changed.
    """

    __slots__ = ("_interceptor", "_owner", "_original", "_bound_to_class", "base_path")

    def __init__(self, interceptor: Interceptor, model, base_path: list[str]) -> None:
        self._interceptor = interceptor
        self.base_path = list(base_path)
        key = id(model)
        table = interceptor._anchor.instrumented

        def _forget(_ref) -> None:
            current = table.get(key)
            if current is not None and current.owner is None:
                del table[key]

        self._owner = weakref.ref(model, _forget)
        namespace = getattr(model, "__dict__", None)
        if namespace is not None and MUTATOR in namespace:
            # instance-level callable, possibly another store's wrapper
            self._original = namespace[MUTATOR]
            self._bound_to_class = False
        else:
            self._original = inspect.getattr_static(type(model), MUTATOR)
            self._bound_to_class = True

    @property
    def owner(self):
        return self._owner()

    def _delegate(self, owner, segments, value, target, args, kwargs):
        original = self._original
        if self._bound_to_class:
            original = original.__get__(owner, type(owner))
        if target is None:
            return original(segments, value, *args, **kwargs)
        return original(segments, value, target, *args, **kwargs)

    def __call__(self, segments, value, target=None, *args, **kwargs):
        owner = self._owner()
        target = unwrap(target)
        value = unwrap(value)
        observed = owner is not None and (target is None or target is owner)
        if not observed:
            return self._delegate(owner, segments, value, target, args, kwargs)

        normalized = [to_path_segment(segment) for segment in segments]
        previous = read_at_path(owner, normalized)
        result = self._delegate(owner, segments, value, target, args, kwargs)
        current = read_at_path(owner, normalized)
        self._interceptor.commit_set(self.base_path + normalized, previous, current)
        return result

    def __repr__(self) -> str:
        return f"InstrumentedMutator({path_to_key(self.base_path) or '<root>'})"


class Interceptor:
    """Wraps values into surrogates and turns observed writes into emissions."""

    mutator_name = MUTATOR

    def __init__(self, anchor: _anchor.Anchor, registry: Registry) -> None:
        self._anchor = anchor
        self._registry = registry

    # --- Wrapping ---

    def wrap(self, value, path: list[str]):
        """Return the surrogate for value (creating it on first sight), or value itself."""
        value = unwrap(value)
        kind = kind_of(value)
        if kind is Kind.SCALAR:
            return value

        cached = self._anchor.surrogates.get(id(value))
        if cached is not None and unwrap(cached) is value:
            return cached

        if kind is Kind.MODEL:
            self.instrument(value, path)
        surrogate = _SURROGATE_TYPES[kind](value, path, self)
        self._anchor.surrogates[id(value)] = surrogate
        return surrogate

    # --- Capture ---

    def capture(self, value, path: list[str], _seen: set[int] | None = None) -> None:
        """Instrument every typed sub-model reachable from value."""
        value = unwrap(value)
        kind = kind_of(value)
        if kind is Kind.SCALAR:
            return
        seen = set() if _seen is None else _seen
        if id(value) in seen:
            return
        seen.add(id(value))

        if kind is Kind.SEQUENCE:
            for index, item in enumerate(value):
                self.capture(item, path + [str(index)], seen)
        elif kind is Kind.MODEL:
            self.instrument(value, path)
            schema = getattr(value, "schema", None)
            if isinstance(schema, Mapping):
                for name in schema:
                    segment = to_path_segment(name)
                    self.capture(getattr(value, segment, None), path + [segment], seen)
        elif kind is Kind.MAPPING:
            for key, item in value.items():
                self.capture(item, path + [to_path_segment(key)], seen)
        elif kind is Kind.OBJECT:
            for name, item in vars(value).items():
                self.capture(item, path + [name], seen)

    # --- Model instrumentation ---

    def instrument(self, model, base_path: list[str]) -> InstrumentedMutator | None:
        """Install the observing mutator on model. At most once per store."""
        existing = self.mutator_for(model)
        if existing is not None:
            return existing
        try:
            mutator = InstrumentedMutator(self, model, base_path)
        except TypeError:
            logger.warning(
                "%s cannot be weakly referenced; %s at %r is not observed",
                type(model).__name__, MUTATOR, path_to_key(base_path),
            )
            return None

        self._anchor.instrumented[id(model)] = mutator
        namespace = getattr(model, "__dict__", None)
        if namespace is not None:
            namespace[MUTATOR] = mutator
        else:
            logger.warning(
                "%s has no instance namespace; direct %s calls at %r are not observed",
                type(model).__name__, MUTATOR, path_to_key(base_path),
            )
        logger.debug("instrumented %s at %r", type(model).__name__, path_to_key(base_path))
        return mutator

    def mutator_for(self, model) -> InstrumentedMutator | None:
        model = unwrap(model)
        mutator = self._anchor.instrumented.get(id(model))
        if mutator is None or mutator.owner is not model:
            return None
        return mutator

    # --- Committing observed writes ---

    def commit_set(self, path: list[str], previous, value, *, added: bool = False) -> None:
        """Emit "set" when value differs from previous. A newly added key always counts."""
        if not added and not has_changed(previous, value):
            return
        self.capture(value, path)
        self._registry.emit(path, "set", value=value, previous_value=previous)

    def commit_delete(self, path: list[str], previous) -> None:
        self._registry.emit(path, "delete", previous_value=previous)

    def commit_mutate(self, target: list, path: list[str], surrogate: Surrogate) -> None:
        self.capture(target, path)
        self._registry.emit(path, "mutate", value=surrogate)

    # --- Writes by path ---

    def assign_at(self, root, segments: list[str], value) -> None:
        """Write value at segments through surrogates, so the write is observed."""
        parent = read_at_path(self.wrap(root, []), segments[:-1])
        segment = segments[-1]
        kind = kind_of(parent)
        if kind is Kind.SEQUENCE:
            parent[int(segment)] = value
        elif kind is Kind.MAPPING:
            parent[segment] = value
        elif kind in (Kind.MODEL, Kind.OBJECT):
            setattr(parent, segment, value)
        else:
            raise TypeError(f"cannot assign {path_to_key(segments)!r}: parent is not a container")
