"""Surrogates — identity-stable observing wrappers around graph nodes.

A surrogate forwards every read to its target and routes every write through
the store's interceptor, which compares old and new values, re-captures the
new substructure and emits the change. Children read through a surrogate
come back wrapped, so an entire traversal stays observed.

Surrogates are thin handles: the target, the path they were first seen at,
and the interceptor that owns them. Reading ``RAW`` on any surrogate (or
calling ``unwrap``) hands back the target itself, outside of tracking.
"""

from __future__ import annotations

from collections.abc import MutableMapping, MutableSequence
from typing import TYPE_CHECKING, Iterator

from modeltrack._path import path_to_key, to_path_segment

if TYPE_CHECKING:
    from modeltrack.interceptor import Interceptor

RAW = "__modeltrack_raw__"

# previous value of a key or attribute that did not exist before the write
_MISSING = object()

_SLOTS = ("_surrogate_target", "_surrogate_path", "_surrogate_interceptor")


def unwrap(value):
    """Return the target behind a surrogate, or value itself."""
    if isinstance(value, Surrogate):
        return object.__getattribute__(value, "_surrogate_target")
    return value


def _is_dunder(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


class Surrogate:
    """Shared plumbing. Not instantiated directly."""

    __slots__ = _SLOTS + ("__weakref__",)

    def __init__(self, target, path: list[str], interceptor: Interceptor) -> None:
        object.__setattr__(self, "_surrogate_target", target)
        object.__setattr__(self, "_surrogate_path", list(path))
        object.__setattr__(self, "_surrogate_interceptor", interceptor)

    def _surrogate_child(self, segment, value):
        return self._surrogate_interceptor.wrap(value, self._surrogate_path + [to_path_segment(segment)])

    def __repr__(self) -> str:
        key = path_to_key(self._surrogate_path) or "<root>"
        return f"{type(self).__name__}({key}: {self._surrogate_target!r})"


# ─── Attribute-bearing objects ──────────────────────────────────────────────


class ObjectSurrogate(Surrogate):
    """Wraps a plain object: attribute reads, writes and deletes are tracked."""

    __slots__ = ()

    def __getattr__(self, name: str):
        target = self._surrogate_target
        if name == RAW:
            return target
        value = getattr(target, name)
        if _is_dunder(name) or callable(value):
            return value
        return self._surrogate_child(name, value)

    def __setattr__(self, name: str, value) -> None:
        target = self._surrogate_target
        if _is_dunder(name):
            setattr(target, name, value)
            return
        value = unwrap(value)
        previous = getattr(target, name, _MISSING)
        added = previous is _MISSING
        setattr(target, name, value)
        self._surrogate_interceptor.commit_set(
            self._surrogate_path + [name], None if added else previous, value, added=added
        )

    def __delattr__(self, name: str) -> None:
        target = self._surrogate_target
        if _is_dunder(name):
            delattr(target, name)
            return
        if not _has_own_attribute(target, name):
            return
        previous = getattr(target, name)
        delattr(target, name)
        self._surrogate_interceptor.commit_delete(self._surrogate_path + [name], previous)

    def __dir__(self):
        return dir(self._surrogate_target)

    def __eq__(self, other) -> bool:
        return self._surrogate_target == unwrap(other)

    def __hash__(self) -> int:
        return hash(self._surrogate_target)


class ModelSurrogate(ObjectSurrogate):
    """Wraps a typed sub-model. Its path mutator resolves to the store's
    instrumented wrapper even when the wrapper could not be bound onto the
    instance itself.
    """

    __slots__ = ()

    def __getattr__(self, name: str):
        if name == self._surrogate_interceptor.mutator_name:
            mutator = self._surrogate_interceptor.mutator_for(self._surrogate_target)
            if mutator is not None:
                return mutator
        return ObjectSurrogate.__getattr__(self, name)


def _has_own_attribute(target, name: str) -> bool:
    namespace = getattr(target, "__dict__", None)
    if namespace is not None and name in namespace:
        return True
    # __slots__ members are own attributes too
    slotted = any(name in getattr(cls, "__slots__", ()) for cls in type(target).__mro__)
    return slotted and hasattr(target, name)


# ─── dict ───────────────────────────────────────────────────────────────────


class MappingSurrogate(Surrogate):
    """Wraps a dict: item reads, writes and deletes are tracked."""

    __slots__ = ()

    def __getattr__(self, name: str):
        if name == RAW:
            return self._surrogate_target
        return getattr(self._surrogate_target, name)

    def __getitem__(self, key):
        return self._surrogate_child(key, self._surrogate_target[key])

    def get(self, key, default=None):
        if key not in self._surrogate_target:
            return default
        return self[key]

    def __setitem__(self, key, value) -> None:
        target = self._surrogate_target
        value = unwrap(value)
        added = key not in target
        previous = target.get(key)
        target[key] = value
        self._surrogate_interceptor.commit_set(
            self._surrogate_path + [to_path_segment(key)], previous, value, added=added
        )

    def __delitem__(self, key) -> None:
        target = self._surrogate_target
        if key not in target:
            return
        previous = target.pop(key)
        self._surrogate_interceptor.commit_delete(self._surrogate_path + [to_path_segment(key)], previous)

    def pop(self, key, *default):
        if key not in self._surrogate_target:
            if default:
                return default[0]
            raise KeyError(key)
        previous = self._surrogate_target[key]
        del self[key]
        return previous

    def popitem(self):
        if not self._surrogate_target:
            raise KeyError("popitem(): dictionary is empty")
        key = next(reversed(self._surrogate_target))
        return key, self.pop(key)

    def update(self, other=(), **kwargs) -> None:
        items = other.items() if hasattr(other, "items") else other
        for key, value in items:
            self[key] = value
        for key, value in kwargs.items():
            self[key] = value

    def setdefault(self, key, default=None):
        if key not in self._surrogate_target:
            self[key] = default
        return self[key]

    def clear(self) -> None:
        for key in list(self._surrogate_target):
            del self[key]

    def keys(self):
        return self._surrogate_target.keys()

    def values(self) -> list:
        return [self[key] for key in self._surrogate_target]

    def items(self) -> list:
        return [(key, self[key]) for key in self._surrogate_target]

    def __iter__(self) -> Iterator:
        return iter(self._surrogate_target)

    def __len__(self) -> int:
        return len(self._surrogate_target)

    def __contains__(self, key) -> bool:
        return key in self._surrogate_target

    def __bool__(self) -> bool:
        return bool(self._surrogate_target)

    def __eq__(self, other) -> bool:
        return self._surrogate_target == unwrap(other)

    __hash__ = None


# ─── list ───────────────────────────────────────────────────────────────────


class SequenceSurrogate(Surrogate):
    """Wraps a list.

    Index writes are tracked like mapping keys. Index deletes and the
    mutating list methods run on the target and then report one "mutate"
    change for the whole list. Everything else is forwarded untouched.
    """

    __slots__ = ()

    def __getattr__(self, name: str):
        if name == RAW:
            return self._surrogate_target
        return getattr(self._surrogate_target, name)

    def _index(self, index: int) -> int:
        return index + len(self._surrogate_target) if index < 0 else index

    def _mutate(self, method: str, *args, **kwargs):
        target = self._surrogate_target
        result = getattr(target, method)(*args, **kwargs)
        self._surrogate_interceptor.commit_mutate(target, self._surrogate_path, self)
        return result

    # --- Reads ---

    def __getitem__(self, index):
        value = self._surrogate_target[index]
        if isinstance(index, slice):
            return value
        return self._surrogate_child(self._index(index), value)

    def __iter__(self) -> Iterator:
        for index, value in enumerate(self._surrogate_target):
            yield self._surrogate_child(index, value)

    def __reversed__(self) -> Iterator:
        for index in range(len(self._surrogate_target) - 1, -1, -1):
            yield self[index]

    def __len__(self) -> int:
        return len(self._surrogate_target)

    def __contains__(self, item) -> bool:
        return unwrap(item) in self._surrogate_target

    def __bool__(self) -> bool:
        return bool(self._surrogate_target)

    def __eq__(self, other) -> bool:
        return self._surrogate_target == unwrap(other)

    __hash__ = None

    def __add__(self, other) -> list:
        return self._surrogate_target + list(unwrap(other))

    # --- Element writes ---

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            self._mutate("__setitem__", index, [unwrap(item) for item in value])
            return
        target = self._surrogate_target
        value = unwrap(value)
        position = self._index(index)
        previous = target[index]
        target[index] = value
        self._surrogate_interceptor.commit_set(self._surrogate_path + [str(position)], previous, value)

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            self._mutate("__delitem__", index)
            return
        position = self._index(index)
        if not 0 <= position < len(self._surrogate_target):
            return
        # later elements shift down, so the whole list changed
        self._mutate("__delitem__", position)

    # --- Mutating operations ---

    def append(self, item) -> None:
        self._mutate("append", unwrap(item))

    def extend(self, items) -> None:
        self._mutate("extend", [unwrap(item) for item in items])

    def insert(self, index: int, item) -> None:
        self._mutate("insert", index, unwrap(item))

    def pop(self, index: int = -1):
        return self._mutate("pop", index)

    def remove(self, item) -> None:
        self._mutate("remove", unwrap(item))

    def clear(self) -> None:
        self._mutate("clear")

    def sort(self, *, key=None, reverse: bool = False) -> None:
        self._mutate("sort", key=key, reverse=reverse)

    def reverse(self) -> None:
        self._mutate("reverse")

    def __iadd__(self, items):
        self.extend(items)
        return self

    def __imul__(self, count: int):
        self._mutate("__imul__", count)
        return self


MutableMapping.register(MappingSurrogate)
MutableSequence.register(SequenceSurrogate)
