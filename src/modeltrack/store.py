"""ModelStore — the public face of change tracking for one model graph.

A store captures the model once at creation, wraps it, and from then on
reports every observed write to its subscribers:

    store = create_store(contract)
    unsubscribe = store.subscribe("profile.first_name", print)
    store.model.profile.first_name = "Grace"   # prints a ChangeEvent
    store.get_revision("profile")               # 1

Reads through ``store.model`` (or ``get_value``) come back wrapped, so any
write made on what they return is observed too.
"""

from __future__ import annotations

import logging

from modeltrack import _anchor
from modeltrack._path import normalize_path, path_to_key, read_at_path
from modeltrack.events import Listener
from modeltrack.interceptor import Interceptor, Kind, kind_of
from modeltrack.registry import Disposer, Registry
from modeltrack.surrogate import unwrap

logger = logging.getLogger("modeltrack.store")


class ModelStore:
    """Change-tracking store around a single root model."""

    def __init__(self, model, *, on_update: Listener | None = None) -> None:
        model = unwrap(model)
        if kind_of(model) is Kind.SCALAR:
            raise TypeError(f"create_store expects a model instance, got {type(model).__name__}")
        self._original = model
        self._anchor = _anchor.Anchor()
        self._registry = Registry(self._anchor, on_update)
        self._interceptor = Interceptor(self._anchor, self._registry)

        self._interceptor.capture(model, [])
        # Held strongly: the root surrogate is the same object for the store's lifetime.
        self._model = self._interceptor.wrap(model, [])
        logger.debug("created store for %s", type(model).__name__)

    @property
    def model(self):
        """The wrapped root model."""
        return self._model

    def get_model(self):
        return self._model

    def get_original_model(self):
        return self._original

    def subscribe(self, path, callback: Listener, *, exact: bool = False) -> Disposer:
        """Call callback for every change at or below path (only at path if exact).

        Returns an idempotent unsubscribe function.
        """
        return self._registry.subscribe(path, callback, exact=exact)

    def get_value(self, path=None):
        segments = normalize_path(path)
        if not segments:
            return self._model
        return read_at_path(self._model, segments)

    def set_value(self, path, value):
        """Write value at path through the model's own mutator and return it."""
        segments = normalize_path(path)
        if not segments:
            raise TypeError("set_value requires a non-empty path")
        mutator = self._interceptor.mutator_for(self._original)
        if mutator is not None:
            mutator(segments, value)
        else:
            logger.debug("no instrumented mutator; assigning %r through surrogates", path_to_key(segments))
            self._interceptor.assign_at(self._original, segments, value)
        return value

    def get_revision(self, path=None) -> int:
        return self._registry.get_revision(path)

    def subscriber_count(self, path=None) -> int:
        return self._registry.subscriber_count(path)

    def assign(self, *args, **kwargs):
        return self._original.assign(*args, **kwargs)

    def is_valid(self, *args, **kwargs):
        return self._original.is_valid(*args, **kwargs)

    def __repr__(self) -> str:
        return f"ModelStore({type(self._original).__name__}, subscribers={len(self._anchor.subscribers)})"


def create_store(model, *, on_update: Listener | None = None) -> ModelStore:
    """Capture model and return a store that tracks every change in its graph.

    on_update, if given, is called once per qualifying change with the base
    ChangeEvent, whether or not anything is subscribed.
    """
    return ModelStore(model, on_update=on_update)
