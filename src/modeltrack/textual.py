"""Textual integration for modeltrack. Opt-in — requires textual.

Bindings turn store subscriptions into widget updates. Each binding guards
against firing while the app is paused or not running, swallows NoMatches
from widget queries, and marshals notifications raised on a background
thread through ``app.call_from_thread``.

A binding only calls its effect when the bound value actually differs from
the last one it delivered, so a widget is not refreshed for changes that
leave its slice of the model untouched.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable

from textual.css.query import NoMatches

from modeltrack._path import normalize_path, read_at_path
from modeltrack.store import ModelStore
from modeltrack.surrogate import Surrogate

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()

Equality = Callable[[Any, Any], bool]


def _identity(previous, current) -> bool:
    return previous is current or (type(previous) is type(current) and previous == current)


@contextmanager
def pause(app):
    """Suspend bindings during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


class Binding:
    """Disposable link between a store subscription and a widget effect."""

    __slots__ = ("_unsubscribe", "_disposed")

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe = unsubscribe
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        self._disposed = True
        self._unsubscribe()


def _guarded(app, fn: Callable[[], None]) -> Callable[[], None]:
    _main = threading.get_ident()

    def _safe():
        try:
            fn()
        except NoMatches:
            pass

    def _run():
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe)
        else:
            _safe()

    return _run


def _bind(
    app, store: ModelStore, path, read, effect, *, exact, equality, fire_immediately, containers=False
) -> Binding:
    if not isinstance(store, ModelStore):
        raise TypeError(f"bindings require a store created by create_store, got {type(store).__name__}")
    equals = equality or _identity
    last = [read()]

    def _refresh():
        current = read()
        # a list or dict edited in place keeps its identity but its contents moved
        if equals(last[0], current) and not (containers and isinstance(current, Surrogate)):
            return
        last[0] = current
        effect(current)

    run = _guarded(app, _refresh)
    unsubscribe = store.subscribe(path, lambda event: run(), exact=exact)
    if fire_immediately:
        _guarded(app, lambda: effect(last[0]))()
    return Binding(unsubscribe)


def bind_value(
    app,
    store: ModelStore,
    path,
    effect: Callable[[Any], None],
    *,
    exact: bool = False,
    equality: Equality | None = None,
    fire_immediately: bool = False,
) -> Binding:
    """Call effect(value) whenever the value at path changes.

    Usage:
        bind_value(app, store, "profile.first_name",
                   lambda name: app.query_one("#name", Label).update(name))
    """
    segments = normalize_path(path)
    return _bind(
        app,
        store,
        segments,
        lambda: read_at_path(store.model, segments),
        effect,
        exact=exact,
        equality=equality,
        fire_immediately=fire_immediately,
        containers=True,
    )


def bind_selector(
    app,
    store: ModelStore,
    selector: Callable[[Any], Any],
    effect: Callable[[Any], None],
    *,
    equality: Equality | None = None,
    fire_immediately: bool = False,
) -> Binding:
    """Call effect(selector(model)) whenever any change alters the selected result."""
    if not callable(selector):
        raise TypeError("selector must be callable")
    return _bind(
        app,
        store,
        None,
        lambda: selector(store.model),
        effect,
        exact=False,
        equality=equality,
        fire_immediately=fire_immediately,
    )


def bind_model(app, store: ModelStore, effect: Callable[[Any], None]) -> Binding:
    """Call effect(model) on every root revision change."""
    return _bind(
        app,
        store,
        None,
        lambda: store.get_revision(),
        lambda revision: effect(store.model),
        exact=False,
        equality=None,
        fire_immediately=False,
    )
