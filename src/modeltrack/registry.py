"""Subscription & emission registry.

Subscribers register against a path key. A change at some path walks from
that path up to the root: every key on the way gets its revision bumped,
and the subscribers bucketed under it are called with the event.

Delivery is synchronous. A subscriber that mutates the tracked graph runs a
full nested emission before the outer loop moves on to its next subscriber.
"""

from __future__ import annotations

import logging
from typing import Callable

from modeltrack import _anchor
from modeltrack._path import normalize_path, path_to_key, traverse_ancestors
from modeltrack.events import ChangeEvent, ChangeType, Listener

logger = logging.getLogger("modeltrack.registry")

Disposer = Callable[[], None]


class Subscription:
    """A callback plus its exact-match flag. Compared by identity."""

    __slots__ = ("callback", "exact")

    def __init__(self, callback: Listener, exact: bool = False) -> None:
        self.callback = callback
        self.exact = exact

    def __repr__(self) -> str:
        return f"Subscription({self.callback!r}, exact={self.exact})"


class Registry:
    """Per-store subscriber buckets and revision counters."""

    def __init__(self, anchor: _anchor.Anchor, on_update: Listener | None = None) -> None:
        self._anchor = anchor
        self._on_update = on_update

    def subscribe(self, path, callback: Listener, *, exact: bool = False) -> Disposer:
        """Register callback at path. Returns a function that removes it."""
        key = path_to_key(normalize_path(path))
        entry = Subscription(callback, exact)
        self._anchor.subscribers.setdefault(key, []).append(entry)

        def _unsubscribe() -> None:
            bucket = self._anchor.subscribers.get(key)
            if bucket is None:
                return
            try:
                bucket.remove(entry)
            except ValueError:
                return  # already removed
            if not bucket:
                del self._anchor.subscribers[key]

        return _unsubscribe

    def emit(
        self,
        path: list[str],
        type: ChangeType,
        value=None,
        previous_value=None,
    ) -> ChangeEvent:
        """Deliver a change at path to the hook and every eligible subscriber."""
        key = path_to_key(path)
        event = ChangeEvent(
            type=type,
            path=list(path),
            key=key,
            value=value,
            previous_value=previous_value,
        )
        if self._on_update is not None:
            self._on_update(event)

        visited: set[str] = set()

        def _deliver(ancestor_key: str) -> None:
            if ancestor_key in visited:
                return
            visited.add(ancestor_key)
            revision = self._anchor.bump(ancestor_key)
            bucket = self._anchor.subscribers.get(ancestor_key)
            if not bucket:
                return
            logger.debug("emit %s %r -> %r (%d listeners)", type, key, ancestor_key, len(bucket))
            # Snapshot: entries added by a callback first fire on the next change.
            for entry in list(bucket):
                if entry.exact and ancestor_key != key:
                    continue
                if entry not in self._anchor.subscribers.get(ancestor_key, ()):
                    continue  # removed by an earlier callback
                entry.callback(event.for_observer(ancestor_key, revision))

        traverse_ancestors(path, _deliver)
        return event

    def get_revision(self, path=None) -> int:
        return self._anchor.revisions.get(path_to_key(normalize_path(path)), 0)

    def subscriber_count(self, path=None) -> int:
        bucket = self._anchor.subscribers.get(path_to_key(normalize_path(path)))
        return len(bucket) if bucket else 0
