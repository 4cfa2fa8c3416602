"""Data anchor — plain Python structures that hold one store's tracking state.

Behavior lives in the registry and interceptor modules; everything they
mutate lives here so a store's state can be inspected in one place.
Nothing in this module is process-wide: each store creates its own Anchor.
"""

from __future__ import annotations

import weakref


class Anchor:
    """Per-store tracking state."""

    __slots__ = (
        "revisions",
        "subscribers",
        "surrogates",
        "instrumented",
    )

    def __init__(self) -> None:
        # path key -> revision counter, never pruned
        self.revisions: dict[str, int] = {}
        # path key -> list of Subscription, pruned when empty
        self.subscribers: dict[str, list] = {}
        # id(target) -> surrogate; weak so a surrogate never outlives its readers
        self.surrogates: weakref.WeakValueDictionary[int, object] = weakref.WeakValueDictionary()
        # id(model) -> InstrumentedMutator; entries drop when the model dies
        self.instrumented: dict[int, object] = {}

    def bump(self, key: str) -> int:
        revision = self.revisions.get(key, 0) + 1
        self.revisions[key] = revision
        return revision
