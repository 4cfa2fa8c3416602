"""Change events delivered to subscribers and the on_update hook."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Literal

ChangeType = Literal["set", "delete", "mutate"]


@dataclass(frozen=True)
class ChangeEvent:
    """A single qualifying change at ``path``.

    ``observer_key`` and ``revision`` are only filled in for subscriber
    deliveries: they name the ancestor key being notified and its counter
    after the bump. The on_update hook sees them as None.
    """

    type: ChangeType
    path: list[str] = field(default_factory=list)
    key: str = ""
    value: Any = None
    previous_value: Any = None
    observer_key: str | None = None
    revision: int | None = None

    def for_observer(self, observer_key: str, revision: int) -> ChangeEvent:
        return replace(self, observer_key=observer_key, revision=revision)


Listener = Callable[[ChangeEvent], None]
