"""Path model — canonical segment lists and the algorithms over them.

A path is a list of string segments; the empty list is the root. Every
public entry point accepts either a dot-string or a list of segments and
normalizes to the list form before doing anything else.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Callable

ROOT_KEY = ""


def to_path_segment(segment) -> str:
    if segment is None:
        return ""
    return str(segment)


def normalize_path(path) -> list[str]:
    """Turn a dot-string, list of segments, or None into a segment list."""
    if path is None or path == "":
        return []
    if isinstance(path, (list, tuple)):
        return [to_path_segment(segment) for segment in path]
    if isinstance(path, str):
        return [token for token in path.split(".") if token]
    raise TypeError("path must be a string, list or None")


def path_to_key(segments: list[str]) -> str:
    return ".".join(segments) if segments else ROOT_KEY


def ancestors_of(segments: list[str]) -> list[str]:
    """Keys for the path and every prefix, leaf first, root last."""
    return [path_to_key(segments[:index]) for index in range(len(segments), -1, -1)]


def traverse_ancestors(segments: list[str], visitor: Callable[[str], None]) -> None:
    for key in ancestors_of(segments):
        visitor(key)


def read_step(current, segment: str):
    """Resolve one segment against a mapping, sequence, or plain object."""
    if isinstance(current, Mapping):
        if segment in current:
            return current[segment]
        # dict keys that are not strings still resolve by their text form
        for key in current:
            if not isinstance(key, str) and to_path_segment(key) == segment:
                return current[key]
        return None
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        try:
            return current[int(segment)]
        except (ValueError, IndexError):
            return None
    return getattr(current, segment, None)


def read_at_path(target, segments: list[str]):
    """Walk segments from target. Stops at the first None without raising."""
    current = target
    for segment in segments:
        if current is None:
            return None
        current = read_step(current, segment)
    return current
