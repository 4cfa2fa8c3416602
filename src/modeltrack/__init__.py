"""modeltrack: fine-grained change tracking for nested model graphs."""

from importlib.metadata import version as _version

__version__ = _version("modeltrack")

from modeltrack._path import ROOT_KEY, normalize_path, path_to_key, read_at_path
from modeltrack.events import ChangeEvent
from modeltrack.interceptor import InstrumentedMutator, Kind, kind_of
from modeltrack.registry import Registry, Subscription
from modeltrack.store import ModelStore, create_store
from modeltrack.surrogate import (
    RAW,
    MappingSurrogate,
    ModelSurrogate,
    ObjectSurrogate,
    SequenceSurrogate,
    Surrogate,
    unwrap,
)
# textual NOT auto-imported — opt-in only

__all__ = [
    "ROOT_KEY",
    "RAW",
    "normalize_path",
    "path_to_key",
    "read_at_path",
    "ChangeEvent",
    "Kind",
    "kind_of",
    "InstrumentedMutator",
    "Registry",
    "Subscription",
    "ModelStore",
    "create_store",
    "Surrogate",
    "ObjectSurrogate",
    "ModelSurrogate",
    "MappingSurrogate",
    "SequenceSurrogate",
    "unwrap",
]
