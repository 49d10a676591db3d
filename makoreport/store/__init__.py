"""Object store contract and adapters."""

from makoreport.store.contracts import ObjectStore
from makoreport.store.local import LocalObjectStore
from makoreport.store.manta import MantaObjectStore

__all__ = [
    "LocalObjectStore",
    "MantaObjectStore",
    "ObjectStore",
]
