"""Contract for the remote object store holding manifests and summaries."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class ObjectStore(Protocol):
    """Minimal object store surface used by the report pipeline.

    Missing objects raise ``ObjectNotFoundError``; any other failure raises
    ``ObjectStoreError``.
    """

    def list_objects(self, path: str) -> list[str]:
        """Return the names of objects (not directories) directly under ``path``."""
        ...

    def get_bytes(self, path: str) -> bytes:
        """Fetch a whole object."""
        ...

    def iter_lines(self, path: str) -> Iterator[str]:
        """Stream an object line by line without buffering it in memory."""
        ...

    def info(self, path: str) -> dict[str, str]:
        """Return object headers with lower-cased names."""
        ...

    def mkdir(self, path: str) -> None:
        """Create a directory (and parents) if it does not exist."""
        ...

    def put_bytes(self, path: str, data: bytes, *, content_type: str | None = None) -> None:
        """Create or overwrite an object."""
        ...
