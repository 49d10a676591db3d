"""Filesystem-backed object store.

Store paths are mapped under a local root, so ``/poseidon/stor/mako/x`` lives
at ``<root>/poseidon/stor/mako/x``.  Object headers (for example
``m-datacenter``) are read from an optional ``<name>.headers.json`` sidecar.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

from makoreport.errors import ObjectNotFoundError, ObjectStoreError
from makoreport.summary_io import write_bytes_atomic

HEADERS_SUFFIX = ".headers.json"
_HIDDEN_SUFFIXES = (HEADERS_SUFFIX, ".tmp")


class LocalObjectStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        rel = path.strip("/")
        if any(part == ".." for part in rel.split("/")):
            raise ObjectStoreError(f"Path escapes store root: {path}")
        return self.root / rel if rel else self.root

    def list_objects(self, path: str) -> list[str]:
        directory = self._resolve(path)
        if not directory.is_dir():
            raise ObjectNotFoundError(path)
        return sorted(
            entry.name
            for entry in directory.iterdir()
            if entry.is_file() and not entry.name.endswith(_HIDDEN_SUFFIXES)
        )

    def get_bytes(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise ObjectNotFoundError(path) from exc
        except OSError as exc:
            raise ObjectStoreError(f"Unable to read {path}: {exc}") from exc

    def iter_lines(self, path: str) -> Iterator[str]:
        target = self._resolve(path)
        if not target.is_file():
            raise ObjectNotFoundError(path)
        return self._iter_file(target, path)

    def _iter_file(self, target: Path, path: str) -> Iterator[str]:
        try:
            with target.open("r", encoding="utf-8") as handle:
                for line in handle:
                    yield line.rstrip("\n")
        except (OSError, UnicodeDecodeError) as exc:
            raise ObjectStoreError(f"Unable to stream {path}: {exc}") from exc

    def info(self, path: str) -> dict[str, str]:
        target = self._resolve(path)
        if not target.exists():
            raise ObjectNotFoundError(path)
        sidecar = target.with_name(target.name + HEADERS_SUFFIX)
        if not sidecar.exists():
            return {}
        try:
            raw = json.loads(sidecar.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ObjectStoreError(f"Unable to read headers for {path}: {exc}") from exc
        return {str(key).lower(): str(value) for key, value in raw.items()}

    def mkdir(self, path: str) -> None:
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ObjectStoreError(f"Unable to create directory {path}: {exc}") from exc

    def put_bytes(self, path: str, data: bytes, *, content_type: str | None = None) -> None:
        target = self._resolve(path)
        try:
            write_bytes_atomic(data, target)
        except OSError as exc:
            raise ObjectStoreError(f"Unable to write {path}: {exc}") from exc
