"""Error types raised across the region report pipeline.

Per-node errors (``NodeSummaryUnavailable``, ``TombstoneParseError``) are
recoverable: the runner logs them and keeps going.  ``ConfigMissing`` and
``AggregateWriteFailure`` abort the run.
"""

from __future__ import annotations


class MakoReportError(Exception):
    """Base class for all makoreport errors."""


class ConfigMissing(MakoReportError):
    """A required credential or endpoint setting is absent."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name} is not set")


class ObjectStoreError(MakoReportError):
    """The object store could not complete a request."""


class ObjectNotFoundError(ObjectStoreError):
    """The requested object does not exist in the store."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Object not found: {path}")


class ManifestReadError(MakoReportError):
    """A raw manifest stream could not be read."""


class SummaryFormatError(MakoReportError):
    """A summary artifact is not in the expected tabular shape."""


class NodeSummaryUnavailable(MakoReportError):
    """Neither a pre-built summary nor the raw manifest yielded a summary."""

    def __init__(self, node_id: str, reason: str) -> None:
        self.node_id = node_id
        self.reason = reason
        super().__init__(f"Unable to obtain summary for {node_id}: {reason}")


class TombstoneParseError(MakoReportError):
    """A tombstone grouping key does not carry a usable date."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Malformed tombstone key {key!r}")


class AggregateWriteFailure(MakoReportError):
    """The region aggregate could not be persisted or published."""


class AlreadyRunning(MakoReportError):
    """Another report run holds the instance lock.

    Not a failure: the second invocation simply does nothing.
    """

    def __init__(self, lock_path: str) -> None:
        self.lock_path = lock_path
        super().__init__(f"Another report run holds {lock_path}")
