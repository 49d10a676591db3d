"""Accumulate per-node records into one region report."""

from __future__ import annotations

import json
import logging
import posixpath
from pathlib import Path

from makoreport.contracts import DEFAULT_REGION_NAME
from makoreport.errors import AggregateWriteFailure, ObjectStoreError
from makoreport.models import NodeRecord
from makoreport.store.contracts import ObjectStore
from makoreport.summary_io import write_text_atomic

logger = logging.getLogger(__name__)


class RegionAggregateBuilder:
    """Owns the region's NodeRecords for the duration of one run.

    Each append is also written as one JSON line to ``work_dir/<region_name>``
    so an interrupted run leaves its completed nodes on disk.  The combined
    document is produced once by :meth:`finalize`.
    """

    def __init__(self, work_dir: Path, region_name: str = DEFAULT_REGION_NAME) -> None:
        self.work_dir = work_dir
        self.region_name = region_name
        self.listing_path = work_dir / region_name
        self.report_path = work_dir / f"{region_name}.json"
        self._records: list[NodeRecord] = []
        self._storage_ids: set[str] = set()

    @property
    def records(self) -> list[NodeRecord]:
        return list(self._records)

    def append(self, record: NodeRecord) -> None:
        if record.storage_id in self._storage_ids:
            raise AggregateWriteFailure(
                f"Duplicate storage_id {record.storage_id!r} in region aggregate"
            )

        line = json.dumps(record.to_dict(), separators=(",", ":"))
        try:
            self.listing_path.parent.mkdir(parents=True, exist_ok=True)
            with self.listing_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise AggregateWriteFailure(
                f"Unable to update aggregation file {self.listing_path}: {exc}"
            ) from exc

        self._records.append(record)
        self._storage_ids.add(record.storage_id)

    def finalize(self) -> str:
        return json.dumps([record.to_dict() for record in self._records], indent=2) + "\n"

    def write_final(self) -> Path:
        try:
            write_text_atomic(self.finalize(), self.report_path)
        except OSError as exc:
            raise AggregateWriteFailure(
                f"Unable to write region report {self.report_path}: {exc}"
            ) from exc
        return self.report_path

    def publish(self, store: ObjectStore, remote_dir: str) -> str:
        """Upload the final document to ``remote_dir/<region_name>.json``."""
        remote_path = posixpath.join(remote_dir, self.report_path.name)
        try:
            store.mkdir(remote_dir)
        except ObjectStoreError as exc:
            raise AggregateWriteFailure(
                f"Unable to create summary directory {remote_dir}: {exc}"
            ) from exc
        try:
            store.put_bytes(
                remote_path,
                self.finalize().encode("utf-8"),
                content_type="application/json",
            )
        except ObjectStoreError as exc:
            raise AggregateWriteFailure(f"Unable to upload {remote_path}: {exc}") from exc
        logger.info("Published region report to %s", remote_path)
        return remote_path


def load_listing(path: Path) -> list[NodeRecord]:
    """Read the per-node JSON lines left by a (possibly interrupted) run."""
    records = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        if raw.strip():
            records.append(NodeRecord.from_dict(json.loads(raw)))
    return records
