"""Obtain a node summary: pre-built artifact first, derived from the manifest otherwise."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Iterable
from pathlib import Path

from makoreport.contracts import SOURCE_DERIVED, SOURCE_PREBUILT, SUMMARY_SUBDIR
from makoreport.errors import (
    ManifestReadError,
    NodeSummaryUnavailable,
    ObjectNotFoundError,
    ObjectStoreError,
    SummaryFormatError,
)
from makoreport.models import NodeSummary, SummaryResult
from makoreport.store.contracts import ObjectStore
from makoreport.summarize import summarize_lines
from makoreport.summary_io import parse_summary, render_summary, write_bytes_atomic

logger = logging.getLogger(__name__)

Summarizer = Callable[..., NodeSummary]


def summary_path(base_path: str, node_id: str) -> str:
    return posixpath.join(base_path, SUMMARY_SUBDIR, node_id)


def manifest_path(base_path: str, node_id: str) -> str:
    return posixpath.join(base_path, node_id)


class SummaryAccessor:
    """Uniform access to per-node summaries regardless of where they come from.

    Every summary obtained is also kept under ``work_dir/<node_id>``.  With
    ``upload_derived`` set, summaries derived here are uploaded to the store so
    the next run can take the fast path.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        base_path: str,
        work_dir: Path,
        summarizer: Summarizer = summarize_lines,
        upload_derived: bool = False,
    ) -> None:
        self.store = store
        self.base_path = base_path
        self.work_dir = work_dir
        self.summarizer = summarizer
        self.upload_derived = upload_derived

    def get_summary(self, node_id: str) -> NodeSummary:
        return self.resolve(node_id).summary

    def resolve(self, node_id: str) -> SummaryResult:
        prebuilt = self._fetch_prebuilt(node_id)
        if prebuilt is not None:
            return prebuilt
        return self._derive(node_id)

    def _fetch_prebuilt(self, node_id: str) -> SummaryResult | None:
        remote = summary_path(self.base_path, node_id)
        try:
            data = self.store.get_bytes(remote)
            summary = parse_summary(data)
        except ObjectNotFoundError:
            logger.info("Unable to find summary for %s.", node_id)
            return None
        except (ObjectStoreError, SummaryFormatError) as exc:
            logger.info("Unable to use summary for %s: %s", node_id, exc)
            return None

        warnings: list[str] = []
        local_path: Path | None = self.work_dir / node_id
        try:
            write_bytes_atomic(data, local_path)
        except OSError as exc:
            message = f"Unable to cache summary for {node_id}: {exc}"
            logger.warning(message)
            warnings.append(message)
            local_path = None
        return SummaryResult(
            node_id=node_id,
            summary=summary,
            source=SOURCE_PREBUILT,
            local_path=local_path,
            warnings=warnings,
        )

    def _derive(self, node_id: str) -> SummaryResult:
        remote = manifest_path(self.base_path, node_id)
        logger.info("Downloading mako manifest %s", node_id)
        try:
            lines: Iterable[str] = self.store.iter_lines(remote)
            summary = self.summarizer(lines, source=remote)
        except (ObjectStoreError, ManifestReadError) as exc:
            raise NodeSummaryUnavailable(node_id, str(exc)) from exc

        warnings: list[str] = []
        if summary.skipped_lines:
            warnings.append(
                f"Skipped {summary.skipped_lines} malformed manifest lines for {node_id}"
            )

        rendered = render_summary(summary).encode("utf-8")
        local_path = self.work_dir / node_id
        try:
            write_bytes_atomic(rendered, local_path)
        except OSError as exc:
            raise NodeSummaryUnavailable(node_id, f"unable to write summary: {exc}") from exc

        if self.upload_derived:
            upload_warning = self._upload(node_id, rendered)
            if upload_warning is not None:
                warnings.append(upload_warning)

        return SummaryResult(
            node_id=node_id,
            summary=summary,
            source=SOURCE_DERIVED,
            local_path=local_path,
            warnings=warnings,
        )

    def _upload(self, node_id: str, rendered: bytes) -> str | None:
        """Upload a derived summary; return a warning message on failure."""
        remote = summary_path(self.base_path, node_id)
        try:
            self.store.mkdir(posixpath.dirname(remote))
            self.store.put_bytes(remote, rendered, content_type="text/plain")
        except ObjectStoreError as exc:
            message = f"Unable to upload derived summary for {node_id}: {exc}"
            logger.warning(message)
            return message
        return None
