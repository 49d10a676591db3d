"""Per-node aggregation and the region run loop."""

from __future__ import annotations

import logging
import posixpath
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from makoreport.accessor import SummaryAccessor, manifest_path
from makoreport.aggregate import RegionAggregateBuilder
from makoreport.contracts import (
    DATACENTER_HEADER,
    DEFAULT_REGION_NAME,
    FAILURE_REASON_RECORD,
    FAILURE_REASON_SUMMARY,
    FAILURE_REASON_TOTALS,
    NODE_STATUS_APPENDED,
    NODE_STATUS_FAILED,
    NODE_STATUS_PENDING,
    NODE_STATUS_SUMMARY_FETCHED,
    NODE_STATUS_TOTALS_EXTRACTED,
    SUMMARY_SUBDIR,
    UNKNOWN_DATACENTER,
)
from makoreport.errors import NodeSummaryUnavailable
from makoreport.lock import single_instance
from makoreport.models import NodeOutcome, NodeRecord, RegionRunResult
from makoreport.store.contracts import ObjectStore
from makoreport.tombstone import extract_tombstones_with_warnings

logger = logging.getLogger(__name__)


def resolve_datacenter(store: ObjectStore, base_path: str, node_id: str) -> str:
    """Best-effort datacenter lookup from the manifest's object headers."""
    try:
        headers = store.info(manifest_path(base_path, node_id))
    except Exception as exc:
        logger.debug("No object info for %s: %s", node_id, exc)
        return UNKNOWN_DATACENTER
    value = (headers.get(DATACENTER_HEADER) or "").strip()
    return value or UNKNOWN_DATACENTER


class NodeAggregator:
    """Drives one node from summary lookup to a finished NodeRecord.

    ``process`` never appends; the caller hands the record to the region
    builder so that appends stay on a single thread.
    """

    def __init__(self, store: ObjectStore, accessor: SummaryAccessor, *, base_path: str) -> None:
        self.store = store
        self.accessor = accessor
        self.base_path = base_path

    def process(self, node_id: str) -> NodeOutcome:
        status = NODE_STATUS_PENDING
        logger.debug("%s: %s", node_id, status)
        datacenter = resolve_datacenter(self.store, self.base_path, node_id)

        try:
            result = self.accessor.resolve(node_id)
        except NodeSummaryUnavailable as exc:
            logger.warning("Unable to generate summary for %s: %s", node_id, exc.reason)
            return self._failed(node_id, FAILURE_REASON_SUMMARY, str(exc))
        except Exception as exc:
            logger.warning("Unable to generate summary for %s: %s", node_id, exc)
            return self._failed(node_id, FAILURE_REASON_SUMMARY, str(exc))
        status = NODE_STATUS_SUMMARY_FETCHED
        logger.debug("%s: %s (%s)", node_id, status, result.source)

        totals = result.summary.totals
        if totals is None:
            logger.warning("Failed to process summary for %s: no totals row", node_id)
            return self._failed(node_id, FAILURE_REASON_TOTALS, "summary has no totals row")
        status = NODE_STATUS_TOTALS_EXTRACTED
        logger.debug("%s: %s", node_id, status)

        try:
            tombstones, tombstone_warnings = extract_tombstones_with_warnings(
                result.summary, node_id
            )
            record = NodeRecord(
                datacenter=datacenter,
                storage_id=node_id,
                kilobytes=float(totals.kilobytes),
                objects=totals.objects,
                avg=float(totals.avg_kb),
                tombstone=tombstones,
            )
        except Exception as exc:
            logger.warning("Failed to process summary for %s: %s", node_id, exc)
            return self._failed(node_id, FAILURE_REASON_RECORD, str(exc))

        return NodeOutcome(
            node_id=node_id,
            status=status,
            record=record,
            source=result.source,
            warnings=[*result.warnings, *tombstone_warnings],
        )

    def _failed(self, node_id: str, reason: str, message: str) -> NodeOutcome:
        return NodeOutcome(
            node_id=node_id,
            status=NODE_STATUS_FAILED,
            failure_reason=reason,
            error_message=message,
        )


def list_storage_nodes(store: ObjectStore, base_path: str) -> list[str]:
    """Every mako uploads its manifest under ``base_path`` named after itself."""
    return store.list_objects(base_path)


def run_region(
    store: ObjectStore,
    accessor: SummaryAccessor,
    builder: RegionAggregateBuilder,
    *,
    base_path: str,
    workers: int = 4,
    publish: bool = True,
) -> RegionRunResult:
    """Process every storage node, then write and publish the region report.

    Node failures are recorded and skipped.  ``AggregateWriteFailure`` from an
    append or from publishing aborts the run and cancels nodes not yet started.
    """
    node_ids = list_storage_nodes(store, base_path)
    logger.info("Processing %d storage nodes (workers=%d)", len(node_ids), workers)

    aggregator = NodeAggregator(store, accessor, base_path=base_path)
    failures: list[NodeOutcome] = []
    appended = 0
    warnings = 0

    executor = ThreadPoolExecutor(max_workers=max(1, workers))
    try:
        futures: list[Future[NodeOutcome]] = [
            executor.submit(aggregator.process, node_id) for node_id in node_ids
        ]
        for future in futures:
            outcome = future.result()
            warnings += len(outcome.warnings)
            if outcome.record is None:
                failures.append(outcome)
                continue
            builder.append(outcome.record)
            appended += 1
            logger.debug("%s: %s", outcome.node_id, NODE_STATUS_APPENDED)
    except Exception:
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    finally:
        executor.shutdown(wait=True)

    report_path = builder.write_final()
    published_path = None
    if publish:
        published_path = builder.publish(store, posixpath.join(base_path, SUMMARY_SUBDIR))

    result = RegionRunResult(
        total_nodes=len(node_ids),
        appended=appended,
        failed=len(failures),
        warnings=warnings,
        report_path=report_path,
        published_path=published_path,
        failures=failures,
    )
    logger.info(
        "Region report complete: %d nodes, %d appended, %d failed, %d warnings",
        result.total_nodes,
        result.appended,
        result.failed,
        result.warnings,
    )
    return result


def execute_report(
    store: ObjectStore,
    *,
    base_path: str,
    work_dir: Path,
    lock_path: Path,
    region_name: str = DEFAULT_REGION_NAME,
    workers: int = 4,
    upload_derived: bool = False,
    publish: bool = True,
) -> RegionRunResult:
    """Run one full region report under the single-instance lock.

    Raises ``AlreadyRunning`` before touching the work directory or the store
    when another run is active.
    """
    with single_instance(lock_path):
        builder = RegionAggregateBuilder(work_dir, region_name)
        for stale in (builder.listing_path, builder.report_path):
            stale.unlink(missing_ok=True)
        work_dir.mkdir(parents=True, exist_ok=True)

        accessor = SummaryAccessor(
            store,
            base_path=base_path,
            work_dir=work_dir,
            upload_derived=upload_derived,
        )
        return run_region(
            store,
            accessor,
            builder,
            base_path=base_path,
            workers=workers,
            publish=publish,
        )
