"""``makoreport report``: build and publish the regional report."""

from __future__ import annotations

import argparse
import logging

from makoreport.contracts import DEFAULT_REGION_NAME

logger = logging.getLogger(__name__)

EXIT_FATAL = 2


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("report", help="Aggregate all mako summaries into a region report")
    p.add_argument("--base-path", default=None, help="Store directory holding mako manifests")
    p.add_argument("--work-dir", default=None, help="Local directory for summaries and the report")
    p.add_argument("--lock-file", default=None, help="Single-instance lock file")
    p.add_argument(
        "--region-name",
        default=DEFAULT_REGION_NAME,
        help=f"Report file name (default: {DEFAULT_REGION_NAME})",
    )
    p.add_argument("--workers", type=int, default=None, help="Nodes processed in parallel")
    p.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    p.add_argument(
        "--local-store",
        default=None,
        help="Use a local directory as the object store instead of Manta",
    )
    p.add_argument(
        "--upload-summaries",
        action="store_true",
        help="Upload summaries derived from manifests to <base>/summary",
    )
    p.add_argument(
        "--no-publish",
        action="store_true",
        help="Write the report locally without uploading it",
    )
    p.set_defaults(handler=_handle_report)


def _handle_report(args: argparse.Namespace) -> int:
    from makoreport.cli._config import (
        build_store,
        resolve_base_path,
        resolve_lock_file,
        resolve_timeout,
        resolve_work_dir,
        resolve_workers,
    )
    from makoreport.cli._output import print_table
    from makoreport.config import load_config
    from makoreport.errors import (
        AggregateWriteFailure,
        AlreadyRunning,
        ConfigMissing,
        ObjectStoreError,
    )
    from makoreport.runner import execute_report

    config = load_config()
    try:
        store = build_store(
            args.local_store,
            config,
            timeout=resolve_timeout(args.timeout, config),
        )
    except ConfigMissing as exc:
        logger.error("fatal error: %s", exc)
        return EXIT_FATAL

    try:
        result = execute_report(
            store,
            base_path=resolve_base_path(args.base_path, config),
            work_dir=resolve_work_dir(args.work_dir, config),
            lock_path=resolve_lock_file(args.lock_file, config),
            region_name=args.region_name,
            workers=resolve_workers(args.workers, config),
            upload_derived=args.upload_summaries,
            publish=not args.no_publish,
        )
    except AlreadyRunning as exc:
        logger.info("%s. Exiting.", exc)
        return 0
    except AggregateWriteFailure as exc:
        logger.error("fatal error: %s", exc)
        return EXIT_FATAL
    except ObjectStoreError as exc:
        logger.error("fatal error: unable to list storage nodes: %s", exc)
        return EXIT_FATAL

    if result.failures:
        print_table(
            [
                {
                    "storage_id": outcome.node_id,
                    "reason": outcome.failure_reason or "",
                    "error": outcome.error_message or "",
                }
                for outcome in result.failures
            ],
            columns=["storage_id", "reason", "error"],
        )
    print(
        f"nodes: {result.total_nodes}  appended: {result.appended}  "
        f"failed: {result.failed}  warnings: {result.warnings}"
    )
    if result.published_path:
        print(f"published: {result.published_path}")
    else:
        print(f"report: {result.report_path}")
    return result.exit_status
