"""``makoreport prom``: export mako summaries as Prometheus gauges."""

from __future__ import annotations

import argparse
import logging

from makoreport.prom import DEFAULT_NAME_FILTER

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("prom", help="Render stored summaries as Prometheus text")
    p.add_argument("--base-path", default=None, help="Store directory holding mako manifests")
    p.add_argument("--local-store", default=None, help="Use a local directory as the object store")
    p.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    p.add_argument(
        "--name-filter",
        default=DEFAULT_NAME_FILTER,
        help=f"Only summaries whose name contains this (default: {DEFAULT_NAME_FILTER})",
    )
    p.add_argument(
        "--include-tombstones",
        action="store_true",
        help="Also export per-date tombstone rows",
    )
    p.add_argument("--output", default=None, help="Write to this file instead of stdout")
    p.set_defaults(handler=_handle_prom)


def _handle_prom(args: argparse.Namespace) -> int:
    from makoreport.cli._config import build_store, resolve_base_path, resolve_timeout
    from makoreport.cli._output import write_output
    from makoreport.config import load_config
    from makoreport.errors import ConfigMissing, ObjectStoreError
    from makoreport.prom import export_prometheus

    config = load_config()
    try:
        store = build_store(args.local_store, config, timeout=resolve_timeout(args.timeout, config))
    except ConfigMissing as exc:
        logger.error("fatal error: %s", exc)
        return 2

    try:
        text = export_prometheus(
            store,
            resolve_base_path(args.base_path, config),
            name_filter=args.name_filter,
            include_tombstones=args.include_tombstones,
        )
    except ObjectStoreError as exc:
        logger.error("Unable to list summaries: %s", exc)
        return 2

    write_output(text, args.output)
    return 0
