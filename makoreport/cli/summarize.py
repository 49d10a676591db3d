"""``makoreport summarize``: summarize one local manifest file."""

from __future__ import annotations

import argparse
import logging

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("summarize", help="Summarize a local mako manifest")
    p.add_argument("manifest", help="Manifest file (plain text or .gz)")
    p.add_argument("--output", default=None, help="Write the summary here instead of stdout")
    p.add_argument(
        "--format",
        choices=["tsv", "table"],
        default="tsv",
        help="tsv (summary artifact layout) or an aligned table (default: tsv)",
    )
    p.set_defaults(handler=_handle_summarize)


def _handle_summarize(args: argparse.Namespace) -> int:
    from pathlib import Path

    from makoreport.cli._output import print_table, write_output
    from makoreport.contracts import TOTALS_KEY
    from makoreport.errors import ManifestReadError
    from makoreport.summarize import summarize_manifest
    from makoreport.summary_io import render_summary

    path = Path(args.manifest)
    if not path.exists():
        print(f"error: manifest does not exist: {path}")
        return 1

    try:
        summary = summarize_manifest(path)
    except ManifestReadError as exc:
        logger.error("%s", exc)
        return 2

    if args.format == "tsv":
        write_output(render_summary(summary), args.output)
        return 0

    rows = []
    grouped = [*summary.tombstones, *summary.accounts]
    for row in grouped:
        rows.append(_table_row(row.key, row.stats))
    if summary.totals is not None:
        rows.append(_table_row(TOTALS_KEY, summary.totals))
    print_table(rows, columns=["account", "bytes", "objects", "avg_kb", "kilobytes"])
    return 0


def _table_row(key, stats) -> dict[str, str]:
    return {
        "account": key,
        "bytes": str(stats.bytes),
        "objects": str(stats.objects),
        "avg_kb": f"{stats.avg_kb:.2f}",
        "kilobytes": f"{stats.kilobytes:.2f}",
    }
