"""Render per-node summaries as Prometheus gauges.

Three gauges are emitted, each labelled with the account and the mako::

    manta_object_stored{account="...",mako="..."} 12
    manta_object_logical_bytes{account="...",mako="..."} 4096
    manta_object_phys_kilobytes{account="...",mako="..."} 8
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable
from decimal import ROUND_HALF_EVEN, Decimal

import polars as pl

from makoreport.contracts import SUMMARY_SUBDIR
from makoreport.errors import ObjectStoreError, SummaryFormatError
from makoreport.models import NodeSummary
from makoreport.store.contracts import ObjectStore
from makoreport.summary_io import parse_summary

logger = logging.getLogger(__name__)

DEFAULT_NAME_FILTER = "stor"

METRICS: tuple[tuple[str, str, str], ...] = (
    ("manta_object_stored", "objects", "The total number of objects stored."),
    ("manta_object_logical_bytes", "bytes", "The total logical size of objects stored."),
    ("manta_object_phys_kilobytes", "kilobytes", "The total physical size of objects stored."),
)

_SCHEMA = {
    "mako": pl.Utf8,
    "account": pl.Utf8,
    "objects": pl.Int64,
    "bytes": pl.Int64,
    "kilobytes": pl.Int64,
}


def _whole(value: Decimal | int) -> int:
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def summaries_frame(
    summaries: Iterable[tuple[str, NodeSummary]],
    *,
    include_tombstones: bool = False,
) -> pl.DataFrame:
    """Flatten summaries to one row per (mako, account); totals are dropped."""
    rows = []
    for mako, summary in summaries:
        grouped = list(summary.accounts)
        if include_tombstones:
            grouped.extend(summary.tombstones)
        for row in grouped:
            rows.append(
                {
                    "mako": mako,
                    "account": row.key,
                    "objects": row.stats.objects,
                    "bytes": row.stats.bytes,
                    "kilobytes": _whole(row.stats.kilobytes),
                }
            )
    return pl.DataFrame(rows, schema=_SCHEMA).sort(["mako", "account"])


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def render_prometheus(frame: pl.DataFrame) -> str:
    lines: list[str] = []
    for metric, column, help_text in METRICS:
        lines.append(f"# HELP {metric} {help_text}")
        lines.append(f"# TYPE {metric} gauge")
        for account, mako, value in frame.select(["account", "mako", column]).iter_rows():
            labels = f'account="{_escape_label(account)}",mako="{_escape_label(mako)}"'
            lines.append(f"{metric}{{{labels}}} {value}")
    return "\n".join(lines) + "\n"


def load_store_summaries(
    store: ObjectStore,
    base_path: str,
    *,
    name_filter: str = DEFAULT_NAME_FILTER,
) -> list[tuple[str, NodeSummary]]:
    """Fetch every summary under ``<base>/summary`` whose name contains ``name_filter``.

    Summaries that cannot be fetched or parsed are skipped with a warning.
    """
    summary_dir = posixpath.join(base_path, SUMMARY_SUBDIR)
    loaded = []
    for name in store.list_objects(summary_dir):
        if name_filter and name_filter not in name:
            continue
        try:
            summary = parse_summary(store.get_bytes(posixpath.join(summary_dir, name)))
        except (ObjectStoreError, SummaryFormatError) as exc:
            logger.warning("Skipping summary %s: %s", name, exc)
            continue
        loaded.append((name, summary))
    return loaded


def export_prometheus(
    store: ObjectStore,
    base_path: str,
    *,
    name_filter: str = DEFAULT_NAME_FILTER,
    include_tombstones: bool = False,
) -> str:
    summaries = load_store_summaries(store, base_path, name_filter=name_filter)
    frame = summaries_frame(summaries, include_tombstones=include_tombstones)
    logger.info("Rendering %d series from %d summaries", frame.height, len(summaries))
    return render_prometheus(frame)