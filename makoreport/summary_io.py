"""Read and write tab-delimited node summary artifacts.

Layout::

    account     bytes  objects  average size kb  kilobytes
    tombstone_<date>  ...
    <account>   ...
    totals      ...
"""

from __future__ import annotations

import io
import os
from decimal import Decimal
from pathlib import Path

import polars as pl

from makoreport.contracts import SUMMARY_HEADER, TOMBSTONE_PREFIX, TOTALS_KEY
from makoreport.errors import SummaryFormatError
from makoreport.models import GroupStats, NodeSummary, SummaryRow
from makoreport.summarize import parse_count, parse_decimal


def _format_decimal(value: Decimal) -> str:
    return f"{value:.6f}"


def _format_row(key: str, stats: GroupStats) -> str:
    return "\t".join(
        [
            key,
            str(stats.bytes),
            str(stats.objects),
            _format_decimal(stats.avg_kb),
            _format_decimal(stats.kilobytes),
        ]
    )


def render_summary(summary: NodeSummary) -> str:
    lines = ["\t".join(SUMMARY_HEADER)]
    for row in summary.tombstones:
        lines.append(_format_row(row.key, row.stats))
    for row in summary.accounts:
        lines.append(_format_row(row.key, row.stats))
    if summary.totals is not None:
        lines.append(_format_row(TOTALS_KEY, summary.totals))
    return "\n".join(lines) + "\n"


def _read_frame(data: bytes) -> pl.DataFrame:
    try:
        return pl.read_csv(
            io.BytesIO(data),
            separator="\t",
            has_header=True,
            infer_schema_length=0,
            quote_char=None,
        )
    except (pl.exceptions.PolarsError, ValueError) as exc:
        raise SummaryFormatError(f"Unreadable summary: {exc}") from exc


def _stats_from_fields(key: str, values: tuple[str | None, ...]) -> GroupStats:
    if any(value is None for value in values):
        raise SummaryFormatError(f"Missing value in summary row {key!r}")
    raw_bytes, raw_objects, _avg, raw_kilobytes = values
    try:
        return GroupStats(
            bytes=parse_count(raw_bytes),
            objects=parse_count(raw_objects),
            kilobytes=parse_decimal(raw_kilobytes),
        )
    except ValueError as exc:
        raise SummaryFormatError(f"Bad summary row {key!r}: {exc}") from exc


def parse_summary(data: bytes | str) -> NodeSummary:
    """Parse a summary artifact produced by this package or by a mako.

    Tombstone rows keep their full ``tombstone_<date>`` key so that date
    parsing (and its failures) happen in the tombstone extractor.  The stored
    average column is ignored and re-derived from kilobytes and objects.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not data.strip():
        raise SummaryFormatError("Empty summary")

    frame = _read_frame(data)
    header = tuple(column.strip() for column in frame.columns)
    if header != SUMMARY_HEADER:
        raise SummaryFormatError(f"Unexpected summary header {list(frame.columns)!r}")

    accounts: list[SummaryRow] = []
    tombstones: list[SummaryRow] = []
    totals: GroupStats | None = None
    for key, *values in frame.iter_rows():
        if key is None:
            raise SummaryFormatError("Summary row without a grouping key")
        stats = _stats_from_fields(key, tuple(values))
        if key == TOTALS_KEY:
            totals = stats
        elif key.startswith(TOMBSTONE_PREFIX):
            tombstones.append(SummaryRow(key, stats))
        else:
            accounts.append(SummaryRow(key, stats))

    return NodeSummary(accounts=accounts, tombstones=tombstones, totals=totals)


def write_summary_atomic(summary: NodeSummary, path: Path) -> Path:
    """Write a summary next to ``path`` and move it into place when complete."""
    write_text_atomic(render_summary(summary), path)
    return path


def write_text_atomic(text: str, path: Path) -> None:
    write_bytes_atomic(text.encode("utf-8"), path)


def write_bytes_atomic(data: bytes, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
