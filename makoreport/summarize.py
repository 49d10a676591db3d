"""Streaming summarizer for raw mako manifests.

A manifest has one line per stored object::

    /manta/<account>/<object-id>\t<logical bytes>\t<mtime>\t<physical kb>

Lines are grouped by account, and objects under ``tombstone/<date>/`` are also
grouped by deletion date so reclaimable space can be reported per day.
"""

from __future__ import annotations

import gzip
import logging
from collections.abc import Iterable, Iterator
from decimal import Decimal, InvalidOperation
from pathlib import Path

from makoreport.contracts import TOMBSTONE_ACCOUNT, TOMBSTONE_PREFIX
from makoreport.errors import ManifestReadError
from makoreport.models import GroupStats, NodeSummary, SummaryRow

logger = logging.getLogger(__name__)

_MIN_FIELDS = 4


def split_fields(line: str) -> list[str]:
    """Split a manifest line on tabs, or on whitespace runs when it has none."""
    if "\t" in line:
        return line.split("\t")
    return line.split()


def split_object_path(path: str) -> tuple[str, str | None]:
    """Return ``(account, subdirectory)`` for an object path.

    Absolute paths carry a namespace element before the account
    (``/manta/<account>/...``); relative paths start at the account.
    """
    parts = path.split("/")
    if path.startswith("/"):
        parts = parts[2:]
    account = parts[0] if parts else ""
    subdir = parts[1] if len(parts) > 1 else None
    return account, subdir


def parse_decimal(value: str) -> Decimal:
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    if not parsed.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return parsed


def parse_count(value: str) -> int:
    parsed = parse_decimal(value)
    if parsed != parsed.to_integral_value():
        raise ValueError(f"not an integer: {value!r}")
    return int(parsed)


class ManifestAccumulator:
    """Grouped running sums over manifest lines."""

    def __init__(self) -> None:
        self.accounts: dict[str, GroupStats] = {}
        self.tombstones: dict[str, GroupStats] = {}
        self.totals = GroupStats()
        self.lines_seen = 0
        self.lines_skipped = 0

    def feed(self, line: str) -> bool:
        """Accumulate one line; return False when it was skipped."""
        line = line.rstrip("\r\n")
        if not line.strip():
            return False
        self.lines_seen += 1

        fields = split_fields(line)
        if len(fields) < _MIN_FIELDS:
            self.lines_skipped += 1
            logger.debug("Skipping short manifest line: %r", line)
            return False
        try:
            logical_bytes = parse_count(fields[1])
            kilobytes = parse_decimal(fields[3])
        except ValueError as exc:
            self.lines_skipped += 1
            logger.debug("Skipping manifest line %r: %s", line, exc)
            return False

        account, subdir = split_object_path(fields[0])
        if not account:
            self.lines_skipped += 1
            logger.debug("Skipping manifest line without an account: %r", line)
            return False
        self.accounts.setdefault(account, GroupStats()).add(logical_bytes, kilobytes)
        if account == TOMBSTONE_ACCOUNT:
            date = subdir if subdir is not None else ""
            self.tombstones.setdefault(date, GroupStats()).add(logical_bytes, kilobytes)
        self.totals.add(logical_bytes, kilobytes)
        return True

    def build(self) -> NodeSummary:
        return NodeSummary(
            accounts=[SummaryRow(key, stats) for key, stats in self.accounts.items()],
            tombstones=[
                SummaryRow(f"{TOMBSTONE_PREFIX}{date}", stats)
                for date, stats in self.tombstones.items()
            ],
            totals=self.totals,
            skipped_lines=self.lines_skipped,
        )


def summarize_lines(lines: Iterable[str], *, source: str = "<stream>") -> NodeSummary:
    """Summarize manifest lines consumed one at a time."""
    acc = ManifestAccumulator()
    for line in lines:
        acc.feed(line)

    if acc.lines_skipped:
        logger.warning(
            "Skipped %d of %d malformed manifest lines in %s",
            acc.lines_skipped,
            acc.lines_seen,
            source,
        )
    return acc.build()


def _iter_file_lines(path: Path) -> Iterator[str]:
    if path.suffix == ".gz":
        with gzip.open(path, mode="rt", encoding="utf-8") as handle:
            yield from handle
    else:
        with path.open("r", encoding="utf-8") as handle:
            yield from handle


def summarize_manifest(path: Path) -> NodeSummary:
    """Summarize a manifest on local disk (plain text or gzip)."""
    try:
        return summarize_lines(_iter_file_lines(path), source=str(path))
    except (OSError, UnicodeDecodeError, EOFError) as exc:
        raise ManifestReadError(f"Unable to read manifest {path}: {exc}") from exc
