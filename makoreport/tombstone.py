"""Extract per-date reclaimable space from a node summary."""

from __future__ import annotations

import logging

from makoreport.contracts import TOMBSTONE_PREFIX
from makoreport.errors import TombstoneParseError
from makoreport.models import NodeSummary, TombstoneEntry

logger = logging.getLogger(__name__)


def parse_tombstone_date(key: str) -> str:
    """Return ``<date>`` from a ``tombstone_<date>`` grouping key."""
    if not key.startswith(TOMBSTONE_PREFIX):
        raise TombstoneParseError(key)
    date = key[len(TOMBSTONE_PREFIX) :]
    if not date or "/" in date or any(ch.isspace() for ch in date):
        raise TombstoneParseError(key)
    return date


def extract_tombstones_with_warnings(
    summary: NodeSummary, node_id: str
) -> tuple[list[TombstoneEntry], list[str]]:
    entries: list[TombstoneEntry] = []
    warnings: list[str] = []
    for row in summary.tombstones:
        try:
            date = parse_tombstone_date(row.key)
        except TombstoneParseError as exc:
            message = f"Unable to generate tombstone object for {node_id}/{row.key}: {exc}"
            logger.warning(message)
            warnings.append(message)
            continue
        entries.append(
            TombstoneEntry(
                date=date,
                objects=row.stats.objects,
                kilobytes=float(row.stats.kilobytes),
            )
        )
    return entries, warnings


def extract_tombstones(summary: NodeSummary, node_id: str) -> list[TombstoneEntry]:
    entries, _ = extract_tombstones_with_warnings(summary, node_id)
    return entries
