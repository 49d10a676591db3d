"""Regional storage reports aggregated from mako manifests."""

from makoreport.accessor import SummaryAccessor
from makoreport.aggregate import RegionAggregateBuilder
from makoreport.models import (
    GroupStats,
    NodeRecord,
    NodeSummary,
    RegionRunResult,
    SummaryRow,
    TombstoneEntry,
)
from makoreport.runner import NodeAggregator, execute_report, run_region
from makoreport.summarize import summarize_lines, summarize_manifest
from makoreport.summary_io import parse_summary, render_summary
from makoreport.tombstone import extract_tombstones

__version__ = "0.1.0"

__all__ = [
    "GroupStats",
    "NodeAggregator",
    "NodeRecord",
    "NodeSummary",
    "RegionAggregateBuilder",
    "RegionRunResult",
    "SummaryAccessor",
    "SummaryRow",
    "TombstoneEntry",
    "execute_report",
    "extract_tombstones",
    "parse_summary",
    "render_summary",
    "run_region",
    "summarize_lines",
    "summarize_manifest",
]
