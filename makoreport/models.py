"""Data models for node summaries and region records."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Context, Decimal
from pathlib import Path

from makoreport.contracts import DECIMAL_PRECISION

QUAD = Context(prec=DECIMAL_PRECISION)
ZERO = Decimal(0)


@dataclass
class GroupStats:
    """Streaming accumulator for one grouping key."""

    bytes: int = 0
    objects: int = 0
    kilobytes: Decimal = ZERO

    def add(self, logical_bytes: int, kilobytes: Decimal) -> None:
        self.bytes += logical_bytes
        self.objects += 1
        self.kilobytes = QUAD.add(self.kilobytes, kilobytes)

    @property
    def avg_kb(self) -> Decimal:
        if self.objects == 0:
            return ZERO
        return QUAD.divide(self.kilobytes, Decimal(self.objects))


@dataclass(frozen=True)
class SummaryRow:
    key: str
    stats: GroupStats


@dataclass(frozen=True)
class NodeSummary:
    """Per-node grouped statistics.

    ``totals`` is always present for summaries derived from a manifest, but may
    be ``None`` when a pre-built artifact omitted it.  ``skipped_lines`` counts
    malformed manifest lines left out of the sums.
    """

    accounts: list[SummaryRow] = field(default_factory=list)
    tombstones: list[SummaryRow] = field(default_factory=list)
    totals: GroupStats | None = None
    skipped_lines: int = 0

    def account(self, name: str) -> GroupStats | None:
        for row in self.accounts:
            if row.key == name:
                return row.stats
        return None


@dataclass(frozen=True)
class TombstoneEntry:
    date: str
    objects: int
    kilobytes: float

    def to_dict(self) -> dict[str, object]:
        return {"date": self.date, "objects": self.objects, "kilobytes": self.kilobytes}


@dataclass(frozen=True)
class NodeRecord:
    datacenter: str
    storage_id: str
    kilobytes: float
    objects: int
    avg: float
    tombstone: list[TombstoneEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "datacenter": self.datacenter,
            "storage_id": self.storage_id,
            "kilobytes": self.kilobytes,
            "objects": self.objects,
            "avg": self.avg,
            "tombstone": [entry.to_dict() for entry in self.tombstone],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> NodeRecord:
        return cls(
            datacenter=str(data["datacenter"]),
            storage_id=str(data["storage_id"]),
            kilobytes=float(data["kilobytes"]),
            objects=int(data["objects"]),
            avg=float(data["avg"]),
            tombstone=[
                TombstoneEntry(
                    date=str(entry["date"]),
                    objects=int(entry["objects"]),
                    kilobytes=float(entry["kilobytes"]),
                )
                for entry in data.get("tombstone", [])
            ],
        )


@dataclass(frozen=True)
class SummaryResult:
    """A node summary plus where it came from (pre-built or derived)."""

    node_id: str
    summary: NodeSummary
    source: str
    local_path: Path | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NodeOutcome:
    node_id: str
    status: str
    record: NodeRecord | None = None
    source: str | None = None
    failure_reason: str | None = None
    error_message: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RegionRunResult:
    total_nodes: int
    appended: int
    failed: int
    warnings: int
    report_path: Path | None = None
    published_path: str | None = None
    failures: list[NodeOutcome] = field(default_factory=list)

    @property
    def exit_status(self) -> int:
        return 1 if (self.failed or self.warnings) else 0
