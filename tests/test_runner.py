from __future__ import annotations

import json
from pathlib import Path

import pytest

from makoreport.accessor import SummaryAccessor
from makoreport.aggregate import RegionAggregateBuilder, load_listing
from makoreport.contracts import (
    FAILURE_REASON_SUMMARY,
    FAILURE_REASON_TOTALS,
    SOURCE_DERIVED,
    SOURCE_PREBUILT,
    UNKNOWN_DATACENTER,
)
from makoreport.errors import AggregateWriteFailure, ObjectStoreError
from makoreport.models import NodeRecord
from makoreport.runner import NodeAggregator, execute_report, resolve_datacenter, run_region
from makoreport.store import LocalObjectStore

BASE = "/poseidon/stor/mako"

PREBUILT = (
    "account\tbytes\tobjects\taverage size kb\tkilobytes\n"
    "tombstone_2020-01-01\t10\t1\t5.000000\t5.000000\n"
    "acctA\t300\t2\t62.500000\t125.000000\n"
    "tombstone\t10\t1\t5.000000\t5.000000\n"
    "totals\t310\t3\t43.333333\t130.000000\n"
)


def _region(tmp_path: Path) -> tuple[LocalObjectStore, Path]:
    """Three nodes: one with a pre-built summary, one manifest only, one unreadable."""
    base = tmp_path / "store" / "poseidon" / "stor" / "mako"
    (base / "summary").mkdir(parents=True)
    (base / "1.stor").write_text("/manta/ignored/o\t1\t0\t1\n")
    (base / "1.stor.headers.json").write_text(json.dumps({"m-datacenter": "us-east-1"}))
    (base / "summary" / "1.stor").write_text(PREBUILT)
    (base / "2.stor").write_text(
        "/manta/acctB/o1\t100\t0\t4\n/manta/tombstone/2021-06-01/o2\t50\t0\t2\n"
    )
    (base / "3.stor").write_bytes(b"\xff\xfe\xfa\n")
    return LocalObjectStore(tmp_path / "store"), base


class _FailingBuilder(RegionAggregateBuilder):
    def append(self, record):
        raise AggregateWriteFailure("disk full")


class _InterruptedBuilder(RegionAggregateBuilder):
    def write_final(self):
        raise AggregateWriteFailure("interrupted before the final report")


class _FailingUploadStore(LocalObjectStore):
    def put_bytes(self, path, data, *, content_type=None):
        raise ObjectStoreError(f"upload refused: {path}")


@pytest.mark.parametrize("workers", [1, 4])
def test_region_run_skips_failed_nodes(tmp_path: Path, workers: int) -> None:
    store, base = _region(tmp_path)
    work_dir = tmp_path / "work"
    accessor = SummaryAccessor(store, base_path=BASE, work_dir=work_dir)
    builder = RegionAggregateBuilder(work_dir)

    result = run_region(store, accessor, builder, base_path=BASE, workers=workers)

    assert result.total_nodes == 3
    assert result.appended == 2
    assert result.failed == 1
    assert result.failures[0].node_id == "3.stor"
    assert result.failures[0].failure_reason == FAILURE_REASON_SUMMARY
    assert result.exit_status == 1

    published = json.loads((base / "summary" / "region.json").read_text())
    assert [record["storage_id"] for record in published] == ["1.stor", "2.stor"]
    assert published[0]["datacenter"] == "us-east-1"
    assert published[0]["objects"] == 3
    assert published[0]["kilobytes"] == 130.0
    assert published[0]["tombstone"] == [{"date": "2020-01-01", "objects": 1, "kilobytes": 5.0}]
    assert published[1]["datacenter"] == UNKNOWN_DATACENTER
    assert published[1]["avg"] == 3.0
    assert published[1]["tombstone"] == [{"date": "2021-06-01", "objects": 1, "kilobytes": 2.0}]
    assert json.loads(result.report_path.read_text()) == published


def test_clean_region_exits_zero(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    (base / "3.stor").unlink()
    work_dir = tmp_path / "work"

    result = run_region(
        store,
        SummaryAccessor(store, base_path=BASE, work_dir=work_dir),
        RegionAggregateBuilder(work_dir),
        base_path=BASE,
        publish=False,
    )

    assert result.exit_status == 0
    assert result.published_path is None
    assert not (base / "summary" / "region.json").exists()
    assert (work_dir / "region.json").exists()


def test_append_failure_aborts_without_report(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    work_dir = tmp_path / "work"

    with pytest.raises(AggregateWriteFailure):
        run_region(
            store,
            SummaryAccessor(store, base_path=BASE, work_dir=work_dir),
            _FailingBuilder(work_dir),
            base_path=BASE,
        )

    assert not (work_dir / "region.json").exists()
    assert not (base / "summary" / "region.json").exists()


def test_node_aggregator_reports_source(tmp_path: Path) -> None:
    store, _ = _region(tmp_path)
    aggregator = NodeAggregator(
        store,
        SummaryAccessor(store, base_path=BASE, work_dir=tmp_path / "work"),
        base_path=BASE,
    )

    assert aggregator.process("1.stor").source == SOURCE_PREBUILT
    assert aggregator.process("2.stor").source == SOURCE_DERIVED


def test_summary_without_totals_fails_node(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    (base / "summary" / "1.stor").write_text(
        "account\tbytes\tobjects\taverage size kb\tkilobytes\nacctA\t1\t1\t1\t1\n"
    )
    aggregator = NodeAggregator(
        store,
        SummaryAccessor(store, base_path=BASE, work_dir=tmp_path / "work"),
        base_path=BASE,
    )

    outcome = aggregator.process("1.stor")

    assert outcome.record is None
    assert outcome.failure_reason == FAILURE_REASON_TOTALS


def test_tombstone_warning_keeps_node_but_flags_run(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    (base / "3.stor").unlink()
    (base / "summary" / "1.stor").write_text(
        "account\tbytes\tobjects\taverage size kb\tkilobytes\n"
        "tombstone_\t10\t1\t5\t5\n"
        "totals\t10\t1\t5\t5\n"
    )
    work_dir = tmp_path / "work"

    result = run_region(
        store,
        SummaryAccessor(store, base_path=BASE, work_dir=work_dir),
        RegionAggregateBuilder(work_dir),
        base_path=BASE,
    )

    assert result.appended == 2
    assert result.warnings == 1
    assert result.exit_status == 1
    published = json.loads((base / "summary" / "region.json").read_text())
    assert published[0]["tombstone"] == []


def test_resolve_datacenter_defaults_to_unknown(tmp_path: Path) -> None:
    store, _ = _region(tmp_path)

    assert resolve_datacenter(store, BASE, "1.stor") == "us-east-1"
    assert resolve_datacenter(store, BASE, "2.stor") == UNKNOWN_DATACENTER
    assert resolve_datacenter(store, BASE, "missing") == UNKNOWN_DATACENTER


def test_execute_report_replaces_stale_artifacts(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    (work_dir / "region").write_text('{"storage_id": "stale"}\n')

    result = execute_report(
        store,
        base_path=BASE,
        work_dir=work_dir,
        lock_path=tmp_path / "report.lock",
        workers=2,
    )

    listing = (work_dir / "region").read_text().splitlines()
    assert [json.loads(line)["storage_id"] for line in listing] == ["1.stor", "2.stor"]
    assert result.published_path == f"{BASE}/summary/region.json"
    assert (work_dir / "1.stor").exists()
    assert (work_dir / "2.stor").exists()


def test_malformed_manifest_lines_flag_the_run(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    (base / "3.stor").unlink()
    (base / "2.stor").write_text("/manta/a/o\t1\t0\t1\n/manta/a/bad\tNaNx\t0\t1\nshort line\n")
    work_dir = tmp_path / "work"

    result = run_region(
        store,
        SummaryAccessor(store, base_path=BASE, work_dir=work_dir),
        RegionAggregateBuilder(work_dir),
        base_path=BASE,
    )

    assert result.appended == 2
    assert result.failed == 0
    assert result.warnings == 1
    assert result.exit_status == 1


def test_upload_failure_is_a_node_warning(tmp_path: Path) -> None:
    _, base = _region(tmp_path)
    store = _FailingUploadStore(tmp_path / "store")
    aggregator = NodeAggregator(
        store,
        SummaryAccessor(store, base_path=BASE, work_dir=tmp_path / "work", upload_derived=True),
        base_path=BASE,
    )

    outcome = aggregator.process("2.stor")

    assert outcome.record is not None
    assert len(outcome.warnings) == 1
    assert outcome.warnings[0].startswith("Unable to upload derived summary for 2.stor")


def test_cache_failure_is_a_node_warning(tmp_path: Path) -> None:
    store, _ = _region(tmp_path)
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    aggregator = NodeAggregator(
        store,
        SummaryAccessor(store, base_path=BASE, work_dir=blocker),
        base_path=BASE,
    )

    outcome = aggregator.process("1.stor")

    assert outcome.record is not None
    assert outcome.source == SOURCE_PREBUILT
    assert len(outcome.warnings) == 1
    assert outcome.warnings[0].startswith("Unable to cache summary for 1.stor")


def test_duplicate_node_aborts_the_run(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    work_dir = tmp_path / "work"
    builder = RegionAggregateBuilder(work_dir)
    builder.append(
        NodeRecord(datacenter="x", storage_id="1.stor", kilobytes=0.0, objects=0, avg=0.0)
    )

    with pytest.raises(AggregateWriteFailure):
        run_region(
            store,
            SummaryAccessor(store, base_path=BASE, work_dir=work_dir),
            builder,
            base_path=BASE,
            workers=1,
        )

    assert not (work_dir / "region.json").exists()
    assert not (base / "summary" / "region.json").exists()


def test_interrupted_run_leaves_readable_listing(tmp_path: Path) -> None:
    store, base = _region(tmp_path)
    work_dir = tmp_path / "work"
    builder = _InterruptedBuilder(work_dir)

    with pytest.raises(AggregateWriteFailure):
        run_region(
            store,
            SummaryAccessor(store, base_path=BASE, work_dir=work_dir),
            builder,
            base_path=BASE,
        )

    recovered = load_listing(builder.listing_path)
    assert [record.storage_id for record in recovered] == ["1.stor", "2.stor"]
    assert recovered[0].datacenter == "us-east-1"
    assert recovered[0].objects == 3
    assert [entry.date for entry in recovered[1].tombstone] == ["2021-06-01"]
    assert recovered == builder.records
    assert not (base / "summary" / "region.json").exists()
