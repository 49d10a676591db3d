"""Output formatting helpers for CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from makoreport.summary_io import write_text_atomic


def print_table(rows: list[dict[str, Any]], columns: list[str] | None = None) -> None:
    """Print a list of dicts as an aligned text table to stdout."""
    if not rows:
        return
    cols = columns or list(rows[0].keys())
    widths = {c: len(c) for c in cols}
    str_rows = []
    for row in rows:
        str_row = {c: str(row.get(c, "")) for c in cols}
        for c in cols:
            widths[c] = max(widths[c], len(str_row[c]))
        str_rows.append(str_row)
    header = "  ".join(c.ljust(widths[c]) for c in cols)
    sep = "  ".join("-" * widths[c] for c in cols)
    print(header)
    print(sep)
    for sr in str_rows:
        print("  ".join(sr[c].ljust(widths[c]) for c in cols))


def write_output(text: str, output: str | Path | None = None) -> None:
    """Write text to ``output`` (atomically) or to stdout."""
    if output is None:
        sys.stdout.write(text)
        return
    write_text_atomic(text, Path(output))
    print(f"Written to {output}")
