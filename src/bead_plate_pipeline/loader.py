from __future__ import annotations

import re
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
import yaml

from .blocks import BlockMarkers, BlockTermination, LineRange, locate_blocks
from .qc.core import LOCATION_COL, SAMPLE_COL, SchemaError


TOTAL_EVENTS_COL = "Total Events"

# "1(1,A1)" in xPONENT exports, or a bare "A1"
WELL_RE = re.compile(r"([A-P])0*([1-9]|1[0-9]|2[0-4])\)?\s*$", re.IGNORECASE)


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        obj = yaml.safe_load(f)
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"YAML root must be a mapping: {path}")
    return obj


def parse_well(location: str) -> Optional[Tuple[str, int]]:
    """
    Extract (row letter, column number) from a Location cell.
    Returns None when the cell carries no recognizable well coordinate.
    """
    m = WELL_RE.search(str(location).strip())
    if not m:
        return None
    return m.group(1).upper(), int(m.group(2))


def read_export_lines(raw_path: Path) -> List[str]:
    """Read an instrument export as text lines, trying the usual encodings."""
    data = Path(raw_path).read_bytes()
    if data[:2] in (b"\xff\xfe", b"\xfe\xff"):
        return data.decode("utf-16").splitlines()
    for enc in ("utf-8-sig", "cp1252"):
        try:
            return data.decode(enc).splitlines()
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1").splitlines()


def _detect_sep(header_line: str) -> str:
    return "\t" if header_line.count("\t") >= header_line.count(",") else ","


def extract_well_table(lines: Sequence[str], line_range: LineRange) -> pd.DataFrame:
    """
    Parse lines[start:end] as a delimited table (first line = header) and trim it
    to the columns Location .. (column before "Total Events").

    Location and Sample stay as text; every other kept column is coerced to numeric,
    with unparseable cells becoming NaN.
    """
    block = [ln for ln in lines[line_range.start : line_range.end] if ln.strip().strip(",\t\"")]
    if not block:
        raise SchemaError(f"Empty table block at lines {line_range.start + 1}-{line_range.end}.")

    sep = _detect_sep(block[0])
    df = pd.read_csv(
        StringIO("\n".join(block)),
        sep=sep,
        dtype=str,
        engine="python",
        skipinitialspace=True,
    )
    df.columns = [str(c).strip() for c in df.columns]

    for required in (LOCATION_COL, TOTAL_EVENTS_COL):
        if required not in df.columns:
            raise SchemaError(
                f"Required column {required!r} missing from block at line {line_range.start + 1}. "
                f"Header: {list(df.columns)}"
            )

    cols = list(df.columns)
    first = cols.index(LOCATION_COL)
    last = cols.index(TOTAL_EVENTS_COL)
    if last <= first:
        raise SchemaError(f"{TOTAL_EVENTS_COL!r} precedes {LOCATION_COL!r} in header: {cols}")
    df = df[cols[first:last]].copy()

    if SAMPLE_COL not in df.columns:
        raise SchemaError(f"Required column {SAMPLE_COL!r} missing between Location and Total Events: {cols}")

    for c in df.columns:
        if c in (LOCATION_COL, SAMPLE_COL):
            df[c] = df[c].str.strip()
            continue
        df[c] = pd.to_numeric(df[c].str.strip(), errors="coerce")

    return df.reset_index(drop=True)


def extract_plate_tables(
    lines: Sequence[str],
    termination: BlockTermination,
    markers: BlockMarkers = BlockMarkers(),
) -> Tuple[pd.DataFrame, pd.DataFrame, str]:
    """
    Locate both blocks and parse them.
    Returns (bead_counts, mfi, termination tactic used).
    """
    blocks = locate_blocks(lines, termination, markers)
    counts = extract_well_table(lines, blocks.counts)
    mfi = extract_well_table(lines, blocks.mfi)
    return counts, mfi, blocks.termination
