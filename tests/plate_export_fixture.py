"""Synthetic bead-array exports shared by the test modules."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence


ANALYTES = ["IL-6", "TNF", "Blank"]

WELLS = [
    ("1(1,A1)", "Standard1"),
    ("2(1,B1)", "Standard2"),
    ("3(1,C1)", "Standard3"),
    ("4(1,D1)", "Standard4"),
    ("5(1,E1)", "Sample1"),
    ("6(1,F1)", "Sample2"),
    ("7(1,G1)", "Sample3"),
    ("8(1,H1)", "Sample4"),
]

# IL-6 net MFI = 10**(4 - 0.5*k) - 1 for Standard k -> log10(net + 1) is exactly linear.
# TNF standards are scrambled, so its curve fails any sensible R² threshold.
MFI: Dict[str, List[float]] = {
    "IL-6": [3171.2777, 1009.0, 325.2278, 109.0, 510.0, 610.0, 710.0, 810.0],
    "TNF": [110.0, 5010.0, 60.0, 3010.0, 210.0, 310.0, 410.0, 510.0],
    "Blank": [10.0, 10.0, 10.0, 10.0, 10.0, 10.0, 10.0, 10.0],
}

# Sample2 (F1) has one low TNF count; Sample3 (G1) sits exactly on the threshold.
COUNTS: Dict[str, List[float]] = {
    "IL-6": [100, 100, 100, 100, 100, 100, 50, 100],
    "TNF": [100, 100, 100, 100, 100, 49, 100, 100],
    "Blank": [100, 100, 100, 100, 100, 100, 100, 100],
}

BEAD_THRESHOLD = 50
LOW_WELL = "6(1,F1)"


def _row(cells: Sequence[object]) -> str:
    return ",".join(f'"{c}"' for c in cells)


def _table(values: Dict[str, List[float]], analytes: Sequence[str], wells=WELLS) -> List[str]:
    lines = [_row(["Location", "Sample", *analytes, "Total Events"])]
    for i, (loc, sample) in enumerate(wells):
        cells = [values[a][i] for a in analytes]
        total = sum(float(v) for v in cells if v != "")
        lines.append(_row([loc, sample, *cells, f"{total:g}"]))
    return lines


def _preamble() -> List[str]:
    return [
        _row(["Program", "xPONENT", "", "MAGPIX"]),
        _row(["Build", "4.2.1324.0"]),
        _row(["Date", "10/01/2025", "10:00 AM"]),
        "",
        _row(["Samples", "8", "Min Events", "50", "Per Bead"]),
        "",
        _row(["Results"]),
        "",
    ]


def build_export_text(
    variant: str = "marker",
    mfi: Optional[Dict[str, List[float]]] = None,
    counts: Optional[Dict[str, List[float]]] = None,
    analytes: Sequence[str] = ANALYTES,
    count_analytes: Optional[Sequence[str]] = None,
) -> str:
    """
    variant="marker": every section is followed by a blank line and another
    "DataType:" section (Net MFI, Avg Net MFI), like a full export.
    variant="fixed":  sections follow each other directly with no terminator
    markers, so only a fixed well count can end the bead-count block.
    """
    mfi = MFI if mfi is None else mfi
    counts = COUNTS if counts is None else counts
    count_analytes = analytes if count_analytes is None else count_analytes

    lines = _preamble()
    if variant == "marker":
        lines += [_row(["DataType:", "Median"]), *_table(mfi, analytes), ""]
        lines += [_row(["DataType:", "Net MFI"]), *_table(mfi, analytes), ""]
        lines += [_row(["DataType:", "Count"]), *_table(counts, count_analytes), ""]
        lines += [_row(["DataType:", "Avg Net MFI"]), _row(["Location", "Sample", "Total Events"]), ""]
        lines += [_row(["DataType:", "Per Bead Count"]), _row(["Analyte:", *analytes]), _row(["Per Bead:", 50, 50, 50])]
    elif variant == "fixed":
        lines += [_row(["DataType:", "Median"]), *_table(mfi, analytes)]
        lines += [_row(["DataType:", "Count"]), *_table(counts, count_analytes)]
        lines += [_row(["DataType:", "Per Bead Count"]), _row(["Analyte:", *analytes]), _row(["Per Bead:", 50, 50, 50])]
    else:
        raise ValueError(variant)
    lines += ["", _row(["-- CRC --"]), _row(["CRC32:", "A1B2C3D4"])]
    return "\n".join(lines) + "\n"


def write_export(path: Path, **kwargs) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_export_text(**kwargs), encoding="utf-8")
    return path


def without_count_total_events(text: str) -> str:
    """Rename "Total Events" in the bead-count table header only."""
    head, marker, tail = text.partition('"DataType:","Count"')
    return head + marker + tail.replace('"Total Events"', '"Events"', 1)
