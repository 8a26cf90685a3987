# src/bead_plate_pipeline/qc/decision.py
"""
Plate pass/fail decision and sentinel substitution.

A plate passes when at least one analyte's standard curve has R² above the
threshold. On a passing plate, wells masked by bead QC become FAILED_BEAD;
on a failing plate every analyte cell becomes FAILED_STANDARDS, whatever the
bead QC said.
"""
from __future__ import annotations

import warnings
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from .core import (
    LOCATION_COL,
    PLATE_COL,
    STANDARD_COL,
    AnalyteFit,
    PlateQCResult,
    Sentinel,
    analyte_columns,
    is_sentinel,
)


def decide_plate(fits: Sequence[AnalyteFit], plate_id: str) -> PlateQCResult:
    passing = tuple(f.analyte for f in fits if f.passed)
    return PlateQCResult(plate_id=plate_id, passed=bool(passing), passing_analytes=passing)


def apply_sentinels(
    mfi: pd.DataFrame,
    plate_passed: bool,
    masked_locations: Iterable[str] = (),
) -> pd.DataFrame:
    """
    Passing plate: every analyte cell of a well in `masked_locations` becomes
    FAILED_BEAD. Other missing cells stay NaN (written empty) and are warned about.
    Failing plate: every analyte cell becomes FAILED_STANDARDS.
    """
    out = mfi.copy()
    analytes = analyte_columns(out)
    masked = out[LOCATION_COL].isin(set(masked_locations)).to_numpy()
    n_unmasked_missing = 0
    for col in analytes:
        values = pd.to_numeric(out[col], errors="coerce")
        cells = values.astype(object)
        if plate_passed:
            cells[masked] = Sentinel.FAILED_BEAD
            n_unmasked_missing += int((values.isna().to_numpy() & ~masked).sum())
        else:
            cells[:] = Sentinel.FAILED_STANDARDS
        out[col] = cells
    if n_unmasked_missing:
        warnings.warn(
            f"{n_unmasked_missing} missing MFI cell(s) outside bead-masked wells left empty "
            f"(not labelled {Sentinel.FAILED_BEAD.value!r}).",
            UserWarning,
            stacklevel=2,
        )
    if not plate_passed:
        warnings.warn(
            f"No standard curve passed; all {len(out)} well(s) x {len(analytes)} analyte(s) "
            f"set to {Sentinel.FAILED_STANDARDS.value!r}, overriding bead QC.",
            UserWarning,
            stacklevel=2,
        )
    return out


def build_cleaned_table(
    mfi: pd.DataFrame,
    qc: PlateQCResult,
    masked_locations: Iterable[str] = (),
) -> pd.DataFrame:
    """Sentinel-substituted MFI table with Plate and Standard columns appended."""
    out = apply_sentinels(mfi, qc.passed, masked_locations)
    out[PLATE_COL] = qc.plate_id
    out[STANDARD_COL] = ";".join(qc.passing_analytes)
    return out


def to_output_frame(cleaned: pd.DataFrame) -> pd.DataFrame:
    """Render Sentinel cells as their text labels for writing."""
    out = cleaned.copy()
    for col in analyte_columns(out):
        out[col] = [v.value if is_sentinel(v) else v for v in out[col]]
    return out


def qc_summary_frame(results: Sequence[PlateQCResult]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            PLATE_COL: [r.plate_id for r in results],
            "Passed_QC": np.array([r.passed for r in results], dtype=bool),
        },
        columns=[PLATE_COL, "Passed_QC"],
    )
