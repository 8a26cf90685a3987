# src/bead_plate_pipeline/qc/beads.py
"""
Bead-count QC: flag low counts, list failing (well, analyte) pairs and mask
the corresponding wells in the MFI table.
"""
from __future__ import annotations

import warnings

import numpy as np
import pandas as pd

from .core import LOCATION_COL, PLATE_COL, SAMPLE_COL, Sentinel, analyte_columns


LOW_BEAD_COLUMNS = [LOCATION_COL, SAMPLE_COL, "Antigen", PLATE_COL]


def flag_low_bead_counts(counts: pd.DataFrame, threshold: float) -> pd.DataFrame:
    """
    Replace every analyte count strictly below `threshold` with Sentinel.FAILED_BEAD.
    Counts at or above the threshold and missing counts are left unchanged.
    """
    out = counts.copy()
    for col in analyte_columns(out):
        values = pd.to_numeric(out[col], errors="coerce")
        low = values.lt(float(threshold)).to_numpy()
        if not low.any():
            continue
        out[col] = out[col].astype(object)
        out.loc[low, col] = Sentinel.FAILED_BEAD
    return out


def low_bead_records(flagged: pd.DataFrame, plate_id: str) -> pd.DataFrame:
    """One row per FAILED_BEAD cell: Location, Sample, Antigen, Plate."""
    rows = []
    analytes = analyte_columns(flagged)
    for _, rec in flagged.iterrows():
        for analyte in analytes:
            if rec[analyte] is Sentinel.FAILED_BEAD:
                rows.append(
                    {
                        LOCATION_COL: rec[LOCATION_COL],
                        SAMPLE_COL: rec[SAMPLE_COL],
                        "Antigen": analyte,
                        PLATE_COL: plate_id,
                    }
                )
    return pd.DataFrame(rows, columns=LOW_BEAD_COLUMNS)


def mask_low_bead_wells(mfi: pd.DataFrame, records: pd.DataFrame) -> pd.DataFrame:
    """
    Set every analyte value of every well listed in `records` to NaN.

    Masking is per well: one low analyte count discards all analytes of that
    well, although `records` is kept per (well, analyte).
    """
    out = mfi.copy()
    if records.empty:
        return out

    wells = pd.unique(records[LOCATION_COL])
    hit = out[LOCATION_COL].isin(wells).to_numpy()
    analytes = analyte_columns(out)
    out.loc[hit, analytes] = np.nan

    warnings.warn(
        f"Bead QC masked {int(hit.sum())} well(s) ({len(records)} low (well, analyte) count(s)); "
        f"all analyte MFI values removed for: {', '.join(map(str, wells))}",
        UserWarning,
        stacklevel=2,
    )
    return out
