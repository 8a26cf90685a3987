# src/bead_plate_pipeline/qc/alignment.py
"""
Cross-table consistency checks between the bead-count and MFI tables.
"""
from __future__ import annotations

import pandas as pd

from .core import LOCATION_COL, SAMPLE_COL, AlignmentError


def _missing(series: pd.Series) -> pd.Series:
    return series.isna() | series.astype(str).str.strip().eq("")


def validate_alignment(counts: pd.DataFrame, mfi: pd.DataFrame, *, verbose: bool = True) -> None:
    """
    Raise AlignmentError naming the first violated check:
      missing_location, missing_sample, column_mismatch,
      duplicate_location, location_order
    """
    for name, df in (("bead-count", counts), ("MFI", mfi)):
        n_bad = int(_missing(df[LOCATION_COL]).sum())
        if n_bad:
            raise AlignmentError("missing_location", f"{name} table has {n_bad} row(s) without a Location.")

    for name, df in (("bead-count", counts), ("MFI", mfi)):
        n_bad = int(_missing(df[SAMPLE_COL]).sum())
        if n_bad:
            raise AlignmentError("missing_sample", f"{name} table has {n_bad} row(s) without a Sample.")

    if list(counts.columns) != list(mfi.columns):
        only_counts = [c for c in counts.columns if c not in mfi.columns]
        only_mfi = [c for c in mfi.columns if c not in counts.columns]
        raise AlignmentError(
            "column_mismatch",
            f"Column sequences differ. Only in bead-count: {only_counts}; only in MFI: {only_mfi}; "
            f"bead-count={list(counts.columns)}, MFI={list(mfi.columns)}",
        )

    for name, df in (("bead-count", counts), ("MFI", mfi)):
        dup = df.loc[df[LOCATION_COL].duplicated(), LOCATION_COL].tolist()
        if dup:
            raise AlignmentError("duplicate_location", f"{name} table repeats Location(s): {dup}")

    loc_c = counts[LOCATION_COL].astype(str).tolist()
    loc_m = mfi[LOCATION_COL].astype(str).tolist()
    if loc_c != loc_m:
        first_diff = next(
            (i for i, (a, b) in enumerate(zip(loc_c, loc_m)) if a != b),
            min(len(loc_c), len(loc_m)),
        )
        raise AlignmentError(
            "location_order",
            f"Wells differ between tables (bead-count has {len(loc_c)}, MFI has {len(loc_m)}); "
            f"first difference at row {first_diff + 1}.",
        )

    if verbose:
        print(
            f"Alignment OK: {len(loc_m)} wells, "
            f"{len(mfi.columns) - 2} analytes identical in bead-count and MFI tables."
        )
