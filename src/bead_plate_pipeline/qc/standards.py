# src/bead_plate_pipeline/qc/standards.py
"""
Standard-curve fitting per analyte.

Standards are the wells whose Sample label contains "Standard"; the first
integer in the label is the dilution index (Standard1 = least dilute).
Each analyte is fitted as log10(MFI + 1) ~ DilutionFactor, with
DilutionFactor = -index, by ordinary least squares.
"""
from __future__ import annotations

import re
import warnings
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .core import PLATE_COL, SAMPLE_COL, AnalyteFit, _fit_linear


STANDARD_TOKEN = "Standard"
POINT_COLUMNS = ["Analyte", SAMPLE_COL, "DilutionFactor", "Log10MFI"]
FIT_COLUMNS = [PLATE_COL, "Analyte", "slope", "intercept", "r2", "n", "Passed"]

_DIGITS_RE = re.compile(r"(\d+)")


def dilution_factor(label: object) -> Optional[int]:
    """'Standard3' -> -3. None when the label has no digits."""
    m = _DIGITS_RE.search(str(label))
    if not m:
        return None
    return -int(m.group(1))


def standard_curve_points(mfi: pd.DataFrame, analytes: Sequence[str]) -> pd.DataFrame:
    """
    Long table of (Analyte, Sample, DilutionFactor, Log10MFI) for the standard
    wells. Requested analytes absent from the table are warned about and skipped.
    Points with missing or non-finite Log10MFI are dropped.
    """
    present = [a for a in analytes if a in mfi.columns]
    absent = [a for a in analytes if a not in mfi.columns]
    if absent:
        warnings.warn(
            f"Standard analyte(s) not in MFI table, skipped: {absent}",
            UserWarning,
            stacklevel=2,
        )

    std = mfi[mfi[SAMPLE_COL].astype(str).str.contains(STANDARD_TOKEN, regex=False, na=False)].copy()
    std["DilutionFactor"] = std[SAMPLE_COL].map(dilution_factor)
    no_index = std.loc[std["DilutionFactor"].isna(), SAMPLE_COL].tolist()
    if no_index:
        warnings.warn(
            f"Standard sample(s) without a dilution number, skipped: {no_index}",
            UserWarning,
            stacklevel=2,
        )
    std = std.dropna(subset=["DilutionFactor"])

    parts = []
    for analyte in present:
        mfi_vals = pd.to_numeric(std[analyte], errors="coerce").to_numpy(dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            log_mfi = np.log10(mfi_vals + 1.0)
        part = pd.DataFrame(
            {
                "Analyte": analyte,
                SAMPLE_COL: std[SAMPLE_COL].to_numpy(),
                "DilutionFactor": std["DilutionFactor"].to_numpy(dtype=int),
                "Log10MFI": log_mfi,
            }
        )
        parts.append(part[np.isfinite(part["Log10MFI"].to_numpy(dtype=float))])

    if not parts:
        return pd.DataFrame(columns=POINT_COLUMNS)
    return pd.concat(parts, ignore_index=True)[POINT_COLUMNS]


def fit_analyte(points: pd.DataFrame, analyte: str, r2_threshold: float) -> Optional[AnalyteFit]:
    """
    Fit one analyte. Returns None when there are no valid points or fewer than
    two distinct dilution factors.
    """
    sub = points[points["Analyte"] == analyte]
    if sub.empty:
        warnings.warn(f"No valid standard points for {analyte}; no fit.", UserWarning, stacklevel=2)
        return None
    x = sub["DilutionFactor"].to_numpy(dtype=float)
    y = sub["Log10MFI"].to_numpy(dtype=float)
    if np.unique(x).size < 2:
        warnings.warn(
            f"{analyte}: standards cover a single dilution ({int(x[0])}); no fit.",
            UserWarning,
            stacklevel=2,
        )
        return None

    res = _fit_linear(x, y)
    return AnalyteFit(
        analyte=analyte,
        slope=res.slope,
        intercept=res.intercept,
        r2=res.r2,
        n=res.n,
        passed=bool(res.r2 > float(r2_threshold)),
    )


def dedupe_fits(fits: Iterable[AnalyteFit]) -> List[AnalyteFit]:
    """Keep the last computed fit per analyte, in first-seen analyte order."""
    by_analyte: dict[str, AnalyteFit] = {}
    for fit in fits:
        by_analyte[fit.analyte] = fit
    return list(by_analyte.values())


def fit_standard_curves(
    mfi: pd.DataFrame,
    analytes: Sequence[str],
    r2_threshold: float,
) -> tuple[List[AnalyteFit], pd.DataFrame]:
    """Fit every requested analyte. Returns (deduplicated fits, standard points)."""
    points = standard_curve_points(mfi, analytes)
    evaluated = [a for a in analytes if a in mfi.columns]
    fits = [f for f in (fit_analyte(points, a, r2_threshold) for a in evaluated) if f is not None]
    return dedupe_fits(fits), points


def fits_to_frame(fits: Sequence[AnalyteFit], plate_id: str) -> pd.DataFrame:
    rows = [
        {
            PLATE_COL: plate_id,
            "Analyte": f.analyte,
            "slope": f.slope,
            "intercept": f.intercept,
            "r2": f.r2,
            "n": f.n,
            "Passed": f.passed,
        }
        for f in fits
    ]
    return pd.DataFrame(rows, columns=FIT_COLUMNS)
