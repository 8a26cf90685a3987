# src/bead_plate_pipeline/qc/background.py
from __future__ import annotations

import pandas as pd

from .core import ConfigError, analyte_columns


def subtract_background(mfi: pd.DataFrame, background: str) -> pd.DataFrame:
    """
    Subtract the background analyte, well by well, from every other analyte.
    Missing values stay missing (NaN - x and x - NaN are NaN).
    """
    if background not in mfi.columns:
        raise ConfigError(
            f"Background analyte {background!r} not found. Available analytes: {analyte_columns(mfi)}"
        )
    out = mfi.copy()
    bg = pd.to_numeric(out[background], errors="coerce")
    for col in analyte_columns(out):
        if col == background:
            continue
        out[col] = pd.to_numeric(out[col], errors="coerce") - bg
    return out
