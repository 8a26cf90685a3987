# src/bead_plate_pipeline/qc/core.py
"""
Core data structures, error taxonomy and shared helpers for plate QC.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd
from matplotlib import font_manager as fm


LOCATION_COL = "Location"
SAMPLE_COL = "Sample"
IDENTITY_COLS = (LOCATION_COL, SAMPLE_COL)
PLATE_COL = "Plate"
STANDARD_COL = "Standard"


class Sentinel(str, Enum):
    """Placeholder written into a data cell whose value was discarded."""

    FAILED_BEAD = "Failed QC (bead)"
    FAILED_STANDARDS = "Failed QC (standards)"


class PlateQCError(ValueError):
    """Base class for every error raised by the plate QC chain."""


class BlockNotFound(PlateQCError):
    """Raised when a structural marker of the export is missing or ambiguous."""


class SchemaError(PlateQCError):
    """Raised when a required column is absent from an extracted block."""


class AlignmentError(PlateQCError):
    """Raised when the bead-count and MFI tables disagree on wells or analytes."""

    def __init__(self, check: str, message: str) -> None:
        super().__init__(f"[{check}] {message}")
        self.check = check


class ConfigError(PlateQCError):
    """Raised for invalid run configuration (e.g. unknown background analyte)."""


@dataclass(frozen=True)
class FitResult:
    slope: float
    intercept: float
    r2: float
    n: int


@dataclass(frozen=True)
class AnalyteFit:
    analyte: str
    slope: float
    intercept: float
    r2: float
    n: int
    passed: bool


@dataclass(frozen=True)
class PlateQCResult:
    plate_id: str
    passed: bool
    passing_analytes: tuple[str, ...] = field(default_factory=tuple)


def is_sentinel(value: Any) -> bool:
    return isinstance(value, Sentinel)


def analyte_columns(df: pd.DataFrame) -> list[str]:
    """Columns of a well table that hold per-analyte values."""
    skip = set(IDENTITY_COLS) | {PLATE_COL, STANDARD_COL}
    return [c for c in df.columns if c not in skip]


def _fit_linear(x: np.ndarray, y: np.ndarray) -> FitResult:
    """
    Ordinary least squares linear fit: y = a*x + b
    Returns slope/intercept and R^2.
    """
    a, b = np.polyfit(x, y, 1)
    yhat = a * x + b
    ss_res = float(np.sum((y - yhat) ** 2))
    ss_tot = float(np.sum((y - float(np.mean(y))) ** 2))
    r2 = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0
    return FitResult(
        slope=float(a),
        intercept=float(b),
        r2=float(r2),
        n=int(len(x)),
    )


def apply_paper_style() -> dict:
    """
    Return matplotlib rcParams dict for the QC figures.

    Font priority: Arial > Helvetica > Liberation Sans > DejaVu Sans

    Usage:
        with plt.rc_context(apply_paper_style()):
            fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_SINGLE)
            ...
    """
    available = {f.name for f in fm.fontManager.ttflist}
    font_priority = ["Arial", "Helvetica", "Liberation Sans", "DejaVu Sans"]
    fonts = [f for f in font_priority if f in available] or ["DejaVu Sans"]

    return {
        "font.family": "sans-serif",
        "font.sans-serif": fonts,
        "font.size": 7,
        "axes.titlesize": 8,
        "axes.labelsize": 7,
        "xtick.labelsize": 6,
        "ytick.labelsize": 6,
        "legend.fontsize": 6,
        "lines.linewidth": 0.7,
        "lines.markersize": 3,
        "axes.linewidth": 0.6,
        "axes.edgecolor": "0.3",
        "axes.labelcolor": "0.15",
        "axes.facecolor": "white",
        "xtick.direction": "out",
        "ytick.direction": "out",
        "xtick.color": "0.3",
        "ytick.color": "0.3",
        "axes.grid": False,
        "legend.frameon": True,
        "legend.edgecolor": "0.7",
        "figure.facecolor": "white",
        "savefig.dpi": 300,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.02,
    }


PAPER_FIGSIZE_SINGLE = (3.5, 2.6)
PAPER_FIGSIZE_WIDE = (5.0, 2.6)


def paper_savefig(fig, path, **kwargs):
    """Save figure with the shared PNG settings."""
    defaults = {
        "dpi": 300,
        "bbox_inches": "tight",
        "pad_inches": 0.02,
        "facecolor": "white",
        "edgecolor": "white",
    }
    defaults.update(kwargs)
    fig.savefig(path, **defaults)
