# src/bead_plate_pipeline/qc/plotting.py
"""
Standard-curve plots and bead-count plate heatmaps.

Read-only consumers of the QC results; nothing here feeds back into the
pass/fail decision.
"""
from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

from ..loader import parse_well  # noqa: E402
from .core import (  # noqa: E402
    LOCATION_COL,
    PAPER_FIGSIZE_SINGLE,
    PAPER_FIGSIZE_WIDE,
    AnalyteFit,
    analyte_columns,
    apply_paper_style,
    is_sentinel,
    paper_savefig,
)


_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")

# pyplot keeps global figure state; process_project may plot from worker threads
_PLOT_LOCK = threading.Lock()


def _safe_name(s: str) -> str:
    return _UNSAFE_RE.sub("_", str(s)).strip("_") or "analyte"


def plot_standard_curve(points: pd.DataFrame, fit: AnalyteFit, out_path: Path, r2_threshold: float) -> Path:
    sub = points[points["Analyte"] == fit.analyte]
    x = sub["DilutionFactor"].to_numpy(dtype=float)
    y = sub["Log10MFI"].to_numpy(dtype=float)

    with _PLOT_LOCK, plt.rc_context(apply_paper_style()):
        fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_SINGLE)
        ax.scatter(x, y, s=10, color="#0072B2", linewidths=0, zorder=3)
        xx = np.linspace(float(np.min(x)), float(np.max(x)), 50)
        color = "#009E73" if fit.passed else "#D55E00"
        ax.plot(xx, fit.slope * xx + fit.intercept, color=color, zorder=2)
        ax.set_title(fit.analyte)
        ax.set_xlabel("Dilution factor")
        ax.set_ylabel("log10(MFI + 1)")
        ax.text(
            0.02,
            0.98,
            f"R²={fit.r2:.3f} ({'pass' if fit.passed else 'fail'}, >{r2_threshold:g})\n"
            f"y={fit.slope:.3f}x+{fit.intercept:.3f}, n={fit.n}",
            transform=ax.transAxes,
            ha="left",
            va="top",
            fontsize=6,
        )
        fig.tight_layout(pad=0.3)
        paper_savefig(fig, out_path)
        plt.close(fig)
    return out_path


def plot_standard_curves(
    points: pd.DataFrame,
    fits: Sequence[AnalyteFit],
    out_dir: Path,
    plate_id: str,
    r2_threshold: float,
) -> list[Path]:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    return [
        plot_standard_curve(points, fit, out_dir / f"{plate_id}_std_{_safe_name(fit.analyte)}.png", r2_threshold)
        for fit in fits
    ]


def plot_bead_heatmap(flagged_counts: pd.DataFrame, out_path: Path, plate_id: str) -> Path:
    """
    Plate heatmap of the minimum bead count per well across analytes.
    Wells with at least one failing analyte are outlined.
    """
    analytes = analyte_columns(flagged_counts)
    cells: dict[tuple[int, int], tuple[float, bool]] = {}
    for _, rec in flagged_counts.iterrows():
        rc = parse_well(rec[LOCATION_COL])
        if rc is None:
            continue
        vals = [rec[a] for a in analytes]
        failed = any(is_sentinel(v) for v in vals)
        nums = [float(v) for v in vals if not is_sentinel(v) and pd.notna(v)]
        cells[(ord(rc[0]) - ord("A"), rc[1] - 1)] = (min(nums) if nums else np.nan, failed)

    n_rows = max([r for (r, _) in cells] + [7]) + 1
    n_cols = max([c for (_, c) in cells] + [11]) + 1
    grid = np.full((n_rows, n_cols), np.nan)
    for (r, c), (v, _) in cells.items():
        grid[r, c] = v

    with _PLOT_LOCK, plt.rc_context(apply_paper_style()):
        fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_WIDE)
        im = ax.imshow(np.ma.masked_invalid(grid), cmap="viridis", aspect="auto")
        for (r, c), (_, failed) in cells.items():
            if failed:
                ax.add_patch(plt.Rectangle((c - 0.5, r - 0.5), 1, 1, fill=False, edgecolor="#D55E00", linewidth=1.0))
        ax.set_xticks(range(n_cols))
        ax.set_xticklabels([str(i + 1) for i in range(n_cols)])
        ax.set_yticks(range(n_rows))
        ax.set_yticklabels([chr(ord("A") + i) for i in range(n_rows)])
        ax.set_title(f"{plate_id}: min bead count per well")
        fig.colorbar(im, ax=ax, fraction=0.04, pad=0.02)
        fig.tight_layout(pad=0.3)
        paper_savefig(fig, out_path)
        plt.close(fig)
    return out_path
