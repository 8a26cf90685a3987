# src/bead_plate_pipeline/qc/pipeline.py
"""
Per-plate QC pipeline: one export file in, cleaned table and QC artifacts out.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from ..config import QCConfig
from ..loader import extract_plate_tables, read_export_lines
from ..raw_bundle import derive_plate_id
from .alignment import validate_alignment
from .background import subtract_background
from .beads import flag_low_bead_counts, low_bead_records, mask_low_bead_wells
from .core import LOCATION_COL, AnalyteFit, BlockNotFound, PlateQCResult, SchemaError, analyte_columns
from .decision import build_cleaned_table, decide_plate, to_output_frame
from .standards import fit_standard_curves, fits_to_frame


@dataclass(frozen=True)
class PlateRunResult:
    plate_id: str
    cleaned: pd.DataFrame
    low_beads: pd.DataFrame
    fits: tuple[AnalyteFit, ...]
    qc: PlateQCResult
    termination: str
    written: Dict[str, Path] = field(default_factory=dict)

    def fits_frame(self) -> pd.DataFrame:
        return fits_to_frame(self.fits, self.plate_id)


def _evaluated_analytes(mfi: pd.DataFrame, config: QCConfig) -> List[str]:
    if config.standard_analytes:
        return list(config.standard_analytes)
    return [a for a in analyte_columns(mfi) if a != config.background_analyte]


def run_plate_qc(
    counts: pd.DataFrame,
    mfi: pd.DataFrame,
    config: QCConfig,
    plate_id: str,
    *,
    verbose: bool = True,
) -> tuple[pd.DataFrame, pd.DataFrame, List[AnalyteFit], PlateQCResult, pd.DataFrame, pd.DataFrame]:
    """
    In-memory QC chain on already extracted tables.

    Returns (cleaned, low_beads, fits, qc, standard points, flagged bead counts).
    """
    validate_alignment(counts, mfi, verbose=verbose)

    flagged = flag_low_bead_counts(counts, config.bead_threshold)
    low = low_bead_records(flagged, plate_id)
    masked = mask_low_bead_wells(mfi, low)

    subtracted = subtract_background(masked, config.background_analyte)

    fits, points = fit_standard_curves(
        subtracted,
        _evaluated_analytes(subtracted, config),
        config.r2_threshold,
    )
    qc = decide_plate(fits, plate_id)
    cleaned = build_cleaned_table(subtracted, qc, low[LOCATION_COL])
    return cleaned, low, fits, qc, points, flagged


def _write_outputs(
    out_dir: Path,
    plate_id: str,
    cleaned: pd.DataFrame,
    low: pd.DataFrame,
    fits: Sequence[AnalyteFit],
) -> Dict[str, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "low_beads": out_dir / f"{plate_id}_beadqc_low_df.csv",
        "clean": out_dir / f"{plate_id}_clean.csv",
        "fits": out_dir / f"{plate_id}_standards_fits.csv",
    }
    low.to_csv(paths["low_beads"], index=False)
    to_output_frame(cleaned).to_csv(paths["clean"], index=False)
    fits_to_frame(fits, plate_id).to_csv(paths["fits"], index=False)
    return paths


def process_plate(
    raw_file: Path,
    config: QCConfig,
    out_dir: Optional[Path] = None,
    *,
    strict: bool = True,
    verbose: bool = True,
) -> Optional[PlateRunResult]:
    """
    Run the whole QC chain for one export file.

    BlockNotFound / SchemaError during extraction are raised when `strict`,
    otherwise warned about and None is returned so the caller can skip the
    file. AlignmentError and ConfigError always propagate.

    When out_dir is given, writes:
      - {plate}_beadqc_low_df.csv
      - {plate}_clean.csv
      - {plate}_standards_fits.csv
      - {plate}_std_{analyte}.png, {plate}_beadcount_heatmap.png (config.plots)
    """
    raw_file = Path(raw_file)
    plate_id = derive_plate_id(raw_file)

    lines = read_export_lines(raw_file)
    try:
        counts, mfi, termination = extract_plate_tables(
            lines,
            config.block_termination(),
            config.markers,
        )
    except (BlockNotFound, SchemaError) as e:
        if strict:
            raise
        warnings.warn(
            f"{raw_file.name}: skipped, could not extract tables ({type(e).__name__}: {e})",
            UserWarning,
            stacklevel=2,
        )
        return None

    cleaned, low, fits, qc, points, flagged = run_plate_qc(
        counts, mfi, config, plate_id, verbose=verbose
    )

    written: Dict[str, Path] = {}
    if out_dir is not None:
        out_dir = Path(out_dir)
        written = _write_outputs(out_dir, plate_id, cleaned, low, fits)
        if config.plots:
            from .plotting import plot_bead_heatmap, plot_standard_curves

            plot_dir = out_dir / "plots"
            plot_dir.mkdir(parents=True, exist_ok=True)
            for i, p in enumerate(plot_standard_curves(points, fits, plot_dir, plate_id, config.r2_threshold)):
                written[f"std_plot_{i}"] = p
            written["bead_heatmap"] = plot_bead_heatmap(
                flagged, plot_dir / f"{plate_id}_beadcount_heatmap.png", plate_id
            )
        if verbose:
            for p in written.values():
                print(f"Saved: {p}")

    if verbose:
        status = "PASSED" if qc.passed else "FAILED"
        print(
            f"{plate_id}: standards QC {status} "
            f"({len(qc.passing_analytes)}/{len(fits)} analyte curves above R²>{config.r2_threshold:g}); "
            f"{len(low)} low bead count(s); block termination: {termination}"
        )

    return PlateRunResult(
        plate_id=plate_id,
        cleaned=cleaned,
        low_beads=low,
        fits=tuple(fits),
        qc=qc,
        termination=termination,
        written=written,
    )
