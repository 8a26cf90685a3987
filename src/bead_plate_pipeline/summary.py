# src/bead_plate_pipeline/summary.py
"""
Project-level aggregation: run the per-plate QC over every export in a folder
and fold the results into project summary tables.

Output (in out_dir):
  - {project}_all_plates_standardsqc.csv   Plate, Passed_QC
  - {project}_all_plates_beadqc.csv        Location, Sample, Antigen, Plate
  - {project}_all_plates_standards_fits.csv
plus the per-plate files written by process_plate.
"""
from __future__ import annotations

import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .config import QCConfig
from .qc.beads import LOW_BEAD_COLUMNS
from .qc.decision import qc_summary_frame
from .qc.pipeline import PlateRunResult, process_plate
from .qc.standards import FIT_COLUMNS
from .raw_bundle import derive_project_name, list_export_files


@dataclass(frozen=True)
class ProjectSummary:
    project: str
    standards_qc: pd.DataFrame
    bead_qc: pd.DataFrame
    fits: pd.DataFrame
    skipped: tuple[str, ...] = ()
    written: Dict[str, Path] = field(default_factory=dict)


def fold_plate_results(project: str, results: Sequence[PlateRunResult], skipped: Sequence[str] = ()) -> ProjectSummary:
    """Concatenate per-plate QC artifacts. Plates keep the order of `results`."""
    standards_qc = qc_summary_frame([r.qc for r in results])

    low_parts = [r.low_beads for r in results if not r.low_beads.empty]
    bead_qc = (
        pd.concat(low_parts, ignore_index=True)[LOW_BEAD_COLUMNS]
        if low_parts
        else pd.DataFrame(columns=LOW_BEAD_COLUMNS)
    )

    fit_parts = [r.fits_frame() for r in results if r.fits]
    fits = pd.concat(fit_parts, ignore_index=True)[FIT_COLUMNS] if fit_parts else pd.DataFrame(columns=FIT_COLUMNS)

    return ProjectSummary(
        project=project,
        standards_qc=standards_qc,
        bead_qc=bead_qc,
        fits=fits,
        skipped=tuple(skipped),
    )


def write_project_summary(summary: ProjectSummary, out_dir: Path) -> Dict[str, Path]:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "standards_qc": out_dir / f"{summary.project}_all_plates_standardsqc.csv",
        "bead_qc": out_dir / f"{summary.project}_all_plates_beadqc.csv",
        "fits": out_dir / f"{summary.project}_all_plates_standards_fits.csv",
    }
    summary.standards_qc.to_csv(paths["standards_qc"], index=False)
    summary.bead_qc.to_csv(paths["bead_qc"], index=False)
    summary.fits.to_csv(paths["fits"], index=False)
    return paths


def process_project(
    raw_dir: Path,
    config: QCConfig,
    out_dir: Path,
    *,
    max_workers: Optional[int] = None,
    strict: bool = False,
    verbose: bool = True,
) -> ProjectSummary:
    """
    Run process_plate for every export file directly under raw_dir.

    Files are independent, so they may run on a thread pool (max_workers > 1).
    Results are folded on the calling thread after every file has finished,
    in file-name order, so the output does not depend on scheduling.
    Files whose tables cannot be extracted are skipped unless `strict`.
    """
    raw_files = list_export_files(raw_dir, config.file_extensions)
    project = derive_project_name(raw_files)
    out_dir = Path(out_dir)
    workers = int(max_workers if max_workers is not None else config.workers)

    def _one(raw_file: Path) -> Optional[PlateRunResult]:
        return process_plate(raw_file, config, out_dir, strict=strict, verbose=verbose)

    if workers > 1 and len(raw_files) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes: List[Optional[PlateRunResult]] = list(pool.map(_one, raw_files))
    else:
        outcomes = [_one(p) for p in raw_files]

    results = [r for r in outcomes if r is not None]
    skipped = [p.name for p, r in zip(raw_files, outcomes) if r is None]
    if skipped:
        warnings.warn(
            f"Project {project}: {len(skipped)} of {len(raw_files)} file(s) skipped: {skipped}",
            UserWarning,
            stacklevel=2,
        )

    summary = fold_plate_results(project, results, skipped)
    written = write_project_summary(summary, out_dir)
    summary.written.update(written)

    if verbose:
        for p in written.values():
            print(f"Saved: {p}")
        n_pass = int(summary.standards_qc["Passed_QC"].sum()) if len(summary.standards_qc) else 0
        print(f"Project {project}: {n_pass}/{len(results)} plate(s) passed standards QC; {len(summary.bead_qc)} low bead count(s).")
    return summary
