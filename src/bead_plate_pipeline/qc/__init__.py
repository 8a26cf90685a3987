# src/bead_plate_pipeline/qc/__init__.py
"""
QC subpackage - the per-plate decision chain split into focused modules:
  - core: data structures, sentinels, error taxonomy, shared fit helper
  - alignment: bead-count vs MFI table consistency checks
  - beads: bead-count thresholding and well-level MFI masking
  - background: background analyte subtraction
  - standards: standard-curve points and per-analyte fits
  - decision: plate pass/fail and sentinel substitution
  - plotting: standard-curve plots and bead heatmaps
  - pipeline: process_plate (import from bead_plate_pipeline.qc.pipeline)
"""

from .core import (
    AlignmentError,
    AnalyteFit,
    BlockNotFound,
    ConfigError,
    FitResult,
    PlateQCError,
    PlateQCResult,
    SchemaError,
    Sentinel,
    analyte_columns,
    is_sentinel,
    _fit_linear,
)

from .alignment import validate_alignment

from .beads import (
    flag_low_bead_counts,
    low_bead_records,
    mask_low_bead_wells,
)

from .background import subtract_background

from .standards import (
    dedupe_fits,
    dilution_factor,
    fit_analyte,
    fit_standard_curves,
    fits_to_frame,
    standard_curve_points,
)

from .decision import (
    apply_sentinels,
    build_cleaned_table,
    decide_plate,
    qc_summary_frame,
    to_output_frame,
)

__all__ = [
    # Core
    "AlignmentError",
    "AnalyteFit",
    "BlockNotFound",
    "ConfigError",
    "FitResult",
    "PlateQCError",
    "PlateQCResult",
    "SchemaError",
    "Sentinel",
    "analyte_columns",
    "is_sentinel",
    "_fit_linear",
    # Alignment
    "validate_alignment",
    # Beads
    "flag_low_bead_counts",
    "low_bead_records",
    "mask_low_bead_wells",
    # Background
    "subtract_background",
    # Standards
    "dedupe_fits",
    "dilution_factor",
    "fit_analyte",
    "fit_standard_curves",
    "fits_to_frame",
    "standard_curve_points",
    # Decision
    "apply_sentinels",
    "build_cleaned_table",
    "decide_plate",
    "qc_summary_frame",
    "to_output_frame",
]
