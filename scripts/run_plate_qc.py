#!/usr/bin/env python3
"""
Run bead / background / standards QC on ONE export file.

Any structural problem in the file (missing block, missing column,
misaligned tables) aborts the run.

Usage:
  python scripts/run_plate_qc.py --raw data/raw/PRJ01_plate1.csv [--config meta/config.yml]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from bead_plate_pipeline.config import load_config
from bead_plate_pipeline.qc.core import PlateQCError
from bead_plate_pipeline.qc.pipeline import process_plate


def _resolve_from_repo_root(p: str | Path, repo_root: Path) -> Path:
    p = Path(p)
    return p if p.is_absolute() else (repo_root / p)


def main() -> None:
    parser = argparse.ArgumentParser(description="Plate QC for a single bead-array export file.")
    parser.add_argument("--raw", required=True, help="Export file (.csv / .txt).")
    parser.add_argument("--config", default="meta/config.yml", help="Config YAML")
    parser.add_argument("--out_dir", default="data/processed", help="Output directory")
    parser.add_argument("--bead_threshold", type=int, default=None, help="Override bead_threshold.")
    parser.add_argument("--r2_threshold", type=float, default=None, help="Override r2_threshold.")
    parser.add_argument("--background", default=None, help="Override background_analyte.")
    parser.add_argument("--plots", action="store_true", help="Also write standard-curve and bead heatmap PNGs.")
    args = parser.parse_args()

    repo_root = Path(__file__).resolve().parents[1]
    raw_file = _resolve_from_repo_root(args.raw, repo_root)
    config_path = _resolve_from_repo_root(args.config, repo_root)
    out_dir = _resolve_from_repo_root(args.out_dir, repo_root)

    if not raw_file.is_file():
        raise FileNotFoundError(f"--raw not found: {raw_file}")

    try:
        config = load_config(config_path).with_overrides(
            bead_threshold=args.bead_threshold,
            r2_threshold=args.r2_threshold,
            background_analyte=args.background,
            plots=True if args.plots else None,
        )
        process_plate(raw_file, config, out_dir / raw_file.stem, strict=True)
    except PlateQCError as e:
        print(f"Plate QC aborted for {raw_file.name}: {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
