#!/usr/bin/env python3
"""
Run plate QC for every export file in a folder and write project summaries.

Files whose MFI / bead-count blocks cannot be extracted are skipped
(use --strict to abort instead). Alignment and configuration errors abort.

Usage:
  python scripts/run_project_qc.py --raw data/raw/PRJ01 [--workers 4] [--strict]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from bead_plate_pipeline.config import load_config
from bead_plate_pipeline.qc.core import PlateQCError
from bead_plate_pipeline.summary import process_project


def _resolve_from_repo_root(p: str | Path, repo_root: Path) -> Path:
    p = Path(p)
    return p if p.is_absolute() else (repo_root / p)


def main() -> None:
    p = argparse.ArgumentParser(description="Plate QC for all exports in a folder.")
    p.add_argument("--raw", required=True, help="Folder with export files (non-recursive).")
    p.add_argument("--config", default="meta/config.yml", help="Config YAML")
    p.add_argument("--out_dir", default="data/processed", help="Output directory")
    p.add_argument("--workers", type=int, default=None, help="Parallel files (default: config workers).")
    p.add_argument("--strict", action="store_true", help="Abort on the first file that cannot be parsed.")
    p.add_argument("--plots", action="store_true", help="Also write standard-curve and bead heatmap PNGs.")
    p.add_argument("--quiet", action="store_true", help="Only print warnings and errors.")
    args = p.parse_args()

    repo_root = Path(__file__).resolve().parents[1]
    raw_dir = _resolve_from_repo_root(args.raw, repo_root)
    config_path = _resolve_from_repo_root(args.config, repo_root)
    out_dir = _resolve_from_repo_root(args.out_dir, repo_root)

    if not raw_dir.is_dir():
        raise NotADirectoryError(f"--raw must be a folder: {raw_dir}")

    try:
        config = load_config(config_path).with_overrides(plots=True if args.plots else None)
        summary = process_project(
            raw_dir,
            config,
            out_dir / raw_dir.name,
            max_workers=args.workers,
            strict=args.strict,
            verbose=not args.quiet,
        )
    except PlateQCError as e:
        print(f"Project QC aborted: {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)

    if summary.skipped:
        print(f"Skipped ({len(summary.skipped)}): {list(summary.skipped)}")


if __name__ == "__main__":
    main()
