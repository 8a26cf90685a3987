from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence


_PROJECT_TOKEN_RE = re.compile(r"[_\-\s.]+")


def list_export_files(raw_input: Path, extensions: Sequence[str] = (".csv",)) -> list[Path]:
    """
    Resolve raw input into one or more export files.

    - file path  -> [file]
    - directory  -> sorted direct children whose suffix is in `extensions`
    """
    raw_input = Path(raw_input)
    exts = {e.lower() for e in extensions}
    if raw_input.is_file():
        if raw_input.suffix.lower() not in exts:
            raise ValueError(f"Raw file must have one of {sorted(exts)}: {raw_input}")
        return [raw_input]

    if raw_input.is_dir():
        files = sorted(p for p in raw_input.iterdir() if p.is_file() and p.suffix.lower() in exts)
        if not files:
            raise ValueError(f"No {sorted(exts)} files found in raw folder: {raw_input}")
        return files

    raise FileNotFoundError(f"Raw input not found: {raw_input}")


def derive_plate_id(raw_file: Path) -> str:
    """Plate ID convention: file name with the extension stripped."""
    return Path(raw_file).stem


def derive_project_name(raw_files: Sequence[Path]) -> str:
    """
    Project name = first token of the first input file's name
    (e.g. "PRJ01_plate3.csv" -> "PRJ01"). Only used for output naming.
    """
    if not raw_files:
        raise ValueError("No input files to derive a project name from.")
    stem = derive_plate_id(raw_files[0])
    tokens = [t for t in _PROJECT_TOKEN_RE.split(stem) if t]
    return tokens[0] if tokens else stem
