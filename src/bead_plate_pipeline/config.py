"""
Run configuration for plate QC.

meta/config.yml (all keys except background_analyte are optional):

  bead_threshold: 50
  r2_threshold: 0.9
  background_analyte: "Blank"
  standard_analytes: ["IL-6", "TNF"]   # empty -> every analyte except the background
  file_extensions: [".csv"]
  plots: false
  workers: 1
  blocks:
    termination: auto                  # auto | fixed | marker
    well_count: null                   # required for "fixed"
    mfi_marker: "Median"
    count_pattern: "DataType.*Count"
    count_exclude: "Per Bead"
    terminators: ["Net MFI", "Avg Net MFI", "Total Events"]
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .blocks import (
    DEFAULT_COUNT_EXCLUDE,
    DEFAULT_COUNT_PATTERN,
    DEFAULT_MFI_MARKER,
    DEFAULT_TERMINATORS,
    BlockMarkers,
    BlockTermination,
    make_termination,
)
from .loader import load_yaml
from .qc.core import ConfigError


@dataclass(frozen=True)
class QCConfig:
    background_analyte: str
    standard_analytes: tuple[str, ...] = ()
    bead_threshold: int = 50
    r2_threshold: float = 0.9
    file_extensions: tuple[str, ...] = (".csv",)
    termination: str = "auto"
    well_count: Optional[int] = None
    markers: BlockMarkers = field(default_factory=BlockMarkers)
    plots: bool = False
    workers: int = 1

    def __post_init__(self) -> None:
        if not str(self.background_analyte).strip():
            raise ConfigError("background_analyte must be a non-empty string")
        if int(self.bead_threshold) < 0:
            raise ConfigError(f"bead_threshold must be >= 0, got {self.bead_threshold}")
        if not (0.0 < float(self.r2_threshold) < 1.0):
            raise ConfigError(f"r2_threshold must be in (0, 1), got {self.r2_threshold}")
        if self.termination not in ("auto", "fixed", "marker"):
            raise ConfigError(f"blocks.termination must be auto, fixed or marker, got {self.termination!r}")
        if self.termination == "fixed" and not self.well_count:
            raise ConfigError("blocks.termination 'fixed' requires blocks.well_count")
        if self.well_count is not None and int(self.well_count) <= 0:
            raise ConfigError(f"blocks.well_count must be positive, got {self.well_count}")
        if int(self.workers) < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")

    def block_termination(self) -> BlockTermination:
        return make_termination(
            self.termination,
            well_count=self.well_count,
            terminators=self.markers.terminators,
        )

    def with_overrides(self, **kwargs: Any) -> "QCConfig":
        """Return a copy with the non-None keyword values applied (CLI overrides)."""
        changes = {k: v for k, v in kwargs.items() if v is not None}
        return replace(self, **changes) if changes else self


def _as_tuple(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"{key} must be a list of strings, got {type(value).__name__}")
    return tuple(str(v) for v in value)


def config_from_dict(obj: Dict[str, Any]) -> QCConfig:
    if "background_analyte" not in obj:
        raise ConfigError("config is missing required key 'background_analyte'")

    blocks = obj.get("blocks") or {}
    if not isinstance(blocks, dict):
        raise ConfigError("blocks must be a mapping")

    markers = BlockMarkers(
        mfi_marker=str(blocks.get("mfi_marker", DEFAULT_MFI_MARKER)),
        count_pattern=str(blocks.get("count_pattern", DEFAULT_COUNT_PATTERN)),
        count_exclude=str(blocks.get("count_exclude", DEFAULT_COUNT_EXCLUDE)),
        terminators=_as_tuple(blocks.get("terminators", list(DEFAULT_TERMINATORS)), "blocks.terminators"),
    )
    exts = _as_tuple(obj.get("file_extensions", [".csv"]), "file_extensions")
    exts = tuple(e.lower() if e.startswith(".") else f".{e.lower()}" for e in exts)

    well_count = blocks.get("well_count")
    try:
        return QCConfig(
            background_analyte=str(obj["background_analyte"]).strip(),
            standard_analytes=_as_tuple(obj.get("standard_analytes"), "standard_analytes"),
            bead_threshold=int(obj.get("bead_threshold", 50)),
            r2_threshold=float(obj.get("r2_threshold", 0.9)),
            file_extensions=exts,
            termination=str(blocks.get("termination", "auto")).strip().lower(),
            well_count=int(well_count) if well_count is not None else None,
            markers=markers,
            plots=bool(obj.get("plots", False)),
            workers=int(obj.get("workers", 1)),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config value: {e}") from e


def load_config(path: Path) -> QCConfig:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config not found: {path}")
    return config_from_dict(load_yaml(path))
