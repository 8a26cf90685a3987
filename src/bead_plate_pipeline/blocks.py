"""
Locate the median-MFI and bead-count blocks inside a bead-array export.

The export is free-form text with a long header, several "DataType:" sections
and a footer. Each section starts with a marker line followed by a table header
("Location", "Sample", analytes..., "Total Events") and one row per well.

How a block ends depends on the export variant:
  - FixedWellCount: header + a configured number of well rows
  - NextMarker:     everything up to the next section marker line
The "auto" tactic picks one per block (see detect_termination).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .qc.core import BlockNotFound


DEFAULT_MFI_MARKER = "Median"
DEFAULT_COUNT_PATTERN = r"DataType.*Count"
DEFAULT_COUNT_EXCLUDE = "Per Bead"
DEFAULT_TERMINATORS = ("Net MFI", "Avg Net MFI", "Total Events")


@dataclass(frozen=True)
class LineRange:
    start: int
    end: int

    def __len__(self) -> int:
        return max(0, self.end - self.start)


@dataclass(frozen=True)
class BlockMarkers:
    mfi_marker: str = DEFAULT_MFI_MARKER
    count_pattern: str = DEFAULT_COUNT_PATTERN
    count_exclude: str = DEFAULT_COUNT_EXCLUDE
    terminators: tuple[str, ...] = DEFAULT_TERMINATORS


@dataclass(frozen=True)
class ExportBlocks:
    mfi: LineRange
    counts: LineRange
    termination: str


class BlockTermination(Protocol):
    name: str

    def end_of_block(self, lines: Sequence[str], start: int) -> int:
        """Return the exclusive end index of a block whose header is lines[start]."""
        ...


@dataclass(frozen=True)
class FixedWellCount:
    well_count: int
    name: str = "fixed"

    def end_of_block(self, lines: Sequence[str], start: int) -> int:
        if self.well_count <= 0:
            raise BlockNotFound(f"well_count must be positive, got {self.well_count}")
        end = start + 1 + int(self.well_count)
        if end > len(lines):
            raise BlockNotFound(
                f"Block starting at line {start + 1} needs {self.well_count} well rows "
                f"but the file ends after {len(lines) - start - 1}."
            )
        return end


@dataclass(frozen=True)
class NextMarker:
    terminators: tuple[str, ...] = DEFAULT_TERMINATORS
    name: str = "marker"

    def find_marker(self, lines: Sequence[str], start: int) -> Optional[int]:
        # lines[start] is the table header, which itself carries "Total Events"
        for j in range(start + 1, len(lines)):
            if any(t in lines[j] for t in self.terminators):
                return j
        return None

    def end_of_block(self, lines: Sequence[str], start: int) -> int:
        j = self.find_marker(lines, start)
        if j is None:
            raise BlockNotFound(
                f"No terminator {list(self.terminators)} after block starting at line {start + 1}."
            )
        while j > start + 1 and _is_section_filler(lines[j - 1]):
            j -= 1
        return j


def _is_section_filler(line: str) -> bool:
    # blank separator rows and the "DataType:" line of an unrecognized next section
    s = line.strip().strip(",\t\"")
    return (not s) or s.startswith("DataType")


@dataclass(frozen=True)
class AutoTermination:
    """
    Pick NextMarker when a terminator follows the block header, otherwise fall
    back to FixedWellCount when a well count is configured.
    """

    terminators: tuple[str, ...] = DEFAULT_TERMINATORS
    well_count: Optional[int] = None
    name: str = "auto"

    def resolve(self, lines: Sequence[str], start: int) -> BlockTermination:
        marker = NextMarker(self.terminators)
        if marker.find_marker(lines, start) is not None:
            return marker
        if self.well_count:
            return FixedWellCount(int(self.well_count))
        raise BlockNotFound(
            f"Could not detect the end of the block starting at line {start + 1}: "
            f"no terminator {list(self.terminators)} and no well_count configured."
        )

    def end_of_block(self, lines: Sequence[str], start: int) -> int:
        return self.resolve(lines, start).end_of_block(lines, start)


def make_termination(
    kind: str,
    *,
    well_count: Optional[int] = None,
    terminators: Sequence[str] = DEFAULT_TERMINATORS,
) -> BlockTermination:
    kind = str(kind).strip().lower()
    if kind == "fixed":
        if not well_count:
            raise ValueError("termination 'fixed' requires a well_count")
        return FixedWellCount(int(well_count))
    if kind == "marker":
        return NextMarker(tuple(terminators))
    if kind == "auto":
        return AutoTermination(tuple(terminators), well_count)
    raise ValueError(f"Unknown block termination: {kind!r} (expected auto, fixed or marker)")


def detect_termination(lines: Sequence[str], start: int, termination: BlockTermination) -> str:
    """Name of the tactic that actually ends the block at `start`."""
    if isinstance(termination, AutoTermination):
        return termination.resolve(lines, start).name
    return termination.name


def _find_mfi_marker(lines: Sequence[str], marker: str) -> int:
    for i, ln in enumerate(lines):
        if marker in ln:
            return i
    raise BlockNotFound(f"MFI marker {marker!r} not found.")


def _find_count_marker(lines: Sequence[str], pattern: str, exclude: str) -> int:
    pat = re.compile(pattern)
    hits: List[int] = [
        i for i, ln in enumerate(lines) if pat.search(ln) and (not exclude or exclude not in ln)
    ]
    if not hits:
        raise BlockNotFound(f"Bead-count marker {pattern!r} (excluding {exclude!r}) not found.")
    return hits[-1]


def _block_after(lines: Sequence[str], marker_idx: int, termination: BlockTermination, label: str) -> LineRange:
    start = marker_idx + 1
    if start >= len(lines) or not lines[start].strip():
        raise BlockNotFound(f"{label} block is empty: no header after marker on line {marker_idx + 1}.")
    end = termination.end_of_block(lines, start)
    if end <= start + 1:
        raise BlockNotFound(f"{label} block starting at line {start + 1} has no well rows.")
    return LineRange(start, end)


def locate_blocks(
    lines: Sequence[str],
    termination: BlockTermination,
    markers: BlockMarkers = BlockMarkers(),
) -> ExportBlocks:
    """
    Return the line ranges (start inclusive, end exclusive) of the MFI block
    and the bead-count block. Both ranges begin with the table header line.
    """
    mfi_idx = _find_mfi_marker(lines, markers.mfi_marker)
    count_idx = _find_count_marker(lines, markers.count_pattern, markers.count_exclude)
    if count_idx == mfi_idx:
        raise BlockNotFound(f"MFI and bead-count markers resolve to the same line ({mfi_idx + 1}).")

    mfi = _block_after(lines, mfi_idx, termination, "MFI")
    counts = _block_after(lines, count_idx, termination, "Bead-count")

    tactics = {detect_termination(lines, mfi.start, termination), detect_termination(lines, counts.start, termination)}
    return ExportBlocks(mfi=mfi, counts=counts, termination="+".join(sorted(tactics)))
