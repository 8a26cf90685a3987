from __future__ import annotations

import sys
import tempfile
import unittest
import warnings
from pathlib import Path

import pandas as pd


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from bead_plate_pipeline.config import QCConfig  # noqa: E402
from bead_plate_pipeline.qc.core import AlignmentError, BlockNotFound, ConfigError, SchemaError, Sentinel  # noqa: E402
from bead_plate_pipeline.qc.pipeline import process_plate  # noqa: E402

from plate_export_fixture import (  # noqa: E402
    ANALYTES,
    BEAD_THRESHOLD,
    COUNTS,
    LOW_WELL,
    MFI,
    WELLS,
    build_export_text,
    without_count_total_events,
    write_export,
)


def _config(**kwargs) -> QCConfig:
    base = dict(
        background_analyte="Blank",
        standard_analytes=("IL-6", "TNF"),
        bead_threshold=BEAD_THRESHOLD,
        r2_threshold=0.9,
        well_count=len(WELLS),
    )
    base.update(kwargs)
    return QCConfig(**base)


def _run(path: Path, config: QCConfig, out_dir=None, **kwargs):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        return process_plate(path, config, out_dir, verbose=False, **kwargs)


class ProcessPlateTests(unittest.TestCase):
    def test_passing_plate_end_to_end(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "PRJ01_plate1.csv")
            res = _run(raw, _config())

        self.assertEqual(res.plate_id, "PRJ01_plate1")
        self.assertTrue(res.qc.passed)
        self.assertEqual(res.qc.passing_analytes, ("IL-6",))
        self.assertEqual(res.termination, "marker")

        self.assertEqual(
            res.low_beads.values.tolist(),
            [[LOW_WELL, "Sample2", "TNF", "PRJ01_plate1"]],
        )

        cleaned = res.cleaned.set_index("Location")
        # one low TNF count -> the whole well is FAILED_BEAD
        for analyte in ANALYTES:
            self.assertIs(cleaned.loc[LOW_WELL, analyte], Sentinel.FAILED_BEAD)

        # every other cell is MFI minus the well's background
        for i, (loc, _sample) in enumerate(WELLS):
            if loc == LOW_WELL:
                continue
            for analyte in ["IL-6", "TNF"]:
                self.assertAlmostEqual(cleaned.loc[loc, analyte], MFI[analyte][i] - MFI["Blank"][i])
            self.assertEqual(cleaned.loc[loc, "Blank"], MFI["Blank"][i])

        self.assertEqual(set(cleaned["Standard"]), {"IL-6"})
        self.assertEqual(set(cleaned["Plate"]), {"PRJ01_plate1"})

    def test_well_on_threshold_is_kept(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "P.csv")
            res = _run(raw, _config())
        g1 = res.cleaned.set_index("Location").loc["7(1,G1)"]
        self.assertNotIsInstance(g1["IL-6"], Sentinel)

    def test_missing_mfi_outside_low_bead_wells_stays_empty(self) -> None:
        mfi = {a: list(v) for a, v in MFI.items()}
        mfi["TNF"][7] = "NaN"
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "P.csv", mfi=mfi)
            with self.assertWarns(UserWarning) as ctx:
                res = process_plate(raw, _config(), verbose=False)

        messages = " ".join(str(w.message) for w in ctx.warnings)
        self.assertIn("1 missing MFI cell", messages)
        self.assertTrue(res.qc.passed)
        self.assertEqual(res.low_beads["Location"].tolist(), [LOW_WELL])
        h1 = res.cleaned.set_index("Location").loc["8(1,H1)"]
        self.assertNotIsInstance(h1["TNF"], Sentinel)
        self.assertTrue(pd.isna(h1["TNF"]))
        self.assertAlmostEqual(h1["IL-6"], MFI["IL-6"][7] - MFI["Blank"][7])

    def test_failing_plate_is_all_failed_standards(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "P.csv")
            res = _run(raw, _config(standard_analytes=("TNF",)))
        self.assertFalse(res.qc.passed)
        for analyte in ANALYTES:
            self.assertTrue(all(v is Sentinel.FAILED_STANDARDS for v in res.cleaned[analyte]), analyte)
        self.assertEqual(set(res.cleaned["Standard"]), {""})
        # the bead report is still produced
        self.assertEqual(len(res.low_beads), 1)

    def test_empty_standard_list_evaluates_all_but_background(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "P.csv")
            res = _run(raw, _config(standard_analytes=()))
        self.assertEqual([f.analyte for f in res.fits], ["IL-6", "TNF"])

    def test_fixed_variant_with_auto_detection(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "P.csv", variant="fixed")
            res = _run(raw, _config())
        self.assertEqual(res.termination, "fixed+marker")
        self.assertTrue(res.qc.passed)
        self.assertEqual(len(res.cleaned), len(WELLS))

    def test_outputs_written(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "raw" / "PRJ01_plate1.csv")
            out = Path(td) / "out"
            res = _run(raw, _config(), out)

            clean = pd.read_csv(out / "PRJ01_plate1_clean.csv")
            low = pd.read_csv(out / "PRJ01_plate1_beadqc_low_df.csv")
            fits = pd.read_csv(out / "PRJ01_plate1_standards_fits.csv")

        self.assertEqual(list(clean.columns), ["Location", "Sample", *ANALYTES, "Plate", "Standard"])
        self.assertEqual(
            clean.loc[clean["Location"] == LOW_WELL, "IL-6"].tolist(),
            ["Failed QC (bead)"],
        )
        self.assertEqual(list(low.columns), ["Location", "Sample", "Antigen", "Plate"])
        self.assertEqual(fits["Analyte"].tolist(), ["IL-6", "TNF"])
        self.assertIn("clean", res.written)

    def test_rerun_is_byte_identical(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "raw" / "P.csv")
            out1, out2 = Path(td) / "o1", Path(td) / "o2"
            _run(raw, _config(), out1)
            _run(raw, _config(), out2)
            for name in ["P_clean.csv", "P_beadqc_low_df.csv", "P_standards_fits.csv"]:
                self.assertEqual((out1 / name).read_bytes(), (out2 / name).read_bytes(), name)

    def test_plots_are_written_when_enabled(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "raw" / "P.csv")
            out = Path(td) / "out"
            _run(raw, _config(plots=True), out)
            self.assertTrue((out / "plots" / "P_std_IL-6.png").is_file())
            self.assertTrue((out / "plots" / "P_beadcount_heatmap.png").is_file())


class ProcessPlateErrorPolicyTests(unittest.TestCase):
    def test_missing_block_strict_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = Path(td) / "bad.csv"
            raw.write_text(build_export_text().replace("Median", "Mean"), encoding="utf-8")
            with self.assertRaises(BlockNotFound):
                _run(raw, _config(), strict=True)

    def test_missing_block_non_strict_skips_with_warning(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = Path(td) / "bad.csv"
            raw.write_text(build_export_text().replace("Median", "Mean"), encoding="utf-8")
            with self.assertWarns(UserWarning) as ctx:
                res = process_plate(raw, _config(), strict=False, verbose=False)
        self.assertIsNone(res)
        self.assertIn("bad.csv", str(ctx.warning))

    def test_count_header_without_total_events_strict_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = Path(td) / "bad_schema.csv"
            raw.write_text(without_count_total_events(build_export_text()), encoding="utf-8")
            with self.assertRaises(SchemaError):
                _run(raw, _config(), strict=True)

    def test_count_header_without_total_events_non_strict_skips_with_warning(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = Path(td) / "bad_schema.csv"
            raw.write_text(without_count_total_events(build_export_text()), encoding="utf-8")
            with self.assertWarns(UserWarning) as ctx:
                res = process_plate(raw, _config(), strict=False, verbose=False)
        self.assertIsNone(res)
        self.assertIn("bad_schema.csv", str(ctx.warning))
        self.assertIn("SchemaError", str(ctx.warning))

    def test_alignment_error_always_propagates(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            counts = {a: v[:] for a, v in COUNTS.items()}
            counts["IL-10"] = [100] * len(WELLS)
            raw = write_export(
                Path(td) / "P.csv",
                counts=counts,
                count_analytes=["IL-6", "TNF", "IL-10", "Blank"],
            )
            with self.assertRaises(AlignmentError) as ctx:
                _run(raw, _config(), strict=False)
        self.assertEqual(ctx.exception.check, "column_mismatch")

    def test_unknown_background_is_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            raw = write_export(Path(td) / "P.csv")
            with self.assertRaises(ConfigError):
                _run(raw, _config(background_analyte="Background0"), strict=False)


if __name__ == "__main__":
    unittest.main()
