"""
Tests for writing per-barcode metrics tables.
"""

import io
import csv
from bcldemux import metrics
from bcldemux.barcodes import BarcodeDecoder, barcodes_from_sequences
from bcldemux.illumina.layout import RunLayout, SoftwareRecord
from .test_common import TestBaseTmp


class TestMetrics(TestBaseTmp):
    """Test rendering finalized metrics as a tab-separated table."""

    def setUp(self):
        super().setUp()
        decoder = BarcodeDecoder(barcodes_from_sequences(["ACGT", "TTGG"]))
        decoder.decode("ACGT", True)
        decoder.decode("ACGA", False)
        decoder.decode("GGGG", True)
        self.metrics = decoder.finalize()
        self.layout = RunLayout(
            "M00123", "RUNID", 1, [1101], [("read1", 1, 10), ("index", 11, 14)],
            [SoftwareRecord("basecalling", "RTA", "1.18.54", "Basecalling Package")])

    def parse(self, text):
        """Split rendered text into header lines and table rows."""
        lines = text.splitlines()
        header = [line for line in lines if line.startswith("##")]
        rows = list(csv.DictReader(
            [line for line in lines if not line.startswith("##")], delimiter="\t"))
        return header, rows

    def test_write_metrics(self):
        """Test the table columns and rows."""
        out = io.StringIO()
        metrics.write_metrics(self.metrics, out)
        header, rows = self.parse(out.getvalue())
        self.assertEqual(header, [])
        self.assertEqual(list(rows[0].keys()), metrics.METRICS_FIELDS)
        self.assertEqual([row["barcode_name"] for row in rows], ["1", "2", "0"])
        self.assertEqual([row["barcode"] for row in rows], ["ACGT", "TTGG", "NNNN"])
        self.assertEqual(rows[0]["reads"], "2")
        self.assertEqual(rows[0]["pf_reads"], "1")
        self.assertEqual(rows[0]["one_mismatch_matches"], "1")
        self.assertEqual(rows[0]["pct_matches"], "0.666667")
        self.assertEqual(rows[1]["pct_matches"], "0.000000")
        self.assertEqual(rows[2]["library_name"], "")

    def test_write_metrics_header(self):
        """Test the provenance lines written before the table."""
        out = io.StringIO()
        metrics.write_metrics(self.metrics, out, {"run": "RUNID", "lane": 1})
        header, rows = self.parse(out.getvalue())
        self.assertEqual(header, ["## run: RUNID", "## lane: 1"])
        self.assertEqual(len(rows), 3)

    def test_metrics_header(self):
        """Test provenance information from a layout."""
        header = metrics.metrics_header(self.layout, {"barcodes": 2})
        self.assertEqual(header, {
            "run": "M00123_RUNID",
            "lane": 1,
            "basecalling": "RTA 1.18.54 (Basecalling Package)",
            "barcodes": 2})

    def test_save_metrics(self):
        """Test writing to a path, creating the parent directory."""
        path = self.tmpdir / "out" / "lane1.metrics"
        metrics.save_metrics(self.metrics, path)
        _, rows = self.parse(path.read_text())
        self.assertEqual(len(rows), 3)
