"""
Write finalized per-barcode metrics as a tab-separated table.
"""

import sys
import csv
from .util import mkparent

METRICS_FIELDS = [
    "barcode",
    "barcode_name",
    "library_name",
    "reads",
    "pf_reads",
    "perfect_matches",
    "pf_perfect_matches",
    "one_mismatch_matches",
    "pf_one_mismatch_matches",
    "pct_matches",
    "pct_perfect_matches",
    "pct_one_mismatch_matches",
    "ratio_this_barcode_to_best_barcode_pct",
    "pf_pct_matches",
    "pf_ratio_this_barcode_to_best_barcode_pct",
    "pf_normalized_matches"]

def _fmt(val):
    if isinstance(val, float):
        return "%.6f" % val
    if val is None:
        return ""
    return str(val)

def write_metrics(metrics, out_file=sys.stdout, header=None):
    """Render finalized BarcodeMetric objects to a file handle.

    header is an optional dict of provenance information written first as
    "## key: value" lines, like a Picard metrics file."""
    for key, val in (header or {}).items():
        out_file.write("## %s: %s\n" % (key, val))
    writer = csv.DictWriter(
        out_file, METRICS_FIELDS, delimiter="\t", lineterminator="\n")
    writer.writeheader()
    for metric in metrics:
        row = metric.as_dict()
        writer.writerow({key: _fmt(row[key]) for key in METRICS_FIELDS})

def save_metrics(metrics, path, header=None):
    """Render finalized BarcodeMetric objects to a file path."""
    mkparent(path)
    with open(path, "w") as fout:
        write_metrics(metrics, fout, header)

def metrics_header(layout, extra=None):
    """Provenance lines for a metrics file from a RunLayout."""
    header = {"run": layout.identity, "lane": layout.lane_number}
    for rec in layout.software:
        header[rec.program_id] = "%s %s (%s)" % (rec.name, rec.version, rec.description)
    header.update(extra or {})
    return header
