"""
Match index reads against a registry of sample barcodes.

The registry is a list of NamedBarcode entries, either given as bare sequences
or loaded from a tab-delimited file.  BarcodeDecoder compares each index read
to every barcode, decides whether there's a confident match, and counts reads
per barcode in a BarcodeMetrics accumulator.  Reads that match nothing are
counted under the barcode name "0".
"""

import copy
import csv
import logging
from collections import namedtuple, OrderedDict
from .illumina.util import load_csv
from .illumina.reads import text_to_phred
from .util import ConfigError, ContractViolation
from .config import decoder_settings

LOGGER = logging.getLogger(__name__)

NO_CALL = "N"
VALID_BASES = frozenset("ACGTN")
NO_MATCH_NAME = "0"

NamedBarcode = namedtuple("NamedBarcode", ["sequence", "name", "library_name"])
NamedBarcode.__doc__ = "A sample barcode sequence with its name and library name."

BarcodeMatch = namedtuple(
    "BarcodeMatch",
    ["matched_barcode", "barcode_name", "mismatches", "no_calls", "is_match"])
BarcodeMatch.__doc__ = """The verdict for one index read.

mismatches is the distance to the closest barcode whether or not it matched.
For reads that don't match, barcode_name is "0" and matched_barcode is
empty."""


def barcodes_from_sequences(sequences):
    """Make a barcode registry from bare sequences, named "1", "2", ...

    The library name for each is the same as its barcode name."""
    barcodes = []
    for idx, seq in enumerate(sequences, 1):
        barcodes.append(NamedBarcode(seq.strip().upper(), str(idx), str(idx)))
    check_registry(barcodes)
    return barcodes

def load_barcode_file(path):
    """Load a barcode registry from a tab-delimited file.

    The header row must include barcode_sequence, and may also include
    barcode_name and library_name.  Blank names default to the row's
    one-indexed position.  Blank lines are skipped, and any bytes that aren't
    valid UTF8 are dropped.
    """
    rows = load_csv(path, csv.DictReader, non_unicode="strip", delimiter="\t")
    if rows and "barcode_sequence" not in rows[0]:
        raise ConfigError(
            "barcode file %s is missing the barcode_sequence column" % path)
    barcodes = []
    for row in rows:
        seq = (row.get("barcode_sequence") or "").strip().upper()
        if not seq and not any((val or "").strip() for val in row.values()):
            continue
        idx = str(len(barcodes) + 1)
        name = (row.get("barcode_name") or "").strip() or idx
        library = (row.get("library_name") or "").strip() or idx
        barcodes.append(NamedBarcode(seq, name, library))
    check_registry(barcodes)
    LOGGER.info("loaded %d barcodes from %s", len(barcodes), path)
    return barcodes

def check_registry(barcodes):
    """Check a barcode registry and return the common barcode length.

    Raises ConfigError for an empty registry, sequences of different lengths,
    unexpected characters, or duplicated sequences or names.
    """
    if not barcodes:
        raise ConfigError("no barcodes given")
    lengths = {len(bc.sequence) for bc in barcodes}
    if len(lengths) > 1:
        raise ConfigError(
            "barcodes must all be the same length; found lengths %s" %
            sorted(lengths))
    length = lengths.pop()
    if length == 0:
        raise ConfigError("barcodes must not be empty")
    seen_seqs = set()
    seen_names = {NO_MATCH_NAME}
    for bc in barcodes:
        bad = set(bc.sequence) - VALID_BASES
        if bad:
            raise ConfigError(
                "unexpected characters in barcode %s: %s" % (
                    bc.sequence, "".join(sorted(bad))))
        if bc.sequence in seen_seqs:
            raise ConfigError("duplicate barcode sequence: %s" % bc.sequence)
        if bc.name in seen_names:
            raise ConfigError("duplicate or reserved barcode name: %s" % bc.name)
        seen_seqs.add(bc.sequence)
        seen_names.add(bc.name)
    return length


def check_barcode_quality(bases, qualities, threshold=15):
    """Replace low-quality base calls with N.

    qualities may be FASTQ-style text (Phred+33) or a sequence of Phred
    integers.  Any position with quality at or below the threshold becomes N,
    whatever was called there.

    >>> check_barcode_quality("CAGATCTG", "%#144=D@")
    'NNGATCTG'
    """
    if isinstance(qualities, str):
        qualities = text_to_phred(qualities)
    if len(qualities) != len(bases):
        raise ContractViolation(
            "barcode bases and qualities differ in length: %d vs %d" % (
                len(bases), len(qualities)))
    return "".join(
        NO_CALL if qual <= threshold else base
        for base, qual in zip(bases, qualities))

def count_mismatches(read, barcode):
    """Hamming distance between equal-length strings, with N always a mismatch."""
    mismatches = 0
    for char1, char2 in zip(read, barcode):
        if char1 != char2 or char1 == NO_CALL or char2 == NO_CALL:
            mismatches += 1
    return mismatches


class BarcodeMetric:
    """Read counts for a single barcode (or for unmatched reads).

    The six counters are updated as reads are decoded.  The derived
    percentage fields stay None until a finalized copy is made with
    finalized()."""

    COUNTERS = [
        "reads",
        "pf_reads",
        "perfect_matches",
        "pf_perfect_matches",
        "one_mismatch_matches",
        "pf_one_mismatch_matches"]

    DERIVED = [
        "pct_matches",
        "pct_perfect_matches",
        "pct_one_mismatch_matches",
        "ratio_this_barcode_to_best_barcode_pct",
        "pf_pct_matches",
        "pf_ratio_this_barcode_to_best_barcode_pct",
        "pf_normalized_matches"]

    def __init__(self, barcode, barcode_name, library_name):
        self.barcode = barcode
        self.barcode_name = barcode_name
        self.library_name = library_name
        for key in self.COUNTERS:
            setattr(self, key, 0)
        for key in self.DERIVED:
            setattr(self, key, None)

    def count(self, pass_filter, mismatches=None):
        """Count one read, and a perfect/one-mismatch match if given."""
        self.reads += 1
        if pass_filter:
            self.pf_reads += 1
        if mismatches == 0:
            self.perfect_matches += 1
            if pass_filter:
                self.pf_perfect_matches += 1
        elif mismatches == 1:
            self.one_mismatch_matches += 1
            if pass_filter:
                self.pf_one_mismatch_matches += 1

    def add(self, other):
        """Add another metric's counters to this one's."""
        for key in self.COUNTERS:
            setattr(self, key, getattr(self, key) + getattr(other, key))

    def finalized(self, totals):
        """Make a copy with the derived fields calculated.

        totals is a dict with total_reads, total_pf_reads, best_reads,
        best_pf_reads, and mean_pf_reads across the lane."""
        ratio = lambda num, denom: num / denom if denom else 0.0
        metric = copy.copy(self)
        metric.pct_matches = ratio(self.reads, totals["total_reads"])
        metric.pct_perfect_matches = ratio(self.perfect_matches, self.reads)
        metric.pct_one_mismatch_matches = ratio(self.one_mismatch_matches, self.reads)
        metric.ratio_this_barcode_to_best_barcode_pct = ratio(
            self.reads, totals["best_reads"])
        metric.pf_pct_matches = ratio(self.pf_reads, totals["total_pf_reads"])
        metric.pf_ratio_this_barcode_to_best_barcode_pct = ratio(
            self.pf_reads, totals["best_pf_reads"])
        metric.pf_normalized_matches = ratio(self.pf_reads, totals["mean_pf_reads"])
        return metric

    def as_dict(self):
        """All fields as a dictionary."""
        keys = ["barcode", "barcode_name", "library_name"] + self.COUNTERS + self.DERIVED
        return {key: getattr(self, key) for key in keys}

    def __repr__(self):
        return "<BarcodeMetric %s (%s): %d reads>" % (
            self.barcode_name, self.barcode, self.reads)


class BarcodeMetrics:
    """Per-barcode counters for a lane, in registry order with "0" last.

    This is the only mutable state involved in decoding.  Separate
    accumulators (say, one per worker) can be combined with merge().
    """

    def __init__(self, barcodes):
        self._metrics = OrderedDict()
        length = len(barcodes[0].sequence) if barcodes else 0
        for bc in barcodes:
            self._metrics[bc.name] = BarcodeMetric(bc.sequence, bc.name, bc.library_name)
        self._metrics[NO_MATCH_NAME] = BarcodeMetric(
            NO_CALL * length, NO_MATCH_NAME, "")

    def __getitem__(self, name):
        return self._metrics[name]

    def __iter__(self):
        return iter(self._metrics.values())

    def __len__(self):
        return len(self._metrics)

    @property
    def total_reads(self):
        """Total reads counted across all barcodes, unmatched included."""
        return sum(metric.reads for metric in self._metrics.values())

    def count(self, match, pass_filter):
        """Count one decoded read under the barcode it was assigned to."""
        metric = self._metrics[match.barcode_name]
        metric.count(pass_filter, match.mismatches if match.is_match else None)

    def merge(self, other):
        """Add the counts from another accumulator for the same barcodes."""
        ours = [(metric.barcode_name, metric.barcode) for metric in self]
        theirs = [(metric.barcode_name, metric.barcode) for metric in other]
        if ours != theirs:
            raise ContractViolation("can't merge metrics for different barcode sets")
        for metric in other:
            self._metrics[metric.barcode_name].add(metric)
        return self

    def finalize(self):
        """List of finalized copies of every metric, "0" last.

        Percentages are relative to the lane totals, the best barcode, and
        the mean PF read count of the real (not "0") barcodes.  The counters
        themselves are left untouched."""
        metrics = list(self._metrics.values())
        matched = [metric for metric in metrics if metric.barcode_name != NO_MATCH_NAME]
        pf_counts = [metric.pf_reads for metric in matched]
        totals = {
            "total_reads": sum(metric.reads for metric in metrics),
            "total_pf_reads": sum(metric.pf_reads for metric in metrics),
            "best_reads": max((metric.reads for metric in matched), default=0),
            "best_pf_reads": max(pf_counts, default=0),
            "mean_pf_reads": sum(pf_counts) / len(pf_counts) if pf_counts else 0}
        return [metric.finalized(totals) for metric in metrics]


class BarcodeDecoder:
    """Assign index reads to barcodes under a bounded-mismatch model.

    A read matches its closest barcode only if it's within max_mismatches of
    it, has at most max_no_calls Ns, and the second closest barcode is at
    least min_mismatch_delta further away.  Optionally, bases at or below
    max_low_quality_to_convert are turned into Ns first.

    Decoding itself only depends on the read, the registry, and these
    settings; the metrics accumulator is the only thing that changes.
    """

    def __init__(
            self, barcodes,
            max_mismatches=1,
            min_mismatch_delta=1,
            max_no_calls=2,
            convert_low_quality_to_no_call=False,
            max_low_quality_to_convert=15):
        self.barcodes = tuple(barcodes)
        self.barcode_length = check_registry(self.barcodes)
        self.max_mismatches = max_mismatches
        self.min_mismatch_delta = min_mismatch_delta
        self.max_no_calls = max_no_calls
        self.convert_low_quality_to_no_call = convert_low_quality_to_no_call
        self.max_low_quality_to_convert = max_low_quality_to_convert
        self.metrics = BarcodeMetrics(self.barcodes)

    @classmethod
    def from_config(cls, barcodes, conf):
        """Set up a decoder using the "decoder" section of a config dict."""
        return cls(barcodes, **decoder_settings(conf))

    def _unmatched(self, mismatches, no_calls):
        return BarcodeMatch("", NO_MATCH_NAME, mismatches, no_calls, False)

    def match(self, bases, qualities=None):
        """Find the BarcodeMatch for an index read without counting it."""
        bases = bases.upper()
        if len(bases) != self.barcode_length:
            raise ContractViolation(
                "index read length %d doesn't match barcode length %d" % (
                    len(bases), self.barcode_length))
        if self.convert_low_quality_to_no_call:
            if qualities is None:
                raise ContractViolation(
                    "index read qualities are needed to convert low quality calls")
            bases = check_barcode_quality(
                bases, qualities, self.max_low_quality_to_convert)
        no_calls = bases.count(NO_CALL)
        # Both start out worse than any real distance.  A tie with the best
        # lands in second place, leaving a delta of zero.
        best = None
        best_dist = self.barcode_length + 1
        second_dist = self.barcode_length + 1
        for barcode in self.barcodes:
            dist = count_mismatches(bases, barcode.sequence)
            if dist < best_dist:
                if best is not None:
                    second_dist = best_dist
                best, best_dist = barcode, dist
            elif dist < second_dist:
                second_dist = dist
        matched = (
            best_dist <= self.max_mismatches and
            no_calls <= self.max_no_calls and
            second_dist - best_dist >= self.min_mismatch_delta)
        if not matched:
            return self._unmatched(best_dist, no_calls)
        return BarcodeMatch(best.sequence, best.name, best_dist, no_calls, True)

    def decode(self, bases, pass_filter, qualities=None):
        """Match an index read and count it in the metrics."""
        result = self.match(bases, qualities)
        self.metrics.count(result, pass_filter)
        return result

    def decode_read(self, read, pass_filter):
        """decode() for an AssembledRead."""
        return self.decode(read.bases, pass_filter, read.qualities)

    def finalize(self):
        """Finalized BarcodeMetric list for the reads decoded so far."""
        return self.metrics.finalize()
