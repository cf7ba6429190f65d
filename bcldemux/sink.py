"""
Destinations for demultiplexed reads.

The demultiplexer hands each tagged read to a RecordSink one at a time via
append().  FastqSink and SplitFastqSink write FASTQ with Biopython; ListSink
just keeps everything in memory.
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord
from .util import mkparent

LOGGER = logging.getLogger(__name__)

def fastq_description(read):
    """Build the FASTQ header comment for a tagged read.

    This follows the Illumina "<read>:<filtered>:<control>:<index>" style
    (filtered is Y for clusters failing the filter), followed by SAM-style
    text tags for the read group and any extra tags.
    """
    match = re.search("([0-9]+)$", read.segment_name)
    read_num = match.group(1) if match else "1"
    # the first tag holds the index read bases, when there is one
    index = next(iter(read.tags.values()), "")
    fields = ["%s:%s:0:%s" % (read_num, "N" if read.pass_filter else "Y", index)]
    fields.append("RG:Z:%s" % read.read_group)
    for key, val in read.tags.items():
        fields.append("%s:Z:%s" % (key, val))
    return " ".join(fields)

def to_seq_record(read):
    """Convert a TaggedRead into a Biopython SeqRecord with qualities."""
    return SeqRecord(
        Seq(read.bases),
        id=read.name,
        name=read.name,
        description=fastq_description(read),
        letter_annotations={"phred_quality": list(read.qualities)})


class RecordSink(ABC):
    """Somewhere to put tagged reads, one at a time."""

    @abstractmethod
    def append(self, read):
        """Add one TaggedRead."""

    def close(self):
        """Finish writing.  Nothing is needed by default."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class ListSink(RecordSink):
    """Keep tagged reads in a list."""

    def __init__(self):
        self.reads = []

    def append(self, read):
        self.reads.append(read)

    def read_groups(self):
        """Count of reads per read group, in order of first appearance."""
        counts = {}
        for read in self.reads:
            counts[read.read_group] = counts.get(read.read_group, 0) + 1
        return counts


class FastqSink(RecordSink):
    """Write all tagged reads to one FASTQ file.

    Paired reads end up interleaved since they're appended in cluster order.
    """

    def __init__(self, path):
        self.path = Path(path)
        mkparent(self.path)
        self._handle = open(self.path, "wt")
        self.count = 0
        LOGGER.info("writing FASTQ output to %s", self.path)

    def append(self, read):
        SeqIO.write(to_seq_record(read), self._handle, "fastq")
        self.count += 1

    def close(self):
        if not self._handle.closed:
            self._handle.close()
            LOGGER.debug("wrote %d reads to %s", self.count, self.path)


class SplitFastqSink(RecordSink):
    """Write tagged reads to one FASTQ file per read group.

    Files are named "<prefix>#<read group>.fastq" within output_dir.  Files
    for the read groups listed at setup are created even if no reads end up
    in them; others are opened as reads arrive.
    """

    def __init__(self, output_dir, prefix, read_groups=None):
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self._handles = {}
        self.counts = {}
        for read_group in read_groups or []:
            self._handle_for(read_group)

    def path_for(self, read_group):
        """Output path for a read group."""
        return self.output_dir / ("%s#%s.fastq" % (self.prefix, read_group))

    def _handle_for(self, read_group):
        handle = self._handles.get(read_group)
        if handle is None:
            path = self.path_for(read_group)
            mkparent(path)
            handle = open(path, "wt")
            self._handles[read_group] = handle
            self.counts[read_group] = 0
            LOGGER.debug("opened %s", path)
        return handle

    def append(self, read):
        SeqIO.write(to_seq_record(read), self._handle_for(read.read_group), "fastq")
        self.counts[read.read_group] += 1

    def close(self):
        for handle in self._handles.values():
            if not handle.closed:
                handle.close()
