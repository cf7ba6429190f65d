"""
Slice clusters into the logical reads defined by a RunLayout.
"""

from collections import namedtuple
from .layout import INDEX_SEGMENT
from ..util import ContractViolation

AssembledRead = namedtuple("AssembledRead", ["segment_name", "bases", "qualities"])
AssembledRead.__doc__ = "The bases and Phred qualities of one read segment of a cluster."
AssembledRead.is_index = property(lambda self: self.segment_name == INDEX_SEGMENT)


def assemble_reads(cluster, layout):
    """Split a cluster into one AssembledRead per layout segment.

    Reads come out in the layout's segment order, index read included.  Each
    is a direct slice of the cluster's per-cycle calls, with cycles counted
    from one.
    """
    if len(cluster.bases) < layout.total_cycles:
        raise ContractViolation(
            "cluster has %d cycles but layout needs %d" % (
                len(cluster.bases), layout.total_cycles))
    reads = []
    for seg in layout.segments:
        start, stop = seg.first_cycle - 1, seg.last_cycle
        reads.append(AssembledRead(
            seg.name, cluster.bases[start:stop], cluster.qualities[start:stop]))
    return tuple(reads)

def split_index_read(reads):
    """Separate assembled reads into (non-index reads, index read or None)."""
    others = tuple(read for read in reads if not read.is_index)
    index = [read for read in reads if read.is_index]
    return others, (index[0] if index else None)

def phred_to_text(qualities, offset=33):
    """Convert a sequence of Phred scores to FASTQ-style quality text."""
    return "".join(chr(qual + offset) for qual in qualities)

def text_to_phred(text, offset=33):
    """Convert FASTQ-style quality text to a list of Phred scores."""
    return [ord(char) - offset for char in text]
